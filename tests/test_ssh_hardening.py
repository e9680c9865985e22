import re

import pytest

import vps_setup
from vps_setup import SetupError, backup_file


def test_backup_is_timestamped_copy(config):
    backup = backup_file(config.SSHD_CONFIG)
    assert re.fullmatch(r"sshd_config\.backup\.\d{8}_\d{6}", backup.name)
    assert backup.parent == config.SSHD_CONFIG.parent
    assert backup.read_bytes() == config.SSHD_CONFIG.read_bytes()


def test_backup_of_missing_file_fails(tmp_path):
    with pytest.raises(SetupError):
        backup_file(tmp_path / "sshd_config")


def test_valid_config_is_kept_and_service_restarted(setup, config, runner):
    original = config.SSHD_CONFIG.read_text()

    message = setup.harden_ssh()

    patched = config.SSHD_CONFIG.read_text()
    assert "PermitRootLogin no\n" in patched
    assert "PasswordAuthentication no\n" in patched
    assert "PubkeyAuthentication yes\n" in patched
    assert "PermitRootLogin yes" not in patched
    assert setup.backup_path.read_text() == original
    assert str(setup.backup_path) in message
    assert runner.joined() == [
        f"sshd -t -f {config.SSHD_CONFIG}",
        "systemctl restart ssh",
    ]


def test_rejected_config_is_rolled_back_byte_for_byte(setup, config, runner):
    original = b"Port 22\r\nPermitRootLogin yes\r\n# trailing comment without newline"
    config.SSHD_CONFIG.write_bytes(original)
    runner.returncodes["sshd"] = 255

    with pytest.raises(SetupError):
        setup.harden_ssh()

    assert config.SSHD_CONFIG.read_bytes() == original
    assert setup.backup_path.read_bytes() == original
    assert runner.joined() == [
        f"sshd -t -f {config.SSHD_CONFIG}",
        "systemctl restart ssh",
    ]


def test_missing_sshd_binary_also_rolls_back(setup, config, runner):
    original = config.SSHD_CONFIG.read_bytes()
    runner.missing.add("sshd")

    with pytest.raises(SetupError):
        setup.harden_ssh()

    assert config.SSHD_CONFIG.read_bytes() == original
    assert runner.ran("systemctl restart ssh")


def test_missing_config_fails_before_any_change(setup, config, runner):
    config.SSHD_CONFIG.unlink()
    with pytest.raises(SetupError):
        setup.harden_ssh()
    assert runner.calls == []
    assert not config.SSHD_CONFIG.exists()


def test_warns_when_target_has_no_keys(setup, runner, caplog):
    with caplog.at_level("WARNING", logger="vps_setup"):
        setup.harden_ssh()
    assert "has no authorized_keys" in caplog.text


def test_rollback_restores_the_captured_backup(setup, config, runner, monkeypatch):
    restored = []
    original_restore = vps_setup.restore_file

    def spy(backup_path, file_path):
        restored.append(backup_path)
        original_restore(backup_path, file_path)

    monkeypatch.setattr(vps_setup, "restore_file", spy)
    runner.returncodes["sshd"] = 1

    with pytest.raises(SetupError):
        setup.harden_ssh()

    assert restored == [setup.backup_path]


def test_interrupted_write_is_rolled_back(setup, config, runner, monkeypatch):
    original = config.SSHD_CONFIG.read_bytes()

    def disk_full(path, content):
        with open(path, "w") as f:
            f.write(content[:20])
        raise OSError(28, "No space left on device")

    monkeypatch.setattr(vps_setup, "write_config", disk_full)

    with pytest.raises(SetupError):
        setup.harden_ssh()

    assert config.SSHD_CONFIG.read_bytes() == original
    assert setup.backup_path.read_bytes() == original
    assert not runner.ran("systemctl restart")


def test_crlf_config_keeps_its_line_endings(setup, config, runner):
    config.SSHD_CONFIG.write_bytes(b"Port 22\r\nPermitRootLogin yes\r\n")

    setup.harden_ssh()

    patched = config.SSHD_CONFIG.read_bytes()
    assert b"PermitRootLogin no\r\n" in patched
    assert b"PermitRootLogin yes" not in patched
    assert patched.startswith(b"Port 22\r\n")
