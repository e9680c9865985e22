import logging
import subprocess
from pathlib import Path

import pytest

import vps_setup

SAMPLE_SSHD_CONFIG = """\
# This is the sshd server system-wide configuration file.
Include /etc/ssh/sshd_config.d/*.conf

#PermitRootLogin prohibit-password
PermitRootLogin yes
#PubkeyAuthentication yes
KbdInteractiveAuthentication no
UsePAM yes
X11Forwarding yes
Subsystem sftp /usr/lib/openssh/sftp-server
"""


class FakeRunner:
    """Stands in for run_command and records every invocation."""

    def __init__(self):
        self.calls = []
        self.kwargs = []
        self.returncodes = {}
        self.outputs = {}
        self.failing = []
        self.missing = set()

    def __call__(self, cmd, check=True, capture_output=False, timeout=None, env=None, cwd=None):
        cmd = list(cmd)
        self.calls.append(cmd)
        self.kwargs.append({"check": check, "capture_output": capture_output, "env": env, "cwd": cwd})
        if cmd[0] in self.missing:
            raise FileNotFoundError(2, "No such file or directory", cmd[0])
        if cmd[0] == "sudo" and "mkdir" in cmd:
            Path(cmd[-1]).mkdir(parents=True, exist_ok=True)

        joined = " ".join(cmd)
        returncode = self.returncodes.get(cmd[0], 0)
        if any(needle in joined for needle in self.failing):
            returncode = 1
        stdout = next((out for needle, out in self.outputs.items() if needle in joined), "")
        stderr = "error" if returncode else ""
        if check and returncode != 0:
            raise subprocess.CalledProcessError(returncode, cmd, output=stdout, stderr=stderr)
        return subprocess.CompletedProcess(cmd, returncode, stdout=stdout, stderr=stderr)

    def joined(self):
        return [" ".join(c) for c in self.calls]

    def ran(self, needle):
        return any(needle in line for line in self.joined())


@pytest.fixture
def runner(monkeypatch):
    fake = FakeRunner()
    monkeypatch.setattr(vps_setup, "run_command", fake)
    return fake


@pytest.fixture
def owners(monkeypatch):
    changed = []
    monkeypatch.setattr(vps_setup, "set_owner", lambda path, user: changed.append((Path(path), user)))
    return changed


@pytest.fixture
def no_user(monkeypatch):
    monkeypatch.setattr(vps_setup, "user_exists", lambda name: False)


@pytest.fixture
def config(tmp_path):
    admin_ssh = tmp_path / "root" / ".ssh"
    admin_ssh.mkdir(parents=True)
    sudoers = tmp_path / "sudoers.d"
    sudoers.mkdir()
    home_base = tmp_path / "home"
    (home_base / "michau").mkdir(parents=True)
    sshd_config = tmp_path / "ssh" / "sshd_config"
    sshd_config.parent.mkdir()
    sshd_config.write_text(SAMPLE_SSHD_CONFIG)
    return vps_setup.Config(
        HOME_BASE=home_base,
        ADMIN_SSH_DIR=admin_ssh,
        SUDOERS_DIR=sudoers,
        SSHD_CONFIG=sshd_config,
        LOG_FILE=str(tmp_path / "log" / "vps_setup.log"),
    )


@pytest.fixture
def setup(config):
    return vps_setup.VPSSetup(config)


@pytest.fixture(autouse=True)
def reset_logger():
    yield
    for handler in vps_setup.logger.handlers[:]:
        vps_setup.logger.removeHandler(handler)
        handler.close()
    vps_setup.logger.setLevel(logging.NOTSET)
