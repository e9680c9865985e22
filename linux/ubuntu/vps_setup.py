#!/usr/bin/env python3
"""
vps_setup.py

VPS Bootstrap Utility

One-shot provisioning of a fresh Debian/Ubuntu VPS. It performs:

  - Root privilege check
  - System package update and upgrade
  - Creation of an unprivileged user with passwordless sudo
  - Propagation of root's authorized SSH keys to that user
  - nvm, Node.js LTS and the Claude Code CLI for that user
  - A shell alias for the CLI
  - SSH daemon hardening with validation and rollback
  - A final verification report

Usage:
  Run with root privileges:
      sudo ./vps_setup.py [--username NAME] [--skip-update] [--debug]

Disclaimer:
  This script is provided "as is" without any warranty. Use at your own risk.

Version: 1.0.0
"""

import datetime
import logging
import os
import pwd
import re
import shutil
import signal
import subprocess
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

import click
import pyfiglet
from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.style import Style
from rich.table import Table
from rich.text import Text

# ----------------------------------------------------------------
# Configuration & Constants
# ----------------------------------------------------------------
APP_NAME = "VPS Setup"
APP_SUBTITLE = "Bootstrap & SSH Hardening"
VERSION = "1.0.0"

DEFAULT_TIMEOUT = 1800  # apt upgrades and npm installs can be slow
QUERY_TIMEOUT = 60

# Portable login names; also keeps the sudoers.d filename free of '.' and '~',
# which sudo silently ignores.
USERNAME_PATTERN = re.compile(r"^[a-z_][a-z0-9_-]{0,31}$")

NVM_PRELUDE = (
    'export NVM_DIR="$HOME/.nvm"\n'
    '[ -s "$NVM_DIR/nvm.sh" ] && . "$NVM_DIR/nvm.sh"\n'
)


class NordColors:
    """Nord color palette used for console output."""

    POLAR_NIGHT_4 = "#4C566A"
    SNOW_STORM_1 = "#D8DEE9"
    SNOW_STORM_2 = "#E5E9F0"

    FROST_1 = "#8FBCBB"
    FROST_2 = "#88C0D0"
    FROST_3 = "#81A1C1"
    FROST_4 = "#5E81AC"

    RED = "#BF616A"
    YELLOW = "#EBCB8B"
    GREEN = "#A3BE8C"


console = Console(highlight=False)
logger = logging.getLogger("vps_setup")


@dataclass
class Config:
    USERNAME: str = "michau"
    USER_SHELL: str = "/bin/bash"
    HOME_BASE: Path = Path("/home")
    USER_HOME: Optional[Path] = None

    ADMIN_SSH_DIR: Path = Path("/root/.ssh")
    SUDOERS_DIR: Path = Path("/etc/sudoers.d")

    SSHD_CONFIG: Path = Path("/etc/ssh/sshd_config")
    SSHD_BINARY: str = "sshd"
    SSH_SERVICE: str = "ssh"
    SSH_DIRECTIVES: Dict[str, str] = field(default_factory=lambda: {
        "PasswordAuthentication": "no",
        "PermitRootLogin": "no",
        "PubkeyAuthentication": "yes",
    })

    NVM_VERSION: str = "v0.40.3"
    CLI_PACKAGE: str = "@anthropic-ai/claude-code"
    CLI_COMMAND: str = "claude"
    ALIAS_NAME: str = "claudeca"
    ALIAS_COMMAND: str = "claude --continue --dangerously-allow-everything"

    SKIP_UPDATE: bool = False
    LOG_FILE: str = "/var/log/vps_setup.log"

    def __post_init__(self) -> None:
        if self.USER_HOME is None:
            self.USER_HOME = self.HOME_BASE / self.USERNAME

    @property
    def nvm_install_url(self) -> str:
        return f"https://raw.githubusercontent.com/nvm-sh/nvm/{self.NVM_VERSION}/install.sh"

    @property
    def shell_profile(self) -> Path:
        return self.USER_HOME / ".bashrc"

    @property
    def alias_line(self) -> str:
        return f'alias {self.ALIAS_NAME}="{self.ALIAS_COMMAND}"'


# ----------------------------------------------------------------
# Exceptions
# ----------------------------------------------------------------
class SetupError(Exception):
    """A setup step could not complete."""


class StepSkipped(Exception):
    """A setup step decided there was nothing to do."""


# ----------------------------------------------------------------
# Logging & Console Helpers
# ----------------------------------------------------------------
def setup_logger(log_file: Union[str, Path], debug: bool = False) -> logging.Logger:
    log_file = Path(log_file)
    log_file.parent.mkdir(parents=True, exist_ok=True)
    logger.setLevel(logging.DEBUG)
    for h in logger.handlers[:]:
        logger.removeHandler(h)
    console_handler = RichHandler(console=console, rich_tracebacks=True)
    console_handler.setLevel(logging.DEBUG if debug else logging.INFO)
    logger.addHandler(console_handler)
    file_handler = logging.FileHandler(log_file)
    file_handler.setLevel(logging.DEBUG)
    formatter = logging.Formatter("[%(asctime)s] [%(levelname)s] %(message)s", "%Y-%m-%d %H:%M:%S")
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)
    try:
        os.chmod(str(log_file), 0o600)
    except Exception as e:
        logger.warning(f"Could not set permissions on log file {log_file}: {e}")
    return logger


def create_header() -> Panel:
    """Build the ASCII-art banner shown at startup."""
    term_width, _ = shutil.get_terminal_size((80, 24))
    font = "slant" if term_width >= 80 else "small"
    ascii_art = pyfiglet.Figlet(font=font, width=max(term_width - 10, 40)).renderText(APP_NAME)
    colors = [NordColors.FROST_1, NordColors.FROST_2, NordColors.FROST_3, NordColors.FROST_4]
    lines = [line for line in ascii_art.splitlines() if line.strip()]
    styled = Text("\n").join(
        Text(line, style=f"bold {colors[i % len(colors)]}") for i, line in enumerate(lines)
    )
    return Panel(
        styled,
        border_style=Style(color=NordColors.FROST_1),
        box=box.ROUNDED,
        padding=(1, 2),
        title=f"[bold {NordColors.SNOW_STORM_2}]v{VERSION}[/]",
        title_align="right",
        subtitle=f"[bold {NordColors.SNOW_STORM_1}]{APP_SUBTITLE}[/]",
        subtitle_align="center",
    )


def print_error(message: str) -> None:
    console.print(f"[bold {NordColors.RED}]✗ {message}[/]")


# ----------------------------------------------------------------
# Command & File Helpers
# ----------------------------------------------------------------
def run_command(
        cmd: List[str],
        check: bool = True,
        capture_output: bool = False,
        timeout: Optional[int] = DEFAULT_TIMEOUT,
        env: Optional[Dict[str, str]] = None,
        cwd: Optional[Union[str, Path]] = None,
) -> subprocess.CompletedProcess:
    """
    Execute a command and return the CompletedProcess.

    Output is streamed to the terminal unless capture_output is set.
    CalledProcessError and TimeoutExpired are logged and re-raised.
    """
    logger.debug(f"Running command: {' '.join(cmd)}")
    try:
        return subprocess.run(
            cmd,
            check=check,
            capture_output=capture_output,
            text=True,
            timeout=timeout,
            env=env or os.environ.copy(),
            cwd=str(cwd) if cwd else None,
        )
    except subprocess.CalledProcessError as e:
        logger.error(f"Command failed with exit code {e.returncode}: {' '.join(cmd)}")
        if e.stderr:
            logger.error(f"Stderr: {e.stderr.strip()}")
        raise
    except subprocess.TimeoutExpired:
        logger.error(f"Command timed out after {timeout} seconds: {' '.join(cmd)}")
        raise


def run_as_user(
        username: str,
        script: str,
        home: Optional[Path] = None,
        **kwargs: Any,
) -> subprocess.CompletedProcess:
    """Run a bash snippet as another account with that account's HOME."""
    cwd = home if home is not None and home.is_dir() else None
    return run_command(["sudo", "-u", username, "-H", "bash", "-c", script], cwd=cwd, **kwargs)


def user_exists(username: str) -> bool:
    try:
        pwd.getpwnam(username)
        return True
    except KeyError:
        return False


def set_owner(path: Path, username: str) -> None:
    shutil.chown(str(path), user=username, group=username)


def backup_file(file_path: Path) -> Path:
    """
    Copy file_path to a timestamped sibling and return the backup path.

    Raises SetupError if the file is missing or cannot be copied; callers
    must not modify the original until this returns.
    """
    if not file_path.is_file():
        raise SetupError(f"Cannot back up missing file: {file_path}")
    timestamp = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
    backup_path = file_path.with_name(f"{file_path.name}.backup.{timestamp}")
    try:
        shutil.copy2(file_path, backup_path)
    except OSError as e:
        raise SetupError(f"Failed to back up {file_path}: {e}") from e
    logger.info(f"Backed up {file_path} to {backup_path}")
    return backup_path


def read_config(file_path: Path) -> str:
    with file_path.open(newline="") as f:
        return f.read()


def write_config(file_path: Path, content: str) -> None:
    with file_path.open("w", newline="") as f:
        f.write(content)


def restore_file(backup_path: Path, file_path: Path) -> None:
    shutil.copy2(backup_path, file_path)
    logger.info(f"Restored {file_path} from {backup_path}")


# ----------------------------------------------------------------
# SSH Configuration
# ----------------------------------------------------------------
def _directive_keyword(line: str) -> Optional[str]:
    stripped = line.strip()
    if not stripped or stripped.startswith("#"):
        return None
    return re.split(r"[\s=]", stripped, maxsplit=1)[0].lower()


def apply_ssh_directives(content: str, directives: Dict[str, str]) -> str:
    """
    Return sshd_config content with each directive set to its value.

    Only the global section (everything before the first Match block) is
    considered. The first active line for a keyword is rewritten in place and
    later active duplicates are dropped; a missing keyword is inserted at the
    end of the global section. Keywords match case-insensitively, as sshd
    reads them. Comments and Match blocks are left alone.
    """
    lines = content.splitlines(keepends=True)
    global_end = next(
        (i for i, line in enumerate(lines) if _directive_keyword(line) == "match"),
        len(lines),
    )
    for key, value in directives.items():
        positions = [i for i in range(global_end) if _directive_keyword(lines[i]) == key.lower()]
        if positions:
            first = positions[0]
            ending = lines[first][len(lines[first].rstrip("\r\n")):] or "\n"
            lines[first] = f"{key} {value}{ending}"
            for i in reversed(positions[1:]):
                del lines[i]
            global_end -= len(positions) - 1
        else:
            if global_end > 0 and not lines[global_end - 1].endswith("\n"):
                lines[global_end - 1] += "\n"
            lines.insert(global_end, f"{key} {value}\n")
            global_end += 1
    return "".join(lines)


# ----------------------------------------------------------------
# Pipeline Types
# ----------------------------------------------------------------
@dataclass
class SetupStep:
    name: str
    description: str
    function: Callable[[], Optional[str]]
    critical: bool = True


@dataclass
class StepResult:
    name: str
    description: str
    status: str = "pending"  # pending | in_progress | success | skipped | failed
    message: str = ""
    elapsed: float = 0.0


STATUS_STYLES = {
    "success": (NordColors.GREEN, "✓ Success"),
    "skipped": (NordColors.YELLOW, "⚠ Skipped"),
    "failed": (NordColors.RED, "✗ Failed"),
    "in_progress": (NordColors.FROST_3, "➜ Interrupted"),
    "pending": (NordColors.POLAR_NIGHT_4, "• Not run"),
}


# ----------------------------------------------------------------
# Setup
# ----------------------------------------------------------------
class VPSSetup:
    def __init__(self, config: Optional[Config] = None):
        self.config = config or Config()
        self.logger = logger
        self.start_time = time.time()
        self.results: Dict[str, StepResult] = {}
        self.backup_path: Optional[Path] = None
        self.keys_copied = False
        self.verification: Dict[str, str] = {}

    def steps(self) -> List[SetupStep]:
        steps = []
        if not self.config.SKIP_UPDATE:
            steps.append(SetupStep("system_update", "Updating system packages", self.update_system))
        steps.extend([
            SetupStep("create_user", f"Creating user '{self.config.USERNAME}'", self.create_user),
            SetupStep("sudo", "Configuring passwordless sudo", self.configure_sudo),
            SetupStep("ssh_keys", "Copying root's authorized SSH keys", self.copy_ssh_keys),
            SetupStep("nvm", f"Installing nvm {self.config.NVM_VERSION}", self.install_nvm),
            SetupStep("node", "Installing Node.js LTS", self.install_node),
            SetupStep("cli", f"Installing {self.config.CLI_PACKAGE}", self.install_cli_tool),
            SetupStep("alias", f"Adding '{self.config.ALIAS_NAME}' alias", self.add_shell_alias),
            SetupStep("ssh_hardening", "Hardening SSH configuration", self.harden_ssh),
            SetupStep("verify", "Running final verification", self.verify_installation, critical=False),
        ])
        return steps

    # ------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------
    def run_step(self, step: SetupStep) -> StepResult:
        result = self.results.setdefault(step.name, StepResult(step.name, step.description))
        result.status = "in_progress"
        self.logger.info(f"Starting: {step.description}")
        start = time.time()
        try:
            message = step.function()
            result.status = "success"
            result.message = message or ""
            result.elapsed = time.time() - start
            self.logger.info(f"✓ {step.description} completed in {result.elapsed:.2f}s")
        except StepSkipped as e:
            result.status = "skipped"
            result.message = str(e)
            result.elapsed = time.time() - start
            self.logger.warning(f"{step.description} skipped: {e}")
        except Exception as e:
            result.status = "failed"
            result.message = str(e)
            result.elapsed = time.time() - start
            self.logger.error(f"✗ {step.description} failed in {result.elapsed:.2f}s: {e}")
        return result

    def run(self) -> bool:
        """Run every step in order, stopping at the first failed critical step."""
        steps = self.steps()
        for step in steps:
            self.results.setdefault(step.name, StepResult(step.name, step.description))
        for step in steps:
            result = self.run_step(step)
            if result.status == "failed" and step.critical:
                done = self.completed_steps()
                self.logger.error(
                    f"Setup aborted at '{step.name}'. Completed steps: {', '.join(done) or 'none'}"
                )
                return False
        return True

    def completed_steps(self) -> List[str]:
        return [r.name for r in self.results.values() if r.status in ("success", "skipped")]

    # ------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------
    def update_system(self) -> None:
        env = os.environ.copy()
        env["DEBIAN_FRONTEND"] = "noninteractive"
        self.logger.info("Updating package repositories...")
        run_command(["apt-get", "update"], env=env)
        self.logger.info("Upgrading system packages...")
        run_command(["apt-get", "upgrade", "-y"], env=env)

    def create_user(self) -> str:
        username = self.config.USERNAME
        if user_exists(username):
            raise StepSkipped(f"User '{username}' already exists, skipping creation")
        run_command(["useradd", "-m", "-s", self.config.USER_SHELL, username])
        self.logger.info(f"User '{username}' created with shell {self.config.USER_SHELL}")
        return f"Created with shell {self.config.USER_SHELL}"

    def configure_sudo(self) -> str:
        username = self.config.USERNAME
        sudoers_file = self.config.SUDOERS_DIR / username
        sudoers_file.write_text(f"{username} ALL=(ALL) NOPASSWD:ALL\n")
        os.chmod(sudoers_file, 0o440)
        self.logger.info(f"Wrote {sudoers_file}")
        return str(sudoers_file)

    def copy_ssh_keys(self) -> str:
        username = self.config.USERNAME
        source = self.config.ADMIN_SSH_DIR / "authorized_keys"
        if not source.is_file():
            raise StepSkipped(f"No authorized_keys found in {self.config.ADMIN_SSH_DIR}, skipping SSH key copy")
        ssh_dir = self.config.USER_HOME / ".ssh"
        target = ssh_dir / "authorized_keys"
        run_command(["sudo", "-u", username, "mkdir", "-p", str(ssh_dir)])
        shutil.copyfile(source, target)
        set_owner(target, username)
        os.chmod(target, 0o600)
        set_owner(ssh_dir, username)
        os.chmod(ssh_dir, 0o700)
        self.keys_copied = True
        self.logger.info(f"SSH keys copied to {target} and permissions set")
        return str(target)

    def install_nvm(self) -> None:
        script = f"set -o pipefail; curl -fsSL {self.config.nvm_install_url} | bash"
        run_as_user(self.config.USERNAME, script, home=self.config.USER_HOME)

    def install_node(self) -> str:
        cfg = self.config
        script = NVM_PRELUDE + "nvm install --lts && nvm use --lts && nvm alias default 'lts/*'"
        run_as_user(cfg.USERNAME, script, home=cfg.USER_HOME)

        result = run_as_user(
            cfg.USERNAME,
            NVM_PRELUDE + "node --version && npm --version",
            home=cfg.USER_HOME,
            capture_output=True,
            timeout=QUERY_TIMEOUT,
        )
        versions = (result.stdout or "").split()
        node_version = versions[0] if versions else "unknown"
        npm_version = versions[1] if len(versions) > 1 else "unknown"
        self.logger.info(f"Node.js {node_version} installed")
        self.logger.info(f"npm {npm_version} installed")
        return f"node {node_version}, npm {npm_version}"

    def install_cli_tool(self) -> None:
        script = NVM_PRELUDE + f"npm install -g {self.config.CLI_PACKAGE}"
        run_as_user(self.config.USERNAME, script, home=self.config.USER_HOME)

    def add_shell_alias(self) -> str:
        profile = self.config.shell_profile
        created = not profile.exists()
        with profile.open("a") as f:
            f.write(f"\n# Claude Code alias\n{self.config.alias_line}\n")
        if created:
            set_owner(profile, self.config.USERNAME)
        self.logger.info(f"Alias added to {profile}")
        return str(profile)

    def harden_ssh(self) -> str:
        cfg = self.config
        if not self.keys_copied and not (cfg.USER_HOME / ".ssh" / "authorized_keys").is_file():
            self.logger.warning(
                f"'{cfg.USERNAME}' has no authorized_keys; password and root login are about to be disabled"
            )
        backup_path = backup_file(cfg.SSHD_CONFIG)
        self.backup_path = backup_path

        original = read_config(cfg.SSHD_CONFIG)
        try:
            write_config(cfg.SSHD_CONFIG, apply_ssh_directives(original, cfg.SSH_DIRECTIVES))
        except OSError as e:
            self.logger.error(f"Failed to write {cfg.SSHD_CONFIG}: {e}. Restoring backup...")
            restore_file(backup_path, cfg.SSHD_CONFIG)
            raise SetupError(f"Could not write {cfg.SSHD_CONFIG}; restored {backup_path}") from e
        for key, value in cfg.SSH_DIRECTIVES.items():
            self.logger.info(f"Set {key} {value}")

        self.logger.info("Testing SSH configuration...")
        try:
            check = run_command(
                [cfg.SSHD_BINARY, "-t", "-f", str(cfg.SSHD_CONFIG)],
                check=False,
                capture_output=True,
                timeout=QUERY_TIMEOUT,
            )
            valid = check.returncode == 0
            if not valid and check.stderr:
                self.logger.error(check.stderr.strip())
        except (OSError, subprocess.SubprocessError) as e:
            self.logger.error(f"Could not run {cfg.SSHD_BINARY}: {e}")
            valid = False

        if valid:
            self.logger.info("SSH configuration is valid, restarting SSH service...")
            run_command(["systemctl", "restart", cfg.SSH_SERVICE], timeout=QUERY_TIMEOUT)
            return f"Backup at {backup_path}"

        self.logger.error("SSH configuration test failed! Restoring backup...")
        restore_file(backup_path, cfg.SSHD_CONFIG)
        run_command(["systemctl", "restart", cfg.SSH_SERVICE], timeout=QUERY_TIMEOUT)
        raise SetupError(f"sshd rejected the new configuration; restored {backup_path}")

    def verify_installation(self) -> None:
        cfg = self.config
        queries = {
            "User": ("whoami", "Unknown"),
            "Node version": ("node --version", "Not installed"),
            "npm version": ("npm --version", "Not installed"),
            "Claude Code": (f"command -v {cfg.CLI_COMMAND}", "Not found in PATH"),
        }
        info: Dict[str, str] = {}
        for label, (command, fallback) in queries.items():
            try:
                result = run_as_user(
                    cfg.USERNAME,
                    NVM_PRELUDE + command,
                    home=cfg.USER_HOME,
                    check=False,
                    capture_output=True,
                    timeout=QUERY_TIMEOUT,
                )
                value = (result.stdout or "").strip() if result.returncode == 0 else ""
            except (OSError, subprocess.SubprocessError) as e:
                self.logger.warning(f"Could not query {label.lower()}: {e}")
                value = ""
            info[label] = value or fallback

        try:
            alias_lines = [
                line.strip() for line in cfg.shell_profile.read_text().splitlines()
                if cfg.ALIAS_NAME in line
            ]
        except OSError:
            alias_lines = []
        info["Alias"] = "\n".join(alias_lines) or "Alias not found"

        self.verification = info
        for label, value in info.items():
            self.logger.debug(f"{label}: {value}")
        print_verification(info)

    # ------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------
    def print_summary(self) -> None:
        table = Table(
            show_header=True,
            header_style=f"bold {NordColors.FROST_1}",
            border_style=NordColors.FROST_3,
            title=f"[bold {NordColors.FROST_2}]Setup Summary[/]",
            title_justify="center",
            expand=True,
        )
        table.add_column("Step", style=f"bold {NordColors.FROST_2}")
        table.add_column("Status", no_wrap=True)
        table.add_column("Details", style=NordColors.SNOW_STORM_1)
        table.add_column("Time", justify="right", style=NordColors.SNOW_STORM_1)
        for result in self.results.values():
            color, label = STATUS_STYLES.get(result.status, (NordColors.FROST_3, result.status))
            elapsed = f"{result.elapsed:.1f}s" if result.status != "pending" else ""
            table.add_row(result.description, f"[{color}]{label}[/]", result.message, elapsed)
        console.print(table)

        elapsed = time.time() - self.start_time
        hours, remainder = divmod(elapsed, 3600)
        minutes, seconds = divmod(remainder, 60)
        self.logger.info(f"{APP_NAME} finished in {int(hours)}h {int(minutes)}m {int(seconds)}s")

    def print_security_notice(self) -> None:
        cfg = self.config
        lines = [
            "SSH configuration has been hardened:",
            "  - Password authentication is now DISABLED",
            "  - Root login is now DISABLED",
            "  - Only SSH key authentication is allowed",
            "",
            f"Make sure you can log in as '{cfg.USERNAME}' with your SSH key before closing this session!",
        ]
        if not self.keys_copied:
            lines.append(f"WARNING: no keys were copied; '{cfg.USERNAME}' has no key-based login yet.")
        if self.backup_path:
            lines.append(f"SSH config backup saved at: {self.backup_path}")
        console.print(Panel(
            Text("\n".join(lines), style=f"bold {NordColors.YELLOW}"),
            title=f"[bold {NordColors.YELLOW}]Important Security Notice[/]",
            border_style=NordColors.YELLOW,
            padding=(1, 2),
        ))
        console.print("\n[bold]Next steps:[/bold]")
        console.print(f"  1. Test SSH access in a new terminal: ssh {cfg.USERNAME}@your-server-ip")
        console.print(f"  2. Switch to the new user: sudo su - {cfg.USERNAME}")
        console.print(f"  3. The {cfg.ALIAS_NAME} alias is available after sourcing ~/.bashrc or logging in again")
        console.print("  4. Configure Claude Code with your API key if needed")
        console.print(f"  5. Test the setup: {cfg.ALIAS_NAME} --help")


def print_verification(info: Dict[str, str]) -> None:
    table = Table(
        show_header=False,
        box=None,
        border_style=NordColors.FROST_3,
        padding=(0, 2),
    )
    table.add_column("Property", style=f"bold {NordColors.FROST_2}")
    table.add_column("Value", style=NordColors.SNOW_STORM_1)
    for label, value in info.items():
        table.add_row(label, value)
    console.print(Panel(
        table,
        title="[bold]Verification[/bold]",
        border_style=NordColors.FROST_1,
        padding=(1, 2),
    ))


# ----------------------------------------------------------------
# Privilege Gate & Signal Handling
# ----------------------------------------------------------------
def check_root() -> None:
    """Exit with status 1 unless running as root."""
    if os.geteuid() != 0:
        print_error("This script must be run as root.")
        sys.exit(1)


setup_instance: Optional[VPSSetup] = None


def signal_handler(signum: int, frame: Any) -> None:
    sig = signal.Signals(signum).name
    logger.error(f"Setup interrupted by {sig}.")
    if setup_instance is not None:
        done = setup_instance.completed_steps()
        logger.error(f"Completed steps before interruption: {', '.join(done) or 'none'}")
        setup_instance.print_summary()
    sys.exit(130 if signum == signal.SIGINT else 143 if signum == signal.SIGTERM else 128 + signum)


def validate_username(ctx: click.Context, param: click.Parameter, value: str) -> str:
    if not USERNAME_PATTERN.match(value):
        raise click.BadParameter(
            "must start with a lowercase letter or underscore and contain only "
            "lowercase letters, digits, '_' or '-' (max 32 characters)"
        )
    if value == "root":
        raise click.BadParameter("the target account must not be root")
    return value


# ----------------------------------------------------------------
# Main Entry Point
# ----------------------------------------------------------------
@click.command()
@click.option("--username", default=Config.USERNAME, show_default=True, callback=validate_username,
              help="Account to create and provision")
@click.option("--skip-update", is_flag=True, help="Skip apt-get update/upgrade")
@click.option("--log-file", default=Config.LOG_FILE, show_default=True, help="Path of the debug log")
@click.option("--debug", is_flag=True, help="Show debug output on the console")
@click.version_option(VERSION, prog_name=APP_NAME)
def main(username: str, skip_update: bool, log_file: str, debug: bool) -> None:
    """Bootstrap a fresh VPS: user, sudo, SSH keys, Node.js, Claude Code, SSH hardening."""
    check_root()

    global setup_instance
    config = Config(USERNAME=username, SKIP_UPDATE=skip_update, LOG_FILE=log_file)
    setup_logger(config.LOG_FILE, debug)
    setup_instance = VPSSetup(config)
    for sig in (signal.SIGINT, signal.SIGTERM):
        signal.signal(sig, signal_handler)

    console.print(create_header())
    logger.info(f"Starting {APP_NAME} for user '{config.USERNAME}'")
    try:
        ok = setup_instance.run()
    except KeyboardInterrupt:
        logger.error("Setup interrupted by user.")
        setup_instance.print_summary()
        sys.exit(130)

    setup_instance.print_summary()
    if not ok:
        print_error("VPS setup failed. Review the log above and the summary table.")
        sys.exit(1)

    logger.info("VPS setup completed successfully!")
    setup_instance.print_security_notice()


if __name__ == "__main__":
    main()
