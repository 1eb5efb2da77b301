"""Native setup scripts and Python requirement installs for skill checkouts."""

from __future__ import annotations

import hashlib
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path

from skillkeeper.config import DependenciesConfig
from skillkeeper.exceptions import (
    DependencyInstallFailedError,
    NativeSetupFailedError,
    PermissionFailedError,
)
from skillkeeper.logging import get_logger

log = get_logger(__name__)

NATIVE_SETUP_FILE = "requirements.sh"
PYTHON_REQUIREMENTS_FILE = "requirements.txt"
DEPENDENCY_FILES = (NATIVE_SETUP_FILE, PYTHON_REQUIREMENTS_FILE)

_PERMISSION_MARKERS = ("permission denied", "errno 13", "could not install packages due to an oserror")


@dataclass
class DependencyInstallResult:
    skill_name: str
    native_setup_ran: bool = False
    requirements_installed: bool = False
    command: str = ""


def file_digest(path: Path) -> str | None:
    if not path.is_file():
        return None
    digest = hashlib.sha256()
    digest.update(path.read_bytes())
    return f"sha256:{digest.hexdigest()}"


def dependency_hashes(skill_dir: Path) -> dict[str, str | None]:
    return {name: file_digest(skill_dir / name) for name in DEPENDENCY_FILES}


def _run_install_command(
    argv: list[str],
    cwd: Path,
    timeout_seconds: int,
) -> tuple[int | None, str, str]:
    try:
        completed = subprocess.run(
            argv,
            cwd=str(cwd),
            capture_output=True,
            text=True,
            check=False,
            timeout=max(1, int(timeout_seconds)),
        )
    except subprocess.TimeoutExpired as exc:
        return None, "", f"timed out after {exc.timeout}s"
    except OSError as exc:
        return None, "", str(exc)
    return completed.returncode, completed.stdout or "", completed.stderr or ""


def _looks_like_permission_error(details: str) -> bool:
    lowered = details.lower()
    return any(marker in lowered for marker in _PERMISSION_MARKERS)


class DependencyInstaller:
    """Runs a checkout's requirements.sh, then pip installs requirements.txt."""

    def __init__(self, config: DependenciesConfig | None = None):
        self.config = config or DependenciesConfig()

    def pip_command(self, requirements: Path) -> list[str]:
        argv = [self.config.resolved_python(), "-m", "pip", "install", "-r", str(requirements)]
        constraints = self.config.constraints.strip()
        if constraints:
            argv.extend(["-c", str(Path(constraints).expanduser())])
        argv.extend(self.config.pip_args)
        return argv

    def run_native_setup(self, skill_dir: Path) -> bool:
        script = skill_dir / NATIVE_SETUP_FILE
        if not script.is_file():
            return False
        argv = [self.config.native_setup_shell, str(script)]
        log.info("Running native setup", skill=skill_dir.name, script=str(script))
        code, stdout, stderr = _run_install_command(argv, skill_dir, self.config.timeout)
        if code == 0:
            return True
        details = stderr.strip() or stdout.strip() or "unknown failure"
        raise NativeSetupFailedError(
            skill_dir.name,
            f"{NATIVE_SETUP_FILE} for '{skill_dir.name}' exited with {code}: {details}",
        )

    def install_requirements(self, skill_dir: Path) -> str | None:
        requirements = skill_dir / PYTHON_REQUIREMENTS_FILE
        if not requirements.is_file():
            return None
        argv = self.pip_command(requirements)
        command_text = " ".join(shlex.quote(part) for part in argv)
        log.info("Installing Python requirements", skill=skill_dir.name, command=command_text)
        code, stdout, stderr = _run_install_command(argv, skill_dir, self.config.timeout)
        if code == 0:
            return command_text
        details = stderr.strip() or stdout.strip() or "unknown installer failure"
        if _looks_like_permission_error(details):
            raise PermissionFailedError(
                skill_dir.name,
                f"Permission denied installing requirements for '{skill_dir.name}': {details}",
            )
        raise DependencyInstallFailedError(
            skill_dir.name,
            f"pip install for '{skill_dir.name}' exited with {code}: {details}",
        )

    def install(self, skill_dir: Path) -> DependencyInstallResult:
        """Install everything a checkout declares. Native setup failure stops before pip."""
        result = DependencyInstallResult(skill_name=skill_dir.name)
        result.native_setup_ran = self.run_native_setup(skill_dir)
        command = self.install_requirements(skill_dir)
        if command is not None:
            result.requirements_installed = True
            result.command = command
        return result
