"""Thin git subprocess helpers used by install and update."""

from __future__ import annotations

import os
import subprocess
from pathlib import Path
from urllib.parse import urlparse

from skillkeeper.exceptions import GitCommandError, InvalidSourceError

_DEFAULT_TIMEOUT_SECONDS = 300
REPO_URL_PREFIXES = ("https://", "http://", "git@")


def _git_env() -> dict[str, str]:
    env = dict(os.environ)
    # Never block on a credential prompt.
    env["GIT_TERMINAL_PROMPT"] = "0"
    env.setdefault("GIT_ASKPASS", "echo")
    env.setdefault("GIT_SSH_COMMAND", "ssh -o BatchMode=yes")
    return env


def run_git(
    args: list[str],
    cwd: Path | str | None = None,
    timeout_seconds: int = _DEFAULT_TIMEOUT_SECONDS,
) -> str:
    cmd = ["git"]
    if cwd is not None:
        cmd.extend(["-C", str(cwd)])
    cmd.extend(args)
    try:
        completed = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            check=False,
            timeout=max(1, int(timeout_seconds)),
            env=_git_env(),
        )
    except subprocess.TimeoutExpired as exc:
        raise GitCommandError(args, f"timed out after {exc.timeout}s") from exc
    except OSError as exc:
        raise GitCommandError(args, str(exc)) from exc
    if completed.returncode == 0:
        return completed.stdout.strip()
    details = (completed.stderr or completed.stdout or "").strip()
    raise GitCommandError(args, details)


def is_repo_url(text: str) -> bool:
    return str(text or "").strip().lower().startswith(REPO_URL_PREFIXES)


def is_interactive_remote(url: str | None) -> bool:
    """True for transports that may prompt for credentials (ssh style remotes)."""
    value = str(url or "").strip().lower()
    if not value:
        return False
    if value.startswith(("git@", "ssh://", "git+ssh://")):
        return True
    parsed = urlparse(value)
    return parsed.scheme in {"ssh", "git+ssh"}


def derive_skill_name(url: str) -> str:
    """Final path segment of a repository url with any extension stripped."""
    raw = str(url or "").strip().rstrip("/")
    if not raw:
        raise InvalidSourceError("Repository URL is required.")
    if raw.lower().startswith("git@") and ":" in raw:
        raw = raw.split(":", 1)[1]
    else:
        parsed = urlparse(raw)
        if parsed.scheme:
            raw = parsed.path
    segment = raw.rstrip("/").rsplit("/", 1)[-1]
    name = segment.rsplit(".", 1)[0] if "." in segment else segment
    if not name:
        raise InvalidSourceError(f"Cannot derive a skill name from '{url}'.")
    return name


def is_checkout(path: Path) -> bool:
    return (path / ".git").exists()


def clone(url: str, destination: Path, timeout_seconds: int = _DEFAULT_TIMEOUT_SECONDS) -> None:
    run_git(["clone", url, str(destination)], timeout_seconds=timeout_seconds)


def fetch(repo: Path, timeout_seconds: int = _DEFAULT_TIMEOUT_SECONDS) -> None:
    run_git(["fetch", "--quiet", "origin"], cwd=repo, timeout_seconds=timeout_seconds)


def reset_hard(repo: Path, revision: str, timeout_seconds: int = _DEFAULT_TIMEOUT_SECONDS) -> None:
    run_git(["reset", "--hard", "--quiet", revision], cwd=repo, timeout_seconds=timeout_seconds)


def current_branch(repo: Path) -> str:
    return run_git(["rev-parse", "--abbrev-ref", "HEAD"], cwd=repo)


def current_revision(repo: Path) -> str:
    return run_git(["rev-parse", "HEAD"], cwd=repo)


def has_tracked_changes(repo: Path) -> bool:
    output = run_git(["status", "--porcelain", "--untracked-files=no"], cwd=repo)
    return bool(output.strip())


def remote_url(repo: Path, remote: str = "origin") -> str | None:
    try:
        value = run_git(["config", "--get", f"remote.{remote}.url"], cwd=repo)
    except GitCommandError:
        return None
    return value or None


def upstream_ref(repo: Path) -> str | None:
    try:
        value = run_git(["rev-parse", "--abbrev-ref", "--symbolic-full-name", "@{upstream}"], cwd=repo)
    except GitCommandError:
        return None
    return value or None


def ahead_behind(repo: Path, upstream: str) -> tuple[int, int]:
    """Commits only on HEAD and commits only on upstream."""
    output = run_git(["rev-list", "--left-right", "--count", f"HEAD...{upstream}"], cwd=repo)
    parts = output.split()
    if len(parts) != 2:
        raise GitCommandError(["rev-list", "--left-right", "--count"], f"unexpected output: {output!r}")
    return int(parts[0]), int(parts[1])


def ensure_excluded(repo: Path, patterns: list[str]) -> bool:
    """Append missing patterns to .git/info/exclude. Returns True when the file changed."""
    git_dir = repo / ".git"
    if not git_dir.is_dir():
        return False
    exclude_file = git_dir / "info" / "exclude"
    existing = exclude_file.read_text(encoding="utf-8") if exclude_file.exists() else ""
    present = {line.strip() for line in existing.splitlines()}
    missing = [pattern for pattern in patterns if pattern.strip() and pattern.strip() not in present]
    if not missing:
        return False
    exclude_file.parent.mkdir(parents=True, exist_ok=True)
    prefix = "" if not existing or existing.endswith("\n") else "\n"
    with open(exclude_file, "a", encoding="utf-8") as f:
        f.write(prefix + "\n".join(missing) + "\n")
    return True
