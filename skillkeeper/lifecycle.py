"""Install and remove single skills under the managed skills directory."""

from __future__ import annotations

import shutil
from dataclasses import dataclass
from pathlib import Path

from skillkeeper import git
from skillkeeper.dependencies import DependencyInstaller, DependencyInstallResult
from skillkeeper.exceptions import (
    AlreadyInstalledError,
    CloneFailedError,
    GitCommandError,
    NotInstalledError,
    PermissionFailedError,
    RemoveFailedError,
    SkillKeeperError,
)
from skillkeeper.logging import get_logger
from skillkeeper.manifest import CatalogEntry
from skillkeeper.status import LogNotifier, Notifier, OperationEvents

log = get_logger(__name__)


@dataclass(frozen=True)
class LocalSkill:
    """A skill checkout location; it may or may not exist on disk."""

    name: str
    path: Path

    @property
    def installed(self) -> bool:
        return self.path.is_dir()

    @property
    def is_checkout(self) -> bool:
        return git.is_checkout(self.path)

    def remote_url(self) -> str | None:
        if not self.is_checkout:
            return None
        return git.remote_url(self.path)


def entry_from_url(url: str) -> CatalogEntry:
    """Catalog-shaped entry for a raw repository url; never looked up in the catalog."""
    cleaned = str(url or "").strip()
    name = git.derive_skill_name(cleaned)
    return CatalogEntry(name=name, path=name, url=cleaned)


class SkillLifecycle:
    """Owns creation and destruction of skill directories under ``root``."""

    def __init__(
        self,
        root: Path,
        installer: DependencyInstaller | None = None,
        notifier: Notifier | None = None,
        git_timeout: int = 300,
        exclude_patterns: list[str] | None = None,
    ):
        self.root = Path(root).expanduser().resolve()
        self.installer = installer or DependencyInstaller()
        self.notifier = notifier or LogNotifier()
        self.git_timeout = git_timeout
        self.exclude_patterns = list(exclude_patterns or [])

    def skill_for(self, entry: CatalogEntry) -> LocalSkill:
        name = git.derive_skill_name(entry.url) if entry.url else entry.path
        return LocalSkill(name=name, path=self.root / name)

    def installed_skills(self) -> list[LocalSkill]:
        if not self.root.is_dir():
            return []
        return [
            LocalSkill(name=item.name, path=item)
            for item in sorted(self.root.iterdir(), key=lambda entry: entry.name.lower())
            if item.is_dir() and not item.name.startswith(".")
        ]

    def install(self, entry: CatalogEntry, events: OperationEvents | None = None) -> LocalSkill:
        events = events or OperationEvents(self.notifier, "install")
        skill = self.skill_for(entry)
        events.started(skill=skill.name)
        try:
            result = self._install(entry, skill)
        except SkillKeeperError as exc:
            log.warning("Skill install failed", skill=skill.name, code=int(exc.code), error=str(exc))
            events.failed(exc.code, skill=skill.name, error=str(exc))
            raise
        log.info(
            "Skill installed",
            skill=skill.name,
            path=str(skill.path),
            native_setup=result.native_setup_ran,
            requirements=result.requirements_installed,
        )
        events.succeeded(skill=skill.name, url=entry.url)
        return skill

    def remove(self, entry: CatalogEntry, events: OperationEvents | None = None) -> LocalSkill:
        events = events or OperationEvents(self.notifier, "remove")
        skill = self.skill_for(entry)
        events.started(skill=skill.name)
        try:
            self._remove(skill)
        except SkillKeeperError as exc:
            log.warning("Skill removal failed", skill=skill.name, code=int(exc.code), error=str(exc))
            events.failed(exc.code, skill=skill.name, error=str(exc))
            raise
        log.info("Skill removed", skill=skill.name)
        events.succeeded(skill=skill.name)
        return skill

    def _install(self, entry: CatalogEntry, skill: LocalSkill) -> DependencyInstallResult:
        if skill.path.exists():
            raise AlreadyInstalledError(skill.name)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            # Also covers a regular file sitting where the skills root should be.
            raise PermissionFailedError(skill.name, f"Cannot create skills directory {self.root}: {exc}") from exc

        log.info("Cloning skill", skill=skill.name, url=entry.url)
        try:
            git.clone(entry.url, skill.path, timeout_seconds=self.git_timeout)
        except GitCommandError as exc:
            self._discard(skill.path)
            raise CloneFailedError(skill.name, f"Failed to clone '{skill.name}' from {entry.url}: {exc.details}") from exc

        try:
            git.ensure_excluded(skill.path, self.exclude_patterns)
            return self.installer.install(skill.path)
        except SkillKeeperError:
            self._discard(skill.path)
            raise
        except PermissionError as exc:
            self._discard(skill.path)
            raise PermissionFailedError(skill.name, f"Permission denied preparing '{skill.name}': {exc}") from exc
        except OSError as exc:
            self._discard(skill.path)
            raise CloneFailedError(skill.name, f"Failed to prepare checkout for '{skill.name}': {exc}") from exc

    def _remove(self, skill: LocalSkill) -> None:
        if not skill.path.exists():
            raise NotInstalledError(skill.name)
        try:
            shutil.rmtree(skill.path)
        except PermissionError as exc:
            raise PermissionFailedError(skill.name, f"Permission denied removing '{skill.name}': {exc}") from exc
        except OSError as exc:
            raise RemoveFailedError(skill.name, f"Failed to remove '{skill.name}': {exc}") from exc
        if skill.path.exists():
            raise RemoveFailedError(skill.name, f"'{skill.name}' still present at {skill.path} after removal")

    def _discard(self, path: Path) -> None:
        if not path.exists():
            return
        shutil.rmtree(path, ignore_errors=True)
        if path.exists():
            log.warning("Could not clean up partial checkout", path=str(path))
