"""High-level skill operations used by the CLI."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass

from skillkeeper import git
from skillkeeper.config import Config, get_config
from skillkeeper.dependencies import DependencyInstaller
from skillkeeper.exceptions import AmbiguousMatchError, SkillKeeperError
from skillkeeper.info import fetch_readme
from skillkeeper.lifecycle import LocalSkill, SkillLifecycle, entry_from_url
from skillkeeper.logging import get_logger
from skillkeeper.manifest import CatalogEntry, ManifestCache
from skillkeeper.matcher import resolve_skill, search_skills
from skillkeeper.status import (
    BENIGN_CODES,
    BatchResult,
    ExitCode,
    ItemOutcome,
    Notifier,
    OperationEvents,
    build_notifier,
)
from skillkeeper.updates import UpdateOrchestrator

log = get_logger(__name__)


@dataclass
class SkillListing:
    name: str
    url: str
    installed: bool
    in_catalog: bool = True


@dataclass
class SkillInfo:
    entry: CatalogEntry
    installed: bool
    readme_url: str
    readme: str


class SkillManager:
    """Wires catalog, matcher, lifecycle and updater together for one invocation."""

    def __init__(
        self,
        config: Config | None = None,
        cache: ManifestCache | None = None,
        installer: DependencyInstaller | None = None,
        notifier: Notifier | None = None,
    ):
        self.config = config or get_config()
        skills_cfg = self.config.skills
        self.cache = cache or ManifestCache(skills_cfg.manifest_url, timeout=skills_cfg.fetch_timeout)
        self.notifier = notifier or build_notifier(self.config)
        self.lifecycle = SkillLifecycle(
            self.config.resolved_skills_dir(),
            installer=installer or DependencyInstaller(self.config.dependencies),
            notifier=self.notifier,
            git_timeout=skills_cfg.git_timeout,
            exclude_patterns=skills_cfg.exclude_patterns,
        )
        self.updater = UpdateOrchestrator(
            self.lifecycle,
            mainline=skills_cfg.mainline,
            concurrency=skills_cfg.update_concurrency,
        )

    def resolve(self, query: str) -> CatalogEntry:
        if git.is_repo_url(query):
            return entry_from_url(query)
        return resolve_skill(query, self.cache.fetch())

    def install(self, queries: Iterable[str]) -> BatchResult:
        """Install each query in order; failures are recorded, never raised."""
        batch = BatchResult(operation="install")
        events = OperationEvents(self.notifier, "install")
        for query in queries:
            batch.record(self._install_one(query, events, batch))
        return batch

    def remove(self, queries: Iterable[str]) -> BatchResult:
        batch = BatchResult(operation="remove")
        events = OperationEvents(self.notifier, "remove")
        for query in queries:
            try:
                entry = self._resolve_installed(query)
                skill = self.lifecycle.remove(entry, events)
            except SkillKeeperError as exc:
                batch.record(_failure_outcome(query, exc))
                continue
            batch.record(ItemOutcome(name=skill.name, message=f"removed {skill.path}", status="removed"))
        return batch

    def update(self) -> BatchResult:
        return asyncio.run(self.updater.update_all())

    def install_defaults(self) -> BatchResult:
        """Install missing default skills, then update everything.

        ``BatchResult.installed`` lists the defaults that were newly installed.
        """
        batch = BatchResult(operation="default")
        events = OperationEvents(self.notifier, "install")
        for query in self.config.skills.defaults:
            outcome = self._install_one(query, events, batch)
            if outcome.code == ExitCode.ALREADY_INSTALLED:
                outcome = ItemOutcome(name=outcome.name, message="already installed", status="present")
            batch.record(outcome)
        log.info(
            "Default skills processed",
            requested=len(self.config.skills.defaults),
            installed=[entry.name for entry in batch.installed],
        )
        batch.extend(self.update())
        return batch

    def list_skills(self) -> list[SkillListing]:
        catalog = self.cache.fetch()
        local = self.lifecycle.installed_skills()
        installed_names = {skill.name.lower() for skill in local}
        listings: list[SkillListing] = []
        known: set[str] = set()
        for entry in catalog:
            local_name = self.lifecycle.skill_for(entry).name.lower()
            known.add(local_name)
            listings.append(SkillListing(entry.name, entry.url, local_name in installed_names))
        for skill in local:
            if skill.name.lower() in known:
                continue
            listings.append(SkillListing(skill.name, skill.remote_url() or "", True, in_catalog=False))
        return listings

    def search(self, query: str, limit: int = 0) -> list[CatalogEntry]:
        return search_skills(query, self.cache.fetch(), limit=limit)

    def info(self, query: str) -> SkillInfo:
        entry = self.resolve(query)
        readme_url, readme = fetch_readme(
            entry,
            branch=self.config.skills.mainline,
            timeout_seconds=self.config.skills.fetch_timeout,
        )
        installed = self.lifecycle.skill_for(entry).installed
        return SkillInfo(entry=entry, installed=installed, readme_url=readme_url, readme=readme)

    def _install_one(self, query: str, events: OperationEvents, batch: BatchResult) -> ItemOutcome:
        try:
            entry = self.resolve(query)
            skill = self.lifecycle.install(entry, events)
        except SkillKeeperError as exc:
            return _failure_outcome(query, exc)
        batch.installed.append(entry)
        return ItemOutcome(name=skill.name, message=f"installed to {skill.path}", status="installed")

    def _resolve_installed(self, query: str) -> CatalogEntry:
        """Resolve against the catalog plus local checkouts missing from it."""
        if git.is_repo_url(query):
            return entry_from_url(query)
        local = self.lifecycle.installed_skills()
        needle = query.strip().lower()
        for skill in local:
            if skill.name.lower() == needle:
                return _local_entry(skill)
        catalog = self.cache.fetch()
        known = {self.lifecycle.skill_for(entry).name.lower() for entry in catalog}
        merged = catalog + [_local_entry(skill) for skill in local if skill.name.lower() not in known]
        return resolve_skill(query, merged)


def _local_entry(skill: LocalSkill) -> CatalogEntry:
    return CatalogEntry(name=skill.name, path=skill.name, url="")


def _failure_outcome(query: str, exc: SkillKeeperError) -> ItemOutcome:
    if isinstance(exc, AmbiguousMatchError):
        return ItemOutcome(
            name=query,
            code=exc.code,
            message=str(exc),
            status="ambiguous",
            candidates=list(exc.candidates),
        )
    name = getattr(exc, "skill_name", "") or query
    status = "skipped" if exc.code in BENIGN_CODES else "failed"
    return ItemOutcome(name=name, code=exc.code, message=str(exc), status=status)
