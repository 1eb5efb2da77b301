"""Concurrent fast-forward updates of installed skill checkouts."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Literal

from skillkeeper import git
from skillkeeper.dependencies import dependency_hashes
from skillkeeper.exceptions import GitCommandError, SkillKeeperError
from skillkeeper.lifecycle import LocalSkill, SkillLifecycle
from skillkeeper.logging import get_logger
from skillkeeper.status import BatchResult, ExitCode, ItemOutcome, OperationEvents

log = get_logger(__name__)

DecisionStatus = Literal["eligible", "skipped", "failed"]
UpdateStatus = Literal["updated", "unchanged", "skipped", "failed"]


@dataclass(frozen=True)
class UpdateDecision:
    status: DecisionStatus
    reason: str = ""

    @classmethod
    def eligible(cls) -> UpdateDecision:
        return cls(status="eligible")

    @classmethod
    def skipped(cls, reason: str) -> UpdateDecision:
        return cls(status="skipped", reason=reason)

    @classmethod
    def failed(cls, reason: str) -> UpdateDecision:
        return cls(status="failed", reason=reason)


@dataclass
class UpdateOutcome:
    name: str
    status: UpdateStatus
    code: ExitCode = ExitCode.SUCCESS
    detail: str = ""
    old_revision: str | None = None
    new_revision: str | None = None
    dependencies_reinstalled: bool = False

    def to_item(self) -> ItemOutcome:
        return ItemOutcome(name=self.name, code=self.code, message=self.detail, status=self.status)


def should_update(skill: LocalSkill, mainline: str) -> UpdateDecision:
    """Fast-forward-only policy: anything that could lose local work is skipped."""
    if not skill.is_checkout:
        return UpdateDecision.skipped("not a git checkout")
    try:
        branch = git.current_branch(skill.path)
        if branch != mainline:
            return UpdateDecision.skipped(f"on branch '{branch}', not '{mainline}'")
        if git.has_tracked_changes(skill.path):
            return UpdateDecision.skipped("local modifications to tracked files")
        remote = git.remote_url(skill.path)
        if remote is None:
            return UpdateDecision.skipped("no origin remote configured")
        if git.is_interactive_remote(remote):
            return UpdateDecision.skipped(f"remote {remote} requires interactive authentication")
        upstream = git.upstream_ref(skill.path)
        if upstream is None:
            return UpdateDecision.skipped("no upstream tracking branch")
        ahead, _ = git.ahead_behind(skill.path, upstream)
        if ahead:
            return UpdateDecision.skipped(f"{ahead} local commit(s) not on {upstream}")
    except GitCommandError as exc:
        return UpdateDecision.failed(str(exc))
    return UpdateDecision.eligible()


class UpdateOrchestrator:
    """Updates every checkout under the lifecycle root, one task per checkout."""

    def __init__(
        self,
        lifecycle: SkillLifecycle,
        mainline: str = "master",
        concurrency: int = 0,
    ):
        self.lifecycle = lifecycle
        self.mainline = mainline
        self.concurrency = max(0, int(concurrency))

    def update_skill(self, skill: LocalSkill) -> UpdateOutcome:
        try:
            git.ensure_excluded(skill.path, self.lifecycle.exclude_patterns)
        except OSError as exc:
            log.debug("Could not update git exclude file", skill=skill.name, error=str(exc))

        decision = should_update(skill, self.mainline)
        if decision.status == "skipped":
            log.info("Skipping skill update", skill=skill.name, reason=decision.reason)
            return UpdateOutcome(skill.name, "skipped", ExitCode.UPDATE_SKIPPED, decision.reason)
        if decision.status == "failed":
            return UpdateOutcome(skill.name, "failed", ExitCode.UPDATE_FAILED, decision.reason)

        upstream = f"origin/{self.mainline}"
        timeout = self.lifecycle.git_timeout
        hashes_before = dependency_hashes(skill.path)
        old_revision: str | None = None
        try:
            old_revision = git.current_revision(skill.path)
            git.fetch(skill.path, timeout_seconds=timeout)
            ahead, _ = git.ahead_behind(skill.path, upstream)
            if ahead:
                reason = f"diverged from {upstream} after fetch"
                log.info("Skipping skill update", skill=skill.name, reason=reason)
                return UpdateOutcome(
                    skill.name, "skipped", ExitCode.UPDATE_SKIPPED, reason, old_revision, old_revision
                )
            git.reset_hard(skill.path, upstream, timeout_seconds=timeout)
            new_revision = git.current_revision(skill.path)
        except GitCommandError as exc:
            log.warning("Skill update failed", skill=skill.name, error=str(exc))
            return UpdateOutcome(skill.name, "failed", ExitCode.UPDATE_FAILED, str(exc), old_revision)

        status: UpdateStatus = "updated" if new_revision != old_revision else "unchanged"
        detail = "updated" if status == "updated" else "checked, no change"
        outcome = UpdateOutcome(skill.name, status, ExitCode.SUCCESS, detail, old_revision, new_revision)

        if dependency_hashes(skill.path) != hashes_before:
            log.info("Dependency files changed, reinstalling", skill=skill.name)
            try:
                result = self.lifecycle.installer.install(skill.path)
            except SkillKeeperError as exc:
                outcome.status = "failed"
                outcome.code = exc.code
                outcome.detail = str(exc)
                return outcome
            outcome.dependencies_reinstalled = result.native_setup_ran or result.requirements_installed

        log.info("Skill update checked", skill=skill.name, status=status, revision=new_revision)
        return outcome

    async def update_all(self) -> BatchResult:
        events = OperationEvents(self.lifecycle.notifier, "update")
        skills = [skill for skill in self.lifecycle.installed_skills() if skill.is_checkout]
        events.started(skills=len(skills))

        semaphore = asyncio.Semaphore(self.concurrency) if self.concurrency > 0 else None

        async def _run(skill: LocalSkill) -> UpdateOutcome:
            if semaphore is None:
                return await asyncio.to_thread(self.update_skill, skill)
            async with semaphore:
                return await asyncio.to_thread(self.update_skill, skill)

        results = await asyncio.gather(*(_run(skill) for skill in skills), return_exceptions=True)

        batch = BatchResult(operation="update")
        for skill, result in zip(skills, results):
            if isinstance(result, UpdateOutcome):
                batch.record(result.to_item())
                continue
            if not isinstance(result, Exception):
                raise result
            log.error("Skill update crashed", skill=skill.name, error=str(result))
            code = result.code if isinstance(result, SkillKeeperError) else ExitCode.UPDATE_FAILED
            batch.record(ItemOutcome(name=skill.name, code=code, message=str(result), status="failed"))

        events.completed(
            exit_code=int(batch.exit_code),
            updated=len(batch.by_status("updated")),
            unchanged=len(batch.by_status("unchanged")),
            skipped=len(batch.by_status("skipped")),
            failed=len(batch.by_status("failed")),
        )
        return batch
