"""Exit code taxonomy, outcome aggregation, and lifecycle notifications."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from enum import IntEnum
from typing import TYPE_CHECKING, Any, Protocol

import httpx

from skillkeeper.logging import get_logger

if TYPE_CHECKING:
    from skillkeeper.config import Config
    from skillkeeper.manifest import CatalogEntry

log = get_logger(__name__)


class ExitCode(IntEnum):
    """Stable process exit codes. The integer value is also the severity."""

    SUCCESS = 0
    UPDATE_SKIPPED = 1
    ALREADY_INSTALLED = 2
    NOT_INSTALLED = 3
    SKILL_NOT_FOUND = 4
    AMBIGUOUS_MATCH = 5
    INVALID_SOURCE = 6
    README_UNAVAILABLE = 7
    UPDATE_FAILED = 8
    CLONE_FAILED = 9
    NATIVE_SETUP_FAILED = 10
    DEPENDENCY_INSTALL_FAILED = 11
    REMOVE_FAILED = 12
    PERMISSION_FAILED = 13
    CATALOG_EMPTY = 14
    CATALOG_UNAVAILABLE = 15


BENIGN_CODES = frozenset(
    {
        ExitCode.UPDATE_SKIPPED,
        ExitCode.ALREADY_INSTALLED,
        ExitCode.NOT_INSTALLED,
    }
)


@dataclass
class ItemOutcome:
    name: str
    code: ExitCode = ExitCode.SUCCESS
    message: str = ""
    status: str = ""
    candidates: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.code == ExitCode.SUCCESS

    @property
    def benign(self) -> bool:
        return self.code in BENIGN_CODES


@dataclass
class BatchResult:
    """Append-only record of per-item outcomes for one bulk operation."""

    operation: str
    outcomes: list[ItemOutcome] = field(default_factory=list)
    installed: list[CatalogEntry] = field(default_factory=list)

    def record(self, outcome: ItemOutcome) -> ItemOutcome:
        self.outcomes.append(outcome)
        return outcome

    def extend(self, other: BatchResult) -> None:
        self.outcomes.extend(other.outcomes)
        self.installed.extend(other.installed)

    @property
    def exit_code(self) -> ExitCode:
        if not self.outcomes:
            return ExitCode.SUCCESS
        return max(outcome.code for outcome in self.outcomes)

    def counts(self) -> Counter[ExitCode]:
        return Counter(outcome.code for outcome in self.outcomes)

    def by_status(self, status: str) -> list[ItemOutcome]:
        return [outcome for outcome in self.outcomes if outcome.status == status]


class Notifier(Protocol):
    def emit(self, event: str, **data: Any) -> None: ...


class LogNotifier:
    """Notifier that writes lifecycle events to the structured log."""

    def emit(self, event: str, **data: Any) -> None:
        log.info("lifecycle event", lifecycle_event=event, **data)


class WebhookNotifier:
    """Fire-and-forget JSON POST of lifecycle events to an external bus."""

    def __init__(self, url: str, timeout: int = 5, transport: httpx.BaseTransport | None = None):
        self.url = url
        self.timeout = max(1, int(timeout))
        self._transport = transport

    def emit(self, event: str, **data: Any) -> None:
        payload = {"type": event, "data": _jsonable(data)}
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(self.url, json=payload)
                response.raise_for_status()
        except httpx.HTTPError as exc:
            log.warning("Notification delivery failed", lifecycle_event=event, url=self.url, error=str(exc))


class CompositeNotifier:
    def __init__(self, *notifiers: Notifier):
        self.notifiers = list(notifiers)

    def emit(self, event: str, **data: Any) -> None:
        for notifier in self.notifiers:
            notifier.emit(event, **data)


def build_notifier(config: Config) -> Notifier:
    """Build the notifier chain described by configuration."""
    webhook_url = config.notifications.webhook_url.strip()
    if not webhook_url:
        return LogNotifier()
    return CompositeNotifier(
        LogNotifier(),
        WebhookNotifier(webhook_url, timeout=config.notifications.timeout),
    )


class OperationEvents:
    """Per-operation event emitter.

    The "started" event fires at most once for the lifetime of this object,
    so a bulk install of several skills announces a single start.
    """

    def __init__(self, notifier: Notifier, operation: str):
        self.notifier = notifier
        self.operation = operation
        self._started = False

    @property
    def has_started(self) -> bool:
        return self._started

    def started(self, **data: Any) -> None:
        if self._started:
            return
        self._started = True
        self.notifier.emit(f"{self.operation}.started", **data)

    def succeeded(self, **data: Any) -> None:
        self.notifier.emit(f"{self.operation}.succeeded", **data)

    def failed(self, code: ExitCode, **data: Any) -> None:
        self.notifier.emit(f"{self.operation}.failed", code=int(code), **data)

    def completed(self, **data: Any) -> None:
        self.notifier.emit(f"{self.operation}.completed", **data)


def _jsonable(data: dict[str, Any]) -> dict[str, Any]:
    cleaned: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, (str, int, float, bool)) or value is None:
            cleaned[key] = value
        elif isinstance(value, (list, tuple)):
            cleaned[key] = [str(item) for item in value]
        else:
            cleaned[key] = str(value)
    return cleaned
