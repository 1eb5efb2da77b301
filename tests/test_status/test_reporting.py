import json

import httpx
from structlog.testing import capture_logs

from skillkeeper.config import Config
from skillkeeper.status import (
    BatchResult,
    CompositeNotifier,
    ExitCode,
    ItemOutcome,
    LogNotifier,
    OperationEvents,
    WebhookNotifier,
    build_notifier,
)


class RecordingNotifier:
    def __init__(self):
        self.events: list[tuple[str, dict]] = []

    def emit(self, event: str, **data) -> None:
        self.events.append((event, data))


def test_exit_code_values_are_stable():
    assert int(ExitCode.SUCCESS) == 0
    assert int(ExitCode.UPDATE_SKIPPED) == 1
    assert int(ExitCode.SKILL_NOT_FOUND) == 4
    assert int(ExitCode.AMBIGUOUS_MATCH) == 5
    assert int(ExitCode.CATALOG_EMPTY) == 14
    assert int(ExitCode.CATALOG_UNAVAILABLE) == 15
    assert len({int(code) for code in ExitCode}) == len(ExitCode)


def test_batch_exit_code_is_the_most_severe_outcome():
    batch = BatchResult(operation="install")
    assert batch.exit_code == ExitCode.SUCCESS

    batch.record(ItemOutcome(name="weather-skill", status="installed"))
    batch.record(ItemOutcome(name="alarm", code=ExitCode.ALREADY_INSTALLED, status="skipped"))
    batch.record(ItemOutcome(name="timer", code=ExitCode.CLONE_FAILED, status="failed"))
    batch.record(ItemOutcome(name="news", code=ExitCode.UPDATE_SKIPPED, status="skipped"))

    assert batch.exit_code == ExitCode.CLONE_FAILED
    assert batch.counts()[ExitCode.SUCCESS] == 1
    assert [outcome.name for outcome in batch.by_status("skipped")] == ["alarm", "news"]
    assert batch.outcomes[1].benign
    assert not batch.outcomes[2].benign


def test_batch_extend_keeps_installed_entries():
    first = BatchResult(operation="default")
    first.record(ItemOutcome(name="a"))
    second = BatchResult(operation="update")
    second.record(ItemOutcome(name="b", code=ExitCode.UPDATE_FAILED, status="failed"))

    first.extend(second)

    assert [outcome.name for outcome in first.outcomes] == ["a", "b"]
    assert first.exit_code == ExitCode.UPDATE_FAILED


def test_operation_events_emit_started_at_most_once():
    notifier = RecordingNotifier()
    events = OperationEvents(notifier, "install")

    assert not events.has_started
    events.started(skill="a")
    events.started(skill="b")
    events.failed(ExitCode.CLONE_FAILED, skill="b")
    events.completed(total=2)

    assert events.has_started
    assert notifier.events == [
        ("install.started", {"skill": "a"}),
        ("install.failed", {"code": 9, "skill": "b"}),
        ("install.completed", {"total": 2}),
    ]


def test_separate_operations_have_independent_latches():
    notifier = RecordingNotifier()

    OperationEvents(notifier, "install").started()
    OperationEvents(notifier, "install").started()

    assert [name for name, _ in notifier.events] == ["install.started", "install.started"]


def test_webhook_notifier_posts_json_payload():
    requests: list[httpx.Request] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(204)

    notifier = WebhookNotifier("https://bus.example.com/events", transport=httpx.MockTransport(_handler))
    notifier.emit("update.completed", updated=2, skills=["a", "b"])

    assert len(requests) == 1
    assert requests[0].method == "POST"
    assert json.loads(requests[0].content) == {
        "type": "update.completed",
        "data": {"updated": 2, "skills": ["a", "b"]},
    }


def test_webhook_failure_is_not_fatal():
    def _handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("bus offline", request=request)

    notifier = WebhookNotifier("https://bus.example.com/events", transport=httpx.MockTransport(_handler))

    notifier.emit("install.started", skill="weather-skill")


def test_build_notifier_adds_webhook_only_when_configured():
    cfg = Config()
    assert isinstance(build_notifier(cfg), LogNotifier)

    cfg.notifications.webhook_url = "https://bus.example.com/events"
    notifier = build_notifier(cfg)

    assert isinstance(notifier, CompositeNotifier)
    assert isinstance(notifier.notifiers[-1], WebhookNotifier)


def test_log_notifier_logs_event_name_under_its_own_key():
    with capture_logs() as logs:
        LogNotifier().emit("install.started", skill="weather-skill")

    assert logs == [
        {
            "event": "lifecycle event",
            "lifecycle_event": "install.started",
            "skill": "weather-skill",
            "logger": "skillkeeper.status",
            "log_level": "info",
        }
    ]


def test_failed_webhook_delivery_is_logged_as_warning():
    def _handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503)

    notifier = CompositeNotifier(
        LogNotifier(),
        WebhookNotifier("https://bus.example.com/events", transport=httpx.MockTransport(_handler)),
    )

    with capture_logs() as logs:
        notifier.emit("update.completed", updated=1)

    warnings = [entry for entry in logs if entry["log_level"] == "warning"]
    assert len(warnings) == 1
    assert warnings[0]["lifecycle_event"] == "update.completed"
