import json

import pytest
import structlog

from skillkeeper.config import LoggingConfig
from skillkeeper.logging import bind_command, configure_logging, get_logger


@pytest.fixture(autouse=True)
def reset_structlog():
    yield
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()


def test_json_logs_go_to_stderr_with_command_and_logger(capsys: pytest.CaptureFixture[str]):
    configure_logging(LoggingConfig(level="INFO", format="json"))
    bind_command("install", skills_dir="/srv/skills")

    get_logger("skillkeeper.lifecycle").info("Skill installed", skill="weather-skill")

    captured = capsys.readouterr()
    assert captured.out == ""
    record = json.loads(captured.err.strip().splitlines()[-1])
    assert record["event"] == "Skill installed"
    assert record["skill"] == "weather-skill"
    assert record["logger"] == "skillkeeper.lifecycle"
    assert record["command"] == "install"
    assert record["skills_dir"] == "/srv/skills"
    assert record["level"] == "info"


def test_level_filter_drops_debug_lines(capsys: pytest.CaptureFixture[str]):
    configure_logging(LoggingConfig(level="warning", format="json"))

    logger = get_logger("skillkeeper.updates")
    logger.debug("Skipping skill update", skill="alarm")
    logger.warning("Skill update failed", skill="alarm")

    lines = [line for line in capsys.readouterr().err.splitlines() if line.strip()]
    assert len(lines) == 1
    assert json.loads(lines[0])["event"] == "Skill update failed"


def test_bind_command_replaces_previous_context(capsys: pytest.CaptureFixture[str]):
    configure_logging(LoggingConfig(format="json"))
    bind_command("install", extra="stale")
    bind_command(None)

    get_logger("skillkeeper.main").info("Configuration loaded")

    record = json.loads(capsys.readouterr().err.strip().splitlines()[-1])
    assert record["command"] == "-"
    assert "extra" not in record
