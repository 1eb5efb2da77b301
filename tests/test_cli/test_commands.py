from pathlib import Path

import pytest
from typer.testing import CliRunner

import skillkeeper.config as config_module
import skillkeeper.git as git_module
import skillkeeper.main as main_module
from skillkeeper.exceptions import CatalogUnavailableError
from skillkeeper.main import app
from skillkeeper.manager import SkillManager
from skillkeeper.manifest import CatalogEntry, ManifestCache
from skillkeeper.status import BatchResult, ExitCode, ItemOutcome

runner = CliRunner()

CATALOG = [
    CatalogEntry("weather-skill", "weather-skill", "https://github.com/example/weather-skill.git"),
    CatalogEntry("weather-alert", "weather-alert", "https://github.com/example/weather-alert.git"),
    CatalogEntry("alarm", "alarm", "https://github.com/example/alarm.git"),
]


@pytest.fixture(autouse=True)
def isolated_cli(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(config_module, "DEFAULT_CONFIG_PATH", tmp_path / "missing.yaml")
    monkeypatch.setattr(config_module, "_config", None)
    monkeypatch.setattr(main_module, "configure_logging", lambda *args, **kwargs: None)
    return tmp_path


def _catalog(monkeypatch: pytest.MonkeyPatch, entries=None, error: Exception | None = None):
    def _fetch(self):
        if error is not None:
            raise error
        return list(CATALOG if entries is None else entries)

    monkeypatch.setattr(ManifestCache, "fetch", _fetch)


def test_install_ambiguous_query_lists_candidates(monkeypatch: pytest.MonkeyPatch):
    _catalog(monkeypatch)

    result = runner.invoke(app, ["-d", "skills", "install", "weather"])

    assert result.exit_code == int(ExitCode.AMBIGUOUS_MATCH)
    assert "weather-alert" in result.output
    assert "weather-skill" in result.output
    assert not Path("skills").exists()


def test_install_unknown_query_exits_not_found(monkeypatch: pytest.MonkeyPatch):
    _catalog(monkeypatch)

    result = runner.invoke(app, ["-d", "skills", "install", "podcast"])

    assert result.exit_code == int(ExitCode.SKILL_NOT_FOUND)


def test_install_reports_each_item_and_max_exit_code(monkeypatch: pytest.MonkeyPatch):
    seen: list[list[str]] = []

    def _install(self, queries):
        seen.append(list(queries))
        batch = BatchResult(operation="install")
        batch.record(ItemOutcome(name="alarm", message="installed", status="installed"))
        batch.record(
            ItemOutcome(name="weather-skill", code=ExitCode.ALREADY_INSTALLED, status="skipped")
        )
        return batch

    monkeypatch.setattr(SkillManager, "install", _install)

    result = runner.invoke(app, ["install", "alarm", "weather-skill"])

    assert seen == [["alarm", "weather-skill"]]
    assert result.exit_code == int(ExitCode.ALREADY_INSTALLED)
    assert "installed" in result.output
    assert "skipped" in result.output


def test_remove_uninstalled_skill_exits_not_installed(monkeypatch: pytest.MonkeyPatch):
    _catalog(monkeypatch)

    result = runner.invoke(app, ["-d", "skills", "remove", "alarm"])

    assert result.exit_code == int(ExitCode.NOT_INSTALLED)


def test_list_marks_installed_skills(monkeypatch: pytest.MonkeyPatch, isolated_cli: Path):
    _catalog(monkeypatch)
    (isolated_cli / "skills" / "alarm").mkdir(parents=True)
    (isolated_cli / "skills" / "my-own").mkdir(parents=True)

    result = runner.invoke(app, ["-d", "skills", "list"])

    assert result.exit_code == 0
    assert "alarm" in result.output
    assert "yes" in result.output
    assert "my-own" in result.output


def test_list_with_unreachable_catalog_exits_with_catalog_code(monkeypatch: pytest.MonkeyPatch):
    _catalog(monkeypatch, error=CatalogUnavailableError("https://example.com/.gitmodules", "HTTP 500"))

    result = runner.invoke(app, ["list"])

    assert result.exit_code == int(ExitCode.CATALOG_UNAVAILABLE)


def test_search_joins_terms_and_exits_not_found_when_empty(monkeypatch: pytest.MonkeyPatch):
    _catalog(monkeypatch)

    found = runner.invoke(app, ["search", "weather", "alert"])
    missing = runner.invoke(app, ["search", "podcast"])

    assert found.exit_code == 0
    assert "weather-alert" in found.output
    assert missing.exit_code == int(ExitCode.SKILL_NOT_FOUND)


def test_update_and_default_use_batch_exit_code(monkeypatch: pytest.MonkeyPatch):
    def _update(self):
        batch = BatchResult(operation="update")
        batch.record(ItemOutcome(name="alarm", code=ExitCode.UPDATE_SKIPPED, status="skipped"))
        return batch

    def _defaults(self):
        batch = BatchResult(operation="default")
        batch.record(ItemOutcome(name="alarm", message="already installed", status="present"))
        return batch

    monkeypatch.setattr(SkillManager, "update", _update)
    monkeypatch.setattr(SkillManager, "install_defaults", _defaults)

    assert runner.invoke(app, ["update"]).exit_code == int(ExitCode.UPDATE_SKIPPED)
    assert runner.invoke(app, ["default"]).exit_code == 0


def test_info_ambiguous_query_prints_candidates(monkeypatch: pytest.MonkeyPatch):
    _catalog(monkeypatch)

    result = runner.invoke(app, ["info", "weather"])

    assert result.exit_code == int(ExitCode.AMBIGUOUS_MATCH)
    assert "weather-alert" in result.output


def test_version_command():
    from skillkeeper import __version__

    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_install_url_with_default_notifier(monkeypatch: pytest.MonkeyPatch, isolated_cli: Path):
    cloned: list[str] = []

    def _clone(url: str, destination: Path, timeout_seconds: int = 300) -> None:
        cloned.append(url)
        (destination / ".git").mkdir(parents=True)

    monkeypatch.setattr(git_module, "clone", _clone)

    result = runner.invoke(app, ["-d", "skills", "install", "https://github.com/example/a-skill.git"])

    assert result.exit_code == 0, result.output
    assert cloned == ["https://github.com/example/a-skill.git"]
    assert (isolated_cli / "skills" / "a-skill").is_dir()
    assert "installed" in result.output
