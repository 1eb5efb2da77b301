"""Configuration management for skillkeeper."""

import sys
from pathlib import Path

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Paths
DEFAULT_CONFIG_PATH = Path("~/.skillkeeper/config.yaml").expanduser()
DEFAULT_SKILLS_DIR = "~/.skillkeeper/skills"
LOCAL_CONFIG_FILENAME = "skillkeeper.yaml"

DEFAULT_MANIFEST_URL = "https://raw.githubusercontent.com/MycroftAI/mycroft-skills/master/.gitmodules"


class SkillsConfig(BaseModel):
    """Skill catalog and checkout configuration."""

    directory: str = DEFAULT_SKILLS_DIR
    manifest_url: str = DEFAULT_MANIFEST_URL
    mainline: str = "master"
    defaults: list[str] = Field(default_factory=list)
    update_concurrency: int = 0
    git_timeout: int = 300
    fetch_timeout: int = 20
    exclude_patterns: list[str] = [
        "*.pyc",
        "__pycache__/",
        "settings.json",
    ]


class DependenciesConfig(BaseModel):
    """Dependency installation configuration."""

    python: str = ""
    pip_args: list[str] = []
    constraints: str = ""
    native_setup_shell: str = "bash"
    timeout: int = 600

    def resolved_python(self) -> str:
        """Interpreter used for pip installs, defaulting to the running one."""
        return self.python.strip() or sys.executable


class NotificationsConfig(BaseModel):
    """Lifecycle notification configuration."""

    webhook_url: str = ""
    timeout: int = 5


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "console"


class Config(BaseSettings):
    """Main configuration for skillkeeper."""

    skills: SkillsConfig = Field(default_factory=SkillsConfig)
    dependencies: DependenciesConfig = Field(default_factory=DependenciesConfig)
    notifications: NotificationsConfig = Field(default_factory=NotificationsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_prefix="SKILLKEEPER_",
        env_file=".env",
        env_nested_delimiter="__",
    )

    @classmethod
    def resolve_default_config_path(cls) -> Path:
        """Resolve default config path with local-first precedence."""
        local_path = Path.cwd() / LOCAL_CONFIG_FILENAME
        if local_path.exists():
            return local_path
        return DEFAULT_CONFIG_PATH

    @classmethod
    def from_yaml(cls, path: Path | str | None = None) -> "Config":
        """Load configuration from YAML file."""
        config_path = Path(path).expanduser() if path else cls.resolve_default_config_path()

        if not config_path.exists():
            return cls()

        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    @classmethod
    def load(cls) -> "Config":
        """Load configuration, preferring env vars over YAML."""
        # Pydantic-settings applies env overrides on construction
        return cls.from_yaml()

    def save(self, path: Path | str | None = None) -> None:
        """Save configuration to YAML file."""
        config_path = Path(path) if path else DEFAULT_CONFIG_PATH
        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = self.model_dump(exclude_none=True)

        with open(config_path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)

    def resolved_skills_dir(self, runtime_base: Path | str | None = None) -> Path:
        """Resolve the skills root, anchoring relative paths to runtime base/cwd."""
        raw = Path(self.skills.directory).expanduser()
        if raw.is_absolute():
            return raw.resolve()
        anchor = Path(runtime_base).expanduser().resolve() if runtime_base is not None else Path.cwd().resolve()
        return (anchor / raw).resolve()


# Global config instance
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config.load()
    return _config


def set_config(config: Config) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
