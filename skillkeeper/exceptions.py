"""Custom exceptions for skillkeeper."""

from skillkeeper.status import ExitCode


class SkillKeeperError(Exception):
    """Base exception for skillkeeper."""

    code: ExitCode = ExitCode.SUCCESS


class CatalogError(SkillKeeperError):
    """Catalog fetch errors."""

    code = ExitCode.CATALOG_UNAVAILABLE


class CatalogUnavailableError(CatalogError):
    """Catalog could not be fetched (network or HTTP failure)."""

    code = ExitCode.CATALOG_UNAVAILABLE

    def __init__(self, url: str, reason: str):
        super().__init__(f"Skill catalog unavailable at {url}: {reason}")
        self.url = url
        self.reason = reason


class CatalogEmptyError(CatalogError):
    """Catalog request succeeded but returned no content."""

    code = ExitCode.CATALOG_EMPTY

    def __init__(self, url: str):
        super().__init__(f"Skill catalog at {url} returned an empty response")
        self.url = url


class MatchError(SkillKeeperError):
    """Query resolution errors."""


class SkillNotFoundError(MatchError):
    """No catalog entry matched the query."""

    code = ExitCode.SKILL_NOT_FOUND

    def __init__(self, query: str):
        super().__init__(f"No skill matches '{query}'")
        self.query = query


class AmbiguousMatchError(MatchError):
    """Several catalog entries matched the query."""

    code = ExitCode.AMBIGUOUS_MATCH

    def __init__(self, query: str, candidates: list[str]):
        super().__init__(f"'{query}' matches {len(candidates)} skills: {', '.join(candidates)}")
        self.query = query
        self.candidates = candidates


class InvalidSourceError(SkillKeeperError):
    """Repository URL could not be turned into a skill."""

    code = ExitCode.INVALID_SOURCE


class LifecycleError(SkillKeeperError):
    """Install/remove errors for a single skill."""

    def __init__(self, skill_name: str, message: str):
        super().__init__(message)
        self.skill_name = skill_name


class AlreadyInstalledError(LifecycleError):
    """Skill directory already exists."""

    code = ExitCode.ALREADY_INSTALLED

    def __init__(self, skill_name: str):
        super().__init__(skill_name, f"Skill '{skill_name}' is already installed")


class NotInstalledError(LifecycleError):
    """Skill directory does not exist."""

    code = ExitCode.NOT_INSTALLED

    def __init__(self, skill_name: str):
        super().__init__(skill_name, f"Skill '{skill_name}' is not installed")


class CloneFailedError(LifecycleError):
    code = ExitCode.CLONE_FAILED


class NativeSetupFailedError(LifecycleError):
    code = ExitCode.NATIVE_SETUP_FAILED


class DependencyInstallFailedError(LifecycleError):
    code = ExitCode.DEPENDENCY_INSTALL_FAILED


class RemoveFailedError(LifecycleError):
    code = ExitCode.REMOVE_FAILED


class PermissionFailedError(LifecycleError):
    code = ExitCode.PERMISSION_FAILED


class UpdateFailedError(LifecycleError):
    code = ExitCode.UPDATE_FAILED


class ReadmeUnavailableError(SkillKeeperError):
    """No README variant could be fetched for a skill."""

    code = ExitCode.README_UNAVAILABLE

    def __init__(self, skill_name: str, base_url: str):
        super().__init__(f"No README found for '{skill_name}' under {base_url}")
        self.skill_name = skill_name
        self.base_url = base_url


class GitCommandError(SkillKeeperError):
    """A git subprocess exited non-zero or timed out."""

    code = ExitCode.UPDATE_FAILED

    def __init__(self, args: list[str], details: str):
        super().__init__(f"git {' '.join(args)} failed: {details}" if details else f"git {' '.join(args)} failed")
        self.git_args = args
        self.details = details
