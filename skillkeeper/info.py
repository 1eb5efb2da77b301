"""README lookup for the info command."""

from __future__ import annotations

from urllib.parse import urlparse

import httpx

from skillkeeper.exceptions import ReadmeUnavailableError
from skillkeeper.logging import get_logger
from skillkeeper.manifest import CatalogEntry

log = get_logger(__name__)

README_VARIANTS = (
    "README.md",
    "README.MD",
    "readme.md",
    "Readme.md",
    "README.rst",
    "README",
)


def _split_owner_repo(url: str) -> tuple[str, str, str] | None:
    raw = str(url or "").strip().rstrip("/")
    if raw.lower().startswith("git@") and ":" in raw:
        host = raw[4:].split(":", 1)[0].lower()
        path = raw.split(":", 1)[1]
    else:
        parsed = urlparse(raw)
        if parsed.scheme not in {"http", "https"}:
            return None
        host = parsed.netloc.lower()
        path = parsed.path
    parts = [part for part in path.split("/") if part]
    if len(parts) < 2:
        return None
    repo = parts[1][:-4] if parts[1].endswith(".git") else parts[1]
    return host, parts[0], repo


def readme_base_url(entry: CatalogEntry, branch: str = "master") -> str:
    """Raw-content base url for files in the skill repository."""
    split = _split_owner_repo(entry.url)
    if split is None:
        raise ReadmeUnavailableError(entry.name, entry.url)
    host, owner, repo = split
    if host in {"github.com", "www.github.com"}:
        return f"https://raw.githubusercontent.com/{owner}/{repo}/{branch}"
    return f"https://{host}/{owner}/{repo}/raw/{branch}"


def fetch_readme(
    entry: CatalogEntry,
    branch: str = "master",
    timeout_seconds: int = 20,
    transport: httpx.BaseTransport | None = None,
) -> tuple[str, str]:
    """Return ``(url, text)`` for the first README variant that responds."""
    base_url = readme_base_url(entry, branch)
    headers = {"User-Agent": "skillkeeper/0.1.0 (Skill Info)"}
    with httpx.Client(
        timeout=max(1, int(timeout_seconds)),
        follow_redirects=True,
        headers=headers,
        transport=transport,
    ) as client:
        for variant in README_VARIANTS:
            url = f"{base_url}/{variant}"
            try:
                response = client.get(url)
                response.raise_for_status()
            except httpx.HTTPError as exc:
                log.debug("README candidate unavailable", url=url, error=str(exc))
                continue
            return url, response.text
    raise ReadmeUnavailableError(entry.name, base_url)
