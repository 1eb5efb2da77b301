"""Skill catalog parsing and the per-invocation catalog cache."""

from __future__ import annotations

import re
import threading
from dataclasses import dataclass

import httpx

from skillkeeper.exceptions import CatalogEmptyError, CatalogError, CatalogUnavailableError
from skillkeeper.logging import get_logger

log = get_logger(__name__)

_USER_AGENT = "skillkeeper/0.1.0 (Skill Catalog)"

_SECTION_RE = re.compile(r"^\[\s*(?P<kind>[A-Za-z][A-Za-z0-9.-]*)(?:\s+\"(?P<name>[^\"]*)\")?\s*\]$")
_KEY_RE = re.compile(r"^(?P<key>[A-Za-z][A-Za-z0-9-]*)\s*=\s*(?P<value>.*)$")


@dataclass(frozen=True)
class CatalogEntry:
    name: str
    path: str
    url: str


def _clean_value(raw: str) -> str:
    value = raw.strip()
    if len(value) >= 2 and value[0] == value[-1] == '"':
        value = value[1:-1]
    return value.strip()


def _finish_block(
    name: str | None,
    fields: dict[str, str],
    entries: list[CatalogEntry],
    seen: set[str],
) -> None:
    if name is None:
        return
    url = fields.get("url", "")
    if not url:
        log.debug("Skipping catalog block without url", name=name)
        return
    if name.lower() in seen:
        log.debug("Skipping duplicate catalog block", name=name)
        return
    seen.add(name.lower())
    path = fields.get("path") or name
    entries.append(CatalogEntry(name=name, path=path, url=url))


def parse_manifest(text: str) -> list[CatalogEntry]:
    """Parse a .gitmodules style catalog into entries, preserving block order.

    Each ``[submodule "<name>"]`` block becomes an entry once it declares a
    ``url``. Blocks without one are dropped; other sections are ignored.
    """
    entries: list[CatalogEntry] = []
    seen: set[str] = set()
    current_name: str | None = None
    fields: dict[str, str] = {}

    for raw_line in str(text or "").splitlines():
        line = raw_line.strip()
        if not line or line[0] in "#;":
            continue

        section = _SECTION_RE.match(line)
        if section:
            _finish_block(current_name, fields, entries, seen)
            fields = {}
            if section.group("kind").lower() == "submodule" and section.group("name"):
                current_name = section.group("name").strip() or None
            else:
                current_name = None
            continue

        if current_name is None:
            continue
        pair = _KEY_RE.match(line)
        if not pair:
            continue
        key = pair.group("key").lower()
        if key not in fields:
            fields[key] = _clean_value(pair.group("value"))

    _finish_block(current_name, fields, entries, seen)
    return entries


class ManifestCache:
    """Fetches the catalog once and serves the parsed entries afterwards.

    A failed fetch is remembered too: every later caller gets the same
    error, never an empty list, and the url is not requested again.
    """

    def __init__(
        self,
        url: str,
        timeout: int = 20,
        transport: httpx.BaseTransport | None = None,
    ):
        self.url = url
        self.timeout = max(1, int(timeout))
        self._transport = transport
        self._entries: tuple[CatalogEntry, ...] | None = None
        self._error: CatalogError | None = None
        self._lock = threading.Lock()

    @property
    def is_loaded(self) -> bool:
        return self._entries is not None

    @property
    def entries(self) -> list[CatalogEntry]:
        return self.fetch()

    def fetch(self) -> list[CatalogEntry]:
        with self._lock:
            if self._error is not None:
                raise self._error
            if self._entries is None:
                try:
                    body = self._download()
                except CatalogError as exc:
                    self._error = exc
                    raise
                self._entries = tuple(parse_manifest(body))
                log.info("Loaded skill catalog", url=self.url, entries=len(self._entries))
            return list(self._entries)

    def _download(self) -> str:
        headers = {"User-Agent": _USER_AGENT}
        try:
            with httpx.Client(
                timeout=self.timeout,
                follow_redirects=True,
                headers=headers,
                transport=self._transport,
            ) as client:
                response = client.get(self.url)
                response.raise_for_status()
        except httpx.HTTPError as exc:
            log.error("Skill catalog fetch failed", url=self.url, error=str(exc))
            raise CatalogUnavailableError(self.url, str(exc)) from exc

        body = str(response.text or "")
        if not body.strip():
            log.error("Skill catalog fetch returned empty body", url=self.url)
            raise CatalogEmptyError(self.url)
        return body
