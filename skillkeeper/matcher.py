"""Resolve free-text queries against catalog entries."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Literal

from skillkeeper.exceptions import AmbiguousMatchError, SkillNotFoundError
from skillkeeper.manifest import CatalogEntry

MatchStatus = Literal["unique", "ambiguous", "not_found"]


@dataclass(frozen=True)
class MatchResult:
    status: MatchStatus
    entry: CatalogEntry | None = None
    candidates: tuple[CatalogEntry, ...] = field(default_factory=tuple)

    @classmethod
    def unique(cls, entry: CatalogEntry) -> MatchResult:
        return cls(status="unique", entry=entry, candidates=(entry,))

    @classmethod
    def ambiguous(cls, candidates: Iterable[CatalogEntry]) -> MatchResult:
        ordered = tuple(sorted(candidates, key=lambda item: item.name.lower()))
        return cls(status="ambiguous", candidates=ordered)

    @classmethod
    def not_found(cls) -> MatchResult:
        return cls(status="not_found")

    @property
    def candidate_names(self) -> list[str]:
        return [candidate.name for candidate in self.candidates]


def tokenize_query(query: str) -> list[str]:
    return [token.lower() for token in str(query or "").split() if token]


def narrow_candidates(tokens: Iterable[str], entries: Iterable[CatalogEntry]) -> list[CatalogEntry]:
    """Keep entries whose name contains every token, case-insensitively."""
    candidates = list(entries)
    for token in tokens:
        needle = token.lower()
        candidates = [entry for entry in candidates if needle in entry.name.lower()]
    return candidates


def match_skill(query: str, entries: Iterable[CatalogEntry]) -> MatchResult:
    """Exact name first, then all-token substring narrowing."""
    catalog = list(entries)
    needle = str(query or "").strip().lower()
    if not needle:
        return MatchResult.not_found()

    exact = [entry for entry in catalog if entry.name.lower() == needle]
    if len(exact) == 1:
        return MatchResult.unique(exact[0])

    candidates = narrow_candidates(tokenize_query(needle), catalog)
    if len(candidates) == 1:
        return MatchResult.unique(candidates[0])
    if candidates:
        return MatchResult.ambiguous(candidates)
    return MatchResult.not_found()


def resolve_skill(query: str, entries: Iterable[CatalogEntry]) -> CatalogEntry:
    result = match_skill(query, entries)
    if result.status == "unique" and result.entry is not None:
        return result.entry
    if result.status == "ambiguous":
        raise AmbiguousMatchError(query, result.candidate_names)
    raise SkillNotFoundError(query)


def search_skills(
    query: str,
    entries: Iterable[CatalogEntry],
    limit: int = 0,
) -> list[CatalogEntry]:
    """Entries relevant to a query, for display.

    Falls back to lexical scoring when no entry contains every token.
    """
    catalog = list(entries)
    tokens = tokenize_query(query)
    if not tokens:
        ranked = sorted(catalog, key=lambda item: item.name.lower())
        return ranked[:limit] if limit > 0 else ranked

    narrowed = sorted(narrow_candidates(tokens, catalog), key=lambda item: item.name.lower())
    if narrowed:
        return narrowed[:limit] if limit > 0 else narrowed

    words = [word for word in re.findall(r"[a-z0-9]+", " ".join(tokens)) if word]
    phrase = "-".join(words)
    scored: list[tuple[float, CatalogEntry]] = []
    for entry in catalog:
        haystack = entry.name.lower()
        score = 0.0
        for word in words:
            if word in haystack:
                score += 4.0
        if phrase and phrase in haystack:
            score += 8.0
        if score <= 0:
            continue
        scored.append((score, entry))
    scored.sort(key=lambda item: (-item[0], item[1].name.lower()))
    ranked = [entry for _, entry in scored]
    return ranked[:limit] if limit > 0 else ranked
