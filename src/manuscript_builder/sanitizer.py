"""Best-effort conversion of loose "(Author, Year)" prose into citation markers.

Generated drafts sometimes cite as ``(Smith, 2020; Lee et al., 2019)`` instead
of using ``{{cite:...}}`` markers. Each parenthetical holding a four-digit year
is split on ``;`` and ``and``; every part contributes a key when its leading
capitalized family name and year match the first author and year of a known
reference (the earliest such in collection order). Matching is exact and
case-insensitive on the family name only. Parentheticals without any match are
left untouched, so unknown citations are never invented. Keys a marker cannot
carry (a comma or closing brace inside) count as no match.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Optional

from .citations import is_marker_safe
from .reference_store import ReferenceCollection

PAREN_GROUP_PATTERN = re.compile(r"\(([^()]*\d{4}[a-z]?[^()]*)\)")
PART_SPLIT_PATTERN = re.compile(r";|\band\b", re.IGNORECASE)
AUTHOR_YEAR_PATTERN = re.compile(r"([A-Z][A-Za-z\-']+)[^0-9]*(\d{4})")


@dataclass
class AuthorYearMatch:
    """One parenthetical that was rewritten into a marker."""

    original: str
    marker: str
    keys: List[str]
    start: int
    end: int


@dataclass
class SanitizeResult:
    text: str
    mapped_keys: List[str] = field(default_factory=list)
    matches: List[AuthorYearMatch] = field(default_factory=list)


def find_reference_key(collection: ReferenceCollection, family: str, year: str) -> Optional[str]:
    wanted = family.lower()
    for reference in collection:
        if reference.first_author_family.lower() == wanted and (reference.year or "") == year:
            return reference.key
    return None


def convert_author_year_to_markers(text: str, collection: ReferenceCollection) -> SanitizeResult:
    if not text or not len(collection):
        return SanitizeResult(text=text or "")

    mapped: List[str] = []
    matches: List[AuthorYearMatch] = []

    def replace_group(match: re.Match) -> str:
        keys: List[str] = []
        for part in PART_SPLIT_PATTERN.split(match.group(1)):
            found = AUTHOR_YEAR_PATTERN.search(part.strip())
            if not found:
                continue
            key = find_reference_key(collection, found.group(1), found.group(2))
            if key and is_marker_safe(key) and key not in keys:
                keys.append(key)
        if not keys:
            return match.group(0)
        marker = f"{{{{cite:{','.join(keys)}}}}}"
        for key in keys:
            if key not in mapped:
                mapped.append(key)
        matches.append(
            AuthorYearMatch(
                original=match.group(0),
                marker=marker,
                keys=keys,
                start=match.start(),
                end=match.end(),
            )
        )
        return marker

    converted = PAREN_GROUP_PATTERN.sub(replace_group, text)
    return SanitizeResult(text=converted, mapped_keys=mapped, matches=matches)


__all__ = ["AuthorYearMatch", "SanitizeResult", "convert_author_year_to_markers"]
