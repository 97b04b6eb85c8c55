"""Resolution of inline citation markers into style-formatted citations."""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional

from .models import Reference
from .normalization import normalize_key
from .reference_store import ReferenceCollection
from .styles import StyleFamily, style_family

MARKER_PATTERN = re.compile(r"\{\{cite:([^}]+)\}\}", re.IGNORECASE)

RANGE_DASH = "–"


@dataclass
class CitationResult:
    """Resolved text plus the keys its markers actually cited."""

    text: str
    used_keys: List[str] = field(default_factory=list)


def parse_marker_keys(raw: str) -> List[str]:
    """Split the key list of one marker, deduplicating within the marker."""
    keys: List[str] = []
    for part in raw.split(","):
        key = normalize_key(part)
        if key and key not in keys:
            keys.append(key)
    return keys


def is_marker_safe(key: str) -> bool:
    """True when ``key`` survives a round trip through a ``{{cite:...}}`` marker."""
    return bool(key) and "}" not in key and parse_marker_keys(key) == [key]


def iter_marker_keys(text: str) -> Iterable[str]:
    """Yield marker keys left to right, as written."""
    for match in MARKER_PATTERN.finditer(text or ""):
        yield from parse_marker_keys(match.group(1))


def build_numbering_map(
    texts: Iterable[str], collection: Optional[ReferenceCollection] = None
) -> Dict[str, int]:
    """Number keys by first appearance across section texts, starting at 1.

    With a collection, keys it does not hold are skipped so the numbers stay
    contiguous.
    """
    numbering: Dict[str, int] = {}
    for text in texts:
        for key in iter_marker_keys(text):
            if key in numbering:
                continue
            if collection is not None and key not in collection:
                continue
            numbering[key] = len(numbering) + 1
    return numbering


def compress_ranges(numbers: Iterable[int]) -> str:
    """Render numbers as comma-separated groups with consecutive runs dashed."""
    ordered = sorted(set(numbers))
    groups: List[str] = []
    start: Optional[int] = None
    prev: Optional[int] = None
    for number in ordered:
        if start is None:
            start = prev = number
        elif number == prev + 1:
            prev = number
        else:
            groups.append(_range_label(start, prev))
            start = prev = number
    if start is not None:
        groups.append(_range_label(start, prev))
    return ", ".join(groups)


def _range_label(start: int, end: int) -> str:
    return str(start) if start == end else f"{start}{RANGE_DASH}{end}"


def author_date_label(reference: Reference) -> str:
    family = reference.first_author_family or "Anonymous"
    year = reference.year or "n.d."
    if len(reference.authors) > 1:
        return f"{family} et al., {year}"
    return f"{family}, {year}"


class CitationResolver:
    """Turns `{{cite:...}}` markers into in-text citations for one collection."""

    def __init__(self, collection: ReferenceCollection):
        self.collection = collection

    def resolve(
        self,
        text: str,
        style_id: str,
        numbering: Optional[Mapping[str, int]] = None,
    ) -> CitationResult:
        used: List[str] = []

        def replace_marker(match: re.Match) -> str:
            keys = [key for key in parse_marker_keys(match.group(1)) if key in self.collection]
            for key in keys:
                if key not in used:
                    used.append(key)
            return self.format_in_text(keys, style_id, numbering)

        resolved = MARKER_PATTERN.sub(replace_marker, text or "")
        return CitationResult(text=resolved, used_keys=used)

    def format_in_text(
        self,
        keys: List[str],
        style_id: str,
        numbering: Optional[Mapping[str, int]] = None,
    ) -> str:
        if not keys:
            return ""
        family = style_family(style_id)
        if family is StyleFamily.AUTHOR_DATE:
            return self._format_author_date(keys)
        return self._format_numeric(keys, numbering)

    def _format_numeric(self, keys: List[str], numbering: Optional[Mapping[str, int]]) -> str:
        numbers: List[int] = []
        for key in keys:
            number = numbering.get(key) if numbering is not None else self.collection.position(key)
            if number is not None:
                numbers.append(number)
        if not numbers:
            return ""
        return f"[{compress_ranges(numbers)}]"

    def _format_author_date(self, keys: List[str]) -> str:
        labels = []
        for key in keys:
            reference = self.collection.resolve(key)
            if reference is not None:
                labels.append(author_date_label(reference))
        if not labels:
            return ""
        return f"({'; '.join(labels)})"


__all__ = [
    "MARKER_PATTERN",
    "CitationResolver",
    "CitationResult",
    "author_date_label",
    "build_numbering_map",
    "compress_ranges",
    "is_marker_safe",
    "iter_marker_keys",
    "parse_marker_keys",
]
