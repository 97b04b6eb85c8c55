"""Masking of protected spans (citations, figure/table references) in prose.

Protected spans are swapped for positional placeholders such as
``<<CITE_000>>`` before text leaves the process, and swapped back afterwards.
Text that already looks like a placeholder is masked as well (``<<LIT_000>>``),
so restoring an untouched masked text always reproduces the input exactly.

The *signature* of a text is the number of figure references, table references
and citations it contains. A rewrite is only usable when the signature of the
restored output equals the signature of the input.
"""
from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List

CITE = "CITE"
FIG = "FIG"
TAB = "TAB"
LIT = "LIT"

PLACEHOLDER_PATTERN = re.compile(r"<<(?:CITE|FIG|TAB|LIT)_\d+>>")

# Alternatives are tried left to right at each position; group names map to kinds.
PROTECTED_PATTERN = re.compile(
    r"(?P<LIT><<(?:CITE|FIG|TAB|LIT)_\d+>>)"
    r"|(?P<MARKER>\{\{cite:[^}]+\}\})"
    r"|(?P<FIGTOKEN>\{fig:[a-z0-9\-_]+\})"
    r"|(?P<TABTOKEN>\{tab:[a-z0-9\-_]+\})"
    r"|(?P<NUMERIC>\[\d+(?:\s*[–-]\s*\d+)?(?:\s*,\s*\d+(?:\s*[–-]\s*\d+)?)*\])"
    r"|(?P<AUTHORDATE>\([^()]*?(?:\d{4}[a-z]?|n\.d\.)\))"
    r"|(?P<FIGREF>\bFigure\s+(?:\d+|\?))"
    r"|(?P<TABREF>\bTable\s+(?:\d+|\?))",
    re.IGNORECASE,
)

_GROUP_KINDS = {
    "LIT": LIT,
    "MARKER": CITE,
    "FIGTOKEN": FIG,
    "TABTOKEN": TAB,
    "NUMERIC": CITE,
    "AUTHORDATE": CITE,
    "FIGREF": FIG,
    "TABREF": TAB,
}


@dataclass(frozen=True)
class Signature:
    """Counts of protected content: the invariant a rewrite must keep."""

    figures: int = 0
    tables: int = 0
    citations: int = 0

    def diff(self, other: "Signature") -> List[str]:
        """Describe each diverging count as ``"name before→after"``."""
        changes = []
        for name in ("figures", "tables", "citations"):
            before, after = getattr(self, name), getattr(other, name)
            if before != after:
                changes.append(f"{name} {before}→{after}")
        return changes

    def as_tuple(self):
        return (self.figures, self.tables, self.citations)


@dataclass
class ProtectedSpan:
    text: str
    protected: bool
    kind: str = ""


@dataclass
class ProtectedText:
    """Masked text plus its restoration table (placeholder -> original)."""

    original: str
    masked: str
    table: Dict[str, str] = field(default_factory=dict)

    def restore(self, text: str) -> str:
        """Swap known placeholders back in one pass; unknown ones are left as-is."""
        return PLACEHOLDER_PATTERN.sub(
            lambda match: self.table.get(match.group(0), match.group(0)), text
        )

    def unknown_placeholders(self, text: str) -> List[str]:
        return [found for found in PLACEHOLDER_PATTERN.findall(text) if found not in self.table]

    def altered_placeholders(self, text: str) -> List[str]:
        """Known placeholders that do not appear exactly once in ``text``."""
        counts = Counter(PLACEHOLDER_PATTERN.findall(text))
        return [placeholder for placeholder in self.table if counts[placeholder] != 1]


def _kind(match: re.Match) -> str:
    return _GROUP_KINDS[match.lastgroup]


def protect(text: str) -> ProtectedText:
    """Replace every protected span with a numbered placeholder."""
    table: Dict[str, str] = {}
    counters: Counter = Counter()

    def replace(match: re.Match) -> str:
        kind = _kind(match)
        placeholder = f"<<{kind}_{counters[kind]:03d}>>"
        counters[kind] += 1
        table[placeholder] = match.group(0)
        return placeholder

    source = text or ""
    return ProtectedText(original=source, masked=PROTECTED_PATTERN.sub(replace, source), table=table)


def compute_signature(text: str) -> Signature:
    counts: Counter = Counter(_kind(match) for match in PROTECTED_PATTERN.finditer(text or ""))
    return Signature(figures=counts[FIG], tables=counts[TAB], citations=counts[CITE])


def split_protected_spans(text: str) -> List[ProtectedSpan]:
    """Split text into alternating unprotected and protected spans, in order."""
    spans: List[ProtectedSpan] = []
    cursor = 0
    for match in PROTECTED_PATTERN.finditer(text or ""):
        if match.start() > cursor:
            spans.append(ProtectedSpan(text[cursor:match.start()], protected=False))
        spans.append(ProtectedSpan(match.group(0), protected=True, kind=_kind(match)))
        cursor = match.end()
    if text and cursor < len(text):
        spans.append(ProtectedSpan(text[cursor:], protected=False))
    return spans


def has_placeholders(text: str) -> bool:
    return bool(PLACEHOLDER_PATTERN.search(text or ""))


__all__ = [
    "PLACEHOLDER_PATTERN",
    "PROTECTED_PATTERN",
    "ProtectedSpan",
    "ProtectedText",
    "Signature",
    "compute_signature",
    "has_placeholders",
    "protect",
    "split_protected_spans",
]
