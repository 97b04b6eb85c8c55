"""Validation routines for sections, references and unresolved markers."""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, List, Sequence, Tuple

from .citations import MARKER_PATTERN, parse_marker_keys
from .figures import find_tokens
from .models import FigureItem, FigureKind, Reference, ValidationIssue
from .protection import compute_signature
from .reference_store import ReferenceCollection

# Citations expected per 150 words.
DENSITY_TARGETS = {"normal": 0.7, "dense": 1.2, "extra": 1.8, "extreme": 2.4}
SHORT_SECTION_WORDS = 120

_SENTENCE_END = re.compile(r"[.!?](?:\s|$)")
_FIGURE_OR_TABLE = re.compile(r"\{(?:fig|tab):|\b(?:Figure|Table)\s+\d", re.IGNORECASE)


@dataclass
class SectionStats:
    words: int
    sentences: int
    citations: int
    expected_citations: int
    warnings: List[ValidationIssue] = field(default_factory=list)


def compute_section_stats(text: str, section_name: str = "", density: str = "normal") -> SectionStats:
    body = text or ""
    words = len(body.split())
    sentences = len(_SENTENCE_END.findall(body))
    citations = compute_signature(body).citations
    target = DENSITY_TARGETS.get(density, DENSITY_TARGETS["normal"])
    expected = max(1, round((words / 150) * target))

    warnings: List[ValidationIssue] = []

    def warn(code: str, message: str) -> None:
        warnings.append(ValidationIssue(code=code, message=message, context=section_name or None))

    if words < SHORT_SECTION_WORDS:
        warn("section-short", f"This section is quite short (<{SHORT_SECTION_WORDS} words).")
    if citations < expected:
        warn(
            "citation-density-low",
            f"Citation density is low for \"{density}\": {citations}/{expected} (approx.).",
        )
    name = section_name.lower()
    if "results" in name and not _FIGURE_OR_TABLE.search(body):
        warn("results-without-figure", "Results often benefit from at least one figure or table reference.")
    if "introduction" in name and citations < 2:
        warn("introduction-few-citations", "Introductions typically cite at least two foundational works.")
    return SectionStats(words, sentences, citations, expected, warnings)


def validate_reference_completeness(reference: Reference) -> List[ValidationIssue]:
    context = reference.key or reference.title or None
    checks = [
        ("missing-authors", "Reference entry missing authors", bool(reference.authors)),
        ("missing-title", "Reference entry missing title", bool(reference.title)),
        ("missing-year", "Reference entry missing year", bool(reference.year)),
        ("missing-locator", "Reference entry missing DOI or URL", bool(reference.doi or reference.url)),
        (
            "missing-journal",
            "Journal article missing journal or venue",
            reference.entry_type != "article-journal" or bool(reference.container_title),
        ),
    ]
    return [
        ValidationIssue(code=code, message=message, context=context)
        for code, message, present in checks
        if not present
    ]


def validate_collection(collection: ReferenceCollection) -> List[ValidationIssue]:
    issues: List[ValidationIssue] = []
    for reference in collection:
        issues.extend(validate_reference_completeness(reference))
    return issues


def validate_unresolved_markers(text: str, collection: ReferenceCollection) -> List[ValidationIssue]:
    """Flag marker keys that no reference carries; they render as nothing."""
    issues: List[ValidationIssue] = []
    reported = set()
    for match in MARKER_PATTERN.finditer(text or ""):
        for key in parse_marker_keys(match.group(1)):
            if key in collection or key in reported:
                continue
            reported.add(key)
            issues.append(
                ValidationIssue(
                    code="unknown-citation-key",
                    message=f"Citation key '{key}' does not match any reference",
                    context=match.group(0),
                )
            )
    return issues


def validate_unresolved_tokens(
    text: str,
    figures: Sequence[FigureItem] = (),
    tables: Sequence[FigureItem] = (),
) -> List[ValidationIssue]:
    known = {
        FigureKind.FIGURE: {item.id.lower() for item in figures},
        FigureKind.TABLE: {item.id.lower() for item in tables},
    }
    issues: List[ValidationIssue] = []
    reported = set()
    for kind, item_id in find_tokens(text):
        if item_id in known[kind] or (kind, item_id) in reported:
            continue
        reported.add((kind, item_id))
        issues.append(
            ValidationIssue(
                code=f"unknown-{kind.value}",
                message=f"No {kind.value} with id '{item_id}' in the library",
                context=item_id,
                severity="error",
            )
        )
    return issues


def validate_broken_citation_markers(text: str) -> List[ValidationIssue]:
    issues: List[ValidationIssue] = []
    opened = len(re.findall(r"\{\{\s*cite\s*:", text or "", re.IGNORECASE))
    complete = len(MARKER_PATTERN.findall(text or ""))
    if opened != complete:
        issues.append(
            ValidationIssue(
                code="broken-citation-marker",
                message="Citation marker is malformed or not closed",
                context="{{cite:...}}",
                severity="error",
            )
        )
    return issues


def validate_sections(
    sections: Iterable[Tuple[str, str]],
    collection: ReferenceCollection,
    figures: Sequence[FigureItem] = (),
    tables: Sequence[FigureItem] = (),
) -> List[ValidationIssue]:
    """Run marker and token checks over ``(name, raw_text)`` pairs."""
    issues: List[ValidationIssue] = []
    for name, text in sections:
        for issue in (
            validate_broken_citation_markers(text)
            + validate_unresolved_markers(text, collection)
            + validate_unresolved_tokens(text, figures, tables)
        ):
            issue.context = f"{name}: {issue.context}" if issue.context else name
            issues.append(issue)
    return issues


__all__ = [
    "SectionStats",
    "compute_section_stats",
    "validate_broken_citation_markers",
    "validate_collection",
    "validate_reference_completeness",
    "validate_sections",
    "validate_unresolved_markers",
    "validate_unresolved_tokens",
]
