"""Reference list selection and rendering with engine fallback."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Sequence, Tuple

from .csl import StyleEngine
from .formatter import BibliographyFormatter
from .models import Reference
from .reference_store import ReferenceCollection
from .styles import StyleFamily, style_family

logger = logging.getLogger(__name__)

LabelledEntry = Tuple[Optional[int], Reference]


@dataclass
class BibliographyResult:
    lines: List[str] = field(default_factory=list)
    used_engine: bool = False
    fallback_reason: Optional[str] = None


class BibliographyBuilder:
    """Chooses the entries of a reference list and renders them.

    Numeric lists are ordered by label: the renumbering map when one is active,
    otherwise the position in the full collection (so cited-only lists keep the
    labels already printed in the text). Author-date lists follow first
    appearance among cited keys.
    """

    def __init__(
        self,
        collection: ReferenceCollection,
        formatter: Optional[BibliographyFormatter] = None,
        engine: Optional[StyleEngine] = None,
    ):
        self.collection = collection
        self.formatter = formatter or BibliographyFormatter()
        self.engine = engine

    def select(
        self,
        style_id: str,
        used_keys: Sequence[str],
        numbering: Optional[Mapping[str, int]] = None,
        cited_only: bool = True,
    ) -> List[LabelledEntry]:
        if style_family(style_id) is StyleFamily.AUTHOR_DATE:
            return [(None, entry) for entry in self._author_date_order(used_keys, cited_only)]
        if numbering:
            return self._numbered_by_map(numbering, cited_only)
        used = {key.lower() for key in used_keys}
        selected: List[LabelledEntry] = []
        for position, entry in enumerate(self.collection, start=1):
            if cited_only and entry.key not in used:
                continue
            selected.append((position, entry))
        return selected

    def build(
        self,
        style_id: str,
        used_keys: Sequence[str],
        numbering: Optional[Mapping[str, int]] = None,
        cited_only: bool = True,
        prefer_engine: bool = False,
    ) -> BibliographyResult:
        selected = self.select(style_id, used_keys, numbering, cited_only)
        if not selected:
            return BibliographyResult()

        reason = None
        if prefer_engine:
            if self.engine is None:
                reason = "no style engine configured"
            else:
                lines, reason = self._render_with_engine(style_id, selected)
                if lines is not None:
                    return BibliographyResult(lines=lines, used_engine=True)
            logger.warning("Falling back to built-in templates for %s: %s", style_id, reason)

        lines = [self.formatter.format(entry, style_id, label) for label, entry in selected]
        return BibliographyResult(lines=lines, fallback_reason=reason)

    def _render_with_engine(
        self, style_id: str, selected: List[LabelledEntry]
    ) -> Tuple[Optional[List[str]], Optional[str]]:
        labels = [label for label, _ in selected]
        # the engine numbers its input 1..n
        if style_family(style_id) is StyleFamily.NUMERIC and labels != list(range(1, len(labels) + 1)):
            return None, "engine labels would not match in-text numbers"
        try:
            lines = self.engine.render(style_id, [entry for _, entry in selected])
        except Exception as exc:
            return None, str(exc) or exc.__class__.__name__
        if len(lines) != len(selected):
            return None, f"engine returned {len(lines)} entries for {len(selected)} references"
        return lines, None

    def _author_date_order(self, used_keys: Sequence[str], cited_only: bool) -> List[Reference]:
        ordered: List[Reference] = []
        seen = set()
        for key in used_keys:
            entry = self.collection.resolve(key)
            if entry is not None and entry.key not in seen:
                seen.add(entry.key)
                ordered.append(entry)
        if not cited_only:
            ordered.extend(entry for entry in self.collection if entry.key not in seen)
        return ordered

    def _numbered_by_map(self, numbering: Mapping[str, int], cited_only: bool) -> List[LabelledEntry]:
        selected: List[LabelledEntry] = []
        for key, number in sorted(numbering.items(), key=lambda pair: pair[1]):
            entry = self.collection.resolve(key)
            if entry is not None:
                selected.append((number, entry))
        if not cited_only:
            next_label = max(numbering.values(), default=0) + 1
            numbered = {entry.key for _, entry in selected}
            for entry in self.collection:
                if entry.key not in numbered:
                    selected.append((next_label, entry))
                    next_label += 1
        return selected


__all__ = ["BibliographyBuilder", "BibliographyResult"]
