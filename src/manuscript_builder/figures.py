"""Figure/table token numbering and rendering."""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .models import FigureItem, FigureKind

FIGURE_TOKEN_PATTERN = re.compile(r"\{fig:([a-z0-9\-_]+)\}", re.IGNORECASE)
TABLE_TOKEN_PATTERN = re.compile(r"\{tab:([a-z0-9\-_]+)\}", re.IGNORECASE)

_PATTERNS = {
    FigureKind.FIGURE: FIGURE_TOKEN_PATTERN,
    FigureKind.TABLE: TABLE_TOKEN_PATTERN,
}


@dataclass
class FigureTableNumbering:
    """Independent number maps for figures and tables (lowercased id -> number)."""

    figures: Dict[str, int] = field(default_factory=dict)
    tables: Dict[str, int] = field(default_factory=dict)

    def mapping(self, kind: FigureKind) -> Dict[str, int]:
        return self.tables if kind is FigureKind.TABLE else self.figures

    def number(self, kind: FigureKind, item_id: str) -> Optional[int]:
        return self.mapping(kind).get(item_id.lower())

    def label(self, kind: FigureKind, item_id: str) -> str:
        number = self.number(kind, item_id)
        name = "Table" if kind is FigureKind.TABLE else "Figure"
        return f"{name} {number}" if number is not None else f"{name} ?"


def find_tokens(text: str) -> List[Tuple[FigureKind, str]]:
    """Return (kind, id) for every token, in textual order."""
    found = []
    for kind, pattern in _PATTERNS.items():
        for match in pattern.finditer(text or ""):
            found.append((match.start(), kind, match.group(1).lower()))
    found.sort(key=lambda item: item[0])
    return [(kind, item_id) for _, kind, item_id in found]


def count_tokens(text: str) -> Tuple[int, int]:
    figures = len(FIGURE_TOKEN_PATTERN.findall(text or ""))
    tables = len(TABLE_TOKEN_PATTERN.findall(text or ""))
    return figures, tables


def collect_numbering(
    texts: Iterable[str],
    figures: Sequence[FigureItem] = (),
    tables: Sequence[FigureItem] = (),
) -> FigureTableNumbering:
    """Number library items by first textual appearance, then the rest in library order."""
    numbering = FigureTableNumbering()
    library = {
        FigureKind.FIGURE: [item.id.lower() for item in figures],
        FigureKind.TABLE: [item.id.lower() for item in tables],
    }

    for text in texts:
        for kind, item_id in find_tokens(text):
            mapping = numbering.mapping(kind)
            if item_id in library[kind] and item_id not in mapping:
                mapping[item_id] = len(mapping) + 1

    for kind, ids in library.items():
        mapping = numbering.mapping(kind)
        for item_id in ids:
            if item_id not in mapping:
                mapping[item_id] = len(mapping) + 1
    return numbering


def apply_tokens(text: str, numbering: FigureTableNumbering) -> str:
    """Replace tokens with "Figure N" / "Table N"; unknown ids render with "?"."""
    out = FIGURE_TOKEN_PATTERN.sub(
        lambda match: numbering.label(FigureKind.FIGURE, match.group(1)), text or ""
    )
    return TABLE_TOKEN_PATTERN.sub(
        lambda match: numbering.label(FigureKind.TABLE, match.group(1)), out
    )


def build_lists(
    numbering: FigureTableNumbering,
    figures: Sequence[FigureItem] = (),
    tables: Sequence[FigureItem] = (),
) -> Tuple[List[str], List[str]]:
    """Return (list of figures, list of tables) as "N. caption" lines."""
    return (
        _list_lines(numbering.figures, figures),
        _list_lines(numbering.tables, tables),
    )


def _list_lines(mapping: Dict[str, int], items: Sequence[FigureItem]) -> List[str]:
    by_id = {item.id.lower(): item for item in items}
    lines = []
    for item_id, number in sorted(mapping.items(), key=lambda pair: pair[1]):
        item = by_id.get(item_id)
        caption = item.display_caption() if item else "(no caption)"
        lines.append(f"{number}. {caption}")
    return lines


__all__ = [
    "FIGURE_TOKEN_PATTERN",
    "TABLE_TOKEN_PATTERN",
    "FigureTableNumbering",
    "apply_tokens",
    "build_lists",
    "collect_numbering",
    "count_tokens",
    "find_tokens",
]
