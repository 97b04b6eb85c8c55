"""Citation style identifiers and their families."""
from __future__ import annotations

from enum import Enum


class StyleFamily(str, Enum):
    NUMERIC = "numeric"
    AUTHOR_DATE = "author-date"


NUMERIC_STYLES = frozenset({"ieee", "vancouver", "ama", "nature", "acm", "acs"})
AUTHOR_DATE_STYLES = frozenset({"apa-7", "chicago-ad", "icheme-harvard"})
SUPPORTED_STYLES = NUMERIC_STYLES | AUTHOR_DATE_STYLES

DEFAULT_STYLE = "ieee"

# CSL style definitions used by the external style engine, keyed by style id.
CSL_STYLE_FILES = {
    "ieee": "ieee.csl",
    "vancouver": "vancouver.csl",
    "ama": "american-medical-association.csl",
    "nature": "nature.csl",
    "acm": "acm-sig-proceedings.csl",
    "acs": "acs-nano.csl",
    "apa-7": "apa.csl",
    "chicago-ad": "chicago-author-date.csl",
    "icheme-harvard": "harvard-cite-them-right.csl",
}


def normalize_style(style_id: str | None) -> str:
    return (style_id or "").strip().lower()


def style_family(style_id: str | None) -> StyleFamily:
    """Return the family for a style id; unknown styles behave as numeric."""
    style_key = normalize_style(style_id)
    if style_key in AUTHOR_DATE_STYLES:
        return StyleFamily.AUTHOR_DATE
    return StyleFamily.NUMERIC


def is_numeric(style_id: str | None) -> bool:
    return style_family(style_id) is StyleFamily.NUMERIC
