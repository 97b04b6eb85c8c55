"""Normalization helpers for reference keys and identifiers."""
from __future__ import annotations

import re
import unicodedata

_DOI_PREFIX = re.compile(r"^(?:https?://(?:dx\.)?doi\.org/|doi:\s*)", re.IGNORECASE)


def normalize_text(value: str | None) -> str:
    """Normalize free text for key derivation and matching."""
    if not value:
        return ""
    text = unicodedata.normalize("NFKD", value)
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    text = text.replace("&", " and ").lower()
    text = re.sub(r"[^\w\s]", " ", text)
    text = re.sub(r"\s+", " ", text).strip()
    return text


def strip_doi_prefix(doi: str | None) -> str:
    """Remove resolver URL or ``doi:`` prefixes, keeping the DOI's case."""
    if not doi:
        return ""
    return _DOI_PREFIX.sub("", doi.strip()).strip()


def normalize_doi(doi: str | None) -> str:
    """Return a bare, lowercase DOI (no resolver prefix)."""
    return strip_doi_prefix(doi).lower()


def normalize_key(key: str | None) -> str:
    """Normalize a citation key as written inside a marker."""
    return (key or "").strip().lower()
