"""Deterministic reference-list templates."""
from __future__ import annotations

from typing import List, Optional

from .models import Reference
from .normalization import strip_doi_prefix
from .styles import StyleFamily, style_family


class BibliographyFormatter:
    """Render references with a fixed template per style family.

    The templates are reasonable defaults rather than faithful renditions of
    any published style: authors, title, container, year and identifier always
    appear in that order.
    """

    def format(self, entry: Reference, style: str = "ieee", label: Optional[int] = None) -> str:
        if style_family(style) is StyleFamily.AUTHOR_DATE:
            return self.format_author_date(entry)
        line = self.format_numeric(entry)
        return f"[{label}] {line}" if label is not None else line

    def format_numeric(self, entry: Reference) -> str:
        authors = ", ".join(
            name
            for name in (
                self._short_name(author.family, author.initials(), author.literal)
                for author in entry.authors
            )
            if name
        )
        venue = self._venue_details(entry, pages_sep=":")
        components = [_strip_period(authors), _strip_period(entry.title), venue]
        head = ". ".join(comp for comp in components if comp)
        if entry.year:
            head = f"{head} ({entry.year})" if head else f"({entry.year})"
        locator = self._locator(entry, doi_prefix="doi:")
        return f"{head}. {locator}" if locator else f"{head}."

    def format_author_date(self, entry: Reference) -> str:
        authors = "; ".join(
            name
            for name in (
                self._inverted_name(author.family, author.initials(), author.literal)
                for author in entry.authors
            )
            if name
        )
        year = f"({entry.year})" if entry.year else "(n.d.)"
        head = f"{authors} {year}" if authors else year
        venue = self._venue_details(entry, pages_sep=", ")
        components = [head, _strip_period(entry.title), venue]
        line = ". ".join(comp for comp in components if comp) + "."
        locator = self._locator(entry, doi_prefix="https://doi.org/")
        return f"{line} {locator}" if locator else line

    def format_many(self, entries: List[Reference], style: str = "ieee") -> List[str]:
        return [self.format(entry, style) for entry in entries]

    @staticmethod
    def _short_name(family: str, initials: str, literal: str) -> str:
        if family:
            return f"{family} {initials}".strip()
        return literal

    @staticmethod
    def _inverted_name(family: str, initials: str, literal: str) -> str:
        if family:
            return f"{family}, {initials}" if initials else family
        return literal

    @staticmethod
    def _venue_details(entry: Reference, pages_sep: str) -> Optional[str]:
        venue = entry.container_title or ""
        if entry.volume:
            venue = f"{venue} {entry.volume}".strip()
            if entry.issue:
                venue = f"{venue}({entry.issue})"
        if entry.pages:
            venue = f"{venue}{pages_sep}{entry.pages}" if venue else entry.pages
        return venue or None

    @staticmethod
    def _locator(entry: Reference, doi_prefix: str) -> Optional[str]:
        doi = strip_doi_prefix(entry.doi)
        if doi:
            return f"{doi_prefix}{doi}"
        if entry.url:
            return entry.url
        return None


def _strip_period(value: Optional[str]) -> str:
    return (value or "").strip().rstrip(".")


__all__ = ["BibliographyFormatter"]
