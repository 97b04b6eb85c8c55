"""Adapter for an external CSL (Citation Style Language) engine."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from .errors import StyleEngineError
from .models import Reference
from .styles import CSL_STYLE_FILES, normalize_style

logger = logging.getLogger(__name__)

# Styles shipped inside the citeproc-py distribution, by style id.
BUNDLED_STYLES = {"icheme-harvard": "harvard-cite-them-right"}


class StyleEngine:
    """Base interface for declarative style interpreters."""

    name: str = "base"

    def render(self, style_id: str, references: Sequence[Reference]) -> List[str]:  # pragma: no cover - interface
        raise NotImplementedError


class CiteprocStyleEngine(StyleEngine):
    """Render bibliographies with citeproc-py.

    Style definitions are looked up in ``styles_dir`` using the file names of
    ``CSL_STYLE_FILES``; ``bundled_styles`` maps style ids to styles shipped
    with citeproc-py for installations without a styles directory. Entries are
    registered in the order given, so numeric styles number them 1..n.
    """

    name = "citeproc"

    def __init__(
        self,
        styles_dir: Optional[Path] = None,
        bundled_styles: Optional[Dict[str, str]] = None,
        locale: str = "en-US",
    ):
        self.styles_dir = Path(styles_dir) if styles_dir else None
        self.bundled_styles = BUNDLED_STYLES if bundled_styles is None else bundled_styles
        self.locale = locale
        self._loaded: Dict[str, object] = {}

    def render(self, style_id: str, references: Sequence[Reference]) -> List[str]:
        try:
            from citeproc import (
                Citation,
                CitationItem,
                CitationStylesBibliography,
                formatter,
            )
            from citeproc.source.json import CiteProcJSON
        except ImportError as exc:  # pragma: no cover - dependency error path
            raise StyleEngineError(
                "CSL rendering requires the 'citeproc-py' package."
            ) from exc

        if not references:
            return []
        style = self._load_style(style_id)
        records = [reference.to_csl() for reference in references]
        try:
            source = CiteProcJSON(records)
            bibliography = CitationStylesBibliography(style, source, formatter.plain)
            for record in records:
                bibliography.register(Citation([CitationItem(record["id"])]))
            lines = [str(item).strip() for item in bibliography.bibliography()]
        except Exception as exc:
            raise StyleEngineError(f"CSL engine failed for style {style_id}: {exc}") from exc
        return [line for line in lines if line]

    def _load_style(self, style_id: str):
        style_key = normalize_style(style_id)
        if style_key in self._loaded:
            return self._loaded[style_key]

        from citeproc import CitationStylesStyle

        source = self._style_source(style_key)
        try:
            style = CitationStylesStyle(source, locale=self.locale, validate=False)
        except Exception as exc:
            raise StyleEngineError(f"Unparseable CSL style for {style_id}: {exc}") from exc
        logger.debug("Loaded CSL style %s from %s", style_key, source)
        self._loaded[style_key] = style
        return style

    def _style_source(self, style_key: str) -> str:
        file_name = CSL_STYLE_FILES.get(style_key)
        if file_name and self.styles_dir:
            path = self.styles_dir / file_name
            if path.exists():
                return str(path)
        bundled = self.bundled_styles.get(style_key)
        if bundled:
            return bundled
        raise StyleEngineError(f"No CSL style definition available for {style_key or 'unknown style'}")


__all__ = ["BUNDLED_STYLES", "CiteprocStyleEngine", "StyleEngine"]
