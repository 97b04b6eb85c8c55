"""Exception types raised by the manuscript builder."""
from __future__ import annotations


class ManuscriptBuilderError(Exception):
    """Base class for all package errors."""


class ProjectFormatError(ManuscriptBuilderError):
    """Raised when a project file cannot be interpreted."""


class StyleEngineError(ManuscriptBuilderError):
    """Raised when the external citation style engine cannot render a bibliography."""


class RewriteServiceError(ManuscriptBuilderError):
    """Raised when the external rewriting service fails or returns nothing usable."""


__all__ = [
    "ManuscriptBuilderError",
    "ProjectFormatError",
    "StyleEngineError",
    "RewriteServiceError",
]
