"""Citation-aware manuscript assembly and protected rewriting toolkit."""

from .app import ManuscriptBuilderApp
from .assembler import AssembledManuscript, AssemblyOptions, ManuscriptAssembler, ManuscriptProject, RenderMode
from .models import Author, Contributor, FigureItem, FigureKind, Reference, Section, ValidationIssue
from .reference_store import ReferenceCollection
from .rewrite import CancellationToken, ProtectedRewritePipeline, RewriteJob, RewriteReport, RewriteResult
from .rewrite_client import ChatCompletionRewriteService, RewriteLevel, RewriteService
from .csl import CiteprocStyleEngine, StyleEngine

__all__ = [
    "ManuscriptBuilderApp",
    "AssembledManuscript",
    "AssemblyOptions",
    "ManuscriptAssembler",
    "ManuscriptProject",
    "RenderMode",
    "Author",
    "Contributor",
    "FigureItem",
    "FigureKind",
    "Reference",
    "Section",
    "ValidationIssue",
    "ReferenceCollection",
    "CancellationToken",
    "ProtectedRewritePipeline",
    "RewriteJob",
    "RewriteReport",
    "RewriteResult",
    "ChatCompletionRewriteService",
    "RewriteLevel",
    "RewriteService",
    "CiteprocStyleEngine",
    "StyleEngine",
]
