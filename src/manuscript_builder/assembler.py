"""Assemble a manuscript: resolve sections, optionally rewrite, then finalize."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from .bibliography import BibliographyBuilder, BibliographyResult
from .citations import CitationResolver, build_numbering_map
from .csl import StyleEngine
from .figures import FigureTableNumbering, apply_tokens, build_lists, collect_numbering
from .models import Contributor, FigureItem, Section
from .reference_store import ReferenceCollection
from .rewrite import (
    CancellationToken,
    ProgressCallback,
    ProtectedRewritePipeline,
    RewriteJob,
    RewriteReport,
)
from .rewrite_client import RewriteLevel
from .sanitizer import convert_author_year_to_markers
from .styles import DEFAULT_STYLE, is_numeric

logger = logging.getLogger(__name__)

_SUPERSCRIPTS = str.maketrans("0123456789", "⁰¹²³⁴⁵⁶⁷⁸⁹")


class RenderMode(str, Enum):
    DISPLAY = "display"
    STRUCTURED_EXPORT = "structured-export"


@dataclass
class ManuscriptProject:
    """Everything needed to build one manuscript."""

    title: str = ""
    style_id: str = DEFAULT_STYLE
    sections: List[Section] = field(default_factory=list)
    references: ReferenceCollection = field(default_factory=ReferenceCollection)
    figures: List[FigureItem] = field(default_factory=list)
    tables: List[FigureItem] = field(default_factory=list)
    contributors: List[Contributor] = field(default_factory=list)
    affiliations: List[str] = field(default_factory=list)
    identifiers: List[str] = field(default_factory=list)


@dataclass
class AssemblyOptions:
    mode: RenderMode = RenderMode.DISPLAY
    renumber: bool = True
    sanitize: bool = False
    cited_only: bool = True
    prefer_engine: bool = False
    front_matter: bool = True


@dataclass
class ResolvedSection:
    section: Section
    text: str
    used_keys: List[str] = field(default_factory=list)


@dataclass
class ResolutionState:
    """Output of :meth:`ManuscriptAssembler.resolve_sections`."""

    sections: List[ResolvedSection]
    numbering: Optional[Dict[str, int]]
    figure_numbering: FigureTableNumbering
    used_keys: List[str]
    sanitized_keys: List[str] = field(default_factory=list)


@dataclass
class AssembledManuscript:
    text: str
    mode: RenderMode
    sections: List[ResolvedSection]
    bibliography: BibliographyResult
    list_of_figures: List[str]
    list_of_tables: List[str]
    used_keys: List[str]
    numbering: Optional[Dict[str, int]]
    figure_numbering: FigureTableNumbering
    side_table: Dict[str, FigureItem] = field(default_factory=dict)
    rewrite_report: Optional[RewriteReport] = None


class ManuscriptAssembler:
    """Drives citation, token and bibliography resolution for a project."""

    def __init__(self, project: ManuscriptProject, engine: Optional[StyleEngine] = None):
        self.project = project
        self.bibliography = BibliographyBuilder(project.references, engine=engine)

    def ordered_sections(self) -> List[Section]:
        return [section for section in self.project.sections if section.enabled and not section.system]

    def resolve_sections(self, options: Optional[AssemblyOptions] = None) -> ResolutionState:
        options = options or AssemblyOptions()
        style_id = self.project.style_id
        collection = self.project.references
        sections = self.ordered_sections()

        raw_texts: List[str] = []
        sanitized_keys: List[str] = []
        for section in sections:
            text = section.text or ""
            if options.sanitize:
                result = convert_author_year_to_markers(text, collection)
                if result.matches:
                    logger.debug("Converted %d author-year citations in %s", len(result.matches), section.name)
                text = result.text
                sanitized_keys.extend(key for key in result.mapped_keys if key not in sanitized_keys)
            raw_texts.append(text)

        numbering = None
        if options.renumber and is_numeric(style_id):
            numbering = build_numbering_map(raw_texts, collection)
        figure_numbering = collect_numbering(raw_texts, self.project.figures, self.project.tables)

        resolver = CitationResolver(collection)
        resolved: List[ResolvedSection] = []
        used_keys: List[str] = []
        for section, raw in zip(sections, raw_texts):
            citation = resolver.resolve(raw, style_id, numbering)
            text = citation.text
            if options.mode is RenderMode.DISPLAY:
                text = apply_tokens(text, figure_numbering)
            resolved.append(ResolvedSection(section=section, text=text, used_keys=citation.used_keys))
            used_keys.extend(key for key in citation.used_keys if key not in used_keys)

        return ResolutionState(
            sections=resolved,
            numbering=numbering,
            figure_numbering=figure_numbering,
            used_keys=used_keys,
            sanitized_keys=sanitized_keys,
        )

    def rewrite_jobs(
        self,
        state: ResolutionState,
        level: RewriteLevel = RewriteLevel.LIGHT,
        context: Optional[str] = None,
    ) -> List[RewriteJob]:
        return [
            RewriteJob(
                section_id=item.section.id,
                text=item.text,
                level=level,
                context=context,
                section_name=item.section.name,
            )
            for item in state.sections
        ]

    def finalize(
        self,
        state: ResolutionState,
        options: Optional[AssemblyOptions] = None,
        rewrite_report: Optional[RewriteReport] = None,
    ) -> AssembledManuscript:
        options = options or AssemblyOptions()
        sections = state.sections
        if rewrite_report is not None:
            texts = rewrite_report.texts()
            sections = [
                ResolvedSection(item.section, texts.get(item.section.id, item.text), item.used_keys)
                for item in state.sections
            ]

        bibliography = self.bibliography.build(
            self.project.style_id,
            state.used_keys,
            state.numbering,
            cited_only=options.cited_only,
            prefer_engine=options.prefer_engine,
        )
        list_of_figures, list_of_tables = build_lists(
            state.figure_numbering, self.project.figures, self.project.tables
        )

        blocks = [f"# {item.section.name}\n\n{item.text}" for item in sections]
        if list_of_figures:
            blocks.append("# List of Figures\n\n" + "\n".join(list_of_figures))
        if list_of_tables:
            blocks.append("# List of Tables\n\n" + "\n".join(list_of_tables))
        if bibliography.lines:
            blocks.append("# References\n\n" + "\n".join(bibliography.lines))
        text = "\n\n".join(blocks)
        if options.front_matter:
            front = self.front_matter()
            if front:
                text = f"{front}\n\n{text}" if text else front

        side_table: Dict[str, FigureItem] = {}
        if options.mode is RenderMode.STRUCTURED_EXPORT:
            side_table.update({f"fig:{item.id.lower()}": item for item in self.project.figures})
            side_table.update({f"tab:{item.id.lower()}": item for item in self.project.tables})

        return AssembledManuscript(
            text=text,
            mode=options.mode,
            sections=sections,
            bibliography=bibliography,
            list_of_figures=list_of_figures,
            list_of_tables=list_of_tables,
            used_keys=state.used_keys,
            numbering=state.numbering,
            figure_numbering=state.figure_numbering,
            side_table=side_table,
            rewrite_report=rewrite_report,
        )

    def assemble(
        self,
        options: Optional[AssemblyOptions] = None,
        pipeline: Optional[ProtectedRewritePipeline] = None,
        level: RewriteLevel = RewriteLevel.LIGHT,
        context: Optional[str] = None,
        cancel_token: Optional[CancellationToken] = None,
        progress: Optional[ProgressCallback] = None,
        retry_failed: bool = False,
    ) -> AssembledManuscript:
        options = options or AssemblyOptions()
        state = self.resolve_sections(options)
        report = None
        if pipeline is not None:
            report = pipeline.run(self.rewrite_jobs(state, level, context), cancel_token, progress)
            if retry_failed and report.failed_ids and not report.cancelled:
                report = pipeline.retry_failed(report, cancel_token, progress)
        return self.finalize(state, options, report)

    def front_matter(self) -> str:
        lines: List[str] = []
        if self.project.title:
            lines.append(self.project.title)
        if self.project.contributors:
            lines.append(", ".join(self._contributor_label(person) for person in self.project.contributors))
        for index, affiliation in enumerate(self.project.affiliations, start=1):
            lines.append(f"{str(index).translate(_SUPERSCRIPTS)} {affiliation}")
        corresponding = [person for person in self.project.contributors if person.corresponding]
        if corresponding:
            contacts = [
                f"{person.name} ({person.email})" if person.email else person.name
                for person in corresponding
            ]
            lines.append(f"*Corresponding author: {'; '.join(contacts)}")
        return "\n".join(lines)

    @staticmethod
    def _contributor_label(person: Contributor) -> str:
        marks = ",".join(str(index).translate(_SUPERSCRIPTS) for index in person.affiliations)
        return f"{person.name}{marks}{'*' if person.corresponding else ''}"


__all__ = [
    "AssembledManuscript",
    "AssemblyOptions",
    "ManuscriptAssembler",
    "ManuscriptProject",
    "RenderMode",
    "ResolutionState",
    "ResolvedSection",
]
