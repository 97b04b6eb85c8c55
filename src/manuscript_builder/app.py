"""High-level orchestrator for manuscript assembly workflows."""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from .assembler import AssembledManuscript, AssemblyOptions, ManuscriptAssembler, ManuscriptProject
from .cadence import CadencePass
from .config import Settings
from .csl import CiteprocStyleEngine, StyleEngine
from .identifiers import ArxivResolver, CrossrefClient, DoiResolver, PubMedResolver, resolve_identifier
from .models import Reference, ValidationIssue
from .project import resolve_project_identifiers
from .rewrite import (
    CancellationToken,
    ProgressCallback,
    ProtectedRewritePipeline,
    RewriteJob,
    RewriteReport,
    RewriteResult,
)
from .rewrite_client import ChatCompletionRewriteService, RewriteLevel, RewriteService
from .validation import (
    SectionStats,
    compute_section_stats,
    validate_collection,
    validate_sections,
)


class ManuscriptBuilderApp:
    """Coordinates identifier lookup, assembly, rewriting and checks."""

    def __init__(
        self,
        settings: Settings | None = None,
        rewrite_service: RewriteService | None = None,
        style_engine: StyleEngine | None = None,
    ):
        self.settings = settings or Settings()
        self._rewrite_service = rewrite_service
        self._style_engine = style_engine

    @property
    def rewrite_service(self) -> Optional[RewriteService]:
        if self._rewrite_service is None and self.settings.rewrite_api_key:
            self._rewrite_service = ChatCompletionRewriteService(
                api_key=self.settings.rewrite_api_key,
                api_base=self.settings.rewrite_api_base,
                model=self.settings.rewrite_model,
                timeout=self.settings.rewrite_timeout,
            )
        return self._rewrite_service

    @property
    def style_engine(self) -> StyleEngine:
        if self._style_engine is None:
            self._style_engine = CiteprocStyleEngine(self.settings.csl_styles_dir)
        return self._style_engine

    def pipeline(self, cadence: bool = False) -> ProtectedRewritePipeline:
        service = self.rewrite_service
        if service is None:
            raise ValueError("No rewrite service configured (set REWRITE_API_KEY)")
        return ProtectedRewritePipeline(service, cadence=CadencePass() if cadence else None)

    def resolve_identifier(self, identifier: str) -> Reference:
        timeout = self.settings.lookup_timeout
        return resolve_identifier(
            identifier,
            doi_resolver=DoiResolver(CrossrefClient(timeout=timeout, mailto=self.settings.crossref_mailto)),
            pubmed_resolver=PubMedResolver(timeout=timeout),
            arxiv_resolver=ArxivResolver(timeout=timeout),
        )

    def resolve_identifiers(self, project: ManuscriptProject) -> List[Reference]:
        return resolve_project_identifiers(project, resolver=self.resolve_identifier)

    def assemble(
        self,
        project: ManuscriptProject,
        options: AssemblyOptions | None = None,
        rewrite_level: RewriteLevel | str | None = None,
        cadence: bool = False,
        context: Optional[str] = None,
        retry_failed: bool = False,
        cancel_token: Optional[CancellationToken] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> AssembledManuscript:
        assembler = ManuscriptAssembler(project, engine=self.style_engine)
        pipeline = self.pipeline(cadence) if rewrite_level else None
        return assembler.assemble(
            options,
            pipeline=pipeline,
            level=RewriteLevel.parse(rewrite_level) if rewrite_level else RewriteLevel.LIGHT,
            context=context,
            cancel_token=cancel_token,
            progress=progress,
            retry_failed=retry_failed,
        )

    def rewrite_text(
        self,
        text: str,
        level: RewriteLevel | str = RewriteLevel.LIGHT,
        section_name: str = "",
        context: Optional[str] = None,
        cadence: bool = False,
    ) -> RewriteResult:
        job = RewriteJob(section_id=section_name or "text", text=text, level=level,
                         context=context, section_name=section_name)
        return self.pipeline(cadence).rewrite(job)

    def check(
        self, project: ManuscriptProject, density: str = "normal"
    ) -> Tuple[List[ValidationIssue], Dict[str, SectionStats]]:
        assembler = ManuscriptAssembler(project)
        sections = assembler.ordered_sections()
        issues = validate_sections(
            ((section.name, section.text) for section in sections),
            project.references,
            project.figures,
            project.tables,
        )
        issues.extend(validate_collection(project.references))
        stats = {
            section.name: compute_section_stats(section.text, section.name, density)
            for section in sections
        }
        return issues, stats


def issues_to_dict(issues: List[ValidationIssue]) -> List[Dict[str, Any]]:
    return [
        {
            "code": issue.code,
            "message": issue.message,
            "context": issue.context,
            "severity": issue.severity,
        }
        for issue in issues
    ]


def rewrite_result_to_dict(result: RewriteResult) -> Dict[str, Any]:
    return {
        "section_id": result.job.section_id,
        "section": result.job.section_name,
        "status": result.status,
        "reason": result.reason,
        "trace": [state.value for state in result.trace],
        "cadence_applied": result.cadence_applied,
        "text": result.output,
    }


def rewrite_report_to_dict(report: RewriteReport) -> Dict[str, Any]:
    return {
        "results": [rewrite_result_to_dict(result) for result in report.results],
        "failed": report.failed_ids,
        "cancelled": report.cancelled,
        "pending": [job.section_id for job in report.pending],
    }


def manuscript_to_dict(manuscript: AssembledManuscript) -> Dict[str, Any]:
    return {
        "text": manuscript.text,
        "mode": manuscript.mode.value,
        "sections": [
            {
                "id": item.section.id,
                "name": item.section.name,
                "text": item.text,
                "used_keys": item.used_keys,
            }
            for item in manuscript.sections
        ],
        "references": manuscript.bibliography.lines,
        "used_style_engine": manuscript.bibliography.used_engine,
        "style_engine_fallback": manuscript.bibliography.fallback_reason,
        "list_of_figures": manuscript.list_of_figures,
        "list_of_tables": manuscript.list_of_tables,
        "used_keys": manuscript.used_keys,
        "numbering": manuscript.numbering,
        "figure_numbers": dict(manuscript.figure_numbering.figures),
        "table_numbers": dict(manuscript.figure_numbering.tables),
        "side_table": {
            token: {"caption": item.display_caption(), "has_image": bool(item.image_data), "rows": len(item.rows)}
            for token, item in manuscript.side_table.items()
        },
        "rewrite": rewrite_report_to_dict(manuscript.rewrite_report) if manuscript.rewrite_report else None,
    }


__all__ = [
    "ManuscriptBuilderApp",
    "issues_to_dict",
    "manuscript_to_dict",
    "rewrite_report_to_dict",
    "rewrite_result_to_dict",
]
