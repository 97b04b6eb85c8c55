"""Command line interface for assembling manuscripts."""
from __future__ import annotations

import argparse
import json
import signal
import sys
from pathlib import Path
from typing import List

from .app import ManuscriptBuilderApp, issues_to_dict, manuscript_to_dict
from .assembler import AssemblyOptions, RenderMode
from .config import Settings, configure_logging
from .docx_writer import build_manuscript_docx
from .errors import ManuscriptBuilderError, ProjectFormatError
from .exporters import to_bibtex, to_csl_json, to_ris
from .figures import apply_tokens
from .project import load_project_file
from .report import render_report, render_rewrite_report
from .rewrite import CancellationToken, RewriteJob
from .rewrite_client import RewriteLevel
from .styles import SUPPORTED_STYLES, normalize_style
from .validation import DENSITY_TARGETS


def _progress(done: int, total: int, job: RewriteJob) -> None:
    print(f"Rewriting {done}/{total}: {job.section_name or job.section_id}", file=sys.stderr)


def main(argv: List[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Assemble a manuscript from a JSON project file")
    parser.add_argument("project", help="Path to the JSON project file")
    parser.add_argument(
        "--style",
        choices=sorted(SUPPORTED_STYLES),
        help="Override the project's citation style",
    )
    parser.add_argument(
        "--mode",
        default=RenderMode.DISPLAY.value,
        choices=[mode.value for mode in RenderMode],
        help="Render figure/table tokens as labels (display) or keep them for DOCX export",
    )
    parser.add_argument("--no-renumber", action="store_true", help="Number numeric citations by library order")
    parser.add_argument(
        "--sanitize",
        action="store_true",
        help="Convert free-text author-year citations into citation markers first",
    )
    parser.add_argument(
        "--full-bibliography",
        action="store_true",
        help="List every library entry, not only the cited ones",
    )
    parser.add_argument("--csl", action="store_true", help="Prefer the CSL style engine for the bibliography")
    parser.add_argument("--csl-styles-dir", type=Path, help="Directory holding CSL style files")
    parser.add_argument(
        "--rewrite",
        metavar="LEVEL",
        choices=[level.value for level in RewriteLevel],
        help="Rewrite each section through the protected rewrite pipeline",
    )
    parser.add_argument("--cadence", action="store_true", help="Apply the cadence pass to accepted rewrites")
    parser.add_argument("--retry-failed", action="store_true", help="Retry sections whose rewrite failed once")
    parser.add_argument("--context", help="Extra context passed to the rewrite service")
    parser.add_argument(
        "--resolve-identifiers",
        action="store_true",
        help="Look up the project's DOI/PMID/arXiv identifiers before assembling",
    )
    parser.add_argument("--output", type=Path, help="Write the assembled manuscript text")
    parser.add_argument("--json-output", type=Path, help="Write structured assembly results to a JSON file")
    parser.add_argument("--docx-output", type=Path, help="Write the manuscript as DOCX with embedded figures")
    parser.add_argument("--bibtex-output", type=Path, help="Write the reference library as BibTeX")
    parser.add_argument("--ris-output", type=Path, help="Write the reference library as RIS")
    parser.add_argument("--csl-json-output", type=Path, help="Write the reference library as CSL-JSON")
    parser.add_argument("--check", action="store_true", help="Print section statistics and reference issues")
    parser.add_argument(
        "--density",
        default="normal",
        choices=sorted(DENSITY_TARGETS),
        help="Citation density target used by --check",
    )
    parser.add_argument("--log-level", help="Logging level (overrides MANUSCRIPT_LOG_LEVEL)")
    args = parser.parse_args(argv)

    try:
        settings = Settings.from_env()
        overrides = {"log_level": args.log_level, "csl_styles_dir": args.csl_styles_dir}
        overrides = {name: value for name, value in overrides.items() if value}
        if overrides:
            settings = Settings.model_validate({**settings.model_dump(), **overrides})
    except ValueError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 2
    configure_logging(settings.log_level)

    try:
        project = load_project_file(Path(args.project))
    except ProjectFormatError as exc:
        print(str(exc), file=sys.stderr)
        return 2
    if args.style:
        project.style_id = normalize_style(args.style)

    builder = ManuscriptBuilderApp(settings)
    if args.rewrite and builder.rewrite_service is None:
        print("--rewrite needs REWRITE_API_KEY (or OPENAI_API_KEY) to be set", file=sys.stderr)
        return 2
    if args.resolve_identifiers and project.identifiers:
        builder.resolve_identifiers(project)

    mode = RenderMode.STRUCTURED_EXPORT if args.docx_output else RenderMode(args.mode)
    options = AssemblyOptions(
        mode=mode,
        renumber=not args.no_renumber,
        sanitize=args.sanitize,
        cited_only=not args.full_bibliography,
        prefer_engine=args.csl,
    )

    cancel_token = CancellationToken()
    previous_handler = None
    if args.rewrite:
        previous_handler = signal.signal(signal.SIGINT, lambda signum, frame: cancel_token.cancel())
    try:
        manuscript = builder.assemble(
            project,
            options,
            rewrite_level=args.rewrite,
            cadence=args.cadence,
            context=args.context,
            retry_failed=args.retry_failed,
            cancel_token=cancel_token,
            progress=_progress if args.rewrite else None,
        )
    except ManuscriptBuilderError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    finally:
        if previous_handler is not None:
            signal.signal(signal.SIGINT, previous_handler)

    text = manuscript.text
    if args.docx_output and args.mode == RenderMode.DISPLAY.value:
        text = apply_tokens(text, manuscript.figure_numbering)

    if args.output:
        args.output.write_text(text, encoding="utf-8")
    else:
        print(text)

    if manuscript.rewrite_report is not None:
        print(render_rewrite_report(manuscript.rewrite_report), file=sys.stderr)
    if manuscript.bibliography.fallback_reason and args.csl:
        print(f"CSL engine not used: {manuscript.bibliography.fallback_reason}", file=sys.stderr)

    issues = []
    if args.check or args.json_output:
        issues, stats = builder.check(project, args.density)
        if args.check:
            print(render_report(issues, stats))

    if args.json_output:
        result = manuscript_to_dict(manuscript)
        result["issues"] = issues_to_dict(issues)
        args.json_output.write_text(json.dumps(result, indent=2, ensure_ascii=False), encoding="utf-8")

    if args.docx_output:
        args.docx_output.write_bytes(build_manuscript_docx(manuscript))

    if args.bibtex_output:
        args.bibtex_output.write_text(to_bibtex(project.references), encoding="utf-8")

    if args.ris_output:
        args.ris_output.write_text(to_ris(project.references), encoding="utf-8")

    if args.csl_json_output:
        args.csl_json_output.write_text(to_csl_json(project.references), encoding="utf-8")

    return 0


if __name__ == "__main__":  # pragma: no cover - manual invocation helper
    raise SystemExit(main())
