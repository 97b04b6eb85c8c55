"""FastAPI + Tailwind interface for the manuscript builder.

Run with:
    uvicorn manuscript_builder.web:app --reload
"""
from __future__ import annotations

import json
from html import escape
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Form, HTTPException
from fastapi.responses import HTMLResponse
from pydantic import BaseModel, Field

from .app import (
    ManuscriptBuilderApp,
    issues_to_dict,
    manuscript_to_dict,
    rewrite_result_to_dict,
)
from .assembler import AssemblyOptions, RenderMode
from .config import Settings
from .errors import ManuscriptBuilderError, ProjectFormatError
from .project import load_project
from .report import render_report, render_rewrite_report
from .rewrite_client import RewriteLevel
from .styles import SUPPORTED_STYLES, normalize_style

app = FastAPI(title="Manuscript Builder", description="Assemble cited manuscripts from the browser")


class AssembleRequest(BaseModel):
    project: Dict[str, Any]
    mode: RenderMode = RenderMode.DISPLAY
    style: Optional[str] = None
    renumber: bool = True
    sanitize: bool = False
    full_bibliography: bool = False
    csl: bool = False
    rewrite: Optional[RewriteLevel] = None
    cadence: bool = False
    context: Optional[str] = None
    check: bool = False
    density: str = "normal"


class RewriteRequest(BaseModel):
    text: str
    level: RewriteLevel = RewriteLevel.LIGHT
    section_name: str = ""
    context: Optional[str] = None
    cadence: bool = False


class RewriteTextResponse(BaseModel):
    status: str
    reason: Optional[str] = None
    text: str
    trace: List[str] = Field(default_factory=list)
    cadence_applied: bool = False


def get_builder() -> ManuscriptBuilderApp:
    return ManuscriptBuilderApp(Settings.from_env())


def _layout(content: str) -> str:
    """Wrap provided content in a Tailwind-powered HTML page."""

    return f"""
    <!doctype html>
    <html lang=\"en\" class=\"h-full bg-gray-50\">
    <head>
        <meta charset=\"utf-8\" />
        <title>Manuscript Builder</title>
        <link href=\"https://cdn.jsdelivr.net/npm/tailwindcss@3.4.4/dist/tailwind.min.css\" rel=\"stylesheet\" />
    </head>
    <body class=\"min-h-full py-10\">
        <div class=\"max-w-5xl mx-auto px-4\">
            <div class=\"bg-white shadow rounded-lg p-6\">
                <h1 class=\"text-3xl font-semibold text-gray-900\">Manuscript Builder</h1>
                <p class=\"text-gray-600 mt-2\">Paste a JSON project to resolve citation markers, number figures and tables, and build the reference list.</p>
                {content}
            </div>
        </div>
    </body>
    </html>
    """


def _form_page(output: str | None = None, report: str | None = None, project_json: str = "") -> str:
    style_options = "".join(
        f'<option value=\"{style}\">{style}</option>' for style in sorted(SUPPORTED_STYLES)
    )
    form = f"""
    <form action=\"/assemble\" method=\"post\" class=\"bg-gray-50 border border-gray-200 rounded-lg p-4 mt-6\">
        <h2 class=\"text-xl font-semibold text-gray-800\">Project JSON</h2>
        <p class=\"text-gray-600 text-sm mb-3\">Sections use {{{{cite:key}}}} markers and {{fig:id}} / {{tab:id}} tokens.</p>
        <textarea name=\"project\" required class=\"w-full h-56 border border-gray-300 rounded-md p-3 text-sm font-mono\">{escape(project_json)}</textarea>
        <div class=\"flex items-center gap-4 mt-3\">
            <label class=\"text-sm text-gray-700\" for=\"style\">Style override</label>
            <select id=\"style\" name=\"style\" class=\"border border-gray-300 rounded-md text-sm\"><option value=\"\">project style</option>{style_options}</select>
            <input type=\"checkbox\" id=\"sanitize\" name=\"sanitize\" value=\"1\" class=\"h-4 w-4 text-indigo-600 border-gray-300 rounded\" />
            <label for=\"sanitize\" class=\"text-sm text-gray-700\">Convert author-year text citations to markers</label>
        </div>
        <button type=\"submit\" class=\"mt-4 inline-flex items-center px-4 py-2 bg-indigo-600 text-white rounded-md shadow hover:bg-indigo-700\">Assemble</button>
    </form>
    """

    output_block = ""
    if output is not None:
        output_block = f"""
        <div class=\"mt-8\">
            <h2 class=\"text-xl font-semibold text-gray-800\">Manuscript</h2>
            <pre class=\"mt-3 bg-gray-100 text-gray-900 p-4 rounded-lg whitespace-pre-wrap text-sm\">{escape(output)}</pre>
        </div>
        """

    report_block = ""
    if report:
        report_block = f"""
        <div class=\"mt-8\">
            <h2 class=\"text-xl font-semibold text-gray-800\">Check Report</h2>
            <pre class=\"mt-3 bg-gray-900 text-green-100 p-4 rounded-lg whitespace-pre-wrap text-sm\">{escape(report)}</pre>
        </div>
        """

    return _layout(form + output_block + report_block)


@app.get("/", response_class=HTMLResponse)
async def home() -> HTMLResponse:
    """Serve the project submission form."""

    return HTMLResponse(_form_page())


@app.post("/assemble", response_class=HTMLResponse)
async def assemble_form(
    project: str = Form(...),
    style: str = Form(""),
    sanitize: bool = Form(False),
    builder: ManuscriptBuilderApp = Depends(get_builder),
) -> HTMLResponse:
    """Assemble a pasted project and show the manuscript with its check report."""

    try:
        data = json.loads(project)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Project is not valid JSON: {exc}") from exc
    try:
        loaded = load_project(data)
    except ProjectFormatError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if style:
        loaded.style_id = normalize_style(style)

    manuscript = builder.assemble(loaded, AssemblyOptions(sanitize=sanitize))
    issues, stats = builder.check(loaded)
    return HTMLResponse(_form_page(manuscript.text, render_report(issues, stats), project))


@app.post("/api/assemble")
def assemble_api(request: AssembleRequest, builder: ManuscriptBuilderApp = Depends(get_builder)) -> Dict[str, Any]:
    try:
        project = load_project(request.project)
    except ProjectFormatError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if request.style:
        project.style_id = normalize_style(request.style)
    if request.rewrite and builder.rewrite_service is None:
        raise HTTPException(status_code=503, detail="No rewrite service configured")

    options = AssemblyOptions(
        mode=request.mode,
        renumber=request.renumber,
        sanitize=request.sanitize,
        cited_only=not request.full_bibliography,
        prefer_engine=request.csl,
    )
    try:
        manuscript = builder.assemble(
            project,
            options,
            rewrite_level=request.rewrite,
            cadence=request.cadence,
            context=request.context,
        )
    except ManuscriptBuilderError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    result = manuscript_to_dict(manuscript)
    if manuscript.rewrite_report is not None:
        result["rewrite_summary"] = render_rewrite_report(manuscript.rewrite_report)
    if request.check:
        issues, stats = builder.check(project, request.density)
        result["issues"] = issues_to_dict(issues)
        result["report"] = render_report(issues, stats)
    return result


@app.post("/api/rewrite", response_model=RewriteTextResponse)
def rewrite_api(request: RewriteRequest, builder: ManuscriptBuilderApp = Depends(get_builder)) -> Dict[str, Any]:
    """Rewrite one passage with placeholder protection and verification."""

    if builder.rewrite_service is None:
        raise HTTPException(status_code=503, detail="No rewrite service configured")
    result = builder.rewrite_text(
        request.text,
        request.level,
        section_name=request.section_name,
        context=request.context,
        cadence=request.cadence,
    )
    return rewrite_result_to_dict(result)


@app.get("/api/health")
async def health() -> Dict[str, str]:
    return {"status": "ok"}


def main() -> None:
    """Run the FastAPI app using uvicorn."""

    import uvicorn

    uvicorn.run("manuscript_builder.web:app", host="0.0.0.0", port=8000, reload=False)


__all__ = ["app", "get_builder", "main"]
