import pytest

from manuscript_builder.app import (
    ManuscriptBuilderApp,
    issues_to_dict,
    manuscript_to_dict,
    rewrite_result_to_dict,
)
from manuscript_builder.assembler import AssemblyOptions, RenderMode
from manuscript_builder.config import Settings
from manuscript_builder.models import Reference
from manuscript_builder.project import load_project
from manuscript_builder.rewrite_client import ChatCompletionRewriteService, RewriteService


class UpperService(RewriteService):
    def rewrite(self, text, level, context=None):
        return text.replace("confirm", "CONFIRM")


def test_assemble_with_rewrite_and_serialize(sample_project_data):
    app = ManuscriptBuilderApp(rewrite_service=UpperService())
    project = load_project(sample_project_data)

    manuscript = app.assemble(project, AssemblyOptions(mode=RenderMode.STRUCTURED_EXPORT), rewrite_level="light")
    payload = manuscript_to_dict(manuscript)

    assert payload["mode"] == "structured-export"
    assert payload["sections"][1]["text"] == "We CONFIRM [1–2] and list values in {tab:yields}."
    assert payload["numbering"] == {"lee2019": 1, "smith2020": 2}
    assert payload["side_table"]["tab:yields"] == {"caption": "Yields", "has_image": False, "rows": 2}
    assert payload["rewrite"]["failed"] == []
    assert payload["rewrite"]["results"][1]["status"] == "accepted"


def test_rewrite_requires_configured_service():
    app = ManuscriptBuilderApp(settings=Settings())

    assert app.rewrite_service is None
    with pytest.raises(ValueError):
        app.rewrite_text("Some prose.", "light")


def test_rewrite_service_built_from_settings():
    app = ManuscriptBuilderApp(settings=Settings(rewrite_api_key="sk-test", rewrite_model="small-model"))

    service = app.rewrite_service

    assert isinstance(service, ChatCompletionRewriteService)
    assert service.model == "small-model"
    service.close()


def test_rewrite_text_reports_result():
    app = ManuscriptBuilderApp(rewrite_service=UpperService())

    result = app.rewrite_text("We confirm the trend [3].", "proofread", section_name="Discussion")
    payload = rewrite_result_to_dict(result)

    assert payload["status"] == "accepted"
    assert payload["text"] == "We CONFIRM the trend [3]."
    assert payload["trace"][-1] == "accepted"


def test_check_combines_section_and_reference_issues(sample_project_data):
    sample_project_data["sections"][0]["text"] += " {{cite:ghost}} {tab:none}"
    project = load_project(sample_project_data)

    issues, stats = ManuscriptBuilderApp().check(project)
    codes = {item["code"] for item in issues_to_dict(issues)}

    assert {"unknown-citation-key", "unknown-table"} <= codes
    assert "missing-locator" not in codes
    assert set(stats) == {"Introduction", "Results"}
    assert stats["Introduction"].citations == 2


def test_resolve_identifiers_uses_injected_lookup(sample_project_data, monkeypatch):
    sample_project_data["identifiers"] = ["PMID:42"]
    project = load_project(sample_project_data)
    app = ManuscriptBuilderApp()
    monkeypatch.setattr(app, "resolve_identifier", lambda value: Reference(title="Looked up", identifier="pmid:42"))

    added = app.resolve_identifiers(project)

    assert [entry.key for entry in added] == ["pmid:42"]
    assert "pmid:42" in project.references
