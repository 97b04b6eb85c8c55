import json

import pytest

fastapi = pytest.importorskip("fastapi")
from fastapi.testclient import TestClient

from manuscript_builder.app import ManuscriptBuilderApp
from manuscript_builder.config import Settings
from manuscript_builder.rewrite_client import RewriteService
from manuscript_builder.web import app, get_builder


class SwapService(RewriteService):
    def rewrite(self, text, level, context=None):
        return text.replace("shows", "demonstrates")


@pytest.fixture()
def client():
    app.dependency_overrides[get_builder] = lambda: ManuscriptBuilderApp(Settings())
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_homepage_renders_form(client):
    response = client.get("/")

    assert response.status_code == 200
    assert "Manuscript Builder" in response.text
    assert "tailwind" in response.text.lower()
    assert 'name="project"' in response.text


def test_assemble_form_returns_manuscript_and_report(client, sample_project_data):
    response = client.post("/assemble", data={"project": json.dumps(sample_project_data), "style": ""})

    assert response.status_code == 200
    assert "Screening matters [1] as shown in Figure 1." in response.text
    assert "Manuscript Check Report" in response.text


def test_assemble_form_rejects_invalid_json(client):
    response = client.post("/assemble", data={"project": "{oops"})

    assert response.status_code == 400


def test_assemble_api_returns_structured_result(client, sample_project_data):
    response = client.post(
        "/api/assemble",
        json={"project": sample_project_data, "mode": "structured-export", "check": True},
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["numbering"] == {"lee2019": 1, "smith2020": 2}
    assert "{fig:flow}" in payload["sections"][0]["text"]
    assert set(payload["side_table"]) == {"fig:flow", "tab:yields"}
    assert "report" in payload
    assert payload["rewrite"] is None


def test_assemble_api_rejects_bad_project(client):
    response = client.post("/api/assemble", json={"project": {"sections": "not a list"}})

    assert response.status_code == 400


def test_rewrite_endpoints_need_a_service(client, sample_project_data):
    assert client.post("/api/rewrite", json={"text": "Some prose."}).status_code == 503
    response = client.post("/api/assemble", json={"project": sample_project_data, "rewrite": "light"})
    assert response.status_code == 503


def test_rewrite_endpoint_uses_protected_pipeline(client):
    app.dependency_overrides[get_builder] = lambda: ManuscriptBuilderApp(rewrite_service=SwapService())

    response = client.post(
        "/api/rewrite",
        json={"text": "Figure {fig:flow} shows fouling [2].", "level": "light", "section_name": "Results"},
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "accepted"
    assert payload["text"] == "Figure {fig:flow} demonstrates fouling [2]."
    assert payload["trace"][-1] == "accepted"


def test_health(client):
    assert client.get("/api/health").json() == {"status": "ok"}
