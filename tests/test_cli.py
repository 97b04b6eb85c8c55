import json
import zipfile
from pathlib import Path

import pytest

from manuscript_builder import cli


@pytest.fixture(autouse=True)
def no_rewrite_credentials(monkeypatch):
    for name in ("REWRITE_API_KEY", "OPENAI_API_KEY", "MANUSCRIPT_LOG_LEVEL", "CSL_STYLES_DIR"):
        monkeypatch.delenv(name, raising=False)


def _write_project(tmp_path: Path, data) -> Path:
    path = tmp_path / "project.json"
    path.write_text(json.dumps(data))
    return path


def test_cli_writes_outputs(tmp_path: Path, sample_project_data):
    project = _write_project(tmp_path, sample_project_data)

    text_out = tmp_path / "manuscript.txt"
    json_out = tmp_path / "results.json"
    docx_out = tmp_path / "manuscript.docx"
    bib_out = tmp_path / "refs.bib"
    ris_out = tmp_path / "refs.ris"
    csl_out = tmp_path / "refs.json"

    exit_code = cli.main(
        [
            str(project),
            "--output",
            str(text_out),
            "--json-output",
            str(json_out),
            "--docx-output",
            str(docx_out),
            "--bibtex-output",
            str(bib_out),
            "--ris-output",
            str(ris_out),
            "--csl-json-output",
            str(csl_out),
        ]
    )

    assert exit_code == 0
    text = text_out.read_text()
    assert "We confirm [1–2] and list values in Table 1." in text
    assert "{tab:yields}" not in text

    result = json.loads(json_out.read_text())
    assert result["mode"] == "structured-export"
    assert result["numbering"] == {"lee2019": 1, "smith2020": 2}
    assert isinstance(result["issues"], list)

    assert zipfile.is_zipfile(docx_out)
    assert "@article{smith2020," in bib_out.read_text()
    assert "TY  - JOUR" in ris_out.read_text()
    assert {item["id"] for item in json.loads(csl_out.read_text())} == {"smith2020", "lee2019"}


def test_cli_prints_manuscript_and_check_report(tmp_path: Path, sample_project_data, capsys):
    project = _write_project(tmp_path, sample_project_data)

    exit_code = cli.main([str(project), "--style", "apa-7", "--check"])

    out = capsys.readouterr().out
    assert exit_code == 0
    assert "We confirm (Smith, 2020; Lee et al., 2019)" in out
    assert "Manuscript Check Report" in out


def test_cli_rejects_malformed_project(tmp_path: Path, capsys):
    project = tmp_path / "broken.json"
    project.write_text("{not json")

    assert cli.main([str(project)]) == 2
    assert "not valid JSON" in capsys.readouterr().err


def test_cli_rewrite_requires_credentials(tmp_path: Path, sample_project_data, capsys):
    project = _write_project(tmp_path, sample_project_data)

    assert cli.main([str(project), "--rewrite", "light"]) == 2
    assert "REWRITE_API_KEY" in capsys.readouterr().err
