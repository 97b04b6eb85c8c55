import base64
import json

import pytest

from manuscript_builder.errors import ProjectFormatError
from manuscript_builder.models import Reference
from manuscript_builder.project import load_project, load_project_file, resolve_project_identifiers

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00\x00\x00\rIHDR" + (64).to_bytes(4, "big") + (32).to_bytes(4, "big")


def test_load_project_builds_domain_objects(sample_project_data):
    project = load_project(sample_project_data)

    assert project.title == "Process Intensification Review"
    assert project.style_id == "ieee"
    assert [section.id for section in project.sections] == ["intro", "results", "notes"]
    assert project.sections[2].enabled is False
    assert project.references.keys() == ["smith2020", "lee2019"]
    assert project.tables[0].rows == [["Run", "Yield"], ["1", "0.93"]]
    assert project.contributors[0].corresponding is True
    assert project.affiliations[1] == "Institute of Mathematics"


def test_style_aliases_and_section_name_default():
    project = load_project({"styleId": " APA-7 ", "sections": [{"id": "abstract"}]})

    assert project.style_id == "apa-7"
    assert project.sections[0].name == "abstract"


def test_duplicate_ids_rejected():
    with pytest.raises(ProjectFormatError, match="duplicate section ids: a"):
        load_project({"sections": [{"id": "a"}, {"id": "a"}]})


def test_invalid_figure_id_rejected():
    with pytest.raises(ProjectFormatError, match="figures.0.id"):
        load_project({"figures": [{"id": "has space"}]})


def test_non_mapping_rejected():
    with pytest.raises(ProjectFormatError):
        load_project(["not", "an", "object"])


def test_base64_images_are_decoded():
    encoded = "data:image/png;base64," + base64.b64encode(PNG_BYTES).decode()

    project = load_project({"figures": [{"id": "Plot", "image_base64": encoded}]})

    figure = project.figures[0]
    assert figure.id == "plot"
    assert figure.image_data == PNG_BYTES
    assert figure.image_type == "png"


def test_invalid_base64_rejected():
    with pytest.raises(ProjectFormatError, match="invalid base64"):
        load_project({"figures": [{"id": "plot", "image_base64": "***"}]})


def test_image_paths_resolve_against_project_dir(tmp_path, sample_project_data):
    (tmp_path / "flow.jpg").write_bytes(b"\xff\xd8fake")
    sample_project_data["figures"][0]["image_path"] = "flow.jpg"
    path = tmp_path / "project.json"
    path.write_text(json.dumps(sample_project_data))

    project = load_project_file(path)

    assert project.figures[0].image_data == b"\xff\xd8fake"
    assert project.figures[0].image_type == "jpeg"


def test_load_project_file_errors(tmp_path):
    broken = tmp_path / "broken.json"
    broken.write_text("{not json")

    with pytest.raises(ProjectFormatError, match="not valid JSON"):
        load_project_file(broken)
    with pytest.raises(ProjectFormatError, match="Cannot read"):
        load_project_file(tmp_path / "missing.json")


def test_resolve_project_identifiers_merges_new_entries(sample_project_data):
    sample_project_data["identifiers"] = ["10.1000/new", "10.1000/NEW"]
    project = load_project(sample_project_data)
    seen = []

    def resolver(identifier):
        seen.append(identifier)
        return Reference(title="Resolved", doi=identifier)

    added = resolve_project_identifiers(project, resolver=resolver)

    assert seen == ["10.1000/new", "10.1000/NEW"]
    assert [entry.key for entry in added] == ["doi:10.1000/new"]
    assert project.references.keys()[-1] == "doi:10.1000/new"
