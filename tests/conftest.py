import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT / "src") not in sys.path:
    sys.path.insert(0, str(ROOT / "src"))

import pytest

from manuscript_builder.models import Author, Reference
from manuscript_builder.reference_store import ReferenceCollection


@pytest.fixture()
def references():
    return [
        Reference(
            title="Catalyst screening with graph networks",
            authors=[Author(family="Smith", given="John")],
            year="2020",
            container_title="Journal of Catalysis",
            volume="10",
            issue="2",
            pages="1-10",
            url="https://example.org/smith",
            identifier="smith2020",
        ),
        Reference(
            title="Membrane fouling in practice",
            authors=[Author(family="Lee", given="Ana"), Author(family="Park", given="Min")],
            year="2019",
            container_title="Water Research",
            url="https://example.org/lee",
            identifier="lee2019",
        ),
        Reference(
            title="Heat integration revisited",
            authors=[Author(family="Wang", given="Li")],
            year="2021",
            container_title="Energy",
            url="https://example.org/wang",
            identifier="wang2021",
        ),
        Reference(
            title="Uncited background work",
            authors=[Author(family="Doe", given="Jane")],
            year="2018",
            container_title="Chemical Engineering Science",
            url="https://example.org/doe",
            identifier="doe2018",
        ),
    ]


@pytest.fixture()
def collection(references) -> ReferenceCollection:
    return ReferenceCollection(references)


@pytest.fixture()
def sample_project_data():
    """A small project in the JSON file format."""

    return {
        "title": "Process Intensification Review",
        "style": "ieee",
        "metadata": {
            "authors": [
                {"name": "Ada Byron", "affiliations": [1], "corresponding": True, "email": "ada@example.org"},
                {"name": "Carl Gauss", "affiliations": [1, 2]},
            ],
            "affiliations": ["Dept. of Chemical Engineering", "Institute of Mathematics"],
        },
        "sections": [
            {
                "id": "intro",
                "name": "Introduction",
                "text": "Screening matters {{cite:lee2019}} as shown in {fig:flow}.",
            },
            {
                "id": "results",
                "name": "Results",
                "text": "We confirm {{cite:smith2020,lee2019}} and list values in {tab:yields}.",
            },
            {"id": "notes", "name": "Notes", "text": "Hidden", "enabled": False},
        ],
        "figures": [{"id": "flow", "caption": "Process flow diagram"}],
        "tables": [{"id": "yields", "caption": "Yields", "rows": [["Run", "Yield"], [1, 0.93]]}],
        "references": [
            {
                "id": "smith2020",
                "type": "article-journal",
                "title": "Catalyst screening with graph networks",
                "author": [{"family": "Smith", "given": "John"}],
                "issued": {"date-parts": [[2020]]},
                "container-title": "Journal of Catalysis",
                "URL": "https://example.org/smith",
            },
            {
                "id": "lee2019",
                "type": "article-journal",
                "title": "Membrane fouling in practice",
                "author": [{"family": "Lee", "given": "Ana"}, {"family": "Park", "given": "Min"}],
                "issued": {"date-parts": [[2019]]},
                "container-title": "Water Research",
                "URL": "https://example.org/lee",
            },
        ],
    }
