import pytest

from manuscript_builder.bibliography import BibliographyBuilder
from manuscript_builder.csl import StyleEngine
from manuscript_builder.errors import StyleEngineError
from manuscript_builder.formatter import BibliographyFormatter
from manuscript_builder.models import Author, Reference


class RecordingEngine(StyleEngine):
    name = "recording"

    def __init__(self):
        self.calls = []

    def render(self, style_id, references):
        self.calls.append((style_id, [ref.key for ref in references]))
        return [f"ENGINE {ref.title}" for ref in references]


class BrokenEngine(StyleEngine):
    name = "broken"

    def render(self, style_id, references):
        raise StyleEngineError("style file is unparseable")


def test_numeric_formatter_template():
    entry = Reference(
        title="Catalyst screening.",
        authors=[Author(family="Smith", given="John Paul"), Author(literal="ACME Consortium")],
        year="2020",
        container_title="Journal of Catalysis",
        volume="10",
        issue="2",
        pages="1-10",
        doi="https://doi.org/10.1000/XYZ",
    )

    line = BibliographyFormatter().format(entry, "ieee", label=3)

    assert line == (
        "[3] Smith J. P., ACME Consortium. Catalyst screening. "
        "Journal of Catalysis 10(2):1-10 (2020). doi:10.1000/XYZ"
    )


def test_author_date_formatter_template():
    entry = Reference(
        title="Membrane fouling",
        authors=[Author(family="Lee", given="Ana"), Author(family="Park")],
        year="2019",
        container_title="Water Research",
        url="https://example.org/lee",
    )

    line = BibliographyFormatter().format(entry, "apa-7")

    assert line == "Lee, A.; Park (2019). Membrane fouling. Water Research. https://example.org/lee"


def test_missing_year_renders_nd():
    line = BibliographyFormatter().format_author_date(Reference(title="Untitled draft"))

    assert line == "(n.d.). Untitled draft."


def test_cited_only_numeric_keeps_collection_labels(collection):
    builder = BibliographyBuilder(collection)

    result = builder.build("ieee", ["wang2021", "smith2020"])

    assert [line[:3] for line in result.lines] == ["[1]", "[3]"]
    assert result.used_engine is False


def test_numbering_map_orders_entries(collection):
    builder = BibliographyBuilder(collection)

    labelled = builder.select("ieee", ["wang2021", "lee2019"], {"wang2021": 1, "lee2019": 2})
    full = builder.select("ieee", ["wang2021", "lee2019"], {"wang2021": 1, "lee2019": 2}, cited_only=False)

    assert [(label, entry.key) for label, entry in labelled] == [(1, "wang2021"), (2, "lee2019")]
    assert [(label, entry.key) for label, entry in full][2:] == [(3, "smith2020"), (4, "doe2018")]


def test_author_date_orders_by_first_citation(collection):
    builder = BibliographyBuilder(collection)

    cited = builder.select("icheme-harvard", ["wang2021", "smith2020"])
    full = builder.select("icheme-harvard", ["wang2021"], cited_only=False)

    assert [entry.key for _, entry in cited] == ["wang2021", "smith2020"]
    assert [entry.key for _, entry in full] == ["wang2021", "smith2020", "lee2019", "doe2018"]


def test_engine_used_when_labels_are_contiguous(collection):
    engine = RecordingEngine()
    builder = BibliographyBuilder(collection, engine=engine)

    result = builder.build("ieee", ["lee2019", "smith2020"], {"lee2019": 1, "smith2020": 2}, prefer_engine=True)

    assert result.used_engine is True
    assert result.lines == ["ENGINE Membrane fouling in practice", "ENGINE Catalyst screening with graph networks"]
    assert engine.calls == [("ieee", ["lee2019", "smith2020"])]


def test_engine_skipped_when_labels_have_gaps(collection):
    engine = RecordingEngine()
    builder = BibliographyBuilder(collection, engine=engine)

    result = builder.build("ieee", ["wang2021"], prefer_engine=True)

    assert result.used_engine is False
    assert result.lines[0].startswith("[3] Wang L.")
    assert result.fallback_reason == "engine labels would not match in-text numbers"
    assert engine.calls == []


@pytest.mark.parametrize("engine", [BrokenEngine(), None])
def test_engine_failure_falls_back_to_formatter(collection, engine):
    builder = BibliographyBuilder(collection, engine=engine)

    result = builder.build("apa-7", ["smith2020"], prefer_engine=True)

    assert result.used_engine is False
    assert result.lines == [BibliographyFormatter().format(collection.resolve("smith2020"), "apa-7")]
    assert result.fallback_reason


def test_empty_selection_has_no_lines(collection):
    assert BibliographyBuilder(collection).build("ieee", []).lines == []
