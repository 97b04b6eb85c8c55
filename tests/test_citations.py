from manuscript_builder.citations import (
    CitationResolver,
    build_numbering_map,
    compress_ranges,
    parse_marker_keys,
)
from manuscript_builder.models import Author, Reference
from manuscript_builder.reference_store import ReferenceCollection


def _scenario_collection() -> ReferenceCollection:
    return ReferenceCollection(
        [
            Reference(title="Paper A", authors=[Author(family="Smith")], year="2020", identifier="smith2020"),
            Reference(title="Paper B", authors=[Author(family="Jones")], year="2019", identifier="jones2019"),
        ]
    )


def test_numeric_marker_uses_first_appearance_numbers():
    collection = _scenario_collection()
    text = "Prior work {{cite:smith2020,jones2019}} agrees."
    numbering = build_numbering_map([text], collection)

    result = CitationResolver(collection).resolve(text, "ieee", numbering)

    assert numbering == {"smith2020": 1, "jones2019": 2}
    assert result.text == "Prior work [1–2] agrees."
    assert result.used_keys == ["smith2020", "jones2019"]


def test_author_date_marker_lists_family_and_year():
    collection = _scenario_collection()

    result = CitationResolver(collection).resolve("{{cite:smith2020,jones2019}}", "apa-7")

    assert result.text == "(Smith, 2020; Jones, 2019)"


def test_author_date_uses_et_al_for_multiple_authors(collection):
    result = CitationResolver(collection).resolve("See {{cite:lee2019}}.", "chicago-ad")

    assert result.text == "See (Lee et al., 2019)."


def test_numbering_map_is_contiguous_across_sections(collection):
    texts = [
        "Intro {{cite:wang2021}} and {{cite:unknown,lee2019}}.",
        "Results {{cite:lee2019, smith2020}} then {{cite:wang2021}}.",
    ]

    numbering = build_numbering_map(texts, collection)

    assert numbering == {"wang2021": 1, "lee2019": 2, "smith2020": 3}
    assert sorted(numbering.values()) == list(range(1, len(numbering) + 1))


def test_range_compression():
    assert compress_ranges([1, 2, 3, 5, 6]) == "1–3, 5–6"
    assert compress_ranges([5, 3, 1]) == "1, 3, 5"
    assert compress_ranges([4, 4]) == "4"


def test_unknown_keys_are_dropped_silently(collection):
    resolver = CitationResolver(collection)

    only_unknown = resolver.resolve("Text {{cite:ghost}}.", "ieee")
    mixed = resolver.resolve("Text {{cite:ghost,wang2021}}.", "ieee")

    assert only_unknown.text == "Text ."
    assert only_unknown.used_keys == []
    assert mixed.text == "Text [3]."
    assert mixed.used_keys == ["wang2021"]


def test_numeric_without_map_uses_collection_position(collection):
    result = CitationResolver(collection).resolve("{{cite:doe2018,smith2020,lee2019}}", "vancouver")

    assert result.text == "[1–2, 4]"


def test_duplicate_keys_within_marker_are_collapsed(collection):
    assert parse_marker_keys(" Smith2020 ,smith2020,lee2019") == ["smith2020", "lee2019"]
    result = CitationResolver(collection).resolve("{{cite:smith2020,smith2020}}", "ieee", {"smith2020": 1})
    assert result.text == "[1]"


def test_unknown_style_behaves_as_numeric(collection):
    result = CitationResolver(collection).resolve("{{CITE:lee2019}}", "my-house-style")

    assert result.text == "[2]"
