from manuscript_builder.payloads import extract_json_block, extract_json_object, extract_records


def test_whole_payload_decodes():
    assert extract_json_block('{"a": 1}') == {"a": 1}


def test_fenced_block_is_found():
    text = "Here you go:\n```json\n[{\"title\": \"A\"}]\n```\nThanks"

    assert extract_records(text) == [{"title": "A"}]


def test_embedded_object_after_prose():
    text = 'Sure! {"items": [{"title": "B"}, 3]} trailing words'

    assert extract_records(text, key="items") == [{"title": "B"}]


def test_unparseable_payload_yields_empty_results():
    assert extract_json_block("no structure {here") is None
    assert extract_json_object("[1, 2]") == {}
    assert extract_records("") == []
    assert extract_records(None) == []
