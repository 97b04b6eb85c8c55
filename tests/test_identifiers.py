import datetime as dt
import json

from manuscript_builder.identifiers import (
    ArxivResolver,
    CrossrefClient,
    DoiResolver,
    PubMedResolver,
    crossref_to_reference,
    detect_identifier,
    extract_dois,
    resolve_identifier,
)


def _fake_crossref_response() -> str:
    return json.dumps(
        {
            "message": {
                "title": ["Trusted Article Title"],
                "author": [{"family": "Doe", "given": "Jane"}],
                "container-title": ["Journal of Trust"],
                "published-online": {"date-parts": [[2022, 5]]},
                "issued": {"date-parts": [[2021]]},
                "volume": "4",
                "issue": "2",
                "page": "101-110",
                "DOI": "10.5555/Example",
                "type": "journal-article",
            }
        }
    )


def _failing_fetcher(_url, _timeout):
    raise TimeoutError("network unreachable")


def test_doi_resolver_maps_crossref_metadata():
    urls = []

    def fetcher(url, timeout):
        urls.append(url)
        return _fake_crossref_response()

    reference = DoiResolver(CrossrefClient(fetcher=fetcher, mailto="me@example.org")).resolve(
        "https://doi.org/10.5555/Example"
    )

    assert reference.title == "Trusted Article Title"
    assert reference.authors[0].family == "Doe"
    assert reference.year == "2022"
    assert reference.container_title == "Journal of Trust"
    assert reference.pages == "101-110"
    assert reference.doi == "10.5555/Example"
    assert urls == ["https://api.crossref.org/works/10.5555/Example?mailto=me%40example.org"]


def test_doi_resolver_returns_stub_when_lookup_fails():
    reference = DoiResolver(CrossrefClient(fetcher=_failing_fetcher)).resolve("10.1000/missing")

    assert reference.title == "10.1000/missing"
    assert reference.doi == "10.1000/missing"
    assert reference.authors[0].family == "Unknown"
    assert reference.year == str(dt.date.today().year)


def test_crossref_year_falls_back_to_issued_then_created():
    assert crossref_to_reference({"issued": {"date-parts": [[2015]]}}).year == "2015"
    assert crossref_to_reference({"created": {"date-parts": [[2011, 1, 2]]}}).year == "2011"


def test_search_diverse_merges_recent_and_foundational_without_duplicates():
    def fetcher(url, timeout):
        if "until-pub-date" in url:
            items = [
                {"title": ["Old classic"], "DOI": "10.1/old", "issued": {"date-parts": [[2008]]}},
                {"title": ["Shared"], "DOI": "10.1/SHARED", "issued": {"date-parts": [[2014]]}},
            ]
        else:
            items = [{"title": ["Shared"], "DOI": "10.1/shared", "issued": {"date-parts": [[2019]]}}]
        return json.dumps({"message": {"items": items}})

    results = CrossrefClient(fetcher=fetcher).search_diverse("membrane fouling")

    assert [ref.title for ref in results] == ["Shared", "Old classic"]


def test_search_handles_garbled_payload():
    client = CrossrefClient(fetcher=lambda _url, _timeout: "Service unavailable")

    assert client.search("anything") == []


def test_pubmed_resolver_parses_summary():
    payload = json.dumps(
        {
            "result": {
                "uids": ["123456"],
                "123456": {
                    "title": "Enzyme kinetics in flow.",
                    "authors": [{"name": "Smith JA"}, {"name": "Ng K"}],
                    "pubdate": "2018 Mar 4",
                    "fulljournalname": "Biotechnology Journal",
                    "volume": "7",
                    "pages": "11-19",
                    "articleids": [{"idtype": "doi", "value": "10.1002/biot.1"}],
                },
            }
        }
    )

    reference = PubMedResolver(fetcher=lambda _url, _timeout: payload).resolve("PMID: 123456")

    assert reference.title == "Enzyme kinetics in flow"
    assert reference.authors[0].family == "Smith"
    assert reference.authors[0].given == "J A"
    assert reference.year == "2018"
    assert reference.doi == "10.1002/biot.1"
    assert reference.identifier == "pmid:123456"


def test_pubmed_resolver_stub_on_failure():
    reference = PubMedResolver(fetcher=_failing_fetcher).resolve("987")

    assert reference.title == "PMID:987"
    assert reference.container_title == "PubMed"
    assert reference.identifier == "pmid:987"


def test_arxiv_resolver_parses_atom_feed():
    feed = """<?xml version="1.0" encoding="UTF-8"?>
    <feed xmlns="http://www.w3.org/2005/Atom" xmlns:arxiv="http://arxiv.org/schemas/atom">
      <entry>
        <id>http://arxiv.org/abs/2101.01234v2</id>
        <published>2021-01-05T00:00:00Z</published>
        <title>Graph  Networks for
          Reactors</title>
        <author><name>Maria de Souza</name></author>
        <arxiv:doi>10.48550/arXiv.2101.01234</arxiv:doi>
      </entry>
    </feed>"""

    reference = ArxivResolver(fetcher=lambda _url, _timeout: feed).resolve("arXiv:2101.01234v2")

    assert reference.title == "Graph Networks for Reactors"
    assert reference.authors[0].family == "Souza"
    assert reference.authors[0].given == "Maria de"
    assert reference.year == "2021"
    assert reference.identifier == "arxiv:2101.01234v2"


def test_arxiv_resolver_stub_on_malformed_feed():
    reference = ArxivResolver(fetcher=lambda _url, _timeout: "<not xml").resolve("2101.01234")

    assert reference.title == "arXiv:2101.01234"
    assert reference.container_title == "arXiv"


def test_detect_identifier_kinds():
    assert detect_identifier("doi:10.1000/xyz") == ("doi", "10.1000/xyz")
    assert detect_identifier("PMID:42") == ("pmid", "42")
    assert detect_identifier("hep-th/9901001") == ("arxiv", "hep-th/9901001")
    assert detect_identifier("ISBN 978") == ("unknown", "ISBN 978")


def test_resolve_identifier_routes_and_stubs_unknown():
    reference = resolve_identifier(
        "10.5555/Example",
        doi_resolver=DoiResolver(CrossrefClient(fetcher=lambda _url, _timeout: _fake_crossref_response())),
    )
    unknown = resolve_identifier("urn:isbn:0451450523")

    assert reference.title == "Trusted Article Title"
    assert unknown.title == "urn:isbn:0451450523"
    assert unknown.authors[0].family == "Unknown"


def test_extract_dois_strips_trailing_punctuation():
    text = "See 10.1000/abc.123, and (10.1000/XYZ). Again 10.1000/abc.123."

    assert extract_dois(text) == ["10.1000/abc.123", "10.1000/XYZ"]
