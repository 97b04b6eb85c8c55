"""Identifier resolution (DOI, PubMed, arXiv) and Crossref discovery helpers.

Resolvers never raise: when a lookup cannot be completed they return a stub
record whose title is the identifier, with author "Unknown" and the current
year, so citing never depends on a metadata service being reachable.
"""
from __future__ import annotations

import datetime as dt
import logging
import re
import urllib.parse
import xml.etree.ElementTree as ET
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

import httpx

from .models import Author, Reference
from .normalization import strip_doi_prefix
from .payloads import extract_json_object

logger = logging.getLogger(__name__)

Fetcher = Callable[[str, float], str]

CROSSREF_API = "https://api.crossref.org/works"
PUBMED_SUMMARY_API = "https://eutils.ncbi.nlm.nih.gov/entrez/eutils/esummary.fcgi"
ARXIV_API = "https://export.arxiv.org/api/query"
SEARCH_FIELDS = "DOI,title,author,issued,published-print,published-online,created,container-title,URL,volume,issue,page,type"

DOI_IN_TEXT_PATTERN = re.compile(r"\b10\.\d{4,9}/[^\s\"'<>()]+", re.IGNORECASE)
DOI_PATTERN = re.compile(r"^10\.\d{4,9}/\S+$")
PMID_PATTERN = re.compile(r"^(?:pmid:\s*)?(\d{1,9})$", re.IGNORECASE)
ARXIV_PATTERN = re.compile(
    r"^(?:arxiv:\s*)?(\d{4}\.\d{4,5}(?:v\d+)?|[a-z\-]+(?:\.[A-Z]{2})?/\d{7}(?:v\d+)?)$",
    re.IGNORECASE,
)

_ATOM = {"atom": "http://www.w3.org/2005/Atom", "arxiv": "http://arxiv.org/schemas/atom"}


def http_get(url: str, timeout: float) -> str:
    headers = {"User-Agent": "manuscript-builder/0.1"}
    try:
        response = httpx.get(url, timeout=timeout, headers=headers, follow_redirects=True)
        response.raise_for_status()
    except httpx.HTTPError:  # pragma: no cover - network failure path
        return ""
    return response.text


def _current_year() -> str:
    return str(dt.date.today().year)


def stub_reference(identifier: str, container: Optional[str] = None, key: str = "") -> Reference:
    """Minimal record used whenever a lookup cannot be completed."""
    return Reference(
        title=identifier,
        authors=[Author(family="Unknown")],
        year=_current_year(),
        container_title=container,
        identifier=key or identifier,
    )


def extract_dois(text: Optional[str]) -> List[str]:
    """Return the distinct DOIs in free text, trailing punctuation removed."""
    found: List[str] = []
    for match in DOI_IN_TEXT_PATTERN.finditer(text or ""):
        doi = re.sub(r"[).,;]+$", "", match.group(0))
        if doi not in found:
            found.append(doi)
    return found


def _date_year(value: Any) -> Optional[str]:
    if isinstance(value, Mapping):
        parts = value.get("date-parts") or []
        if parts and parts[0] and parts[0][0]:
            return str(parts[0][0])
    return None


def crossref_to_reference(message: Mapping[str, Any]) -> Reference:
    """Map a Crossref work (``message`` or a search item) onto a Reference."""

    def first_value(value):
        if isinstance(value, list):
            return value[0] if value else None
        return value

    year = None
    for field_name in ("published-print", "published-online", "issued", "created"):
        year = _date_year(message.get(field_name))
        if year:
            break

    authors = [
        Author(family=str(item.get("family") or ""), given=str(item.get("given") or ""),
               literal=str(item.get("name") or ""))
        for item in message.get("author") or []
        if isinstance(item, Mapping)
    ]
    return Reference(
        title=str(first_value(message.get("title")) or ""),
        authors=authors,
        year=year or _current_year(),
        entry_type=str(message.get("type") or "article-journal"),
        container_title=first_value(message.get("container-title")) or None,
        volume=message.get("volume"),
        issue=message.get("issue"),
        pages=message.get("page"),
        doi=message.get("DOI"),
        url=message.get("URL"),
    )


class CrossrefClient:
    """Minimal client for the Crossref works API."""

    def __init__(
        self,
        fetcher: Optional[Fetcher] = None,
        timeout: float = 6.0,
        mailto: Optional[str] = None,
    ):
        self.fetcher = fetcher or http_get
        self.timeout = timeout
        self.mailto = mailto

    def lookup_doi(self, doi: str) -> Optional[Reference]:
        bare = strip_doi_prefix(doi)
        if not bare:
            return None
        url = f"{CROSSREF_API}/{urllib.parse.quote(bare, safe='/')}"
        message = self._fetch(self._with_mailto(url)).get("message")
        if not isinstance(message, dict) or not message:
            return None
        return crossref_to_reference(message)

    def search(
        self,
        query: str,
        rows: int = 5,
        from_date: Optional[str] = None,
        until_date: Optional[str] = None,
    ) -> List[Reference]:
        filters = ["type:journal-article"]
        if from_date:
            filters.append(f"from-pub-date:{from_date}")
        if until_date:
            filters.append(f"until-pub-date:{until_date}")
        params = {
            "query": query,
            "rows": str(rows),
            "select": SEARCH_FIELDS,
            "sort": "score",
            "order": "desc",
            "filter": ",".join(filters),
        }
        url = f"{CROSSREF_API}?{urllib.parse.urlencode(params)}"
        message = self._fetch(self._with_mailto(url)).get("message")
        items = message.get("items") if isinstance(message, dict) else None
        return [crossref_to_reference(item) for item in items or [] if isinstance(item, dict)]

    def search_diverse(self, query: str, rows_recent: int = 4, rows_old: int = 3) -> List[Reference]:
        """Recent (2018 onwards) plus foundational (2005-2015) works, deduplicated."""
        recent = self.search(query, rows_recent, from_date="2018-01-01")
        foundational = self.search(query, rows_old, from_date="2005-01-01", until_date="2015-12-31")
        results: List[Reference] = []
        seen = set()
        for reference in recent + foundational:
            marker = f"doi:{reference.doi}" if reference.doi else reference.title
            marker = marker.lower()
            if marker and marker in seen:
                continue
            seen.add(marker)
            results.append(reference)
        return results

    def _with_mailto(self, url: str) -> str:
        if not self.mailto:
            return url
        separator = "&" if "?" in url else "?"
        return f"{url}{separator}mailto={urllib.parse.quote(self.mailto)}"

    def _fetch(self, url: str) -> Dict[str, Any]:
        try:
            payload = self.fetcher(url, self.timeout)
        except Exception as exc:
            logger.warning("Crossref request failed for %s: %s", url, exc)
            return {}
        return extract_json_object(payload)


class IdentifierResolver:
    """Base interface: identifier string -> Reference (or a stub)."""

    name: str = "base"

    def resolve(self, identifier: str) -> Reference:  # pragma: no cover - interface
        raise NotImplementedError


class DoiResolver(IdentifierResolver):
    name = "doi"

    def __init__(self, client: Optional[CrossrefClient] = None):
        self.client = client or CrossrefClient()

    def resolve(self, identifier: str) -> Reference:
        doi = strip_doi_prefix(identifier)
        try:
            reference = self.client.lookup_doi(doi)
        except Exception as exc:
            logger.warning("DOI lookup failed for %s: %s", doi, exc)
            reference = None
        if reference is None:
            logger.info("Using stub record for DOI %s", doi)
            stub = stub_reference(doi)
            stub.doi = doi
            return stub
        if not reference.doi:
            reference.doi = doi
        return reference


class PubMedResolver(IdentifierResolver):
    """Looks PMIDs up through NCBI E-utilities ``esummary``."""

    name = "pubmed"

    def __init__(self, fetcher: Optional[Fetcher] = None, timeout: float = 6.0):
        self.fetcher = fetcher or http_get
        self.timeout = timeout

    def resolve(self, identifier: str) -> Reference:
        match = PMID_PATTERN.match(identifier.strip())
        pmid = match.group(1) if match else identifier.strip()
        key = f"pmid:{pmid}"
        url = f"{PUBMED_SUMMARY_API}?{urllib.parse.urlencode({'db': 'pubmed', 'id': pmid, 'retmode': 'json'})}"
        try:
            payload = self.fetcher(url, self.timeout)
        except Exception as exc:
            logger.warning("PubMed lookup failed for %s: %s", pmid, exc)
            payload = ""
        record = (extract_json_object(payload).get("result") or {}).get(pmid)
        if not isinstance(record, dict) or not record.get("title"):
            return stub_reference(f"PMID:{pmid}", container="PubMed", key=key)
        return self._to_reference(record, key)

    @staticmethod
    def _to_reference(record: Mapping[str, Any], key: str) -> Reference:
        authors = []
        for item in record.get("authors") or []:
            name = str(item.get("name") or "").strip() if isinstance(item, Mapping) else ""
            if not name:
                continue
            family, _, initials = name.partition(" ")
            authors.append(Author(family=family, given=" ".join(initials)))
        year_match = re.search(r"\d{4}", str(record.get("pubdate") or ""))
        doi = next(
            (
                item.get("value")
                for item in record.get("articleids") or []
                if isinstance(item, Mapping) and item.get("idtype") == "doi"
            ),
            None,
        )
        return Reference(
            title=str(record.get("title") or "").strip().rstrip("."),
            authors=authors,
            year=year_match.group(0) if year_match else _current_year(),
            container_title=record.get("fulljournalname") or record.get("source") or None,
            volume=record.get("volume") or None,
            issue=record.get("issue") or None,
            pages=record.get("pages") or None,
            doi=doi,
            identifier=key,
        )


class ArxivResolver(IdentifierResolver):
    """Looks arXiv ids up through the Atom query API."""

    name = "arxiv"

    def __init__(self, fetcher: Optional[Fetcher] = None, timeout: float = 6.0):
        self.fetcher = fetcher or http_get
        self.timeout = timeout

    def resolve(self, identifier: str) -> Reference:
        match = ARXIV_PATTERN.match(identifier.strip())
        arxiv_id = match.group(1) if match else identifier.strip()
        key = f"arxiv:{arxiv_id.lower()}"
        url = f"{ARXIV_API}?{urllib.parse.urlencode({'id_list': arxiv_id})}"
        try:
            payload = self.fetcher(url, self.timeout)
            reference = self._parse_atom(payload, key)
        except Exception as exc:
            logger.warning("arXiv lookup failed for %s: %s", arxiv_id, exc)
            reference = None
        if reference is None:
            return stub_reference(f"arXiv:{arxiv_id}", container="arXiv", key=key)
        return reference

    @staticmethod
    def _parse_atom(payload: str, key: str) -> Optional[Reference]:
        if not payload:
            return None
        root = ET.fromstring(payload)
        entry = root.find("atom:entry", _ATOM)
        if entry is None:
            return None
        title = " ".join((entry.findtext("atom:title", "", _ATOM) or "").split())
        if not title or title.lower() == "error":
            return None
        authors = []
        for name in entry.findall("atom:author/atom:name", _ATOM):
            given, _, family = (name.text or "").strip().rpartition(" ")
            authors.append(Author(family=family, given=given))
        published = entry.findtext("atom:published", "", _ATOM) or ""
        abs_url = entry.findtext("atom:id", "", _ATOM) or None
        return Reference(
            title=title,
            authors=authors,
            year=published[:4] or _current_year(),
            container_title="arXiv",
            doi=entry.findtext("arxiv:doi", None, _ATOM),
            url=abs_url,
            identifier=key,
        )


def detect_identifier(value: str) -> Tuple[str, str]:
    """Classify an identifier as ``doi``, ``pmid``, ``arxiv`` or ``unknown``."""
    text = (value or "").strip()
    bare_doi = strip_doi_prefix(text)
    if DOI_PATTERN.match(bare_doi):
        return "doi", bare_doi
    pmid = PMID_PATTERN.match(text)
    if pmid:
        return "pmid", pmid.group(1)
    arxiv = ARXIV_PATTERN.match(text)
    if arxiv:
        return "arxiv", arxiv.group(1)
    return "unknown", text


def resolve_identifier(
    value: str,
    doi_resolver: Optional[IdentifierResolver] = None,
    pubmed_resolver: Optional[IdentifierResolver] = None,
    arxiv_resolver: Optional[IdentifierResolver] = None,
) -> Reference:
    kind, identifier = detect_identifier(value)
    if kind == "doi":
        return (doi_resolver or DoiResolver()).resolve(identifier)
    if kind == "pmid":
        return (pubmed_resolver or PubMedResolver()).resolve(identifier)
    if kind == "arxiv":
        return (arxiv_resolver or ArxivResolver()).resolve(identifier)
    logger.info("Unrecognised identifier %r; using stub record", value)
    return stub_reference(identifier)


__all__ = [
    "ArxivResolver",
    "CrossrefClient",
    "DoiResolver",
    "IdentifierResolver",
    "PubMedResolver",
    "crossref_to_reference",
    "detect_identifier",
    "extract_dois",
    "resolve_identifier",
    "stub_reference",
]
