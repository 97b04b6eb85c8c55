"""Exporters for the reference collection."""
from __future__ import annotations

import json
import re
from typing import Iterable, List, Optional, Tuple

from .models import Author, Reference

_BIBTEX_TYPES = {
    "article-journal": "article",
    "book": "book",
    "chapter": "incollection",
    "paper-conference": "inproceedings",
    "thesis": "phdthesis",
    "report": "techreport",
}

_RIS_TYPES = {
    "article-journal": "JOUR",
    "book": "BOOK",
    "chapter": "CHAP",
    "paper-conference": "CONF",
    "dataset": "DATA",
    "webpage": "ELEC",
    "report": "RPRT",
}


def to_csl_json(references: Iterable[Reference]) -> str:
    return json.dumps([ref.to_csl() for ref in references], indent=2, ensure_ascii=False)


# (field, attribute) pairs emitted after author/title/container.
_BIBTEX_FIELDS = (("year", "year"), ("volume", "volume"), ("number", "issue"))
_RIS_FIELDS = (("PY", "year"), ("VL", "volume"), ("IS", "issue"))


def to_bibtex(references: Iterable[Reference]) -> str:
    entries = []
    for position, ref in enumerate(references, start=1):
        key = _bibtex_key(ref.key) or f"ref{position}"
        fields: List[Tuple[str, str]] = []
        if ref.authors:
            fields.append(("author", " and ".join(_bibtex_name(author) for author in ref.authors)))
        fields.append(("title", ref.title))
        container = "booktitle" if ref.entry_type in {"chapter", "paper-conference"} else "journal"
        fields.append((container, ref.container_title or ""))
        fields.extend((name, getattr(ref, attr) or "") for name, attr in _BIBTEX_FIELDS)
        fields.append(("pages", (ref.pages or "").replace("–", "--")))
        fields.extend([("doi", ref.doi or ""), ("url", ref.url or "")])
        body = [f"  {name} = {{{value}}}," for name, value in fields if value]
        kind = _BIBTEX_TYPES.get(ref.entry_type, "misc")
        entries.append("\n".join([f"@{kind}{{{key},", *body, "}"]))
    return "\n\n".join(entries)


def to_ris(references: Iterable[Reference]) -> str:
    entries = []
    for ref in references:
        tags: List[Tuple[str, Optional[str]]] = [("TY", _RIS_TYPES.get(ref.entry_type, "GEN"))]
        tags.extend(("AU", _ris_name(author)) for author in ref.authors)
        tags.extend([("TI", ref.title), ("JO", ref.container_title)])
        tags.extend((tag, getattr(ref, attr)) for tag, attr in _RIS_FIELDS)
        if ref.pages:
            start, end = _split_pages(ref.pages)
            tags.extend([("SP", start), ("EP", end)])
        tags.extend([("DO", ref.doi), ("UR", ref.url)])
        lines = [f"{tag}  - {value}" for tag, value in tags if value]
        lines.append("ER  - ")
        entries.append("\n".join(lines))
    return "\n\n".join(entries)


def _bibtex_key(key: str) -> str:
    return re.sub(r"[^A-Za-z0-9_\-:./]", "_", key or "")


def _bibtex_name(author: Author) -> str:
    if author.family:
        return f"{author.family}, {author.given}" if author.given else author.family
    return f"{{{author.literal}}}"


def _ris_name(author: Author) -> str:
    if author.family:
        return f"{author.family}, {author.given}" if author.given else author.family
    return author.literal


def _split_pages(pages: str) -> Tuple[Optional[str], Optional[str]]:
    parts: List[str] = re.split(r"\s*[-–]+\s*", pages.strip(), maxsplit=1)
    if len(parts) == 2:
        return parts[0] or None, parts[1] or None
    return pages.strip() or None, None


__all__ = ["to_bibtex", "to_csl_json", "to_ris"]
