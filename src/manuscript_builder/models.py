"""Data models for manuscript assembly workflows."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional


@dataclass
class Author:
    """A reference author, either structured (family/given) or a literal name."""

    family: str = ""
    given: str = ""
    literal: str = ""

    @property
    def display_family(self) -> str:
        return self.family or self.literal

    def initials(self) -> str:
        parts = [part for part in self.given.replace("-", " ").split() if part]
        return " ".join(f"{part[0]}." for part in parts)

    @classmethod
    def from_csl(cls, data: Mapping[str, Any]) -> "Author":
        return cls(
            family=str(data.get("family") or "").strip(),
            given=str(data.get("given") or "").strip(),
            literal=str(data.get("literal") or "").strip(),
        )

    def to_csl(self) -> Dict[str, str]:
        if self.literal and not self.family:
            return {"literal": self.literal}
        payload = {"family": self.family}
        if self.given:
            payload["given"] = self.given
        return payload


@dataclass
class Reference:
    """A structured bibliographic record."""

    title: str = ""
    authors: List[Author] = field(default_factory=list)
    year: Optional[str] = None
    entry_type: str = "article-journal"
    container_title: Optional[str] = None
    volume: Optional[str] = None
    issue: Optional[str] = None
    pages: Optional[str] = None
    doi: Optional[str] = None
    url: Optional[str] = None
    identifier: Optional[str] = None
    key: str = ""

    @property
    def first_author_family(self) -> str:
        if not self.authors:
            return ""
        return self.authors[0].display_family

    @classmethod
    def from_csl(cls, data: Mapping[str, Any]) -> "Reference":
        """Build a reference from a CSL-JSON item."""
        title = data.get("title") or ""
        if isinstance(title, list):
            title = title[0] if title else ""
        container = data.get("container-title")
        if isinstance(container, list):
            container = container[0] if container else None
        authors = [
            Author.from_csl(author)
            for author in data.get("author") or []
            if isinstance(author, Mapping)
        ]
        return cls(
            title=str(title).strip(),
            authors=authors,
            year=_csl_year(data),
            entry_type=str(data.get("type") or "article-journal"),
            container_title=_optional_str(container),
            volume=_optional_str(data.get("volume")),
            issue=_optional_str(data.get("issue")),
            pages=_optional_str(data.get("page")),
            doi=_optional_str(data.get("DOI")),
            url=_optional_str(data.get("URL")),
            identifier=_optional_str(data.get("id")),
            key=str(data.get("_key") or ""),
        )

    def to_csl(self) -> Dict[str, Any]:
        """Serialize into a CSL-JSON item (the shape style engines consume)."""
        payload: Dict[str, Any] = {
            "id": self.key or self.identifier or self.title,
            "type": self.entry_type or "article-journal",
            "title": self.title,
            "author": [author.to_csl() for author in self.authors],
        }
        if self.year:
            try:
                payload["issued"] = {"date-parts": [[int(self.year)]]}
            except ValueError:
                payload["issued"] = {"literal": self.year}
        optional = {
            "container-title": self.container_title,
            "volume": self.volume,
            "issue": self.issue,
            "page": self.pages,
            "DOI": self.doi,
            "URL": self.url,
        }
        payload.update({name: value for name, value in optional.items() if value})
        return payload


class FigureKind(str, Enum):
    FIGURE = "figure"
    TABLE = "table"


@dataclass
class FigureItem:
    """An entry of the figure/table library."""

    id: str
    kind: FigureKind = FigureKind.FIGURE
    caption: str = ""
    name: str = ""
    image_data: Optional[bytes] = None
    image_type: Optional[str] = None
    rows: List[List[str]] = field(default_factory=list)

    @property
    def label(self) -> str:
        return "Table" if self.kind is FigureKind.TABLE else "Figure"

    def display_caption(self) -> str:
        return self.caption or self.name or "(no caption)"


@dataclass
class Section:
    """A manuscript section holding raw, marker-bearing text."""

    id: str
    name: str
    text: str = ""
    enabled: bool = True
    system: bool = False


@dataclass
class Contributor:
    """A manuscript author as listed in the front matter."""

    name: str
    affiliations: List[int] = field(default_factory=list)
    corresponding: bool = False
    email: Optional[str] = None


@dataclass
class ValidationIssue:
    """Represents a validation finding."""

    code: str
    message: str
    context: Optional[str] = None
    severity: str = "warning"


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _csl_year(data: Mapping[str, Any]) -> Optional[str]:
    issued = data.get("issued")
    if isinstance(issued, Mapping):
        parts = issued.get("date-parts") or []
        if parts and parts[0]:
            return str(parts[0][0])
        if issued.get("year"):
            return str(issued["year"])
    if data.get("year"):
        return str(data["year"])
    return None
