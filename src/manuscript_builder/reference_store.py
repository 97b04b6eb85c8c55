"""Deduplicated, insertion-ordered reference collection."""
from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional

from .models import Reference
from .normalization import normalize_doi, normalize_key, normalize_text

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = frozenset(
    {
        "title",
        "authors",
        "year",
        "entry_type",
        "container_title",
        "volume",
        "issue",
        "pages",
        "url",
    }
)


def derive_key(reference: Reference) -> str:
    """Return the deduplication key: DOI, then explicit id, then title."""
    doi = normalize_doi(reference.doi)
    if doi:
        return f"doi:{doi}"
    identifier = normalize_key(reference.identifier)
    if identifier:
        return identifier
    title = normalize_text(reference.title)
    if title:
        return f"title:{title}"
    return f"tmp:{uuid.uuid4().hex}"


class ReferenceCollection:
    """Holds references keyed by their derived key.

    Insertion order is significant: numeric styles number against it when no
    renumbering map is supplied, so existing entries are never reordered.
    """

    def __init__(self, references: Iterable[Reference] = ()):
        self._entries: List[Reference] = []
        self._by_key: Dict[str, Reference] = {}
        self.merge(references)

    @classmethod
    def from_csl(cls, items: Iterable[Mapping[str, Any]]) -> "ReferenceCollection":
        return cls(Reference.from_csl(item) for item in items)

    def merge(self, new_entries: Iterable[Reference]) -> List[Reference]:
        """Append entries whose key is unseen; return the entries actually added."""
        added: List[Reference] = []
        for entry in new_entries:
            key = normalize_key(entry.key) or derive_key(entry)
            if key in self._by_key:
                logger.debug("Discarding duplicate reference %s", key)
                continue
            stored = replace(entry, key=key)
            self._entries.append(stored)
            self._by_key[key] = stored
            added.append(stored)
        return added

    def resolve(self, key: str) -> Optional[Reference]:
        return self._by_key.get(normalize_key(key))

    def remove(self, key: str) -> bool:
        """Drop an entry; markers naming it resolve to nothing afterwards."""
        entry = self._by_key.pop(normalize_key(key), None)
        if entry is None:
            return False
        self._entries.remove(entry)
        return True

    def update(self, key: str, /, **changes: Any) -> Reference:
        """Apply a manual correction in place; key and position stay stable."""
        entry = self.resolve(key)
        if entry is None:
            raise KeyError(key)
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")
        for name, value in changes.items():
            setattr(entry, name, value)
        return entry

    def position(self, key: str) -> Optional[int]:
        """Return the 1-based insertion position of a key."""
        entry = self.resolve(key)
        if entry is None:
            return None
        return self._entries.index(entry) + 1

    def keys(self) -> List[str]:
        return [entry.key for entry in self._entries]

    def to_csl(self) -> List[Dict[str, Any]]:
        return [entry.to_csl() for entry in self._entries]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and normalize_key(key) in self._by_key

    def __iter__(self) -> Iterator[Reference]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)


__all__ = ["ReferenceCollection", "derive_key"]
