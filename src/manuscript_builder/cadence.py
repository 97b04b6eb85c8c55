"""Deterministic light-touch adjustments applied to masked prose."""
from __future__ import annotations

import re
from typing import List, Optional, Sequence

DEFAULT_OPENERS = ("Notably, ", "In practice, ", "Importantly, ", "In this context, ")
SKIPPED_SECTIONS = ("introduction", "method", "conclusion")

# Sentence starters that are safe to lowercase after an opener.
_COMMON_STARTERS = {
    "a", "an", "the", "this", "these", "that", "those", "we", "our", "it", "its",
    "such", "each", "both", "most", "many", "several", "all", "in", "for", "with",
}

_PARAGRAPH_BREAK = re.compile(r"(\n\s*\n)")
_DUPLICATE_WORD = re.compile(r"\b([A-Za-z]+)(?:\s+\1\b)+", re.IGNORECASE)
_SPACE_BEFORE_PUNCT = re.compile(r"[ \t]+([,.;:!?])")
_MISSING_SPACE_AFTER = re.compile(r"([,;])(?=[A-Za-z])")
_RUNS_OF_SPACES = re.compile(r"[ \t]{2,}")


def collapse_duplicate_words(text: str) -> str:
    return _DUPLICATE_WORD.sub(lambda match: match.group(1), text)


def tidy_punctuation(text: str) -> str:
    text = _SPACE_BEFORE_PUNCT.sub(r"\1", text)
    text = _MISSING_SPACE_AFTER.sub(r"\1 ", text)
    return _RUNS_OF_SPACES.sub(" ", text)


def vary_which_clause(paragraph: str) -> str:
    return paragraph.replace(", which", " — which", 1)


def with_opener(paragraph: str, opener: str) -> Optional[str]:
    """Prefix ``opener`` when the first word is a common starter, else ``None``."""
    stripped = paragraph.lstrip()
    if not stripped:
        return None
    first_word = stripped.split(None, 1)[0]
    if first_word.lower() not in _COMMON_STARTERS or first_word.lower() == first_word:
        return None
    leading = paragraph[: len(paragraph) - len(stripped)]
    return f"{leading}{opener}{stripped[0].lower()}{stripped[1:]}"


class CadencePass:
    """Applies openers, duplicate-word collapsing and punctuation tidying."""

    def __init__(
        self,
        openers: Sequence[str] = DEFAULT_OPENERS,
        skipped_sections: Sequence[str] = SKIPPED_SECTIONS,
    ):
        self.openers = list(openers)
        self.skipped_sections = [name.lower() for name in skipped_sections]

    def allows_openers(self, section_name: Optional[str]) -> bool:
        name = (section_name or "").lower()
        return not any(skipped in name for skipped in self.skipped_sections)

    def apply(self, text: str, section_name: Optional[str] = None) -> str:
        parts: List[str] = _PARAGRAPH_BREAK.split(text or "")
        use_openers = bool(self.openers) and self.allows_openers(section_name)
        rotation = 0
        paragraph_index = 0
        for index in range(0, len(parts), 2):
            paragraph = parts[index]
            if not paragraph.strip():
                continue
            paragraph = collapse_duplicate_words(paragraph)
            paragraph = tidy_punctuation(paragraph)
            paragraph = vary_which_clause(paragraph)
            if use_openers and paragraph_index % 2 == 1:
                varied = with_opener(paragraph, self.openers[rotation % len(self.openers)])
                if varied is not None:
                    paragraph = varied
                    rotation += 1
            parts[index] = paragraph
            paragraph_index += 1
        return "".join(parts)


__all__ = [
    "CadencePass",
    "collapse_duplicate_words",
    "tidy_punctuation",
    "vary_which_clause",
    "with_opener",
]
