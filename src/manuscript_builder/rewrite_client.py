"""Client side of the external paraphrasing service."""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

import httpx

from .errors import RewriteServiceError
from .payloads import extract_json_object

DEFAULT_API_BASE = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-4o-mini"

SYSTEM_PROMPT = (
    "You subtly vary phrasing, rhythm, and syntax of academic prose while preserving meaning. "
    "Tokens written as <<NAME_000>> are placeholders: copy every one of them exactly once, "
    "unchanged, and never add new ones."
)


class RewriteLevel(str, Enum):
    PROOFREAD = "proofread"
    LIGHT = "light"
    MEDIUM = "medium"
    HEAVY = "heavy"
    STRONGER_1 = "stronger-1"
    STRONGER_2 = "stronger-2"

    @classmethod
    def parse(cls, value: "str | RewriteLevel") -> "RewriteLevel":
        if isinstance(value, cls):
            return value
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            raise ValueError(f"Unknown rewrite level: {value}") from None

    @property
    def instruction(self) -> str:
        return LEVEL_INSTRUCTIONS[self]

    @property
    def temperature(self) -> float:
        return LEVEL_TEMPERATURES[self]


LEVEL_INSTRUCTIONS: Dict[RewriteLevel, str] = {
    RewriteLevel.PROOFREAD: "Correct spelling, grammar and punctuation only. Do not rephrase.",
    RewriteLevel.LIGHT: "Rewrite the text to sound natural and varied (light variation). Keep sentence order.",
    RewriteLevel.MEDIUM: "Rewrite the text to sound natural and varied (medium variation). Vary sentence openings and length.",
    RewriteLevel.HEAVY: "Rewrite the text thoroughly (heavy variation). Restructure sentences freely but keep every claim.",
    RewriteLevel.STRONGER_1: "Rewrite the text with strong variation in rhythm and syntax; merge or split sentences where it helps.",
    RewriteLevel.STRONGER_2: "Rewrite the text with the strongest variation you can while keeping every claim and placeholder.",
}

LEVEL_TEMPERATURES: Dict[RewriteLevel, float] = {
    RewriteLevel.PROOFREAD: 0.0,
    RewriteLevel.LIGHT: 0.5,
    RewriteLevel.MEDIUM: 0.7,
    RewriteLevel.HEAVY: 0.8,
    RewriteLevel.STRONGER_1: 0.9,
    RewriteLevel.STRONGER_2: 1.0,
}


class RewriteService:
    """Black-box paraphraser: text in, text out, or :class:`RewriteServiceError`."""

    def rewrite(self, text: str, level: RewriteLevel, context: Optional[str] = None) -> str:  # pragma: no cover - interface
        raise NotImplementedError


def build_messages(text: str, level: RewriteLevel, context: Optional[str] = None) -> List[Dict[str, str]]:
    prompt = f"{level.instruction} Keep meaning and references intact.\n\n"
    if context:
        prompt += f"Background (do not copy into the output):\n{context.strip()}\n\n"
    prompt += f"Text:\n{text}"
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": prompt},
    ]


class ChatCompletionRewriteService(RewriteService):
    """Calls an OpenAI-compatible ``/chat/completions`` endpoint."""

    def __init__(
        self,
        api_key: Optional[str],
        api_base: str = DEFAULT_API_BASE,
        model: str = DEFAULT_MODEL,
        timeout: float = 60.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.api_key = api_key
        self.api_base = api_base.rstrip("/")
        self.model = model
        self.timeout = timeout
        self._client = client or httpx.Client(timeout=timeout)

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/json",
            "User-Agent": "manuscript-builder/0.1",
        }
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def rewrite(self, text: str, level: RewriteLevel, context: Optional[str] = None) -> str:
        if not self.api_key:
            raise RewriteServiceError("No API key configured for the rewrite service")
        level = RewriteLevel.parse(level)
        payload: Dict[str, Any] = {
            "model": self.model,
            "temperature": level.temperature,
            "messages": build_messages(text, level, context),
        }
        url = f"{self.api_base}/chat/completions"
        try:
            response = self._client.post(url, json=payload, headers=self._headers())
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise RewriteServiceError(
                f"rewrite service returned HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise RewriteServiceError(f"rewrite request failed: {exc}") from exc
        return self._parse_response(response.text)

    @staticmethod
    def _parse_response(body: str) -> str:
        data = extract_json_object(body)
        choices = data.get("choices") or []
        if not choices or not isinstance(choices[0], dict):
            raise RewriteServiceError("rewrite service returned no choices")
        message = choices[0].get("message") or {}
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str):
            raise RewriteServiceError("rewrite service returned no text")
        return content.strip()

    def close(self) -> None:
        self._client.close()


__all__ = [
    "ChatCompletionRewriteService",
    "RewriteLevel",
    "RewriteService",
    "build_messages",
]
