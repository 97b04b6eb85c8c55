"""Runtime configuration read from the environment (and an optional .env file)."""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from .rewrite_client import DEFAULT_API_BASE, DEFAULT_MODEL

LOG_FORMAT = "[%(levelname)s] %(name)s: %(message)s"


class Settings(BaseModel):
    rewrite_api_key: Optional[str] = None
    rewrite_api_base: str = DEFAULT_API_BASE
    rewrite_model: str = DEFAULT_MODEL
    rewrite_timeout: float = Field(60.0, gt=0)
    csl_styles_dir: Optional[Path] = None
    lookup_timeout: float = Field(6.0, gt=0)
    crossref_mailto: Optional[str] = None
    log_level: str = "WARNING"

    @field_validator("rewrite_api_base")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        if not value.startswith(("http://", "https://")):
            raise ValueError("REWRITE_API_BASE must be an http(s) URL")
        return value

    @field_validator("log_level")
    @classmethod
    def known_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value}")
        return level

    @field_validator("rewrite_api_key", "crossref_mailto")
    @classmethod
    def blank_is_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, dotenv: bool = True) -> "Settings":
        if environ is None:
            if dotenv:
                load_dotenv()
            environ = os.environ
        values = {
            "rewrite_api_key": environ.get("REWRITE_API_KEY") or environ.get("OPENAI_API_KEY"),
            "rewrite_api_base": environ.get("REWRITE_API_BASE"),
            "rewrite_model": environ.get("REWRITE_MODEL"),
            "rewrite_timeout": environ.get("REWRITE_TIMEOUT"),
            "csl_styles_dir": environ.get("CSL_STYLES_DIR"),
            "lookup_timeout": environ.get("LOOKUP_TIMEOUT"),
            "crossref_mailto": environ.get("CROSSREF_MAILTO"),
            "log_level": environ.get("MANUSCRIPT_LOG_LEVEL"),
        }
        return cls(**{name: value for name, value in values.items() if value not in (None, "")})


def configure_logging(level: str = "WARNING") -> None:
    """Install one stream handler on the package logger."""
    logger = logging.getLogger("manuscript_builder")
    logger.setLevel(level.upper())
    if not any(getattr(handler, "_manuscript_builder", False) for handler in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._manuscript_builder = True  # type: ignore[attr-defined]
        logger.addHandler(handler)


__all__ = ["Settings", "configure_logging"]
