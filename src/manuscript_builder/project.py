"""JSON project files: schema, loading and identifier resolution."""
from __future__ import annotations

import base64
import binascii
import json
import logging
import re
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

from pydantic import AliasChoices, BaseModel, Field, ValidationError, field_validator, model_validator

from .assembler import ManuscriptProject
from .errors import ProjectFormatError
from .identifiers import resolve_identifier
from .models import Contributor, FigureItem, FigureKind, Reference, Section
from .reference_store import ReferenceCollection
from .styles import DEFAULT_STYLE, normalize_style

logger = logging.getLogger(__name__)

ITEM_ID_PATTERN = re.compile(r"^[a-z0-9\-_]+$", re.IGNORECASE)
_DATA_URL = re.compile(r"^data:image/(?P<type>[a-z]+);base64,", re.IGNORECASE)
_IMAGE_TYPES = {"png": "png", "jpg": "jpeg", "jpeg": "jpeg"}


class AuthorSpec(BaseModel):
    name: str
    affiliations: List[int] = Field(default_factory=list)
    corresponding: bool = False
    email: Optional[str] = None

    @field_validator("affiliations")
    @classmethod
    def positive_indices(cls, value: List[int]) -> List[int]:
        if any(index < 1 for index in value):
            raise ValueError("affiliation numbers start at 1")
        return value


class MetadataSpec(BaseModel):
    title: str = ""
    authors: List[AuthorSpec] = Field(default_factory=list)
    affiliations: List[str] = Field(default_factory=list)


class SectionSpec(BaseModel):
    id: str
    name: str = ""
    text: str = ""
    enabled: bool = True
    system: bool = False

    @model_validator(mode="after")
    def default_name(self) -> "SectionSpec":
        if not self.name:
            self.name = self.id
        return self


class FigureSpec(BaseModel):
    id: str
    caption: str = ""
    name: str = ""
    image_path: Optional[str] = None
    image_base64: Optional[str] = None
    image_type: Optional[str] = None
    rows: List[List[Any]] = Field(default_factory=list)

    @field_validator("id")
    @classmethod
    def token_safe_id(cls, value: str) -> str:
        if not ITEM_ID_PATTERN.match(value):
            raise ValueError("ids may only contain letters, digits, '-' and '_'")
        return value.lower()


class ProjectSpec(BaseModel):
    title: str = ""
    style: str = Field(DEFAULT_STYLE, validation_alias=AliasChoices("style", "style_id", "styleId"))
    metadata: MetadataSpec = Field(default_factory=MetadataSpec)
    sections: List[SectionSpec] = Field(default_factory=list)
    figures: List[FigureSpec] = Field(default_factory=list)
    tables: List[FigureSpec] = Field(default_factory=list)
    references: List[Dict[str, Any]] = Field(default_factory=list)
    identifiers: List[str] = Field(default_factory=list)

    @field_validator("style")
    @classmethod
    def normalized_style(cls, value: str) -> str:
        return normalize_style(value) or DEFAULT_STYLE

    @model_validator(mode="after")
    def unique_ids(self) -> "ProjectSpec":
        for label, items in (("section", self.sections), ("figure", self.figures), ("table", self.tables)):
            ids = [item.id for item in items]
            duplicates = sorted({item_id for item_id in ids if ids.count(item_id) > 1})
            if duplicates:
                raise ValueError(f"duplicate {label} ids: {', '.join(duplicates)}")
        return self


def load_project(data: Mapping[str, Any], base_dir: Optional[Path] = None) -> ManuscriptProject:
    """Build a project from decoded JSON; image paths resolve against ``base_dir``."""
    if not isinstance(data, Mapping):
        raise ProjectFormatError("Project must be a JSON object")
    try:
        spec = ProjectSpec.model_validate(dict(data))
    except ValidationError as exc:
        raise ProjectFormatError(_describe_validation_error(exc)) from exc

    base = Path(base_dir) if base_dir else Path.cwd()
    metadata = spec.metadata
    try:
        references = ReferenceCollection(Reference.from_csl(item) for item in spec.references)
    except (TypeError, ValueError, AttributeError) as exc:
        raise ProjectFormatError(f"Invalid reference record: {exc}") from exc

    return ManuscriptProject(
        title=spec.title or metadata.title,
        style_id=spec.style,
        sections=[
            Section(id=item.id, name=item.name, text=item.text, enabled=item.enabled, system=item.system)
            for item in spec.sections
        ],
        references=references,
        figures=[_figure_item(item, FigureKind.FIGURE, base) for item in spec.figures],
        tables=[_figure_item(item, FigureKind.TABLE, base) for item in spec.tables],
        contributors=[
            Contributor(
                name=author.name,
                affiliations=list(author.affiliations),
                corresponding=author.corresponding,
                email=author.email,
            )
            for author in metadata.authors
        ],
        affiliations=list(metadata.affiliations),
        identifiers=list(spec.identifiers),
    )


def load_project_file(path: Path) -> ManuscriptProject:
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ProjectFormatError(f"Cannot read project file {path}: {exc}") from exc
    except ValueError as exc:
        raise ProjectFormatError(f"Project file {path} is not valid JSON: {exc}") from exc
    return load_project(data, base_dir=path.parent)


def resolve_project_identifiers(
    project: ManuscriptProject,
    resolver: Callable[[str], Reference] = resolve_identifier,
) -> List[Reference]:
    """Resolve the project's pending identifiers and merge them; returns added entries."""
    resolved = [resolver(identifier) for identifier in project.identifiers]
    added = project.references.merge(resolved)
    logger.info("Resolved %d identifiers, %d new references", len(resolved), len(added))
    return added


def _figure_item(spec: FigureSpec, kind: FigureKind, base_dir: Path) -> FigureItem:
    image_data = None
    image_type = spec.image_type.lower() if spec.image_type else None
    if spec.image_base64:
        encoded = spec.image_base64.strip()
        data_url = _DATA_URL.match(encoded)
        if data_url:
            image_type = image_type or data_url.group("type").lower()
            encoded = encoded[data_url.end():]
        try:
            image_data = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ProjectFormatError(f"{kind.value} '{spec.id}' has invalid base64 image data") from exc
    elif spec.image_path:
        path = Path(spec.image_path)
        if not path.is_absolute():
            path = base_dir / path
        if path.exists():
            image_data = path.read_bytes()
            image_type = image_type or path.suffix.lstrip(".").lower()
        else:
            logger.warning("Image for %s '%s' not found at %s", kind.value, spec.id, path)
    if image_type:
        image_type = _IMAGE_TYPES.get(image_type, image_type)
    return FigureItem(
        id=spec.id,
        kind=kind,
        caption=spec.caption,
        name=spec.name,
        image_data=image_data,
        image_type=image_type,
        rows=[["" if cell is None else str(cell) for cell in row] for row in spec.rows],
    )


def _describe_validation_error(exc: ValidationError) -> str:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())) or "project"
        problems.append(f"{location}: {error.get('msg')}")
    return "Invalid project file: " + "; ".join(problems)


__all__ = [
    "ProjectSpec",
    "load_project",
    "load_project_file",
    "resolve_project_identifiers",
]
