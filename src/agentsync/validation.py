from __future__ import annotations

import re
from pathlib import Path
from typing import Any

from .errors import ValidationError

SKILL_NAME_MAX_LENGTH = 64
SKILL_DESCRIPTION_MIN_LENGTH = 1
SKILL_DESCRIPTION_MAX_LENGTH = 1024
DEFAULT_LICENSE = "MIT"

_SKILL_NAME_RE = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$")


def validate_skill_name(name: Any) -> str:
    if not isinstance(name, str) or not name:
        raise ValidationError("Skill name cannot be empty")
    if len(name) > SKILL_NAME_MAX_LENGTH:
        raise ValidationError(f"Skill name must be 1-{SKILL_NAME_MAX_LENGTH} characters")
    if not _SKILL_NAME_RE.match(name):
        raise ValidationError(
            'Skill name must be lowercase alphanumeric with single hyphen separators (e.g., "my-skill")'
        )
    return name


def validate_skill_description(description: Any) -> str:
    if not isinstance(description, str) or len(description) < SKILL_DESCRIPTION_MIN_LENGTH:
        raise ValidationError("Description cannot be empty")
    if len(description) > SKILL_DESCRIPTION_MAX_LENGTH:
        raise ValidationError(
            f"Description must be {SKILL_DESCRIPTION_MIN_LENGTH}-{SKILL_DESCRIPTION_MAX_LENGTH} characters"
        )
    return description


def validate_front_matter(fields: dict[str, Any]) -> tuple[str, str]:
    name = fields.get("name")
    description = fields.get("description")
    if not isinstance(name, str) or not name:
        raise ValidationError('Missing or invalid "name" field in front matter')
    if not isinstance(description, str) or not description:
        raise ValidationError('Missing or invalid "description" field in front matter')
    try:
        validate_skill_name(name)
    except ValidationError as e:
        raise ValidationError(f"Invalid name: {e}") from e
    try:
        validate_skill_description(description)
    except ValidationError as e:
        raise ValidationError(f"Invalid description: {e}") from e
    return name, description


def validate_path_exists(path: Path) -> None:
    if not Path(path).exists():
        raise ValidationError(f"Path does not exist: {path}")


def validate_skills_directory(catalog_root: Path) -> None:
    if not (Path(catalog_root) / "skills").is_dir():
        raise ValidationError("Catalog does not have a skills/ directory")


def validate_catalog_not_registered(catalog_id: str, catalogs: dict[str, Any]) -> None:
    if catalog_id in catalogs:
        raise ValidationError(f'Catalog "{catalog_id}" is already registered')


def to_skill_name(raw: str) -> str:
    lowered = raw.strip().lower()
    collapsed = re.sub(r"[^a-z0-9]+", "-", lowered)
    return collapsed.strip("-")
