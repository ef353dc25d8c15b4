from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .discovery import SKILL_FILENAME, SKILLS_DIRNAME
from .errors import FileSystemError, ValidationError
from .frontmatter import parse_front_matter, render_front_matter, split_tags
from .hashing import compute_file_hash
from .validation import DEFAULT_LICENSE, to_skill_name, validate_skill_description, validate_skill_name

logger = logging.getLogger(__name__)

MANIFEST_RELPATH = Path("meta") / "catalog.json"
DEFAULT_SKILL_VERSION = "1.0.0"

_SEMVER_RE = re.compile(r"^\d+\.\d+\.\d+$")

SKILL_BODY_TEMPLATE = """
## What I do

[Describe what this skill does]

## When to use me

[Describe when agents should use this skill]

## Instructions

[Add detailed instructions for agents]
"""

README_TEMPLATE = """# {name}

A catalog of agent skills.

## Structure

```
skills/          # one folder per skill, each with a SKILL.md
  my-skill/
    SKILL.md
README.md
```

## Adding skills

```bash
agent-sync catalog skill add my-skill --description "What it does"
agent-sync catalog validate
```

## Using the catalog

```bash
agent-sync add /path/to/this/catalog
agent-sync add https://github.com/your-org/your-catalog
```
"""


@dataclass(frozen=True)
class InitResult:
    skills_dir_created: bool
    readme_created: bool


def _write_json_atomic(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(data, indent=2, sort_keys=True) + "\n", encoding="utf-8")
    tmp.replace(path)


def _require_catalog(root: Path) -> Path:
    skills_root = root / SKILLS_DIRNAME
    if not skills_root.is_dir():
        raise ValidationError(f"No catalog found in {root}. Run `agent-sync catalog init` first.")
    return skills_root


def init_catalog(root: Path, name: str) -> InitResult:
    skills_root = root / SKILLS_DIRNAME
    readme = root / "README.md"
    skills_created = not skills_root.exists()
    readme_created = not readme.exists()
    try:
        skills_root.mkdir(parents=True, exist_ok=True)
        if readme_created:
            readme.write_text(README_TEMPLATE.format(name=name), encoding="utf-8")
    except OSError as e:
        raise FileSystemError(f"Could not initialize catalog in {root}: {e}") from e
    return InitResult(skills_dir_created=skills_created, readme_created=readme_created)


def add_skill(
    root: Path,
    raw_name: str,
    *,
    description: str | None = None,
    tags: str | list[str] | None = None,
    license_id: str = DEFAULT_LICENSE,
) -> Path:
    skills_root = _require_catalog(root)
    name = to_skill_name(raw_name)
    validate_skill_name(name)
    if name != raw_name.strip().lower():
        logger.debug("Normalized skill name %r -> %r", raw_name, name)

    desc = description if description is not None else f"Skill for {name}"
    validate_skill_description(desc)

    skill_dir = skills_root / name
    if skill_dir.exists():
        raise ValidationError(f'Skill "{name}" already exists')

    fields: dict[str, Any] = {
        "name": name,
        "description": desc,
        "license": license_id or DEFAULT_LICENSE,
        "compatibility": "opencode",
        "metadata": {"tags": ", ".join(split_tags(tags))},
    }
    skill_md = skill_dir / SKILL_FILENAME
    try:
        skill_dir.mkdir(parents=True)
        skill_md.write_text(render_front_matter(fields, SKILL_BODY_TEMPLATE), encoding="utf-8")
    except OSError as e:
        raise FileSystemError(f"Could not create {skill_md}: {e}") from e
    return skill_md


def validate_catalog(root: Path) -> list[str]:
    """
    Check every skill folder of an authored catalog; returns a list of error strings.

    Stricter than discovery: a front-matter name that differs from its folder name, an
    empty body, or a name declared twice are all errors here.
    """
    skills_root = _require_catalog(root)
    errors: list[str] = []
    names: dict[str, str] = {}

    for folder in sorted((p for p in skills_root.iterdir() if p.is_dir()), key=lambda p: p.name):
        folder_name = folder.name
        skill_md = folder / SKILL_FILENAME
        if not skill_md.is_file():
            errors.append(f"{folder_name}: Missing {SKILL_FILENAME} file")
            continue

        try:
            validate_skill_name(folder_name)
        except ValidationError as e:
            errors.append(f"{folder_name}: Invalid folder name - {e}")

        try:
            fm = parse_front_matter(skill_md.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, ValidationError) as e:
            errors.append(f"{folder_name}: Parse error - {e}")
            continue

        name = fm.fields.get("name")
        if not name:
            errors.append(f"{folder_name}: Missing 'name' field in front matter")
        elif not isinstance(name, str):
            errors.append(f"{folder_name}: 'name' must be a string")
        else:
            try:
                validate_skill_name(name)
            except ValidationError as e:
                errors.append(f"{folder_name}: Invalid name - {e}")
            if name != folder_name:
                errors.append(f'{folder_name}: front-matter name "{name}" does not match folder name')
            if name in names:
                errors.append(f'{folder_name}: name "{name}" is already used by {names[name]}')
            else:
                names[name] = folder_name

        description = fm.fields.get("description")
        if not description:
            errors.append(f"{folder_name}: Missing 'description' field in front matter")
        else:
            try:
                validate_skill_description(description)
            except ValidationError as e:
                errors.append(f"{folder_name}: {e}")

        if not fm.body.strip():
            errors.append(f"{folder_name}: No content in {SKILL_FILENAME}")

    return errors


def build_manifest(root: Path, *, catalog_id: str, name: str | None = None, version: str | None = None) -> Path:
    skills_root = _require_catalog(root)
    manifest_path = root / MANIFEST_RELPATH

    existing: dict[str, Any] = {}
    if manifest_path.exists():
        try:
            loaded = json.loads(manifest_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise FileSystemError(f"Could not read existing manifest {manifest_path}: {e}") from e
        if isinstance(loaded, dict):
            existing = loaded

    catalog_version = version or existing.get("version") or DEFAULT_SKILL_VERSION
    if not _SEMVER_RE.match(str(catalog_version)):
        raise ValidationError(f"Version must be in semver format (x.y.z): {catalog_version}")

    previous = existing.get("skills") if isinstance(existing.get("skills"), dict) else {}
    skills: dict[str, Any] = {}
    for folder in sorted((p for p in skills_root.iterdir() if p.is_dir()), key=lambda p: p.name):
        skill_md = folder / SKILL_FILENAME
        if not skill_md.is_file():
            logger.warning("Skipping %s - no %s found", folder.name, SKILL_FILENAME)
            continue
        try:
            fm = parse_front_matter(skill_md.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, ValidationError) as e:
            raise ValidationError(f"{folder.name}: {e}") from e

        prior = previous.get(folder.name) if isinstance(previous.get(folder.name), dict) else {}
        metadata = fm.fields.get("metadata")
        tags = split_tags(metadata.get("tags") if isinstance(metadata, dict) else None) or prior.get("tags", [])
        description = fm.fields.get("description") or prior.get("description") or f"Skill: {folder.name}"
        skills[folder.name] = {
            "hash": compute_file_hash(skill_md),
            "path": f"{SKILLS_DIRNAME}/{folder.name}/{SKILL_FILENAME}",
            "tags": list(tags),
            "description": str(description),
            "version": prior.get("version") or DEFAULT_SKILL_VERSION,
        }

    payload = {
        "id": catalog_id,
        "name": name or existing.get("name") or catalog_id,
        "version": catalog_version,
        "skills": skills,
    }
    try:
        _write_json_atomic(manifest_path, payload)
    except OSError as e:
        raise FileSystemError(f"Could not write {manifest_path}: {e}") from e
    return manifest_path
