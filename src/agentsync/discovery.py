from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlsplit

from .errors import DuplicateSkillError, FileSystemError, ValidationError
from .frontmatter import parse_front_matter, split_tags
from .validation import DEFAULT_LICENSE, validate_front_matter

logger = logging.getLogger(__name__)

SKILL_FILENAME = "SKILL.md"
SKILLS_DIRNAME = "skills"

_GIT_URL_RE = re.compile(r"^(https?://|git://|git@|ssh://)", re.IGNORECASE)
_GITHUB_RE = re.compile(r"github\.com[/:]([^/]+/[^/]+?)(?:\.git)?/?$", re.IGNORECASE)
_SCP_RE = re.compile(r"^git@[^:]+:(.+?)(?:\.git)?/?$", re.IGNORECASE)


@dataclass(frozen=True)
class DiscoveredSkill:
    name: str
    description: str
    tags: tuple[str, ...]
    source_path: Path
    folder_name: str
    license: str = DEFAULT_LICENSE
    compatibility: str | None = None


def read_skill_file(skill_md: Path, *, folder_name: str | None = None) -> DiscoveredSkill:
    try:
        text = skill_md.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise FileSystemError(f"Could not read {skill_md}: {e}") from e

    fm = parse_front_matter(text)
    name, description = validate_front_matter(fm.fields)

    metadata = fm.fields.get("metadata")
    raw_tags = metadata.get("tags") if isinstance(metadata, dict) else None
    license_value = fm.fields.get("license")
    compatibility = fm.fields.get("compatibility")

    return DiscoveredSkill(
        name=name,
        description=description,
        tags=tuple(split_tags(raw_tags)),
        source_path=skill_md.resolve(),
        folder_name=folder_name if folder_name is not None else skill_md.parent.name,
        license=str(license_value) if license_value else DEFAULT_LICENSE,
        compatibility=str(compatibility) if compatibility is not None else None,
    )


def _skill_folders(skills_root: Path) -> list[Path]:
    try:
        children = list(skills_root.iterdir())
    except OSError as e:
        raise FileSystemError(f"Could not list {skills_root}: {e}") from e
    return sorted((p for p in children if p.is_dir()), key=lambda p: p.name)


def discover_skills(catalog_root: Path) -> dict[str, DiscoveredSkill]:
    """
    Scan ``<catalog_root>/skills/*/SKILL.md`` and return skills keyed by front-matter name.

    Folders without a SKILL.md, or whose front matter fails validation, are skipped.
    Two folders declaring the same name reject the whole catalog with DuplicateSkillError.
    """
    catalog_root = Path(catalog_root)
    skills_root = catalog_root / SKILLS_DIRNAME
    skills: dict[str, DiscoveredSkill] = {}

    if not skills_root.is_dir():
        logger.debug("No skills directory found in %s", catalog_root)
        return skills

    for folder in _skill_folders(skills_root):
        skill_md = folder / SKILL_FILENAME
        if not skill_md.is_file():
            logger.debug("No %s found in %s, skipping", SKILL_FILENAME, folder.name)
            continue

        try:
            skill = read_skill_file(skill_md, folder_name=folder.name)
        except (ValidationError, FileSystemError) as e:
            logger.warning("Skipping skill folder %s: %s", folder.name, e)
            continue

        existing = skills.get(skill.name)
        if existing is not None:
            raise DuplicateSkillError(
                f'Skill name "{skill.name}" is declared by both skills/{existing.folder_name} '
                f"and skills/{skill.folder_name} in {catalog_root}"
            )
        if skill.name != folder.name:
            logger.warning(
                'Skill "%s" lives in folder "%s"; folder and front-matter names should match',
                skill.name,
                folder.name,
            )

        skills[skill.name] = skill
        logger.debug("Discovered skill %s from %s", skill.name, folder.name)

    return skills


def is_git_url(value: str) -> bool:
    return bool(_GIT_URL_RE.match(value.strip()))


def normalize_git_url(url: str) -> str:
    normalized = url.strip()
    if not _GIT_URL_RE.match(normalized):
        normalized = f"https://{normalized}"
    if not normalized.endswith(".git"):
        normalized = f"{normalized.rstrip('/')}.git"
    return normalized


def extract_catalog_id(path_or_url: str) -> str:
    """
    Derive a catalog id: ``owner/repo`` for GitHub and scp-style remotes, the last
    URL segment for other remotes, and the folder name for local paths.
    """
    value = path_or_url.strip()
    if is_git_url(value):
        m = _GITHUB_RE.search(value)
        if m:
            return m.group(1)
        m = _SCP_RE.match(value)
        if m:
            return m.group(1)
        segment = urlsplit(value).path.rstrip("/").rsplit("/", 1)[-1]
        return segment[: -len(".git")] if segment.endswith(".git") else segment
    return Path(value).expanduser().resolve().name
