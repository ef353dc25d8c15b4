from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from .config import CatalogEntry, UserConfig
from .discovery import SKILL_FILENAME, DiscoveredSkill, discover_skills
from .errors import CLIError
from .hashing import compute_file_hash
from .paths import resolve_catalog_path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AvailableSkill:
    catalog_id: str
    entry: CatalogEntry
    skill: DiscoveredSkill

    @property
    def name(self) -> str:
        return self.skill.name


@dataclass(frozen=True)
class RemovedSkill:
    name: str
    catalog_id: str


@dataclass(frozen=True)
class FailedCatalog:
    catalog_id: str
    error: str


@dataclass
class CatalogDiff:
    new: list[AvailableSkill] = field(default_factory=list)
    updated: list[AvailableSkill] = field(default_factory=list)
    unchanged: list[AvailableSkill] = field(default_factory=list)
    removed: list[RemovedSkill] = field(default_factory=list)
    failed: list[FailedCatalog] = field(default_factory=list)

    def names(self, bucket: str) -> list[str]:
        return [item.name for item in getattr(self, bucket)]


@dataclass(frozen=True)
class DiffSummary:
    new_count: int
    updated_count: int
    removed_count: int

    @property
    def total_changes(self) -> int:
        return self.new_count + self.updated_count + self.removed_count

    @property
    def has_changes(self) -> bool:
        return self.total_changes > 0


def installed_skill_file(skills_root: Path, name: str) -> Path:
    return skills_root / name / SKILL_FILENAME


def _classify_owned(available: AvailableSkill, *, skills_root: Path) -> str:
    installed_file = installed_skill_file(skills_root, available.name)
    if not installed_file.is_file():
        logger.debug("Skill %s is tracked but missing on disk, reinstalling", available.name)
        return "updated"

    installed_hash = compute_file_hash(installed_file)
    source_hash = compute_file_hash(available.skill.source_path)
    if installed_hash != source_hash:
        logger.debug("Hash mismatch for %s: %s -> %s", available.name, installed_hash, source_hash)
        return "updated"
    return "unchanged"


def compute_diff(
    cfg: UserConfig,
    catalogs: Iterable[tuple[str, CatalogEntry]],
    *,
    skills_root: Path,
    cache_root: Path | None = None,
) -> CatalogDiff:
    """
    Classify every skill offered by ``catalogs`` against the installed-skill ledger.

    Catalogs are visited in the given order (callers pass them sorted by priority).
    A catalog that cannot be resolved or scanned is recorded in ``failed`` and the
    comparison continues with the rest. A ledger entry owned by another catalog is
    never re-classified by this catalog's pass, but its name still counts as seen.
    Ledger entries never seen by any pass end up in ``removed``.
    """
    diff = CatalogDiff()
    seen: set[str] = set()

    for catalog_id, entry in catalogs:
        try:
            root = resolve_catalog_path(catalog_id, entry, cache_root=cache_root)
            discovered = discover_skills(root)
        except CLIError as e:
            logger.warning("Failed to load catalog %s: %s", catalog_id, e)
            diff.failed.append(FailedCatalog(catalog_id=catalog_id, error=str(e)))
            continue

        if not discovered:
            logger.debug("No skills in catalog %s", catalog_id)

        for name in sorted(discovered):
            available = AvailableSkill(catalog_id=catalog_id, entry=entry, skill=discovered[name])
            tracked = cfg.installed.get(name)
            if tracked is None:
                diff.new.append(available)
                continue

            seen.add(name)
            if tracked.catalog != catalog_id:
                logger.debug(
                    "Skill %s from %s is owned by catalog %s, skipping", name, catalog_id, tracked.catalog
                )
                continue

            try:
                bucket = _classify_owned(available, skills_root=skills_root)
            except CLIError as e:
                logger.warning("Could not compare skill %s from %s: %s", name, catalog_id, e)
                bucket = "updated"
            getattr(diff, bucket).append(available)

    for name in sorted(cfg.installed):
        if name not in seen:
            diff.removed.append(RemovedSkill(name=name, catalog_id=cfg.installed[name].catalog))

    return diff


def summarize_diff(diff: CatalogDiff) -> DiffSummary:
    return DiffSummary(
        new_count=len(diff.new),
        updated_count=len(diff.updated),
        removed_count=len(diff.removed),
    )
