from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from .config import UserConfig, track_installation, untrack_installation
from .diff import AvailableSkill, RemovedSkill, installed_skill_file
from .errors import CLIError, FileSystemError
from .prompts import Prompter

logger = logging.getLogger(__name__)

ACTION_CREATED = "created"
ACTION_UPDATED = "updated"
ACTION_SKIPPED = "skipped"

COLLISION_CATALOG = "catalog"
COLLISION_CUSTOM = "custom"


@dataclass(frozen=True)
class SkillCollision:
    kind: str
    catalog_id: str | None = None


@dataclass(frozen=True)
class InstallResult:
    name: str
    action: str
    catalog_id: str
    error: str | None = None


@dataclass(frozen=True)
class RemoveResult:
    name: str
    removed: bool
    error: str | None = None


class SkillInstaller:
    """
    Materializes catalog skills under ``skills_dir`` and keeps the ledger in sync.

    The installer mutates the ledger of the config it is handed; persisting it is
    left to the caller, once per batch.
    """

    def __init__(self, *, skills_dir: Path, prompter: Prompter) -> None:
        self.skills_dir = Path(skills_dir).expanduser()
        self.prompter = prompter

    def skill_dir(self, name: str) -> Path:
        return self.skills_dir / name

    def check_collision(self, name: str, cfg: UserConfig) -> SkillCollision | None:
        if not self.skill_dir(name).exists():
            return None
        tracked = cfg.installed.get(name)
        if tracked is not None:
            return SkillCollision(kind=COLLISION_CATALOG, catalog_id=tracked.catalog)
        return SkillCollision(kind=COLLISION_CUSTOM)

    def _confirm_overwrite(self, skill: AvailableSkill, collision: SkillCollision) -> bool:
        if collision.kind == COLLISION_CATALOG:
            if collision.catalog_id == skill.catalog_id:
                message = f'Skill "{skill.name}" is already installed from "{skill.catalog_id}". Update it?'
            else:
                message = (
                    f'Skill "{skill.name}" is installed from catalog "{collision.catalog_id}". '
                    f'Replace it with the version from "{skill.catalog_id}"?'
                )
        else:
            message = (
                f'A custom skill "{skill.name}" already exists in {self.skills_dir} and is not managed '
                f"by agent-sync. Overwrite it?"
            )
        return self.prompter.confirm(message, default=False)

    def _copy_skill(self, skill: AvailableSkill) -> None:
        source = skill.skill.source_path
        target = installed_skill_file(self.skills_dir, skill.name)
        try:
            if not source.is_file():
                raise FileSystemError(f"Skill file not found: {source}")
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, target)
        except OSError as e:
            raise FileSystemError(f"Could not copy {source} -> {target}: {e.strerror or e}") from e
        logger.debug("Copied %s -> %s", source, target)

    def install(
        self,
        skill: AvailableSkill,
        cfg: UserConfig,
        *,
        force: bool = False,
        skip_prompts: bool = False,
    ) -> InstallResult:
        try:
            collision = self.check_collision(skill.name, cfg)
        except OSError as e:
            error = f"Could not inspect {self.skill_dir(skill.name)}: {e}"
            return InstallResult(name=skill.name, action=ACTION_SKIPPED, catalog_id=skill.catalog_id, error=error)

        if collision is not None and not force and not skip_prompts:
            if not self._confirm_overwrite(skill, collision):
                logger.debug("User declined overwrite of %s", skill.name)
                return InstallResult(name=skill.name, action=ACTION_SKIPPED, catalog_id=skill.catalog_id)

        try:
            self._copy_skill(skill)
        except CLIError as e:
            return InstallResult(name=skill.name, action=ACTION_SKIPPED, catalog_id=skill.catalog_id, error=str(e))

        track_installation(cfg, skill.name, skill.catalog_id)
        action = ACTION_CREATED if collision is None else ACTION_UPDATED
        return InstallResult(name=skill.name, action=action, catalog_id=skill.catalog_id)

    def install_batch(
        self,
        skills: Iterable[AvailableSkill],
        cfg: UserConfig,
        *,
        force: bool = False,
        skip_prompts: bool = False,
    ) -> list[InstallResult]:
        # Sequential on purpose: prompt order must follow batch order.
        return [self.install(skill, cfg, force=force, skip_prompts=skip_prompts) for skill in skills]

    def remove_batch(self, removed: Iterable[RemovedSkill], cfg: UserConfig) -> list[RemoveResult]:
        results: list[RemoveResult] = []
        for item in removed:
            target = self.skill_dir(item.name)
            try:
                if target.exists():
                    shutil.rmtree(target)
            except OSError as e:
                results.append(RemoveResult(name=item.name, removed=False, error=f"Could not remove {target}: {e}"))
                continue
            untrack_installation(cfg, item.name)
            logger.debug("Removed %s", target)
            results.append(RemoveResult(name=item.name, removed=True))
        return results
