from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from platformdirs import user_config_path

from .errors import FileSystemError, ValidationError

logger = logging.getLogger(__name__)

APP_NAME = "agent-sync"
CONFIG_FILENAME = "config.json"
DEFAULT_GIT_BRANCH = "main"

KIND_LOCAL = "local"
KIND_GIT = "git"


@dataclass
class CatalogEntry:
    kind: str
    priority: int
    active: bool = True
    path: str | None = None  # local catalogs only
    url: str | None = None  # git catalogs only
    branch: str | None = None
    last_synced: str | None = None  # ISO8601, git catalogs only

    @property
    def location(self) -> str:
        if self.kind == KIND_GIT:
            return f"{self.url}#{self.branch or DEFAULT_GIT_BRANCH}"
        return self.path or ""

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> CatalogEntry:
        kind = raw.get("type")
        if kind not in (KIND_LOCAL, KIND_GIT):
            raise ValueError(f"unknown catalog type {kind!r}")
        priority = raw.get("priority")
        if isinstance(priority, bool) or not isinstance(priority, (int, float)):
            raise ValueError("priority must be a number")

        def _opt_str(key: str) -> str | None:
            value = raw.get(key)
            return value if isinstance(value, str) and value else None

        return cls(
            kind=kind,
            priority=int(priority),
            active=bool(raw.get("active", True)),
            path=_opt_str("path"),
            url=_opt_str("url"),
            branch=_opt_str("branch"),
            last_synced=_opt_str("lastSynced"),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"type": self.kind, "priority": self.priority, "active": self.active}
        if self.path is not None:
            out["path"] = self.path
        if self.url is not None:
            out["url"] = self.url
        if self.branch is not None:
            out["branch"] = self.branch
        if self.last_synced is not None:
            out["lastSynced"] = self.last_synced
        return out


@dataclass
class InstalledSkill:
    catalog: str

    def to_dict(self) -> dict[str, Any]:
        return {"catalog": self.catalog}


@dataclass
class UserConfig:
    catalogs: dict[str, CatalogEntry] = field(default_factory=dict)
    installed: dict[str, InstalledSkill] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> UserConfig:
        cfg = cls()
        catalogs = raw.get("catalogs")
        if isinstance(catalogs, dict):
            for catalog_id, entry_raw in catalogs.items():
                if not isinstance(catalog_id, str) or not isinstance(entry_raw, dict):
                    continue
                try:
                    cfg.catalogs[catalog_id] = CatalogEntry.from_dict(entry_raw)
                except ValueError as e:
                    logger.warning("Ignoring invalid catalog entry %r in config: %s", catalog_id, e)

        installed = raw.get("installed")
        if isinstance(installed, dict):
            for name, item in installed.items():
                if not isinstance(name, str) or not isinstance(item, dict):
                    continue
                catalog_id = item.get("catalog")
                if not isinstance(catalog_id, str) or not catalog_id:
                    logger.warning("Ignoring installed skill %r without a source catalog", name)
                    continue
                cfg.installed[name] = InstalledSkill(catalog=catalog_id)
        return cfg

    def to_dict(self) -> dict[str, Any]:
        return {
            "catalogs": {k: self.catalogs[k].to_dict() for k in sorted(self.catalogs)},
            "installed": {k: self.installed[k].to_dict() for k in sorted(self.installed)},
        }


def config_path(path_override: str | Path | None = None) -> Path:
    if path_override is not None:
        return Path(path_override).expanduser()
    if env := os.getenv("AGENT_SYNC_CONFIG_PATH"):
        return Path(env).expanduser()
    return user_config_path(APP_NAME) / CONFIG_FILENAME


def load_config(path_override: str | Path | None = None) -> UserConfig:
    path = config_path(path_override)
    if not path.exists():
        logger.debug("Config file %s not found, using empty config", path)
        return UserConfig()

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise FileSystemError(f"Could not read config file: {path}") from e
    except json.JSONDecodeError as e:
        raise FileSystemError(f"Config file is not valid JSON: {path} ({e})") from e

    if not isinstance(raw, dict):
        logger.error("Config file %s does not contain a JSON object, using empty config", path)
        return UserConfig()

    logger.debug("Loaded config from %s", path)
    return UserConfig.from_dict(raw)


def save_config(cfg: UserConfig, path_override: str | Path | None = None) -> Path:
    path = config_path(path_override)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_text(json.dumps(cfg.to_dict(), indent=2, sort_keys=True) + "\n", encoding="utf-8")
        tmp.replace(path)
    except OSError as e:
        raise FileSystemError(f"Could not write config file: {path}") from e
    logger.debug("Saved config to %s", path)
    return path


def add_catalog(cfg: UserConfig, catalog_id: str, entry: CatalogEntry) -> None:
    cfg.catalogs[catalog_id] = entry


def remove_catalog(cfg: UserConfig, catalog_id: str) -> CatalogEntry:
    try:
        return cfg.catalogs.pop(catalog_id)
    except KeyError:
        raise ValidationError(f'Catalog "{catalog_id}" is not registered') from None


def get_catalog(cfg: UserConfig, catalog_id: str) -> CatalogEntry:
    entry = cfg.catalogs.get(catalog_id)
    if entry is None:
        raise ValidationError(f'Catalog "{catalog_id}" is not registered')
    return entry


def set_catalog_active(cfg: UserConfig, catalog_id: str, active: bool) -> None:
    get_catalog(cfg, catalog_id).active = active


def validate_priority_available(cfg: UserConfig, priority: int, *, exclude: str | None = None) -> None:
    for other_id, other in cfg.catalogs.items():
        if other_id != exclude and other.priority == priority:
            raise ValidationError(f'Priority {priority} is already used by catalog "{other_id}"')


def set_catalog_priority(cfg: UserConfig, catalog_id: str, priority: int) -> None:
    entry = get_catalog(cfg, catalog_id)
    validate_priority_available(cfg, priority, exclude=catalog_id)
    entry.priority = priority


def get_next_priority(cfg: UserConfig) -> int:
    priorities = [c.priority for c in cfg.catalogs.values()]
    return max(priorities) + 1 if priorities else 1


def get_active_catalogs(cfg: UserConfig) -> list[tuple[str, CatalogEntry]]:
    active = [(catalog_id, entry) for catalog_id, entry in cfg.catalogs.items() if entry.active]
    # Stable sort keeps insertion order for equal priorities.
    return sorted(active, key=lambda item: item[1].priority)


def track_installation(cfg: UserConfig, skill_name: str, catalog_id: str) -> None:
    cfg.installed[skill_name] = InstalledSkill(catalog=catalog_id)


def untrack_installation(cfg: UserConfig, skill_name: str) -> None:
    cfg.installed.pop(skill_name, None)


def mark_synced(entry: CatalogEntry, when: datetime | None = None) -> None:
    ts = when or datetime.now(timezone.utc)
    entry.last_synced = ts.strftime("%Y-%m-%dT%H:%M:%SZ")
