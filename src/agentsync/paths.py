from __future__ import annotations

import os
from pathlib import Path

from platformdirs import user_cache_path

from .config import APP_NAME, KIND_GIT, KIND_LOCAL, CatalogEntry
from .errors import FileSystemError, ValidationError


def skills_dir_candidates() -> list[Path]:
    home = Path.home()
    appdata = os.getenv("APPDATA") or str(home / "AppData" / "Roaming")
    localappdata = os.getenv("LOCALAPPDATA") or str(home / "AppData" / "Local")
    return [
        home / ".config" / "opencode" / "skills",
        Path(appdata) / "opencode" / "skills",
        Path(localappdata) / "opencode" / "skills",
    ]


def skills_dir(path_override: str | Path | None = None) -> Path:
    if path_override is not None:
        return Path(path_override).expanduser()
    if env := os.getenv("AGENT_SYNC_SKILLS_DIR"):
        return Path(env).expanduser()
    candidates = skills_dir_candidates()
    for candidate in candidates:
        if candidate.is_dir():
            return candidate
    return candidates[0]


def cache_dir(path_override: str | Path | None = None) -> Path:
    if path_override is not None:
        return Path(path_override).expanduser()
    if env := os.getenv("AGENT_SYNC_CACHE_DIR"):
        return Path(env).expanduser()
    return user_cache_path(APP_NAME) / "catalogs"


def sanitize_catalog_id(catalog_id: str) -> str:
    return catalog_id.replace("/", "-").replace("\\", "-")


def catalog_cache_path(catalog_id: str, *, cache_root: Path | None = None) -> Path:
    root = cache_root if cache_root is not None else cache_dir()
    return root / sanitize_catalog_id(catalog_id)


def resolve_catalog_path(catalog_id: str, entry: CatalogEntry, *, cache_root: Path | None = None) -> Path:
    """
    Map a registered catalog to the directory that holds its ``skills/`` folder.

    Local catalogs resolve to their stored path. Git catalogs resolve to their cache
    checkout, which must already have been populated by a sync.
    """
    if entry.kind == KIND_LOCAL:
        if not entry.path:
            raise ValidationError(f'Local catalog "{catalog_id}" has no path configured')
        return Path(entry.path)
    if entry.kind == KIND_GIT:
        path = catalog_cache_path(catalog_id, cache_root=cache_root)
        if not path.is_dir():
            raise FileSystemError(
                f'Catalog "{catalog_id}" has not been fetched yet (missing cache at {path}). Run `agent-sync sync`.'
            )
        return path
    raise ValidationError(f'Catalog "{catalog_id}" has unsupported type {entry.kind!r}')
