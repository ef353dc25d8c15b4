from __future__ import annotations

import logging
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable

from .config import DEFAULT_GIT_BRANCH, KIND_GIT, CatalogEntry, mark_synced
from .paths import catalog_cache_path

logger = logging.getLogger(__name__)

GIT_CLONE_DEPTH = 1

CATEGORY_NOT_FOUND = "not-found"
CATEGORY_AUTH = "auth"
CATEGORY_BRANCH = "branch-not-found"
CATEGORY_NETWORK = "network"
CATEGORY_UNAVAILABLE = "git-unavailable"
CATEGORY_UNKNOWN = "unknown"


@dataclass(frozen=True)
class GitResult:
    success: bool
    error: str | None = None
    category: str | None = None


@dataclass(frozen=True)
class CatalogSyncOutcome:
    catalog_id: str
    result: GitResult


class _GitCommandError(RuntimeError):
    pass


def _run_git(args: list[str], *, cwd: Path | None = None) -> str:
    try:
        proc = subprocess.run(["git", *args], cwd=cwd, capture_output=True, text=True, check=False)
    except FileNotFoundError as e:
        raise _GitCommandError("git executable not found") from e
    if proc.returncode != 0:
        raise _GitCommandError((proc.stderr or proc.stdout or f"git {args[0]} failed").strip())
    return proc.stdout


def is_git_available() -> bool:
    try:
        _run_git(["--version"])
    except _GitCommandError:
        return False
    return True


def classify_git_error(message: str) -> GitResult:
    msg = message.lower()
    if ("not found" in msg and "branch" not in msg) or ("repository" in msg and "does not exist" in msg):
        return GitResult(
            success=False,
            category=CATEGORY_NOT_FOUND,
            error="Repository not found. Check the URL and ensure the repository exists.",
        )
    if "authentication" in msg or "permission" in msg or "access denied" in msg:
        return GitResult(
            success=False,
            category=CATEGORY_AUTH,
            error=(
                "Authentication required. Ensure you have access to this repository. "
                "For private repos, set up SSH keys or use a personal access token."
            ),
        )
    if "branch" in msg or "reference" in msg:
        return GitResult(
            success=False,
            category=CATEGORY_BRANCH,
            error="Branch not found. Check the branch name or try with --branch main",
        )
    if "network" in msg or "connection" in msg or "timeout" in msg or "timed out" in msg:
        return GitResult(
            success=False,
            category=CATEGORY_NETWORK,
            error="Network connection failed. Check your internet connection and try again.",
        )
    first_line = message.splitlines()[0] if message else "unknown error"
    return GitResult(success=False, category=CATEGORY_UNKNOWN, error=f"Git operation failed: {first_line}")


def _clone(cache_path: Path, url: str, branch: str) -> GitResult:
    logger.debug("Cloning %s (branch %s) into %s", url, branch, cache_path)
    try:
        cache_path.parent.mkdir(parents=True, exist_ok=True)
        _run_git(["clone", "--depth", str(GIT_CLONE_DEPTH), "--branch", branch, url, str(cache_path)])
    except OSError as e:
        return GitResult(success=False, category=CATEGORY_UNKNOWN, error=f"Could not prepare cache directory: {e}")
    except _GitCommandError as e:
        return classify_git_error(str(e))
    return GitResult(success=True)


def sync_repo(cache_path: Path, url: str, branch: str = DEFAULT_GIT_BRANCH) -> GitResult:
    """
    Make ``cache_path`` a shallow checkout of ``url`` at ``branch``.

    An existing checkout is fetched and hard-reset to the remote branch; if that fails
    the checkout is deleted and cloned again.
    """
    if not is_git_available():
        return GitResult(
            success=False,
            category=CATEGORY_UNAVAILABLE,
            error="Git not installed. Please install Git to use Git-based catalogs (https://git-scm.com/downloads).",
        )

    if not cache_path.exists():
        return _clone(cache_path, url, branch)

    logger.debug("Pulling %s (branch %s) in %s", url, branch, cache_path)
    try:
        _run_git(["fetch", "--depth", str(GIT_CLONE_DEPTH), "origin", branch], cwd=cache_path)
        _run_git(["reset", "--hard", f"origin/{branch}"], cwd=cache_path)
    except _GitCommandError as e:
        logger.debug("Pull failed, re-cloning: %s", e)
        shutil.rmtree(cache_path, ignore_errors=True)
        return _clone(cache_path, url, branch)
    return GitResult(success=True)


RepoSyncer = Callable[[Path, str, str], GitResult]


def sync_catalogs(
    catalogs: Iterable[tuple[str, CatalogEntry]],
    *,
    cache_root: Path | None = None,
    syncer: RepoSyncer = sync_repo,
) -> list[CatalogSyncOutcome]:
    outcomes: list[CatalogSyncOutcome] = []
    for catalog_id, entry in catalogs:
        if entry.kind != KIND_GIT:
            continue
        if not entry.url:
            result = GitResult(success=False, category=CATEGORY_UNKNOWN, error="No URL configured")
        else:
            path = catalog_cache_path(catalog_id, cache_root=cache_root)
            result = syncer(path, entry.url, entry.branch or DEFAULT_GIT_BRANCH)
        if result.success:
            mark_synced(entry)
        else:
            logger.warning("Failed to sync %s: %s", catalog_id, result.error)
        outcomes.append(CatalogSyncOutcome(catalog_id=catalog_id, result=result))
    return outcomes
