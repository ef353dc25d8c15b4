from __future__ import annotations

import argparse
import json
import logging
import sys
import textwrap
import traceback
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ._version import __version__
from .catalog import add_skill, build_manifest, init_catalog, validate_catalog
from .config import (
    DEFAULT_GIT_BRANCH,
    KIND_GIT,
    KIND_LOCAL,
    CatalogEntry,
    UserConfig,
    add_catalog,
    config_path,
    get_active_catalogs,
    get_next_priority,
    load_config,
    mark_synced,
    remove_catalog,
    save_config,
    set_catalog_active,
    set_catalog_priority,
    validate_priority_available,
)
from .diff import AvailableSkill, CatalogDiff, compute_diff, summarize_diff
from .discovery import discover_skills, extract_catalog_id, is_git_url, normalize_git_url
from .errors import EXIT_ERROR, EXIT_INTERRUPTED, EXIT_SUCCESS, CLIError, GitError, PromptInterrupted
from .git import sync_catalogs, sync_repo
from .installer import ACTION_SKIPPED, InstallResult, SkillInstaller
from .paths import cache_dir, catalog_cache_path, resolve_catalog_path, skills_dir
from .prompts import AutoConfirmPrompter, Prompter, TerminalPrompter
from .validation import validate_catalog_not_registered, validate_path_exists, validate_skills_directory

logger = logging.getLogger(__name__)

REMOVE_KEEP = "keep"
REMOVE_UNINSTALL = "remove"


@dataclass(frozen=True)
class Runtime:
    config_path: Path
    skills_dir: Path
    cache_root: Path
    prompter: Prompter


def configure_logging(verbose: bool) -> None:
    root = logging.getLogger("agentsync")
    for handler in list(root.handlers):
        root.removeHandler(handler)
    handler = logging.StreamHandler(sys.stderr)
    fmt = "%(levelname)s %(name)s: %(message)s" if verbose else "%(levelname)s: %(message)s"
    handler.setFormatter(logging.Formatter(fmt))
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.WARNING)
    root.propagate = False


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


def _print_table(rows: list[list[str]]) -> None:
    if not rows:
        return
    widths = [0] * len(rows[0])
    for r in rows:
        for i, c in enumerate(r):
            widths[i] = max(widths[i], len(c))
    for r in rows:
        line = "  ".join(c.ljust(widths[i]) for i, c in enumerate(r))
        print(line.rstrip())


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="agent-sync",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        description="Register skill catalogs and keep installed agent skills in sync with them.",
        epilog=textwrap.dedent(
            """\
            Environment variables:
              AGENT_SYNC_CONFIG_PATH, AGENT_SYNC_SKILLS_DIR, AGENT_SYNC_CACHE_DIR
            """
        ),
    )

    def _add_global_options(parser: argparse.ArgumentParser, *, suppress: bool) -> None:
        # Accepted both before and after the subcommand. Subparser copies use SUPPRESS so
        # an omitted flag does not clobber a value given before the subcommand.
        default_none: Any = argparse.SUPPRESS if suppress else None
        default_false: Any = argparse.SUPPRESS if suppress else False
        parser.add_argument("--verbose", action="store_true", default=default_false, help="Enable debug logging")
        parser.add_argument("--config", default=default_none, help="Config file path (overrides env/default)")
        parser.add_argument("--skills-dir", default=default_none, help="Skills installation directory")

    _add_global_options(p, suppress=False)
    p.add_argument("--version", action="version", version=f"agent-sync {__version__}")

    sub = p.add_subparsers(dest="cmd", required=True)

    add = sub.add_parser("add", help="Register a catalog (Git URL or local path)")
    _add_global_options(add, suppress=True)
    add.add_argument("source", help="Git URL or local catalog directory")
    add.add_argument("--priority", type=int, help="Catalog priority (lower = higher precedence)")
    add.add_argument("--inactive", action="store_true", help="Register the catalog as inactive")
    add.add_argument("--branch", help=f"Git branch (default: {DEFAULT_GIT_BRANCH}, Git catalogs only)")
    add.add_argument("-y", "--yes", action="store_true", help="Install all skills without prompting")
    add.add_argument("--no-install", action="store_true", help="Only register the catalog")

    lst = sub.add_parser("list", aliases=["ls"], help="List catalogs and installed skills")
    _add_global_options(lst, suppress=True)
    lst.add_argument("--json", action="store_true", help="Output JSON")

    sync = sub.add_parser("sync", help="Fetch the latest contents of Git catalogs")
    _add_global_options(sync, suppress=True)
    sync.add_argument("--catalog", help="Sync only this catalog id")

    skills = sub.add_parser("skills", help="Install, update and remove skills from active catalogs")
    _add_global_options(skills, suppress=True)
    skills.add_argument("-y", "--yes", action="store_true", help="Skip confirmation prompts")
    skills.add_argument("--force", action="store_true", help="Overwrite colliding skill folders without asking")

    rm = sub.add_parser("remove", aliases=["rm"], help="Unregister a catalog (installed skills are kept)")
    _add_global_options(rm, suppress=True)
    rm.add_argument("catalog_id")

    enable = sub.add_parser("enable", help="Mark a catalog as active")
    _add_global_options(enable, suppress=True)
    enable.add_argument("catalog_id")

    disable = sub.add_parser("disable", help="Mark a catalog as inactive")
    _add_global_options(disable, suppress=True)
    disable.add_argument("catalog_id")

    prio = sub.add_parser("priority", help="Change a catalog's priority")
    _add_global_options(prio, suppress=True)
    prio.add_argument("catalog_id")
    prio.add_argument("priority", type=int)

    # catalog authoring
    cat = sub.add_parser("catalog", help="Catalog authoring commands")
    cat_sub = cat.add_subparsers(dest="subcmd", required=True)

    cat_init = cat_sub.add_parser("init", help="Initialize a catalog in the current directory")
    _add_global_options(cat_init, suppress=True)
    cat_init.add_argument("--name", default="My Skills Catalog", help="Catalog name")
    cat_init.add_argument("--path", default=".", help="Catalog root (default: .)")

    cat_skill = cat_sub.add_parser("skill", help="Manage skills in the catalog")
    cat_skill_sub = cat_skill.add_subparsers(dest="skillcmd", required=True)
    cat_skill_add = cat_skill_sub.add_parser("add", help="Add a new skill to the catalog")
    _add_global_options(cat_skill_add, suppress=True)
    cat_skill_add.add_argument("name", help="Skill name (normalized to kebab-case)")
    cat_skill_add.add_argument("-d", "--description", help="Skill description")
    cat_skill_add.add_argument("-t", "--tags", help="Comma-separated tags")
    cat_skill_add.add_argument("-l", "--license", default="MIT", help="License (default: MIT)")
    cat_skill_add.add_argument("--path", default=".", help="Catalog root (default: .)")

    cat_validate = cat_sub.add_parser("validate", help="Validate catalog structure and metadata")
    _add_global_options(cat_validate, suppress=True)
    cat_validate.add_argument("--path", default=".", help="Catalog root (default: .)")

    cat_build = cat_sub.add_parser("build", help="Write meta/catalog.json with skill hashes")
    _add_global_options(cat_build, suppress=True)
    cat_build.add_argument("--path", default=".", help="Catalog root (default: .)")
    cat_build.add_argument("--id", dest="catalog_id", help="Catalog id (default: folder name)")
    cat_build.add_argument("--name", help="Catalog display name")
    cat_build.add_argument("--catalog-version", help="Catalog version (x.y.z)")

    return p


def _runtime(args: argparse.Namespace, prompter: Prompter | None) -> Runtime:
    if prompter is None:
        prompter = AutoConfirmPrompter() if getattr(args, "yes", False) else TerminalPrompter()
    return Runtime(
        config_path=config_path(args.config),
        skills_dir=skills_dir(args.skills_dir),
        cache_root=cache_dir(),
        prompter=prompter,
    )


def _print_install_results(results: list[InstallResult]) -> None:
    for result in results:
        if result.error:
            print(f"failed: {result.name} ({result.error})")
        elif result.action == ACTION_SKIPPED:
            print(f"skipped: {result.name} (already exists)")
        else:
            print(f"{result.action}: {result.name}")


def _install_catalog_skills(rt: Runtime, cfg: UserConfig, catalog_id: str, entry: CatalogEntry, *, yes: bool) -> int:
    root = resolve_catalog_path(catalog_id, entry, cache_root=rt.cache_root)
    discovered = discover_skills(root)
    if not discovered:
        print("No skills found in catalog.")
        return EXIT_SUCCESS

    if yes:
        print(f"Found {_plural(len(discovered), 'skill')} in catalog.")
    elif not rt.prompter.confirm(f"Found {_plural(len(discovered), 'skill')}. Install now?", default=True):
        return EXIT_SUCCESS

    installer = SkillInstaller(skills_dir=rt.skills_dir, prompter=rt.prompter)
    batch = [AvailableSkill(catalog_id=catalog_id, entry=entry, skill=discovered[name]) for name in sorted(discovered)]
    results = installer.install_batch(batch, cfg, skip_prompts=yes)
    _print_install_results(results)
    save_config(cfg, rt.config_path)

    installed = sum(1 for r in results if r.action != ACTION_SKIPPED)
    print(f"Done! {_plural(installed, 'skill')} installed to {rt.skills_dir}")
    return EXIT_ERROR if any(r.error for r in results) else EXIT_SUCCESS


def cmd_add(args: argparse.Namespace, rt: Runtime) -> int:
    cfg = load_config(rt.config_path)
    if args.priority is not None:
        validate_priority_available(cfg, args.priority)
        priority = args.priority
    else:
        priority = get_next_priority(cfg)

    if is_git_url(args.source):
        url = normalize_git_url(args.source)
        catalog_id = extract_catalog_id(url)
        validate_catalog_not_registered(catalog_id, cfg.catalogs)
        branch = args.branch or DEFAULT_GIT_BRANCH

        print(f"Adding Git catalog: {catalog_id}")
        print(f"  URL: {url}")
        print(f"  Branch: {branch}")

        cache_path = catalog_cache_path(catalog_id, cache_root=rt.cache_root)
        result = sync_repo(cache_path, url, branch)
        if not result.success:
            raise GitError(result.error or "Failed to clone repository")
        validate_skills_directory(cache_path)
        entry = CatalogEntry(kind=KIND_GIT, url=url, branch=branch, priority=priority, active=not args.inactive)
        mark_synced(entry)
        catalog_root = cache_path
    else:
        catalog_root = Path(args.source).expanduser().resolve()
        validate_path_exists(catalog_root)
        validate_skills_directory(catalog_root)
        catalog_id = extract_catalog_id(str(catalog_root))
        validate_catalog_not_registered(catalog_id, cfg.catalogs)

        print(f"Adding local catalog: {catalog_id}")
        print(f"  Path: {catalog_root}")
        entry = CatalogEntry(kind=KIND_LOCAL, path=str(catalog_root), priority=priority, active=not args.inactive)

    discovered = discover_skills(catalog_root)
    print(f"Discovered {_plural(len(discovered), 'skill')}")

    add_catalog(cfg, catalog_id, entry)
    save_config(cfg, rt.config_path)
    print(f'Catalog "{catalog_id}" added (priority {priority}).')

    if args.no_install:
        return EXIT_SUCCESS
    return _install_catalog_skills(rt, cfg, catalog_id, entry, yes=args.yes)


def _catalog_skill_count(rt: Runtime, catalog_id: str, entry: CatalogEntry) -> tuple[int | None, str | None]:
    try:
        root = resolve_catalog_path(catalog_id, entry, cache_root=rt.cache_root)
        return len(discover_skills(root)), None
    except CLIError as e:
        return None, str(e)


def _installed_status(name: str, diff: CatalogDiff) -> str:
    if name in diff.names("updated"):
        return "update available"
    if name in diff.names("removed"):
        return "removed from catalog"
    return "ok"


def cmd_list(args: argparse.Namespace, rt: Runtime) -> int:
    cfg = load_config(rt.config_path)
    diff = compute_diff(cfg, get_active_catalogs(cfg), skills_root=rt.skills_dir, cache_root=rt.cache_root)
    ordered = sorted(cfg.catalogs.items(), key=lambda item: item[1].priority)

    catalogs_payload: list[dict[str, Any]] = []
    for catalog_id, entry in ordered:
        count, error = _catalog_skill_count(rt, catalog_id, entry)
        catalogs_payload.append(
            {
                "id": catalog_id,
                "type": entry.kind,
                "location": entry.location,
                "priority": entry.priority,
                "active": entry.active,
                "last_synced": entry.last_synced,
                "skills": count,
                "error": error,
                "new": sum(1 for s in diff.new if s.catalog_id == catalog_id),
                "updates": sum(1 for s in diff.updated if s.catalog_id == catalog_id),
            }
        )

    installed_payload = [
        {"name": name, "catalog": cfg.installed[name].catalog, "status": _installed_status(name, diff)}
        for name in sorted(cfg.installed)
    ]
    available_payload = [
        {"name": s.name, "catalog": s.catalog_id, "description": s.skill.description} for s in diff.new
    ]

    if args.json:
        payload = {
            "catalogs": catalogs_payload,
            "installed": installed_payload,
            "available": available_payload,
            "config_path": str(rt.config_path),
            "skills_dir": str(rt.skills_dir),
        }
        print(json.dumps(payload, indent=2, sort_keys=True))
        return EXIT_SUCCESS

    print("Registered catalogs")
    if not catalogs_payload:
        print("  No catalogs registered. Add one with: agent-sync add <path-or-url>")
    else:
        rows = [["ID", "PRIORITY", "TYPE", "STATUS", "SKILLS", "LOCATION"]]
        for c in catalogs_payload:
            skills_col = str(c["skills"]) if c["skills"] is not None else "error"
            extra = []
            if c["new"]:
                extra.append(f"{c['new']} new")
            if c["updates"]:
                extra.append(_plural(c["updates"], "update"))
            if extra:
                skills_col += f" ({', '.join(extra)})"
            rows.append(
                [
                    c["id"],
                    str(c["priority"]),
                    c["type"],
                    "active" if c["active"] else "inactive",
                    skills_col,
                    c["location"],
                ]
            )
        _print_table(rows)
        for c in catalogs_payload:
            if c["error"]:
                print(f"warning: {c['id']}: {c['error']}")

    print()
    print("Installed skills")
    if not installed_payload:
        print("  No skills installed. Install with: agent-sync skills")
    else:
        rows = [["NAME", "CATALOG", "STATUS"]]
        rows.extend([i["name"], i["catalog"], i["status"]] for i in installed_payload)
        _print_table(rows)

    if available_payload:
        print()
        print("Available (not installed)")
        rows = [["NAME", "CATALOG", "DESCRIPTION"]]
        rows.extend([a["name"], a["catalog"], a["description"]] for a in available_payload)
        _print_table(rows)

    summary = summarize_diff(diff)
    if summary.has_changes:
        print()
        print(
            f"Changes available: {summary.new_count} new, {summary.updated_count} updated, "
            f"{summary.removed_count} removed. Run `agent-sync skills` to apply."
        )
    print()
    print(f"config: {rt.config_path}")
    return EXIT_SUCCESS


def cmd_sync(args: argparse.Namespace, rt: Runtime) -> int:
    cfg = load_config(rt.config_path)
    git_catalogs = [(cid, e) for cid, e in cfg.catalogs.items() if e.kind == KIND_GIT]
    if args.catalog:
        git_catalogs = [(cid, e) for cid, e in git_catalogs if cid == args.catalog]
        if not git_catalogs:
            raise CLIError(f'Catalog "{args.catalog}" not found or is not a Git catalog')

    if not git_catalogs:
        print("No Git catalogs to sync.")
        return EXIT_SUCCESS

    print(f"Syncing {_plural(len(git_catalogs), 'Git catalog')}...")
    outcomes = sync_catalogs(git_catalogs, cache_root=rt.cache_root, syncer=sync_repo)
    save_config(cfg, rt.config_path)

    failed = 0
    for outcome in outcomes:
        if outcome.result.success:
            print(f"synced: {outcome.catalog_id}")
        else:
            failed += 1
            print(f"failed: {outcome.catalog_id} ({outcome.result.error})")
    print(f"Synced: {len(outcomes) - failed}, failed: {failed}")
    return EXIT_ERROR if failed else EXIT_SUCCESS


def _dedupe_by_name(skills: list[AvailableSkill]) -> list[AvailableSkill]:
    # Input is in catalog priority order, so the first offer of a name wins.
    out: list[AvailableSkill] = []
    seen: set[str] = set()
    for skill in skills:
        if skill.name in seen:
            logger.debug("Skipping %s from %s; offered by a higher-priority catalog", skill.name, skill.catalog_id)
            continue
        seen.add(skill.name)
        out.append(skill)
    return out


def cmd_skills(args: argparse.Namespace, rt: Runtime) -> int:
    cfg = load_config(rt.config_path)
    active = get_active_catalogs(cfg)
    if not active:
        raise CLIError("No catalogs registered. Add a catalog first: agent-sync add <path-or-url>")

    for outcome in sync_catalogs(active, cache_root=rt.cache_root, syncer=sync_repo):
        if not outcome.result.success:
            print(f"warning: could not sync {outcome.catalog_id}: {outcome.result.error} (using cached copy if any)")
    save_config(cfg, rt.config_path)

    diff = compute_diff(cfg, active, skills_root=rt.skills_dir, cache_root=rt.cache_root)
    for failed in diff.failed:
        print(f"warning: catalog {failed.catalog_id} skipped: {failed.error}")

    to_create = _dedupe_by_name(diff.new)
    summary = summarize_diff(diff)
    if not summary.has_changes:
        print("Everything is up to date.")
        print(f"Installed: {_plural(len(diff.unchanged), 'skill')}")
        return EXIT_SUCCESS

    print("Changes detected:")
    if to_create:
        print(f"  {_plural(len(to_create), 'new skill')} available")
        for s in to_create:
            print(f"    + {s.name} ({s.catalog_id}) - {s.skill.description}")
    if diff.updated:
        print(f"  {_plural(len(diff.updated), 'skill')} updated")
        for s in diff.updated:
            print(f"    ~ {s.name} ({s.catalog_id})")
    if diff.removed:
        print(f"  {_plural(len(diff.removed), 'skill')} removed from catalogs")
        for r in diff.removed:
            print(f"    - {r.name} (was {r.catalog_id})")

    remove_orphans = False
    if diff.removed:
        choice = rt.prompter.select(
            "Skills were removed from their catalogs. What would you like to do?",
            [("Keep installed (do nothing)", REMOVE_KEEP), ("Uninstall all removed skills", REMOVE_UNINSTALL)],
            default=REMOVE_KEEP,
        )
        remove_orphans = choice == REMOVE_UNINSTALL

    install = False
    if to_create or diff.updated:
        install = args.yes or rt.prompter.confirm("Install updates?", default=True)

    if not install and not remove_orphans:
        print("No changes made.")
        return EXIT_SUCCESS

    installer = SkillInstaller(skills_dir=rt.skills_dir, prompter=rt.prompter)
    had_errors = False
    if install:
        results = installer.install_batch(to_create, cfg, force=args.force, skip_prompts=args.yes)
        # Updates were confirmed as a batch above.
        results += installer.install_batch(diff.updated, cfg, skip_prompts=True)
        _print_install_results(results)
        had_errors = any(r.error for r in results)

    if remove_orphans:
        for removal in installer.remove_batch(diff.removed, cfg):
            if removal.error:
                had_errors = True
                print(f"failed: {removal.name} ({removal.error})")
            else:
                print(f"removed: {removal.name}")

    save_config(cfg, rt.config_path)
    print("Done.")
    return EXIT_ERROR if had_errors else EXIT_SUCCESS


def cmd_remove(args: argparse.Namespace, rt: Runtime) -> int:
    cfg = load_config(rt.config_path)
    remove_catalog(cfg, args.catalog_id)
    save_config(cfg, rt.config_path)
    owned = sorted(name for name, item in cfg.installed.items() if item.catalog == args.catalog_id)
    print(f'Catalog "{args.catalog_id}" removed.')
    if owned:
        print(f"{_plural(len(owned), 'installed skill')} from it will be offered for removal by `agent-sync skills`.")
    return EXIT_SUCCESS


def cmd_toggle(args: argparse.Namespace, rt: Runtime, *, active: bool) -> int:
    cfg = load_config(rt.config_path)
    set_catalog_active(cfg, args.catalog_id, active)
    save_config(cfg, rt.config_path)
    print(f'Catalog "{args.catalog_id}" is now {"active" if active else "inactive"}.')
    return EXIT_SUCCESS


def cmd_priority(args: argparse.Namespace, rt: Runtime) -> int:
    cfg = load_config(rt.config_path)
    set_catalog_priority(cfg, args.catalog_id, args.priority)
    save_config(cfg, rt.config_path)
    print(f'Catalog "{args.catalog_id}" priority set to {args.priority}.')
    return EXIT_SUCCESS


def cmd_catalog(args: argparse.Namespace) -> int:
    root = Path(args.path).expanduser().resolve()

    if args.subcmd == "init":
        result = init_catalog(root, args.name)
        print(("Created" if result.skills_dir_created else "Found existing") + " skills/ directory")
        if result.readme_created:
            print("Created README.md")
        print(f"Catalog initialized in {root}")
        return EXIT_SUCCESS

    if args.subcmd == "skill" and args.skillcmd == "add":
        skill_md = add_skill(root, args.name, description=args.description, tags=args.tags, license_id=args.license)
        print(f"Created {skill_md.relative_to(root)}")
        print(f"Next: edit {skill_md.relative_to(root)} to add skill instructions")
        return EXIT_SUCCESS

    if args.subcmd == "validate":
        errors = validate_catalog(root)
        if errors:
            print(f"Validation failed with {_plural(len(errors), 'error')}:")
            for err in errors:
                print(f"  - {err}")
            return EXIT_ERROR
        print(f"All {_plural(len(discover_skills(root)), 'skill')} validated successfully.")
        return EXIT_SUCCESS

    if args.subcmd == "build":
        manifest = build_manifest(
            root,
            catalog_id=args.catalog_id or root.name,
            name=args.name,
            version=args.catalog_version,
        )
        print(f"Updated {manifest.relative_to(root)}")
        return EXIT_SUCCESS

    raise AssertionError("unreachable")


def main(argv: list[str] | None = None, *, prompter: Prompter | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)
    try:
        if args.cmd == "catalog":
            return cmd_catalog(args)
        rt = _runtime(args, prompter)
        if args.cmd == "add":
            return cmd_add(args, rt)
        if args.cmd in ("list", "ls"):
            return cmd_list(args, rt)
        if args.cmd == "sync":
            return cmd_sync(args, rt)
        if args.cmd == "skills":
            return cmd_skills(args, rt)
        if args.cmd in ("remove", "rm"):
            return cmd_remove(args, rt)
        if args.cmd == "enable":
            return cmd_toggle(args, rt, active=True)
        if args.cmd == "disable":
            return cmd_toggle(args, rt, active=False)
        if args.cmd == "priority":
            return cmd_priority(args, rt)
        raise AssertionError("unreachable")
    except (PromptInterrupted, KeyboardInterrupt):
        print("\nInterrupted.", file=sys.stderr)
        return EXIT_INTERRUPTED
    except CLIError as e:
        if args.verbose:
            traceback.print_exc()
        print(f"error: {e}", file=sys.stderr)
        return e.exit_code
    except Exception as e:
        if args.verbose:
            traceback.print_exc()
        print(f"error: unexpected error: {e}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
