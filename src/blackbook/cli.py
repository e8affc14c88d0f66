"""Command-line entry point for blackbook.

Commands:

- ``check``   -- report the status of every planned step (never writes).
- ``apply``   -- reconcile missing or drifted steps (``--only LABEL ...``).
- ``diff``    -- line counts and hunks for differing mappings.
- ``cleanup`` -- list orphaned state entries (``--apply`` removes them).
- ``backups`` -- list the backups kept for one owner.
- ``restore`` -- restore one backup directory.
- ``state``   -- list tracked state keys.

Exit status is 0 on success, 1 when a step failed or cleanup reported
errors, and 2 on configuration errors.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from . import __version__
from .config_loader import load_config
from .config_schema import BlackbookConfig, ToolInstance, resolve_tool_instances
from .logger import setup_logging
from .sync.cleanup import apply_cleanup, check_cleanup
from .sync.context import SyncContext
from .sync.orchestrator import run_apply, run_check
from .sync.planner import plan_diffs, plan_steps
from .sync.reporter import (
    cleanup_to_json,
    diffs_to_json,
    format_cleanup_report,
    format_diff,
    format_orchestrator_result,
    result_to_json,
)

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG_ERROR = 2


class ConfigError(Exception):
    """Configuration could not be loaded cleanly."""


def _emit(args: argparse.Namespace, text: str, data) -> None:
    if args.json:
        print(json.dumps(data, indent=2, default=str))
    else:
        print(text)


def _load(
    args: argparse.Namespace,
) -> tuple[BlackbookConfig, list[ToolInstance], SyncContext]:
    result = load_config(Path(args.config) if args.config else None)
    if result.errors:
        for error in result.errors:
            print(f"config error: {error}", file=sys.stderr)
        raise ConfigError(f"{len(result.errors)} config error(s) in {result.config_path}")

    config = result.config
    context = SyncContext.create(
        cache_dir=Path(args.cache_dir) if args.cache_dir else None,
        retention=config.settings.backup_retention,
    )
    return config, resolve_tool_instances(config), context


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def cmd_check(args: argparse.Namespace) -> int:
    config, instances, context = _load(args)
    result = asyncio.run(run_check(plan_steps(config, instances, context)))
    _emit(args, format_orchestrator_result(result), result_to_json(result))
    return EXIT_FAILED if result.failed else EXIT_OK


def cmd_apply(args: argparse.Namespace) -> int:
    config, instances, context = _load(args)
    steps = plan_steps(config, instances, context)
    result = asyncio.run(run_apply(steps, only=args.only))
    _emit(args, format_orchestrator_result(result), result_to_json(result))
    errored = any(s.apply is not None and s.apply.error for s in result.steps)
    return EXIT_FAILED if result.failed or errored else EXIT_OK


def cmd_diff(args: argparse.Namespace) -> int:
    config, instances, context = _load(args)
    diffs = plan_diffs(config, instances, context, name=args.name)
    _emit(args, format_diff(diffs, hunks=not args.stat), diffs_to_json(diffs))
    return EXIT_OK


def cmd_cleanup(args: argparse.Namespace) -> int:
    config, instances, context = _load(args)
    check = check_cleanup(config, instances, context.state)
    applied = None
    if args.apply and check.orphaned:
        applied = apply_cleanup(check.orphaned, context.state, context.backups)
    _emit(args, format_cleanup_report(check, applied), cleanup_to_json(check, applied))
    return EXIT_FAILED if applied is not None and applied.errors else EXIT_OK


def cmd_backups(args: argparse.Namespace) -> int:
    _, _, context = _load(args)
    backups = context.backups.list_backups(args.owner)
    rows = []
    for backup_dir in backups:
        meta = context.backups.read_metadata(backup_dir)
        rows.append(
            {
                "path": str(backup_dir),
                "original_path": meta.original_path if meta else None,
                "created_at": meta.created_at if meta else None,
            }
        )

    if not rows:
        text = f"No backups for {args.owner}."
    else:
        lines = [f"Backups for {args.owner} (newest first):"]
        for row in rows:
            lines.append(f"  {row['path']}")
            if row["original_path"]:
                lines.append(f"    from: {row['original_path']}")
        text = "\n".join(lines)
    _emit(args, text, {"owner": args.owner, "backups": rows})
    return EXIT_OK


def cmd_restore(args: argparse.Namespace) -> int:
    _, _, context = _load(args)
    try:
        restored = context.backups.restore_backup(
            Path(args.backup_dir),
            Path(args.target) if args.target else None,
        )
    except (FileNotFoundError, ValueError) as e:
        print(f"Cannot restore {args.backup_dir}: {e}", file=sys.stderr)
        return EXIT_FAILED
    _emit(args, f"Restored {restored}", {"restored": str(restored)})
    return EXIT_OK


def cmd_state(args: argparse.Namespace) -> int:
    _, _, context = _load(args)
    entries = context.state.entries()
    if not entries:
        text = "No tracked entries."
    else:
        text = "\n".join(
            f"{key}  (synced {entry.synced_at})" for key, entry in sorted(entries.items())
        )
    data = {
        key: entry.model_dump(mode="json", by_alias=True)
        for key, entry in entries.items()
    }
    _emit(args, text, {"path": str(context.state.path), "files": data})
    return EXIT_OK


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="blackbook",
        description="Keep declared files in sync across AI coding-tool installs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Show what is out of sync
  blackbook check

  # Reconcile everything, or only selected steps
  blackbook apply
  blackbook apply --only AGENTS.md:claude-code:default:CLAUDE.md

  # Remove files that are no longer declared
  blackbook cleanup --apply
        """,
    )
    parser.add_argument("--config", help="Path to config.yaml (default: <config dir>/config.yaml)")
    parser.add_argument(
        "--cache-dir",
        help="Directory holding state.json and backups (default: $BLACKBOOK_CACHE_DIR)",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--log-file", help="Also write log records to this file")
    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        default="text",
        help="Log record format (default: text)",
    )
    parser.add_argument(
        "--json", action="store_true", help="Print machine-readable JSON"
    )
    parser.add_argument(
        "--version", action="version", version=f"blackbook version {__version__}"
    )

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("check", help="Report the status of every planned step")
    p.set_defaults(func=cmd_check)

    p = sub.add_parser("apply", help="Reconcile missing or drifted steps")
    p.add_argument(
        "--only", nargs="+", metavar="LABEL", help="Apply only these step labels"
    )
    p.set_defaults(func=cmd_apply)

    p = sub.add_parser("diff", help="Show differences for declared mappings")
    p.add_argument("--name", help="Only diff this declared entry")
    p.add_argument("--stat", action="store_true", help="Line counts only, no hunks")
    p.set_defaults(func=cmd_diff)

    p = sub.add_parser("cleanup", help="Find (and remove) orphaned entries")
    p.add_argument("--apply", action="store_true", help="Remove orphaned targets")
    p.set_defaults(func=cmd_cleanup)

    p = sub.add_parser("backups", help="List backups for an owner")
    p.add_argument("owner", help="Backup owner (declared entry name)")
    p.set_defaults(func=cmd_backups)

    p = sub.add_parser("restore", help="Restore a backup directory")
    p.add_argument("backup_dir", help="Backup directory to restore")
    p.add_argument("--target", help="Restore here instead of the original path")
    p.set_defaults(func=cmd_restore)

    p = sub.add_parser("state", help="List tracked state entries")
    p.set_defaults(func=cmd_state)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    load_dotenv()
    setup_logging(
        mode="cli",
        debug=args.debug,
        log_file=args.log_file,
        debug_format=args.log_format,
    )
    try:
        return args.func(args)
    except ConfigError as e:
        logger.error("%s", e)
        return EXIT_CONFIG_ERROR


def run() -> None:
    """Console-script entry point."""
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    run()
