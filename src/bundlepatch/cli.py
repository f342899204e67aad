from __future__ import annotations

import argparse
import shutil
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from pydantic import ValidationError
from rich import console as rich_console
from rich import table as rich_table
from rich import text as rich_text

from bundlepatch import logger as bp_logger
from bundlepatch import settings as bp_settings
from bundlepatch.logger import logger
from bundlepatch.patch import (
    PatchIOError,
    PatchKindRegistry,
    PatchRequest,
    PatchSession,
    PatchStatus,
    SessionResult,
)

EXIT_OK = 0
EXIT_PATCH_FAILED = 1
EXIT_ERROR = 2

_STATUS_STYLES = {
    PatchStatus.APPLIED: ("applied", "green"),
    PatchStatus.ALREADY_APPLIED: ("already applied", "yellow"),
    PatchStatus.FAILED: ("failed", "red"),
}


def _parse_bool(value: str) -> bool:
    v = value.strip().lower()
    if v in {"1", "true", "yes", "on"}:
        return True
    if v in {"0", "false", "no", "off"}:
        return False
    raise argparse.ArgumentTypeError(f"Expected a boolean, got {value!r}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bundlepatch",
        description="Patch small fragments of a minified JavaScript bundle in place.",
    )
    parser.add_argument("target", type=Path, help="Bundle file to patch")
    parser.add_argument("--config", type=Path, help="YAML or JSON5 settings file")
    parser.add_argument(
        "--output", type=Path, help="Write the result here instead of the target"
    )
    parser.add_argument(
        "--dry-run", action="store_true", help="Report what would change, write nothing"
    )
    parser.add_argument(
        "--no-backup", action="store_true", help="Do not copy the original aside"
    )
    parser.add_argument(
        "--only",
        action="append",
        choices=PatchKindRegistry.names(),
        metavar="KIND",
        help="Apply only this patch kind (repeatable)",
    )
    parser.add_argument("--verbose-value", type=_parse_bool, help="Value for verbose")
    parser.add_argument(
        "--interval-ms", type=int, help="Statusline refresh interval in milliseconds"
    )
    parser.add_argument(
        "--log-level",
        choices=[lvl.value for lvl in bp_settings.LogLevel],
        help="Override the configured log level",
    )
    parser.add_argument(
        "--show-diff", action="store_true", help="Print a diff for each applied patch"
    )
    return parser


def _apply_overrides(
    settings: bp_settings.Settings, args: argparse.Namespace
) -> bp_settings.Settings:
    data = settings.model_dump()
    patches = data["patches"]
    if args.only:
        for name in patches:
            patches[name]["enabled"] = name in args.only
    if args.verbose_value is not None:
        patches["verbose"]["value"] = args.verbose_value
    if args.interval_ms is not None:
        patches["statusline_refresh"]["interval_ms"] = args.interval_ms
    if args.no_backup:
        data["backup"] = False
    if args.log_level is not None:
        logging_data = data.get("logging") or {}
        logging_data["default_level"] = args.log_level
        data["logging"] = logging_data
    return bp_settings.Settings.model_validate(data)


def _configure_logging(settings: bp_settings.Settings) -> None:
    logging_settings = settings.logging or bp_settings.LoggingSettings()
    bp_logger.configure_logging(
        logging_settings.level(),
        log_file=Path(logging_settings.file) if logging_settings.file else None,
        overrides=logging_settings.overrides(),
    )


def render_result(
    console: rich_console.Console, result: SessionResult, *, show_diff: bool = False
) -> None:
    table = rich_table.Table(title="Patch results")
    table.add_column("Patch")
    table.add_column("Status")
    table.add_column("Details", overflow="fold")
    for name, outcome in result.outcomes.items():
        label, style = _STATUS_STYLES[outcome.status]
        details = ""
        if outcome.status == PatchStatus.FAILED:
            details = f"{outcome.reason}: {outcome.message}"
        elif outcome.resolution is not None:
            loc = outcome.resolution.location
            details = f"[{loc.start}, {loc.end})"
            if outcome.resolution.strategy:
                details += f" via {outcome.resolution.strategy}"
            if outcome.resolution.ambiguous:
                details += f" ({len(outcome.resolution.candidates)} candidates)"
        table.add_row(
            name, rich_text.Text(label, style=style), rich_text.Text(details)
        )
    console.print(table)

    if not show_diff:
        return
    for name, outcome in result.outcomes.items():
        if outcome.diff is None:
            continue
        diff = outcome.diff
        console.print(rich_text.Text(f"--- {name} ---", style="bold"))
        old = rich_text.Text("OLD: ")
        old.append(diff.before)
        old.append(diff.old, style="red")
        old.append(diff.after)
        new = rich_text.Text("NEW: ")
        new.append(diff.before)
        new.append(diff.new, style="green")
        new.append(diff.after)
        console.print(old, soft_wrap=True)
        console.print(new, soft_wrap=True)


def _backup(target: Path, suffix: str, console: rich_console.Console) -> Optional[Path]:
    backup_path = target.with_name(target.name + suffix)
    if backup_path.exists():
        # Keep the first backup; it is the pristine bundle
        console.print(f"Backup already exists: {backup_path}")
        return backup_path
    try:
        shutil.copy2(target, backup_path)
    except OSError as e:
        raise PatchIOError(f"Failed to create backup {backup_path}: {e}") from e
    console.print(f"Created backup: {backup_path}")
    return backup_path


def run(args: argparse.Namespace, console: rich_console.Console) -> int:
    try:
        settings = (
            bp_settings.load_settings(args.config)
            if args.config is not None
            else bp_settings.Settings()
        )
        settings = _apply_overrides(settings, args)
    except (OSError, ValueError, ValidationError) as e:
        console.print(rich_text.Text(f"Invalid configuration: {e}", style="red"))
        return EXIT_ERROR

    _configure_logging(settings)
    requests: List[PatchRequest] = settings.requests()
    if not requests:
        console.print("No patches enabled.")
        return EXIT_OK

    try:
        session = PatchSession.load(args.target)
    except PatchIOError as e:
        console.print(rich_text.Text(str(e), style="red"))
        return EXIT_ERROR

    result = session.run(requests)
    render_result(console, result, show_diff=args.show_diff)

    destination = args.output or args.target
    in_place = destination.resolve() == args.target.resolve()
    if args.dry_run:
        console.print("Dry run: nothing written.")
    elif session.modified or not in_place:
        try:
            backup_path = None
            if settings.backup and in_place:
                backup_path = _backup(args.target, settings.backup_suffix, console)
            session.save(destination)
        except PatchIOError as e:
            logger.error("save failed", err=str(e))
            console.print(rich_text.Text(str(e), style="red"))
            return EXIT_ERROR
        console.print(f"Saved {destination}")
        if backup_path is not None:
            console.print("To restore, copy the backup over the bundle:")
            console.print(f"   cp {backup_path} {args.target}", markup=False)
    else:
        console.print("Nothing to write.")

    return EXIT_OK if result.ok else EXIT_PATCH_FAILED


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    console = rich_console.Console()
    return run(args, console)


if __name__ == "__main__":
    sys.exit(main())
