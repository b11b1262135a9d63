from __future__ import annotations

import argparse
import asyncio
import subprocess
import sys
from typing import Awaitable, Callable, Optional, TypeVar

from rich.console import Console
from rich.table import Table

from .core.config import get_settings
from .core.db import create_engine, create_session_factory
from .core.errors import ReconcileError
from .core.logging import configure_logging, level_from_name
from .core.storage import get_storage
from .services.reconcile_service import ReconciliationEngine

console = Console()

T = TypeVar("T")


def main(argv: Optional[list[str]] = None) -> None:
    """The main entry point for the CLI.

    Args:
        argv: The command-line arguments.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if getattr(args, "check", False):
        _run_environment_check()
        return

    if not hasattr(args, "func"):
        parser.print_help()
        sys.exit(1)

    args.func(args)


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI.

    Returns:
        The argument parser.
    """
    parser = argparse.ArgumentParser(description="Octopus storage reconciliation CLI")
    parser.add_argument("--check", action="store_true", help="Validate presence of ffmpeg/ffprobe dependencies")

    subparsers = parser.add_subparsers(dest="command")

    audit_parser = subparsers.add_parser("audit", help="Classify bucket objects as linked, orphan or missing")
    audit_parser.add_argument("--json", action="store_true", help="Print the raw report as JSON")
    audit_parser.set_defaults(func=_cmd_audit)

    files_parser = subparsers.add_parser("files", help="List every object in the scan scope")
    files_parser.set_defaults(func=_cmd_files)

    delete_parser = subparsers.add_parser("delete", help="Delete objects together with their posters")
    delete_parser.add_argument("paths", nargs="+", help="Bucket-relative keys or public URLs")
    delete_parser.add_argument("--yes", action="store_true", help="Skip the confirmation prompt")
    delete_parser.set_defaults(func=_cmd_delete)

    cleanup_parser = subparsers.add_parser("cleanup-posters", help="Remove posters no media record references")
    cleanup_parser.set_defaults(func=_cmd_cleanup_posters)
    return parser


def _run_engine(action: Callable[[ReconciliationEngine], Awaitable[T]]) -> T:
    """Build an engine from the configured settings and run one action on it.

    Args:
        action: Coroutine function receiving the engine.

    Returns:
        Whatever the action returned.
    """
    settings = get_settings()
    configure_logging(level=level_from_name(settings.log_level))
    storage = get_storage(settings)

    async def _runner() -> T:
        engine = create_engine(settings)
        try:
            reconciler = ReconciliationEngine(settings, storage, create_session_factory(engine))
            return await action(reconciler)
        finally:
            await engine.dispose()

    try:
        return asyncio.run(_runner())
    except ReconcileError as exc:
        console.print(f"[red]{exc.kind}:[/] {exc}")
        sys.exit(2)


def _cmd_audit(args: argparse.Namespace) -> None:
    """Run an audit and print the classification.

    Args:
        args: The command-line arguments.
    """
    report = _run_engine(lambda engine: engine.audit())
    if args.json:
        console.print_json(
            data={
                "summary": report.summary,
                "linked": report.linked,
                "orphan": report.orphan,
                "missing": report.missing,
                "degraded_folders": report.degraded_folders,
            }
        )
        return

    table = Table(title="Storage audit")
    table.add_column("Status")
    table.add_column("File")
    for status, paths in (("orphan", report.orphan), ("missing", report.missing), ("linked", report.linked)):
        for path in paths:
            table.add_row(status, path)
    console.print(table)
    console.print(
        f"[bold]linked[/] {len(report.linked)}  [bold]orphan[/] {len(report.orphan)}  "
        f"[bold]missing[/] {len(report.missing)}"
    )
    if report.degraded_folders:
        console.print(f"[yellow]Listing failed for: {', '.join(report.degraded_folders)}[/]")
    posters_prefix = f"{get_settings().posters_folder}/"
    poster_orphans = sum(1 for path in report.orphan if path.startswith(posters_prefix))
    if poster_orphans:
        # posters are tracked by media records, not content rows
        console.print(
            f"[yellow]{poster_orphans} orphan(s) under {posters_prefix} may still belong to uploaded videos; "
            "use cleanup-posters instead of deleting them directly.[/]"
        )


def _cmd_files(args: argparse.Namespace) -> None:
    listing = _run_engine(lambda engine: engine.list_files())
    for path in sorted(listing.paths):
        console.print(path)
    if listing.degraded_folders:
        console.print(f"[yellow]Listing failed for: {', '.join(listing.degraded_folders)}[/]")


def _cmd_delete(args: argparse.Namespace) -> None:
    """Delete objects after confirmation.

    Args:
        args: The command-line arguments.
    """
    if not args.yes and not console.input(f"Delete {len(args.paths)} object(s) and their posters? [y/N] ").lower().startswith("y"):
        console.print("[dim]Aborted[/]")
        return
    result = _run_engine(lambda engine: engine.delete_files(args.paths))
    for path in result.deleted:
        console.print(f"[red]-[/] {path}")
    console.print(f"[green]{len(result.deleted)} object(s) removed[/]")


def _cmd_cleanup_posters(args: argparse.Namespace) -> None:
    result = _run_engine(lambda engine: engine.cleanup_orphan_posters())
    for path in result.files:
        console.print(f"[red]-[/] {path}")
    console.print(f"[green]{result.deleted} orphan poster(s) removed[/]")


def _run_environment_check() -> None:
    """Check for the presence of required external dependencies."""
    checks = {
        "ffmpeg": ["ffmpeg", "-version"],
        "ffprobe": ["ffprobe", "-version"],
    }
    results = {}
    for label, cmd in checks.items():
        try:
            subprocess.run(cmd, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL, check=True)
            results[label] = True
        except (OSError, subprocess.CalledProcessError):
            results[label] = False

    console.rule("[bold]Environment Check")
    for label, ok in results.items():
        console.print(f"[bold]{label}[/]: {'✅' if ok else '❌'}")

    if not all(results.values()):
        console.print("[red]Missing dependencies detected; video posters will not be generated.[/]")
        sys.exit(1)
    console.print("[green]Environment looks good![/]")


if __name__ == "__main__":
    main()
