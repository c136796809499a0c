"""
Command-line interface for photoshelf.
"""

import argparse
import os
import sys
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.markup import escape
from rich.progress import Progress

from .config import Config
from .constants import DEFAULT_UPLOAD_WORKERS, PROGRAM, get_console, get_logger, setup_logging
from .core import PhotoSorter
from .errors import ConfigError, PhotoShelfError
from .history import HistoryManager
from .progress import ProgressContext
from .remote import WebDavClient
from .sync import SyncEngine

PASSWORD_ENV = "PHOTOSHELF_PASSWORD"


def create_parser(config: Config) -> argparse.ArgumentParser:
    """Create argument parser with dynamic defaults from config."""
    last_sources = config.get_last_sources()
    last_dest = config.get_last_dest()
    last_sync_source = config.get_last_sync_source()
    remote_url = config.get_remote_url()
    remote_user = config.get_remote_user()

    sources_help = "Exported photo directories to sort"
    dest_help = "Destination directory for the sorted tree"
    sync_source_help = "Local directory to mirror (usually the sort destination)"
    url_help = "WebDAV base URL, e.g. https://cloud.example.com/remote.php/dav/files/me/Photos"
    user_help = "WebDAV username"

    if last_sources:
        sources_help += f" (default: {' '.join(last_sources)})"
    if last_dest:
        dest_help += f" (default: {last_dest})"
    if last_sync_source:
        sync_source_help += f" (default: {last_sync_source})"
    if remote_url:
        url_help += f" (default: {remote_url})"
    if remote_user:
        user_help += f" (default: {remote_user})"

    parser = argparse.ArgumentParser(
        prog=PROGRAM,
        description="Sort exported photos into year/month folders and mirror them to WebDAV",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Examples:
  {PROGRAM} sort ~/Exports/iCloud\\ Photos --dest ~/Pictures/Sorted
  {PROGRAM} sync ~/Pictures/Sorted --url https://hub.local/remote.php/dav/files/me/Photos --user me
  {PROGRAM} sort --dry-run
        """
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true",
        help="Enable verbose logging"
    )
    parser.add_argument(
        "--version", "-V", action="store_true",
        help=f"Display the version number of {PROGRAM} and exit"
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

    sort_parser = subparsers.add_parser("sort", help="Sort exported photos into dated folders")
    sort_parser.add_argument("sources", nargs="*", metavar="SOURCE", help=sources_help)
    sort_parser.add_argument("--dest", "-d", help=dest_help)
    sort_parser.add_argument(
        "--yes", "-y", action="store_true",
        help="Auto-confirm processing for saved source/dest paths"
    )
    sort_parser.add_argument(
        "--dry-run", "-n", action="store_true",
        help="Preview moves without touching any file"
    )

    sync_parser = subparsers.add_parser("sync", help="Upload missing or changed files to WebDAV")
    sync_parser.add_argument("source", nargs="?", help=sync_source_help)
    sync_parser.add_argument("--url", "-u", help=url_help)
    sync_parser.add_argument("--user", help=user_help)
    sync_parser.add_argument(
        "--password",
        help=f"WebDAV password (default: ${PASSWORD_ENV}, else prompt)"
    )
    sync_parser.add_argument(
        "--workers", "-w", type=int, metavar="N",
        help=f"Concurrent uploads (default: {config.data.get('upload_workers', DEFAULT_UPLOAD_WORKERS)})"
    )
    sync_parser.add_argument(
        "--dry-run", "-n", action="store_true",
        help="Compare with the remote store without creating or uploading anything"
    )

    return parser


def show_processing_plan(rows: List[tuple], console: Console) -> None:
    """Display the processing plan before execution."""
    console.print("\n[bold]Processing Plan:[/bold]")
    for label, value in rows:
        console.print(f"  {label + ':':<17}[cyan]{value}[/cyan]")
    console.print()


def confirm_processing(console: Console) -> bool:
    """Ask for confirmation when using saved configuration."""
    console.print("[yellow]Confirm processing plan with saved configuration.[/yellow]")

    try:
        response = console.input("Continue? [y/N]: ").strip().lower()
        return response in ['y', 'yes']
    except (EOFError, KeyboardInterrupt):
        console.print("\n[red]Operation cancelled[/red]")
        return False


def run_sort(args: argparse.Namespace, config: Config, parser: argparse.ArgumentParser,
             console: Console) -> int:
    """Handle the sort command."""
    using_saved_config = not args.sources and not args.dest
    source_paths = args.sources or config.get_last_sources()
    dest_path = args.dest or config.get_last_dest()

    if not source_paths or not dest_path:
        parser.error("Source and destination directories are required")

    sources = [Path(source).expanduser().resolve() for source in source_paths]
    dest = Path(dest_path).expanduser().resolve()

    sorter = PhotoSorter(sources=sources, dest=dest, dry_run=args.dry_run,
                         collision_policy=config.get_collision_policy())
    sorter.validate()
    config.update_sort_paths([str(source) for source in sources], str(dest))

    show_processing_plan([
        ("Sources", ", ".join(str(source) for source in sources)),
        ("Destination", dest),
        ("Processing Mode", "DRY RUN" if args.dry_run else "MOVE"),
    ], console)

    if using_saved_config and not args.yes:
        if not confirm_processing(console):
            return 0

    logger = get_logger()
    history = HistoryManager(config.program_root, "sort", str(dest), dry_run=args.dry_run)
    history.setup_run_logger(logger)
    try:
        with Progress(console=console) as progress:
            task = progress.add_task("Sorting files...", total=None)
            stats = sorter.sort(ProgressContext(progress, task))

        sorter.print_summary()
        history.log_run_summary(", ".join(map(str, sources)), stats,
                                success=not sorter.stats_manager.has_errors())
    finally:
        history.close(logger)

    console.print("\n[green]✓ Sort completed[/green]")
    return 0


def run_sync(args: argparse.Namespace, config: Config, parser: argparse.ArgumentParser,
             console: Console) -> int:
    """Handle the sync command."""
    source_path = args.source or config.get_last_sync_source()
    remote_url = args.url or config.get_remote_url()
    remote_user = args.user or config.get_remote_user()

    if not source_path or not remote_url:
        parser.error("Source directory and remote URL are required")

    source = Path(source_path).expanduser().resolve()
    if not source.exists():
        raise ConfigError(f"Source directory {source} doesn't exist")
    if not remote_url.startswith(("http://", "https://")):
        raise ConfigError(f"Remote URL must start with http:// or https://: {remote_url}")

    workers = args.workers if args.workers is not None else config.get_upload_workers()
    password = args.password or os.environ.get(PASSWORD_ENV)
    if remote_user and password is None:
        password = console.input(f"Password for {remote_user}: ", password=True)

    config.update_sync_settings(str(source), remote_url, remote_user)

    show_processing_plan([
        ("Source", source),
        ("Remote", remote_url),
        ("User", remote_user or "(anonymous)"),
        ("Uploads", f"{workers} concurrent"),
        ("Processing Mode", "DRY RUN" if args.dry_run else "UPLOAD"),
    ], console)

    client = WebDavClient(remote_url, username=remote_user, password=password)
    engine = SyncEngine(client, workers=workers, ignore_names=config.get_ignore_names(),
                        dry_run=args.dry_run)

    logger = get_logger()
    history = HistoryManager(config.program_root, "sync", remote_url, dry_run=args.dry_run)
    history.setup_run_logger(logger)
    try:
        with Progress(console=console) as progress:
            task = progress.add_task("Syncing files...", total=None)
            stats = engine.sync(source, progress_ctx=ProgressContext(progress, task))

        engine.print_summary()
        history.log_run_summary(str(source), stats,
                                success=not engine.stats_manager.has_errors())
    finally:
        history.close(logger)

    console.print("\n[green]✓ Sync completed[/green]")
    return 0


def main(argv: Optional[List[str]] = None, config_path: Optional[Path] = None) -> int:
    """Main entry point.

    Args:
        argv: Arguments to parse instead of sys.argv (for testing)
        config_path: Optional path to config file (for testing)
    """
    config = Config(config_path=config_path)
    parser = create_parser(config)
    args = parser.parse_args(argv)

    if args.version:
        from . import __version__
        print(__version__)
        return 0

    if args.command is None:
        parser.print_help()
        return 1

    setup_logging(verbose=args.verbose)
    console = get_console()

    try:
        if args.command == "sort":
            return run_sort(args, config, parser, console)
        return run_sync(args, config, parser, console)

    except PhotoShelfError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}", soft_wrap=True)
        return 1
    except KeyboardInterrupt:
        console.print("\n[red]Operation cancelled by user[/red]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
