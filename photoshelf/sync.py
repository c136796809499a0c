"""
Incremental mirroring of a local tree onto a remote store.
"""

from concurrent.futures import Future, ThreadPoolExecutor, wait
from pathlib import Path
from typing import Dict, Iterable, List, Optional
from urllib.parse import quote, quote_plus, unquote

from rich.table import Table

from .constants import DEFAULT_UPLOAD_WORKERS, IGNORED_NAMES, get_console, get_logger
from .errors import ConfigError, RemoteStoreError
from .progress import ProgressContext
from .remote import RemoteEntry, join_remote
from .stats import SyncStats


def name_variants(name: str) -> List[str]:
    """Forms a local filename may take on the remote side.

    Some servers report spaces as '+', others keep the percent-encoding.
    """
    return [name, name.replace(" ", "+"), quote(name, safe=""), quote_plus(name, safe="")]


class RemoteIndex:
    """Snapshot of one remote directory listing, for name lookups."""

    def __init__(self, entries: Iterable[RemoteEntry]):
        self.entries = list(entries)
        self._files: Dict[str, RemoteEntry] = {}
        self._directories: Dict[str, RemoteEntry] = {}
        for entry in self.entries:
            if entry.is_directory:
                for key in {entry.name, unquote(entry.name)}:
                    self._directories.setdefault(key, entry)
            else:
                for key in {entry.name.casefold(), unquote(entry.name).casefold()}:
                    self._files.setdefault(key, entry)

    def find_file(self, name: str) -> Optional[RemoteEntry]:
        """Case-insensitive file lookup, tolerating the remote encodings."""
        for variant in name_variants(name):
            entry = self._files.get(variant.casefold())
            if entry is not None:
                return entry
        return None

    def find_directory(self, name: str) -> Optional[RemoteEntry]:
        for variant in name_variants(name):
            entry = self._directories.get(variant)
            if entry is not None:
                return entry
        return None


class SyncEngine:
    """Mirrors a local directory tree onto a remote store, top-down.

    The store needs three methods taking slash-delimited relative paths:
    list(path) -> [RemoteEntry], create_directory(path) -> bool (False when it
    already existed) and put(path, local_file).

    Directories are listed and created in tree order. Uploads from one
    directory go to a bounded pool shared by the whole walk and are joined
    before that directory returns. A failed upload is logged and left for the
    next run. Listings are not refreshed before each create or upload, so a
    second writer on the same remote tree can race with this one.
    """

    def __init__(self, store, workers: int = DEFAULT_UPLOAD_WORKERS,
                 ignore_names: Iterable[str] = IGNORED_NAMES, dry_run: bool = False):
        if workers < 1:
            raise ConfigError(f"Upload workers must be at least 1, got {workers}")
        self.store = store
        self.workers = workers
        self.ignore_names = {name.casefold() for name in ignore_names}
        self.dry_run = dry_run
        self.stats_manager = SyncStats()
        self.console = get_console()
        self.logger = get_logger("photoshelf.sync")
        self._executor: Optional[ThreadPoolExecutor] = None

    def is_ignored(self, path: Path) -> bool:
        return path.name.casefold() in self.ignore_names

    def count_local_files(self, source: Path) -> int:
        """Number of files the walk will look at, for progress totals."""
        try:
            children = list(source.iterdir())
        except OSError as e:
            # The walk reports and skips this directory itself
            self.logger.warning(f"Cannot count files in {source}: {e}")
            return 0

        total = 0
        for child in children:
            if self.is_ignored(child):
                continue
            if child.is_dir():
                total += self.count_local_files(child)
            elif child.is_file():
                total += 1
        return total

    def sync(self, source: Path, remote_root: str = "",
             progress_ctx: Optional[ProgressContext] = None) -> Dict[str, int]:
        """Upload everything under source that is missing or stale remotely."""
        source = Path(source)
        if not source.exists():
            raise ConfigError(f"Source directory {source} doesn't exist")
        if not source.is_dir():
            raise ConfigError(f"Source is not a directory: {source}")

        progress_ctx = progress_ctx or ProgressContext()
        progress_ctx.set_total(self.count_local_files(source))
        self.logger.info(f"Starting sync: {source} -> /{remote_root.strip('/')}"
                         f"{' (dry run)' if self.dry_run else ''}")

        # The root listing is the connectivity check: its failure is fatal
        existing = self.store.list(remote_root)

        with ThreadPoolExecutor(max_workers=self.workers,
                                thread_name_prefix="upload") as executor:
            self._executor = executor
            try:
                self.process_folder(source, remote_root, existing, progress_ctx)
            finally:
                self._executor = None

        self.logger.info("All files processed")
        return self.stats_manager.get_stats()

    def process_folder(self, local_dir: Path, remote_dir: str,
                       existing: Iterable[RemoteEntry], progress_ctx: ProgressContext) -> None:
        """Sync one directory level: subdirectories first, then its files."""
        self.logger.debug(f"Processing folder /{remote_dir}")
        children = sorted(local_dir.iterdir())
        index = RemoteIndex(existing)

        for child in children:
            if self.is_ignored(child):
                self.stats_manager.increment('ignored')
            elif child.is_dir():
                self._sync_directory(child, remote_dir, index, progress_ctx)

        futures: List[Future] = []
        for child in children:
            if self.is_ignored(child) or not child.is_file():
                continue
            future = self._sync_file(child, remote_dir, index, progress_ctx)
            if future is not None:
                futures.append(future)

        # Join this level's uploads only; other branches are not waited on
        wait(futures)

    def _sync_directory(self, local_dir: Path, remote_dir: str, index: RemoteIndex,
                        progress_ctx: ProgressContext) -> None:
        remote_entry = index.find_directory(local_dir.name)
        remote_path = join_remote(remote_dir, remote_entry.name if remote_entry else local_dir.name)

        try:
            if remote_entry is not None:
                existing = self.store.list(remote_path)
            elif self.dry_run:
                self.logger.info(f"[DRY RUN] Create directory /{remote_path}")
                existing = []
            elif self.store.create_directory(remote_path):
                self.logger.info(f"Created directory /{remote_path}")
                self.stats_manager.increment('directories_created')
                existing = []
            else:
                # Created by someone else since our listing
                existing = self.store.list(remote_path)

            self.process_folder(local_dir, remote_path, existing, progress_ctx)

        except (RemoteStoreError, OSError) as e:
            self.logger.error(f"Skipping directory /{remote_path}: {e}")
            self.stats_manager.increment('directories_failed')

    def _sync_file(self, local_file: Path, remote_dir: str, index: RemoteIndex,
                   progress_ctx: ProgressContext) -> Optional[Future]:
        """Compare one file with the listing; submit an upload if needed."""
        remote_path = join_remote(remote_dir, local_file.name)
        try:
            file_size = local_file.stat().st_size
        except OSError as e:
            self.logger.error(f"Cannot read {local_file}: {e}")
            self.stats_manager.increment('failed')
            progress_ctx.advance()
            return None

        remote_entry = index.find_file(local_file.name)
        if remote_entry is not None:
            if remote_entry.length == file_size:
                self.stats_manager.increment('in_sync')
                progress_ctx.advance()
                return None
            self.logger.info(
                f"Resource [{local_file.name}] exists, but the size differs, "
                f"existing [{remote_entry.length}], expected [{file_size}]"
            )
            self.stats_manager.increment('stale')

        if self.dry_run:
            self.logger.info(f"[DRY RUN] Upload {local_file} -> /{remote_path}")
            progress_ctx.advance()
            return None

        return self._executor.submit(self._upload, local_file, remote_path, file_size, progress_ctx)

    def _upload(self, local_file: Path, remote_path: str, file_size: int,
                progress_ctx: ProgressContext) -> None:
        """Runs on a pool thread. Never raises."""
        try:
            self.logger.info(f"Upload file /{remote_path}")
            self.store.put(remote_path, local_file)
            self.stats_manager.record_upload(file_size)
            progress_ctx.update(f"Uploaded: {local_file.name}")
        except Exception as e:
            self.logger.error(f"Failed to upload file {local_file.name}, will try next time: {e}")
            self.stats_manager.increment('failed')
        finally:
            progress_ctx.advance()

    def print_summary(self) -> None:
        """Print sync summary."""
        table = Table(title="Sync Summary" + (" (dry run)" if self.dry_run else ""))
        table.add_column("Category", style="cyan")
        table.add_column("Count", style="green")

        stats = self.stats_manager
        table.add_row("Uploaded", str(stats['uploaded']))
        table.add_row("  replacing stale files", str(stats['stale']))
        table.add_row("Already in sync", str(stats['in_sync']))
        table.add_row("Directories created", str(stats['directories_created']))
        table.add_row("Ignored", str(stats['ignored']))
        table.add_row("Failed uploads", str(stats['failed']))
        table.add_row("Failed directories", str(stats['directories_failed']))
        table.add_row("Uploaded Size", f"{stats.get_total_size_mb():.1f} MB")

        self.console.print(table)

        if stats.has_errors():
            self.console.print("\n[yellow]Some files were not uploaded; "
                               "run sync again to retry them[/yellow]")
