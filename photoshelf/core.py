"""
Core photo sorting functionality.
"""

from datetime import date
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple

from rich.progress import Progress
from rich.table import Table

from .constants import (COLLISION_LAST_WINS, DUPLICATES_BUCKET, UNSORTED_BUCKET,
                        UNSORTED_VIDEOS_BUCKET, get_console, get_logger)
from .errors import ConfigError
from .file_operations import FileOperations
from .progress import ProgressContext
from .scanner import FileKind, ScanResult, SourceScanner, classify
from .stats import SortStats
from .timestamps import PhotoDetails, get_embedded_date

# Where a file's date came from, or why it has none
DATE_FROM_SIDECAR = "sidecar"
DATE_FROM_EMBEDDED = "embedded"
NO_DATE_VIDEO = "video"
NO_DATE = "none"


class PhotoSorter:
    """Routes every discovered photo and video into exactly one bucket under dest:

    dest/<year>/<month>   a date was resolved
    dest/duplicates       a date was resolved but the name is taken in that month
    dest/unsorted_videos  a video without a sidecar record
    dest/unsorted         an image without any usable date
    """

    def __init__(self, sources: Iterable[Path], dest: Path, dry_run: bool = False,
                 collision_policy: str = COLLISION_LAST_WINS):
        self.sources = [Path(source) for source in sources]
        self.dest = Path(dest)
        self.dry_run = dry_run
        self.stats_manager = SortStats()
        self.console = get_console()
        self.logger = get_logger()

        self.file_ops = FileOperations(dry_run=dry_run)
        self.scanner = SourceScanner(collision_policy=collision_policy)

        self.unsorted_dir = self.dest / UNSORTED_BUCKET
        self.unsorted_videos_dir = self.dest / UNSORTED_VIDEOS_BUCKET
        self.duplicates_dir = self.dest / DUPLICATES_BUCKET

    def validate(self) -> None:
        """Check sources and destination before anything is touched."""
        if not self.sources:
            raise ConfigError("At least one source directory is required")

        dest = self.dest.expanduser().resolve()
        roots = []
        for source in self.sources:
            if not source.exists():
                raise ConfigError(f"Directory {source} doesn't exist")
            if not source.is_dir():
                raise ConfigError(f"Source is not a directory: {source}")

            source = source.expanduser().resolve()
            if source == dest or source in dest.parents:
                raise ConfigError(f"Destination {self.dest} lies inside source {source}")
            if source in roots:
                self.logger.warning(f"Source {source} given more than once")
                continue
            roots.append(source)

        # A nested root would be walked twice
        for source in roots:
            for other in roots:
                if other in source.parents:
                    raise ConfigError(f"Source {source} lies inside source {other}")

        if self.dest.exists() and not self.dest.is_dir():
            raise ConfigError(f"Destination is not a directory: {self.dest}")

        self.sources = roots

    def find_source_files(self) -> ScanResult:
        """Collect sidecar records and media files from every source root."""
        scan = self.scanner.scan(self.sources)
        self.stats_manager.increment('details_files', len(scan.details_files))
        if scan.other_files:
            self.logger.info(f"Ignoring {len(scan.other_files)} files that are not photos or videos")
        return scan

    def sort(self, progress_ctx: Optional[ProgressContext] = None) -> Dict[str, int]:
        """Validate, scan and sort. Returns the run statistics."""
        self.validate()
        if not self.dry_run:
            self.dest.mkdir(parents=True, exist_ok=True)

        self.logger.info(f"Starting sort: {', '.join(map(str, self.sources))} -> {self.dest}")
        scan = self.find_source_files()
        self.logger.info(f"Found {scan.media_count} media files and "
                         f"{len(scan.details)} sidecar records")

        self.process_files(scan, progress_ctx)
        return self.stats_manager.get_stats()

    def process_files(self, scan: ScanResult, progress_ctx: Optional[ProgressContext] = None) -> None:
        """Process all media files with progress tracking."""
        if progress_ctx is None:
            with Progress(console=self.console, transient=True) as progress:
                task = progress.add_task("Sorting files...", total=scan.media_count)
                self._process_files_with_progress(scan, ProgressContext(progress, task))
        else:
            progress_ctx.set_total(scan.media_count)
            self._process_files_with_progress(scan, progress_ctx)

    def _process_files_with_progress(self, scan: ScanResult, progress_ctx: ProgressContext) -> None:
        for file_path in scan.iter_media():
            try:
                self._process_single_file(file_path, scan.details.get(file_path.name))
            except OSError as e:
                self.logger.error(f"Error sorting {file_path}: {e}")
                self.stats_manager.increment('errors')

            progress_ctx.advance()

    def resolve_date(self, file_path: Path,
                     details: Optional[PhotoDetails]) -> Tuple[Optional[date], str]:
        """Resolve a file's date: sidecar record, else embedded tag for images."""
        if details is not None:
            return details.creation_date, DATE_FROM_SIDECAR

        if classify(file_path) is FileKind.VIDEO:
            return None, NO_DATE_VIDEO

        embedded = get_embedded_date(file_path)
        if embedded is not None:
            return embedded, DATE_FROM_EMBEDDED
        return None, NO_DATE

    def get_bucket_dir(self, creation_date: date) -> Path:
        """dest/<year>/<zero-padded month>"""
        return self.dest / str(creation_date.year) / f"{creation_date.month:02d}"

    def _process_single_file(self, file_path: Path, details: Optional[PhotoDetails]) -> None:
        file_size = file_path.stat().st_size
        creation_date, source = self.resolve_date(file_path, details)

        if source == NO_DATE_VIDEO:
            self.file_ops.move_avoiding_duplicates(file_path, self.unsorted_videos_dir)
            self.stats_manager.record_placed('unsorted_videos', file_size)
            return

        if creation_date is None:
            self.file_ops.move_avoiding_duplicates(file_path, self.unsorted_dir)
            self.stats_manager.record_placed('unsorted', file_size)
            return

        self.stats_manager.increment('sidecar_dates' if source == DATE_FROM_SIDECAR
                                     else 'embedded_dates')
        bucket = self.get_bucket_dir(creation_date)
        try:
            self.file_ops.move_into(file_path, bucket)
            self.stats_manager.record_placed('dated', file_size)
        except FileExistsError:
            self.logger.warning(f"{file_path.name} already exists in {bucket}, moving to duplicates")
            self.file_ops.move_avoiding_duplicates(file_path, self.duplicates_dir)
            self.stats_manager.record_placed('duplicates', file_size)

    def print_summary(self) -> None:
        """Print processing summary."""
        table = Table(title="Sort Summary" + (" (dry run)" if self.dry_run else ""))
        table.add_column("Category", style="cyan")
        table.add_column("Count", style="green")

        stats = self.stats_manager
        table.add_row("Sorted by date", str(stats['dated']))
        table.add_row("  from sidecar records", str(stats['sidecar_dates']))
        table.add_row("  from embedded tags", str(stats['embedded_dates']))
        table.add_row("Duplicates", str(stats['duplicates']))
        table.add_row("Unsorted", str(stats['unsorted']))
        table.add_row("Unsorted videos", str(stats['unsorted_videos']))
        table.add_row("Sidecar files read", str(stats['details_files']))
        table.add_row("Errors", str(stats['errors']))

        size_mb = stats.get_total_size_mb()
        if size_mb > 1024:
            size_str = f"{size_mb/1024:.1f} GB"
        else:
            size_str = f"{size_mb:.1f} MB"
        table.add_row("Total Size", size_str)

        self.console.print(table)

        if stats.has_errors():
            self.console.print("\n[red]Some files could not be moved, see the log for details[/red]")
