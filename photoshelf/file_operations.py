"""
File placement without overwriting, with dry-run support.
"""

import errno
import os
import shutil
from pathlib import Path
from typing import Set

from .constants import get_logger


class FileOperations:
    """Moves files into target directories, never replacing an existing file.

    Safe for repeated calls into the same directory from one thread; not
    meant for concurrent moves into the same directory.
    """

    def __init__(self, dry_run: bool = False):
        self.dry_run = dry_run
        self.logger = get_logger("photoshelf.files")
        # Destinations a dry run would have filled
        self.planned: Set[Path] = set()

    def is_taken(self, path: Path) -> bool:
        """True if path exists, or a dry run already placed a file there."""
        return path in self.planned or path.exists()

    def ensure_directory(self, directory: Path) -> None:
        """Create directory and parents if needed, with dry-run support."""
        if not self.dry_run and not directory.exists():
            directory.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def numbered_name(file_path: Path, counter: int) -> str:
        """Insert a numeric suffix before the extension: IMG_1.jpg -> IMG_1-2.jpg"""
        return f"{file_path.stem}-{counter}{file_path.suffix}"

    def create_unique_path(self, dest_dir: Path, file_path: Path) -> Path:
        """Return dest_dir/name, or the first free name-N variant."""
        dest_path = dest_dir / file_path.name
        counter = 1
        while self.is_taken(dest_path):
            dest_path = dest_dir / self.numbered_name(file_path, counter)
            counter += 1
        return dest_path

    def move_into(self, source: Path, target_dir: Path) -> Path:
        """Move source into target_dir under its own name.

        Raises FileExistsError if that name is already taken in target_dir.
        """
        self.ensure_directory(target_dir)
        dest = target_dir / source.name
        if self.is_taken(dest):
            raise FileExistsError(f"{dest} already exists")
        return self._move(source, dest)

    def move_avoiding_duplicates(self, source: Path, target_dir: Path) -> Path:
        """Move source into target_dir, renaming to name-1, name-2, ... on conflict."""
        self.ensure_directory(target_dir)
        dest = self.create_unique_path(target_dir, source)
        if dest.name != source.name:
            self.logger.debug(f"{target_dir / source.name} exists, using {dest.name}")
        return self._move(source, dest)

    def _move(self, source: Path, dest: Path) -> Path:
        if self.dry_run:
            self.logger.info(f"[DRY RUN] {source} -> {dest}")
            self.planned.add(dest)
            return dest

        # Same filesystem: a single rename. Otherwise shutil copies then unlinks.
        try:
            os.rename(source, dest)
        except OSError as e:
            if e.errno != errno.EXDEV:
                raise
            shutil.move(str(source), str(dest))

        if not dest.exists():
            raise FileNotFoundError(f"File not found after move: {dest}")
        if source.exists():
            raise OSError(f"Source file still exists after move: {source}")

        self.logger.info(f"{source} -> {dest}")
        return dest
