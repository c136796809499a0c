"""
Source tree discovery and file classification.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List

from .constants import (COLLISION_LAST_WINS, COLLISION_POLICIES,
                        COLLISION_REJECT, DETAILS_FILE_PREFIX, DETAILS_FILE_SUFFIX,
                        IMAGE_EXTENSIONS, VIDEO_EXTENSIONS, get_logger)
from .errors import ConfigError, SourceCollisionError
from .timestamps import PhotoDetails, read_photo_details_file


class FileKind(Enum):
    IMAGE = "image"
    VIDEO = "video"
    METADATA = "metadata"
    OTHER = "other"


def classify(file_path: Path) -> FileKind:
    """Classify a file by case-insensitive extension or sidecar filename pattern."""
    name = file_path.name.lower()
    if name.startswith(DETAILS_FILE_PREFIX) and name.endswith(DETAILS_FILE_SUFFIX):
        return FileKind.METADATA

    ext = file_path.suffix.lower()
    if ext in IMAGE_EXTENSIONS:
        return FileKind.IMAGE
    if ext in VIDEO_EXTENSIONS:
        return FileKind.VIDEO
    return FileKind.OTHER


@dataclass
class ScanResult:
    """Everything discovered under the source roots, keyed by bare filename.

    Media files sharing a name are all kept, in discovery order.
    """
    details: Dict[str, PhotoDetails] = field(default_factory=dict)
    media: Dict[str, List[Path]] = field(default_factory=dict)
    details_files: List[Path] = field(default_factory=list)
    other_files: List[Path] = field(default_factory=list)

    @property
    def media_count(self) -> int:
        return sum(len(paths) for paths in self.media.values())

    def iter_media(self) -> Iterable[Path]:
        for paths in self.media.values():
            yield from paths


class SourceScanner:
    """Walks source roots depth-first and merges what it finds."""

    def __init__(self, collision_policy: str = COLLISION_LAST_WINS):
        if collision_policy not in COLLISION_POLICIES:
            raise ConfigError(f"Unknown collision policy: {collision_policy!r} "
                              f"(expected one of {', '.join(COLLISION_POLICIES)})")
        self.collision_policy = collision_policy
        self.logger = get_logger("photoshelf.scanner")

    def scan(self, sources: Iterable[Path]) -> ScanResult:
        """Scan all source roots into one merged result."""
        merged = ScanResult()
        for source in sources:
            root_result = ScanResult()
            self._walk(Path(source), root_result)
            self.logger.info(f"{source}: {root_result.media_count} media files, "
                             f"{len(root_result.details)} sidecar records")
            self._merge(merged, root_result)
        return merged

    def _walk(self, directory: Path, result: ScanResult) -> None:
        """Recurse depth-first, subdirectories in name order."""
        for child in sorted(directory.iterdir()):
            if child.is_dir():
                self._walk(child, result)
            elif child.is_file():
                kind = classify(child)
                if kind is FileKind.METADATA:
                    # Records inside one root simply replace earlier ones
                    result.details.update(read_photo_details_file(child))
                    result.details_files.append(child)
                elif kind in (FileKind.IMAGE, FileKind.VIDEO):
                    result.media.setdefault(child.name, []).append(child)
                else:
                    result.other_files.append(child)

    def _merge(self, merged: ScanResult, incoming: ScanResult) -> None:
        for filename, details in incoming.details.items():
            existing = merged.details.get(filename)
            if existing is None:
                merged.details[filename] = details
                continue

            if existing.creation_date != details.creation_date:
                self.logger.warning(
                    f"Conflicting sidecar dates for {filename}: "
                    f"{existing.creation_date} vs {details.creation_date} "
                    f"(policy: {self.collision_policy})"
                )

            if self.collision_policy == COLLISION_REJECT:
                raise SourceCollisionError(
                    f"Sidecar record for {filename} appears under more than one source root"
                )
            if self.collision_policy == COLLISION_LAST_WINS:
                merged.details[filename] = details
            # COLLISION_FIRST_WINS keeps the existing record

        for filename, paths in incoming.media.items():
            merged.media.setdefault(filename, []).extend(paths)

        merged.details_files.extend(incoming.details_files)
        merged.other_files.extend(incoming.other_files)
