"""
Statistics tracking for sort and sync runs.
"""

import threading
from typing import Dict


class SortStats:
    """Counts where each media file ended up during a sort run."""

    def __init__(self):
        self._stats = {
            'dated': 0,
            'unsorted': 0,
            'unsorted_videos': 0,
            'duplicates': 0,
            'sidecar_dates': 0,
            'embedded_dates': 0,
            'details_files': 0,
            'errors': 0,
            'total_size': 0,
        }

    def increment(self, key: str, count: int = 1) -> None:
        self._stats[key] += count

    def record_placed(self, bucket_key: str, file_size: int) -> None:
        """Record a file moved into one of the terminal buckets."""
        self._stats[bucket_key] += 1
        self._stats['total_size'] += file_size

    def get_stats(self) -> Dict[str, int]:
        """Get a copy of current statistics."""
        return self._stats.copy()

    def get_total_files(self) -> int:
        """Files that reached a terminal bucket."""
        return (self._stats['dated'] + self._stats['unsorted'] +
                self._stats['unsorted_videos'] + self._stats['duplicates'])

    def get_total_size_mb(self) -> float:
        return self._stats['total_size'] / (1024 * 1024)

    def has_errors(self) -> bool:
        return self._stats['errors'] > 0

    def __getitem__(self, key: str) -> int:
        return self._stats[key]


class SyncStats:
    """Counts remote operations; updated from upload worker threads."""

    def __init__(self):
        self._lock = threading.Lock()
        self._stats = {
            'directories_created': 0,
            'directories_failed': 0,
            'uploaded': 0,
            'in_sync': 0,
            'stale': 0,
            'failed': 0,
            'ignored': 0,
            'bytes_uploaded': 0,
        }

    def increment(self, key: str, count: int = 1) -> None:
        with self._lock:
            self._stats[key] += count

    def record_upload(self, file_size: int) -> None:
        with self._lock:
            self._stats['uploaded'] += 1
            self._stats['bytes_uploaded'] += file_size

    def get_stats(self) -> Dict[str, int]:
        with self._lock:
            return self._stats.copy()

    def get_total_size_mb(self) -> float:
        return self['bytes_uploaded'] / (1024 * 1024)

    def has_errors(self) -> bool:
        return self['failed'] > 0 or self['directories_failed'] > 0

    def __getitem__(self, key: str) -> int:
        with self._lock:
            return self._stats[key]
