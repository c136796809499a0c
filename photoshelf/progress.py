"""Progress reporting shared by the sort loop and the upload workers."""

import threading
from typing import Optional

from rich.progress import Progress, TaskID


class ProgressContext:
    """One rich progress task, or a silent counter when no bar is shown.

    Upload workers report from their own threads, so every change goes
    through one lock. The finished count is kept here as well, whether or
    not a bar is attached.
    """

    def __init__(self, progress: Optional[Progress] = None, task: Optional[TaskID] = None):
        self.progress = progress
        self.task = task
        self.completed = 0
        self.total: Optional[int] = None
        self._lock = threading.Lock()

    @property
    def is_active(self) -> bool:
        return self.progress is not None and self.task is not None

    def set_total(self, total: int) -> None:
        """Set the number of items once the walk has counted them."""
        with self._lock:
            self.total = total
            if self.is_active:
                self.progress.update(self.task, total=total)

    def advance(self, steps: int = 1) -> None:
        """Mark items finished, whatever their outcome."""
        with self._lock:
            self.completed += steps
            if self.is_active:
                self.progress.advance(self.task, steps)

    def update(self, description: str) -> None:
        with self._lock:
            if self.is_active:
                self.progress.update(self.task, description=description)
