"""
Run history: a log file per run and a one-line audit record per command.
"""

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Dict


class HistoryManager:
    """Manages run history folders and the global runs.log."""

    def __init__(self, root_dir: Path, command: str, target: str, dry_run: bool = False):
        self.root_dir = root_dir
        self.command = command
        self.target = target
        self.dry_run = dry_run
        self.history_dir = self.root_dir / "history"
        self.runs_audit_log = self.root_dir / "runs.log"
        self.run_folder = None
        self.run_log = None
        self._file_handler = None

        if not self.dry_run:
            self._setup_run_folder()

    def _setup_run_folder(self) -> None:
        """Create a dated run folder, adding a counter if today's is taken."""
        timestamp = datetime.now().strftime("%Y-%m-%d")
        base_name = f"{timestamp}+{self.command}+{self._sanitize_name(self.target)}"

        folder_name = base_name
        folder = self.history_dir / folder_name
        counter = 1
        while folder.exists() and any(folder.iterdir()):
            folder_name = f"{base_name}-{counter:02d}"
            folder = self.history_dir / folder_name
            counter += 1

        folder.mkdir(parents=True, exist_ok=True)
        self.run_folder = folder
        self.run_log = folder / "run.log"

    @staticmethod
    def _sanitize_name(target: str) -> str:
        """Convert a destination path or URL to a safe folder name."""
        name = target.rstrip('/').rsplit('/', 1)[-1] or "root"
        sanitized = re.sub(r'[^\w\-_]', '-', name)
        sanitized = re.sub(r'-+', '-', sanitized)
        return sanitized.strip('-') or "root"

    def setup_run_logger(self, logger: logging.Logger) -> None:
        """Configure logger to also write to this run's log file."""
        if self.dry_run or self.run_log is None:
            return

        file_handler = logging.FileHandler(self.run_log, encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        formatter = logging.Formatter(
            '%(asctime)s [%(name)s] %(levelname)s: %(message)s'
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
        logger.setLevel(logging.DEBUG)
        self._file_handler = file_handler

    def close(self, logger: logging.Logger) -> None:
        """Detach and close this run's file handler."""
        if self._file_handler is not None:
            logger.removeHandler(self._file_handler)
            self._file_handler.close()
            self._file_handler = None

    def log_run_summary(self, source: str, stats: Dict[str, int], success: bool) -> None:
        """Append a summary record to the global runs.log."""
        if self.dry_run:
            return

        self.root_dir.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        status = "SUCCESS" if success else "PARTIAL"
        counts = ", ".join(f"{key}={value}" for key, value in stats.items())
        folder = self.run_folder.name if self.run_folder else "-"

        summary = (
            f"{timestamp} | {self.command.upper()} | {status} | "
            f"Source: {source} | Target: {self.target} | "
            f"{counts} | History: {folder}\n"
        )

        with open(self.runs_audit_log, 'a', encoding='utf-8') as f:
            f.write(summary)
