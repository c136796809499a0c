"""
pytest configuration and fixtures for photoshelf tests.
"""

import csv
import io
import json
import subprocess
import sys
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from photoshelf.errors import RemoteStoreError
from photoshelf.remote import RemoteEntry

DETAILS_HEADER = ["imgName", "fileChecksum", "favorite", "hidden", "deleted",
                  "originalCreationDate", "viewCount", "importDate"]

# Value for embedded_dates that makes the stubbed exiftool fail
EXIFTOOL_ERROR = object()


@dataclass
class CliResult:
    """Result from running CLI command."""
    exit_code: int
    output: str
    error: str


def _parent(path: str) -> str:
    return path.rsplit('/', 1)[0] if '/' in path else ""


class MemoryStore:
    """In-memory remote store with the list / create_directory / put interface."""

    def __init__(self, put_delay: float = 0.0):
        self.directories = {""}
        self.files: Dict[str, bytes] = {}
        self.fail_uploads = set()
        self.fail_listings = set()
        self.put_delay = put_delay
        self.events: List[tuple] = []
        self.max_concurrent_puts = 0
        self._active_puts = 0
        self._lock = threading.Lock()

    def list(self, path: str = "") -> List[RemoteEntry]:
        path = path.strip('/')
        with self._lock:
            self.events.append(("list", path))
        if path in self.fail_listings:
            raise RemoteStoreError(f"PROPFIND /{path}: unexpected status 500", 500)
        if path not in self.directories:
            raise RemoteStoreError(f"PROPFIND /{path}: unexpected status 404", 404)

        entries = [RemoteEntry(d.rsplit('/', 1)[-1], -1)
                   for d in self.directories if d and _parent(d) == path]
        entries += [RemoteEntry(f.rsplit('/', 1)[-1], len(data))
                    for f, data in self.files.items() if _parent(f) == path]
        return entries

    def create_directory(self, path: str) -> bool:
        path = path.strip('/')
        with self._lock:
            self.events.append(("mkcol", path))
            if path in self.directories:
                return False
            if _parent(path) not in self.directories:
                raise RemoteStoreError(f"MKCOL /{path}: unexpected status 409", 409)
            self.directories.add(path)
            return True

    def put(self, path: str, local_file: Path) -> None:
        with self._lock:
            self.events.append(("put", path))
            self._active_puts += 1
            self.max_concurrent_puts = max(self.max_concurrent_puts, self._active_puts)
        try:
            if self.put_delay:
                time.sleep(self.put_delay)
            if path.rsplit('/', 1)[-1] in self.fail_uploads:
                raise RemoteStoreError(f"PUT /{path}: unexpected status 507", 507)
            if _parent(path) not in self.directories:
                raise RemoteStoreError(f"PUT /{path}: unexpected status 409", 409)
            data = Path(local_file).read_bytes()
            with self._lock:
                self.files[path] = data
        finally:
            with self._lock:
                self._active_puts -= 1

    def puts(self) -> List[str]:
        return [path for kind, path in self.events if kind == "put"]

    def mkcols(self) -> List[str]:
        return [path for kind, path in self.events if kind == "mkcol"]

    def reset_events(self) -> None:
        self.events.clear()


@pytest.fixture
def memory_store():
    """Empty in-memory remote store."""
    return MemoryStore()


@pytest.fixture
def test_config_path(tmp_path):
    """Isolated config path; history and runs.log land next to it."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    return config_dir / "config.yml"


@pytest.fixture
def cli_runner(monkeypatch):
    """Create a CLI runner that captures output and uses test config."""

    def run_cli(*args, config_path=None, answer="n"):
        """Run photoshelf CLI with given arguments.

        Args:
            *args: Command line arguments (command, paths, --flags, etc)
            config_path: Optional config path for test isolation
            answer: Reply given to any confirmation or password prompt

        Returns:
            CliResult with exit_code, output, and error
        """
        from photoshelf.cli import main
        from photoshelf.constants import get_console

        old_stdout = sys.stdout
        old_stderr = sys.stderr
        stdout = io.StringIO()
        stderr = io.StringIO()

        # Never block on prompts
        monkeypatch.setattr(get_console(), "input", lambda prompt="", **kwargs: answer)

        try:
            sys.stdout = stdout
            sys.stderr = stderr
            exit_code = main(argv=[str(a) for a in args], config_path=config_path)
        except SystemExit as e:
            exit_code = e.code if e.code is not None else 0
        finally:
            sys.stdout = old_stdout
            sys.stderr = old_stderr

        return CliResult(exit_code=exit_code, output=stdout.getvalue(), error=stderr.getvalue())

    return run_cli


@pytest.fixture
def create_test_files(tmp_path):
    """Helper to create test files with specific properties."""

    def create_files(file_specs: List[dict], root: Optional[Path] = None) -> Path:
        """Create test files based on specifications.

        Args:
            file_specs: List of dicts with keys:
                - name: relative file path
                - content: file content (optional)
            root: Directory to create them in (default: tmp_path/test_files)

        Returns:
            Path to directory containing created files
        """
        test_dir = root or tmp_path / "test_files"
        test_dir.mkdir(parents=True, exist_ok=True)

        for spec in file_specs:
            file_path = test_dir / spec['name']
            file_path.parent.mkdir(parents=True, exist_ok=True)

            content = spec.get('content', b'test file content')
            if isinstance(content, str):
                file_path.write_text(content)
            else:
                file_path.write_bytes(content)

        return test_dir

    return create_files


@pytest.fixture
def write_details_csv():
    """Write a sidecar 'Photo Details' CSV with the exporter's column layout."""

    def write(path: Path, records: List[tuple]) -> Path:
        """records: (filename, creation_date_text, import_date_text) tuples."""
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', newline='', encoding='utf-8') as f:
            writer = csv.writer(f)
            writer.writerow(DETAILS_HEADER)
            for filename, created, imported in records:
                writer.writerow([filename, "abc123", "no", "no", "no", created, "0", imported])
        return path

    return write


class ExifStub:
    """Stands in for exiftool: bare filename -> raw DateTimeOriginal value.

    Files not in `dates` have no tag; EXIFTOOL_ERROR makes exiftool fail.
    """

    def __init__(self):
        self.dates: Dict[str, object] = {}
        self.calls: List[str] = []

    def run(self, cmd, **kwargs):
        path = Path(cmd[-1])
        self.calls.append(path.name)
        value = self.dates.get(path.name)
        if value is EXIFTOOL_ERROR:
            raise subprocess.CalledProcessError(1, cmd, stderr="File format error")
        tags = {"SourceFile": str(path)}
        if value:
            tags["DateTimeOriginal"] = value
        return subprocess.CompletedProcess(cmd, 0, stdout=json.dumps([tags]), stderr="")


@pytest.fixture
def exif_stub(monkeypatch):
    """Route exiftool calls made for embedded dates to an ExifStub."""
    stub = ExifStub()
    monkeypatch.setattr("photoshelf.timestamps.exiftool_available", True)
    monkeypatch.setattr("photoshelf.timestamps.subprocess.run", stub.run)
    return stub
