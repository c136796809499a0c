"""
File classification constants and shared settings for photoshelf.
"""

import logging
import shutil
import subprocess
from datetime import date
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

PROGRAM = "photoshelf"

# File extension constants
IMAGE_EXTENSIONS = (".jpg", ".heic", ".gif", ".png", ".bmp", ".jpeg")
VIDEO_EXTENSIONS = (".mp4", ".mov", ".avi")
JPG_EXTENSIONS = (".jpg", ".jpeg")

# Sidecar metadata files exported next to the photos
DETAILS_FILE_PREFIX = "photo details"
DETAILS_FILE_SUFFIX = ".csv"
DETAILS_FILENAME_COLUMN = 0
DETAILS_CREATION_DATE_COLUMN = 5
DETAILS_IMPORT_DATE_COLUMN = 7
DETAILS_MIN_COLUMNS = 8

# e.g. "Saturday January 21,2023 2:51 PM GMT"
DETAILS_DATE_FORMAT = "%A %B %d,%Y %I:%M %p"
EXIF_DATE_FORMAT = "%Y:%m:%d"
UNKNOWN_EXIF_DATE = "0000:00:00"
EPOCH_DATE = date(1970, 1, 1)

# Destination buckets
UNSORTED_BUCKET = "unsorted"
UNSORTED_VIDEOS_BUCKET = "unsorted_videos"
DUPLICATES_BUCKET = "duplicates"

# Names never mirrored to the remote store
IGNORED_NAMES = (".DS_Store", "Thumbs.db", "desktop.ini", ".localized")

DEFAULT_UPLOAD_WORKERS = 5
DIRECTORY_LENGTH = -1

# Merge policies for sidecar records found under several source roots
COLLISION_LAST_WINS = "last"
COLLISION_FIRST_WINS = "first"
COLLISION_REJECT = "reject"
COLLISION_POLICIES = (COLLISION_LAST_WINS, COLLISION_FIRST_WINS, COLLISION_REJECT)

_console: Optional[Console] = None


def get_console() -> Console:
    """Return the shared rich console."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def get_logger(name: str = PROGRAM) -> logging.Logger:
    """Return the program logger or one of its children."""
    return logging.getLogger(name)


def setup_logging(verbose: bool = False) -> logging.Logger:
    """Attach a rich console handler to the program logger."""
    logger = get_logger()
    console_handler = RichHandler(console=get_console(), rich_tracebacks=True,
                                  show_path=False)
    console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    console_handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))

    # Replace any handler left by a previous run in the same process
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)
    logger.addHandler(console_handler)
    logger.setLevel(logging.DEBUG)
    return logger


def check_tool_availability(cmd: str, version_flag: str = "-ver") -> bool:
    """Check whether an external command-line tool can be executed."""
    if shutil.which(cmd) is None:
        return False
    try:
        subprocess.run([cmd, version_flag], capture_output=True, check=True, timeout=10)
        return True
    except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError):
        return False


exiftool_available = check_tool_availability("exiftool")
