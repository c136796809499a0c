"""
photoshelf - Sort exported photos into year/month folders and mirror them to WebDAV.

Dates come from the sidecar "Photo Details" CSV files exported alongside the
photos, falling back to the embedded EXIF capture date. The sorted tree is
then uploaded incrementally: only files missing or changed remotely are sent.
"""

__version__ = "1.0.0"


# Public API
from .cli import main
from .config import Config
from .core import PhotoSorter
from .file_operations import FileOperations
from .remote import RemoteEntry, WebDavClient
from .scanner import FileKind, SourceScanner
from .sync import SyncEngine
from .timestamps import PhotoDetails

__all__ = [ "main", "Config", "PhotoSorter", "FileOperations", "RemoteEntry", "WebDavClient",
            "FileKind", "SourceScanner", "SyncEngine", "PhotoDetails" ]
