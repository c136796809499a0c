"""
Exception types for photoshelf.

Fatal errors abort the current command. Per-file problems (unreadable
images, upload failures) are logged and never raised past the file.
"""


class PhotoShelfError(Exception):
    """Base class for errors that abort a command."""


class ConfigError(PhotoShelfError):
    """Missing or invalid source, destination or setting."""


class MetadataParseError(PhotoShelfError):
    """A sidecar metadata record could not be parsed."""


class SourceCollisionError(MetadataParseError):
    """The same filename has sidecar records under more than one source root."""


class RemoteStoreError(PhotoShelfError):
    """The remote store rejected a request or could not be reached."""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code
