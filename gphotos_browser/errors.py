"""Typed failures raised by the gallery download engine."""

from __future__ import annotations

from typing import Optional, Sequence


class GalleryError(Exception):
    """Base exception for all gphotos-cdp errors."""


class ConfigurationError(GalleryError):
    """Raised for invalid run configuration. Never retried."""


class UnknownKeyError(ConfigurationError):
    """Raised when a key name has no descriptor in the key table."""

    def __init__(self, key: str):
        super().__init__(f"no key descriptor for {key!r}")
        self.key = key


class InvalidDirectionError(ConfigurationError):
    """Raised when a navigation direction is not left or right."""


class InvalidCountError(ConfigurationError):
    """Raised for negative item counts other than the unbounded sentinel."""


class SessionError(GalleryError):
    """Raised when the browser session cannot be started or driven."""


class DownloadError(GalleryError):
    """Base class for failures observed while watching the download directory."""

    def __init__(self, message: str, directory: str):
        super().__init__(message)
        self.directory = str(directory)


class DownloadTimingError(DownloadError):
    """A download did not start or finish in time. May be retried."""


class DownloadNeverStartedError(DownloadTimingError):
    """No file appeared in the download directory before the start timeout."""


class DownloadTimeoutError(DownloadTimingError):
    """A download started but did not complete before the end timeout."""


class MultipleFilesError(DownloadError):
    """More than one file was present in the download directory at once.

    This means two downloads landed in the same directory. It is never retried
    in place; the directory must be cleared by the operator first.
    """

    def __init__(self, message: str, directory: str, entries: Optional[Sequence[str]] = None):
        super().__init__(message, directory)
        self.entries = tuple(entries or ())


class DownloadDirectoryError(DownloadError):
    """The download directory could not be listed."""


class RelocationError(GalleryError):
    """A completed download could not be moved out of the download directory."""

    def __init__(self, message: str, source: str):
        super().__init__(message)
        self.source = str(source)


class RunCancelledError(GalleryError):
    """The run was aborted by the operator between two suspension points."""
