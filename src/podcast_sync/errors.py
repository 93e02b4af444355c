"""
Exception types raised by the podcast synchronization core.
"""

from typing import Optional


class PodcastSyncError(Exception):
    """Base class for all podcast-sync errors."""


class UnreachableSourceError(PodcastSyncError):
    """Raised when a feed or media URI cannot be fetched."""

    def __init__(self, url: str, message: Optional[str] = None):
        self.url = url
        super().__init__(message or f"Could not fetch {url}")


class UnresolvedSourceError(UnreachableSourceError):
    """Raised when the host of a URI cannot be resolved (likely offline)."""


class FeedParseError(PodcastSyncError):
    """Raised when a payload cannot be read as a feed at all."""


class DisposedResourceError(PodcastSyncError):
    """Raised on access to a resource that is disposed or not downloaded."""


class StreamUnreadableError(PodcastSyncError):
    """Raised when a supplied stream cannot be read."""


class DownloadCancelledError(PodcastSyncError):
    """Raised when a download is cancelled through its token."""
