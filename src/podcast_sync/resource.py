"""
In-memory downloadable resource shared by episodes and artwork.
"""

import io
import logging
from typing import BinaryIO, Optional, Protocol

import requests

from .downloader import (
    CancellationToken,
    ProgressSink,
    open_stream,
    read_stream,
)
from .errors import DisposedResourceError, StreamUnreadableError


class Downloadable(Protocol):
    """Protocol for entities whose media can be fetched into memory."""

    def download(
        self,
        progress: Optional[ProgressSink] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> None:
        """Fetch the media unless it is already held."""
        ...  # pylint: disable=unnecessary-ellipsis

    def is_downloaded(self) -> bool:
        """Whether the media is available."""
        ...  # pylint: disable=unnecessary-ellipsis

    def get_stream(self) -> BinaryIO:
        """Return a readable stream over the media bytes."""
        ...  # pylint: disable=unnecessary-ellipsis

    def set_stream(self, stream: BinaryIO) -> None:
        """Populate the media from an external stream."""
        ...  # pylint: disable=unnecessary-ellipsis

    def dispose(self) -> None:
        """Release the media bytes and any open transport handle."""
        ...  # pylint: disable=unnecessary-ellipsis


class MediaBuffer:
    """Holds the bytes of one remote resource, fetched at most once.

    Instances are not thread safe: callers must not run two operations on
    the same buffer concurrently.
    """

    def __init__(self) -> None:
        self.logger = logging.getLogger(__name__)
        self._data: Optional[bytes] = None
        self._response: Optional[requests.Response] = None
        self._disposed = False

    @property
    def disposed(self) -> bool:
        """Whether dispose() has been called."""
        return self._disposed

    @property
    def data(self) -> Optional[bytes]:
        """The stored bytes, or None."""
        return self._data

    def has_data(self) -> bool:
        """True when non-empty bytes are held and the buffer is live."""
        return not self._disposed and bool(self._data)

    def download(
        self,
        url: str,
        progress: Optional[ProgressSink] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> None:
        """Fetch url into memory unless bytes are already held.

        Raises:
            DisposedResourceError: If the buffer was disposed.
            DownloadCancelledError: If cancelled; no partial bytes are kept.
            UnreachableSourceError: If the transport fails.
        """
        if self._disposed:
            raise DisposedResourceError(
                "Resource is disposed and cannot be downloaded"
            )
        if self._data is not None:
            self.logger.debug("Already downloaded, skipping %s", url)
            return

        if cancellation is not None:
            cancellation.raise_if_cancelled()
        self._response = open_stream(url)
        try:
            data = read_stream(url, self._response, progress, cancellation)
        finally:
            self._close_response()
        if self._disposed:
            raise DisposedResourceError(
                "Resource was disposed during download"
            )
        self._data = data

    def get_stream(self) -> BinaryIO:
        """Return an independent stream positioned at offset 0."""
        if self._data is None or self._disposed:
            raise DisposedResourceError(
                "The media is not downloaded or was disposed; "
                "check is_downloaded() first"
            )
        return io.BytesIO(self._data)

    def set_stream(self, stream: BinaryIO) -> None:
        """Replace the stored bytes with the full content of stream."""
        if self._disposed:
            raise DisposedResourceError("Resource is disposed")
        if getattr(stream, "closed", False) or not _is_readable(stream):
            raise StreamUnreadableError("Stream cannot be read")
        try:
            seekable = getattr(stream, "seekable", None)
            if seekable is not None and seekable():
                stream.seek(0)
            data = stream.read()
        except (OSError, ValueError) as e:
            raise StreamUnreadableError(f"Stream cannot be read: {e}") from e
        self._data = bytes(data)

    def dispose(self) -> None:
        """Drop the bytes and close any in-flight response."""
        self._data = None
        self._close_response()
        self._disposed = True

    def _close_response(self) -> None:
        if self._response is not None:
            self._response.close()
            self._response = None


def _is_readable(stream: BinaryIO) -> bool:
    readable = getattr(stream, "readable", None)
    if readable is None:
        return hasattr(stream, "read")
    try:
        return bool(readable())
    except ValueError:  # Raised by closed io objects
        return False
