"""
HTTP transport for feeds, episode media and artwork.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

import requests

from .config import DEFAULT_REQUEST_TIMEOUT, DEFAULT_USER_AGENT, Settings
from .errors import (
    DownloadCancelledError,
    UnreachableSourceError,
    UnresolvedSourceError,
)
from .utils import is_unresolved_address_error

CHUNK_SIZE = 8192

_http_options: Dict[str, object] = {
    "user_agent": DEFAULT_USER_AGENT,
    "timeout": DEFAULT_REQUEST_TIMEOUT,
}


def configure(settings: Settings) -> None:
    """Apply user agent and timeout settings to all later requests."""
    _http_options["user_agent"] = settings.user_agent
    _http_options["timeout"] = settings.request_timeout


def _headers() -> Dict[str, str]:
    return {"User-Agent": str(_http_options["user_agent"])}


def _timeout() -> int:
    return int(_http_options["timeout"])  # type: ignore[call-overload]


@dataclass
class DownloadProgress:
    """Progress snapshot reported while a download is running."""

    bytes_received: int = 0
    total_bytes: Optional[int] = None

    @property
    def percentage(self) -> Optional[float]:
        """Percent complete, or None when the total size is unknown."""
        if self.total_bytes and self.total_bytes > 0:
            return (self.bytes_received / self.total_bytes) * 100
        return None


ProgressSink = Callable[[DownloadProgress], None]


class CancellationToken:
    """Cooperative cancellation flag checked between download chunks.

    May be cancelled from another thread.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        """Request cancellation."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        """Whether cancellation was requested."""
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        """Raise DownloadCancelledError once cancelled."""
        if self._event.is_set():
            raise DownloadCancelledError("Download cancelled")


def source_error(url: str, error: Exception) -> UnreachableSourceError:
    """Translate a transport exception into a source error."""
    if is_unresolved_address_error(error):
        return UnresolvedSourceError(
            url, f"Uri not resolved: {url} ({error})"
        )
    return UnreachableSourceError(url, f"Could not fetch {url}: {error}")


# Feed Download Functions
def download_feed(feed_url: str) -> bytes:
    """Download raw feed content from URL.

    Raises:
        UnreachableSourceError: If the request fails or returns no content.
    """
    logger = logging.getLogger(__name__)
    logger.info("Downloading feed from %s", feed_url)
    try:
        response = requests.get(
            feed_url, headers=_headers(), timeout=_timeout()
        )
        response.raise_for_status()
    except requests.exceptions.RequestException as e:
        logger.error("Feed download error: %s", e)
        raise source_error(feed_url, e) from e

    if not response.content:
        logger.error("Failed to download feed content - response was empty")
        raise UnreachableSourceError(
            feed_url, f"Empty response from {feed_url}"
        )
    logger.info(
        "Successfully downloaded feed content (%d bytes)",
        len(response.content),
    )
    return response.content


def check_url_valid(url: str) -> bool:
    """Check whether a URL is well formed and answers with a success code."""
    logger = logging.getLogger(__name__)
    if not url or not url.lower().startswith(("http://", "https://")):
        logger.debug("Rejecting non-HTTP URL: %r", url)
        return False
    try:
        response = requests.head(
            url, headers=_headers(), timeout=_timeout(), allow_redirects=True
        )
        if response.status_code == 405:
            # Some feed hosts refuse HEAD
            response = requests.get(
                url, headers=_headers(), timeout=_timeout(), stream=True
            )
            response.close()
        return response.ok
    except requests.exceptions.RequestException as e:
        logger.warning("URL check failed for %s: %s", url, e)
        return False


# Media Download Functions
def open_stream(url: str) -> requests.Response:
    """Open a streaming GET request; the caller must close the response."""
    logger = logging.getLogger(__name__)
    logger.info("Opening download stream for %s", url)
    try:
        response = requests.get(
            url, headers=_headers(), stream=True, timeout=_timeout()
        )
        response.raise_for_status()
    except requests.exceptions.RequestException as e:
        logger.error("Download failed for %s: %s", url, e)
        raise source_error(url, e) from e
    return response


def read_stream(
    url: str,
    response: requests.Response,
    progress: Optional[ProgressSink] = None,
    cancellation: Optional[CancellationToken] = None,
) -> bytes:
    """Read a streaming response fully, reporting progress per chunk."""
    logger = logging.getLogger(__name__)
    content_length = int(response.headers.get("content-length", 0) or 0)
    logger.debug("Content length: %d bytes", content_length)

    total_bytes = content_length or None
    received = 0
    chunks: List[bytes] = []
    try:
        for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
            if cancellation is not None:
                cancellation.raise_if_cancelled()
            if not chunk:  # Filter out keep-alive chunks
                continue
            chunks.append(chunk)
            received += len(chunk)
            if progress is not None:
                progress(DownloadProgress(received, total_bytes))
    except requests.exceptions.RequestException as e:
        logger.error("Download interrupted for %s: %s", url, e)
        raise source_error(url, e) from e

    data = b"".join(chunks)
    logger.info("Download complete: %s (%d bytes)", url, len(data))
    return data

