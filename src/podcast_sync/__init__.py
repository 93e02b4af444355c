"""
Podcast sync package - Subscribes to RSS feeds, merges them into podcast
and episode models, and downloads episode media and artwork.

The core is built from small pieces: data models, a feed element reader,
the refresh parser, the subscription set and a file-backed repository.
"""

from .downloader import CancellationToken, DownloadProgress
from .errors import (
    DisposedResourceError,
    DownloadCancelledError,
    FeedParseError,
    PodcastSyncError,
    StreamUnreadableError,
    UnreachableSourceError,
    UnresolvedSourceError,
)
from .models import ArtworkInfo, Episode, PlaybackState, Podcast
from .parser import MergeResult, PodcastParser
from .subscriptions import RefreshResult, RefreshStatus, Subscriptions

__all__ = [
    "ArtworkInfo",
    "CancellationToken",
    "DisposedResourceError",
    "DownloadCancelledError",
    "DownloadProgress",
    "Episode",
    "FeedParseError",
    "MergeResult",
    "PlaybackState",
    "Podcast",
    "PodcastParser",
    "PodcastSyncError",
    "RefreshResult",
    "RefreshStatus",
    "StreamUnreadableError",
    "Subscriptions",
    "UnreachableSourceError",
    "UnresolvedSourceError",
]
