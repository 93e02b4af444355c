"""
Domain-specific repository for subscription persistence.

Subscriptions are stored as one JSON document; episode media and artwork
are stored as files under a directory per podcast.
"""

import io
import logging
import os
import posixpath
from typing import Optional
from urllib.parse import urlparse

from .errors import DisposedResourceError
from .models import Episode, Podcast
from .parser import PodcastParser
from .storage import Storage
from .subscriptions import Subscriptions
from .utils import sanitize_filename

SUBSCRIPTIONS_FILE = "subscriptions.json"


def _url_suffix(url: str, default: str) -> str:
    """File extension of the path part of url, or default."""
    suffix = posixpath.splitext(urlparse(url).path)[1].lower()
    if not suffix or len(suffix) > 5:
        return default
    return suffix


class SubscriptionRepository:
    """Repository for subscription data and downloaded files."""

    def __init__(self, storage: Storage):
        """Initialize with storage instance."""
        self.storage = storage
        self.logger = logging.getLogger(__name__)

    @property
    def subscriptions_path(self) -> str:
        """Path of the subscriptions JSON document."""
        return self.storage.join_path(
            self.storage.base_dir, SUBSCRIPTIONS_FILE
        )

    def get_podcast_dir(self, podcast: Podcast) -> str:
        """Get podcast directory path using sanitized title."""
        folder = sanitize_filename(podcast.title or podcast.guid)
        return self.storage.join_path(self.storage.base_dir, folder)

    def get_episode_file_path(self, podcast: Podcast, episode: Episode) -> str:
        """Get full path of the media file for an episode."""
        suffix = _url_suffix(episode.media_url, ".mp3")
        name = sanitize_filename(episode.title)[:80]
        filename = f"{name}-{episode.guid[:8]}{suffix}"
        return self.storage.join_path(self.get_podcast_dir(podcast), filename)

    def get_artwork_path(self, podcast: Podcast) -> Optional[str]:
        """Get full path of the artwork file for a podcast."""
        if podcast.artwork is None or not podcast.artwork.media_url:
            return None
        suffix = _url_suffix(podcast.artwork.media_url, ".jpg")
        return self.storage.join_path(
            self.get_podcast_dir(podcast), f"artwork{suffix}"
        )

    def save(self, subscriptions: Subscriptions) -> bool:
        """Save all subscriptions to the JSON document."""
        saved = self.storage.write_json(
            self.subscriptions_path, subscriptions.to_json()
        )
        if saved:
            self.logger.info(
                "Saved %d podcasts to %s",
                len(subscriptions.podcasts),
                self.subscriptions_path,
            )
        return saved

    def load(self, parser: Optional[PodcastParser] = None) -> Subscriptions:
        """Load subscriptions, or an empty set when none are stored.

        Artwork with a local file gets its bytes back from disk.
        """
        data = self.storage.read_json(self.subscriptions_path)
        if not data:
            return Subscriptions(parser=parser)

        try:
            subscriptions = Subscriptions.from_dict(data, parser=parser)
        except (KeyError, TypeError, ValueError) as e:
            self.logger.error("Invalid subscriptions file: %s", e)
            return Subscriptions(parser=parser)

        for podcast in subscriptions.podcasts:
            self._restore_artwork(podcast)
        self.logger.info(
            "Loaded %d podcasts from %s",
            len(subscriptions.podcasts),
            self.subscriptions_path,
        )
        return subscriptions

    def store_episode_media(
        self, podcast: Podcast, episode: Episode
    ) -> Optional[str]:
        """Write the downloaded episode media to disk.

        Marks the episode downloaded and records its local path and token.
        Returns the path, or None when nothing could be written.
        """
        try:
            data = episode.get_stream().read()
        except DisposedResourceError:
            self.logger.error("Episode '%s' is not downloaded", episode.title)
            return None

        path = self.get_episode_file_path(podcast, episode)
        if not self.storage.write_bytes(path, data):
            return None
        episode.local_file_path = path
        episode.local_file_token = os.path.relpath(
            path, self.storage.base_dir
        )
        episode.downloaded = True
        episode.pending_download = False
        return path

    def delete_episode_media(self, episode: Episode) -> bool:
        """Delete an episode's media file and clear its download state."""
        if episode.local_file_path and not self.storage.delete_file(
            episode.local_file_path
        ):
            return False
        episode.local_file_path = ""
        episode.local_file_token = ""
        episode.downloaded = False
        return True

    def store_artwork(self, podcast: Podcast) -> Optional[str]:
        """Write the podcast's downloaded artwork to disk."""
        path = self.get_artwork_path(podcast)
        if path is None or podcast.artwork is None:
            return None
        if not podcast.artwork.artwork_ready():
            return None
        if not self.storage.write_bytes(path, podcast.artwork.media_bytes):
            return None
        podcast.artwork.local_artwork_path = path
        return path

    def _restore_artwork(self, podcast: Podcast) -> None:
        artwork = podcast.artwork
        if artwork is None or not artwork.local_artwork_path:
            return
        data = self.storage.read_bytes(artwork.local_artwork_path)
        if data:
            artwork.set_stream(io.BytesIO(data))
        else:
            self.logger.debug(
                "Artwork file missing: %s", artwork.local_artwork_path
            )
            artwork.local_artwork_path = ""
