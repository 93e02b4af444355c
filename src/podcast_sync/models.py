"""
Data models for podcasts, episodes and artwork.
"""

from __future__ import annotations

import io
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, BinaryIO, Optional

from .downloader import CancellationToken, ProgressSink
from .errors import UnreachableSourceError
from .resource import MediaBuffer
from .utils import MIN_DATE, format_date, load_date

DEFAULT_MAX_EPISODES = 20

# Used when an item carries no usable media link.
DEFAULT_MEDIA_URL = "https://localhost/missing-episode.mp3"


class PlaybackState(Enum):
    """Listening progress of an episode."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


@dataclass(eq=False)
class ArtworkInfo:
    """Artwork of a podcast or an episode.

    The image bytes live in memory only; they are fetched with download()
    or supplied with set_stream().
    """

    media_url: str = ""
    thumbnail_url: str = ""
    local_artwork_path: str = ""
    _media: MediaBuffer = field(
        default_factory=MediaBuffer, init=False, repr=False
    )

    @classmethod
    def from_bytes(cls, media_bytes: bytes) -> "ArtworkInfo":
        """Create artwork that already holds its image bytes."""
        artwork = cls()
        artwork._media.set_stream(io.BytesIO(media_bytes))
        return artwork

    @property
    def media_bytes(self) -> Optional[bytes]:
        """The downloaded image, or None."""
        return self._media.data

    def artwork_ready(self) -> bool:
        """True when image bytes are held and the artwork is not disposed."""
        return self._media.has_data()

    def is_downloaded(self) -> bool:
        """Same as artwork_ready()."""
        return self.artwork_ready()

    def download(
        self,
        progress: Optional[ProgressSink] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> None:
        """Download the image from media_url into memory."""
        if not self.media_url:
            raise UnreachableSourceError("", "Artwork has no source URL")
        self._media.download(self.media_url, progress, cancellation)

    def get_stream(self) -> BinaryIO:
        """Return a new stream over the image bytes."""
        return self._media.get_stream()

    def set_stream(self, stream: BinaryIO) -> None:
        """Replace the image bytes with the content of stream."""
        self._media.set_stream(stream)

    def dispose(self) -> None:
        """Release the image bytes."""
        self._media.dispose()

    def to_json(self) -> dict[str, Any]:
        """Convert artwork to JSON-serializable dictionary."""
        return {
            "media_url": self.media_url,
            "thumbnail_url": self.thumbnail_url,
            "local_artwork_path": self.local_artwork_path,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ArtworkInfo":
        """Create ArtworkInfo from dictionary."""
        return cls(
            media_url=data.get("media_url") or "",
            thumbnail_url=data.get("thumbnail_url") or "",
            local_artwork_path=data.get("local_artwork_path") or "",
        )


@dataclass(eq=False)
class Episode:  # pylint: disable=too-many-instance-attributes
    """Represents a single podcast episode.

    playback_position is in seconds; None marks a position that was reset
    after the episode had been played to completion.
    """

    podcast_guid: str = ""
    title: str = ""
    description: str = ""
    published: datetime = MIN_DATE
    media_url: str = ""
    duration_seconds: int = 0
    size: int = 0
    playback_position: Optional[int] = 0
    guid: str = ""
    local_file_path: str = ""
    local_file_token: str = ""
    downloaded: bool = False
    pending_download: bool = False
    active: bool = False
    has_unique_artwork: bool = False
    artwork: ArtworkInfo = field(default_factory=ArtworkInfo)
    _media: MediaBuffer = field(
        default_factory=MediaBuffer, init=False, repr=False
    )

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "title":
            value = (value or "").strip()
        super().__setattr__(name, value)

    @property
    def is_played(self) -> bool:
        """True iff the playback position equals the duration."""
        return self.playback_position == self.duration_seconds

    @is_played.setter
    def is_played(self, value: bool) -> None:
        if value:
            self.playback_position = self.duration_seconds
        elif self.playback_position == self.duration_seconds:
            self.playback_position = None

    @property
    def playback_state(self) -> PlaybackState:
        """Tri-state view of the playback position."""
        if self.is_played:
            return PlaybackState.COMPLETED
        if not self.playback_position:
            return PlaybackState.NOT_STARTED
        return PlaybackState.IN_PROGRESS

    def generate_guid(self) -> None:
        """Assign a fresh identity token."""
        self.guid = str(uuid.uuid4())

    def is_downloaded(self) -> bool:
        """True when the media is stored locally or held in memory."""
        return self.downloaded or self._media.has_data()

    def download(
        self,
        progress: Optional[ProgressSink] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> None:
        """Download the episode media into memory; see get_stream()."""
        self._media.download(self.media_url, progress, cancellation)

    def get_stream(self) -> BinaryIO:
        """Return a new stream over the downloaded media.

        Raises DisposedResourceError when nothing was downloaded yet.
        """
        return self._media.get_stream()

    def set_stream(self, stream: BinaryIO) -> None:
        """Load the episode media from an existing stream."""
        self._media.set_stream(stream)

    def release_media(self) -> None:
        """Drop the in-memory media so it can be downloaded again later."""
        self._media.dispose()
        self._media = MediaBuffer()

    def dispose(self) -> None:
        """Release the media bytes and the episode artwork."""
        self.artwork.dispose()
        self._media.dispose()

    def to_json(self) -> dict[str, Any]:
        """Convert episode to JSON-serializable dictionary."""
        return {
            "podcast_guid": self.podcast_guid,
            "title": self.title,
            "description": self.description,
            "published": format_date(self.published),
            "media_url": self.media_url,
            "duration_seconds": self.duration_seconds,
            "size": self.size,
            "playback_position": self.playback_position,
            "guid": self.guid,
            "local_file_path": self.local_file_path,
            "local_file_token": self.local_file_token,
            "downloaded": self.downloaded,
            "pending_download": self.pending_download,
            "active": self.active,
            "has_unique_artwork": self.has_unique_artwork,
            "artwork": self.artwork.to_json(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Episode":
        """Create Episode from dictionary."""
        data = data.copy()
        data["published"] = load_date(data.get("published"))
        data["artwork"] = ArtworkInfo.from_dict(data.get("artwork") or {})
        return cls(**data)


@dataclass(eq=False)
class Podcast:  # pylint: disable=too-many-instance-attributes
    """Represents a subscribed podcast and its ordered episode list.

    feed_uri is fixed at construction. The guid is derived from it so the
    same feed always maps to the same podcast identity.
    """

    feed_uri: str
    title: str = ""
    link: str = ""
    author: str = ""
    generator: str = ""
    language: str = ""
    copyright: str = ""
    editor: str = ""
    webmaster: str = ""
    ttl: int = 0
    description: str = ""
    max_episodes: int = DEFAULT_MAX_EPISODES
    last_build_date: datetime = MIN_DATE
    last_refresh_date: datetime = MIN_DATE
    artwork: Optional[ArtworkInfo] = None
    episodes: list[Episode] = field(default_factory=list)
    guid: str = ""

    def __post_init__(self) -> None:
        if not self.guid:
            self.guid = str(uuid.uuid5(uuid.NAMESPACE_URL, self.feed_uri))

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "feed_uri" and "feed_uri" in self.__dict__:
            raise AttributeError("feed_uri cannot be changed")
        if name == "title":
            value = (value or "").strip()
        super().__setattr__(name, value)

    @property
    def episode_count(self) -> int:
        """Number of episodes currently kept."""
        return len(self.episodes)

    def most_recent_episode(self) -> Optional[Episode]:
        """First episode in display order."""
        return self.episodes[0] if self.episodes else None

    def most_recent_episodes(self, count: int) -> list[Episode]:
        """First count episodes in display order."""
        return self.episodes[: max(count, 0)]

    def shrink_episodes_to_count(self, count: int) -> list[Episode]:
        """Keep only the count most recently published episodes.

        Played and downloaded state is ignored. Returns the removed
        episodes so callers can clean up their local files.
        """
        if self.episode_count <= count:
            return []
        by_date = sorted(
            self.episodes, key=lambda ep: ep.published, reverse=True
        )
        keep = max(count, 0)
        self.episodes = by_date[:keep]
        return by_date[keep:]

    def dispose(self) -> None:
        """Release artwork and episode buffers."""
        if self.artwork is not None:
            self.artwork.dispose()
        for episode in self.episodes:
            episode.dispose()

    def to_json(self) -> dict[str, Any]:
        """Convert podcast to JSON-serializable dictionary."""
        return {
            "feed_uri": self.feed_uri,
            "guid": self.guid,
            "title": self.title,
            "link": self.link,
            "author": self.author,
            "generator": self.generator,
            "language": self.language,
            "copyright": self.copyright,
            "editor": self.editor,
            "webmaster": self.webmaster,
            "ttl": self.ttl,
            "description": self.description,
            "max_episodes": self.max_episodes,
            "last_build_date": format_date(self.last_build_date),
            "last_refresh_date": format_date(self.last_refresh_date),
            "artwork": self.artwork.to_json() if self.artwork else None,
            "episodes": [episode.to_json() for episode in self.episodes],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Podcast":
        """Create Podcast from dictionary."""
        # Copy so the caller's dict is left untouched
        data = data.copy()

        episodes_data = data.pop("episodes", [])
        episodes = [Episode.from_dict(ep_data) for ep_data in episodes_data]
        artwork_data = data.pop("artwork", None)
        data["last_build_date"] = load_date(data.get("last_build_date"))
        data["last_refresh_date"] = load_date(data.get("last_refresh_date"))

        return cls(
            episodes=episodes,
            artwork=ArtworkInfo.from_dict(artwork_data)
            if artwork_data
            else None,
            **data,
        )

