"""
The set of subscribed podcasts and operations across all of them.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import (
    Any,
    BinaryIO,
    Callable,
    Dict,
    Iterable,
    Iterator,
    List,
    Optional,
)

from .downloader import check_url_valid
from .errors import PodcastSyncError, UnresolvedSourceError
from .models import DEFAULT_MAX_EPISODES, Episode, Podcast
from .opml import read_opml_entries
from .parser import PodcastParser
from .utils import (
    MIN_DATE,
    format_date,
    is_unresolved_address_error,
    load_date,
)

ChangeListener = Callable[[str], None]


class RefreshStatus(Enum):
    """Overall outcome of a batch refresh."""

    SUCCESS = "success"
    OFFLINE = "offline"
    ERROR = "error"


@dataclass
class RefreshFailure:
    """A podcast that failed to refresh."""

    podcast_title: str
    feed_uri: str
    error: str
    offline: bool


@dataclass
class RefreshResult:
    """Summary of a batch refresh."""

    status: RefreshStatus
    refreshed: int = 0
    new_episodes: int = 0
    offline_count: int = 0
    error_count: int = 0
    failures: List[RefreshFailure] = field(default_factory=list)
    removed_episodes: List[Episode] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """True when every attempted podcast refreshed."""
        return self.status is RefreshStatus.SUCCESS


class Subscriptions:
    """Ordered collection of subscribed podcasts.

    Feed URIs are expected to be unique; add_podcast() does not check, use
    has_feed() first. Nothing here locks: snapshot podcasts or episodes
    before iterating them while a refresh runs elsewhere.
    """

    # Failures tolerated before refresh_all() gives up on remaining podcasts
    MAX_REFRESH_FAILURES = 1

    def __init__(
        self,
        podcasts: Optional[Iterable[Podcast]] = None,
        parser: Optional[PodcastParser] = None,
    ):
        """Initialize with optional podcasts and feed parser."""
        self.logger = logging.getLogger(__name__)
        self.podcasts: List[Podcast] = list(podcasts or [])
        self.parser = parser or PodcastParser()
        self.last_modified: datetime = MIN_DATE
        self._listeners: List[ChangeListener] = []

    # Change notification
    def add_listener(self, listener: ChangeListener) -> None:
        """Register a callable invoked with a change name."""
        self._listeners.append(listener)

    def remove_listener(self, listener: ChangeListener) -> None:
        """Unregister a listener added with add_listener()."""
        self._listeners.remove(listener)

    def _notify(self, change: str) -> None:
        self.last_modified = datetime.now(timezone.utc)
        for listener in list(self._listeners):
            listener(change)

    # Membership
    def add_podcast(self, podcast: Podcast) -> None:
        """Append a podcast to the subscriptions."""
        self.podcasts.append(podcast)
        self._notify("podcasts")

    def remove_podcast(self, podcast: Podcast) -> None:
        """Remove a podcast from the subscriptions."""
        self.podcasts.remove(podcast)
        self._notify("podcasts")

    def has_feed(self, feed_uri: str) -> bool:
        """Check whether a podcast with this feed URI is subscribed."""
        return any(p.feed_uri == feed_uri for p in self.podcasts)

    # Lookups
    def all_episodes(self) -> Iterator[Episode]:
        """Episodes of every podcast, podcast by podcast."""
        for podcast in self.podcasts:
            yield from podcast.episodes

    def podcast_index(self) -> Dict[str, Podcast]:
        """Podcasts keyed by their guid."""
        return {podcast.guid: podcast for podcast in self.podcasts}

    def podcast_for_episode(self, episode: Episode) -> Optional[Podcast]:
        """The podcast an episode belongs to."""
        return self.podcast_index().get(episode.podcast_guid)

    def podcast_by_name(self, name: str) -> Optional[Podcast]:
        """Find a podcast by title, ignoring case."""
        matches = sorted(
            (p for p in self.podcasts if p.title.lower() == name.lower()),
            key=lambda p: p.title,
        )
        return matches[0] if matches else None

    def episode_by_guid(self, guid: str) -> Optional[Episode]:
        """Find an episode by identity token across all podcasts."""
        return next(
            (ep for ep in self.all_episodes() if ep.guid == guid), None
        )

    def podcasts_without_local_artwork(self) -> List[Podcast]:
        """Podcasts whose artwork is not stored locally."""
        return [
            p
            for p in self.podcasts
            if p.artwork is None or not p.artwork.local_artwork_path
        ]

    def active_episode(self) -> Optional[Episode]:
        """First episode flagged active, scanning podcasts in order."""
        return next((ep for ep in self.all_episodes() if ep.active), None)

    # Refresh
    def refresh_all(
        self,
        use_episode_artwork: bool = False,
        total_episodes_to_keep: int = 0,
        append_to_end: bool = True,
    ) -> RefreshResult:
        """Refresh every podcast in order.

        Each podcast is first shrunk to total_episodes_to_keep when that is
        positive. Episodes dropped by that shrink or by the episode cap are
        disposed and listed in removed_episodes so their files can go too.
        Failures are classified as offline (unresolved address) or generic
        errors, and the loop stops once more than one podcast has failed.
        Any offline failure makes the result OFFLINE; other failures make it
        ERROR.
        """
        result = RefreshResult(status=RefreshStatus.SUCCESS)

        for podcast in self.podcasts:
            try:
                if total_episodes_to_keep > 0:
                    kept_out = podcast.shrink_episodes_to_count(
                        total_episodes_to_keep
                    )
                    self._release(kept_out, result)
                merged = self.parser.refresh(
                    podcast,
                    use_episode_artwork=use_episode_artwork,
                    append_to_end=append_to_end,
                )
                self._release(merged.removed, result)
                result.refreshed += 1
                result.new_episodes += len(merged.added)
            except Exception as e:  # pylint: disable=broad-except
                offline = isinstance(
                    e, UnresolvedSourceError
                ) or is_unresolved_address_error(e)
                if offline:
                    result.offline_count += 1
                else:
                    result.error_count += 1
                result.failures.append(
                    RefreshFailure(
                        podcast_title=podcast.title,
                        feed_uri=podcast.feed_uri,
                        error=str(e),
                        offline=offline,
                    )
                )
                self.logger.error(
                    "Refresh failed for podcast '%s': %s", podcast.title, e
                )
            if len(result.failures) > self.MAX_REFRESH_FAILURES:
                self.logger.warning(
                    "Stopping refresh after %d failures",
                    len(result.failures),
                )
                break

        if result.offline_count > 0:
            result.status = RefreshStatus.OFFLINE
        elif result.error_count > 0:
            result.status = RefreshStatus.ERROR

        self.logger.info(
            "Refresh finished (%s): %d refreshed, %d new episodes, "
            "%d offline, %d errors",
            result.status.value,
            result.refreshed,
            result.new_episodes,
            result.offline_count,
            result.error_count,
        )
        self._notify("podcasts")
        return result

    @staticmethod
    def _release(episodes: List[Episode], result: RefreshResult) -> None:
        """Dispose dropped episodes and hand them to the caller for cleanup."""
        for episode in episodes:
            episode.dispose()
        result.removed_episodes.extend(episodes)

    # Download and retention queries
    def pending_downloads(self, max_count: int = 0) -> List[Episode]:
        """Episodes queued for download that are not downloaded yet.

        With max_count > 0 only the max_count most recently published are
        returned, newest first.
        """
        episodes = [
            ep
            for ep in self.all_episodes()
            if ep.pending_download and not ep.downloaded
        ]
        if max_count > 0:
            episodes = sorted(
                episodes, key=lambda ep: ep.published, reverse=True
            )[:max_count]
        return episodes

    def eviction_candidates(self, count: int) -> List[Episode]:
        """Downloaded, finished episodes that may be deleted locally.

        A podcast contributes only when it has more than count such
        episodes, and then all of them, oldest first.
        """
        candidates: List[Episode] = []
        for podcast in self.podcasts:
            finished = sorted(
                (
                    ep
                    for ep in podcast.episodes
                    if ep.downloaded
                    and (ep.is_played or ep.playback_position is None)
                    and ep.local_file_token
                ),
                key=lambda ep: ep.published,
            )
            if len(finished) > count:
                candidates.extend(finished)
        return candidates

    # Identity
    def generate_identities(self, overwrite: bool = False) -> None:
        """Give episodes fresh identity tokens.

        Without overwrite only blank tokens are replaced.
        """
        for episode in self.all_episodes():
            if overwrite or not episode.guid.strip():
                episode.generate_guid()

    # Bulk creation
    def import_from_opml(
        self,
        stream: BinaryIO,
        progress: Optional[Callable[[str], None]] = None,
        max_episodes: int = DEFAULT_MAX_EPISODES,
    ) -> int:
        """Subscribe to every feed listed in an OPML document.

        Feeds already subscribed are left alone. Returns the number of
        entries skipped because the feed could not be reached or read.
        """
        error_count = 0
        for entry in read_opml_entries(stream):
            if progress is not None:
                progress(entry.display_name)
            if self.has_feed(entry.feed_uri):
                self.logger.debug("Already subscribed: %s", entry.feed_uri)
                continue
            if not check_url_valid(entry.feed_uri):
                self.logger.warning("Skipping unreachable %s", entry.feed_uri)
                error_count += 1
                continue
            try:
                podcast = self.parser.from_feed(entry.feed_uri, max_episodes)
            except PodcastSyncError as e:
                self.logger.warning("Skipping %s: %s", entry.feed_uri, e)
                error_count += 1
                continue
            self.add_podcast(podcast)
        return error_count

    @classmethod
    def from_feed_uris(
        cls,
        feed_uris: Iterable[str],
        parser: Optional[PodcastParser] = None,
    ) -> "Subscriptions":
        """Create subscriptions by fetching each feed in turn."""
        subscriptions = cls(parser=parser)
        for feed_uri in feed_uris:
            podcast = subscriptions.parser.from_feed(feed_uri)
            subscriptions.add_podcast(podcast)
        subscriptions.generate_identities(overwrite=False)
        return subscriptions

    # Serialization
    def to_json(self) -> Dict[str, Any]:
        """Convert subscriptions to JSON-serializable dictionary."""
        return {
            "last_modified": format_date(self.last_modified),
            "podcasts": [podcast.to_json() for podcast in self.podcasts],
        }

    @classmethod
    def from_dict(
        cls, data: Dict[str, Any], parser: Optional[PodcastParser] = None
    ) -> "Subscriptions":
        """Create Subscriptions from dictionary."""
        subscriptions = cls(
            podcasts=[
                Podcast.from_dict(p) for p in data.get("podcasts", [])
            ],
            parser=parser,
        )
        subscriptions.last_modified = load_date(data.get("last_modified"))
        return subscriptions
