"""
Maps a stream of feed elements onto the podcast/episode model.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Set

from .errors import PodcastSyncError
from .feed import (
    AUDIO_MPEG,
    ENCLOSURE,
    FeedElement,
    FeedElementType,
    FeedItem,
    FeedLink,
    FeedReader,
    parse_feed_elements,
)
from .models import (
    DEFAULT_MAX_EPISODES,
    DEFAULT_MEDIA_URL,
    ArtworkInfo,
    Episode,
    Podcast,
)
from .utils import MIN_DATE, parse_date

# Single-valued channel fields where the first occurrence in a pass wins.
_FIRST_WINS = {
    FeedElementType.TITLE: "title",
    FeedElementType.DESCRIPTION: "description",
    FeedElementType.LINK: "link",
    FeedElementType.AUTHOR: "author",
    FeedElementType.EDITOR: "editor",
    FeedElementType.WEBMASTER: "webmaster",
    FeedElementType.GENERATOR: "generator",
    FeedElementType.LANGUAGE: "language",
    FeedElementType.COPYRIGHT: "copyright",
}


@dataclass
class MergeResult:
    """Episodes one merge pass added to and dropped from a podcast."""

    added: List[Episode] = field(default_factory=list)
    removed: List[Episode] = field(default_factory=list)


def select_media_link(links: List[FeedLink]) -> FeedLink:
    """Pick the episode media link: enclosure, then audio/mpeg, then none."""
    for link in links:
        if link.rel.lower() == ENCLOSURE:
            return link
    for link in links:
        if link.media_type.lower() == AUDIO_MPEG:
            return link
    return FeedLink(href=DEFAULT_MEDIA_URL)


class PodcastParser:
    """Builds and refreshes Podcast objects from feed elements."""

    def __init__(self, reader: Optional[FeedReader] = None):
        """Initialize with the reader used to fetch feeds."""
        self.reader = reader or FeedReader()
        self.logger = logging.getLogger(__name__)

    def from_feed(
        self, feed_uri: str, max_episodes: int = DEFAULT_MAX_EPISODES
    ) -> Podcast:
        """Fetch feed_uri and create a new Podcast from it."""
        self.logger.info("Creating podcast from %s", feed_uri)
        podcast = Podcast(feed_uri=feed_uri, max_episodes=max_episodes)
        self.merge_elements(podcast, self.reader.read(feed_uri))
        self.logger.info(
            "Created podcast '%s' with %d episodes",
            podcast.title,
            podcast.episode_count,
        )
        return podcast

    def from_content(
        self,
        feed_uri: str,
        content: bytes,
        max_episodes: int = DEFAULT_MAX_EPISODES,
    ) -> Podcast:
        """Create a new Podcast from feed content already in memory."""
        podcast = Podcast(feed_uri=feed_uri, max_episodes=max_episodes)
        self.merge_elements(podcast, parse_feed_elements(content))
        return podcast

    def refresh(
        self,
        podcast: Podcast,
        use_episode_artwork: bool = False,
        append_to_end: bool = True,
    ) -> MergeResult:
        """Fetch the podcast's feed and merge new episodes into it.

        Returns the episodes added by this refresh and those dropped by the
        episode cap. The caller owns the dropped episodes and their files.
        """
        self.logger.info("Refreshing podcast '%s'", podcast.title)
        result = self.merge_elements(
            podcast,
            self.reader.read(podcast.feed_uri),
            use_episode_artwork=use_episode_artwork,
            append_to_end=append_to_end,
        )
        self.logger.info(
            "Refreshed '%s': %d new episodes",
            podcast.title,
            len(result.added),
        )
        return result

    def merge_elements(  # pylint: disable=too-many-branches
        self,
        podcast: Podcast,
        elements: Iterable[FeedElement],
        use_episode_artwork: bool = False,
        append_to_end: bool = True,
    ) -> MergeResult:
        """Apply one pass of feed elements to podcast.

        Channel fields keep their first value seen in the pass. At most
        podcast.max_episodes items are consumed; later items are not looked
        at. New episodes go to the tail when append_to_end is set, otherwise
        each one becomes the new head. Episodes beyond max_episodes are
        removed afterwards, oldest first, and reported in the result.
        """
        found: Set[FeedElementType] = set()
        found_build_date = False
        found_artwork = False
        items_seen = 0
        added: List[Episode] = []

        for element in elements:
            element_type = element.type
            if element_type is FeedElementType.ITEM:
                if items_seen >= podcast.max_episodes:
                    self.logger.debug(
                        "Episode cap %d reached for '%s'",
                        podcast.max_episodes,
                        podcast.title,
                    )
                    break
                items_seen += 1
                episode = self.add_episode_from_item(
                    podcast,
                    element.item,
                    use_episode_artwork=use_episode_artwork,
                    append_to_end=append_to_end,
                )
                if episode is not None:
                    added.append(episode)
            elif element_type in _FIRST_WINS:
                if element_type not in found:
                    found.add(element_type)
                    setattr(podcast, _FIRST_WINS[element_type], element.text)
            elif element_type is FeedElementType.TTL:
                if element_type not in found:
                    found.add(element_type)
                    podcast.ttl = self._parse_ttl(element.text)
            elif element_type in (
                FeedElementType.LAST_BUILD_DATE,
                FeedElementType.PUBLISH_DATE,
            ):
                if not found_build_date:
                    build_date = parse_date(element.text)
                    found_build_date = build_date != MIN_DATE
                    if not found_build_date:
                        self.logger.debug(
                            "Unparseable build date %r", element.text
                        )
                    podcast.last_build_date = build_date
            elif element_type in (
                FeedElementType.ARTWORK,
                FeedElementType.IMAGE,
            ):
                if not found_artwork and element.text:
                    found_artwork = True
                    self._set_podcast_artwork(podcast, element.text)

        podcast.last_refresh_date = datetime.now(timezone.utc)
        removed = podcast.shrink_episodes_to_count(podcast.max_episodes)
        if removed:
            self.logger.info(
                "Dropped %d old episodes from '%s'",
                len(removed),
                podcast.title,
            )
        return MergeResult(
            added=[episode for episode in added if episode not in removed],
            removed=removed,
        )

    def add_episode_from_item(
        self,
        podcast: Podcast,
        item: FeedItem,
        use_episode_artwork: bool = False,
        append_to_end: bool = True,
    ) -> Optional[Episode]:
        """Create an episode from an item and insert it into podcast.

        Returns None when an episode with the same title (ignoring case)
        and publish date already exists.
        """
        title = (item.title or "").strip()
        for existing in podcast.episodes:
            if (
                existing.title.lower() == title.lower()
                and existing.published == item.published
            ):
                self.logger.debug("Skipping duplicate episode '%s'", title)
                return None

        media_link = select_media_link(item.links)
        episode = Episode(
            podcast_guid=podcast.guid,
            title=title,
            description=item.encoded_content or item.description,
            published=item.published,
            media_url=media_link.href,
            duration_seconds=media_link.length,
            size=media_link.length,
        )

        if use_episode_artwork:
            artwork_url = item.image_url or item.artwork_url
            if artwork_url:
                episode.has_unique_artwork = True
            elif podcast.artwork is not None:
                artwork_url = podcast.artwork.media_url
            if artwork_url:
                episode.artwork = ArtworkInfo(media_url=artwork_url)

        episode.generate_guid()
        if append_to_end:
            podcast.episodes.append(episode)
        else:
            podcast.episodes.insert(0, episode)
        return episode

    def _set_podcast_artwork(self, podcast: Podcast, url: str) -> None:
        """Point the podcast artwork at url and download it right away.

        A failed artwork download is logged and does not stop the refresh.
        """
        current = podcast.artwork
        if (
            current is not None
            and current.media_url == url
            and current.artwork_ready()
        ):
            return
        artwork = ArtworkInfo(media_url=url)
        if current is not None:
            if current.media_url == url:
                artwork.local_artwork_path = current.local_artwork_path
            current.dispose()
        podcast.artwork = artwork
        try:
            artwork.download()
        except PodcastSyncError as e:
            self.logger.warning(
                "Artwork download failed for '%s': %s", podcast.title, e
            )

    def _parse_ttl(self, value: str) -> int:
        try:
            return int(value.strip())
        except ValueError:
            self.logger.debug("Unparseable ttl %r", value)
            return 0
