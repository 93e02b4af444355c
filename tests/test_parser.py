"""
Tests for merging feed elements into podcasts.
"""

import unittest
from typing import List
from unittest.mock import Mock, patch

import requests

from podcast_sync.feed import FeedElement, FeedElementType, FeedLink
from podcast_sync.models import DEFAULT_MEDIA_URL, ArtworkInfo, Podcast
from podcast_sync.parser import PodcastParser, select_media_link
from podcast_sync.utils import MIN_DATE

from tests.base import PodcastTestBase
from tests.utils import item, text, utc

FEED_URI = "https://example.com/feed.xml"


class StaticReader:
    """Feed reader returning a fixed element list."""

    def __init__(self, elements: List[FeedElement]):
        self.elements = elements
        self.calls: List[str] = []

    def read(self, feed_uri: str) -> List[FeedElement]:
        """Record the call and return the elements."""
        self.calls.append(feed_uri)
        return list(self.elements)


def three_items() -> List[FeedElement]:
    """Feed with items C, B, A in document order, newest first."""
    return [
        text(FeedElementType.TITLE, "Show"),
        item("C", utc(2025, 3, 1)),
        item("B", utc(2025, 2, 1)),
        item("A", utc(2025, 1, 1)),
    ]


@patch.object(ArtworkInfo, "download", Mock())
class TestMergeElements(unittest.TestCase):
    """Test the refresh merge algorithm."""

    def setUp(self) -> None:
        """Set up a parser and an empty podcast."""
        self.parser = PodcastParser(reader=Mock())
        self.podcast = Podcast(feed_uri=FEED_URI)

    def titles(self) -> List[str]:
        """Episode titles in list order."""
        return [ep.title for ep in self.podcast.episodes]

    def test_first_occurrence_wins(self) -> None:
        """Repeated channel fields keep their first value."""
        elements = [
            text(FeedElementType.TITLE, "First"),
            text(FeedElementType.TITLE, "Second"),
            text(FeedElementType.AUTHOR, "Alice"),
            text(FeedElementType.AUTHOR, "Bob"),
            text(FeedElementType.TTL, "60"),
            text(FeedElementType.TTL, "5"),
            text(FeedElementType.LANGUAGE, "en"),
            text(FeedElementType.COPYRIGHT, "(c) Show"),
            text(FeedElementType.GENERATOR, "gen"),
            text(FeedElementType.DESCRIPTION, "About"),
            text(FeedElementType.LINK, "https://example.com"),
            text(FeedElementType.EDITOR, "ed@example.com"),
            text(FeedElementType.EDITOR, "other@example.com"),
            text(FeedElementType.WEBMASTER, "web@example.com"),
        ]

        self.parser.merge_elements(self.podcast, elements)

        self.assertEqual(self.podcast.title, "First")
        self.assertEqual(self.podcast.author, "Alice")
        self.assertEqual(self.podcast.ttl, 60)
        self.assertEqual(self.podcast.language, "en")
        self.assertEqual(self.podcast.copyright, "(c) Show")
        self.assertEqual(self.podcast.generator, "gen")
        self.assertEqual(self.podcast.description, "About")
        self.assertEqual(self.podcast.link, "https://example.com")
        self.assertEqual(self.podcast.editor, "ed@example.com")
        self.assertEqual(self.podcast.webmaster, "web@example.com")

    def test_bad_ttl_becomes_zero(self) -> None:
        """An unparseable TTL is stored as zero."""
        self.parser.merge_elements(
            self.podcast, [text(FeedElementType.TTL, "soon")]
        )
        self.assertEqual(self.podcast.ttl, 0)

    def test_build_date_falls_through_bad_values(self) -> None:
        """A bad build date does not block a later valid one."""
        elements = [
            text(FeedElementType.LAST_BUILD_DATE, "not a date"),
            text(
                FeedElementType.PUBLISH_DATE, "Mon, 06 Jan 2025 10:00:00 GMT"
            ),
            text(
                FeedElementType.LAST_BUILD_DATE,
                "Tue, 07 Jan 2025 10:00:00 GMT",
            ),
        ]

        self.parser.merge_elements(self.podcast, elements)

        self.assertEqual(
            self.podcast.last_build_date, utc(2025, 1, 6).replace(hour=10)
        )

    def test_bad_build_date_is_min_date(self) -> None:
        """Only unparseable dates leave the sentinel."""
        self.parser.merge_elements(
            self.podcast,
            [text(FeedElementType.LAST_BUILD_DATE, "garbage")],
        )
        self.assertEqual(self.podcast.last_build_date, MIN_DATE)

    def test_refresh_sets_refresh_date(self) -> None:
        """Every merge records when it ran."""
        self.parser.merge_elements(self.podcast, [])
        self.assertGreater(self.podcast.last_refresh_date, MIN_DATE)

    def test_append_keeps_document_order(self) -> None:
        """Appending keeps items in the order the feed lists them."""
        result = self.parser.merge_elements(self.podcast, three_items())

        self.assertEqual(self.titles(), ["C", "B", "A"])
        self.assertEqual(len(result.added), 3)

    def test_prepend_reverses_document_order(self) -> None:
        """Prepending makes each new item the head."""
        self.parser.merge_elements(
            self.podcast, three_items(), append_to_end=False
        )
        self.assertEqual(self.titles(), ["A", "B", "C"])

    def test_merge_is_idempotent(self) -> None:
        """Merging the same feed twice adds nothing the second time."""
        self.parser.merge_elements(self.podcast, three_items())
        result = self.parser.merge_elements(self.podcast, three_items())

        self.assertEqual(result.added, [])
        self.assertEqual(self.podcast.episode_count, 3)

    def test_duplicate_check_ignores_case(self) -> None:
        """Titles differing only by case and spaces are duplicates."""
        self.parser.merge_elements(
            self.podcast, [item("Hello World", utc(2025))]
        )
        result = self.parser.merge_elements(
            self.podcast, [item("  hello world ", utc(2025))]
        )
        self.assertEqual(result.added, [])

    def test_same_title_other_date_is_new(self) -> None:
        """A reused title with a new date is a new episode."""
        self.parser.merge_elements(self.podcast, [item("Weekly", utc(2024))])
        result = self.parser.merge_elements(
            self.podcast, [item("Weekly", utc(2025))]
        )
        self.assertEqual(len(result.added), 1)

    def test_episode_cap_stops_reading(self) -> None:
        """Items past the cap are not looked at."""
        self.podcast.max_episodes = 2
        elements = three_items()
        elements.append(text(FeedElementType.AUTHOR, "Late"))

        result = self.parser.merge_elements(self.podcast, elements)

        self.assertEqual(self.titles(), ["C", "B"])
        self.assertEqual(len(result.added), 2)
        self.assertEqual(self.podcast.author, "")

    def test_cap_applies_across_refreshes(self) -> None:
        """Old episodes are dropped once the cap is exceeded."""
        self.podcast.max_episodes = 2
        self.parser.merge_elements(self.podcast, three_items()[2:])
        result = self.parser.merge_elements(
            self.podcast, [item("D", utc(2025, 4, 1))]
        )

        self.assertEqual(self.titles(), ["D", "B"])
        self.assertEqual([ep.title for ep in result.added], ["D"])
        self.assertEqual([ep.title for ep in result.removed], ["A"])

    def test_episode_fields(self) -> None:
        """Episodes take their fields from the item and media link."""
        element = item(
            "Show Notes",
            utc(2025),
            description="Short",
            encoded_content="<p>Long</p>",
        )

        self.parser.merge_elements(self.podcast, [element])

        episode = self.podcast.episodes[0]
        self.assertEqual(episode.description, "<p>Long</p>")
        self.assertEqual(
            episode.media_url, "https://example.com/show notes.mp3"
        )
        self.assertEqual(episode.duration_seconds, 1000)
        self.assertEqual(episode.podcast_guid, self.podcast.guid)
        self.assertTrue(episode.guid)
        self.assertFalse(episode.has_unique_artwork)

    def test_description_without_encoded_content(self) -> None:
        """The plain description is used when there is no encoded content."""
        self.parser.merge_elements(
            self.podcast, [item("Plain", utc(2025), description="Short")]
        )
        self.assertEqual(self.podcast.episodes[0].description, "Short")

    def test_missing_media_link_uses_placeholder(self) -> None:
        """Items without usable links point at the placeholder URL."""
        self.parser.merge_elements(
            self.podcast, [item("No Audio", utc(2025), links=[])]
        )
        self.assertEqual(self.podcast.episodes[0].media_url, DEFAULT_MEDIA_URL)

    def test_artwork_prefers_first_value(self) -> None:
        """The first non-empty artwork element sets the podcast artwork."""
        elements = [
            text(FeedElementType.ARTWORK, ""),
            text(FeedElementType.ARTWORK, "https://example.com/hi.jpg"),
            text(FeedElementType.IMAGE, "https://example.com/lo.jpg"),
        ]

        self.parser.merge_elements(self.podcast, elements)

        assert self.podcast.artwork is not None
        self.assertEqual(
            self.podcast.artwork.media_url, "https://example.com/hi.jpg"
        )

    def test_episode_artwork_unique(self) -> None:
        """Items with their own image get unique artwork."""
        elements = [
            text(FeedElementType.ARTWORK, "https://example.com/show.jpg"),
            item("Own", utc(2025), image_url="https://example.com/own.jpg"),
            item("Inherit", utc(2024)),
        ]

        self.parser.merge_elements(
            self.podcast, elements, use_episode_artwork=True
        )

        own, inherit = self.podcast.episodes
        self.assertTrue(own.has_unique_artwork)
        self.assertEqual(own.artwork.media_url, "https://example.com/own.jpg")
        self.assertFalse(inherit.has_unique_artwork)
        self.assertEqual(
            inherit.artwork.media_url, "https://example.com/show.jpg"
        )
        self.assertIsNot(inherit.artwork, self.podcast.artwork)

    def test_episode_artwork_disabled(self) -> None:
        """Without episode artwork items keep empty artwork."""
        elements = [
            item("Own", utc(2025), image_url="https://example.com/own.jpg"),
        ]

        self.parser.merge_elements(self.podcast, elements)

        self.assertEqual(self.podcast.episodes[0].artwork.media_url, "")
        self.assertFalse(self.podcast.episodes[0].has_unique_artwork)


class TestSelectMediaLink(unittest.TestCase):
    """Test media link precedence."""

    def test_enclosure_wins(self) -> None:
        """An enclosure beats an earlier audio/mpeg link."""
        links = [
            FeedLink("https://example.com/a.mp3", media_type="audio/mpeg"),
            FeedLink("https://example.com/b.m4a", rel="enclosure"),
        ]
        self.assertEqual(
            select_media_link(links).href, "https://example.com/b.m4a"
        )

    def test_audio_mpeg_fallback(self) -> None:
        """Without an enclosure the first audio/mpeg link is used."""
        links = [
            FeedLink("https://example.com/page", rel="alternate"),
            FeedLink("https://example.com/a.mp3", media_type="audio/mpeg"),
        ]
        self.assertEqual(
            select_media_link(links).href, "https://example.com/a.mp3"
        )

    def test_placeholder(self) -> None:
        """No usable link yields the placeholder."""
        self.assertEqual(select_media_link([]).href, DEFAULT_MEDIA_URL)


class TestPodcastParser(PodcastTestBase):
    """Test the fetching entry points of PodcastParser."""

    @patch("requests.get")
    def test_artwork_failure_does_not_stop_refresh(
        self, mock_get: Mock
    ) -> None:
        """A failing artwork download is logged and the merge continues."""
        mock_get.side_effect = requests.exceptions.ConnectionError("down")
        elements = [
            text(FeedElementType.ARTWORK, "https://example.com/cover.jpg"),
            item("Ep", utc(2025)),
        ]
        parser = PodcastParser(reader=StaticReader(elements))

        podcast = parser.from_feed(FEED_URI)

        self.assertEqual(podcast.episode_count, 1)
        assert podcast.artwork is not None
        self.assertFalse(podcast.artwork.artwork_ready())

    @patch("requests.get")
    def test_artwork_downloaded_once(self, mock_get: Mock) -> None:
        """Refreshing with unchanged artwork does not fetch it again."""
        mock_get.return_value = self.mock_response(chunks=[b"img"])
        reader = StaticReader(
            [text(FeedElementType.ARTWORK, "https://example.com/cover.jpg")]
        )
        parser = PodcastParser(reader=reader)

        podcast = parser.from_feed(FEED_URI)
        parser.refresh(podcast)

        mock_get.assert_called_once()
        assert podcast.artwork is not None
        self.assertEqual(podcast.artwork.media_bytes, b"img")
        self.assertEqual(reader.calls, [FEED_URI, FEED_URI])

    def test_from_content(self) -> None:
        """Podcasts can be built from feed bytes already in memory."""
        content = self.create_mock_rss_content(
            [
                {
                    "title": "Only",
                    "pub_date": "Mon, 06 Jan 2025 08:00:00 GMT",
                    "audio_link": "https://example.com/only.mp3",
                    "size": 5,
                }
            ],
            podcast_title="In Memory",
        )

        podcast = PodcastParser(reader=Mock()).from_content(
            FEED_URI, content, max_episodes=5
        )

        self.assertEqual(podcast.title, "In Memory")
        self.assertEqual(podcast.ttl, 60)
        self.assertEqual(podcast.max_episodes, 5)
        self.assertEqual(podcast.episodes[0].size, 5)
        self.assertEqual(
            podcast.last_build_date, utc(2025, 1, 6).replace(hour=10)
        )


if __name__ == "__main__":
    unittest.main()
