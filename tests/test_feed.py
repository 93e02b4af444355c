"""
Tests for turning RSS content into feed elements.
"""

from unittest.mock import Mock, patch

from podcast_sync.errors import FeedParseError
from podcast_sync.feed import (
    ITUNES_NS,
    FeedElement,
    FeedElementType,
    FeedReader,
    parse_feed_elements,
    scan_channel,
)

from tests.base import PodcastTestBase
from tests.utils import utc


class TestParseFeedElements(PodcastTestBase):
    """Test parse_feed_elements."""

    def test_channel_fields_and_items(self) -> None:
        """Channel fields come first, items follow in document order."""
        content = self.create_mock_rss_content(
            [
                {
                    "title": "Episode Two",
                    "description": "Second",
                    "pub_date": "Tue, 07 Jan 2025 08:00:00 GMT",
                    "audio_link": "https://example.com/2.mp3",
                    "size": 2048,
                },
                {
                    "title": "Episode One",
                    "pub_date": "Mon, 06 Jan 2025 08:00:00 GMT",
                    "audio_link": "https://example.com/1.mp3",
                },
            ],
            podcast_title="My Show",
            image_url="https://example.com/cover.jpg",
        )

        elements = list(parse_feed_elements(content))
        by_type = {}
        for element in elements:
            by_type.setdefault(element.type, []).append(element)

        self.assertEqual(by_type[FeedElementType.TITLE][0].text, "My Show")
        self.assertEqual(
            by_type[FeedElementType.LINK][0].text, "https://example.com/show"
        )
        self.assertEqual(by_type[FeedElementType.TTL][0].text, "60")
        self.assertEqual(
            by_type[FeedElementType.ARTWORK][0].text,
            "https://example.com/cover.jpg",
        )
        self.assertIn(FeedElementType.LAST_BUILD_DATE, by_type)

        items = [e.item for e in by_type[FeedElementType.ITEM]]
        self.assertEqual(
            [i.title for i in items], ["Episode Two", "Episode One"]
        )
        self.assertEqual(elements[-1].type, FeedElementType.ITEM)

        first = items[0]
        self.assertEqual(first.published, utc(2025, 1, 7).replace(hour=8))
        self.assertEqual(first.description, "Second")
        enclosure = first.links[0]
        self.assertEqual(enclosure.href, "https://example.com/2.mp3")
        self.assertEqual(enclosure.rel, "enclosure")
        self.assertEqual(enclosure.media_type, "audio/mpeg")
        self.assertEqual(enclosure.length, 2048)

    def test_item_without_date_gets_min_date(self) -> None:
        """Items without a publish date carry the sentinel date."""
        content = self.create_mock_rss_content(
            [{"title": "Undated", "audio_link": "https://example.com/u.mp3"}]
        )

        items = [
            e.item
            for e in parse_feed_elements(content)
            if e.type is FeedElementType.ITEM
        ]

        self.assertEqual(items[0].published.year, 1)

    def test_itunes_image_before_generic_image(self) -> None:
        """itunes:image stays artwork when a generic <image> follows it."""
        content = (
            b'<?xml version="1.0" encoding="UTF-8"?>'
            b'<rss version="2.0" xmlns:itunes="' + ITUNES_NS.encode() + b'">'
            b"<channel><title>T</title>"
            b'<itunes:image href="https://example.com/hires.jpg"/>'
            b"<image><url>https://example.com/small.jpg</url>"
            b"<title>T</title><link>https://example.com</link></image>"
            b"</channel></rss>"
        )

        artwork = [
            (e.type, e.text)
            for e in parse_feed_elements(content)
            if e.type in (FeedElementType.ARTWORK, FeedElementType.IMAGE)
        ]

        self.assertEqual(
            artwork,
            [
                (FeedElementType.ARTWORK, "https://example.com/hires.jpg"),
                (FeedElementType.IMAGE, "https://example.com/small.jpg"),
            ],
        )

    def test_generic_image_only(self) -> None:
        """A lone RSS <image> is reported as a generic image."""
        content = (
            b'<rss version="2.0"><channel><title>T</title>'
            b"<image><url>https://example.com/small.jpg</url></image>"
            b"</channel></rss>"
        )

        types = [e.type for e in parse_feed_elements(content)]

        self.assertIn(FeedElementType.IMAGE, types)
        self.assertNotIn(FeedElementType.ARTWORK, types)

    def test_people_kept_apart(self) -> None:
        """Author, managing editor and webmaster are separate elements."""
        content = (
            b'<rss version="2.0" xmlns:itunes="' + ITUNES_NS.encode() + b'">'
            b"<channel><title>T</title>"
            b"<managingEditor>ed@example.com (Ed)</managingEditor>"
            b"<itunes:author>Host Name</itunes:author>"
            b"<webMaster>web@example.com (Web)</webMaster>"
            b"</channel></rss>"
        )

        people = [
            (e.type, e.text)
            for e in parse_feed_elements(content)
            if e.type is not FeedElementType.TITLE
        ]

        self.assertEqual(
            people,
            [
                (FeedElementType.EDITOR, "ed@example.com (Ed)"),
                (FeedElementType.AUTHOR, "Host Name"),
                (FeedElementType.WEBMASTER, "web@example.com (Web)"),
            ],
        )

    def test_editor_is_not_author(self) -> None:
        """A feed with only a managing editor has no author."""
        content = (
            b'<rss version="2.0"><channel><title>T</title>'
            b"<managingEditor>ed@example.com</managingEditor>"
            b"</channel></rss>"
        )

        types = [e.type for e in parse_feed_elements(content)]

        self.assertIn(FeedElementType.EDITOR, types)
        self.assertNotIn(FeedElementType.AUTHOR, types)

    def test_scan_channel_rejects_non_rss(self) -> None:
        """Atom and malformed documents are left to feedparser."""
        atom = (
            b'<feed xmlns="http://www.w3.org/2005/Atom">'
            b"<title>T</title></feed>"
        )
        self.assertIsNone(scan_channel(atom))
        self.assertIsNone(scan_channel(b"<rss><channel>"))

    def test_garbage_raises(self) -> None:
        """Content that is not a feed at all is rejected."""
        with self.assertRaises(FeedParseError):
            list(parse_feed_elements(b"\x00\x01 definitely not xml <<<"))

    def test_scalar_element_has_no_item(self) -> None:
        """Only ITEM elements expose item content."""
        element = FeedElement(FeedElementType.TITLE, "Show")
        with self.assertRaises(TypeError):
            _ = element.item


class TestFeedReader(PodcastTestBase):
    """Test FeedReader."""

    @patch("podcast_sync.feed.download_feed")
    def test_read_downloads_and_parses(self, mock_download: Mock) -> None:
        """The reader downloads the feed and yields its elements."""
        mock_download.return_value = self.create_mock_rss_content(
            [], podcast_title="Fetched"
        )

        elements = list(FeedReader().read("https://example.com/feed.xml"))

        mock_download.assert_called_once_with("https://example.com/feed.xml")
        self.assertEqual(elements[0].type, FeedElementType.TITLE)
        self.assertEqual(elements[0].text, "Fetched")
