"""
Typed feed elements produced from RSS content with feedparser.

The refresh algorithm consumes a sequence of FeedElement values and never
looks at XML directly, so any source that yields these elements can drive
it.
"""

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Iterator, List, Optional, Union

import feedparser

from .downloader import download_feed
from .errors import FeedParseError
from .utils import MIN_DATE, parse_date, struct_time_to_datetime

AUDIO_MPEG = "audio/mpeg"
ENCLOSURE = "enclosure"
ITUNES_NS = "http://www.itunes.com/dtds/podcast-1.0.dtd"
ITUNES_IMAGE = f"{{{ITUNES_NS}}}image"


class FeedElementType(Enum):
    """Kinds of element a feed reader can yield."""

    TITLE = "title"
    DESCRIPTION = "description"
    LINK = "link"
    AUTHOR = "author"
    EDITOR = "editor"
    WEBMASTER = "webmaster"
    GENERATOR = "generator"
    LANGUAGE = "language"
    COPYRIGHT = "copyright"
    TTL = "ttl"
    LAST_BUILD_DATE = "last_build_date"
    PUBLISH_DATE = "publish_date"
    ARTWORK = "artwork"  # High resolution artwork (itunes:image, artwork)
    IMAGE = "image"  # Generic RSS <image>
    ITEM = "item"


@dataclass
class FeedLink:
    """A link attached to a feed item."""

    href: str
    rel: str = ""
    media_type: str = ""
    length: int = 0


@dataclass
class FeedItem:
    """Content of one <item>."""

    title: str = ""
    description: str = ""
    encoded_content: Optional[str] = None
    published: datetime = MIN_DATE
    links: List[FeedLink] = field(default_factory=list)
    image_url: Optional[str] = None
    artwork_url: Optional[str] = None


@dataclass
class FeedElement:
    """One element of a feed: a raw scalar string or an item."""

    type: FeedElementType
    value: Union[str, FeedItem]

    @property
    def text(self) -> str:
        """Scalar value as a string."""
        return self.value if isinstance(self.value, str) else ""

    @property
    def item(self) -> FeedItem:
        """Item content; only valid for ITEM elements."""
        if not isinstance(self.value, FeedItem):
            raise TypeError(f"{self.type.name} element carries no item")
        return self.value


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _links_from_entry(entry: Any) -> List[FeedLink]:
    links: List[FeedLink] = []
    for link in entry.get("links", []):
        href = link.get("href")
        if not href:
            continue
        links.append(
            FeedLink(
                href=href,
                rel=link.get("rel", ""),
                media_type=link.get("type", ""),
                length=_as_int(link.get("length")),
            )
        )
    return links


def _item_from_entry(entry: Any) -> FeedItem:
    published = struct_time_to_datetime(entry.get("published_parsed"))
    if published is None:
        published = parse_date(entry.get("published"))

    encoded_content = None
    for content in entry.get("content", []):
        if content.get("value"):
            encoded_content = content["value"]
            break

    image = entry.get("image") or {}
    return FeedItem(
        title=entry.get("title", ""),
        description=entry.get("summary", ""),
        encoded_content=encoded_content,
        published=published,
        links=_links_from_entry(entry),
        image_url=image.get("href") or None,
        artwork_url=entry.get("artwork") or None,
    )


_SCALAR_FIELDS = (
    (FeedElementType.TITLE, "title"),
    (FeedElementType.DESCRIPTION, "subtitle"),
    (FeedElementType.LINK, "link"),
    (FeedElementType.GENERATOR, "generator"),
    (FeedElementType.LANGUAGE, "language"),
    (FeedElementType.COPYRIGHT, "rights"),
    (FeedElementType.TTL, "ttl"),
    (FeedElementType.LAST_BUILD_DATE, "updated"),
    (FeedElementType.PUBLISH_DATE, "published"),
)

# Channel tags feedparser folds into shared keys; read from the XML instead
_PEOPLE_TAGS = {
    f"{{{ITUNES_NS}}}author": FeedElementType.AUTHOR,
    "author": FeedElementType.AUTHOR,
    "managingEditor": FeedElementType.EDITOR,
    "webMaster": FeedElementType.WEBMASTER,
}

_IMAGE_TYPES = (FeedElementType.ARTWORK, FeedElementType.IMAGE)


def scan_channel(content: bytes) -> Optional[List[FeedElement]]:
    """Read people and artwork elements straight from an RSS 2.0 channel.

    feedparser keeps a single channel image and merges managingEditor into
    author, so these tags are taken from the document itself. People come
    in document order, followed by itunes:image artwork and then the
    generic <image>. Returns None when the content is not well-formed RSS.
    """
    try:
        root = ET.fromstring(content)
    except ET.ParseError:
        return None
    channel = root.find("channel")
    if root.tag != "rss" or channel is None:
        return None

    people: List[FeedElement] = []
    artwork: List[FeedElement] = []
    images: List[FeedElement] = []
    for child in channel:
        if child.tag in _PEOPLE_TAGS:
            value = (child.text or "").strip()
            if value:
                people.append(FeedElement(_PEOPLE_TAGS[child.tag], value))
        elif child.tag == ITUNES_IMAGE:
            href = child.attrib.get("href", "").strip()
            if href:
                artwork.append(FeedElement(FeedElementType.ARTWORK, href))
        elif child.tag == "image":
            url = (child.findtext("url") or "").strip()
            if url:
                images.append(FeedElement(FeedElementType.IMAGE, url))
    return people + artwork + images


def _fallback_channel(feed: Any) -> Iterator[FeedElement]:
    """People and artwork as feedparser reports them, for non-RSS feeds."""
    if feed.get("author"):
        yield FeedElement(FeedElementType.AUTHOR, str(feed["author"]))
    if feed.get("publisher"):
        yield FeedElement(FeedElementType.WEBMASTER, str(feed["publisher"]))
    image = feed.get("image") or {}
    if image.get("href"):
        # itunes:image only carries href; RSS <image> has title/link/size
        if set(image.keys()) <= {"href"}:
            yield FeedElement(FeedElementType.ARTWORK, image["href"])
        else:
            yield FeedElement(FeedElementType.IMAGE, image["href"])


def parse_feed_elements(content: bytes) -> Iterator[FeedElement]:
    """Parse raw RSS content into feed elements.

    Channel fields come first, then items in document order. Artwork
    elements always precede the generic image.

    Raises:
        FeedParseError: If the content holds no feed at all.
    """
    parsed = feedparser.parse(content)
    if parsed.get("bozo") and not parsed.feed and not parsed.entries:
        raise FeedParseError(
            f"Content is not a feed: {parsed.get('bozo_exception')}"
        )
    feed = parsed.feed

    for element_type, key in _SCALAR_FIELDS:
        value = feed.get(key)
        if value:
            yield FeedElement(element_type, str(value))

    channel = scan_channel(content)
    people = [e for e in channel or [] if e.type not in _IMAGE_TYPES]
    yield from people
    if feed.get("artwork"):
        yield FeedElement(FeedElementType.ARTWORK, feed["artwork"])
    if channel is None:
        yield from _fallback_channel(feed)
    else:
        yield from (e for e in channel if e.type in _IMAGE_TYPES)

    for entry in parsed.entries:
        yield FeedElement(FeedElementType.ITEM, _item_from_entry(entry))


class FeedReader:
    """Fetches a feed over HTTP and yields its elements."""

    def __init__(self) -> None:
        self.logger = logging.getLogger(__name__)

    def read(self, feed_uri: str) -> Iterator[FeedElement]:
        """Download feed_uri and return its elements."""
        content = download_feed(feed_uri)
        self.logger.debug("Parsing %d bytes from %s", len(content), feed_uri)
        return parse_feed_elements(content)
