"""
Test utilities for creating test data.
"""

from datetime import datetime, timezone
from typing import Any, List, Optional

from podcast_sync.feed import FeedElement, FeedElementType, FeedItem, FeedLink
from podcast_sync.models import Episode


def utc(year: int, month: int = 1, day: int = 1) -> datetime:
    """Timezone-aware UTC midnight."""
    return datetime(year, month, day, tzinfo=timezone.utc)


def create_test_episode(**kwargs: Any) -> Episode:
    """Create an Episode with test defaults; kwargs override fields."""
    defaults = {
        "podcast_guid": "podcast-guid",
        "title": "Test Episode",
        "description": "Test episode description",
        "published": utc(2025, 1, 1),
        "media_url": "https://example.com/episode.mp3",
        "duration_seconds": 1800,
        "size": 1000,
        "guid": "episode-guid",
    }
    defaults.update(kwargs)
    return Episode(**defaults)


def text(element_type: FeedElementType, value: str) -> FeedElement:
    """Scalar feed element."""
    return FeedElement(element_type, value)


def item(
    title: str,
    published: datetime,
    links: Optional[List[FeedLink]] = None,
    **kwargs: Any,
) -> FeedElement:
    """Item feed element with an enclosure unless links are given."""
    if links is None:
        links = [
            FeedLink(
                href=f"https://example.com/{title.lower()}.mp3",
                rel="enclosure",
                media_type="audio/mpeg",
                length=1000,
            )
        ]
    return FeedElement(
        FeedElementType.ITEM,
        FeedItem(title=title, published=published, links=links, **kwargs),
    )
