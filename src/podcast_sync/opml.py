"""
OPML subscription list scanning.
"""

import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import BinaryIO, List

from .errors import FeedParseError

XML_URL = "xmlUrl"


@dataclass
class OpmlEntry:
    """One feed outline from an OPML document."""

    feed_uri: str
    title: str

    @property
    def display_name(self) -> str:
        """Title, or the feed URI when the title is blank."""
        return self.title if self.title.strip() else self.feed_uri


def read_opml_entries(stream: BinaryIO) -> List[OpmlEntry]:
    """Return every outline that carries an xmlUrl attribute, in order."""
    try:
        root = ET.parse(stream).getroot()
    except ET.ParseError as e:
        raise FeedParseError(f"Invalid OPML document: {e}") from e

    entries: List[OpmlEntry] = []
    for outline in root.iter("outline"):
        feed_uri = outline.attrib.get(XML_URL)
        if feed_uri is None:
            continue
        entries.append(
            OpmlEntry(
                feed_uri=feed_uri.strip(),
                title=outline.attrib.get("title", ""),
            )
        )
    return entries
