"""
Feed document parser.

Handles Atom and RSS (0.9x, 1.0, 2.0) documents through feedparser and
reduces each entry to a RawEntry. Parsing is pure: the document is handed to
feedparser as a stream so it never performs I/O of its own.
"""

import io
from typing import Optional, Union

import feedparser

from .base import FeedFormat, RawEntry
from ..errors import ParseError
from ..logging_conf import get_logger

logger = get_logger(__name__)


def detect_format(version: str) -> Optional[FeedFormat]:
    """Map a feedparser version string ('atom10', 'rss20', ...) to a FeedFormat."""
    if not version:
        return None
    if version.startswith("atom"):
        return FeedFormat.ATOM
    if version.startswith("rss"):
        return FeedFormat.RSS
    return None


def parse_feed(
    document: Union[str, bytes],
    expected: FeedFormat = FeedFormat.AUTO,
) -> list[RawEntry]:
    """
    Decode a feed document into raw entries.

    Args:
        document: Raw XML, as text or bytes
        expected: Container format the source is supposed to serve

    Returns:
        Entries in document order. Entries without a link are skipped.

    Raises:
        ParseError: The document is not recognizable feed XML, or it is a
            feed of the other family than `expected`.
    """
    if isinstance(document, str):
        document = document.encode("utf-8")

    feed = feedparser.parse(io.BytesIO(document))

    if not feed.get("version") and not feed.entries:
        reason = feed.get("bozo_exception") or "no feed root element"
        raise ParseError(f"not a feed document: {reason}")

    detected = detect_format(feed.get("version", ""))
    if expected != FeedFormat.AUTO and detected is not None and detected != expected:
        raise ParseError(
            f"expected {expected.value} feed, got {feed.get('version')}"
        )

    if feed.bozo and feed.get("bozo_exception"):
        logger.warning("feed_parse_warning", error=str(feed.bozo_exception))

    entries = []
    for entry in feed.entries:
        raw = _parse_entry(entry)
        if raw is None:
            logger.debug("entry_without_link", title=entry.get("title", "")[:80])
            continue
        entries.append(raw)

    return entries


def _parse_entry(entry: dict) -> Optional[RawEntry]:
    """Reduce one feedparser entry to a RawEntry."""
    link = _entry_link(entry)
    if not link:
        return None

    content = None
    if entry.get("content"):
        content = entry.content[0].get("value")
    elif "summary" in entry:
        content = entry.summary

    return RawEntry(
        title=(entry.get("title") or "").strip(),
        link=link,
        content=content or None,
        id=(entry.get("id") or "").strip() or None,
        updated=entry.get("updated") or entry.get("published") or None,
    )


def _entry_link(entry: dict) -> str:
    """Alternate link href, falling back to the first link of any relation."""
    link = (entry.get("link") or "").strip()
    if link:
        return link

    for candidate in entry.get("links", []):
        href = (candidate.get("href") or "").strip()
        if href:
            return href

    return ""
