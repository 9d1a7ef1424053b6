"""
Compiled-in source registry.

The feed list is fixed at build time; there is no dynamic subscription.
"""

from typing import Optional

from .base import FeedFormat, Source


SOURCES: tuple[Source, ...] = (
    Source(
        url="https://blog.rust-lang.org/feed.xml",
        label="official blog",
        format=FeedFormat.ATOM,
    ),
    Source(
        url="https://blog.rust-lang.org/inside-rust/feed.xml",
        label="inside rust",
        format=FeedFormat.ATOM,
    ),
    Source(
        url="https://this-week-in-rust.org/atom.xml",
        label="this week in rust",
        format=FeedFormat.ATOM,
    ),
    Source(
        url="https://lib.rs/atom.xml",
        label="lib.rs",
        format=FeedFormat.ATOM,
    ),
)

UNKNOWN_SOURCE = "Unknown"

_LABELS: dict[str, str] = {s.url: s.display_name for s in SOURCES}


def display_name(url: Optional[str]) -> str:
    """Map a stored source URL to its label; unrecognized URLs map to 'Unknown'."""
    if not url:
        return UNKNOWN_SOURCE
    return _LABELS.get(url, UNKNOWN_SOURCE)


def get_source(url: str) -> Optional[Source]:
    """Get a registered source by URL."""
    for source in SOURCES:
        if source.url == url:
            return source
    return None


def list_sources() -> list[Source]:
    """All registered sources, in registry order."""
    return list(SOURCES)
