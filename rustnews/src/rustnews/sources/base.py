"""
Base types for feed sources.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class FeedFormat(str, Enum):
    """Container format a source is expected to serve."""
    ATOM = "atom"
    RSS = "rss"
    AUTO = "auto"


@dataclass(frozen=True)
class Source:
    """
    A registry entry for one remote feed.

    Identity is the URL; sources are never persisted.
    """
    url: str
    label: Optional[str] = None
    format: FeedFormat = FeedFormat.AUTO

    @property
    def display_name(self) -> str:
        return self.label or "Unknown"

    def __str__(self) -> str:
        return f"{self.display_name} ({self.url})"


@dataclass
class RawEntry:
    """
    One entry as decoded from a feed document, before normalization.

    Only `title` and `link` are always present; the rest are whatever the
    feed chose to include.
    """
    title: str
    link: str
    content: Optional[str] = None
    id: Optional[str] = None
    updated: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.title[:60]} <{self.link}>"
