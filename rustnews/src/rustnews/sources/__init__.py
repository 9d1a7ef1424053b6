"""
Feed sources module.

Provides the compiled-in registry, the HTTP fetcher and the Atom/RSS parser.
"""

from .base import FeedFormat, RawEntry, Source
from .fetcher import Fetcher
from .registry import SOURCES, display_name, get_source, list_sources
from .rss import parse_feed

__all__ = [
    "FeedFormat",
    "RawEntry",
    "Source",
    "Fetcher",
    "SOURCES",
    "display_name",
    "get_source",
    "list_sources",
    "parse_feed",
]
