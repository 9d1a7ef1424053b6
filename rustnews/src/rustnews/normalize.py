"""
Normalized post schema.

Every parser output is reduced to a Post before it reaches storage. Posts are
created once by the importer and never modified afterwards.
"""

import re
from dataclasses import dataclass, asdict
from datetime import timezone
from email.utils import parsedate_to_datetime
from typing import Optional
from urllib.parse import urlparse

from dateutil.parser import isoparse
from ulid import ULID

from .errors import TimestampError
from .sources.base import RawEntry, Source

_RFC3339 = re.compile(
    r"^\d{4}-\d{2}-\d{2}"
    r"(?:[Tt ]\d{2}:\d{2}(?::\d{2}(?:[.,]\d+)?)?(?:[Zz]|[+-]\d{2}(?::?\d{2})?)?)?$"
)


@dataclass(frozen=True)
class Post:
    """
    The persisted unit of the aggregated feed.

    `link` is the dedup key; `id` is a ULID assigned at import time so ids
    sort in creation order.
    """
    id: str
    source: str
    title: str
    link: str
    source_link: str = ""
    created_at: int = 0

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return asdict(self)

    def __str__(self) -> str:
        return f"[{self.source}] {self.title[:60]}"


def new_post_id() -> str:
    """Generate a new lexicographically sortable post id."""
    return str(ULID())


def parse_timestamp(value: Optional[str]) -> int:
    """
    Parse a feed timestamp into epoch seconds.

    Accepts RFC 3339 (Atom) and RFC 822 (RSS). Anything less than a full
    calendar date is rejected rather than completed from today's date.
    Naive timestamps are taken as UTC.

    Raises:
        TimestampError: The value is missing or cannot be parsed
    """
    if value is None or not value.strip():
        raise TimestampError(value, "missing timestamp")

    text = value.strip()
    try:
        if _RFC3339.match(text):
            dt = isoparse(text)
        else:
            dt = parsedate_to_datetime(text)
    except (TypeError, ValueError, OverflowError) as e:
        raise TimestampError(value) from e

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    try:
        return int(dt.timestamp())
    except (ValueError, OverflowError, OSError) as e:
        raise TimestampError(value, "timestamp out of range") from e


def is_absolute_url(value: Optional[str]) -> bool:
    """True for absolute http(s) URLs with a host."""
    if not value:
        return False
    parsed = urlparse(value.strip())
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def from_raw_entry(
    entry: RawEntry,
    source: Source,
    post_id: Optional[str] = None,
) -> tuple[Post, bool]:
    """
    Build a Post from a raw feed entry.

    Args:
        entry: Parsed feed entry
        source: Source the entry came from
        post_id: Explicit id (a fresh ULID is generated otherwise)

    Returns:
        Tuple of (post, dated) where dated is False when the timestamp was
        missing or malformed and created_at fell back to 0
    """
    try:
        created_at = parse_timestamp(entry.updated)
        dated = True
    except TimestampError:
        created_at = 0
        dated = False

    source_link = entry.id.strip() if is_absolute_url(entry.id) else ""

    post = Post(
        id=post_id or new_post_id(),
        source=source.url,
        title=entry.title,
        link=entry.link,
        source_link=source_link,
        created_at=created_at,
    )
    return post, dated
