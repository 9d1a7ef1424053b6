"""
Read path for the aggregated feed.

Queries recent posts newest-first and attaches what the presentation layer
needs: a source display name and a coarse relative age ("3h ago").
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from .db import Database
from .normalize import Post
from .sources.registry import display_name

# Coarsest first. A month is 30 days and a year 365 days.
AGE_BUCKETS: tuple[tuple[str, int], ...] = (
    ("y", 365 * 24 * 60 * 60),
    ("mo", 30 * 24 * 60 * 60),
    ("d", 24 * 60 * 60),
    ("h", 60 * 60),
    ("m", 60),
    ("s", 1),
)


def relative_age(created_at: int, now: int) -> str:
    """
    Label the age of a timestamp using the coarsest non-zero bucket.

    >>> relative_age(0, 90000)
    '1d ago'

    Future timestamps floor to '0s ago'.
    """
    age = max(0, now - created_at)

    for unit, seconds in AGE_BUCKETS:
        count = age // seconds
        if count > 0:
            return f"{count}{unit} ago"

    return "0s ago"


@dataclass(frozen=True)
class FeedRow:
    """Everything the renderer needs for one line of the feed."""
    title: str
    link: str
    source_name: str
    source_link: str
    age: str
    created_at: int

    @classmethod
    def from_post(cls, post: Post, now: int) -> "FeedRow":
        return cls(
            title=post.title,
            link=post.link,
            source_name=display_name(post.source),
            source_link=post.source_link,
            age=relative_age(post.created_at, now),
            created_at=post.created_at,
        )

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "link": self.link,
            "source_name": self.source_name,
            "source_link": self.source_link,
            "age": self.age,
            "created_at": self.created_at,
        }


class Reader:
    """Read-only view over the post store."""

    def __init__(self, db: Database):
        self.db = db

    def recent(
        self,
        window: timedelta = timedelta(hours=24),
        now: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[FeedRow]:
        """
        Posts created within `window` of `now`, newest first.

        Raises:
            StorageError: The store could not be queried
        """
        now = now or datetime.now(timezone.utc)
        now_ts = int(now.timestamp())
        since = now_ts - int(window.total_seconds())

        posts = self.db.query_posts(since=since, limit=limit)
        return [FeedRow.from_post(post, now_ts) for post in posts]
