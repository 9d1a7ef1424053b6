"""Pytest fixtures for rustnews tests."""

from typing import Union

import pytest
import structlog

from rustnews.db import Database
from rustnews.errors import FetchError
from rustnews.sources.base import FeedFormat, Source


BLOG_URL = "https://blog.rust-lang.org/feed.xml"
TWIR_URL = "https://this-week-in-rust.org/atom.xml"

# 2024-05-02T00:00:00Z
RUST_178_TS = 1714608000
# 2024-03-21T00:00:00Z
RUST_177_TS = 1710979200

ATOM_FEED = """<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Rust Blog</title>
  <id>https://blog.rust-lang.org/</id>
  <updated>2024-05-02T00:00:00+00:00</updated>
  <entry>
    <title>Announcing Rust 1.78.0</title>
    <link rel="alternate" type="text/html" href="https://blog.rust-lang.org/2024/05/02/Rust-1.78.0.html"/>
    <id>https://blog.rust-lang.org/2024/05/02/Rust-1.78.0.html</id>
    <updated>2024-05-02T00:00:00+00:00</updated>
    <content type="html">&lt;p&gt;The Rust team is happy to announce 1.78.0.&lt;/p&gt;</content>
  </entry>
  <entry>
    <title>Announcing Rust 1.77.0</title>
    <link rel="alternate" type="text/html" href="https://blog.rust-lang.org/2024/03/21/Rust-1.77.0.html"/>
    <id>urn:uuid:6a1e7f4c-3f0a-4d1e-9f1c-77a0b7c1d077</id>
    <updated>2024-03-21T00:00:00Z</updated>
  </entry>
  <entry>
    <title>Project goals</title>
    <link href="https://blog.rust-lang.org/2024/04/project-goals.html"/>
  </entry>
</feed>
"""

RSS_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>This Week in Rust</title>
    <link>https://this-week-in-rust.org/</link>
    <description>Weekly Rust news</description>
    <item>
      <title>This Week in Rust 545</title>
      <link>https://this-week-in-rust.org/blog/2024/05/01/this-week-in-rust-545/</link>
      <guid isPermaLink="false">tag:this-week-in-rust.org,2024-05-01:545</guid>
      <pubDate>Wed, 01 May 2024 00:00:00 +0000</pubDate>
      <description>Hello and welcome to another issue.</description>
    </item>
    <item>
      <title>This Week in Rust 544</title>
      <link>https://this-week-in-rust.org/blog/2024/04/24/this-week-in-rust-544/</link>
      <pubDate>sometime last week</pubDate>
    </item>
  </channel>
</rss>
"""

DUPLICATE_LINK_FEED = """<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Dupes</title>
  <entry>
    <title>First copy</title>
    <link href="https://example.com/same"/>
    <updated>2024-05-01T00:00:00Z</updated>
  </entry>
  <entry>
    <title>Second copy</title>
    <link href="https://example.com/same"/>
    <updated>2024-05-02T00:00:00Z</updated>
  </entry>
</feed>
"""


class FakeFetcher:
    """
    In-memory fetcher: maps URL to a document or to an exception to raise.

    Records every URL requested in `calls`.
    """

    def __init__(self, responses: dict[str, Union[str, Exception]]):
        self.responses = dict(responses)
        self.calls: list[str] = []

    async def fetch(self, url: str) -> str:
        self.calls.append(url)
        response = self.responses.get(url)
        if response is None:
            raise FetchError(url, "no such feed", status_code=404)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def db(tmp_path) -> Database:
    """Fresh SQLite database in a temporary directory."""
    database = Database(f"sqlite:///{tmp_path / 'rustnews-test.db'}")
    database.create_tables()
    yield database
    database.dispose()


@pytest.fixture
def blog_source() -> Source:
    return Source(url=BLOG_URL, label="official blog", format=FeedFormat.ATOM)


@pytest.fixture
def twir_source() -> Source:
    return Source(url=TWIR_URL, label="this week in rust", format=FeedFormat.AUTO)


@pytest.fixture(autouse=True)
def reset_structlog():
    """Keep logging configuration from one test out of the next."""
    yield
    structlog.reset_defaults()
