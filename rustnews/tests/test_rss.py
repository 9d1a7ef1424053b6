"""
Tests for the feed document parser.

Tests:
- Atom and RSS entry extraction
- Optional fields mapping to None
- Structural failures raising ParseError
"""

import pytest

from rustnews.errors import ParseError
from rustnews.sources.base import FeedFormat
from rustnews.sources.rss import detect_format, parse_feed

from conftest import ATOM_FEED, RSS_FEED


class TestAtomParsing:
    """Tests for Atom documents."""

    def test_extracts_all_entries_in_order(self):
        """Should return one RawEntry per entry, in document order."""
        entries = parse_feed(ATOM_FEED, expected=FeedFormat.ATOM)

        assert [e.title for e in entries] == [
            "Announcing Rust 1.78.0",
            "Announcing Rust 1.77.0",
            "Project goals",
        ]

    def test_extracts_link_id_updated_and_content(self):
        """Should carry the alternate href, id, updated string and body."""
        entry = parse_feed(ATOM_FEED)[0]

        assert entry.link == "https://blog.rust-lang.org/2024/05/02/Rust-1.78.0.html"
        assert entry.id == "https://blog.rust-lang.org/2024/05/02/Rust-1.78.0.html"
        assert entry.updated == "2024-05-02T00:00:00+00:00"
        assert "1.78.0" in entry.content

    def test_missing_optional_fields_are_none(self):
        """Entries without id, updated or content should still parse."""
        entry = parse_feed(ATOM_FEED)[2]

        assert entry.link == "https://blog.rust-lang.org/2024/04/project-goals.html"
        assert entry.id is None
        assert entry.updated is None
        assert entry.content is None

    def test_accepts_bytes(self):
        """Should accept the raw document as bytes."""
        entries = parse_feed(ATOM_FEED.encode("utf-8"))

        assert len(entries) == 3

    def test_feed_without_entries_returns_empty_list(self):
        """A valid feed with no entries is not an error."""
        document = '<feed xmlns="http://www.w3.org/2005/Atom"><title>Quiet</title></feed>'

        assert parse_feed(document) == []

    def test_skips_entries_without_link(self):
        """Entries with no link have no dedup key and are dropped."""
        document = """<feed xmlns="http://www.w3.org/2005/Atom">
          <title>t</title>
          <entry><title>No link here</title></entry>
          <entry><title>Linked</title><link href="https://example.com/a"/></entry>
        </feed>"""

        entries = parse_feed(document)

        assert [e.title for e in entries] == ["Linked"]


class TestRSSParsing:
    """Tests for RSS 2.0 documents."""

    def test_maps_pubdate_guid_and_description(self):
        """pubDate, guid and description should fill updated, id and content."""
        entry = parse_feed(RSS_FEED, expected=FeedFormat.RSS)[0]

        assert entry.title == "This Week in Rust 545"
        assert entry.link == "https://this-week-in-rust.org/blog/2024/05/01/this-week-in-rust-545/"
        assert entry.id == "tag:this-week-in-rust.org,2024-05-01:545"
        assert entry.updated == "Wed, 01 May 2024 00:00:00 +0000"
        assert entry.content == "Hello and welcome to another issue."

    def test_keeps_malformed_dates_as_strings(self):
        """The parser does not judge timestamps; normalization does."""
        entry = parse_feed(RSS_FEED)[1]

        assert entry.updated == "sometime last week"


class TestStructuralFailures:
    """Tests for documents that are not feeds at all."""

    @pytest.mark.parametrize("document", [
        "",
        "this is not xml at all",
        "<html><body><p>Not a feed</p></body></html>",
    ])
    def test_rejects_non_feed_documents(self, document):
        """Should raise ParseError when no feed can be recognized."""
        with pytest.raises(ParseError):
            parse_feed(document)

    def test_rejects_rss_when_atom_expected(self):
        """Should raise ParseError on a format family mismatch."""
        with pytest.raises(ParseError):
            parse_feed(RSS_FEED, expected=FeedFormat.ATOM)

    def test_rejects_atom_when_rss_expected(self):
        with pytest.raises(ParseError):
            parse_feed(ATOM_FEED, expected=FeedFormat.RSS)


class TestDetectFormat:
    """Tests for feedparser version mapping."""

    @pytest.mark.parametrize("version,expected", [
        ("atom10", FeedFormat.ATOM),
        ("atom03", FeedFormat.ATOM),
        ("rss20", FeedFormat.RSS),
        ("rss10", FeedFormat.RSS),
        ("", None),
        ("cdf", None),
    ])
    def test_maps_versions(self, version, expected):
        assert detect_format(version) == expected
