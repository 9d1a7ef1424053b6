"""
Tests for the import pipeline.

Tests:
- Idempotent re-import
- Duplicate links within one document
- Timestamp defaults
- Per-source failure isolation within a pass
"""

import asyncio

import pytest

from rustnews.errors import FetchError, ParseError, StorageError, StorageErrorKind
from rustnews.importer import FeedImporter
from rustnews.sources.base import FeedFormat, Source

from conftest import (
    ATOM_FEED,
    BLOG_URL,
    DUPLICATE_LINK_FEED,
    RSS_FEED,
    RUST_178_TS,
    TWIR_URL,
    FakeFetcher,
)


class BrokenDatabase:
    """Store whose inserts always fail with a non-duplicate error."""

    def insert_post(self, post):
        raise StorageError(StorageErrorKind.OPERATIONAL, "disk I/O error")


class TestImportSource:
    """Tests for FeedImporter.import_source."""

    @pytest.mark.asyncio
    async def test_stores_every_entry(self, db, blog_source):
        importer = FeedImporter(db, FakeFetcher({BLOG_URL: ATOM_FEED}))

        result = await importer.import_source(blog_source)

        assert result.entries == 3
        assert result.inserted == 3
        assert result.duplicates == 0
        assert db.count_posts() == 3

    @pytest.mark.asyncio
    async def test_reimport_is_idempotent(self, db, blog_source):
        """Importing the same document twice inserts nothing the second time."""
        importer = FeedImporter(db, FakeFetcher({BLOG_URL: ATOM_FEED}))

        await importer.import_source(blog_source)
        count_after_first = db.count_posts()
        second = await importer.import_source(blog_source)

        assert second.inserted == 0
        assert second.duplicates == 3
        assert db.count_posts() == count_after_first

    @pytest.mark.asyncio
    async def test_duplicate_links_in_one_document(self, db, blog_source):
        """Two entries sharing a link store exactly one row."""
        importer = FeedImporter(db, FakeFetcher({BLOG_URL: DUPLICATE_LINK_FEED}))

        result = await importer.import_source(
            Source(url=BLOG_URL, format=FeedFormat.AUTO)
        )

        assert result.inserted == 1
        assert result.duplicates == 1
        posts = db.query_posts()
        assert [p.link for p in posts] == ["https://example.com/same"]
        assert posts[0].title == "First copy"

    @pytest.mark.asyncio
    async def test_missing_timestamp_stores_zero(self, db, blog_source):
        """Entries without updated store created_at == 0 and do not abort."""
        importer = FeedImporter(db, FakeFetcher({BLOG_URL: ATOM_FEED}))

        result = await importer.import_source(blog_source)

        by_link = {p.link: p for p in db.query_posts()}
        assert result.undated == 1
        assert by_link["https://blog.rust-lang.org/2024/04/project-goals.html"].created_at == 0
        assert by_link["https://blog.rust-lang.org/2024/05/02/Rust-1.78.0.html"].created_at == RUST_178_TS

    @pytest.mark.asyncio
    async def test_malformed_timestamp_stores_zero(self, db, twir_source):
        importer = FeedImporter(db, FakeFetcher({TWIR_URL: RSS_FEED}))

        result = await importer.import_source(twir_source)

        assert result.inserted == 2
        assert result.undated == 1
        undated = [p for p in db.query_posts() if p.created_at == 0]
        assert [p.title for p in undated] == ["This Week in Rust 544"]

    @pytest.mark.asyncio
    async def test_source_link_only_for_url_ids(self, db, blog_source):
        importer = FeedImporter(db, FakeFetcher({BLOG_URL: ATOM_FEED}))

        await importer.import_source(blog_source)

        by_title = {p.title: p for p in db.query_posts()}
        assert by_title["Announcing Rust 1.78.0"].source_link == (
            "https://blog.rust-lang.org/2024/05/02/Rust-1.78.0.html"
        )
        assert by_title["Announcing Rust 1.77.0"].source_link == ""
        assert by_title["Project goals"].source_link == ""

    @pytest.mark.asyncio
    async def test_fetch_error_propagates(self, db, blog_source):
        importer = FeedImporter(db, FakeFetcher({BLOG_URL: FetchError(BLOG_URL, "connection refused")}))

        with pytest.raises(FetchError):
            await importer.import_source(blog_source)

    @pytest.mark.asyncio
    async def test_parse_error_propagates(self, db, blog_source):
        importer = FeedImporter(db, FakeFetcher({BLOG_URL: "<html>maintenance</html>"}))

        with pytest.raises(ParseError):
            await importer.import_source(blog_source)
        assert db.count_posts() == 0

    @pytest.mark.asyncio
    async def test_storage_error_propagates(self, blog_source):
        """Non-duplicate storage failures abort the source."""
        importer = FeedImporter(BrokenDatabase(), FakeFetcher({BLOG_URL: ATOM_FEED}))

        with pytest.raises(StorageError):
            await importer.import_source(blog_source)


class TestImportAll:
    """Tests for FeedImporter.import_all."""

    @pytest.mark.asyncio
    async def test_failing_source_does_not_block_siblings(self, db, blog_source, twir_source):
        """Source B is stored even though source A's fetch fails."""
        fetcher = FakeFetcher({
            BLOG_URL: FetchError(BLOG_URL, "timed out after 15.0s"),
            TWIR_URL: RSS_FEED,
        })
        importer = FeedImporter(db, fetcher)

        report = await importer.import_all([blog_source, twir_source])

        assert report.failed == 1
        assert BLOG_URL in report.failures
        assert report.succeeded == 1
        assert report.inserted == 2
        assert {p.source for p in db.query_posts()} == {TWIR_URL}

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_isolated(self, db, blog_source, twir_source):
        fetcher = FakeFetcher({
            BLOG_URL: RuntimeError("boom"),
            TWIR_URL: RSS_FEED,
        })

        report = await FeedImporter(db, fetcher).import_all([blog_source, twir_source])

        assert report.failures == {BLOG_URL: "boom"}
        assert report.inserted == 2

    @pytest.mark.asyncio
    async def test_all_sources_failing_leaves_store_unchanged(self, db, blog_source, twir_source):
        await FeedImporter(db, FakeFetcher({BLOG_URL: ATOM_FEED})).import_source(blog_source)
        before = db.query_posts()

        report = await FeedImporter(db, FakeFetcher({})).import_all([blog_source, twir_source])

        assert report.failed == 2
        assert db.query_posts() == before

    @pytest.mark.asyncio
    async def test_respects_concurrency_limit(self, db):
        """No more than max_concurrent sources are fetched at once."""
        in_flight = 0
        peak = 0

        class SlowFetcher:
            async def fetch(self, url):
                nonlocal in_flight, peak
                in_flight += 1
                peak = max(peak, in_flight)
                await asyncio.sleep(0.01)
                in_flight -= 1
                return '<feed xmlns="http://www.w3.org/2005/Atom"><title>t</title></feed>'

        sources = [Source(url=f"https://example.com/{i}.xml") for i in range(6)]

        report = await FeedImporter(db, SlowFetcher(), max_concurrent=2).import_all(sources)

        assert report.succeeded == 6
        assert peak <= 2

    @pytest.mark.asyncio
    async def test_report_serializes(self, db, twir_source):
        report = await FeedImporter(db, FakeFetcher({TWIR_URL: RSS_FEED})).import_all([twir_source])

        data = report.to_dict()

        assert data["inserted"] == 2
        assert data["results"][0]["source"] == TWIR_URL
        assert data["finished_at"] is not None
