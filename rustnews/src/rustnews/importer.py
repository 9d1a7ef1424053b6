"""
Feed import pipeline.

Drives one source end to end (fetch, parse, normalize, store each entry) and
runs import passes over the whole registry with per-source isolation.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Protocol, Sequence
import uuid

from .db import Database
from .errors import RustNewsError
from .logging_conf import get_logger, bind_context, unbind_context
from .normalize import from_raw_entry
from .sources.base import Source
from .sources.rss import parse_feed

logger = get_logger(__name__)


class DocumentFetcher(Protocol):
    async def fetch(self, url: str) -> str: ...


@dataclass
class ImportResult:
    """Outcome of importing one source."""
    source: str
    entries: int = 0
    inserted: int = 0
    duplicates: int = 0
    undated: int = 0

    def to_dict(self) -> dict:
        return {
            "source": self.source,
            "entries": self.entries,
            "inserted": self.inserted,
            "duplicates": self.duplicates,
            "undated": self.undated,
        }


@dataclass
class PassReport:
    """Outcome of one import pass over the registry."""
    pass_id: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    results: list[ImportResult] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)

    @property
    def inserted(self) -> int:
        return sum(r.inserted for r in self.results)

    @property
    def succeeded(self) -> int:
        return len(self.results)

    @property
    def failed(self) -> int:
        return len(self.failures)

    def to_dict(self) -> dict:
        return {
            "pass_id": self.pass_id,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "inserted": self.inserted,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "results": [r.to_dict() for r in self.results],
            "failures": dict(self.failures),
        }


class FeedImporter:
    """
    Imports feed entries into the store.

    The importer is the only writer. Store calls run in worker threads so an
    import pass never blocks the event loop serving reads.
    """

    def __init__(
        self,
        db: Database,
        fetcher: DocumentFetcher,
        max_concurrent: int = 4,
    ):
        """
        Initialize importer.

        Args:
            db: Store to write posts into
            fetcher: Anything with an async fetch(url) -> str
            max_concurrent: Sources imported at once during a pass
        """
        self.db = db
        self.fetcher = fetcher
        self.max_concurrent = max_concurrent

    async def import_source(self, source: Source) -> ImportResult:
        """
        Fetch, parse and store one source.

        Duplicate links are counted; malformed timestamps default to 0.

        Raises:
            FetchError, ParseError, StorageError: Aborts this source only
        """
        document = await self.fetcher.fetch(source.url)
        entries = parse_feed(document, expected=source.format)

        result = ImportResult(source=source.url, entries=len(entries))

        for entry in entries:
            post, dated = from_raw_entry(entry, source)
            if not dated:
                result.undated += 1
                logger.debug("entry_timestamp_defaulted", source=source.url, link=entry.link[:120], value=entry.updated)

            rows = await asyncio.to_thread(self.db.insert_post, post)
            if rows:
                result.inserted += rows
            else:
                result.duplicates += 1

        logger.info(
            "source_imported",
            source=source.url,
            entries=result.entries,
            inserted=result.inserted,
            duplicates=result.duplicates,
            undated=result.undated,
        )
        return result

    async def import_all(self, sources: Sequence[Source]) -> PassReport:
        """
        Run one import pass over all sources concurrently.

        A failing source is recorded in the report and logged; it never
        cancels or fails its siblings.
        """
        report = PassReport(
            pass_id=uuid.uuid4().hex[:12],
            started_at=datetime.now(timezone.utc),
        )
        bind_context(pass_id=report.pass_id)

        logger.info("import_pass_started", total_sources=len(sources))

        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def import_with_semaphore(source: Source) -> ImportResult:
            async with semaphore:
                return await self.import_source(source)

        try:
            outcomes = await asyncio.gather(
                *(import_with_semaphore(s) for s in sources),
                return_exceptions=True,
            )

            for source, outcome in zip(sources, outcomes):
                if isinstance(outcome, ImportResult):
                    report.results.append(outcome)
                    continue

                if not isinstance(outcome, Exception):
                    # CancelledError and friends are not ours to absorb
                    raise outcome

                report.failures[source.url] = str(outcome)
                if isinstance(outcome, RustNewsError):
                    logger.error(
                        "source_import_failed",
                        source=source.url,
                        error_type=type(outcome).__name__,
                        error=str(outcome),
                    )
                else:
                    logger.exception(
                        "source_import_crashed",
                        source=source.url,
                        error_type=type(outcome).__name__,
                        error=str(outcome),
                        exc_info=outcome,
                    )

            report.finished_at = datetime.now(timezone.utc)
            logger.info(
                "import_pass_complete",
                inserted=report.inserted,
                sources_succeeded=report.succeeded,
                sources_failed=report.failed,
            )
        finally:
            unbind_context("pass_id")

        return report
