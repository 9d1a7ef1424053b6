"""
Scheduler module for periodic import passes.

Uses APScheduler to run one pass immediately on start, then one pass every
`import_interval_minutes`. A tick that fires while a pass is still running is
dropped, so two passes never touch the same source at once.
"""

import asyncio
from datetime import datetime, timezone
from typing import Optional, Sequence

from apscheduler.events import (
    EVENT_JOB_ERROR,
    EVENT_JOB_MAX_INSTANCES,
    EVENT_JOB_MISSED,
)
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .config import get_settings
from .db import Database
from .importer import FeedImporter, PassReport
from .logging_conf import get_logger, setup_logging
from .sources.base import Source
from .sources.fetcher import Fetcher
from .sources.registry import SOURCES

logger = get_logger(__name__)

IMPORT_JOB_ID = "import_pass"
MANUAL_JOB_ID = "import_pass_manual"


class ImportScheduler:
    """
    Scheduler for periodic import passes.
    """

    def __init__(
        self,
        importer: FeedImporter,
        sources: Sequence[Source] = SOURCES,
        interval_minutes: int = 60,
    ):
        """
        Initialize scheduler.

        Args:
            importer: Importer that performs each pass
            sources: Registry to sweep on every pass
            interval_minutes: Minutes between passes
        """
        self.importer = importer
        self.sources = list(sources)
        self.interval_minutes = interval_minutes
        self.scheduler = AsyncIOScheduler(timezone=timezone.utc)
        self._lock = asyncio.Lock()
        self._running = False

        self.scheduler.add_listener(
            self._on_job_event,
            EVENT_JOB_ERROR | EVENT_JOB_MAX_INSTANCES | EVENT_JOB_MISSED,
        )

        logger.info("scheduler_initialized", interval_minutes=interval_minutes)

    @property
    def is_running(self) -> bool:
        """True while the scheduler is started."""
        return self._running

    @property
    def pass_in_progress(self) -> bool:
        return self._lock.locked()

    def _create_job(self) -> None:
        """Create the periodic job, first firing right away."""
        self.scheduler.add_job(
            self.run_pass,
            IntervalTrigger(minutes=self.interval_minutes, timezone=timezone.utc),
            id=IMPORT_JOB_ID,
            name="Import Pass",
            next_run_time=datetime.now(timezone.utc),
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )

        logger.info("job_scheduled", interval_minutes=self.interval_minutes)

    async def run_pass(self) -> Optional[PassReport]:
        """
        Execute one import pass over all sources.

        Returns None when another pass is already running.
        """
        if self._lock.locked():
            logger.warning("import_pass_skipped", reason="pass_in_progress")
            return None

        async with self._lock:
            try:
                return await self.importer.import_all(self.sources)
            except Exception as e:
                logger.exception("import_pass_failed", error=str(e))
                return None

    def _on_job_event(self, event) -> None:
        """Observe job crashes and dropped ticks."""
        if event.code == EVENT_JOB_ERROR:
            logger.error(
                "scheduled_job_crashed",
                job_id=event.job_id,
                error=str(event.exception),
                traceback=event.traceback,
            )
        elif event.code == EVENT_JOB_MAX_INSTANCES:
            logger.warning("scheduled_tick_dropped", job_id=event.job_id, reason="pass_in_progress")
        elif event.code == EVENT_JOB_MISSED:
            logger.warning("scheduled_tick_missed", job_id=event.job_id)

    def start(self) -> None:
        """Start the scheduler (requires a running event loop)."""
        if self._running:
            logger.warning("scheduler_already_running")
            return

        self._create_job()
        self.scheduler.start()
        self._running = True

        logger.info("scheduler_started")

    def stop(self) -> None:
        """Stop the scheduler; an in-flight pass is abandoned."""
        if not self._running:
            return

        self.scheduler.shutdown(wait=False)
        self._running = False

        logger.info("scheduler_stopped")

    def get_next_run(self) -> Optional[datetime]:
        """Get the next scheduled run time."""
        job = self.scheduler.get_job(IMPORT_JOB_ID)
        if job:
            return job.next_run_time
        return None

    def run_now(self) -> None:
        """Trigger an immediate pass (non-blocking)."""
        self.scheduler.add_job(
            self.run_pass,
            id=MANUAL_JOB_ID,
            name="Manual Import Pass",
            max_instances=1,
            replace_existing=True,
        )
        logger.info("manual_run_triggered")


async def run_scheduler():
    """
    Run the scheduler indefinitely without the HTTP server.

    This is called from the CLI when running as a standalone worker.
    """
    settings = get_settings()

    setup_logging(
        level=settings.log_level,
        json_output=settings.log_json,
    )

    db = Database(settings.effective_database_url)
    db.create_tables()

    importer = FeedImporter(
        db,
        Fetcher(timeout=settings.fetch_timeout, user_agent=settings.user_agent),
        max_concurrent=settings.max_concurrent_fetches,
    )
    scheduler = ImportScheduler(
        importer,
        interval_minutes=settings.import_interval_minutes,
    )
    scheduler.start()

    try:
        while True:
            next_run = scheduler.get_next_run()
            if next_run:
                logger.info(
                    "scheduler_waiting",
                    next_run=next_run.isoformat(),
                )
            await asyncio.sleep(settings.import_interval_minutes * 60)
    finally:
        logger.info("scheduler_shutting_down")
        scheduler.stop()
        db.dispose()


def run_scheduler_sync():
    """Synchronous wrapper for run_scheduler."""
    try:
        asyncio.run(run_scheduler())
    except KeyboardInterrupt:
        pass
