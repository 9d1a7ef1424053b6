"""
FastAPI server for the aggregated feed.

Provides:
- Health check endpoint
- Recent posts endpoint (the read path)
- Database stats endpoint
- Scheduler status and manual import trigger

The store and the scheduler are built in the lifespan handler and kept on
`app.state`; the server only reads, the scheduler is the only writer.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Query, Request
from pydantic import BaseModel

from . import __version__
from .config import Settings, get_settings
from .db import Database
from .errors import StorageError
from .importer import FeedImporter
from .logging_conf import get_logger, setup_logging
from .reader import Reader
from .scheduler import ImportScheduler
from .sources.fetcher import Fetcher

logger = get_logger(__name__)


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    version: str = __version__


class PostResponse(BaseModel):
    title: str
    link: str
    source_name: str
    source_link: str
    age: str
    created_at: int


class PostsResponse(BaseModel):
    posts: list[PostResponse]
    count: int
    window_hours: int


class StatsResponse(BaseModel):
    total_posts: int
    by_source: dict[str, int]
    newest_created_at: int


class SchedulerResponse(BaseModel):
    enabled: bool
    running: bool = False
    next_run: Optional[str] = None


class RunResponse(BaseModel):
    status: str
    message: str


def create_app(
    settings: Optional[Settings] = None,
    db: Optional[Database] = None,
    scheduler: Optional[ImportScheduler] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Settings to use (defaults to environment)
        db: Pre-built store; one is created from settings otherwise
        scheduler: Pre-built scheduler; one is created when enabled otherwise
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(
            level=settings.log_level,
            json_output=settings.log_json,
        )

        logger.info("server_starting")

        store = db or Database(settings.effective_database_url)
        store.create_tables()
        app.state.db = store
        app.state.reader = Reader(store)

        app.state.scheduler = scheduler
        if app.state.scheduler is None and settings.enable_scheduler:
            importer = FeedImporter(
                store,
                Fetcher(timeout=settings.fetch_timeout, user_agent=settings.user_agent),
                max_concurrent=settings.max_concurrent_fetches,
            )
            app.state.scheduler = ImportScheduler(
                importer,
                interval_minutes=settings.import_interval_minutes,
            )

        if app.state.scheduler is not None:
            app.state.scheduler.start()
            logger.info("scheduler_enabled")

        yield

        if app.state.scheduler is not None:
            app.state.scheduler.stop()
        if db is None:
            store.dispose()

        logger.info("server_stopped")

    app = FastAPI(
        title="rustnews",
        description="Aggregated, de-duplicated Rust community feed",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings

    @app.get("/health", response_model=HealthResponse)
    async def health_check():
        """Health check endpoint."""
        return HealthResponse(
            status="ok",
            timestamp=datetime.now(timezone.utc).isoformat(),
        )

    @app.get("/posts", response_model=PostsResponse)
    def get_posts(
        request: Request,
        hours: Optional[int] = Query(None, ge=1, description="Recency window in hours"),
        limit: Optional[int] = Query(None, ge=1, le=1000),
    ):
        """Recent posts, newest first."""
        window_hours = hours or settings.recency_hours
        reader: Reader = request.app.state.reader

        try:
            rows = reader.recent(window=timedelta(hours=window_hours), limit=limit)
        except StorageError as e:
            logger.error("posts_query_failed", error=str(e))
            raise HTTPException(status_code=503, detail="feed temporarily unavailable")

        return PostsResponse(
            posts=[PostResponse(**row.to_dict()) for row in rows],
            count=len(rows),
            window_hours=window_hours,
        )

    @app.get("/stats", response_model=StatsResponse)
    def get_stats(request: Request):
        """Get database statistics."""
        try:
            return StatsResponse(**request.app.state.db.get_stats())
        except StorageError as e:
            logger.error("stats_query_failed", error=str(e))
            raise HTTPException(status_code=503, detail=str(e))

    @app.get("/scheduler", response_model=SchedulerResponse)
    async def scheduler_status(request: Request):
        """Get scheduler status."""
        sched: Optional[ImportScheduler] = request.app.state.scheduler
        if sched is None:
            return SchedulerResponse(enabled=False)

        next_run = sched.get_next_run()
        return SchedulerResponse(
            enabled=True,
            running=sched.pass_in_progress,
            next_run=next_run.isoformat() if next_run else None,
        )

    @app.post("/import", response_model=RunResponse)
    async def trigger_import(request: Request):
        """Trigger an import pass now."""
        sched: Optional[ImportScheduler] = request.app.state.scheduler
        if sched is None:
            raise HTTPException(status_code=409, detail="Scheduler is disabled")

        if sched.pass_in_progress:
            return RunResponse(status="skipped", message="An import pass is already running")

        sched.run_now()
        return RunResponse(status="started", message="Import pass started in background")

    return app


def run_server(
    host: Optional[str] = None,
    port: Optional[int] = None,
    with_scheduler: Optional[bool] = None,
):
    """
    Run the FastAPI server.

    Args:
        host: Host to bind to (defaults to settings.host)
        port: Port to bind to (defaults to settings.port)
        with_scheduler: Override settings.enable_scheduler
    """
    import uvicorn

    settings = get_settings()
    if with_scheduler is not None:
        settings = settings.model_copy(update={"enable_scheduler": with_scheduler})

    host = host or settings.host
    port = port or settings.port

    logger.info("starting_server", host=host, port=port, scheduler=settings.enable_scheduler)

    uvicorn.run(
        create_app(settings),
        host=host,
        port=port,
        log_level="info",
    )
