"""
Database models and operations using SQLAlchemy.

Supports SQLite (default) and PostgreSQL backends. The posts table carries a
unique index on `link`; inserting a post whose link already exists is a no-op.
"""

from contextlib import contextmanager
from typing import Optional, Generator
import re

from sqlalchemy import (
    create_engine,
    event,
    Column,
    Integer,
    String,
    Text,
    Index,
    func,
)
from sqlalchemy.exc import (
    DBAPIError,
    IntegrityError,
    OperationalError,
    SQLAlchemyError,
)
from sqlalchemy.orm import (
    declarative_base,
    sessionmaker,
    Session,
)

from .errors import StorageError, StorageErrorKind
from .logging_conf import get_logger
from .normalize import Post

logger = get_logger(__name__)
Base = declarative_base()


class PostRecord(Base):
    """
    Aggregated feed posts.
    """
    __tablename__ = "posts"

    id = Column(String(26), primary_key=True)
    source = Column(String(2048), nullable=False, index=True)
    title = Column(Text, nullable=False)
    link = Column(String(2048), nullable=False)
    source_link = Column(String(2048), nullable=False, default="")
    created_at = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        Index("uq_posts_link", "link", unique=True),
        Index("ix_posts_created_at", "created_at"),
    )

    @classmethod
    def from_post(cls, post: Post) -> "PostRecord":
        return cls(
            id=post.id,
            source=post.source,
            title=post.title,
            link=post.link,
            source_link=post.source_link,
            created_at=post.created_at,
        )

    def to_post(self) -> Post:
        return Post(
            id=self.id,
            source=self.source,
            title=self.title,
            link=self.link,
            source_link=self.source_link or "",
            created_at=self.created_at or 0,
        )


# SQLite: "UNIQUE constraint failed: posts.link"
_SQLITE_CONSTRAINT = re.compile(r"constraint failed: \w+\.(\w+)", re.IGNORECASE)
# PostgreSQL: 'duplicate key value violates unique constraint "uq_posts_link"'
_PG_CONSTRAINT = re.compile(r'unique constraint "(\w+)"', re.IGNORECASE)

_CONSTRAINT_FIELDS = {
    "uq_posts_link": "link",
    "posts_pkey": "id",
}


def _constraint_field(message: str) -> Optional[str]:
    """Extract the offending column from a driver's constraint message."""
    match = _SQLITE_CONSTRAINT.search(message)
    if match:
        return match.group(1)

    match = _PG_CONSTRAINT.search(message)
    if match:
        return _CONSTRAINT_FIELDS.get(match.group(1), match.group(1))

    return None


def classify_error(exc: SQLAlchemyError) -> StorageError:
    """
    Turn a SQLAlchemy exception into a flat StorageError.

    This is the only place that inspects driver error messages; callers
    switch on `StorageError.kind` and `StorageError.field`.
    """
    message = str(getattr(exc, "orig", None) or exc)

    if isinstance(exc, IntegrityError):
        return StorageError(
            StorageErrorKind.CONSTRAINT_VIOLATION,
            message,
            field=_constraint_field(message),
        )

    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return StorageError(StorageErrorKind.CONNECTION, message)

    if isinstance(exc, OperationalError):
        return StorageError(StorageErrorKind.OPERATIONAL, message)

    return StorageError(StorageErrorKind.OTHER, message)


def _sqlite_pragmas(dbapi_connection, connection_record) -> None:
    """WAL lets the importer write while the server reads."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.execute("PRAGMA busy_timeout=5000")
    cursor.close()


class Database:
    """Database connection and operation manager."""

    def __init__(self, url: str):
        """
        Initialize database connection.

        Args:
            url: SQLAlchemy database URL
        """
        self.url = url

        connect_args = {}
        if self.url.startswith("sqlite"):
            connect_args["check_same_thread"] = False

        self.engine = create_engine(
            self.url,
            connect_args=connect_args,
            echo=False,
        )

        if self.engine.dialect.name == "sqlite":
            event.listen(self.engine, "connect", _sqlite_pragmas)

        self.SessionLocal = sessionmaker(
            bind=self.engine,
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
        )

        logger.info("database_initialized", url=self.url[:50])

    def create_tables(self) -> None:
        """Create all tables if they don't exist."""
        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            raise classify_error(e) from e
        logger.info("database_tables_created")

    def dispose(self) -> None:
        """Close pooled connections."""
        self.engine.dispose()

    def get_session(self) -> Session:
        """Get a new database session."""
        return self.SessionLocal()

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """Context manager for a session that commits on success."""
        session = self.get_session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # Posts
    def insert_post(self, post: Post) -> int:
        """
        Persist one post in its own transaction.

        Returns:
            Rows affected: 1 when stored, 0 when the link already exists

        Raises:
            StorageError: Any failure other than a duplicate link
        """
        try:
            with self.session() as session:
                session.add(PostRecord.from_post(post))
        except SQLAlchemyError as e:
            error = classify_error(e)
            if error.is_duplicate_link:
                logger.debug("duplicate_link_skipped", link=post.link[:120])
                return 0
            raise error from e

        return 1

    def query_posts(self, since: int = 0, limit: Optional[int] = None) -> list[Post]:
        """
        Get posts with created_at >= since, newest first.

        Equal timestamps are ordered by id, newest first.
        """
        try:
            with self.session() as session:
                query = session.query(PostRecord).filter(
                    PostRecord.created_at >= since
                ).order_by(
                    PostRecord.created_at.desc(),
                    PostRecord.id.desc(),
                )
                if limit is not None:
                    query = query.limit(limit)
                return [record.to_post() for record in query.all()]
        except SQLAlchemyError as e:
            raise classify_error(e) from e

    def count_posts(self, source: Optional[str] = None) -> int:
        """Count stored posts, optionally for one source."""
        try:
            with self.session() as session:
                query = session.query(func.count(PostRecord.id))
                if source:
                    query = query.filter(PostRecord.source == source)
                return query.scalar() or 0
        except SQLAlchemyError as e:
            raise classify_error(e) from e

    def get_stats(self) -> dict:
        """Get database statistics."""
        try:
            with self.session() as session:
                by_source = dict(
                    session.query(PostRecord.source, func.count(PostRecord.id))
                    .group_by(PostRecord.source)
                    .all()
                )
                newest = session.query(func.max(PostRecord.created_at)).scalar()
        except SQLAlchemyError as e:
            raise classify_error(e) from e

        return {
            "total_posts": sum(by_source.values()),
            "by_source": by_source,
            "newest_created_at": newest or 0,
        }
