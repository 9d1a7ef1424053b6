"""
Error taxonomy for the import pipeline.

Entry-level errors (TimestampError, duplicate-link StorageError) are absorbed
close to where they are raised. Source-level errors (FetchError, ParseError,
other StorageErrors) abort one source for one pass.
"""

from enum import Enum
from typing import Optional


class RustNewsError(Exception):
    """Base exception for rustnews."""

    pass


class FetchError(RustNewsError):
    """Raised when a feed cannot be retrieved (transport, timeout, non-2xx)."""

    def __init__(
        self,
        url: str,
        message: str,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.url = url
        self.message = message
        self.status_code = status_code

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"{self.url}: HTTP {self.status_code}: {self.message}"
        return f"{self.url}: {self.message}"


class ParseError(RustNewsError):
    """Raised when a document is not recognizable feed XML."""

    pass


class TimestampError(RustNewsError):
    """Raised when an entry timestamp cannot be parsed."""

    def __init__(self, value: Optional[str], reason: str = "unparseable timestamp"):
        super().__init__(f"{reason}: {value!r}")
        self.value = value


class StorageErrorKind(str, Enum):
    """Flat classification of backing-store failures."""
    CONSTRAINT_VIOLATION = "constraint_violation"
    CONNECTION = "connection"
    OPERATIONAL = "operational"
    OTHER = "other"


class StorageError(RustNewsError):
    """
    Raised for persistence failures.

    `kind` is decided once at the store boundary; `field` names the column
    involved in a constraint violation when it can be determined.
    """

    def __init__(
        self,
        kind: StorageErrorKind,
        message: str,
        field: Optional[str] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.field = field

    @property
    def is_duplicate_link(self) -> bool:
        return self.kind == StorageErrorKind.CONSTRAINT_VIOLATION and self.field == "link"

    def __str__(self) -> str:
        if self.field:
            return f"{self.kind.value} on {self.field}: {self.message}"
        return f"{self.kind.value}: {self.message}"
