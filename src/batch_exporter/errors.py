"""
Custom exceptions for the batch exporter.

Sink adapters translate their client library errors into ``SinkError`` so the
engine only ever inspects one thing: the numeric ``code``. A 409 during
provisioning means another instance won the creation race.
"""

from __future__ import annotations

from http import HTTPStatus
from typing import Any, Optional

CONFLICT = int(HTTPStatus.CONFLICT)


class ExporterError(Exception):
    """Base error for the batch exporter."""

    pass


class SinkError(ExporterError):
    """Opaque failure reported by the remote sink."""

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.code = code

    def __str__(self) -> str:
        if self.code is None:
            return self.message
        return f"[{self.code}] {self.message}"


class SinkInsertError(SinkError):
    """The sink accepted the request but rejected some of the rows."""

    def __init__(self, message: str, errors: Optional[list[Any]] = None, code: Optional[int] = None):
        super().__init__(message, code=code)
        self.errors = list(errors or [])


class ProvisioningError(ExporterError):
    """Destination namespace/table could not be confirmed or created."""

    pass


class BatchDispatchError(ExporterError):
    """A batch failed to reach the sink and was put back in the buffer."""

    def __init__(self, batch_size: int, cause: BaseException):
        super().__init__(f"Failed to dispatch {batch_size} rows: {cause}")
        self.batch_size = batch_size
        self.cause = cause

    @property
    def code(self) -> Optional[int]:
        return getattr(self.cause, "code", None)


def is_conflict(exc: BaseException) -> bool:
    """True when the sink reported an already-exists conflict."""
    return isinstance(exc, SinkError) and exc.code == CONFLICT


def map_bigquery_error(e: Exception) -> SinkError:
    from google.api_core import exceptions as gexc

    if isinstance(e, gexc.GoogleAPICallError):
        code = int(e.code) if e.code is not None else None
        return SinkError(e.message or str(e), code=code)
    return SinkError(str(e))


def map_db_error(e: Exception) -> SinkError:
    import psycopg.errors as E

    # concurrent CREATEs can surface as a catalog unique violation
    if isinstance(e, (E.DuplicateSchema, E.DuplicateTable, E.DuplicateObject, E.UniqueViolation)):
        return SinkError(f"Already Exists: {e}", code=CONFLICT)
    if isinstance(e, E.InsufficientPrivilege):
        return SinkError(str(e), code=int(HTTPStatus.FORBIDDEN))
    if isinstance(e, E.QueryCanceled):
        return SinkError(str(e), code=int(HTTPStatus.GATEWAY_TIMEOUT))
    return SinkError(str(e))
