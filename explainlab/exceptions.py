"""Exception hierarchy for the explainlab service."""

from __future__ import annotations


class ExplainLabError(Exception):
    """Base class for errors raised by explainlab."""

    status_code = 500

    def __init__(self, message: str, *, endpoint: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.endpoint = endpoint


class DatabaseUnavailableError(ExplainLabError):
    """A connection to Postgres could not be established."""

    status_code = 503


class QueryExecutionError(ExplainLabError):
    """A statement reached the database and failed there."""

    def __init__(
        self,
        message: str,
        *,
        endpoint: str | None = None,
        sqlstate: str | None = None,
    ) -> None:
        super().__init__(message, endpoint=endpoint)
        self.sqlstate = sqlstate


class UnknownQueryError(ExplainLabError):
    """No template with the requested name exists in the query pool."""

    status_code = 404


class NotFoundError(ExplainLabError):
    """The requested row does not exist."""

    status_code = 404


class QueryPoolError(ExplainLabError):
    """The configured query pool could not be loaded."""
