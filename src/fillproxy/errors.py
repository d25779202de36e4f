"""Error taxonomy for fillproxy.

Every failure the core can surface is one of a small, closed set of
exception classes. Each carries structured context (failing hour, query
type and range) so a caller can diagnose it without parsing the message.
"""

from __future__ import annotations


class FillProxyError(Exception):
    """Base class for all fillproxy errors."""

    def __init__(self, message: str, *, hour_key: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.hour_key = hour_key
        self.query_type: str | None = None
        self.start_time: int | None = None
        self.end_time: int | None = None

    def attach_query(self, query_type: str, start_time: int, end_time: int) -> None:
        """Record the query that was being evaluated when this error occurred."""
        self.query_type = str(query_type)
        self.start_time = start_time
        self.end_time = end_time

    def __str__(self) -> str:
        parts = [self.message]
        if self.query_type is not None:
            parts.append(f"query={self.query_type} ({self.start_time}, {self.end_time}]")
        if self.hour_key is not None:
            parts.append(f"hour={self.hour_key}")
        return " | ".join(parts)


class InvalidRange(FillProxyError):
    """Query range is reversed or wider than one hour."""


class SourceUnavailable(FillProxyError):
    """The fill source could not produce the fills for an hour."""


class MalformedRecord(SourceUnavailable):
    """A fetched record violates the fill data model.

    Subclasses SourceUnavailable: a bad record fails the whole fetch, so
    the hour is never cached with some fills silently missing.
    """

    def __init__(
        self,
        message: str,
        *,
        hour_key: int | None = None,
        field: str | None = None,
    ) -> None:
        super().__init__(message, hour_key=hour_key)
        self.field = field


class MalformedQuery(FillProxyError):
    """An input line is not a valid `TYPE START END` query."""

    def __init__(self, message: str, *, line: str = "") -> None:
        super().__init__(message)
        self.line = line
