"""Query model and line parser.

Input lines look like `C 1700000000 1700003600`: a query type followed by
a start and end time in UNIX seconds.
"""

from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel, Field

from fillproxy.errors import MalformedQuery


class QueryType(StrEnum):
    """Aggregate requested by a query."""

    COUNT = "C"
    BUY = "B"
    SELL = "S"
    VOLUME = "V"


class Query(BaseModel):
    """A parsed range-aggregate query over (start_time, end_time]."""

    query_type: QueryType
    start_time: int = Field(ge=0, description="Exclusive range start, UNIX seconds")
    end_time: int = Field(ge=0, description="Inclusive range end, UNIX seconds")

    model_config = {"frozen": True}


def _parse_time(token: str, name: str, line: str) -> int:
    if not (token.isascii() and token.isdigit()):
        raise MalformedQuery(
            f"{name} must be a non-negative integer, got {token!r}", line=line
        )
    return int(token)


def parse_query(line: str) -> Query:
    """Parse a `TYPE START END` line into a Query.

    Raises:
        MalformedQuery: If the line doesn't have exactly three fields, the
            type isn't one of C/B/S/V, or a time isn't a non-negative integer.
    """
    parts = line.split()
    if len(parts) != 3:
        raise MalformedQuery(f"Invalid query format: {line.strip()!r}", line=line)

    type_token, start_token, end_token = parts
    try:
        query_type = QueryType(type_token)
    except ValueError:
        raise MalformedQuery(f"Invalid query type: {type_token!r}", line=line) from None

    return Query(
        query_type=query_type,
        start_time=_parse_time(start_token, "START_TIME", line),
        end_time=_parse_time(end_token, "END_TIME", line),
    )


def format_result(value: int | Decimal) -> str:
    """Render a query result for output: integers as-is, volume in plain notation."""
    if isinstance(value, Decimal):
        return format(value, "f")
    return str(int(value))
