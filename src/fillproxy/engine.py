"""Query engine: range aggregates over cached hourly fills.

A query selects the fills with start_time < timestamp <= end_time. Since a
range spans at most one hour it touches one hour bucket, or two adjacent
ones when it straddles an hour boundary. Both buckets go through the
cache independently.

Trade counts (C, B, S) count distinct sequence numbers, because several
fills can make up one taker trade. Volume (V) sums every fill in range.
A trade with only some of its fills in range still counts once.
"""

import logging
from bisect import bisect_right
from collections.abc import Iterable, Iterator, Sequence
from decimal import Decimal

from fillproxy.cache import HourCache
from fillproxy.errors import FillProxyError, InvalidRange, MalformedQuery
from fillproxy.ingestion.models import HOUR_SECONDS, Fill, Side, hour_key
from fillproxy.queries import Query, QueryType

logger = logging.getLogger(__name__)

MAX_SPAN = HOUR_SECONDS


def _timestamp(fill: Fill) -> int:
    return fill.timestamp


def validate_range(start_time: int, end_time: int) -> None:
    """Reject reversed ranges and ranges wider than one hour.

    Raises:
        InvalidRange: If end_time < start_time or the span exceeds MAX_SPAN.
    """
    if end_time < start_time:
        raise InvalidRange(f"End time {end_time} is before start time {start_time}")
    if end_time - start_time > MAX_SPAN:
        raise InvalidRange(
            f"Range spans {end_time - start_time}s; at most {MAX_SPAN}s is supported"
        )


def hours_for_range(start_time: int, end_time: int) -> list[int]:
    """Minimal hour keys whose buckets cover (start_time, end_time].

    Timestamps are whole seconds, so the first second that can match is
    start_time + 1. An empty range needs no bucket at all.

    Examples:
        (100, 300)    -> [0]
        (3599, 3600)  -> [3600]
        (3000, 4000)  -> [0, 3600]
        (500, 500)    -> []
    """
    if end_time <= start_time:
        return []
    first = hour_key(start_time + 1)
    last = hour_key(end_time)
    return list(range(first, last + HOUR_SECONDS, HOUR_SECONDS))


def select_range(fills: Sequence[Fill], start_time: int, end_time: int) -> Sequence[Fill]:
    """Slice of timestamp-sorted fills with start_time < timestamp <= end_time."""
    lo = bisect_right(fills, start_time, key=_timestamp)
    hi = bisect_right(fills, end_time, key=_timestamp)
    return fills[lo:hi]


def aggregate(query_type: QueryType, fills: Iterable[Fill]) -> int | Decimal:
    """Compute a query's aggregate over already-filtered fills."""
    if query_type is QueryType.VOLUME:
        return sum((f.usd_volume for f in fills), Decimal("0"))

    if query_type is QueryType.COUNT:
        return len({f.sequence_number for f in fills})

    side = Side.BUY if query_type is QueryType.BUY else Side.SELL
    return len({f.sequence_number for f in fills if f.side is side})


class QueryEngine:
    """Evaluates range-aggregate queries against an HourCache.

    The engine holds no state of its own beyond the cache it was given;
    the same query always yields the same answer for a static dataset.
    """

    def __init__(self, cache: HourCache) -> None:
        self._cache = cache

    @property
    def cache(self) -> HourCache:
        return self._cache

    def _fills_in_range(self, start_time: int, end_time: int) -> Iterator[Fill]:
        for key in hours_for_range(start_time, end_time):
            bucket = self._cache.get_or_fetch(key)
            yield from select_range(bucket, start_time, end_time)

    def evaluate(
        self, query_type: QueryType | str, start_time: int, end_time: int
    ) -> int | Decimal:
        """Compute one aggregate over (start_time, end_time].

        Args:
            query_type: C (trades), B (buy trades), S (sell trades) or V
                (USD volume).
            start_time: Exclusive range start, UNIX seconds.
            end_time: Inclusive range end, UNIX seconds.

        Returns:
            An int for C/B/S, an exact Decimal for V.

        Raises:
            InvalidRange: If the range is reversed or wider than one hour.
                The cache is not touched.
            SourceUnavailable: If a needed hour couldn't be fetched.
            MalformedQuery: If query_type isn't one of C/B/S/V.
        """
        try:
            query_type = QueryType(query_type)
        except ValueError:
            raise MalformedQuery(f"Invalid query type: {query_type!r}") from None

        try:
            validate_range(start_time, end_time)
            # Every bucket is fetched before anything is aggregated.
            fills = list(self._fills_in_range(start_time, end_time))
        except FillProxyError as exc:
            exc.attach_query(query_type, start_time, end_time)
            raise

        result = aggregate(query_type, fills)
        logger.debug(
            "%s (%d, %d] over %d fills -> %s",
            query_type,
            start_time,
            end_time,
            len(fills),
            result,
        )
        return result

    def run(self, query: Query) -> int | Decimal:
        """Evaluate a parsed Query."""
        return self.evaluate(query.query_type, query.start_time, query.end_time)
