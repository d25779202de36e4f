"""Query stream processing: read query lines, answer them, log stats.

Queries are answered strictly one at a time in input order, one output
line per query.
"""

import logging
import time as time_mod
from collections.abc import Iterable
from typing import TextIO

from fillproxy.cache import HourCache
from fillproxy.engine import QueryEngine
from fillproxy.errors import FillProxyError
from fillproxy.queries import format_result, parse_query

logger = logging.getLogger(__name__)


def process_queries(engine: QueryEngine, lines: Iterable[str], out: TextIO) -> int:
    """Answer every query in `lines`, writing one result line per query.

    Blank lines are skipped. The first failing query stops processing;
    results already written stay written.

    Args:
        engine: Engine to evaluate queries with.
        lines: Query lines, e.g. an open file or sys.stdin.
        out: Stream to write results to.

    Returns:
        Number of queries answered.

    Raises:
        FillProxyError: For a malformed line, an invalid range, or a
            fill source failure.
    """
    answered = 0
    start = time_mod.monotonic()
    logger.info("Starting query processing...")

    for line_number, line in enumerate(lines, start=1):
        if not line.strip():
            continue
        try:
            query = parse_query(line)
            result = engine.run(query)
        except FillProxyError as exc:
            logger.error("Query on line %d failed: %s", line_number, exc)
            raise

        out.write(format_result(result) + "\n")
        answered += 1

    elapsed = time_mod.monotonic() - start
    logger.info("Answered %d queries in %.2fs", answered, elapsed)
    return answered


def log_cache_summary(cache: HourCache) -> None:
    """Log the cache statistics at the end of a run."""
    logger.info("%s", cache.stats().summary())
