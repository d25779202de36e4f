"""Fill source backed by an on-disk dataset file.

Supports two layouts:
  - JSON lines (.jsonl / .ndjson): one raw fill record per line
  - CSV (.csv): a header row naming the raw record fields

The dataset is ordered by timestamp, so each fetch streams the file from
the top and stops as soon as it reads past the requested hour. This keeps
memory flat at the cost of a scan per miss, which is exactly the cost the
hour cache exists to avoid.
"""

import csv
import json
import logging
from collections.abc import Iterator, Mapping
from pathlib import Path
from typing import Any

from fillproxy.errors import MalformedRecord, SourceUnavailable
from fillproxy.ingestion.models import HOUR_SECONDS, Fill
from fillproxy.ingestion.parsing import parse_fill

logger = logging.getLogger(__name__)

JSONL_SUFFIXES = (".jsonl", ".ndjson")
CSV_SUFFIXES = (".csv",)


class FileFillSource:
    """Reads the fills for an hour out of a timestamp-ordered dataset file."""

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)
        suffix = self._path.suffix.lower()
        if suffix in JSONL_SUFFIXES:
            self._format = "jsonl"
        elif suffix in CSV_SUFFIXES:
            self._format = "csv"
        else:
            raise ValueError(
                f"Unsupported dataset format {suffix!r} for {self._path}. "
                f"Expected one of: {', '.join(JSONL_SUFFIXES + CSV_SUFFIXES)}"
            )

    @property
    def path(self) -> Path:
        return self._path

    def _iter_records(self, fh) -> Iterator[tuple[int, Mapping[str, Any]]]:
        """Yield (line_number, raw_record) pairs from an open dataset file."""
        if self._format == "csv":
            reader = csv.DictReader(fh)
            for row in reader:
                yield reader.line_num, row
            return

        for line_number, line in enumerate(fh, start=1):
            if not line.strip():
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError as exc:
                raise MalformedRecord(
                    f"{self._path}:{line_number}: invalid JSON ({exc.msg})"
                ) from exc
            if not isinstance(record, dict):
                raise MalformedRecord(
                    f"{self._path}:{line_number}: expected an object, got "
                    f"{type(record).__name__}"
                )
            yield line_number, record

    def fetch_hour(self, hour_key: int) -> list[Fill]:
        """Scan the dataset for every fill in [hour_key, hour_key + 3600).

        Raises:
            SourceUnavailable: If the file can't be opened or read.
            MalformedRecord: If a record up to the end of the hour is invalid.
        """
        hour_end = hour_key + HOUR_SECONDS
        fills: list[Fill] = []

        try:
            with open(self._path, newline="", encoding="utf-8") as fh:
                for line_number, raw in self._iter_records(fh):
                    try:
                        fill = parse_fill(raw)
                    except MalformedRecord as exc:
                        raise MalformedRecord(
                            f"{self._path}:{line_number}: {exc.message}",
                            hour_key=hour_key,
                            field=exc.field,
                        ) from exc
                    if fill.timestamp >= hour_end:
                        break
                    if fill.timestamp >= hour_key:
                        fills.append(fill)
        except MalformedRecord as exc:
            if exc.hour_key is None:
                exc.hour_key = hour_key
            raise
        except (OSError, UnicodeDecodeError, csv.Error) as exc:
            raise SourceUnavailable(
                f"Failed to read dataset {self._path}: {exc}", hour_key=hour_key
            ) from exc

        logger.debug(
            "Read %d fills for hour %d from %s", len(fills), hour_key, self._path.name
        )
        return fills
