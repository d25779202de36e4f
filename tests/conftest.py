"""Shared test fixtures."""

import pytest

from fillproxy.errors import SourceUnavailable
from fillproxy.ingestion.models import HOUR_SECONDS


class RecordingSource:
    """In-memory fill source that records every fetch_hour call."""

    def __init__(self, fills=(), fail_hours=()):
        self.fills = sorted(fills, key=lambda f: f.timestamp)
        self.fail_hours = set(fail_hours)
        self.calls: list[int] = []

    def fetch_hour(self, hour_key: int):
        self.calls.append(hour_key)
        if hour_key in self.fail_hours:
            raise SourceUnavailable("upstream down", hour_key=hour_key)
        return [f for f in self.fills if hour_key <= f.timestamp < hour_key + HOUR_SECONDS]


@pytest.fixture
def recording_source():
    """Factory for RecordingSource instances."""
    return RecordingSource
