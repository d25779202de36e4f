"""Interface that fill sources satisfy."""

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from fillproxy.ingestion.models import Fill


@runtime_checkable
class FillSource(Protocol):
    """Anything that can produce the fills for one hour.

    Sources are matched structurally: a class only needs a fetch_hour
    method, it does not have to inherit from this protocol.
    """

    def fetch_hour(self, hour_key: int) -> Sequence[Fill]:
        """Fetch every fill with hour_key <= timestamp < hour_key + 3600.

        Args:
            hour_key: Start of the hour, a multiple of 3600.

        Returns:
            Fills for the hour, ordered by timestamp ascending.

        Raises:
            SourceUnavailable: If the upstream data can't be retrieved.
            MalformedRecord: If a record in the hour violates the data model.
        """
        ...
