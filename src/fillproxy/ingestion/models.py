"""Fill data model."""

from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel, Field

HOUR_SECONDS = 3600


class Side(StrEnum):
    """Taker side of a fill."""

    BUY = "buy"
    SELL = "sell"


def hour_key(timestamp: int) -> int:
    """Floor a UNIX timestamp to the start of its hour."""
    return timestamp - timestamp % HOUR_SECONDS


class Fill(BaseModel):
    """A single execution report.

    Several fills can belong to one taker trade; they share a
    sequence_number and always the same side. Volume is stored as
    Decimal so sums over many fills stay exact.
    """

    sequence_number: int = Field(description="Taker trade this fill belongs to")
    timestamp: int = Field(ge=0, description="Execution time, seconds since epoch")
    side: Side = Field(description="Taker side: 'buy' or 'sell'")
    usd_volume: Decimal = Field(description="USD amount traded by this fill")

    model_config = {"frozen": True}

    @classmethod
    def from_execution(
        cls,
        sequence_number: int,
        timestamp: int,
        side: Side | str,
        price: Decimal,
        quantity: Decimal,
    ) -> "Fill":
        """Build a fill from an execution's price and quantity."""
        return cls(
            sequence_number=sequence_number,
            timestamp=timestamp,
            side=side,
            usd_volume=price * quantity,
        )

    @property
    def hour(self) -> int:
        """Hour bucket this fill belongs to."""
        return hour_key(self.timestamp)
