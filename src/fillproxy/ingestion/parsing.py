"""Parsing of raw upstream fill records into Fill models.

The upstream feed reports each execution as a flat record:

    {"sequence_number": 42, "time": "2024-03-01T12:00:05Z",
     "direction": 1, "price": "3412.50", "quantity": "0.25"}

`direction` is 1 for a buy and -1 for a sell; a `side` string ("buy" or
"sell") is accepted instead. A record may carry `usd_volume` directly in
place of price and quantity. Any deviation raises MalformedRecord rather
than dropping the record, since a silently skipped fill would corrupt
every count that touches its hour.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from decimal import Decimal, DecimalException, InvalidOperation
from typing import Any

from fillproxy.errors import MalformedRecord
from fillproxy.ingestion.models import Fill, Side

_DIRECTIONS = {1: Side.BUY, -1: Side.SELL}


def _require(raw: Mapping[str, Any], field: str) -> Any:
    value = raw.get(field)
    if value is None or value == "":
        raise MalformedRecord(f"Missing field {field!r}", field=field)
    return value


def _parse_int(raw: Mapping[str, Any], field: str) -> int:
    value = _require(raw, field)
    if isinstance(value, bool):
        raise MalformedRecord(f"Field {field!r} is not an integer: {value!r}", field=field)
    try:
        return int(str(value).strip())
    except ValueError:
        raise MalformedRecord(
            f"Field {field!r} is not an integer: {value!r}", field=field
        ) from None


def _parse_decimal(raw: Mapping[str, Any], field: str) -> Decimal:
    value = _require(raw, field)
    try:
        # str() first so float inputs don't carry binary noise into Decimal
        result = Decimal(str(value).strip())
    except InvalidOperation:
        raise MalformedRecord(
            f"Field {field!r} is not a decimal: {value!r}", field=field
        ) from None
    if not result.is_finite():
        raise MalformedRecord(f"Field {field!r} is not finite: {value!r}", field=field)
    return result


def _parse_time(raw: Mapping[str, Any]) -> int:
    """Accept integer epoch seconds or an ISO-8601 timestamp."""
    value = _require(raw, "time")
    text = str(value).strip()
    if text.isascii() and text.lstrip("-").isdigit():
        ts = int(text)
    else:
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            raise MalformedRecord(f"Unparseable time: {value!r}", field="time") from None
        if parsed.tzinfo is None:
            raise MalformedRecord(f"Time has no timezone: {value!r}", field="time")
        ts = int(parsed.timestamp())
    if ts < 0:
        raise MalformedRecord(f"Negative time: {value!r}", field="time")
    return ts


def _parse_side(raw: Mapping[str, Any]) -> Side:
    if raw.get("direction") not in (None, ""):
        direction = _parse_int(raw, "direction")
        side = _DIRECTIONS.get(direction)
        if side is None:
            raise MalformedRecord(f"Unknown direction: {direction!r}", field="direction")
        return side
    value = str(_require(raw, "side")).strip().lower()
    try:
        return Side(value)
    except ValueError:
        raise MalformedRecord(f"Unknown side: {value!r}", field="side") from None


def parse_fill(raw: Mapping[str, Any]) -> Fill:
    """Parse one raw upstream record into a Fill.

    Raises:
        MalformedRecord: If any field is missing or invalid. The `field`
            attribute names the offending field.
    """
    sequence_number = _parse_int(raw, "sequence_number")
    timestamp = _parse_time(raw)
    side = _parse_side(raw)

    if raw.get("usd_volume") not in (None, ""):
        usd_volume = _parse_decimal(raw, "usd_volume")
        return Fill(
            sequence_number=sequence_number,
            timestamp=timestamp,
            side=side,
            usd_volume=usd_volume,
        )

    price = _parse_decimal(raw, "price")
    quantity = _parse_decimal(raw, "quantity")
    try:
        return Fill.from_execution(
            sequence_number=sequence_number,
            timestamp=timestamp,
            side=side,
            price=price,
            quantity=quantity,
        )
    except DecimalException:
        raise MalformedRecord(
            f"Volume out of range: price {price} x quantity {quantity}", field="price"
        ) from None
