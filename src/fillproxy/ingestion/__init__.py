"""Fill sources and the fill data model."""

from fillproxy.ingestion.base import FillSource
from fillproxy.ingestion.file import FileFillSource
from fillproxy.ingestion.http import HttpFillSource
from fillproxy.ingestion.models import HOUR_SECONDS, Fill, Side, hour_key
from fillproxy.ingestion.parsing import parse_fill

__all__ = [
    "HOUR_SECONDS",
    "FileFillSource",
    "Fill",
    "FillSource",
    "HttpFillSource",
    "Side",
    "hour_key",
    "parse_fill",
]
