"""HTTP client for a fills API.

Expects an endpoint of the form:
  GET {base_url}/fills?start={hour_key}&end={hour_key + 3600}

returning {"fills": [<raw fill record>, ...]}. Records use the raw shape
documented in fillproxy.ingestion.parsing. The window is half-open:
start inclusive, end exclusive.

This is the expensive upstream the hour cache shields. Retries live here,
never in the cache or engine.
"""

import logging
import time as time_mod

import httpx

from fillproxy.errors import MalformedRecord, SourceUnavailable
from fillproxy.ingestion.models import HOUR_SECONDS, Fill
from fillproxy.ingestion.parsing import parse_fill

logger = logging.getLogger(__name__)

FILLS_ENDPOINT = "/fills"
DEFAULT_TIMEOUT = 30.0
MAX_RETRIES = 4
RETRY_BACKOFF = [1, 2, 4, 8]


class HttpFillSource:
    """Fetches hourly fills from a remote fills API."""

    def __init__(self, base_url: str, timeout: float = DEFAULT_TIMEOUT) -> None:
        self._base_url = base_url
        self._client = httpx.Client(
            base_url=base_url,
            headers={"Accept": "application/json"},
            timeout=timeout,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    def _request_with_retry(self, endpoint: str, params: dict) -> httpx.Response:
        """Make an HTTP GET request with exponential backoff on failure."""
        for attempt in range(MAX_RETRIES + 1):
            try:
                response = self._client.get(endpoint, params=params)
                response.raise_for_status()
                return response
            except (httpx.HTTPStatusError, httpx.TransportError) as exc:
                if attempt == MAX_RETRIES:
                    raise
                wait = RETRY_BACKOFF[attempt]
                logger.warning(
                    "Request failed (attempt %d/%d): %s. Retrying in %ds...",
                    attempt + 1,
                    MAX_RETRIES,
                    exc,
                    wait,
                )
                time_mod.sleep(wait)
        raise RuntimeError("Unreachable")  # pragma: no cover

    def fetch_hour(self, hour_key: int) -> list[Fill]:
        """Fetch all fills in [hour_key, hour_key + 3600) in one API call.

        Raises:
            SourceUnavailable: If the request still fails after retries or
                the response body isn't the expected JSON shape.
            MalformedRecord: If any returned record is invalid.
        """
        params = {"start": str(hour_key), "end": str(hour_key + HOUR_SECONDS)}

        try:
            response = self._request_with_retry(FILLS_ENDPOINT, params)
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise SourceUnavailable(
                f"Fills API request failed: {exc}", hour_key=hour_key
            ) from exc

        if not isinstance(data, dict) or not isinstance(data.get("fills", []), list):
            raise SourceUnavailable(
                "Fills API returned an unexpected payload", hour_key=hour_key
            )

        fills: list[Fill] = []
        for index, raw in enumerate(data.get("fills", [])):
            if not isinstance(raw, dict):
                raise MalformedRecord(
                    f"Record {index} is not an object", hour_key=hour_key
                )
            try:
                fills.append(parse_fill(raw))
            except MalformedRecord as exc:
                raise MalformedRecord(
                    f"Record {index}: {exc.message}", hour_key=hour_key, field=exc.field
                ) from exc

        logger.debug("Fetched %d fills for hour %d from %s", len(fills), hour_key, self._base_url)
        return sorted(fills, key=lambda f: f.timestamp)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "HttpFillSource":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
