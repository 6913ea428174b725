"""
Energy Telemetry Client

Fetches per-location energy records from the external grid telemetry
service and matches them to a node's location label.

There is no retry and no caching here. Sharing one fetch across all
candidate nodes of a scheduling cycle is done by CycleState.
"""

import time
from typing import Optional, Sequence

import requests

from . import config
from .errors import TelemetryError
from .metrics import telemetry_fetch_failures, telemetry_fetch_seconds
from .telemetry_schema import LocationRecord
from .utils import get_logger

logger = get_logger(__name__)


class TelemetryClient:
    """
    Synchronous client for the telemetry endpoint.

    Safe to share between threads: requests.Session is only used for
    connection pooling, each call is independent.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.url = url or config.TELEMETRY.URL
        self.timeout_seconds = timeout_seconds or config.TELEMETRY.TIMEOUT_SECONDS
        self.session = session or requests.Session()

    def fetch_location_records(self) -> list[LocationRecord]:
        """
        Perform one outbound read and decode the JSON array payload.

        Raises:
            TelemetryError: on transport failure, timeout, non-2xx status,
                a body that is not JSON, or an element that does not decode.
        """
        start_time = time.perf_counter()
        try:
            return self._fetch()
        except TelemetryError:
            telemetry_fetch_failures.inc()
            raise
        finally:
            telemetry_fetch_seconds.observe(time.perf_counter() - start_time)

    def _fetch(self) -> list[LocationRecord]:
        try:
            resp = self.session.get(self.url, timeout=self.timeout_seconds)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise TelemetryError(f"telemetry fetch from {self.url} failed: {e}") from e

        try:
            payload = resp.json()
        except ValueError as e:
            raise TelemetryError(f"telemetry payload is not JSON: {e}") from e

        if not isinstance(payload, list):
            raise TelemetryError(
                f"telemetry payload must be a JSON array, got {type(payload).__name__}"
            )

        records = [LocationRecord.from_dict(item) for item in payload]
        logger.debug("Fetched %d location records from %s", len(records), self.url)
        return records

    def close(self) -> None:
        self.session.close()


def match_location(
    records: Sequence[LocationRecord],
    location_key: Optional[str],
) -> Optional[LocationRecord]:
    """Return the first record for location_key, or None if there is none."""
    if not location_key:
        return None
    for record in records:
        if record.location == location_key:
            return record
    return None
