"""
Acquisition run — turns a WAQI token and a bounding box into a list of
validated StationReadings.

Flow:
  1. One listing call for the bounding box (failure aborts the run)
  2. One detail call per listed station, strictly sequential, with a
     minimum interval between consecutive calls (the rate limiter)
  3. Stations whose detail call fails, or whose reading does not
     validate, are logged and skipped; the loop always continues

Runs are ordered by an AcquisitionController. Beginning a new run cancels
the previous one; a cancelled run raises AcquisitionCancelledError at its
next station and its partial results are dropped.
"""

import logging
import os
import threading
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

import httpx
from dotenv import load_dotenv

from aqivision.ingestion.validator import validate_reading
from aqivision.ingestion.waqi_connector import (
    DEFAULT_BOUNDS,
    AcquisitionCancelledError,
    GeoBox,
    MissingCredentialError,
    StationReading,
    build_reading,
    fetch_station_detail,
    fetch_station_list,
)

load_dotenv()

logger = logging.getLogger(__name__)

# Minimum gap between two consecutive detail requests (seconds)
REQUEST_INTERVAL = float(os.getenv("WAQI_REQUEST_INTERVAL_SECONDS", "0.1"))


@dataclass
class RunToken:
    """Identifies one acquisition run; ``cancelled`` flips when superseded."""
    generation: int
    _cancelled: threading.Event

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        self._cancelled.set()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise AcquisitionCancelledError(
                f"Acquisition run {self.generation} was superseded"
            )


class AcquisitionController:
    """
    Hands out RunTokens in generation order.

    Only the newest token is live: begin() cancels whatever run was current.
    is_current() lets a caller check, after acquire() returns, that no newer
    run started before it publishes its result.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._generation = 0
        self._current: Optional[RunToken] = None

    def begin(self) -> RunToken:
        with self._lock:
            if self._current is not None:
                self._current.cancel()
                logger.info(
                    "Acquisition run %d superseded by run %d",
                    self._current.generation, self._generation + 1,
                )
            self._generation += 1
            self._current = RunToken(self._generation, threading.Event())
            return self._current

    def is_current(self, run: RunToken) -> bool:
        with self._lock:
            return self._current is run and not run.cancelled


def acquire(
    bounds: GeoBox = DEFAULT_BOUNDS,
    token: str = "",
    *,
    min_interval: Optional[float] = None,
    run: Optional[RunToken] = None,
    client: Optional[httpx.Client] = None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> List[StationReading]:
    """
    Fetch every station in ``bounds`` and return the ones with a usable AQI.

    Args:
        bounds: Bounding box to list stations in (default: India).
        token: WAQI API token, passed through unchanged.
        min_interval: Seconds between consecutive detail requests;
                      REQUEST_INTERVAL when None.
        run: RunToken from an AcquisitionController; checked before every
             detail request.
        client: httpx.Client to reuse; one is opened for the run otherwise.
        sleep, clock: Injected for tests.

    Returns:
        List of StationReadings, one per station that succeeded.

    Raises:
        MissingCredentialError: ``token`` is empty (no request is made).
        ListingFailedError: the listing call failed (no detail request is made).
        AcquisitionCancelledError: ``run`` was superseded mid-way.
    """
    if not token or not token.strip():
        logger.error("WAQI token not supplied — acquisition not attempted")
        raise MissingCredentialError("A WAQI API token is required")

    interval = REQUEST_INTERVAL if min_interval is None else min_interval
    if interval < 0:
        raise ValueError(f"min_interval must be >= 0, got {interval}")

    if client is None:
        with httpx.Client() as owned_client:
            return _acquire(bounds, token, interval, run, owned_client, sleep, clock)
    return _acquire(bounds, token, interval, run, client, sleep, clock)


def _acquire(
    bounds: GeoBox,
    token: str,
    interval: float,
    run: Optional[RunToken],
    client: httpx.Client,
    sleep: Callable[[float], None],
    clock: Callable[[], float],
) -> List[StationReading]:
    if run is not None:
        run.raise_if_cancelled()

    entries = fetch_station_list(bounds, token, client=client)

    logger.info("── Acquisition starting — %d stations ──", len(entries))

    readings: List[StationReading] = []
    skipped = 0
    last_request: Optional[float] = None

    for entry in entries:
        uid = entry.get("uid") if isinstance(entry, dict) else None
        if uid is None:
            logger.warning("Listing entry without uid — skipping: %r", entry)
            skipped += 1
            continue

        if last_request is not None:
            wait = interval - (clock() - last_request)
            if wait > 0:
                sleep(wait)

        if run is not None:
            run.raise_if_cancelled()
        last_request = clock()

        try:
            detail = fetch_station_detail(uid, token, client=client)
            if detail is None:
                skipped += 1
                continue
            reading = build_reading(entry, detail)
        except Exception as exc:
            logger.error("Unexpected error for station %s: %s", uid, exc)
            skipped += 1
            continue

        if not validate_reading(reading).is_valid:
            skipped += 1
            continue

        readings.append(reading)

    if run is not None:
        run.raise_if_cancelled()

    logger.info(
        "── Acquisition complete — %d stations accepted, %d skipped ──",
        len(readings), skipped,
    )
    return readings


# ---------------------------------------------------------------------------
# Module-level singleton — shared by the CLI scheduler and the API
# ---------------------------------------------------------------------------

_controller: Optional[AcquisitionController] = None
_controller_lock = threading.Lock()


def get_controller() -> AcquisitionController:
    """Return the process-level AcquisitionController singleton."""
    global _controller
    with _controller_lock:
        if _controller is None:
            _controller = AcquisitionController()
    return _controller
