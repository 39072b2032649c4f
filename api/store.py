"""
Snapshot store — the latest acquisition result, held in process memory.

There is no database: a refresh replaces the snapshot, a restart clears it.
Refreshes go through the shared AcquisitionController, so when two overlap
only the newer one publishes.
"""
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from aqivision.ingestion.acquisition import AcquisitionController, acquire, get_controller
from aqivision.ingestion.waqi_connector import (
    AcquisitionCancelledError,
    GeoBox,
    MissingCredentialError,
    StationReading,
)

logger = logging.getLogger(__name__)


@dataclass
class Snapshot:
    readings: List[StationReading] = field(default_factory=list)
    bounds: Optional[GeoBox] = None
    fetched_at: Optional[datetime] = None
    generation: int = 0


class SnapshotStore:
    def __init__(self, controller: Optional[AcquisitionController] = None, acquire_fn=acquire):
        self._controller = controller or get_controller()
        self._acquire = acquire_fn
        self._lock = threading.Lock()
        self._snapshot = Snapshot()

    @property
    def snapshot(self) -> Snapshot:
        with self._lock:
            return self._snapshot

    def refresh(self, bounds: GeoBox, token: str) -> Snapshot:
        """
        Run one acquisition and publish it.

        Raises the acquisition's errors unchanged; AcquisitionCancelledError
        also when a newer refresh finished first.
        """
        # a rejected request must not cancel the run already in flight
        if not token or not token.strip():
            raise MissingCredentialError("A WAQI API token is required")
        run = self._controller.begin()
        readings = self._acquire(bounds, token, run=run)
        snapshot = Snapshot(
            readings=readings,
            bounds=bounds,
            fetched_at=datetime.now(timezone.utc),
            generation=run.generation,
        )
        with self._lock:
            if not self._controller.is_current(run):
                raise AcquisitionCancelledError(
                    f"Acquisition run {run.generation} was superseded"
                )
            self._snapshot = snapshot
        logger.info(
            "Snapshot %d published: %d stations", snapshot.generation, len(readings)
        )
        return snapshot


_store: Optional[SnapshotStore] = None
_store_lock = threading.Lock()


def get_store() -> SnapshotStore:
    """FastAPI dependency — the process-wide SnapshotStore."""
    global _store
    with _store_lock:
        if _store is None:
            _store = SnapshotStore()
    return _store
