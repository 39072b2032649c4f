"""
Stations routes — refresh the snapshot, list stations, top stations.
"""
import os
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from api.auth import get_waqi_token
from api.store import SnapshotStore, get_store
from aqivision.aggregation.engine import DEFAULT_TOP_N, top_by_index, with_coordinates
from aqivision.ingestion.waqi_connector import (
    DEFAULT_BOUNDS,
    AcquisitionCancelledError,
    GeoBox,
    ListingFailedError,
    MissingCredentialError,
)

router = APIRouter()

AQI_BOUNDS = os.environ.get("AQI_BOUNDS", "")


class RefreshRequest(BaseModel):
    bounds: Optional[str] = None  # "south,west,north,east"


def _resolve_bounds(raw: Optional[str]) -> GeoBox:
    raw = raw or AQI_BOUNDS
    if not raw:
        return DEFAULT_BOUNDS
    try:
        return GeoBox.from_string(raw)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid bounds: {e}")


@router.post("/refresh")
def refresh_stations(
    body: Optional[RefreshRequest] = None,
    token: str = Depends(get_waqi_token),
    store: SnapshotStore = Depends(get_store),
):
    """Fetch every station in the bounding box from WAQI and replace the snapshot."""
    bounds = _resolve_bounds(body.bounds if body else None)
    try:
        snapshot = store.refresh(bounds, token)
    except MissingCredentialError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="WAQI API token required (X-WAQI-Token header)",
        )
    except ListingFailedError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    except AcquisitionCancelledError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    return {
        "station_count": len(snapshot.readings),
        "bounds": snapshot.bounds.as_latlng(),
        "fetched_at": snapshot.fetched_at.isoformat(),
        "generation": snapshot.generation,
    }


@router.get("/")
def list_stations(
    mappable: bool = Query(False, description="Only stations with coordinates"),
    store: SnapshotStore = Depends(get_store),
):
    """List the stations of the latest snapshot (empty before the first refresh)."""
    readings = store.snapshot.readings
    if mappable:
        readings = with_coordinates(readings)
    return [r.to_dict() for r in readings]


@router.get("/top")
def top_stations(
    n: int = Query(DEFAULT_TOP_N, ge=0, le=500),
    store: SnapshotStore = Depends(get_store),
):
    """Highest-AQI stations of the latest snapshot, highest first."""
    return [r.to_dict() for r in top_by_index(store.snapshot.readings, n)]
