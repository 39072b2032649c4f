"""
Analytics routes — aggregate views over the latest snapshot.
"""
from fastapi import APIRouter, Depends, Query

from api.store import SnapshotStore, get_store
from aqivision.aggregation.engine import (
    correlation_points,
    distribution_by_category,
    pollutant_averages,
    pollutant_averages_present_only,
)
from aqivision.classification.severity import category_order

router = APIRouter()


@router.get("/distribution")
def distribution(store: SnapshotStore = Depends(get_store)):
    """Station count per AQI band; bands without stations are omitted."""
    counts = distribution_by_category(store.snapshot.readings)
    return [
        {"category": c.label, "color": c.color, "count": counts[c]}
        for c in category_order()
        if c in counts
    ]


@router.get("/averages")
def averages(
    present_only: bool = Query(
        False, description="Average each pollutant over reporting stations only"
    ),
    store: SnapshotStore = Depends(get_store),
):
    """Mean AQI and mean pollutant values per AQI band."""
    fn = pollutant_averages_present_only if present_only else pollutant_averages
    result = fn(store.snapshot.readings)
    return [result[c].to_dict() for c in category_order() if c in result]


@router.get("/correlation")
def correlation(store: SnapshotStore = Depends(get_store)):
    """PM2.5 vs PM10 for every station reporting both."""
    return [p.to_dict() for p in correlation_points(store.snapshot.readings)]
