"""
Aggregation Engine — AQI Vision

Pure functions over a list of StationReadings, feeding the dashboard views:
  - distribution_by_category: station count per severity band
  - pollutant_averages: per-band mean AQI and mean of each pollutant
  - top_by_index: highest-AQI stations first
  - correlation_points: PM2.5 vs PM10 pairs
  - with_coordinates: stations that can be placed on a map

None of these mutate their input, keep state or depend on call order.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from aqivision.classification.severity import SeverityCategory, classify
from aqivision.ingestion.waqi_connector import POLLUTANTS, StationReading

DEFAULT_TOP_N = 10


@dataclass
class CategoryAverages:
    """Mean AQI and mean pollutant values for one severity band."""
    category: SeverityCategory
    station_count: int
    avg_aqi: float
    pollutants: Dict[str, Optional[float]] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "category": self.category.label,
            "color": self.category.color,
            "station_count": self.station_count,
            "avg_aqi": self.avg_aqi,
            "pollutants": dict(self.pollutants),
        }


@dataclass
class CorrelationPoint:
    """One station's PM2.5/PM10 pair for the correlation scatter."""
    name: str
    pm25: float
    pm10: float
    aqi: int

    def to_dict(self) -> dict:
        return {"name": self.name, "pm25": self.pm25, "pm10": self.pm10, "aqi": self.aqi}


def _group_by_category(
    readings: Iterable[StationReading],
) -> Dict[SeverityCategory, List[StationReading]]:
    groups: Dict[SeverityCategory, List[StationReading]] = {}
    for reading in readings:
        groups.setdefault(classify(reading.aqi), []).append(reading)
    return groups


def distribution_by_category(
    readings: Iterable[StationReading],
) -> Dict[SeverityCategory, int]:
    """
    Count stations per severity band.

    Bands with no stations are absent from the result, so the counts always
    sum to the number of readings (an empty input gives an empty dict).
    """
    counts: Dict[SeverityCategory, int] = {}
    for reading in readings:
        category = classify(reading.aqi)
        counts[category] = counts.get(category, 0) + 1
    return counts


def pollutant_averages(
    readings: Iterable[StationReading],
) -> Dict[SeverityCategory, CategoryAverages]:
    """
    Per-band mean AQI and mean of each pollutant.

    A pollutant a station did not report counts as 0 and the station still
    counts in the denominator: every mean is ``sum(value or 0) / band size``.
    Bands with patchy reporting are pulled toward zero. The dashboard charts
    are calibrated to this; pollutant_averages_present_only() is the variant
    that ignores missing values instead.
    """
    result: Dict[SeverityCategory, CategoryAverages] = {}
    for category, members in _group_by_category(readings).items():
        count = len(members)
        result[category] = CategoryAverages(
            category=category,
            station_count=count,
            avg_aqi=sum(r.aqi for r in members) / count,
            pollutants={
                kind: sum(r.pollutant(kind) or 0.0 for r in members) / count
                for kind in POLLUTANTS
            },
        )
    return result


def pollutant_averages_present_only(
    readings: Iterable[StationReading],
) -> Dict[SeverityCategory, CategoryAverages]:
    """
    Per-band means where each pollutant is averaged over the stations that
    reported it. A pollutant no station in the band reported is None.
    """
    result: Dict[SeverityCategory, CategoryAverages] = {}
    for category, members in _group_by_category(readings).items():
        averages: Dict[str, Optional[float]] = {}
        for kind in POLLUTANTS:
            present = [r.pollutant(kind) for r in members if r.pollutant(kind) is not None]
            averages[kind] = sum(present) / len(present) if present else None
        result[category] = CategoryAverages(
            category=category,
            station_count=len(members),
            avg_aqi=sum(r.aqi for r in members) / len(members),
            pollutants=averages,
        )
    return result


def top_by_index(
    readings: Sequence[StationReading],
    n: int = DEFAULT_TOP_N,
) -> List[StationReading]:
    """
    The ``n`` stations with the highest AQI, highest first.

    Stations with equal AQI keep their input order.
    """
    if n < 0:
        raise ValueError(f"n must be >= 0, got {n}")
    # sorted() is stable, including with reverse=True
    return sorted(readings, key=lambda r: r.aqi, reverse=True)[:n]


def correlation_points(readings: Iterable[StationReading]) -> List[CorrelationPoint]:
    """PM2.5/PM10 pairs for every station that reported both, in input order."""
    points = []
    for reading in readings:
        pm25 = reading.pollutant("pm25")
        pm10 = reading.pollutant("pm10")
        if pm25 is None or pm10 is None:
            continue
        points.append(CorrelationPoint(name=reading.name, pm25=pm25, pm10=pm10, aqi=reading.aqi))
    return points


def with_coordinates(readings: Iterable[StationReading]) -> List[StationReading]:
    """Stations that carry both a latitude and a longitude."""
    return [r for r in readings if r.has_coordinates]
