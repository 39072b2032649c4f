"""
WAQI (World Air Quality Index) API Connector.

Lists the stations inside a lat/lon bounding box and fetches the latest
reading for a single station. Handles API timeouts, malformed responses,
and missing fields gracefully.

Listing failures raise ListingFailedError; detail failures return None so
the caller can skip the station and move on.
"""

import logging
import math
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

import httpx
from dotenv import load_dotenv

from aqivision.classification.severity import SeverityCategory, classify

load_dotenv()

logger = logging.getLogger(__name__)

WAQI_BASE_URL = os.getenv("WAQI_BASE_URL", "https://api.waqi.info").rstrip("/")
REQUEST_TIMEOUT = float(os.getenv("WAQI_REQUEST_TIMEOUT", "10"))  # seconds

UNKNOWN_STATION_NAME = "Unknown"

LATITUDE_BOUNDS = (-90.0, 90.0)
LONGITUDE_BOUNDS = (-180.0, 180.0)

# Recognized pollutant kinds (WAQI iaqi key → display label)
POLLUTANTS: Dict[str, str] = {
    "pm25": "PM2.5",
    "pm10": "PM10",
    "co":   "CO",
    "no2":  "NO2",
    "so2":  "SO2",
    "o3":   "O3",
}


class AcquisitionError(Exception):
    """Base class for errors that abort a whole acquisition run."""


class MissingCredentialError(AcquisitionError):
    """No WAQI token was supplied; nothing was sent to the network."""


class ListingFailedError(AcquisitionError):
    """The bounding-box listing call failed; no station was fetched."""


class AcquisitionCancelledError(AcquisitionError):
    """A newer acquisition run superseded this one."""


@dataclass(frozen=True)
class GeoBox:
    """Axis-aligned lat/lon rectangle used for the station listing."""
    south: float
    west: float
    north: float
    east: float

    def __post_init__(self):
        for name in ("south", "north"):
            value = getattr(self, name)
            if not LATITUDE_BOUNDS[0] <= value <= LATITUDE_BOUNDS[1]:
                raise ValueError(f"{name}={value} is not a valid latitude")
        for name in ("west", "east"):
            value = getattr(self, name)
            if not LONGITUDE_BOUNDS[0] <= value <= LONGITUDE_BOUNDS[1]:
                raise ValueError(f"{name}={value} is not a valid longitude")
        if self.south > self.north:
            raise ValueError(
                f"south={self.south} must not be greater than north={self.north}"
            )

    @classmethod
    def from_string(cls, raw: str) -> "GeoBox":
        """Parse the ``"south,west,north,east"`` form used by WAQI."""
        parts = [p.strip() for p in raw.split(",")]
        if len(parts) != 4:
            raise ValueError(
                f"Bounding box needs 4 comma-separated values, got {len(parts)}"
            )
        try:
            south, west, north, east = (float(p) for p in parts)
        except ValueError:
            raise ValueError(f"Bounding box values must be numeric: {raw!r}")
        return cls(south=south, west=west, north=north, east=east)

    def as_latlng(self) -> str:
        return f"{self.south},{self.west},{self.north},{self.east}"


# India
DEFAULT_BOUNDS = GeoBox(south=6.554, west=68.176, north=35.674, east=97.395)


@dataclass
class StationDetail:
    """The parts of a WAQI feed response that a StationReading needs."""
    aqi: Optional[int]
    observed_at: Optional[str] = None
    pollutants: Dict[str, Optional[float]] = field(default_factory=dict)


@dataclass
class StationReading:
    """One monitoring station's latest reading from one acquisition run."""
    uid: Union[int, str]
    name: str
    aqi: int
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    pollutants: Dict[str, Optional[float]] = field(
        default_factory=lambda: {kind: None for kind in POLLUTANTS}
    )
    observed_at: Optional[str] = None   # provider 'time.s', passed through as-is

    @property
    def category(self) -> SeverityCategory:
        return classify(self.aqi)

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def pollutant(self, kind: str) -> Optional[float]:
        return self.pollutants.get(kind)

    def to_dict(self) -> Dict[str, Any]:
        category = self.category
        return {
            "uid": self.uid,
            "name": self.name,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "aqi": self.aqi,
            "category": category.label,
            "color": category.color,
            "pollutants": dict(self.pollutants),
            "observed_at": self.observed_at,
        }


def _safe_float(val) -> Optional[float]:
    """Safely convert a value to float, returning None on failure."""
    if val is None or val == "-" or val == "":
        return None
    try:
        result = float(val)
    except (TypeError, ValueError, OverflowError):
        return None
    # "NaN" and "inf" parse, but are not readings
    return result if math.isfinite(result) else None


def _safe_coordinate(val, bounds, uid=None) -> Optional[float]:
    """Parse a latitude or longitude; out-of-range values become None."""
    result = _safe_float(val)
    if result is not None and not bounds[0] <= result <= bounds[1]:
        logger.warning(
            "Station %s: coordinate %s outside %s — dropping position", uid, result, bounds
        )
        return None
    return result


def _safe_int(val) -> Optional[int]:
    """Convert an AQI value to int; WAQI reports '-' when it has none."""
    if val is None or val == "-" or val == "" or isinstance(val, bool):
        return None
    try:
        return int(float(val))
    except (TypeError, ValueError, OverflowError):
        return None


def _parse_iaqi(data: dict) -> Dict[str, Optional[float]]:
    """Extract the recognized pollutant values from the WAQI iaqi block."""
    iaqi = data.get("iaqi") or {}
    result: Dict[str, Optional[float]] = {kind: None for kind in POLLUTANTS}
    for kind in POLLUTANTS:
        entry = iaqi.get(kind)
        if isinstance(entry, dict):
            result[kind] = _safe_float(entry.get("v"))
    return result


def _get_json(url: str, params: dict, client: Optional[httpx.Client]) -> Any:
    """GET ``url`` and decode its JSON body. Raises httpx errors or ValueError."""
    getter = client.get if client is not None else httpx.get
    resp = getter(url, params=params, timeout=REQUEST_TIMEOUT)
    resp.raise_for_status()
    return resp.json()


def fetch_station_list(
    bounds: GeoBox,
    token: str,
    client: Optional[httpx.Client] = None,
) -> List[dict]:
    """
    List every station whose coordinates fall inside ``bounds``.

    Args:
        bounds: Bounding box to query.
        token: WAQI API token.
        client: Optional shared httpx.Client; module-level httpx.get otherwise.

    Returns:
        The raw listing entries ({uid, lat, lon, station: {name}}, ...).

    Raises:
        ListingFailedError on any HTTP, network, JSON or envelope failure.
    """
    url = f"{WAQI_BASE_URL}/map/bounds"
    params = {"token": token, "latlng": bounds.as_latlng()}

    try:
        payload = _get_json(url, params, client)
    except httpx.TimeoutException:
        logger.error("WAQI listing request timed out for bounds %s", bounds.as_latlng())
        raise ListingFailedError("Station listing timed out")
    except httpx.HTTPStatusError as e:
        logger.error("WAQI listing HTTP error %s", e.response.status_code)
        raise ListingFailedError(
            f"Station listing failed with HTTP {e.response.status_code}"
        )
    except httpx.RequestError as e:
        logger.error("WAQI listing network error: %s", e)
        raise ListingFailedError(f"Station listing network error: {e}")
    except ValueError:
        logger.error("WAQI listing returned malformed JSON")
        raise ListingFailedError("Station listing returned malformed JSON")

    if not isinstance(payload, dict) or payload.get("status") != "ok":
        status = payload.get("status") if isinstance(payload, dict) else None
        logger.error("WAQI listing status not ok: %s", status)
        raise ListingFailedError(f"Station listing status not ok: {status}")

    data = payload.get("data")
    if not isinstance(data, list):
        logger.error("WAQI listing 'data' is not a list: %r", type(data).__name__)
        raise ListingFailedError("Station listing response has no station list")

    logger.info("WAQI listing returned %d stations for %s", len(data), bounds.as_latlng())
    return data


def fetch_station_detail(
    uid: Union[int, str],
    token: str,
    client: Optional[httpx.Client] = None,
) -> Optional[StationDetail]:
    """
    Fetch the latest reading for the given WAQI station uid.

    Returns:
        StationDetail, or None when the request fails, the envelope is not
        "ok", or the response carries no usable AQI.
    """
    url = f"{WAQI_BASE_URL}/feed/@{uid}/"

    try:
        payload = _get_json(url, {"token": token}, client)
    except httpx.TimeoutException:
        logger.error("WAQI request timed out for station %s", uid)
        return None
    except httpx.HTTPStatusError as e:
        logger.error("WAQI HTTP error %s for station %s", e.response.status_code, uid)
        return None
    except httpx.RequestError as e:
        logger.error("WAQI network error for station %s: %s", uid, e)
        return None
    except ValueError:
        logger.error("WAQI returned malformed JSON for station %s", uid)
        return None

    if not isinstance(payload, dict) or payload.get("status") != "ok":
        status = payload.get("status") if isinstance(payload, dict) else None
        logger.warning("WAQI status not ok for station %s: %s", uid, status)
        return None

    data = payload.get("data")
    if not isinstance(data, dict):
        logger.error("WAQI response missing 'data' for station %s", uid)
        return None

    aqi = _safe_int(data.get("aqi"))
    if aqi is None:
        logger.warning("WAQI station %s has no AQI (%r)", uid, data.get("aqi"))
        return None

    time_block = data.get("time") or {}
    observed_at = time_block.get("s") if isinstance(time_block, dict) else None

    return StationDetail(
        aqi=aqi,
        observed_at=observed_at,
        pollutants=_parse_iaqi(data),
    )


def build_reading(entry: dict, detail: StationDetail) -> StationReading:
    """Merge a listing entry (name, coordinates) with its detail reading."""
    uid = entry.get("uid")
    station_block = entry.get("station") or {}
    name = station_block.get("name") if isinstance(station_block, dict) else None

    return StationReading(
        uid=uid,
        name=name or UNKNOWN_STATION_NAME,
        aqi=detail.aqi,
        latitude=_safe_coordinate(entry.get("lat"), LATITUDE_BOUNDS, uid),
        longitude=_safe_coordinate(entry.get("lon"), LONGITUDE_BOUNDS, uid),
        pollutants={kind: detail.pollutants.get(kind) for kind in POLLUTANTS},
        observed_at=detail.observed_at,
    )
