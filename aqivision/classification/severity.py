"""
Severity Classifier — AQI Vision

Classifies a station's AQI value into one of six fixed bands:
  GOOD                     0 – 50
  MODERATE                51 – 100
  UNHEALTHY_FOR_SENSITIVE 101 – 150
  UNHEALTHY              151 – 200
  VERY_UNHEALTHY         201 – 300
  HAZARDOUS              301 and above

Upper bounds are inclusive, so a boundary value belongs to the lower band.
Every view colors stations through this module; the band colors must not
drift between the map, the charts and the table.
"""

import enum
from typing import Dict, List, Optional, Tuple


class SeverityCategory(str, enum.Enum):
    GOOD = "Good"
    MODERATE = "Moderate"
    UNHEALTHY_FOR_SENSITIVE = "Unhealthy for Sensitive Groups"
    UNHEALTHY = "Unhealthy"
    VERY_UNHEALTHY = "Very Unhealthy"
    HAZARDOUS = "Hazardous"

    @property
    def label(self) -> str:
        return self.value

    @property
    def color(self) -> str:
        return CATEGORY_COLORS[self]


# (inclusive upper bound, category) in ascending order; None = unbounded
AQI_BANDS: List[Tuple[Optional[int], SeverityCategory]] = [
    (50,   SeverityCategory.GOOD),
    (100,  SeverityCategory.MODERATE),
    (150,  SeverityCategory.UNHEALTHY_FOR_SENSITIVE),
    (200,  SeverityCategory.UNHEALTHY),
    (300,  SeverityCategory.VERY_UNHEALTHY),
    (None, SeverityCategory.HAZARDOUS),
]

CATEGORY_COLORS: Dict[SeverityCategory, str] = {
    SeverityCategory.GOOD:                    "#00e400",
    SeverityCategory.MODERATE:                "#ffff00",
    SeverityCategory.UNHEALTHY_FOR_SENSITIVE: "#ff7e00",
    SeverityCategory.UNHEALTHY:               "#ff0000",
    SeverityCategory.VERY_UNHEALTHY:          "#8f3f97",
    SeverityCategory.HAZARDOUS:               "#7e0023",
}


def classify(aqi: int) -> SeverityCategory:
    """
    Return the severity band for an AQI value.

    Values below zero never reach here from acquisition; if one does it is
    classified as GOOD, the band of every value up to 50.
    """
    for upper, category in AQI_BANDS:
        if upper is None or aqi <= upper:
            return category
    return SeverityCategory.HAZARDOUS


def aqi_color(aqi: int) -> str:
    """Return the display color of the band containing ``aqi``."""
    return classify(aqi).color


def category_order() -> List[SeverityCategory]:
    """Categories from least to most severe."""
    return [category for _, category in AQI_BANDS]
