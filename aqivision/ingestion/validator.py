"""
Validator for StationReading data.

Validates:
- Required fields are present (name, AQI)
- AQI is a non-negative integer

Coordinates are not checked here: build_reading() already drops positions
outside the valid range, and a station without one still counts.
"""

import logging
from dataclasses import dataclass, field
from typing import List

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Result of validating a single StationReading."""
    is_valid: bool
    reasons: List[str] = field(default_factory=list)

    def add_error(self, msg: str):
        self.reasons.append(msg)
        self.is_valid = False

    def __str__(self) -> str:
        if self.is_valid:
            return "Valid"
        return "Invalid: " + "; ".join(self.reasons)


def validate_reading(reading) -> ValidationResult:
    """
    Validate a StationReading object.

    Args:
        reading: A StationReading (from waqi_connector) or any object
                 with the expected attributes.

    Returns:
        ValidationResult with is_valid flag and list of failure reasons.
    """
    result = ValidationResult(is_valid=True)

    # Required fields must be present
    if not getattr(reading, "name", None):
        result.add_error("Missing required field: name")

    aqi = getattr(reading, "aqi", None)
    if aqi is None:
        result.add_error("Missing required field: aqi")
    elif isinstance(aqi, bool) or not isinstance(aqi, int):
        result.add_error(f"aqi must be an integer, got {type(aqi).__name__}")
    elif aqi < 0:
        result.add_error(f"aqi={aqi} is negative")

    if not result.is_valid:
        logger.warning(
            "Validation failed for station %s: %s",
            getattr(reading, "uid", "unknown"),
            result.reasons,
        )
    return result
