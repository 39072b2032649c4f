"""
AQI Vision — Station Data Pipeline Package.

Components:
    - ingestion: WAQI API connector, validator and sequential acquisition run
    - classification: AQI severity bands and their fixed colors
    - aggregation: distribution, category averages and ranking over readings
"""

# Shared by every entry point (CLI and API) so their logs read the same
LOG_FORMAT = "%(asctime)s [AQI] %(levelname)s %(name)s — %(message)s"
LOG_DATEFMT = "%Y-%m-%dT%H:%M:%S"
