"""
AQI Vision — Command-line Entry Point

Runs one acquisition against the WAQI API and logs a summary:
  1. List stations in the bounding box, fetch each station's detail
  2. Count stations per severity band
  3. Log the highest-AQI stations

With --interval N the acquisition repeats every N minutes on an
APScheduler background job until SIGINT/SIGTERM. Each scheduled run begins
a new generation on the shared AcquisitionController, so a slow run that
overlaps the next one is cancelled instead of publishing stale data.

Usage:
    python -m aqivision.main --token <WAQI token>
    python -m aqivision.main --bounds 8.0,76.0,13.5,80.5 --interval 30
"""

import argparse
import logging
import os
import signal
import sys
import time
from datetime import datetime, timezone
from typing import List, Optional

from dotenv import load_dotenv

from aqivision import LOG_DATEFMT, LOG_FORMAT

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format=LOG_FORMAT,
    datefmt=LOG_DATEFMT,
    stream=sys.stdout,
)
logger = logging.getLogger("aqivision.main")

# ── Configuration ──────────────────────────────────────────────────────────────
REFRESH_INTERVAL_MINUTES = int(os.environ.get("REFRESH_INTERVAL_MINUTES", "0"))
AQI_BOUNDS = os.environ.get("AQI_BOUNDS", "")

# ── Graceful shutdown flag ─────────────────────────────────────────────────────
_running = True


def _shutdown(sig, frame):
    global _running
    logger.info("Shutdown signal (%s) — stopping scheduler.", sig)
    _running = False


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Fetch WAQI station readings and summarize them by AQI band",
    )
    parser.add_argument(
        "--token",
        default=os.environ.get("WAQI_TOKEN", ""),
        help="WAQI API token (default: $WAQI_TOKEN)",
    )
    parser.add_argument(
        "--bounds",
        default=AQI_BOUNDS,
        help="Bounding box 'south,west,north,east' (default: India)",
    )
    parser.add_argument(
        "--interval",
        type=int,
        default=REFRESH_INTERVAL_MINUTES,
        help="Refresh every N minutes; 0 runs once (default: $REFRESH_INTERVAL_MINUTES or 0)",
    )
    parser.add_argument(
        "--top",
        type=int,
        default=10,
        help="Number of highest-AQI stations to log (default: 10)",
    )
    return parser.parse_args(argv)


def log_summary(readings, top_n: int) -> None:
    """Log the band distribution and the top stations of one run."""
    from aqivision.aggregation.engine import distribution_by_category, top_by_index
    from aqivision.classification.severity import category_order

    if not readings:
        logger.warning("No station data available for this run")
        return

    distribution = distribution_by_category(readings)
    for category in category_order():
        if category in distribution:
            logger.info("  %-32s %4d", category.label, distribution[category])

    for rank, reading in enumerate(top_by_index(readings, top_n), start=1):
        logger.info(
            "  #%-3d AQI=%-4d %-40s %s",
            rank, reading.aqi, reading.name, reading.observed_at or "",
        )


def _refresh_job(bounds, token: str, top_n: int) -> None:
    """One scheduled (or one-shot) acquisition cycle."""
    from aqivision.ingestion.acquisition import acquire, get_controller
    from aqivision.ingestion.waqi_connector import AcquisitionCancelledError

    controller = get_controller()
    run = controller.begin()
    try:
        readings = acquire(bounds, token, run=run)
    except AcquisitionCancelledError as exc:
        logger.warning("%s", exc)
        return
    logger.info("Retrieved data for %d stations (run %d)", len(readings), run.generation)
    log_summary(readings, top_n)


def _scheduled_refresh(bounds, token: str, top_n: int) -> None:
    from aqivision.ingestion.waqi_connector import AcquisitionError

    try:
        _refresh_job(bounds, token, top_n)
    except AcquisitionError as exc:
        logger.error("Scheduled acquisition failed: %s", exc)


def main(argv: Optional[List[str]] = None) -> int:
    from aqivision.ingestion.waqi_connector import DEFAULT_BOUNDS, AcquisitionError, GeoBox

    args = parse_args(argv)

    try:
        bounds = GeoBox.from_string(args.bounds) if args.bounds else DEFAULT_BOUNDS
    except ValueError as exc:
        logger.error("Invalid --bounds: %s", exc)
        return 2

    if args.interval <= 0:
        try:
            _refresh_job(bounds, args.token, args.top)
        except AcquisitionError as exc:
            logger.error("Acquisition failed: %s", exc)
            return 1
        return 0

    from apscheduler.schedulers.background import BackgroundScheduler

    signal.signal(signal.SIGINT,  _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    scheduler = BackgroundScheduler()
    scheduler.add_job(
        func=_scheduled_refresh,
        args=[bounds, args.token, args.top],
        trigger="interval",
        minutes=args.interval,
        next_run_time=datetime.now(timezone.utc),  # run immediately on start
        id="waqi_refresh",
        name="WAQI Refresh",
        max_instances=2,
        coalesce=True,
    )
    scheduler.start()
    logger.info("Scheduler started — refreshing every %d min", args.interval)

    try:
        while _running:
            time.sleep(1)
    finally:
        logger.info("Stopping scheduler…")
        scheduler.shutdown(wait=False)
        logger.info("Stopped cleanly.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
