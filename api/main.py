"""
AQI Vision — FastAPI Application Entry Point
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes import analytics, stations
from api.store import get_store
from aqivision import LOG_DATEFMT, LOG_FORMAT

logging.basicConfig(level=logging.INFO, format=LOG_FORMAT, datefmt=LOG_DATEFMT)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("AQI Vision API starting up — snapshot store is empty until first refresh")
    get_store()
    yield
    logger.info("AQI Vision API shutting down")


app = FastAPI(
    title="AQI Vision API",
    description="WAQI station readings and AQI band analytics",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(stations.router,  prefix="/api/stations",  tags=["Stations"])
app.include_router(analytics.router, prefix="/api/analytics", tags=["Analytics"])


@app.get("/api/health", tags=["Health"])
def health():
    return {"status": "ok", "service": "aqivision-api", "version": "1.0.0"}
