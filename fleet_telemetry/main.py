# fleet_telemetry/main.py
import os
import time
import asyncio
import logging
from datetime import datetime, timezone
from typing import Annotated

from fastapi import Body, FastAPI, Request
from fastapi.responses import JSONResponse

from .analytics import PerformanceAnalyzer
from .db import get_engine, SessionLocal
from .errors import AggregationFailed, DeviceNotFound, IngestionFailed, UnrecognizedKind
from .history import purge_expired
from .ingestion import TelemetryIngestor
from .models import Base
from .readings import iso_utc
from .schemas import TelemetryRequest, TelemetryResponse

# Config
API_PREFIX = os.environ.get("API_PREFIX", "/v1").rstrip("/")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
RETENTION_DAYS = int(os.environ.get("RETENTION_DAYS", "365"))
RETENTION_INTERVAL_SECONDS = int(os.environ.get("RETENTION_INTERVAL_SECONDS", "3600"))

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
log = logging.getLogger("fleet_telemetry")


def run_retention(session_factory, retention_days: int = RETENTION_DAYS) -> dict:
    session = session_factory()
    try:
        deleted = purge_expired(session, retention_days=retention_days)
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
    log.info("Retention pass removed %s", deleted)
    return deleted

async def retention_task(session_factory):
    while True:
        try:
            await asyncio.to_thread(run_retention, session_factory)
        except Exception as e:
            log.error("Retention pass failed: %s", e)
        await asyncio.sleep(RETENTION_INTERVAL_SECONDS)


def create_app(session_factory=None) -> FastAPI:
    """
    Build the HTTP app. Without a session factory the tables are created on the
    configured DB_URL engine; callers passing their own factory own the schema.
    """
    if session_factory is None:
        Base.metadata.create_all(bind=get_engine())
        session_factory = SessionLocal

    app = FastAPI(title="Fleet Telemetry Platform")
    ingestor = TelemetryIngestor(session_factory, logger=logging.getLogger("fleet_telemetry.ingestion"))
    analyzer = PerformanceAnalyzer(session_factory, logger=logging.getLogger("fleet_telemetry.analytics"))
    started = time.monotonic()
    background = set()

    @app.exception_handler(UnrecognizedKind)
    async def unrecognized_kind(request: Request, exc: UnrecognizedKind):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(DeviceNotFound)
    async def device_not_found(request: Request, exc: DeviceNotFound):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(IngestionFailed)
    @app.exception_handler(AggregationFailed)
    async def internal_failure(request: Request, exc: Exception):
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    @app.on_event("startup")
    async def startup():
        loop = asyncio.get_event_loop()
        background.add(loop.create_task(retention_task(session_factory)))

    @app.on_event("shutdown")
    async def shutdown():
        for task in background:
            task.cancel()
        background.clear()

    @app.get("/health")
    def health():
        return {
            "status": "ok",
            "timestamp": iso_utc(datetime.now(timezone.utc)),
            "uptime": round(time.monotonic() - started, 3),
        }

    # Sync handlers run in the threadpool: one worker thread and one session per request
    @app.post(f"{API_PREFIX}/telemetry/ingest", status_code=202, response_model=TelemetryResponse)
    def ingest_telemetry(request: Annotated[TelemetryRequest, Body(discriminator="type")]):
        result = ingestor.ingest(request.payload.to_reading())
        return {
            "success": True,
            "message": "Telemetry data ingested successfully",
            "timestamp": iso_utc(result.processed_at),
        }

    @app.get(f"{API_PREFIX}/analytics/performance/{{vehicle_id}}")
    def vehicle_performance(vehicle_id: str, startDate: datetime | None = None, endDate: datetime | None = None):
        """
        Energy consumption, DC/AC efficiency and battery temperature summary.
        Defaults to the 24 hours before endDate (or now).
        """
        return analyzer.compute_performance(vehicle_id, startDate, endDate).to_dict()

    return app


app = create_app()
