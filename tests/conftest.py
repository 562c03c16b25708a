import os

# keep the module-level engine off the working directory
os.environ.setdefault("DB_URL", "sqlite://")

from datetime import datetime, timezone

import pytest

from fleet_telemetry.db import make_engine, make_session_factory
from fleet_telemetry.ingestion import TelemetryIngestor
from fleet_telemetry.analytics import PerformanceAnalyzer
from fleet_telemetry.models import Base


@pytest.fixture
def session_factory(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'telemetry.db'}")
    Base.metadata.create_all(bind=engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def session(session_factory):
    s = session_factory()
    yield s
    s.close()


@pytest.fixture
def ingestor(session_factory):
    return TelemetryIngestor(session_factory)


@pytest.fixture
def analyzer(session_factory):
    return PerformanceAnalyzer(session_factory)


@pytest.fixture
def t0():
    return datetime(2026, 2, 4, 10, 30, tzinfo=timezone.utc)
