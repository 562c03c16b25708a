# fleet_telemetry/db.py
from sqlalchemy import create_engine
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session, sessionmaker
import os
import urllib.parse
from pathlib import Path

DB_URL = os.environ.get("DB_URL", "sqlite:///./data/telemetry.db")

def _ensure_sqlite_dir(url: str):
    if not url.startswith("sqlite") or "sqlite:///" not in url:
        return
    # Extract filesystem path after sqlite:///
    raw_path = url.split("sqlite:///", 1)[-1]
    if not raw_path or raw_path == ":memory:":
        return
    fs_path = Path(urllib.parse.unquote(raw_path))
    if not fs_path.is_absolute():
        fs_path = Path.cwd() / fs_path
    fs_path.parent.mkdir(parents=True, exist_ok=True)

def make_engine(url: str):
    _ensure_sqlite_dir(url)
    return create_engine(
        url,
        echo=os.environ.get("SQL_ECHO", "0") == "1",
        future=True,
        pool_pre_ping=True,
        connect_args={"check_same_thread": False} if url.startswith("sqlite") else {}
    )

def make_session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

_engine = make_engine(DB_URL)
SessionLocal = make_session_factory(_engine)

def get_engine():
    return _engine

def dialect_insert(session: Session, model):
    """
    INSERT construct for the session's dialect, supporting ON CONFLICT clauses.
    """
    name = session.get_bind().dialect.name
    if name == "postgresql":
        return postgresql.insert(model)
    if name == "sqlite":
        return sqlite.insert(model)
    raise NotImplementedError(f"upsert not supported for dialect {name!r}")


