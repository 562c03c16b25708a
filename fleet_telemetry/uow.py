# fleet_telemetry/uow.py
from typing import Protocol

from .current_state import CurrentStateUpserter
from .db import SessionLocal
from .history import HistoryWriter
from .mapping import MappingStore


class UnitOfWork(Protocol):
    """
    One all-or-nothing transaction. The three stores share it, so every write
    made inside the ``with`` block commits or rolls back together.
    """
    mappings: MappingStore
    history: HistoryWriter
    current: CurrentStateUpserter

    def __enter__(self) -> "UnitOfWork": ...

    def __exit__(self, exc_type, exc, tb) -> None: ...


class SqlUnitOfWork:
    def __init__(self, session_factory=None):
        self._session_factory = session_factory or SessionLocal
        self.session = None

    def __enter__(self):
        self.session = self._session_factory()
        self.mappings = MappingStore(self.session)
        self.history = HistoryWriter(self.session)
        self.current = CurrentStateUpserter(self.session)
        return self

    def __exit__(self, exc_type, exc, tb):
        try:
            if exc_type is None:
                self.session.commit()
            else:
                # also covers cancellation (KeyboardInterrupt, CancelledError)
                self.session.rollback()
        finally:
            self.session.close()
            self.session = None
