# fleet_telemetry/ingestion.py
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import NoReturn

from typing_extensions import Never

from .errors import IngestionFailed, UnrecognizedKind
from .readings import MeterReading, Reading, ReadingKind, VehicleReading
from .uow import SqlUnitOfWork


@dataclass(frozen=True)
class IngestResult:
    kind: ReadingKind
    device_id: str
    processed_at: datetime
    mapping_created: bool = False


class TelemetryIngestor:
    """
    Writes one reading per call: mapping check (vehicles only), history append
    and current-state upsert, all inside a single unit of work.

    ``unit_of_work`` is a zero-argument callable returning a fresh UnitOfWork;
    by default a SqlUnitOfWork over ``session_factory``.
    """

    def __init__(self, session_factory=None, *, unit_of_work=None, logger: logging.Logger | None = None):
        self._unit_of_work = unit_of_work or (lambda: SqlUnitOfWork(session_factory))
        self.log = logger or logging.getLogger(__name__)

    def ingest(self, reading: Reading) -> IngestResult:
        match reading:
            case MeterReading():
                handler = self._process_meter
            case VehicleReading():
                handler = self._process_vehicle
            case _:
                self._reject(reading)

        processed_at = datetime.now(timezone.utc)
        try:
            with self._unit_of_work() as uow:
                mapping_created = handler(uow, reading, processed_at)
        except Exception as exc:
            self.log.error(
                "Failed to ingest %s telemetry for %s: %s",
                reading.kind.value, reading.device_id, exc,
            )
            raise IngestionFailed(reading.device_id, reading.kind.value, str(exc)) from exc

        self.log.info("Processed %s reading for %s", reading.kind.value.lower(), reading.device_id)
        return IngestResult(reading.kind, reading.device_id, processed_at, mapping_created)

    def _reject(self, reading: Never) -> NoReturn:
        # typed as Never so a checker flags a Reading variant without a case above
        kind = getattr(reading, "kind", None) or type(reading).__name__
        self.log.warning("Rejected reading of unknown type %s", kind)
        raise UnrecognizedKind(str(kind))

    def _process_meter(self, uow, reading: MeterReading, ingested_at: datetime) -> bool:
        uow.history.append_meter(reading, ingested_at)
        uow.current.upsert_meter(reading)
        return False

    def _process_vehicle(self, uow, reading: VehicleReading, ingested_at: datetime) -> bool:
        created = uow.mappings.ensure(reading.vehicle_id)
        if created:
            self.log.info("Auto-provisioned device mapping for %s", reading.vehicle_id)
        uow.history.append_vehicle(reading, ingested_at)
        uow.current.upsert_vehicle(reading)
        return created
