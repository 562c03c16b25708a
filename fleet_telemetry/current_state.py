# fleet_telemetry/current_state.py
from sqlalchemy import or_
from sqlalchemy.orm import Session

from .db import dialect_insert
from .models import MeterCurrent, VehicleCurrent
from .readings import MeterReading, VehicleReading, to_utc

CHARGING_ACTIVE = "ACTIVE"
CHARGING_COMPLETE = "COMPLETE"


class CurrentStateUpserter:
    """
    One row per device, overwritten by whichever reading is processed last.
    Rows are not reordered by recorded_at: an older reading arriving late
    still becomes the current state.
    """

    def __init__(self, session: Session):
        self.session = session

    def upsert_meter(self, reading: MeterReading) -> None:
        values = {
            "ac_energy_consumed_kwh": reading.ac_energy_consumed_kwh,
            "voltage": reading.voltage,
            "last_updated_at": to_utc(reading.recorded_at),
        }
        self._upsert(MeterCurrent, MeterCurrent.meter_id, reading.meter_id, values)

    def upsert_vehicle(self, reading: VehicleReading, charging_status: str = CHARGING_ACTIVE) -> None:
        values = {
            "state_of_charge": reading.state_of_charge,
            "dc_energy_delivered_kwh": reading.dc_energy_delivered_kwh,
            "battery_temp_c": reading.battery_temp_c,
            "charging_status": charging_status,
            "last_updated_at": to_utc(reading.recorded_at),
        }
        self._upsert(VehicleCurrent, VehicleCurrent.vehicle_id, reading.vehicle_id, values)

    def _upsert(self, model, key_column, key, values: dict) -> None:
        stmt = dialect_insert(self.session, model).values({key_column.key: key, **values})
        table = model.__table__
        stmt = stmt.on_conflict_do_update(
            index_elements=[key_column.key],
            set_={name: stmt.excluded[name] for name in values},
            # skip the physical write when nothing changed
            where=or_(*(table.c[name].is_distinct_from(stmt.excluded[name]) for name in values)),
        )
        self.session.execute(stmt)

    def get_meter(self, meter_id: str) -> MeterCurrent | None:
        return self.session.get(MeterCurrent, meter_id)

    def get_vehicle(self, vehicle_id: str) -> VehicleCurrent | None:
        return self.session.get(VehicleCurrent, vehicle_id)
