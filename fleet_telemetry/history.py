# fleet_telemetry/history.py
from datetime import datetime, timedelta, timezone

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from .models import MeterHistory, VehicleHistory
from .readings import MeterReading, VehicleReading, to_utc


class HistoryWriter:
    """
    Append-only writes and range scans over the two history tables.
    Writes never deduplicate: re-sending a reading adds another row.
    """

    def __init__(self, session: Session):
        self.session = session

    def append_meter(self, reading: MeterReading, ingested_at: datetime) -> None:
        self.session.add(MeterHistory(
            meter_id=reading.meter_id,
            ac_energy_consumed_kwh=reading.ac_energy_consumed_kwh,
            voltage=reading.voltage,
            recorded_at=to_utc(reading.recorded_at),
            ingested_at=to_utc(ingested_at),
        ))
        self.session.flush()

    def append_vehicle(self, reading: VehicleReading, ingested_at: datetime) -> None:
        self.session.add(VehicleHistory(
            vehicle_id=reading.vehicle_id,
            state_of_charge=reading.state_of_charge,
            dc_energy_delivered_kwh=reading.dc_energy_delivered_kwh,
            battery_temp_c=reading.battery_temp_c,
            recorded_at=to_utc(reading.recorded_at),
            ingested_at=to_utc(ingested_at),
        ))
        self.session.flush()

    def vehicle_energy(self, vehicle_id: str, start: datetime, end: datetime):
        """(recorded_at, dc_energy_delivered_kwh) rows in [start, end), oldest first."""
        return self.session.execute(
            select(VehicleHistory.recorded_at, VehicleHistory.dc_energy_delivered_kwh)
            .where(
                VehicleHistory.vehicle_id == vehicle_id,
                VehicleHistory.recorded_at >= to_utc(start),
                VehicleHistory.recorded_at < to_utc(end),
            )
            .order_by(VehicleHistory.recorded_at.asc())
        ).all()

    def meter_energy(self, meter_id: str, start: datetime, end: datetime):
        """(recorded_at, ac_energy_consumed_kwh) rows in [start, end], oldest first."""
        return self.session.execute(
            select(MeterHistory.recorded_at, MeterHistory.ac_energy_consumed_kwh)
            .where(
                MeterHistory.meter_id == meter_id,
                MeterHistory.recorded_at >= to_utc(start),
                MeterHistory.recorded_at <= to_utc(end),
            )
            .order_by(MeterHistory.recorded_at.asc())
        ).all()

    def battery_temperature_stats(self, vehicle_id: str, start: datetime, end: datetime):
        """(count, avg, max, min) of battery temperature in [start, end)."""
        return self.session.execute(
            select(
                func.count(VehicleHistory.id),
                func.avg(VehicleHistory.battery_temp_c),
                func.max(VehicleHistory.battery_temp_c),
                func.min(VehicleHistory.battery_temp_c),
            ).where(
                VehicleHistory.vehicle_id == vehicle_id,
                VehicleHistory.recorded_at >= to_utc(start),
                VehicleHistory.recorded_at < to_utc(end),
            )
        ).one()


def purge_expired(session: Session, retention_days: int = 365, now: datetime | None = None) -> dict:
    """
    Delete history rows recorded before the retention horizon.
    Returns the number of deleted rows per table.
    """
    now = now or datetime.now(timezone.utc)
    horizon = to_utc(now) - timedelta(days=retention_days)
    meters = session.execute(
        delete(MeterHistory).where(MeterHistory.recorded_at < horizon),
        execution_options={"synchronize_session": False},
    )
    vehicles = session.execute(
        delete(VehicleHistory).where(VehicleHistory.recorded_at < horizon),
        execution_options={"synchronize_session": False},
    )
    return {
        MeterHistory.__tablename__: meters.rowcount,
        VehicleHistory.__tablename__: vehicles.rowcount,
    }
