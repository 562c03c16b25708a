# fleet_telemetry/readings.py
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import ClassVar, Union


class ReadingKind(str, Enum):
    METER = "METER"
    VEHICLE = "VEHICLE"


def to_utc(dt: datetime) -> datetime:
    # naive values come back from SQLite; everything is stored as UTC
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)

def hour_floor_utc(dt: datetime) -> datetime:
    return to_utc(dt).replace(minute=0, second=0, microsecond=0)

def iso_utc(dt: datetime) -> str:
    return to_utc(dt).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class MeterReading:
    meter_id: str
    ac_energy_consumed_kwh: float
    voltage: float
    recorded_at: datetime

    kind: ClassVar[ReadingKind] = ReadingKind.METER

    @property
    def device_id(self) -> str:
        return self.meter_id


@dataclass(frozen=True)
class VehicleReading:
    vehicle_id: str
    state_of_charge: int
    dc_energy_delivered_kwh: float
    battery_temp_c: float
    recorded_at: datetime

    kind: ClassVar[ReadingKind] = ReadingKind.VEHICLE

    @property
    def device_id(self) -> str:
        return self.vehicle_id


Reading = Union[MeterReading, VehicleReading]
