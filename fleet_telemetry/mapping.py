# fleet_telemetry/mapping.py
import re
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from .db import dialect_insert
from .models import VehicleMeterMapping

VEHICLE_PREFIX = "VEH"
METER_PREFIX = "MTR"
# the prefix only counts as a whole token: VEH-1 but not VEHICLE-1
_VEHICLE_TOKEN = re.compile(rf"{VEHICLE_PREFIX}(?![A-Za-z])")


@dataclass(frozen=True)
class DeviceMapping:
    vehicle_id: str
    meter_id: str
    location: str | None
    installed_at: datetime


def derive_meter_id(vehicle_id: str) -> str:
    """
    VEH-0042 -> MTR-0042. Ids without the vehicle prefix token (VEHICLE-1, CAR9)
    get the meter prefix prepended.
    """
    if _VEHICLE_TOKEN.match(vehicle_id):
        return METER_PREFIX + vehicle_id[len(VEHICLE_PREFIX):]
    return f"{METER_PREFIX}-{vehicle_id}"

def synthetic_location(vehicle_id: str) -> str:
    return f"Auto-provisioned - {vehicle_id}"


class MappingStore:
    def __init__(self, session: Session):
        self.session = session

    def ensure(self, vehicle_id: str, meter_id: str | None = None, location: str | None = None) -> bool:
        """
        Insert the mapping unless one already exists for vehicle_id.
        A concurrent insert for the same vehicle resolves through the unique key,
        so no separate existence check is made. Returns True if a row was created.
        """
        stmt = dialect_insert(self.session, VehicleMeterMapping).values(
            vehicle_id=vehicle_id,
            meter_id=meter_id or derive_meter_id(vehicle_id),
            location=location if location is not None else synthetic_location(vehicle_id),
            installed_at=datetime.now(timezone.utc),
        ).on_conflict_do_nothing(index_elements=["vehicle_id"])
        result = self.session.execute(stmt)
        return result.rowcount == 1

    def resolve(self, vehicle_id: str) -> DeviceMapping | None:
        row = self.session.get(VehicleMeterMapping, vehicle_id)
        if row is None:
            return None
        return _to_mapping(row)

    def vehicles_for_meter(self, meter_id: str) -> list[DeviceMapping]:
        rows = self.session.scalars(
            select(VehicleMeterMapping)
            .where(VehicleMeterMapping.meter_id == meter_id)
            .order_by(VehicleMeterMapping.vehicle_id.asc())
        ).all()
        return [_to_mapping(r) for r in rows]


def _to_mapping(row: VehicleMeterMapping) -> DeviceMapping:
    return DeviceMapping(
        vehicle_id=row.vehicle_id,
        meter_id=row.meter_id,
        location=row.location,
        installed_at=row.installed_at,
    )
