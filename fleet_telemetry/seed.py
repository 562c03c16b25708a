# fleet_telemetry/seed.py
# Seed vehicle/meter mappings and synthetic charging history for local testing:
#   python -m fleet_telemetry.seed --vehicles 100 --hours 48 --interval 5
import argparse
import logging
import math
import random
from datetime import datetime, timedelta, timezone

from sqlalchemy import insert

from .current_state import CHARGING_ACTIVE, CHARGING_COMPLETE, CurrentStateUpserter
from .db import SessionLocal, get_engine
from .mapping import MappingStore
from .models import Base, MeterHistory, VehicleHistory
from .readings import MeterReading, VehicleReading

log = logging.getLogger(__name__)


def vehicle_id_for(i: int) -> str:
    return f"VEH-{i:04d}"

def meter_id_for(i: int) -> str:
    return f"MTR-{i:04d}"

def station_location(i: int) -> str:
    return f"Charging Station {i} - Zone {math.ceil(i / 100)}"

def charging_status_for(soc: int) -> str:
    return CHARGING_COMPLETE if soc >= 95 else CHARGING_ACTIVE


def seed_mappings(session, vehicles: int) -> int:
    store = MappingStore(session)
    created = 0
    for i in range(1, vehicles + 1):
        if store.ensure(vehicle_id_for(i), meter_id=meter_id_for(i), location=station_location(i)):
            created += 1
    return created

def seed_telemetry(session, vehicles: int, hours: int, interval_minutes: int, now=None, rng=None) -> int:
    """
    Paired vehicle (DC) and meter (AC) readings every interval_minutes over the
    last `hours` hours. AC = DC / efficiency with efficiency in [0.85, 0.95].
    """
    rng = rng or random.Random()
    now = now or datetime.now(timezone.utc)
    start = now - timedelta(hours=hours)
    steps = int(hours * 60 / interval_minutes) + 1
    timestamps = [start + timedelta(minutes=interval_minutes * k) for k in range(steps)]

    upserter = CurrentStateUpserter(session)
    written = 0
    for i in range(1, vehicles + 1):
        vehicle_rows = []
        meter_rows = []
        last = last_meter = None
        for k, ts in enumerate(timestamps):
            progress = k / len(timestamps)
            power_kw = 50 + rng.random() * 100
            efficiency = 0.85 + rng.random() * 0.1
            soc = min(20 + math.floor(progress * 80), 100)
            dc = round(power_kw * (interval_minutes / 60) * (0.8 + rng.random() * 0.4), 2)
            temp = round(25 + progress * 15 + rng.random() * 5, 2)
            vehicle_rows.append({
                "vehicle_id": vehicle_id_for(i),
                "state_of_charge": soc,
                "dc_energy_delivered_kwh": dc,
                "battery_temp_c": temp,
                "recorded_at": ts,
                "ingested_at": now,
            })
            ac = round(dc / efficiency, 2)
            voltage = round(220 + rng.random() * 20, 2)
            meter_rows.append({
                "meter_id": meter_id_for(i),
                "ac_energy_consumed_kwh": ac,
                "voltage": voltage,
                "recorded_at": ts,
                "ingested_at": now,
            })
            last = VehicleReading(vehicle_id_for(i), soc, dc, temp, ts)
            last_meter = MeterReading(meter_id_for(i), ac, voltage, ts)
        session.execute(insert(VehicleHistory), vehicle_rows)
        session.execute(insert(MeterHistory), meter_rows)
        if last is not None:
            upserter.upsert_vehicle(last, charging_status=charging_status_for(last.state_of_charge))
            upserter.upsert_meter(last_meter)
        written += len(vehicle_rows) + len(meter_rows)
    return written


def main(argv=None):
    parser = argparse.ArgumentParser(description="Seed fleet telemetry sample data")
    parser.add_argument("--vehicles", type=int, default=100)
    parser.add_argument("--hours", type=int, default=48)
    parser.add_argument("--interval", type=int, default=5, help="minutes between readings")
    parser.add_argument("--mappings-only", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)
    Base.metadata.create_all(bind=get_engine())
    session = SessionLocal()
    try:
        created = seed_mappings(session, args.vehicles)
        log.info("Created %d device mappings", created)
        if not args.mappings_only:
            written = seed_telemetry(session, args.vehicles, args.hours, args.interval)
            log.info("Wrote %d history rows", written)
        session.commit()
    finally:
        session.close()


if __name__ == "__main__":
    main()
