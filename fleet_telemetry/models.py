# fleet_telemetry/models.py
from sqlalchemy import Column, BigInteger, Integer, Float, DateTime, String, Index
from sqlalchemy.orm import declarative_base
from datetime import datetime, timezone

Base = declarative_base()

def _utcnow():
    return datetime.now(timezone.utc)

# SQLite only autoincrements INTEGER PRIMARY KEY
_HistoryId = BigInteger().with_variant(Integer(), "sqlite")

class MeterHistory(Base):
    __tablename__ = "meter_telemetry_history"
    id = Column(_HistoryId, primary_key=True, autoincrement=True)
    meter_id = Column(String(50), nullable=False)
    ac_energy_consumed_kwh = Column(Float, nullable=False)
    voltage = Column(Float, nullable=False)
    recorded_at = Column(DateTime(timezone=True), nullable=False)   # reading timestamp (UTC)
    ingested_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)   # server receipt

    __table_args__ = (
        Index("idx_meter_history_composite", "meter_id", "recorded_at"),
        Index("idx_meter_history_recorded_at", "recorded_at"),
    )

class VehicleHistory(Base):
    __tablename__ = "vehicle_telemetry_history"
    id = Column(_HistoryId, primary_key=True, autoincrement=True)
    vehicle_id = Column(String(50), nullable=False)
    state_of_charge = Column(Integer, nullable=False)   # percent
    dc_energy_delivered_kwh = Column(Float, nullable=False)
    battery_temp_c = Column(Float, nullable=False)
    recorded_at = Column(DateTime(timezone=True), nullable=False)
    ingested_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        Index("idx_vehicle_history_composite", "vehicle_id", "recorded_at"),
        Index("idx_vehicle_history_recorded_at", "recorded_at"),
    )

class MeterCurrent(Base):
    __tablename__ = "meters_current"
    meter_id = Column(String(50), primary_key=True)
    ac_energy_consumed_kwh = Column(Float, nullable=False)
    voltage = Column(Float, nullable=False)
    last_updated_at = Column(DateTime(timezone=True), nullable=False)   # recorded_at of the last processed reading

class VehicleCurrent(Base):
    __tablename__ = "vehicles_current"
    vehicle_id = Column(String(50), primary_key=True)
    state_of_charge = Column(Integer, nullable=False)
    dc_energy_delivered_kwh = Column(Float, nullable=False)
    battery_temp_c = Column(Float, nullable=False)
    charging_status = Column(String(20), nullable=False, default="ACTIVE")
    last_updated_at = Column(DateTime(timezone=True), nullable=False)

class VehicleMeterMapping(Base):
    __tablename__ = "vehicle_meter_mapping"
    vehicle_id = Column(String(50), primary_key=True)
    meter_id = Column(String(50), nullable=False, index=True)
    location = Column(String(100), nullable=True)
    installed_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
