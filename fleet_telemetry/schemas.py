# fleet_telemetry/schemas.py
from datetime import datetime
from typing import Literal, Union

from pydantic import BaseModel, Field

from .readings import MeterReading, VehicleReading, to_utc


class MeterPayload(BaseModel):
    meterId: str = Field(min_length=1, max_length=50, examples=["MTR-001"])
    kwhConsumedAc: float = Field(ge=0, allow_inf_nan=False, description="AC energy consumed in kWh")
    voltage: float = Field(ge=0, le=500, allow_inf_nan=False)
    timestamp: datetime = Field(description="ISO 8601 timestamp; naive values are taken as UTC")

    def to_reading(self) -> MeterReading:
        return MeterReading(
            meter_id=self.meterId,
            ac_energy_consumed_kwh=self.kwhConsumedAc,
            voltage=self.voltage,
            recorded_at=to_utc(self.timestamp),
        )


class VehiclePayload(BaseModel):
    vehicleId: str = Field(min_length=1, max_length=50, examples=["VEH-001"])
    soc: int = Field(ge=0, le=100, description="State of charge (battery %)")
    kwhDeliveredDc: float = Field(ge=0, allow_inf_nan=False, description="DC energy delivered to the battery in kWh")
    batteryTemp: float = Field(ge=-40, le=100, allow_inf_nan=False, description="Battery temperature in Celsius")
    timestamp: datetime

    def to_reading(self) -> VehicleReading:
        return VehicleReading(
            vehicle_id=self.vehicleId,
            state_of_charge=self.soc,
            dc_energy_delivered_kwh=self.kwhDeliveredDc,
            battery_temp_c=self.batteryTemp,
            recorded_at=to_utc(self.timestamp),
        )


class MeterTelemetry(BaseModel):
    type: Literal["METER"]
    payload: MeterPayload


class VehicleTelemetry(BaseModel):
    type: Literal["VEHICLE"]
    payload: VehiclePayload


# discriminated on "type" at the route
TelemetryRequest = Union[MeterTelemetry, VehicleTelemetry]


class TelemetryResponse(BaseModel):
    success: bool
    message: str
    timestamp: str
