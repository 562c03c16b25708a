# fleet_telemetry/analytics.py
import logging
import math
from bisect import bisect_left, bisect_right
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP, localcontext
from typing import Iterable

from sqlalchemy.exc import SQLAlchemyError

from .db import SessionLocal
from .errors import AggregationFailed, DeviceNotFound
from .history import HistoryWriter
from .mapping import MappingStore
from .readings import hour_floor_utc, iso_utc, to_utc

# device clocks are not synchronized; pair readings up to this far apart
PROXIMITY_TOLERANCE = timedelta(seconds=5)
DEFAULT_WINDOW = timedelta(hours=24)


@dataclass
class HourlyBucket:
    hour: datetime
    ac_consumed: float = 0.0
    dc_delivered: float = 0.0
    efficiency: float = 0.0

    def to_dict(self):
        return {
            "hour": iso_utc(self.hour),
            "acConsumed": self.ac_consumed,
            "dcDelivered": self.dc_delivered,
            "efficiency": self.efficiency,
        }


@dataclass
class EnergyMetrics:
    total_ac_consumed: float = 0.0
    total_dc_delivered: float = 0.0
    efficiency_ratio: float = 0.0
    power_loss: float = 0.0

    def to_dict(self):
        return {
            "totalAcConsumed": self.total_ac_consumed,
            "totalDcDelivered": self.total_dc_delivered,
            "efficiencyRatio": self.efficiency_ratio,
            "powerLoss": self.power_loss,
        }


@dataclass
class BatteryMetrics:
    avg_temperature: float = 0.0
    max_temperature: float = 0.0
    min_temperature: float = 0.0

    def to_dict(self):
        return {
            "avgTemperature": self.avg_temperature,
            "maxTemperature": self.max_temperature,
            "minTemperature": self.min_temperature,
        }


@dataclass
class PerformanceReport:
    vehicle_id: str
    start: datetime
    end: datetime
    energy_metrics: EnergyMetrics
    battery_metrics: BatteryMetrics
    hourly_breakdown: list[HourlyBucket] = field(default_factory=list)

    def to_dict(self):
        return {
            "vehicleId": self.vehicle_id,
            "period": {"start": iso_utc(self.start), "end": iso_utc(self.end)},
            "energyMetrics": self.energy_metrics.to_dict(),
            "batteryMetrics": self.battery_metrics.to_dict(),
            "hourlyBreakdown": [b.to_dict() for b in self.hourly_breakdown],
        }


def round_half_up(value: float, places: int) -> float:
    """
    Round half away from zero at the given decimal position.
    Goes through str() so 125.505 rounds to 125.51, not to the binary 125.50499...
    Non-finite values come back unchanged.
    """
    d = Decimal(str(value))
    if not d.is_finite():
        return value
    with localcontext() as ctx:
        # quantize needs every integer digit plus the requested places
        ctx.prec = max(28, d.adjusted() + places + 2)
        return float(d.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP))

def safe_ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator > 0 else 0.0


def correlate_hourly(vehicle_rows: Iterable, meter_rows: Iterable, tolerance: timedelta = PROXIMITY_TOLERANCE) -> list[HourlyBucket]:
    """
    Proximity join of vehicle (recorded_at, dc_kwh) rows against meter
    (recorded_at, ac_kwh) rows, summed into hourly buckets, most recent first.

    Each vehicle row pairs with every meter row whose recorded_at lies within
    ``tolerance`` of it (both ends inclusive) and contributes its DC once per
    pair. A vehicle row with no meter partner still contributes its DC once,
    with no AC.
    """
    meters = sorted((to_utc(ts), float(ac)) for ts, ac in meter_rows)
    meter_times = [ts for ts, _ in meters]

    buckets: dict[datetime, HourlyBucket] = {}
    for recorded_at, dc in vehicle_rows:
        ts = to_utc(recorded_at)
        dc = float(dc)
        hour = hour_floor_utc(ts)
        bucket = buckets.get(hour)
        if bucket is None:
            bucket = buckets[hour] = HourlyBucket(hour=hour)

        lo = bisect_left(meter_times, ts - tolerance)
        hi = bisect_right(meter_times, ts + tolerance)
        if lo == hi:
            bucket.dc_delivered += dc
            continue
        for _, ac in meters[lo:hi]:
            bucket.dc_delivered += dc
            bucket.ac_consumed += ac

    for bucket in buckets.values():
        bucket.efficiency = safe_ratio(bucket.dc_delivered, bucket.ac_consumed)
    return sorted(buckets.values(), key=lambda b: b.hour, reverse=True)

def summarize_energy(buckets: Iterable[HourlyBucket]) -> EnergyMetrics:
    total_ac = 0.0
    total_dc = 0.0
    for b in buckets:
        total_ac += b.ac_consumed
        total_dc += b.dc_delivered
    # ratio and loss come from the unrounded totals
    return EnergyMetrics(
        total_ac_consumed=round_half_up(total_ac, 2),
        total_dc_delivered=round_half_up(total_dc, 2),
        efficiency_ratio=round_half_up(safe_ratio(total_dc, total_ac), 3),
        power_loss=round_half_up(total_ac - total_dc, 2),
    )

def summarize_battery(count, avg_temp, max_temp, min_temp) -> BatteryMetrics:
    if not count:
        return BatteryMetrics()
    return BatteryMetrics(
        avg_temperature=float(avg_temp),
        max_temperature=float(max_temp),
        min_temperature=float(min_temp),
    )


class PerformanceAnalyzer:
    """
    Read-only energy efficiency report for one vehicle, correlating its DC
    history with the AC history of the meter it is mapped to.
    """

    def __init__(self, session_factory=None, *, logger: logging.Logger | None = None):
        self._session_factory = session_factory or SessionLocal
        self.log = logger or logging.getLogger(__name__)

    def compute_performance(self, vehicle_id: str, start: datetime | None = None, end: datetime | None = None) -> PerformanceReport:
        end = to_utc(end) if end is not None else datetime.now(timezone.utc)
        start = to_utc(start) if start is not None else end - DEFAULT_WINDOW

        session = self._session_factory()
        operation = "resolve mapping"
        try:
            mapping = MappingStore(session).resolve(vehicle_id)
            if mapping is None:
                raise DeviceNotFound(vehicle_id)

            history = HistoryWriter(session)
            operation = "hourly correlation scan"
            vehicle_rows = history.vehicle_energy(vehicle_id, start, end)
            meter_rows = history.meter_energy(
                mapping.meter_id, start - PROXIMITY_TOLERANCE, end + PROXIMITY_TOLERANCE
            )
            operation = "battery metrics scan"
            battery = summarize_battery(*history.battery_temperature_stats(vehicle_id, start, end))
        except SQLAlchemyError as exc:
            self.log.error("Analytics %s failed for %s: %s", operation, vehicle_id, exc)
            raise AggregationFailed(vehicle_id, operation, str(exc)) from exc
        finally:
            session.close()

        hourly = correlate_hourly(vehicle_rows, meter_rows)
        energy = summarize_energy(hourly)
        if not all(math.isfinite(v) for v in energy.to_dict().values()):
            self.log.error("Energy totals for %s overflowed a float", vehicle_id)
            raise AggregationFailed(vehicle_id, "energy summary", "non-finite total")
        report = PerformanceReport(
            vehicle_id=vehicle_id,
            start=start,
            end=end,
            energy_metrics=energy,
            battery_metrics=battery,
            hourly_breakdown=hourly,
        )
        self.log.info(
            "Generated performance analytics for %s from %s to %s (meter %s, %d buckets)",
            vehicle_id, iso_utc(start), iso_utc(end), mapping.meter_id, len(hourly),
        )
        return report
