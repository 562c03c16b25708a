# fleet_telemetry/errors.py
# Exceptions raised by the ingestion and analytics paths


class TelemetryError(Exception):
    """Base exception for all fleet_telemetry errors."""


class UnrecognizedKind(TelemetryError):
    """Reading does not belong to a known device class."""

    def __init__(self, kind: str) -> None:
        self.kind = kind
        super().__init__(f"Unknown telemetry type: {kind}")


class IngestionFailed(TelemetryError):
    """The transactional write for a reading failed and was rolled back."""

    def __init__(self, device_id: str, kind: str, reason: str = "") -> None:
        self.device_id = device_id
        self.kind = kind
        message = f"Failed to ingest {kind} reading for {device_id}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class DeviceNotFound(TelemetryError):
    """No device mapping exists for the requested vehicle."""

    def __init__(self, vehicle_id: str) -> None:
        self.vehicle_id = vehicle_id
        super().__init__(f"Vehicle {vehicle_id} not found")


class AggregationFailed(TelemetryError):
    """A read or scan behind an analytics request failed."""

    def __init__(self, vehicle_id: str, operation: str, reason: str = "") -> None:
        self.vehicle_id = vehicle_id
        self.operation = operation
        message = f"{operation} failed for {vehicle_id}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
