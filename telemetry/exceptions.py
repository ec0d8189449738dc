"""Exception types raised by the telemetry pipeline."""


class TelemetryError(Exception):
    """Base class for telemetry failures."""


class ValidationError(TelemetryError):
    """An inbound payload could not be turned into an error record."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class UnknownCategoryError(TelemetryError, ValueError):
    """A log store category that is not configured."""
