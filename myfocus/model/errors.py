"""Error taxonomy of the monitoring core."""

__all__ = [
    "BackendError",
    "CaptureError",
    "ConfigValidationError",
    "MonitorError",
    "OcrError",
    "PersistenceError",
    "ProbeError",
    "SessionAlreadyActiveError",
]


class MonitorError(Exception):
    """Base class for errors raised by the monitoring core."""


class ProbeError(MonitorError):
    """Foreground window information could not be read."""


class CaptureError(MonitorError):
    """Screen capture failed (no display, OS denial)."""


class OcrError(MonitorError):
    """Text extraction failed. Never leaves the OCR pipeline."""


class BackendError(MonitorError):
    """Classification backend failed (network, auth, response format)."""


class ConfigValidationError(MonitorError, ValueError):
    """Configuration was rejected before being adopted."""


class PersistenceError(MonitorError):
    """Storage read or write failed."""


class SessionAlreadyActiveError(MonitorError):
    """A timer session is already live."""
