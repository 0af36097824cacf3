"""Exception types shared across the service."""


class SmartHomeError(Exception):
    """Base class for service errors."""


class UpstreamError(SmartHomeError):
    """Raised when the language model call fails or returns no text."""

    def __init__(self, message: str, status: int = 0, body: str = ""):
        super().__init__(message)
        self.status = status
        self.body = body


class ValidationError(SmartHomeError):
    """Raised for caller input that cannot be stored (e.g. a bad timestamp)."""
