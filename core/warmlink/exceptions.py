"""
Warmlink Custom Exceptions

Simple exception hierarchy for error handling.
"""


class WarmlinkError(Exception):
    """Base exception for Warmlink."""

    pass


class ConfigurationError(WarmlinkError):
    """Configuration is invalid."""

    pass


class ValidationError(WarmlinkError):
    """User input was rejected before any request was sent."""

    pass


class DeviceConnectionError(WarmlinkError):
    """Cannot reach the device (network error or rejected request)."""

    pass


class DeviceResponseError(WarmlinkError):
    """Device answered with a body that cannot be understood."""

    pass


class DeviceCommandError(WarmlinkError):
    """Device rejected a command with ok=false.

    The device's error string is kept verbatim in ``message``.
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class MalformedMessageError(WarmlinkError):
    """Push frame is not a tagged JSON object."""

    pass
