"""
Exceptions raised by caller-facing chatlink operations.
"""


class ChatlinkError(Exception):
    """Base class for chatlink errors."""


class ClientNotReadyError(ChatlinkError):
    """The session is not ready to serve send/list operations."""

    def __init__(self, message: str = "Messaging client is not ready"):
        super().__init__(message)


class ClientUnavailableError(ChatlinkError):
    """The manager runs in degraded mode and has no usable client."""

    def __init__(self, message: str = "Messaging client is unavailable"):
        super().__init__(message)


class DriverLoadError(ChatlinkError):
    """A configured client driver could not be imported."""
