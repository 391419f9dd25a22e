"""Exceptions raised by the Nexus core and providers."""


class NexusError(Exception):
    """Base class for all Nexus errors."""


class GatewayError(NexusError):
    """The assistant gateway could not produce a reply."""


class DeviceUnavailableError(NexusError):
    """A capture or playback device is missing or failed to start."""

    def __init__(self, device: str, reason: str = ""):
        self.device = device
        self.reason = reason
        message = f"{device} unavailable"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class UnauthorizedError(NexusError):
    """An external request carried an invalid API key."""

    def __init__(self, message: str = "Error 401: Unauthorized. Invalid API Key."):
        super().__init__(message)
