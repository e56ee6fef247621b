"""
Custom exceptions for the discovery engine.

Separates failures that end the run from failures that end one session.
"""


class DiscoveryError(Exception):
    """Base exception for all discovery errors."""

    pass


class InterfaceEnumerationError(DiscoveryError):
    """Raised when the network interfaces cannot be listed."""

    def __init__(self, cause: Exception):
        self.cause = cause
        super().__init__(f"Failed to enumerate network interfaces: {cause}")


class DecodeError(DiscoveryError):
    """Raised when an inbound datagram cannot be decoded."""

    def __init__(self, protocol: str, reason: str):
        self.protocol = protocol
        self.reason = reason
        super().__init__(f"invalid {protocol} message: {reason}")
