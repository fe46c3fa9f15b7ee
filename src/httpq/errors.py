"""Exceptions raised by the HttpQ client and store."""

from typing import Optional


class HttpQError(Exception):
    """Base class for all HttpQ errors."""


class TransportError(HttpQError):
    """The HTTP request failed or returned a non-success status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ProtocolDecodeError(HttpQError):
    """A response did not match the shape expected for its command."""


class EndpointUnavailableError(ProtocolDecodeError):
    """The plugin answered the version query with "0"."""


class CallError(HttpQError):
    """A single remote call failed; the failure streak is below threshold."""

    def __init__(self, command: str, message: str):
        super().__init__(f"HttpQ call failed ({command}): {message}")
        self.command = command


class FailStreakError(HttpQError):
    """Too many consecutive calls failed; the remote is considered lost."""

    def __init__(self, failure_count: int, command: Optional[str] = None):
        super().__init__(f"{failure_count} consecutive HttpQ calls failed")
        self.failure_count = failure_count
        self.command = command
