"""Winamp HttpQ control library."""

from httpq.client import HttpQClient
from httpq.errors import CallError, FailStreakError, HttpQError
from httpq.models import ConnectionParams, PlayerSnapshot, Track
from httpq.store import PlayerStore
from httpq.transport import AiohttpTransport

__all__ = [
    "AiohttpTransport",
    "CallError",
    "ConnectionParams",
    "FailStreakError",
    "HttpQClient",
    "HttpQError",
    "PlayerSnapshot",
    "PlayerStore",
    "Track",
]
