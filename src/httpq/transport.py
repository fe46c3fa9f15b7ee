"""HTTP transport used by the HttpQ client.

A transport performs exactly one GET per call and never retries. Anything
that satisfies :class:`Transport` can be injected, which is how tests and
embedding hosts supply their own fetch implementation.
"""

import asyncio
import logging
from typing import NamedTuple, Optional, Protocol

import aiohttp

from httpq.errors import TransportError

log = logging.getLogger(__name__)


class TransportResponse(NamedTuple):
    status_code: int
    body: str


def decode_body(raw: bytes) -> str:
    """Decode a response body.

    The plugin sends no charset and writes titles and paths in the Windows
    ANSI codepage, so anything that is not valid UTF-8 is read as cp1252.
    """
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return raw.decode("cp1252", errors="replace")


class Transport(Protocol):
    async def get(self, url: str) -> TransportResponse:
        """Perform one GET. Raises TransportError when no response arrives."""
        ...


class AiohttpTransport:
    """Transport backed by a lazily created aiohttp session."""

    def __init__(self, timeout: float = 5.0):
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        return self._session

    async def get(self, url: str) -> TransportResponse:
        session = await self._get_session()
        try:
            async with session.get(url) as resp:
                raw = await resp.read()
                return TransportResponse(resp.status, decode_body(raw))
        except asyncio.TimeoutError:
            raise TransportError(f"Timed out after {self.timeout}s") from None
        except aiohttp.ClientError as e:
            raise TransportError(str(e) or type(e).__name__) from e

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
            log.debug("Closed HTTP session")
        self._session = None
