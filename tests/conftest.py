"""Shared fakes for HttpQ tests."""

from typing import Callable, Union
from urllib.parse import parse_qs, urlsplit

import pytest

from httpq.client import HttpQClient
from httpq.errors import TransportError
from httpq.models import ConnectionParams
from httpq.transport import TransportResponse

Answer = Union[str, TransportResponse, Exception, Callable[[dict], str]]


# What the plugin answers while playing track 3 of 12
PLAYING_RESPONSES: dict[str, Answer] = {
    "getversion": "1.0",
    "isplaying": "1",
    "getoutputtime": lambda q: "83000" if q.get("frmt") == ["0"] else "245",
    "getvolume": "200",
    "getlistpos": "2",
    "getlistlength": "12",
    "repeat_status": "0",
    "shuffle_status": "1",
    "getcurrenttitle": "Daft Punk - One More Time",
    "getplaylistfile": "C:\\Music\\Daft Punk\\One More Time.mp3",
    "hasid3tag": "0",
    "play": "1",
    "pause": "1",
    "stop": "1",
    "next": "1",
    "prev": "1",
    "setvolume": "1",
    "jumptotime": "1",
    "repeat": "1",
    "shuffle": "1",
    "setplaylistpos": "1",
}


class FakeTransport:
    """Answers HttpQ requests from a command -> answer table."""

    def __init__(self, responses=None):
        self.responses: dict[str, Answer] = dict(responses or {})
        self.requests: list[str] = []
        self.down = False
        self.closed = False

    async def get(self, url: str) -> TransportResponse:
        self.requests.append(url)
        if self.down:
            raise TransportError("Connection refused")

        parts = urlsplit(url)
        command = parts.path.lstrip("/")
        query = parse_qs(parts.query)
        answer = self.responses.get(command)
        if answer is None:
            return TransportResponse(404, "Not found")
        if isinstance(answer, Exception):
            raise answer
        if isinstance(answer, TransportResponse):
            return answer
        if callable(answer):
            answer = answer(query)
        return TransportResponse(200, answer)

    def commands(self) -> list[str]:
        return [urlsplit(url).path.lstrip("/") for url in self.requests]

    async def close(self) -> None:
        self.closed = True


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, now: int = 1000):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def transport():
    return FakeTransport(PLAYING_RESPONSES)


@pytest.fixture
def client(transport):
    return HttpQClient(
        transport,
        ConnectionParams(host="winamp.local", port=4800, password="secret"),
    )


@pytest.fixture
def clock():
    return FakeClock()
