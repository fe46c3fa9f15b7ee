"""HttpQ request encoding and response decoding.

HttpQ is Winamp's plain-text remote-control protocol: every command is a GET
to ``/{command}?p={password}&...`` and every answer is a short text body.
"""

from enum import Enum
from typing import Any, Optional, Union
from urllib.parse import urlencode

from httpq.errors import EndpointUnavailableError, ProtocolDecodeError


class ResponseType(Enum):
    NUMBER = "number"
    BOOLEAN = "boolean"
    STRING = "string"


COMMANDS: dict[str, ResponseType] = {
    # System
    "getversion": ResponseType.STRING,
    # Playback control
    "play": ResponseType.BOOLEAN,
    "pause": ResponseType.BOOLEAN,
    "stop": ResponseType.BOOLEAN,
    "next": ResponseType.BOOLEAN,
    "prev": ResponseType.BOOLEAN,
    # Playback info (isplaying: 0=stopped, 1=playing, 3=paused)
    "isplaying": ResponseType.NUMBER,
    "getoutputtime": ResponseType.NUMBER,
    "jumptotime": ResponseType.BOOLEAN,
    "getcurrenttitle": ResponseType.STRING,
    # Volume
    "getvolume": ResponseType.NUMBER,
    "setvolume": ResponseType.BOOLEAN,
    # Playlist
    "getlistlength": ResponseType.NUMBER,
    "getlistpos": ResponseType.NUMBER,
    "setplaylistpos": ResponseType.BOOLEAN,
    "getplaylistfile": ResponseType.STRING,
    "getplaylisttitlelist": ResponseType.STRING,
    # Modes
    "repeat": ResponseType.BOOLEAN,
    "repeat_status": ResponseType.BOOLEAN,
    "shuffle": ResponseType.BOOLEAN,
    "shuffle_status": ResponseType.BOOLEAN,
    # Metadata
    "getid3tag": ResponseType.STRING,
    "hasid3tag": ResponseType.BOOLEAN,
}

Decoded = Union[int, bool, str]


def _stringify(value: Any) -> str:
    # str(True) would give "True"
    if isinstance(value, bool):
        return "1" if value else "0"
    return str(value)


def encode(
    command: str,
    params: Optional[dict[str, Any]] = None,
    auth_token: str = "",
    base_url: str = "",
) -> str:
    """Build the request URL for a command.

    Parameters set to None are left out. The password goes first as ``p``
    and is omitted when empty.
    """
    if command not in COMMANDS:
        raise ValueError(f"Unknown HttpQ command: {command}")

    query: list[tuple[str, str]] = []
    if auth_token:
        query.append(("p", auth_token))
    for key, value in (params or {}).items():
        if value is None:
            continue
        query.append((key, _stringify(value)))

    url = f"{base_url.rstrip('/')}/{command}"
    if query:
        url += "?" + urlencode(query)
    return url


def decode(command: str, raw_text: str) -> Decoded:
    """Parse a raw response body into the value type of its command."""
    response_type = COMMANDS.get(command)
    if response_type is None:
        raise ValueError(f"Unknown HttpQ command: {command}")

    text = raw_text.strip()

    if command == "getversion" and text == "0":
        raise EndpointUnavailableError("getversion returned 0; endpoint unavailable")

    if response_type is ResponseType.STRING:
        return text

    if response_type is ResponseType.BOOLEAN:
        if text not in ("0", "1"):
            raise ProtocolDecodeError(f"{command}: expected 0 or 1, got {text!r}")
        return text == "1"

    try:
        return int(text, 10)
    except ValueError:
        raise ProtocolDecodeError(f"{command}: expected a number, got {text!r}") from None
