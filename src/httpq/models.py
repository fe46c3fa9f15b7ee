"""Pydantic models for HttpQ player data structures."""

from typing import Literal, Optional

from pydantic import BaseModel, Field

RepeatMode = Literal["off", "track", "playlist"]

REPEAT_CYCLE: dict[str, RepeatMode] = {
    "off": "playlist",
    "playlist": "track",
    "track": "off",
}


class ConnectionParams(BaseModel):
    """Where the HttpQ plugin listens and how to authenticate."""

    host: str = "127.0.0.1"
    port: int = 4800
    password: str = "pass"

    model_config = {"frozen": True}

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"


class TrackMetadata(BaseModel):
    """ID3 tag values reported by the plugin. Missing tags are None."""

    title: Optional[str] = None
    artist: Optional[str] = None
    album: Optional[str] = None
    year: Optional[str] = None
    genre: Optional[str] = None
    track_number: Optional[str] = None


class Track(BaseModel):
    """A playlist entry resolved for display.

    The id is only stable while the same playlist stays loaded.
    """

    id: str
    name: str
    duration_ms: int = 0
    artist: str
    album: Optional[str] = None
    year: Optional[str] = None
    genre: Optional[str] = None
    track_number: Optional[str] = None
    file_path: str = ""
    playlist_index: int = 0

    model_config = {"frozen": True}


class PlaylistInfo(BaseModel):
    """Position within the playlist and its length."""

    position: int = 0
    length: int = 0

    model_config = {"frozen": True}


class PlayerSnapshot(BaseModel):
    """Remote player state assembled from one round of polling calls."""

    track: Optional[Track] = None
    is_playing: bool = False
    is_paused: bool = False
    is_stopped: bool = True

    # Milliseconds into the current track
    position_ms: int = Field(default=0, ge=0)

    # Winamp volume scale, 0-255
    volume: int = Field(default=0, ge=0, le=255)

    playlist: PlaylistInfo = PlaylistInfo()
    repeat_mode: RepeatMode = "off"
    shuffle: bool = False
    is_connected: bool = False

    model_config = {"frozen": True}

    @classmethod
    def disconnected(cls) -> "PlayerSnapshot":
        """State reported while the remote player is unreachable."""
        return cls(
            track=None,
            is_playing=False,
            position_ms=0,
            volume=0,
            repeat_mode="off",
            shuffle=False,
            is_connected=False,
        )

    @property
    def state_name(self) -> str:
        if self.is_playing:
            return "playing"
        if self.is_paused:
            return "paused"
        return "stopped"
