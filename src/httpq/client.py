"""HttpQ remote-control client."""

import asyncio
import logging
from typing import Any, Optional

from httpq import codec
from httpq.errors import (
    CallError,
    FailStreakError,
    HttpQError,
    ProtocolDecodeError,
    TransportError,
)
from httpq.models import (
    REPEAT_CYCLE,
    ConnectionParams,
    PlayerSnapshot,
    PlaylistInfo,
    RepeatMode,
    Track,
    TrackMetadata,
)
from httpq.transport import Transport

log = logging.getLogger(__name__)

DEFAULT_FAIL_STREAK_THRESHOLD = 5

# isplaying answers
STATUS_STOPPED = 0
STATUS_PLAYING = 1
STATUS_PAUSED = 3

ID3_TAGS = "t,a,l,y,g,r"
ID3_DELIM = ";"
TITLE_LIST_DELIM = ";"


def parse_track_title(title: str) -> tuple[Optional[str], Optional[str]]:
    """Split a display title of the form "Artist - Title".

    Returns (artist, title). Only the first separator counts, so the title
    itself may contain " - ".
    """
    if not title:
        return None, None
    artist, sep, rest = title.partition(" - ")
    if not sep:
        return None, title.strip() or None
    return artist.strip() or None, rest.strip() or None


def parse_id3_tags(raw: str) -> TrackMetadata:
    """Parse a getid3tag answer requested with ID3_TAGS."""
    if not raw:
        return TrackMetadata()
    values = raw.split(ID3_DELIM)
    values += [""] * (6 - len(values))
    title, artist, album, year, genre, track_number = values[:6]
    return TrackMetadata(
        title=title or None,
        artist=artist or None,
        album=album or None,
        year=year or None,
        genre=genre or None,
        track_number=track_number or None,
    )


def build_track(
    title: str,
    file_path: str,
    playlist_index: int,
    duration_ms: int,
    metadata: Optional[TrackMetadata] = None,
) -> Optional[Track]:
    """Combine the raw title, file and ID3 metadata into a Track.

    Tag values win over the parsed title, which wins over the raw title.
    """
    if not title and not file_path:
        return None
    metadata = metadata or TrackMetadata()
    parsed_artist, parsed_title = parse_track_title(title)
    return Track(
        id=f"{playlist_index}-{file_path}",
        name=metadata.title or parsed_title or title or "Unknown Track",
        duration_ms=duration_ms,
        artist=metadata.artist or parsed_artist or "Unknown Artist",
        album=metadata.album,
        year=metadata.year,
        genre=metadata.genre,
        track_number=metadata.track_number,
        file_path=file_path,
        playlist_index=playlist_index,
    )


class HttpQClient:
    """Async client for the Winamp HttpQ plugin."""

    def __init__(
        self,
        transport: Transport,
        params: Optional[ConnectionParams] = None,
        fail_streak_threshold: int = DEFAULT_FAIL_STREAK_THRESHOLD,
    ):
        self.transport = transport
        self.params = params or ConnectionParams()
        self.fail_streak_threshold = fail_streak_threshold
        self.failure_count = 0
        self._connected = False
        # The plugin only knows repeat on/off; track vs playlist is ours.
        self._repeat_mode: RepeatMode = "off"
        self._repeat_choice: RepeatMode = "playlist"

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def repeat_mode(self) -> RepeatMode:
        return self._repeat_mode

    async def call(self, command: str, **params: Any) -> codec.Decoded:
        """Issue one command and return its decoded answer.

        Raises CallError on failure, or FailStreakError once
        fail_streak_threshold calls in a row have failed.
        """
        url = codec.encode(command, params, self.params.password, self.params.base_url)
        log.debug("Calling %s %s", command, params)
        try:
            response = await self.transport.get(url)
            if not 200 <= response.status_code < 300:
                raise TransportError(
                    f"HTTP {response.status_code}: {response.body.strip()}",
                    status_code=response.status_code,
                )
            value = codec.decode(command, response.body)
        except (TransportError, ProtocolDecodeError) as e:
            self.failure_count += 1
            self._connected = False
            if self.failure_count >= self.fail_streak_threshold:
                log.error(
                    "%d consecutive HttpQ calls failed, last was %s: %s",
                    self.failure_count,
                    command,
                    e,
                )
                raise FailStreakError(self.failure_count, command) from e
            log.warning("HttpQ call %s failed (%d in a row): %s", command, self.failure_count, e)
            raise CallError(command, str(e)) from e

        self.failure_count = 0
        self._connected = True
        return value

    async def get_player_state(self) -> PlayerSnapshot:
        """Fetch everything the UI shows in one concurrent round of calls."""
        results = await asyncio.gather(
            self.call("isplaying"),
            self.get_current_position(),
            self.get_track_length(),
            self.call("getvolume"),
            self.call("getlistpos"),
            self.call("getlistlength"),
            self.call("repeat_status"),
            self.call("shuffle_status"),
            self.call("getcurrenttitle"),
            self.call("getplaylistfile"),
            return_exceptions=True,
        )
        errors = [r for r in results if isinstance(r, BaseException)]
        if errors:
            # Report the call that crossed the threshold, not a later one
            fatal = [e for e in errors if isinstance(e, FailStreakError)]
            if fatal:
                raise min(fatal, key=lambda e: e.failure_count)
            raise errors[0]

        (
            status,
            position,
            length,
            volume,
            playlist_pos,
            playlist_len,
            repeat_on,
            shuffle_on,
            title,
            file_path,
        ) = results

        self._repeat_mode = self._repeat_choice if repeat_on else "off"
        connected = self._connected

        track = await self.resolve_track(title, file_path, playlist_pos, length)

        return PlayerSnapshot(
            track=track,
            is_playing=status == STATUS_PLAYING,
            is_paused=status == STATUS_PAUSED,
            is_stopped=status == STATUS_STOPPED,
            position_ms=max(0, position),
            volume=min(255, max(0, volume)),
            playlist=PlaylistInfo(position=playlist_pos, length=playlist_len),
            repeat_mode=self._repeat_mode,
            shuffle=shuffle_on,
            is_connected=connected,
        )

    async def get_current_position(self) -> int:
        """Playback position in milliseconds."""
        return await self.call("getoutputtime", frmt=0)

    async def get_track_length(self) -> int:
        """Current track length in milliseconds (the plugin reports seconds)."""
        seconds = await self.call("getoutputtime", frmt=1)
        return max(0, seconds) * 1000

    async def get_track_metadata(self, index: Optional[int] = None) -> TrackMetadata:
        """Read ID3 tags for a playlist entry, or the current track.

        Ordinary call failures yield empty metadata; a fail streak propagates.
        """
        try:
            has_tag = await self.call("hasid3tag", index=index)
            if not has_tag:
                return TrackMetadata()
            raw = await self.call("getid3tag", tags=ID3_TAGS, delim=ID3_DELIM, index=index)
        except CallError as e:
            log.debug("No ID3 metadata for index %s: %s", index, e)
            return TrackMetadata()
        return parse_id3_tags(raw)

    async def resolve_track(
        self, title: str, file_path: str, playlist_index: int, duration_ms: int
    ) -> Optional[Track]:
        if not title and not file_path:
            return None
        metadata = await self.get_track_metadata(playlist_index)
        return build_track(title, file_path, playlist_index, duration_ms, metadata)

    async def get_playlist(self) -> list[Track]:
        """Resolve every playlist entry. Durations are unknown (0)."""
        length = await self.call("getlistlength")
        titles = await self.call("getplaylisttitlelist", delim=TITLE_LIST_DELIM)
        if not titles:
            return []

        title_list = titles.split(TITLE_LIST_DELIM)
        playlist = []
        for index in range(min(length, len(title_list))):
            file_path = await self.call("getplaylistfile", index=index)
            track = await self.resolve_track(title_list[index], file_path, index, 0)
            if track is not None:
                playlist.append(track)
        return playlist

    async def get_version(self) -> str:
        return await self.call("getversion")

    async def is_connected(self) -> bool:
        """Probe the plugin with a version query."""
        try:
            await self.get_version()
            return True
        except HttpQError:
            return False

    async def play(self) -> bool:
        """Start playback."""
        return bool(await self.call("play"))

    async def pause(self) -> bool:
        """Pause playback."""
        return bool(await self.call("pause"))

    async def stop(self) -> bool:
        """Stop playback."""
        return bool(await self.call("stop"))

    async def next(self) -> bool:
        """Skip to next track."""
        return bool(await self.call("next"))

    async def prev(self) -> bool:
        """Skip to previous track."""
        return bool(await self.call("prev"))

    async def set_volume(self, level: int) -> bool:
        """Set volume on Winamp's 0-255 scale."""
        return bool(await self.call("setvolume", level=max(0, min(255, int(level)))))

    async def seek_to(self, milliseconds: int) -> bool:
        return bool(await self.call("jumptotime", ms=max(0, int(milliseconds))))

    async def set_playlist_position(self, index: int) -> bool:
        return bool(await self.call("setplaylistpos", index=index))

    async def set_repeat(self, mode: RepeatMode) -> bool:
        """Switch the remote repeat flag and remember which mode was asked for."""
        if mode not in REPEAT_CYCLE:
            raise ValueError(f"Invalid repeat mode: {mode}")
        success = bool(await self.call("repeat", enable=mode != "off"))
        self._repeat_mode = mode
        if mode != "off":
            self._repeat_choice = mode
        return success

    async def toggle_repeat(self) -> RepeatMode:
        """Cycle off -> playlist -> track -> off."""
        next_mode = REPEAT_CYCLE[self._repeat_mode]
        await self.set_repeat(next_mode)
        return next_mode

    async def set_shuffle(self, enabled: bool) -> bool:
        return bool(await self.call("shuffle", enable=enabled))

    async def toggle_shuffle(self) -> bool:
        current = await self.call("shuffle_status")
        enabled = not current
        await self.set_shuffle(enabled)
        return enabled

    def configure(self, params: ConnectionParams) -> None:
        """Point the client at a different plugin. The fail streak survives."""
        self.params = params
        self._connected = False
        log.info("HttpQ client configured for %s", params.base_url)

    def reset_failure_count(self) -> None:
        self.failure_count = 0
