"""Optimistic player state for a remotely controlled Winamp.

Actions change local state immediately and then send the command. A poll
loop fetches a PlayerSnapshot every second and merges it field by field: a
field written locally after the poll started keeps its local value until a
poll confirms it or the pending write expires.

Position is never ticked. It is stored as a raw value plus the time it was
written, and ``position`` adds the elapsed time while playing.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from httpq.client import HttpQClient
from httpq.errors import FailStreakError, HttpQError
from httpq.models import (
    REPEAT_CYCLE,
    ConnectionParams,
    PlayerSnapshot,
    PlaylistInfo,
    RepeatMode,
    Track,
)

log = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 1.0
DEFAULT_PENDING_TTL_MS = 5000
DEFAULT_RESTART_THRESHOLD_MS = 3000


class StateField(Enum):
    """Store fields that actions and polls can write."""

    TRACK = "track"
    IS_PLAYING = "is_playing"
    VOLUME = "volume"
    REPEAT_MODE = "repeat_mode"
    SHUFFLE = "shuffle"
    POSITION = "position"
    PLAYLIST = "playlist"
    IS_CONNECTED = "is_connected"


Patch = dict[StateField, Any]
Listener = Callable[["PlayerStore"], None]


@dataclass
class StoreState:
    track: Optional[Track] = None
    is_playing: bool = False
    repeat_mode: RepeatMode = "off"
    shuffle: bool = False
    volume: int = 0
    raw_position_ms: int = 0
    position_anchor: int = 0
    is_connected: bool = False
    playlist: PlaylistInfo = field(default_factory=PlaylistInfo)
    is_polling_enabled: bool = True
    last_fatal_failure: Optional[FailStreakError] = None

    def effective_position(self, now: int) -> int:
        if self.is_playing:
            return self.raw_position_ms + (now - self.position_anchor)
        return self.raw_position_ms


@dataclass(frozen=True)
class PendingWrite:
    written_at: int
    expected: Any


@dataclass(frozen=True)
class SnapshotApplied:
    """A polled snapshot and the time its poll began."""

    snapshot: PlayerSnapshot
    poll_started_at: int


def snapshot_patch(snapshot: PlayerSnapshot) -> Patch:
    return {
        StateField.TRACK: snapshot.track,
        StateField.IS_PLAYING: snapshot.is_playing,
        StateField.VOLUME: snapshot.volume,
        StateField.REPEAT_MODE: snapshot.repeat_mode,
        StateField.SHUFFLE: snapshot.shuffle,
        StateField.POSITION: snapshot.position_ms,
        StateField.PLAYLIST: snapshot.playlist,
        StateField.IS_CONNECTED: snapshot.is_connected,
    }


def _monotonic_ms() -> int:
    return int(time.monotonic() * 1000)


class PlayerStore:
    """Canonical player state shared by every UI surface."""

    def __init__(
        self,
        client: HttpQClient,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        pending_ttl_ms: int = DEFAULT_PENDING_TTL_MS,
        previous_restarts_track: bool = True,
        restart_threshold_ms: int = DEFAULT_RESTART_THRESHOLD_MS,
        clock: Optional[Callable[[], int]] = None,
    ):
        self._client = client
        self.poll_interval = poll_interval
        self.pending_ttl_ms = pending_ttl_ms
        self.previous_restarts_track = previous_restarts_track
        self.restart_threshold_ms = restart_threshold_ms
        self._clock = clock or _monotonic_ms

        self.state = StoreState(position_anchor=self._clock())
        self._pending: dict[StateField, PendingWrite] = {}
        self._listeners: list[Listener] = []

        self._generation = 0
        self._poll_task: Optional[asyncio.Task] = None
        self._run_loop = False

        self._seek_in_flight = False
        self._seek_target: Optional[int] = None

    # ── Read surface ──

    @property
    def client(self) -> HttpQClient:
        return self._client

    @property
    def track(self) -> Optional[Track]:
        return self.state.track

    @property
    def position(self) -> int:
        """Effective playback position in milliseconds."""
        return self.state.effective_position(self._clock())

    @property
    def volume(self) -> int:
        return self.state.volume

    @property
    def is_playing(self) -> bool:
        return self.state.is_playing

    @property
    def repeat_mode(self) -> RepeatMode:
        return self.state.repeat_mode

    @property
    def shuffle(self) -> bool:
        return self.state.shuffle

    @property
    def playlist(self) -> PlaylistInfo:
        return self.state.playlist

    @property
    def is_connected(self) -> bool:
        return self.state.is_connected

    @property
    def is_polling_enabled(self) -> bool:
        return self.state.is_polling_enabled

    @property
    def is_suspended(self) -> bool:
        return not self.state.is_polling_enabled and self.state.last_fatal_failure is not None

    @property
    def last_fatal_failure(self) -> Optional[FailStreakError]:
        return self.state.last_fatal_failure

    @property
    def pending_fields(self) -> set[StateField]:
        return set(self._pending)

    def to_dict(self) -> dict:
        failure = self.state.last_fatal_failure
        return {
            "track": self.track.model_dump() if self.track else None,
            "position_ms": self.position,
            "volume": self.volume,
            "is_playing": self.is_playing,
            "repeat_mode": self.repeat_mode,
            "shuffle": self.shuffle,
            "playlist": self.playlist.model_dump(),
            "is_connected": self.is_connected,
            "polling": self.is_polling_enabled,
            "suspended": self.is_suspended,
            "last_fatal_failure": (
                {"failure_count": failure.failure_count, "message": str(failure)}
                if failure
                else None
            ),
        }

    # ── Change notification ──

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call listener after every change. Returns an unsubscribe callable."""
        self._listeners.append(listener)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit_change(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                log.exception("Store listener %r failed", listener)

    # ── State writes ──

    def _write(self, patch: Patch, now: int) -> None:
        state = self.state
        for key, value in patch.items():
            if key is StateField.TRACK:
                state.track = value
            elif key is StateField.IS_PLAYING:
                state.is_playing = value
            elif key is StateField.VOLUME:
                state.volume = value
            elif key is StateField.REPEAT_MODE:
                state.repeat_mode = value
            elif key is StateField.SHUFFLE:
                state.shuffle = value
            elif key is StateField.POSITION:
                state.raw_position_ms = value
                state.position_anchor = now
            elif key is StateField.PLAYLIST:
                state.playlist = value
            elif key is StateField.IS_CONNECTED:
                state.is_connected = value
            else:
                raise KeyError(key)

    def _read(self, key: StateField, now: int) -> Any:
        if key is StateField.POSITION:
            return self.state.effective_position(now)
        return getattr(self.state, key.value)

    def _apply_optimistic(self, patch: Patch) -> None:
        now = self._clock()
        self._write(patch, now)
        for key, value in patch.items():
            self._pending[key] = PendingWrite(written_at=now, expected=value)
        self._emit_change()

    async def _run_action(
        self,
        name: str,
        patch: Optional[Patch],
        call: Callable[[], Awaitable[bool]],
        error_patch: Optional[Patch] = None,
    ) -> bool:
        if patch:
            self._apply_optimistic(patch)
        try:
            return await call()
        except HttpQError as e:
            log.warning("%s failed: %s", name, e)
            if error_patch:
                self._write(error_patch, self._clock())
                for key in error_patch:
                    self._pending.pop(key, None)
                self._emit_change()
            raise

    # ── Actions ──

    async def previous(self) -> bool:
        """Go to the previous track, or restart the current one past the threshold."""
        if self.previous_restarts_track and self.position > self.restart_threshold_ms:
            return await self.seek(0)
        return await self._run_action("previous", None, self._client.prev)

    async def next(self) -> bool:
        return await self._run_action("next", None, self._client.next)

    async def set_volume(self, level: int) -> bool:
        level = max(0, min(255, int(level)))
        return await self._run_action(
            "set_volume",
            {StateField.VOLUME: level},
            lambda: self._client.set_volume(level),
        )

    async def set_playing(self, playing: bool) -> bool:
        """Play or pause. Reverts the playing flag if the command fails."""
        previous = self.state.is_playing
        # Freeze the position on pause, re-anchor it on resume
        patch = {
            StateField.IS_PLAYING: playing,
            StateField.POSITION: self.position,
        }
        return await self._run_action(
            "set_playing",
            patch,
            self._client.play if playing else self._client.pause,
            error_patch={StateField.IS_PLAYING: previous},
        )

    async def toggle_playing(self) -> bool:
        return await self.set_playing(not self.state.is_playing)

    async def set_repeat(self, mode: RepeatMode) -> bool:
        if mode not in REPEAT_CYCLE:
            raise ValueError(f"Invalid repeat mode: {mode}")
        return await self._run_action(
            "set_repeat",
            {StateField.REPEAT_MODE: mode},
            lambda: self._client.set_repeat(mode),
        )

    async def toggle_repeat(self) -> bool:
        """Cycle off -> playlist -> track -> off."""
        return await self.set_repeat(REPEAT_CYCLE[self.state.repeat_mode])

    async def set_shuffle(self, enabled: bool) -> bool:
        return await self._run_action(
            "set_shuffle",
            {StateField.SHUFFLE: enabled},
            lambda: self._client.set_shuffle(enabled),
        )

    async def toggle_shuffle(self) -> bool:
        return await self.set_shuffle(not self.state.shuffle)

    async def seek(self, ms: int) -> bool:
        """Jump to ms in the current track.

        Only one seek is sent at a time. A seek arriving while one is in
        flight replaces the queued target and returns at once; the caller
        that owns the in-flight request sends the latest target when its
        call completes, even if that call failed. Only a failure of the
        latest target is raised.
        """
        ms = max(0, int(ms))
        self._apply_optimistic({StateField.POSITION: ms})
        self._seek_target = ms
        if self._seek_in_flight:
            log.debug("Seek to %d queued behind in-flight seek", ms)
            return True

        self._seek_in_flight = True
        success = True
        try:
            while self._seek_target is not None:
                target, self._seek_target = self._seek_target, None
                try:
                    success = await self._client.seek_to(target)
                except HttpQError as e:
                    if self._seek_target is None:
                        log.warning("seek failed: %s", e)
                        raise
                    log.warning("Seek to %d failed, sending queued seek: %s", target, e)
        finally:
            self._seek_in_flight = False
            self._seek_target = None
        return success

    # ── Polling ──

    def _sweep_pending(self, now: int) -> None:
        expired = [
            key
            for key, pending in self._pending.items()
            if now - pending.written_at >= self.pending_ttl_ms
        ]
        for key in expired:
            log.debug("Pending %s expired", key.value)
            del self._pending[key]

    def _merge_snapshot(self, event: SnapshotApplied) -> Patch:
        """Merge a polled snapshot into state. Returns the fields that changed."""
        now = self._clock()
        accepted = set()
        changes: Patch = {}

        for key, value in snapshot_patch(event.snapshot).items():
            pending = self._pending.get(key)
            if pending is not None:
                confirmed = value == pending.expected
                if pending.written_at > event.poll_started_at and not confirmed:
                    log.debug(
                        "Keeping local %s=%r over polled %r",
                        key.value,
                        pending.expected,
                        value,
                    )
                    continue
                del self._pending[key]
                if confirmed and key is StateField.POSITION:
                    # Already running from the confirmed value; re-anchoring would jump back
                    accepted.add(key)
                    continue

            accepted.add(key)
            if self._read(key, now) != value:
                changes[key] = value

        # A play/pause change needs a fresh anchor even if the position matches
        if (
            StateField.IS_PLAYING in changes
            and StateField.POSITION in accepted
            and StateField.POSITION not in changes
        ):
            changes[StateField.POSITION] = event.snapshot.position_ms

        if changes:
            self._write(changes, now)
        return changes

    async def poll(self) -> bool:
        """Run one polling tick. Returns True if a snapshot was merged."""
        if not self.state.is_polling_enabled:
            return False

        generation = self._generation
        poll_started_at = self._clock()
        self._sweep_pending(poll_started_at)

        try:
            snapshot = await self._client.get_player_state()
        except FailStreakError as e:
            if generation != self._generation:
                log.debug("Discarding fail streak from superseded poll")
                return False
            log.error("Polling suspended after %d failures", e.failure_count)
            self.state.is_polling_enabled = False
            self.state.last_fatal_failure = e
            self._merge_snapshot(SnapshotApplied(PlayerSnapshot.disconnected(), poll_started_at))
            self._emit_change()
            return False
        except HttpQError as e:
            log.warning("Poll failed: %s", e)
            return False

        if generation != self._generation:
            log.debug("Discarding result of superseded poll")
            return False

        if self._merge_snapshot(SnapshotApplied(snapshot, poll_started_at)):
            self._emit_change()
        return True

    async def _poll_loop(self, generation: int) -> None:
        log.info("Polling %s every %.1fs", self._client.params.base_url, self.poll_interval)
        while self.state.is_polling_enabled and generation == self._generation:
            try:
                await self.poll()
            except Exception:
                log.exception("Unexpected error while polling")
            if not self.state.is_polling_enabled or generation != self._generation:
                break
            await asyncio.sleep(self.poll_interval)
        log.info("Polling loop stopped")

    def _start_loop(self) -> None:
        if self._poll_task is not None and not self._poll_task.done():
            return
        self._poll_task = asyncio.create_task(self._poll_loop(self._generation))

    def _cancel_loop(self) -> None:
        self._generation += 1
        if self._poll_task is not None:
            self._poll_task.cancel()
            self._poll_task = None

    def start_polling(self) -> None:
        """Enable polling and run the poll loop on the current event loop.

        While suspended this only marks the loop as wanted; it starts once
        reconnect() succeeds.
        """
        self._run_loop = True
        if self.is_suspended:
            log.warning("Polling is suspended, call reconnect() to resume")
            return
        was_enabled = self.state.is_polling_enabled
        self.state.is_polling_enabled = True
        self._start_loop()
        if not was_enabled:
            self._emit_change()

    def stop_polling(self) -> None:
        was_enabled = self.state.is_polling_enabled
        self._run_loop = False
        self.state.is_polling_enabled = False
        self._cancel_loop()
        if was_enabled:
            self._emit_change()

    def _resume(self) -> None:
        self.state.is_polling_enabled = True
        if self._run_loop:
            self._start_loop()

    async def reconnect(self) -> bool:
        """Probe the plugin and, if it answers, leave the suspended state."""
        log.info("Reconnecting to %s", self._client.params.base_url)
        if not await self._client.is_connected():
            log.warning("Reconnect to %s failed", self._client.params.base_url)
            return False
        self._client.reset_failure_count()
        self.state.last_fatal_failure = None
        self.state.is_connected = True
        self._resume()
        self._emit_change()
        return True

    def reconfigure(self, params: ConnectionParams) -> None:
        """Switch to a different plugin and restart polling from scratch."""
        self._cancel_loop()
        self._client.configure(params)
        self._pending.clear()
        self.state.last_fatal_failure = None
        self.state.is_connected = False
        self._resume()
        self._emit_change()

    async def aclose(self) -> None:
        """Stop polling and wait for the poll loop to exit."""
        task = self._poll_task
        self.stop_polling()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass
