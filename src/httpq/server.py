"""FastAPI HTTP server exposing a shared player store."""

from contextlib import asynccontextmanager
from typing import Literal, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from httpq.client import HttpQClient
from httpq.config import settings
from httpq.errors import HttpQError
from httpq.models import Track
from httpq.store import PlayerStore
from httpq.transport import AiohttpTransport


# Request/Response models
class VolumeRequest(BaseModel):
    level: int = Field(ge=0, le=255)


class SeekRequest(BaseModel):
    ms: int = Field(ge=0)


class RepeatRequest(BaseModel):
    mode: Literal["off", "track", "playlist"]


class ShuffleRequest(BaseModel):
    enabled: bool


class PlaylistResponse(BaseModel):
    tracks: list[Track]


class ResultResponse(BaseModel):
    success: bool
    message: Optional[str] = None


# Global store, owned by the lifespan
store: Optional[PlayerStore] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the store and start polling on startup."""
    global store

    transport = AiohttpTransport(timeout=settings.httpq.timeout)
    client = HttpQClient(
        transport=transport,
        params=settings.httpq.connection_params(),
        fail_streak_threshold=settings.sync.fail_streak_threshold,
    )
    store = PlayerStore(
        client,
        poll_interval=settings.sync.poll_interval,
        pending_ttl_ms=settings.sync.pending_ttl_ms,
        previous_restarts_track=settings.sync.previous_restarts_track,
        restart_threshold_ms=settings.sync.restart_threshold_ms,
    )
    store.start_polling()

    yield

    await store.aclose()
    await transport.close()
    store = None


app = FastAPI(
    title="Winamp Control API",
    description="HTTP API for controlling Winamp through the HttpQ plugin",
    version="0.1.0",
    lifespan=lifespan,
)

# Enable CORS for browser access
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_store() -> PlayerStore:
    if not store:
        raise HTTPException(status_code=503, detail="Store not initialized")
    return store


async def run_action(action) -> ResultResponse:
    """Await a store action, mapping remote failures to 502."""
    try:
        success = await action
    except HttpQError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return ResultResponse(success=success)


@app.get("/")
async def root():
    """API info."""
    return {
        "name": "Winamp Control API",
        "version": "0.1.0",
        "httpq_host": settings.httpq.host,
        "httpq_port": settings.httpq.port,
    }


@app.get("/state")
async def get_state():
    """Current store state, including optimistic changes."""
    return get_store().to_dict()


@app.get("/playlist", response_model=PlaylistResponse)
async def get_playlist():
    """Resolve the full playlist."""
    s = get_store()
    try:
        tracks = await s.client.get_playlist()
    except HttpQError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return PlaylistResponse(tracks=tracks)


@app.post("/transport/play", response_model=ResultResponse)
async def play():
    """Start playback."""
    return await run_action(get_store().set_playing(True))


@app.post("/transport/pause", response_model=ResultResponse)
async def pause():
    """Pause playback."""
    return await run_action(get_store().set_playing(False))


@app.post("/transport/toggle", response_model=ResultResponse)
async def toggle():
    """Toggle between playing and paused."""
    return await run_action(get_store().toggle_playing())


@app.post("/transport/stop", response_model=ResultResponse)
async def stop():
    """Stop playback."""
    return await run_action(get_store().client.stop())


@app.post("/transport/next", response_model=ResultResponse)
async def next_track():
    """Skip to next track."""
    return await run_action(get_store().next())


@app.post("/transport/prev", response_model=ResultResponse)
async def prev_track():
    """Previous track, or restart the current one."""
    return await run_action(get_store().previous())


@app.post("/seek", response_model=ResultResponse)
async def seek(request: SeekRequest):
    """Jump within the current track."""
    return await run_action(get_store().seek(request.ms))


@app.post("/volume", response_model=ResultResponse)
async def set_volume(request: VolumeRequest):
    """Set volume (0-255)."""
    return await run_action(get_store().set_volume(request.level))


@app.post("/repeat", response_model=ResultResponse)
async def set_repeat(request: RepeatRequest):
    """Set repeat mode."""
    return await run_action(get_store().set_repeat(request.mode))


@app.post("/shuffle", response_model=ResultResponse)
async def set_shuffle(request: ShuffleRequest):
    """Turn shuffle on or off."""
    return await run_action(get_store().set_shuffle(request.enabled))


@app.post("/reconnect", response_model=ResultResponse)
async def reconnect():
    """Probe the plugin and resume polling if it answers."""
    success = await get_store().reconnect()
    if success:
        return ResultResponse(success=True, message="Reconnected")
    return ResultResponse(success=False, message="Winamp is still unreachable")


def run_server():
    """Run the API server."""
    import uvicorn

    uvicorn.run(
        "httpq.server:app",
        host=settings.server.host,
        port=settings.server.port,
        reload=False,
    )


if __name__ == "__main__":
    run_server()
