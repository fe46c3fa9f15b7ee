"""Command-line interface for Winamp HttpQ control."""

import asyncio
import logging
import sys
from typing import Optional

import click

from httpq.client import HttpQClient
from httpq.config import settings
from httpq.errors import HttpQError
from httpq.store import PlayerStore
from httpq.transport import AiohttpTransport


def get_client() -> HttpQClient:
    """Create HttpQ client from settings."""
    return HttpQClient(
        transport=AiohttpTransport(timeout=settings.httpq.timeout),
        params=settings.httpq.connection_params(),
        fail_streak_threshold=settings.sync.fail_streak_threshold,
    )


def get_store(client: HttpQClient) -> PlayerStore:
    """Create a player store from settings."""
    return PlayerStore(
        client,
        poll_interval=settings.sync.poll_interval,
        pending_ttl_ms=settings.sync.pending_ttl_ms,
        previous_restarts_track=settings.sync.previous_restarts_track,
        restart_threshold_ms=settings.sync.restart_threshold_ms,
    )


def format_ms(ms: int) -> str:
    """Format milliseconds as mm:ss."""
    minutes, seconds = divmod(max(0, ms) // 1000, 60)
    return f"{minutes:02d}:{seconds:02d}"


def run_with_client(func):
    """Run an async function with a fresh client, closing it afterwards."""
    client = get_client()

    async def _run():
        try:
            return await func(client)
        finally:
            await client.transport.close()

    try:
        return asyncio.run(_run())
    except HttpQError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@click.group()
@click.option("--host", envvar="HTTPQ_HTTPQ__HOST", default="127.0.0.1", help="Winamp host")
@click.option("--port", envvar="HTTPQ_HTTPQ__PORT", default=4800, help="HttpQ plugin port")
@click.option("--password", envvar="HTTPQ_HTTPQ__PASSWORD", default="pass", help="HttpQ password")
@click.option("-v", "--verbose", is_flag=True, help="Log at INFO level")
@click.pass_context
def main(ctx, host, port, password, verbose):
    """Winamp HttpQ control CLI."""
    ctx.ensure_object(dict)
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    settings.httpq.host = host
    settings.httpq.port = port
    settings.httpq.password = password


@main.command()
@click.pass_context
def status(ctx):
    """Show current playback status."""

    async def _status(client):
        s = await client.get_player_state()
        click.echo(f"State:    {s.state_name}")
        if s.track:
            click.echo(f"Track:    {s.track.artist} - {s.track.name}")
            click.echo(f"Position: {format_ms(s.position_ms)} / {format_ms(s.track.duration_ms)}")
        click.echo(f"Playlist: {s.playlist.position + 1}/{s.playlist.length}")
        click.echo(f"Volume:   {s.volume}")
        click.echo(f"Repeat:   {s.repeat_mode}")
        click.echo(f"Shuffle:  {'on' if s.shuffle else 'off'}")

    run_with_client(_status)


@main.command()
@click.pass_context
def playlist(ctx):
    """List the current playlist."""

    async def _playlist(client):
        tracks = await client.get_playlist()
        current = await client.call("getlistpos")
        for t in tracks:
            marker = " *" if t.playlist_index == current else ""
            click.echo(f"  {t.playlist_index + 1:3d}. {t.artist} - {t.name}{marker}")

    run_with_client(_playlist)


@main.command()
@click.pass_context
def play(ctx):
    """Start playback."""
    run_with_client(lambda client: client.play())
    click.echo("Play")


@main.command()
@click.pass_context
def pause(ctx):
    """Pause playback."""
    run_with_client(lambda client: client.pause())
    click.echo("Paused")


@main.command()
@click.pass_context
def stop(ctx):
    """Stop playback."""
    run_with_client(lambda client: client.stop())
    click.echo("Stopped")


@main.command("next")
@click.pass_context
def next_track(ctx):
    """Next track."""
    run_with_client(lambda client: client.next())
    click.echo("Next")


@main.command("prev")
@click.pass_context
def prev_track(ctx):
    """Previous track."""
    run_with_client(lambda client: client.prev())
    click.echo("Previous")


@main.command()
@click.argument("level", type=click.IntRange(0, 255), required=False)
@click.pass_context
def vol(ctx, level: Optional[int]):
    """Get or set volume (0-255)."""

    async def _vol(client):
        if level is not None:
            await client.set_volume(level)
        click.echo(f"Volume: {await client.call('getvolume')}")

    run_with_client(_vol)


@main.command()
@click.argument("ms", type=click.IntRange(min=0))
@click.pass_context
def seek(ctx, ms):
    """Jump to MS milliseconds into the current track."""
    run_with_client(lambda client: client.seek_to(ms))
    click.echo(f"Position: {format_ms(ms)}")


@main.command()
@click.argument("mode", type=click.Choice(["off", "track", "playlist"]))
@click.pass_context
def repeat(ctx, mode):
    """Set repeat mode."""
    run_with_client(lambda client: client.set_repeat(mode))
    click.echo(f"Repeat: {mode}")


@main.command()
@click.argument("state", type=click.Choice(["on", "off"]))
@click.pass_context
def shuffle(ctx, state):
    """Turn shuffle on or off."""
    run_with_client(lambda client: client.set_shuffle(state == "on"))
    click.echo(f"Shuffle: {state}")


def describe(store: PlayerStore) -> str:
    """One status line for the watch command."""
    if store.is_suspended:
        failure = store.last_fatal_failure
        return f"[disconnected] {failure.failure_count} failed calls, polling suspended"
    # The store does not tell paused from stopped
    if store.is_playing:
        state = "playing"
    elif store.track is None:
        state = "stopped"
    else:
        state = "not playing"
    track = f"{store.track.artist} - {store.track.name}" if store.track else "(no track)"
    duration = store.track.duration_ms if store.track else 0
    return (
        f"[{state}] {track} {format_ms(store.position)}/{format_ms(duration)}"
        f" vol={store.volume} repeat={store.repeat_mode}"
        f" shuffle={'on' if store.shuffle else 'off'}"
    )


@main.command()
@click.pass_context
def watch(ctx):
    """Follow player state until interrupted."""

    async def _watch(client):
        store = get_store(client)
        store.subscribe(lambda s: click.echo(describe(s)))
        store.start_polling()
        try:
            while True:
                await asyncio.sleep(3600)
        finally:
            await store.aclose()

    try:
        run_with_client(_watch)
    except KeyboardInterrupt:
        pass


@main.command()
@click.option("--port", default=9200, help="Server port")
@click.option("--bind", default="0.0.0.0", help="IP address to bind to")
@click.pass_context
def serve(ctx, port, bind):
    """Run the HTTP API server."""
    settings.server.port = port
    settings.server.host = bind
    click.echo(f"Starting Winamp Control API on {bind}:{port}...")
    click.echo(f"HttpQ host: {settings.httpq.host}:{settings.httpq.port}")

    from httpq.server import run_server

    run_server()


if __name__ == "__main__":
    main()
