"""Tests for the command-line interface."""

import asyncio

import pytest
from click.testing import CliRunner
from unittest.mock import patch

from httpq import cli
from httpq.client import HttpQClient
from httpq.models import ConnectionParams
from httpq.store import PlayerStore

from conftest import PLAYING_RESPONSES, FakeClock, FakeTransport


@pytest.fixture
def fake_client():
    return HttpQClient(FakeTransport(PLAYING_RESPONSES), ConnectionParams(password="secret"))


@pytest.fixture
def runner(fake_client):
    with patch.object(cli, "get_client", return_value=fake_client):
        yield CliRunner()


def test_format_ms():
    assert cli.format_ms(0) == "00:00"
    assert cli.format_ms(83000) == "01:23"
    assert cli.format_ms(-5) == "00:00"


class TestCommands:
    """Tests for the click commands against a fake plugin."""

    def test_status(self, runner, fake_client):
        result = runner.invoke(cli.main, ["status"])
        assert result.exit_code == 0
        assert "State:    playing" in result.output
        assert "Daft Punk - One More Time" in result.output
        assert "01:23 / 04:05" in result.output
        assert "Playlist: 3/12" in result.output
        assert "Shuffle:  on" in result.output
        assert fake_client.transport.closed

    def test_volume_set(self, runner, fake_client):
        result = runner.invoke(cli.main, ["vol", "120"])
        assert result.exit_code == 0
        assert "setvolume" in fake_client.transport.commands()

    def test_volume_out_of_range(self, runner):
        result = runner.invoke(cli.main, ["vol", "300"])
        assert result.exit_code != 0

    def test_repeat(self, runner, fake_client):
        result = runner.invoke(cli.main, ["repeat", "track"])
        assert result.exit_code == 0
        assert "Repeat: track" in result.output
        assert fake_client.transport.requests[-1].endswith("enable=1")

    def test_seek(self, runner, fake_client):
        result = runner.invoke(cli.main, ["seek", "90000"])
        assert result.exit_code == 0
        assert "Position: 01:30" in result.output
        assert fake_client.transport.requests[-1].endswith("ms=90000")

    def test_unreachable_plugin(self, runner, fake_client):
        fake_client.transport.down = True
        result = runner.invoke(cli.main, ["play"])
        assert result.exit_code == 1
        assert "Error:" in result.output


class TestDescribe:
    """Tests for the watch status line."""

    def test_suspended_store(self, fake_client):
        fake_client.transport.down = True
        store = PlayerStore(fake_client, clock=FakeClock())

        asyncio.run(store.poll())
        assert cli.describe(store).startswith("[disconnected]")

    def test_playing_store(self, fake_client):
        store = PlayerStore(fake_client, clock=FakeClock())

        asyncio.run(store.poll())
        line = cli.describe(store)
        assert line.startswith("[playing] Daft Punk - One More Time 01:23/04:05")
        assert "vol=200" in line

    def test_paused_store(self, fake_client):
        fake_client.transport.responses["isplaying"] = "3"
        store = PlayerStore(fake_client, clock=FakeClock())

        asyncio.run(store.poll())
        assert cli.describe(store).startswith("[not playing] Daft Punk - One More Time")

    def test_stopped_store(self, fake_client):
        fake_client.transport.responses["isplaying"] = "0"
        fake_client.transport.responses["getcurrenttitle"] = ""
        fake_client.transport.responses["getplaylistfile"] = ""
        store = PlayerStore(fake_client, clock=FakeClock())

        asyncio.run(store.poll())
        assert cli.describe(store).startswith("[stopped] (no track)")
