"""Tests for the command line and the application lifecycle."""

from __future__ import annotations

import asyncio

import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

import config.loader as loader
import main
from main import ServiceCheckApplication, parse_args
from monitoring.publisher import StatusPublisher


@pytest_asyncio.fixture
async def web_server():
    async def ok(request):
        return web.Response(text="ok")

    app = web.Application()
    app.router.add_get("/", ok)
    server = TestServer(app, host="127.0.0.1")
    await server.start_server()
    yield server
    await server.close()


class TestParseArgs:
    def test_defaults(self) -> None:
        args = parse_args([])
        assert args.debug is False
        assert args.config is None

    def test_flags(self) -> None:
        args = parse_args(["-d", "-c", "/etc/servicecheck.json"])
        assert args.debug is True
        assert args.config == "/etc/servicecheck.json"

    def test_long_flags(self) -> None:
        args = parse_args(["--debug", "--config", "x.json"])
        assert (args.debug, args.config) == (True, "x.json")


class TestApplication:
    async def test_web_up_ssh_down(self, web_server, closed_port, make_config, settings,
                                   fake_client, wait_until) -> None:
        config = make_config(
            [
                {"name": "Web", "host": "127.0.0.1", "protocol": "http", "port": web_server.port},
                {"name": "SSH", "host": "127.0.0.1", "protocol": "tcp", "port": closed_port},
                {"name": "Ping", "host": "127.0.0.1", "protocol": "icmp"},
            ],
            discoveryPrefix="homeassistant",
        )
        publisher = StatusPublisher(
            config.mqtt_connect, config.payload, settings,
            client_factory=lambda: fake_client,
        )
        app = ServiceCheckApplication(config, settings, publisher=publisher)

        assert await app.startup() is True
        assert app.is_running
        assert [job.name for job in app.scheduler.jobs] == ["Web", "SSH"]

        assert await wait_until(
            lambda: fake_client.messages_for("servicecheck/Web")
            and fake_client.messages_for("servicecheck/SSH")
        )

        runner = asyncio.create_task(app.run())
        app.request_stop()
        await asyncio.wait_for(runner, timeout=1)
        await app.shutdown()

        assert fake_client.messages_for("servicecheck/Web") == ["ON"]
        assert fake_client.messages_for("servicecheck/SSH") == ["OFF"]
        assert fake_client.messages_for("servicecheck/Ping") == []
        discovery = [t for t, _, _, retain in fake_client.published if t.endswith("/config") and retain]
        assert sorted(discovery) == [
            "homeassistant/servicecheck/Ping/config",
            "homeassistant/servicecheck/SSH/config",
            "homeassistant/servicecheck/Web/config",
        ]
        assert fake_client.disconnected is True
        assert not app.is_running


class TestMain:
    async def test_unusable_default_config_exits_1(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setattr(loader, "DEFAULT_CONFIG_PATH", tmp_path / "gone.json")
        code = await main.main(["-c", str(tmp_path / "missing.json")])
        assert code == 1
