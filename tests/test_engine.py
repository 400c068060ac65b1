"""Tests for MonitoringEngine dispatch and the probe-then-publish cycle."""

from __future__ import annotations

import asyncio

import pytest

from config.constants import Protocol
from exceptions import InvalidServiceError
from monitoring.monitor import CheckResult, MonitoringEngine


class StubChecker:
    def __init__(self, success: bool = True):
        self.success = success
        self.checked = []

    async def check(self, service):
        self.checked.append(service.name)
        return CheckResult(success=self.success)


class CrashingChecker:
    async def check(self, service):
        raise RuntimeError("checker bug")


@pytest.fixture
def stubs():
    return {
        Protocol.HTTP: StubChecker(True),
        Protocol.HTTPS: StubChecker(True),
        Protocol.TCP: StubChecker(False),
        Protocol.DNS: StubChecker(True),
    }


@pytest.fixture
def engine(recording_publisher, settings, stubs):
    return MonitoringEngine(recording_publisher, settings, checkers=stubs)


class TestDispatch:
    @pytest.mark.parametrize("protocol, expected", [
        ("http", Protocol.HTTP),
        ("https", Protocol.HTTPS),
        ("tcp", Protocol.TCP),
        ("dns", Protocol.DNS),
        ("my-dns-server", Protocol.DNS),
    ])
    async def test_routes_by_protocol(self, engine, stubs, make_service, protocol, expected) -> None:
        await engine.check(make_service(name="X", protocol=protocol, port=53))
        assert stubs[expected].checked == ["X"]
        assert sum(len(s.checked) for s in stubs.values()) == 1

    async def test_unknown_protocol_raises(self, engine, recording_publisher, make_service) -> None:
        with pytest.raises(InvalidServiceError):
            await engine.run_check(make_service(protocol="icmp"))
        assert recording_publisher.calls == []

    def test_default_checkers_cover_every_protocol(self, recording_publisher, settings) -> None:
        engine = MonitoringEngine(recording_publisher, settings)
        assert set(engine._checkers) == set(Protocol)


class TestRunCheck:
    async def test_publishes_exactly_once(self, engine, recording_publisher, make_service) -> None:
        result = await engine.run_check(make_service(name="Web", protocol="http"))
        assert result.success is True
        assert recording_publisher.calls == [("Web", True)]
        assert engine.checks_performed == 1
        assert engine.in_flight_checks == 0

    async def test_failure_is_published(self, engine, recording_publisher, make_service) -> None:
        await engine.run_check(make_service(name="SSH", protocol="tcp", port=22))
        assert recording_publisher.calls == [("SSH", False)]

    async def test_repeated_runs_publish_each_time(self, engine, recording_publisher, make_service) -> None:
        service = make_service(name="Web", protocol="http")
        await engine.run_check(service)
        await engine.run_check(service)
        assert recording_publisher.calls == [("Web", True), ("Web", True)]

    async def test_checker_crash_publishes_failure(self, recording_publisher, settings,
                                                   make_service, log_messages) -> None:
        engine = MonitoringEngine(
            recording_publisher, settings, checkers={Protocol.HTTP: CrashingChecker()}
        )
        result = await engine.run_check(make_service(name="Web", protocol="http"))

        assert result.success is False
        assert result.error_type == "EngineError"
        assert recording_publisher.calls == [("Web", False)]
        assert any(level == "ERROR" for level, _ in log_messages)

    async def test_concurrent_runs_are_independent(self, recording_publisher, settings, make_service) -> None:
        release = asyncio.Event()

        class SlowChecker:
            async def check(self, service):
                await release.wait()
                return CheckResult(success=True)

        engine = MonitoringEngine(
            recording_publisher, settings,
            checkers={Protocol.HTTP: SlowChecker(), Protocol.TCP: StubChecker(False)},
        )
        slow = asyncio.create_task(engine.run_check(make_service(name="Slow", protocol="http")))
        await asyncio.sleep(0)
        await engine.run_check(make_service(name="Fast", protocol="tcp", port=22))

        assert engine.in_flight_checks == 1
        assert recording_publisher.calls == [("Fast", False)]

        release.set()
        await slow
        assert recording_publisher.calls == [("Fast", False), ("Slow", True)]

    async def test_real_tcp_checker_against_closed_port(self, recording_publisher, settings,
                                                        make_service, closed_port) -> None:
        engine = MonitoringEngine(recording_publisher, settings)
        await engine.run_check(make_service(name="SSH", protocol="tcp", port=closed_port))
        assert recording_publisher.calls == [("SSH", False)]

    def test_topic_for(self, engine, make_service) -> None:
        assert engine.topic_for(make_service(name="Web")) == "servicecheck/Web"
