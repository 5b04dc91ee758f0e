"""
Tests for grade_analytics/gateway.py — single-flight init, state machine, per-call fallback.
"""

import asyncio
import logging
import os
import sys
import threading

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from grade_analytics.backends import OPERATIONS, PureBackend
from grade_analytics.gateway import AcceleratedGateway, GatewayState
from grade_analytics.records import GradeRecord


class StubBackend(PureBackend):
    """Pure results under another name, with one operation that can be made to fail."""

    name = "stub"

    def __init__(self, failing=()):
        self.failing = set(failing)
        self.calls = []

    def get_version(self):
        return "stub-1.0"

    def weighted_average(self, records):
        self.calls.append("weighted_average")
        if "weighted_average" in self.failing:
            raise RuntimeError("boom")
        return 42.0


class CountingLoader:
    def __init__(self, backend=None, error=None):
        self.backend = backend or StubBackend()
        self.error = error
        self.calls = 0
        self._lock = threading.Lock()

    def __call__(self):
        with self._lock:
            self.calls += 1
        if self.error is not None:
            raise self.error
        return self.backend


RECORDS = [GradeRecord(value=6.0, weight=1), GradeRecord(value=8.0, weight=2)]


class TestInit:
    """Tests for gateway initialisation."""

    def test_starts_uninitialized(self):
        gateway = AcceleratedGateway(loader=CountingLoader())
        assert gateway.state is GatewayState.UNINITIALIZED
        assert gateway.is_available() is False
        assert gateway.get_version() == "N/A"

    def test_successful_load(self):
        loader = CountingLoader()
        gateway = AcceleratedGateway(loader=loader)
        assert asyncio.run(gateway.init()) is True
        assert gateway.state is GatewayState.READY
        assert gateway.get_version() == "stub-1.0"
        assert gateway.backend_name == "stub"

    def test_concurrent_init_loads_once(self):
        loader = CountingLoader()
        gateway = AcceleratedGateway(loader=loader)

        async def many():
            return await asyncio.gather(*(gateway.init() for _ in range(5)))

        assert asyncio.run(many()) == [True] * 5
        assert loader.calls == 1

    def test_later_init_reuses_outcome(self):
        loader = CountingLoader()
        gateway = AcceleratedGateway(loader=loader)
        asyncio.run(gateway.init())
        assert asyncio.run(gateway.init()) is True
        assert loader.calls == 1

    def test_failed_load_is_terminal(self, caplog):
        loader = CountingLoader(error=ImportError("no numpy"))
        gateway = AcceleratedGateway(loader=loader)
        with caplog.at_level(logging.WARNING, logger="grade_analytics.gateway"):
            assert asyncio.run(gateway.init()) is False
        assert gateway.state is GatewayState.UNAVAILABLE
        assert "no numpy" in caplog.text
        assert asyncio.run(gateway.init()) is False
        assert loader.calls == 1

    def test_cancelled_load_is_unavailable(self):
        release = threading.Event()

        def slow_loader():
            release.wait(5)
            return StubBackend()

        gateway = AcceleratedGateway(loader=slow_loader)

        async def cancel_during_load():
            pending = asyncio.ensure_future(gateway.init())
            await asyncio.sleep(0.05)
            pending.cancel()
            with pytest.raises(asyncio.CancelledError):
                await pending
            release.set()
            return await gateway.init()

        assert asyncio.run(cancel_during_load()) is False
        assert gateway.state is GatewayState.UNAVAILABLE
        assert gateway.get_version() == "N/A"

    def test_disabled_loader(self):
        gateway = AcceleratedGateway(loader=None)
        assert asyncio.run(gateway.init()) is False
        assert gateway.state is GatewayState.UNAVAILABLE
        assert gateway.get_version() == "N/A"


class TestCall:
    """Tests for operation dispatch and fallback."""

    def test_pure_before_init(self):
        gateway = AcceleratedGateway(loader=CountingLoader())
        assert gateway.call("weighted_average", RECORDS) == pytest.approx(22 / 3)

    def test_accelerated_when_ready(self):
        gateway = AcceleratedGateway(loader=CountingLoader())
        asyncio.run(gateway.init())
        assert gateway.call("weighted_average", RECORDS) == 42.0

    def test_single_call_failure_falls_back(self, caplog):
        backend = StubBackend(failing={"weighted_average"})
        gateway = AcceleratedGateway(loader=CountingLoader(backend=backend))
        asyncio.run(gateway.init())

        with caplog.at_level(logging.WARNING, logger="grade_analytics.gateway"):
            assert gateway.call("weighted_average", RECORDS) == pytest.approx(22 / 3)
        assert "weighted_average" in caplog.text
        assert gateway.state is GatewayState.READY

        # the next call tries the accelerated backend again
        backend.failing.clear()
        assert gateway.call("weighted_average", RECORDS) == 42.0
        assert backend.calls == ["weighted_average", "weighted_average"]

    def test_other_operations_unaffected_by_failure(self):
        backend = StubBackend(failing={"weighted_average"})
        gateway = AcceleratedGateway(loader=CountingLoader(backend=backend))
        asyncio.run(gateway.init())
        gateway.call("weighted_average", RECORDS)
        assert gateway.call("average", RECORDS) == pytest.approx(7.0)

    def test_unknown_operation(self):
        gateway = AcceleratedGateway(loader=None)
        with pytest.raises(AttributeError):
            gateway.call("drop_tables")

    def test_pure_backend_implements_every_operation(self):
        pure = PureBackend()
        for name in OPERATIONS:
            assert callable(getattr(pure, name))
