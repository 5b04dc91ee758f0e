"""
gateway.py — Selects between the accelerated and pure backends.

The accelerated backend is loaded at most once per gateway. Until it is
ready, and for good if loading fails, every operation runs on the pure
backend. When it is ready, each call tries it first and falls back to the
pure backend for that call alone if it raises.
"""

import asyncio
import importlib
import logging
from enum import Enum
from typing import Any, Callable, Optional

from grade_analytics.backends import AnalyticsBackend, PureBackend, operation

logger = logging.getLogger(__name__)

Loader = Callable[[], AnalyticsBackend]


class GatewayState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    UNAVAILABLE = "unavailable"


def default_loader() -> AnalyticsBackend:
    """Import the numeric stack and return a handshaken NumpyBackend."""
    module = importlib.import_module("grade_analytics.accelerated")
    return module.load_accelerated_backend()


class AcceleratedGateway:
    def __init__(self, loader: Optional[Loader] = default_loader, pure: Optional[AnalyticsBackend] = None):
        self._loader = loader
        self._pure = pure or PureBackend()
        self._backend: Optional[AnalyticsBackend] = None
        self._state = GatewayState.UNINITIALIZED
        self._init_task: Optional[asyncio.Task] = None

    @property
    def state(self) -> GatewayState:
        return self._state

    @property
    def backend_name(self) -> str:
        return self._backend.name if self._state is GatewayState.READY else self._pure.name

    async def init(self) -> bool:
        """
        Load the accelerated backend once. Concurrent callers share the
        in-flight attempt; later callers get the stored outcome. A cancelled
        attempt leaves the gateway unavailable.
        """
        if self._state in (GatewayState.READY, GatewayState.UNAVAILABLE):
            return self._state is GatewayState.READY
        if self._init_task is None:
            self._state = GatewayState.INITIALIZING
            self._init_task = asyncio.get_running_loop().create_task(self._load())
        elif self._init_task.cancelled():
            self._state = GatewayState.UNAVAILABLE
            return False
        return await self._init_task

    async def _load(self) -> bool:
        if self._loader is None:
            logger.info("Accelerated analytics disabled; using pure Python backend")
            self._state = GatewayState.UNAVAILABLE
            return False
        try:
            # Importing numpy/scipy/pandas blocks, keep it off the event loop.
            backend = await asyncio.to_thread(self._loader)
        except asyncio.CancelledError:
            logger.warning("Accelerated analytics load cancelled; using pure Python backend")
            self._state = GatewayState.UNAVAILABLE
            raise
        except Exception as exc:
            logger.warning("Accelerated analytics unavailable, using pure Python backend: %s", exc)
            self._state = GatewayState.UNAVAILABLE
            return False

        self._backend = backend
        self._state = GatewayState.READY
        logger.info("Accelerated analytics ready (%s)", backend.get_version())
        return True

    def is_available(self) -> bool:
        return self._state is GatewayState.READY

    def get_version(self) -> str:
        if self._state is not GatewayState.READY:
            return "N/A"
        return self._backend.get_version()

    def call(self, name: str, *args: Any) -> Any:
        fallback = operation(self._pure, name)
        if self._state is not GatewayState.READY:
            return fallback(*args)
        try:
            return operation(self._backend, name)(*args)
        except Exception as exc:
            logger.warning("Accelerated %s failed, falling back to pure Python: %s", name, exc)
            return fallback(*args)
