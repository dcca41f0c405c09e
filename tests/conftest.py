"""Pytest configuration and fixtures."""

import asyncio

import pytest

from taozen.core.config import EngineConfig
from taozen.core.orchestrator import Orchestrator, set_default_orchestrator


@pytest.fixture
def orchestrator():
    """Isolated orchestrator with an in-memory state store."""
    return Orchestrator(EngineConfig())


@pytest.fixture(autouse=True)
def _reset_default_orchestrator():
    """Graphs built without an orchestrator must not leak between tests."""
    set_default_orchestrator(None)
    yield
    set_default_orchestrator(None)


@pytest.fixture
def recorder():
    """Event listener that records every event it receives."""

    class Recorder:
        def __init__(self):
            self.events = []

        def __call__(self, event):
            self.events.append(event)

        @property
        def types(self):
            return [event.type for event in self.events]

        def of(self, event_type):
            return [event for event in self.events if event.type is event_type]

    return Recorder()


@pytest.fixture
def wait_until():
    """Poll a predicate until it holds, failing after ``timeout`` seconds."""

    async def wait(predicate, timeout: float = 1.0) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("condition not met in time")
            await asyncio.sleep(0.005)

    return wait
