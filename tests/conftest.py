"""Shared fixtures: controllable time and an httpx mock backend."""

from __future__ import annotations

from collections.abc import Callable

import httpx
import pytest

from declient.transport import HttpxTransport

BASE_URL = "http://api.test"


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Stand-in for ``asyncio.sleep`` that returns at once."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def mock_backend() -> Callable[[Callable[[httpx.Request], httpx.Response]], HttpxTransport]:
    """Build an ``HttpxTransport`` whose requests go to *handler*."""

    def factory(handler: Callable[[httpx.Request], httpx.Response]) -> HttpxTransport:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=BASE_URL)
        return HttpxTransport(BASE_URL, client=client)

    return factory
