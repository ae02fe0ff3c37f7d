"""Shared fixtures: fake clocks, fake calendar and in-memory backends."""

from __future__ import annotations

import asyncio
from datetime import date

import pytest

from autoagent.backend.memory import InMemoryBackend


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeCalendar:
    def __init__(self, today: date) -> None:
        self.today = today

    def __call__(self) -> date:
        return self.today


class RecordingSleep:
    """Stand-in for asyncio.sleep: records requested delays and yields once."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        await asyncio.sleep(0)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def calendar() -> FakeCalendar:
    return FakeCalendar(date(2026, 3, 14))


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def mailboxes() -> dict:
    return {}


@pytest.fixture
def backend(mailboxes: dict) -> InMemoryBackend:
    return InMemoryBackend("agent-a", mailboxes=mailboxes)
