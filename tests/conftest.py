from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from speedcad_core import (
    InMemoryChangeFeed,
    InMemoryObjectStorage,
    InMemoryRecordStore,
    Settings,
)

T0 = datetime(2026, 3, 14, 9, 0, 0, tzinfo=timezone.utc)


class FakeNow:
    """Injectable wall clock; tests advance it instead of sleeping."""

    def __init__(self, start: datetime = T0):
        self.value = start

    def __call__(self) -> datetime:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value = self.value + timedelta(seconds=seconds)


class FlakyStore(InMemoryRecordStore):
    """Raises ConnectionError from the named methods while they are in `failing`."""

    def __init__(self, feed=None):
        super().__init__(feed)
        self.failing: set[str] = set()

    def _check(self, name: str) -> None:
        if name in self.failing:
            raise ConnectionError(f"{name}: backend unreachable")

    async def update_competition(self, competition_id, changes):
        self._check("update_competition")
        return await super().update_competition(competition_id, changes)

    async def update_participant_where_unset(self, email, guard_field, fields):
        self._check("update_participant_where_unset")
        return await super().update_participant_where_unset(email, guard_field, fields)

    async def list_participants(self):
        self._check("list_participants")
        return await super().list_participants()


class SlowStorage(InMemoryObjectStorage):
    def __init__(self, delay: float):
        super().__init__()
        self.delay = delay

    async def upload(self, bucket, path, data):
        await asyncio.sleep(self.delay)
        return await super().upload(bucket, path, data)


@pytest.fixture
def now():
    return FakeNow()


@pytest.fixture
def settings():
    return Settings(
        io_timeout_seconds=1.0,
        upload_timeout_seconds=1.0,
        poll_interval_seconds=60.0,
        tick_interval_seconds=0.01,
    )


@pytest.fixture
def feed():
    return InMemoryChangeFeed()


@pytest.fixture
def store(feed):
    return FlakyStore(feed)


@pytest.fixture
def storage():
    return InMemoryObjectStorage()


@pytest.fixture
def slow_storage():
    return SlowStorage(delay=1.0)
