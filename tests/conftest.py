"""Shared fixtures."""

import random
from datetime import datetime, timedelta

import pytest

from disco.copy.engine import CopyEngine
from disco.copy.schema import validate_copy_file
from disco.notifications.log_store import NotificationLogStore
from disco.notifications.storage import JsonLogStorageBackend


class FakeClock:
    """Manually advanced wall clock."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 18, 9, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def log_path(tmp_path):
    return tmp_path / "notification_log.json"


@pytest.fixture
def log_store(log_path, clock):
    return NotificationLogStore(JsonLogStorageBackend(log_path), clock=clock)


@pytest.fixture
def fixed_copy_engine():
    """Two stages with fixed intervals: 30s from 0, 60s from 300."""
    data = {
        "stages": [
            {
                "id": "early",
                "startAfterSeconds": 0,
                "intervalSeconds": {"min": 30, "max": 30},
                "messages": [{"id": "e1", "title": "Early", "body": "{elapsedSeconds}s"}],
            },
            {
                "id": "late",
                "startAfterSeconds": 300,
                "intervalSeconds": {"min": 60, "max": 60},
                "messages": [{"id": "l1", "title": "Late", "body": "{elapsedMinutes}m"}],
            },
        ]
    }
    return CopyEngine(validate_copy_file(data), rng=random.Random(0))
