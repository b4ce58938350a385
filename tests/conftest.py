"""Shared fixtures: a YAML store under tmp_path and a controllable clock."""

from datetime import datetime, timedelta, timezone

import pytest

from bia_engine.store import YamlStore


class FakeClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def store(tmp_path):
    return YamlStore(str(tmp_path / "state.yaml"))


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc))
