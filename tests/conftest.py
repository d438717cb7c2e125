"""Shared fixtures for beatkeeper tests."""

from __future__ import annotations

import pytest


class FakeClock:
    """Manually advanced time source in seconds."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()
