# tests/conftest.py

import pytest

from app.clock import ManualClock
from app.config import EngineConfig
from app.engine import CrashEngine
from tests.helpers import FixedCrashPoints


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def make_engine(clock):
    def _make(points, **config):
        return CrashEngine(EngineConfig(**config), clock=clock, generator=FixedCrashPoints(points))
    return _make
