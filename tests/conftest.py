"""Test configuration and fixtures."""

from __future__ import annotations

import pytest

from actionflow import ActionBus, EngineSettings, VirtualScheduler
from tests.support import CounterModel


@pytest.fixture
def settings() -> EngineSettings:
    """Provide settings isolated from any local `.env`."""
    return EngineSettings(_env_file=None)


@pytest.fixture
def scheduler() -> VirtualScheduler:
    """Provide a manually advanced clock for suspension timeouts."""
    return VirtualScheduler()


@pytest.fixture
def bus(settings: EngineSettings, scheduler: VirtualScheduler) -> ActionBus:
    return ActionBus(settings=settings, scheduler=scheduler)


@pytest.fixture
def counter(bus: ActionBus) -> CounterModel:
    return CounterModel(bus)
