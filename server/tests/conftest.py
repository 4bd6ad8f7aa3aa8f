"""Shared test fixtures."""

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

import seismos.main as main_module
from seismos.config import AppConfig

from helpers import FakeClock


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def app_config() -> AppConfig:
    config = AppConfig()
    config.logging.level = "warning"
    config.simulator.seed = 7
    config.insd.n_min = 2
    config.insd.event_threshold_g = 0.8
    config.insd.heartbeat_timeout_ms = 3000
    config.insd.anomaly_threshold = 40
    return config


@pytest.fixture(autouse=True)
def _init_server(app_config):
    """Initialize server singletons for every test."""
    monitor, simulator = main_module.build_services(app_config)

    # Patch module-level singletons
    main_module._config = app_config
    main_module._monitor = monitor
    main_module._simulator = simulator

    yield

    # Cleanup
    main_module._config = None
    main_module._monitor = None
    main_module._simulator = None


@pytest.fixture
async def client():
    from seismos.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
