"""Pytest configuration and fixtures for grid_market tests."""

import logging

import pytest

from grid_market.config import GameConfig


@pytest.fixture
def config() -> GameConfig:
    return GameConfig()


@pytest.fixture(autouse=True)
def mute_grid_market_logs(caplog):
    caplog.set_level(logging.WARNING, logger="grid_market")
