"""Shared fixtures for Pivot Matrix tests."""

from __future__ import annotations

import numpy as np
import pytest

from pivot_matrix.config.config_manager import DEFAULT_CONFIG_PATH, ConfigManager
from pivot_matrix.core.data_types import MarketInfo, PowerNConfig
from pivot_matrix.simulation.replay_runner import BAR_DTYPE
from pivot_matrix.strategy.powern_strategy import PowerNStrategy


@pytest.fixture
def config():
    """Loaded ConfigManager with the spot profile."""
    ConfigManager.reset()
    cm = ConfigManager()
    cm.load(DEFAULT_CONFIG_PATH, profile="spot")
    yield cm
    ConfigManager.reset()


@pytest.fixture
def powern_config():
    """w=2, p=1, c=1 curve with unit yield multipliers."""
    return PowerNConfig(w=2.0, p=1.0, c=1.0, yield_mult=1.0, initial_yield_mult=1.0, initial_budget=0.0)


@pytest.fixture
def market_info():
    """Market without size constraints (spot)."""
    return MarketInfo()


@pytest.fixture
def engine(powern_config, market_info):
    """Flat power-N strategy initialized at price 100."""
    return PowerNStrategy(powern_config).init(market_info, 100.0, 0.0, 1000.0)


@pytest.fixture
def oscillating_bars():
    """Close-only bars swinging 100 → 90 → 110 → 100."""
    closes = np.array([100.0, 97.0, 94.0, 90.0, 93.0, 98.0, 104.0, 110.0, 106.0, 100.0])
    opens = np.concatenate([[closes[0]], closes[:-1]])
    bars = np.zeros(len(closes), dtype=BAR_DTYPE)
    bars["timestamp_ns"] = 1_000_000_000_000 + np.arange(len(closes), dtype=np.int64) * 60_000_000_000
    bars["open"] = opens
    bars["close"] = closes
    bars["high"] = np.maximum(opens, closes)
    bars["low"] = np.minimum(opens, closes)
    return bars
