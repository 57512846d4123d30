"""Tests for ConfigManager and the validated config sections."""

from pathlib import Path

import pytest

from pivot_matrix.config.config_manager import DEFAULT_CONFIG_PATH, ConfigManager
from pivot_matrix.config.settings import PowerNSettings, StorageSettings
from pivot_matrix.core.data_types import MarketInfo, PowerNConfig
from pivot_matrix.core.errors import ConfigError


@pytest.fixture(autouse=True)
def reset_singleton():
    ConfigManager.reset()
    yield
    ConfigManager.reset()


class TestConfigManager:
    def test_base_only_load(self):
        cm = ConfigManager()
        cm.load(DEFAULT_CONFIG_PATH)
        assert cm.get("system.live_mode") is False
        assert cm.get("system.profile") == "spot"
        assert cm.strategy_id == "powern"
        assert cm.strategy_config() == PowerNConfig(w=2.0, p=1.0, c=1.0)
        assert cm.market_info() == MarketInfo()

    def test_profile_override(self):
        cm = ConfigManager()
        cm.load(DEFAULT_CONFIG_PATH, profile="leveraged")
        assert cm.get("system.profile") == "leveraged"
        assert cm.market_info().leverage == 5.0
        assert cm.strategy_config().yield_mult == 0.5
        assert cm.get("storage.format") == "jsonp"
        # Untouched keys survive the deep merge
        assert cm.get("storage.versions") == 5
        assert cm.strategy_config().w == 2.0

    def test_instrument_override(self):
        cm = ConfigManager()
        cm.load(DEFAULT_CONFIG_PATH, profile="spot", instrument="BTCUSD")
        cfg = cm.strategy_config()
        assert cfg.c == 60000.0
        assert cfg.initial_budget == 10000.0
        assert cm.market_info().calc_min_size(30000.0) == pytest.approx(0.0002)
        assert cm.simulation_settings().start_price == 30000.0
        assert cm.simulation_settings().steps == 1000

    def test_unknown_instrument_ignored(self):
        cm = ConfigManager()
        cm.load(DEFAULT_CONFIG_PATH, instrument="NOPE")
        assert cm.strategy_config().c == 1.0

    def test_unknown_profile(self):
        cm = ConfigManager()
        with pytest.raises(ConfigError, match="profile_nope.toml"):
            cm.load(DEFAULT_CONFIG_PATH, profile="nope")

    def test_missing_base_file(self, tmp_path):
        cm = ConfigManager()
        with pytest.raises(ConfigError, match="not found"):
            cm.load(tmp_path / "missing.toml")

    def test_dot_notation_access(self):
        cm = ConfigManager()
        cm.load(DEFAULT_CONFIG_PATH)
        assert cm.get("strategy.w") == 2.0
        assert cm.get("simulation.fill_level") == 2
        assert cm.get("nonexistent.key", "fallback") == "fallback"
        assert cm.raw["market"]["leverage"] == 0.0

    def test_storage_factory(self):
        cm = ConfigManager()
        cm.load(DEFAULT_CONFIG_PATH)
        assert cm.storage_factory().path == Path("state")

    @pytest.mark.parametrize(
        "key, bad",
        [
            ("strategy.w", 1.0),
            ("strategy.p", 0.0),
            ("strategy.c", 0.0),
            ("strategy.yield_mult", -1.0),
        ],
    )
    def test_invalid_strategy_values(self, key, bad):
        cm = ConfigManager()
        cm.load(DEFAULT_CONFIG_PATH)
        cm.set(key, bad)
        with pytest.raises(ConfigError, match=r"\[strategy\]"):
            cm.strategy_config()

    def test_validated_on_access_not_on_load(self, tmp_path):
        base = tmp_path / "base.toml"
        base.write_text("[strategy]\nw = 1.0\np = 1.0\nc = 1.0\n")
        cm = ConfigManager()
        cm.load(base)
        assert cm.get("strategy.w") == 1.0
        with pytest.raises(ConfigError):
            cm.strategy_config()

    def test_unknown_strategy_id(self):
        cm = ConfigManager()
        cm.load(DEFAULT_CONFIG_PATH)
        cm.set("strategy.strategy", "grid")
        with pytest.raises(ConfigError):
            cm.strategy_id

    def test_invalid_storage_and_simulation(self):
        cm = ConfigManager()
        cm.load(DEFAULT_CONFIG_PATH)
        cm.set("storage.format", "xml")
        with pytest.raises(ConfigError):
            cm.storage_factory()
        cm.set("simulation.fill_level", 4)
        with pytest.raises(ConfigError):
            cm.simulation_settings()

    def test_hot_reload_drops_overrides(self):
        cm = ConfigManager()
        cm.load(DEFAULT_CONFIG_PATH, profile="leveraged")
        cm.set("strategy.w", 3.0)
        cm.reload()
        assert cm.get("strategy.w") == 2.0
        assert cm.market_info().leverage == 5.0

    def test_hot_reload_blocked_in_live_mode(self):
        cm = ConfigManager()
        cm.load(DEFAULT_CONFIG_PATH)
        cm.set("system.live_mode", True)
        with pytest.raises(RuntimeError, match="live mode"):
            cm.reload()

    def test_singleton_behavior(self):
        cm1 = ConfigManager()
        cm1.load(DEFAULT_CONFIG_PATH, profile="leveraged")
        cm2 = ConfigManager()
        assert cm1 is cm2
        assert cm2.get("system.profile") == "leveraged"

    def test_fixture_loads_spot(self, config):
        assert config.market_info().leverage == 0.0


class TestSettings:
    def test_negative_scale_allowed(self):
        assert PowerNSettings(w=2.0, p=1.0, c=-1.0).to_config().c == -1.0

    def test_versions_at_least_one(self):
        with pytest.raises(ValueError):
            StorageSettings(versions=0)
