"""ConfigManager: 3-layer TOML config with deep merge, dot-notation access and validated sections."""

from __future__ import annotations

import copy
import sys
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ValidationError

from pivot_matrix.config.settings import (
    MarketSettings,
    PowerNSettings,
    SimulationSettings,
    StorageSettings,
)
from pivot_matrix.core.data_types import MarketInfo, PowerNConfig
from pivot_matrix.core.errors import ConfigError
from pivot_matrix.storage.versioned_storage import StorageFactory

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

DEFAULT_CONFIG_PATH = Path(__file__).parent / "pivot_base.toml"


def _deep_merge(base: dict, override: dict) -> dict:
    """New dict with override layered over base; nested tables merge key by key."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _split(dotted_key: str) -> tuple[list[str], str]:
    *parents, leaf = dotted_key.split(".")
    return parents, leaf


def _get_nested(d: dict, dotted_key: str, default: Any = None) -> Any:
    """d["a"]["b"] for "a.b", or default when any level is missing."""
    parents, leaf = _split(dotted_key)
    table = d
    for part in parents:
        table = table.get(part)
        if not isinstance(table, dict):
            return default
    return table.get(leaf, default)


def _set_nested(d: dict, dotted_key: str, value: Any) -> None:
    """Assign "a.b" = value, creating intermediate tables."""
    parents, leaf = _split(dotted_key)
    table = d
    for part in parents:
        table = table.setdefault(part, {})
    table[leaf] = value


class ConfigManager:
    """Process-wide config: base, profile and instrument TOML layers merged in that order.

    Sections are validated on access, so a bad value surfaces as ConfigError
    where it is used rather than at load time.
    """

    _instance: ConfigManager | None = None

    def __new__(cls) -> ConfigManager:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self) -> None:
        if self._initialized:
            return
        self._config: dict[str, Any] = {}
        self._base_path: Path | None = None
        self._profile: str | None = None
        self._instrument: str | None = None
        self._initialized = True

    @classmethod
    def reset(cls) -> None:
        """Drop the shared instance; the next ConfigManager() starts empty."""
        cls._instance = None

    def load(
        self,
        base_path: str | Path = DEFAULT_CONFIG_PATH,
        profile: str | None = None,
        instrument: str | None = None,
    ) -> None:
        """Load and merge config layers.

        Args:
            base_path: Path to pivot_base.toml
            profile: Account profile (e.g. 'leveraged'), loads profiles/profile_{name}.toml
            instrument: Instrument symbol, loads instruments/constants.{instrument}.toml if present

        Raises:
            ConfigError: the base file or the requested profile file does not exist.
        """
        self._base_path = Path(base_path)
        self._profile = profile
        self._instrument = instrument

        merged: dict[str, Any] = {}
        for path, required in self._layers():
            if not path.exists():
                if required:
                    raise ConfigError(f"Config layer not found: {path}")
                continue
            merged = _deep_merge(merged, self._load_toml(path))
        self._config = merged

    def _layers(self) -> list[tuple[Path, bool]]:
        """(path, required) per layer in merge order: base, profile, instrument."""
        root = self._base_path.parent
        layers = [(self._base_path, True)]
        if self._profile:
            layers.append((root / "profiles" / f"profile_{self._profile}.toml", True))
        if self._instrument:
            layers.append((root / "instruments" / f"constants.{self._instrument}.toml", False))
        return layers

    def _load_toml(self, path: Path) -> dict[str, Any]:
        with open(path, "rb") as f:
            return tomllib.load(f)

    def get(self, dotted_key: str, default: Any = None) -> Any:
        """Get config value using dot notation. E.g. get('strategy.w')."""
        return _get_nested(self._config, dotted_key, default)

    def set(self, dotted_key: str, value: Any) -> None:
        """Override a single value in the merged config (not persisted)."""
        _set_nested(self._config, dotted_key, value)

    def reload(self) -> None:
        """Re-read every layer from disk, discarding set() overrides. Refused in live mode."""
        if self.get("system.live_mode", False):
            raise RuntimeError("Hot-reload is disabled in live mode.")
        if self._base_path is not None:
            self.load(self._base_path, self._profile, self._instrument)

    def _section(self, name: str, model: type[BaseModel]) -> Any:
        try:
            return model.model_validate(self.get(name, {}))
        except ValidationError as exc:
            raise ConfigError(f"Invalid [{name}] section: {exc}") from exc

    @property
    def strategy_id(self) -> str:
        return self._section("strategy", PowerNSettings).strategy

    def strategy_config(self) -> PowerNConfig:
        return self._section("strategy", PowerNSettings).to_config()

    def market_info(self) -> MarketInfo:
        return self._section("market", MarketSettings).to_market_info()

    def storage_factory(self) -> StorageFactory:
        return self._section("storage", StorageSettings).to_factory()

    def simulation_settings(self) -> SimulationSettings:
        return self._section("simulation", SimulationSettings)

    @property
    def raw(self) -> dict[str, Any]:
        """Merged config tables, unvalidated."""
        return self._config
