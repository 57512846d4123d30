"""Pydantic models validating the TOML sections before they reach the core.

The curve functions assume w > 1, p > 0, c != 0 on every call, so those
domains are enforced here. ConfigManager validates a section each time it is
accessed, so file values and set() overrides pass the same checks.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from pivot_matrix.core.data_types import MarketInfo, PowerNConfig
from pivot_matrix.core.types import StorageFormat, StrategyId
from pivot_matrix.storage.versioned_storage import StorageFactory


class PowerNSettings(BaseModel):
    strategy: str = StrategyId.POWERN.value
    w: float = Field(gt=1.0)
    p: float = Field(gt=0.0)
    c: float
    yield_mult: float = Field(default=1.0, ge=0.0)
    initial_yield_mult: float = Field(default=1.0, ge=0.0)
    initial_budget: float = 0.0

    @field_validator("strategy")
    @classmethod
    def _known_strategy(cls, v: str) -> str:
        StrategyId(v)
        return v

    @field_validator("c")
    @classmethod
    def _nonzero_scale(cls, v: float) -> float:
        if v == 0:
            raise ValueError("scale c must be non-zero")
        return v

    def to_config(self) -> PowerNConfig:
        return PowerNConfig(
            w=self.w,
            p=self.p,
            c=self.c,
            yield_mult=self.yield_mult,
            initial_yield_mult=self.initial_yield_mult,
            initial_budget=self.initial_budget,
        )


class MarketSettings(BaseModel):
    min_size: float = Field(default=0.0, ge=0.0)
    min_volume: float = Field(default=0.0, ge=0.0)
    asset_step: float = Field(default=0.0, ge=0.0)
    leverage: float = Field(default=0.0, ge=0.0)

    def to_market_info(self) -> MarketInfo:
        return MarketInfo(
            min_size=self.min_size,
            min_volume=self.min_volume,
            asset_step=self.asset_step,
            leverage=self.leverage,
        )


class StorageSettings(BaseModel):
    path: str = "state"
    versions: int = Field(default=5, ge=1)
    format: str = StorageFormat.JSON.value

    @field_validator("format")
    @classmethod
    def _known_format(cls, v: str) -> str:
        StorageFormat(v)
        return v

    def to_factory(self) -> StorageFactory:
        return StorageFactory(self.path, self.versions, StorageFormat(self.format))


class SimulationSettings(BaseModel):
    start_price: float = Field(default=100.0, gt=0.0)
    steps: int = Field(default=1000, ge=1)
    volatility: float = Field(default=0.01, ge=0.0)
    seed: int | None = None
    fill_level: int = Field(default=2, ge=1, le=3)
    tick_size: float = Field(default=0.01, gt=0.0)
    initial_assets: float = 0.0
    initial_currency: float = 1000.0
