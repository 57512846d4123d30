"""Frozen dataclasses for Pivot Matrix data structures."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Mapping

from pivot_matrix.core.types import Alert


@dataclass(frozen=True)
class PowerNConfig:
    """Static curve parameters of the power-N pivot strategy.

    w: width exponent (> 1), p: curvature (> 0), c: scale (!= 0).
    """

    w: float
    p: float
    c: float
    yield_mult: float = 1.0
    initial_yield_mult: float = 1.0
    initial_budget: float = 0.0


@dataclass(frozen=True)
class PivotState:
    """Persisted strategy state. All zero = not initialized."""

    val: float = 0.0
    k: float = 0.0
    p: float = 0.0
    pos: float = 0.0

    def is_valid(self) -> bool:
        return self.k > 0 and self.p > 0

    def to_dict(self) -> dict[str, float]:
        return {"val": self.val, "k": self.k, "p": self.p, "pos": self.pos}

    @classmethod
    def from_dict(cls, src: Mapping[str, Any]) -> PivotState:
        return cls(
            val=float(src.get("val", 0.0)),
            k=float(src.get("k", 0.0)),
            p=float(src.get("p", 0.0)),
            pos=float(src.get("pos", 0.0)),
        )


@dataclass(frozen=True)
class RuleResult:
    """Candidate outcome of one re-centering evaluation."""

    k: float
    val: float
    pos: float


@dataclass(frozen=True)
class MarketInfo:
    """Exchange constraints for the traded instrument."""

    min_size: float = 0.0
    min_volume: float = 0.0
    asset_step: float = 0.0
    leverage: float = 0.0

    def calc_min_size(self, price: float) -> float:
        """Smallest tradable size at price, honoring min volume and lot step."""
        size = self.min_size
        if self.min_volume > 0 and price > 0:
            size = max(size, self.min_volume / price)
        if self.asset_step > 0:
            size = math.ceil(size / self.asset_step) * self.asset_step
        return size


@dataclass(frozen=True)
class Ticker:
    bid: float
    ask: float
    last: float
    time_ns: int = 0


@dataclass(frozen=True)
class OrderData:
    """Order request returned by get_new_order.

    alert_flag is always 0 for pivot strategies (no forced price).
    """

    alert_flag: float
    size: float
    alert: Alert = Alert.ENABLED


@dataclass(frozen=True)
class OnTradeResult:
    realized_pnl: float
    fee: float
    new_pivot: float
    extra: float


@dataclass(frozen=True)
class MinMax:
    min: float
    max: float


@dataclass(frozen=True)
class BudgetInfo:
    total: float
    assets: float


@dataclass(frozen=True)
class ChartPoint:
    valid: bool
    position: float
    budget: float
