"""Power-N Pivot Strategy: a re-centering pivot over the power-N curves.

The pivot k centers the position curve (price → target position) and its
integral, the value curve (price → consumed budget). Re-centering rule,
evaluated once per price update:

  1. Old and new price strictly on opposite sides of k → k jumps to new price
  2. Loss on the last leg, or alert → solve k so value(k, price) == val + pnl
  3. Budget depleted, or flat → add yield × mult to the target, then solve
  4. While holding, a k that moved against the inventory is discarded

Instances are immutable. Every handler returns a new strategy.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Mapping

import numpy as np

from pivot_matrix.core.data_types import (
    BudgetInfo,
    ChartPoint,
    MarketInfo,
    MinMax,
    OnTradeResult,
    OrderData,
    PivotState,
    PowerNConfig,
    RuleResult,
    Ticker,
)
from pivot_matrix.core.errors import InitializationError
from pivot_matrix.core.numerics import RANGE_ITERATIONS, RootResult, RootSolver
from pivot_matrix.core.types import Alert, StrategyId
from pivot_matrix.strategy.pivot_function import PivotCurve
from pivot_matrix.strategy.strategy_base import Strategy

logger = logging.getLogger(__name__)

# Positions and values below this count as zero
EPSILON = 1e-14

_SOLVER = RootSolver()
_RANGE_SOLVER = RootSolver(iterations=RANGE_ITERATIONS)


class PowerNStrategy(Strategy):
    """Single-instrument power-N pivot strategy."""

    id = StrategyId.POWERN.value

    def __init__(self, config: PowerNConfig, state: PivotState | None = None) -> None:
        self._cfg = config
        self._state = state if state is not None else PivotState()
        self._curve = PivotCurve(config)

    @property
    def config(self) -> PowerNConfig:
        return self._cfg

    @property
    def state(self) -> PivotState:
        return self._state

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PowerNStrategy):
            return NotImplemented
        return self._cfg == other._cfg and self._state == other._state

    def __repr__(self) -> str:
        return f"PowerNStrategy(config={self._cfg!r}, state={self._state!r})"

    def is_valid(self) -> bool:
        return self._state.is_valid()

    # ── Pivot solving ────────────────────────────────────────────

    def _find_k(self, price: float, val: float, hint: float) -> float:
        """Pivot at which value(k, price) == val. The value curve peaks at 0."""
        if val >= EPSILON:
            return price
        result = _SOLVER.find_root_pos(price, hint, lambda k: self._curve.value(k, price) - val)
        return self._pivot_or_price(result, price)

    def _find_k_from_pos(self, price: float, pos: float) -> float:
        """Pivot at which position(k, price) == pos."""
        if abs(pos) < EPSILON:
            return price
        result = _SOLVER.find_root_pos(price, pos, lambda k: self._curve.position(k, price) - pos)
        return self._pivot_or_price(result, price)

    @staticmethod
    def _pivot_or_price(result: RootResult, price: float) -> float:
        if not result.converged:
            logger.warning(
                "Pivot solve did not converge after %d steps, using price %.8g",
                result.iterations,
                price,
            )
        return result.or_fallback(price)

    def _price_at_position(self, k: float, pos: float, fallback: float) -> float:
        with np.errstate(all="ignore"):
            price = float(self._curve.price_at(k, pos))
        if price > 0 and math.isfinite(price):
            return price
        logger.warning("No price holds position %.8g at pivot %.8g, using %.8g", pos, k, fallback)
        return fallback

    def recenter(self, new_price: float, alert: bool = False) -> RuleResult:
        """Evaluate the re-centering rule at new_price (alert: no-fill re-quote)."""
        st = self._state
        cfg = self._cfg
        aprx_pnl = st.pos * (new_price - st.p)
        new_val = st.val + aprx_pnl
        new_k = st.k

        if (st.p - st.k) * (new_price - st.k) < 0:
            logger.debug("Price crossed pivot %.8g, re-centering at %.8g", st.k, new_price)
            new_k = new_price
        else:
            if aprx_pnl < 0 or alert:
                logger.debug("Re-centering on %s", "alert" if alert else "loss")
                new_k = self._find_k(new_price, new_val, st.pos)
            elif new_val < 0 or not st.pos:
                earned = float(self._curve.value(st.k, new_price) - self._curve.value(st.k, st.p))
                mult = cfg.yield_mult if st.pos else cfg.initial_yield_mult
                new_val += earned * mult
                logger.debug("Re-centering with yield %.8g x %.4g", earned, mult)
                new_k = self._find_k(new_price, new_val, st.pos if st.pos else st.p - new_price)

            if st.pos and (new_k - st.k) * (new_price - st.k) < 0:
                logger.debug("Pivot %.8g would move against inventory, keeping %.8g", new_k, st.k)
                new_k = st.k

        return RuleResult(
            k=new_k,
            val=float(self._curve.value(new_k, new_price)),
            pos=float(self._curve.position(new_k, new_price)),
        )

    # ── Lifecycle ────────────────────────────────────────────────

    def init(self, minfo: MarketInfo, price: float, assets: float, currency: float) -> PowerNStrategy:
        k = self._find_k_from_pos(price, assets)
        with np.errstate(all="ignore"):
            val = float(self._curve.value(k, price))
        out = PowerNStrategy(self._cfg, PivotState(val=val, k=k, p=price, pos=assets))
        if not out.is_valid():
            logger.error("Unable to initialize strategy: price=%.8g assets=%.8g k=%.8g", price, assets, k)
            raise InitializationError("Unable to initialize strategy")
        logger.info("Initialized: pivot=%.8g price=%.8g position=%.8g", k, price, assets)
        return out

    def get_new_order(
        self,
        minfo: MarketInfo,
        cur_price: float,
        new_price: float,
        direction: float,
        assets: float,
        currency: float,
        rejected: bool = False,
    ) -> OrderData:
        if not self.is_valid():
            return self.init(minfo, cur_price, assets, currency).get_new_order(
                minfo, cur_price, new_price, direction, assets, currency, rejected
            )
        rule = self.recenter(new_price)
        diff = (rule.pos - self._state.pos) * direction
        return OrderData(0.0, diff * direction, Alert.ENABLED)

    def on_trade(
        self,
        minfo: MarketInfo,
        price: float,
        size: float,
        assets_left: float,
        currency_left: float,
    ) -> tuple[OnTradeResult, PowerNStrategy]:
        if not self.is_valid():
            return self.init(minfo, price, assets_left - size, currency_left).on_trade(
                minfo, price, size, assets_left, currency_left
            )

        if abs(assets_left) < minfo.calc_min_size(price):
            if assets_left:
                logger.debug("Dust position %.8g treated as flat", assets_left)
            assets_left = 0.0

        rule = self.recenter(price, alert=not size)
        new_price = price
        if size:
            new_price = self._price_at_position(rule.k, assets_left, price)
            rule = self.recenter(new_price)

        st = self._state
        new_state = PivotState(val=rule.val, k=rule.k, p=new_price, pos=assets_left)
        leg_pnl = (price - st.p) * (assets_left - size)
        realized = st.val - rule.val + leg_pnl
        return (
            OnTradeResult(realized_pnl=realized, fee=0.0, new_pivot=rule.k, extra=0.0),
            PowerNStrategy(self._cfg, new_state),
        )

    def on_idle(self, minfo: MarketInfo, ticker: Ticker, assets: float, currency: float) -> PowerNStrategy:
        if not self.is_valid():
            return self.init(minfo, ticker.last, assets, currency).on_idle(minfo, ticker, assets, currency)
        return self

    def reset(self) -> PowerNStrategy:
        logger.info("Strategy reset, pivot %.8g discarded", self._state.k)
        return PowerNStrategy(self._cfg)

    def export_state(self) -> dict[str, Any]:
        return self._state.to_dict()

    def import_state(self, src: Mapping[str, Any], minfo: MarketInfo) -> PowerNStrategy:
        return PowerNStrategy(self._cfg, PivotState.from_dict(src))

    def dump_state_pretty(self, minfo: MarketInfo) -> dict[str, Any]:
        st = self._state
        return {
            "Pivot price": st.k,
            "Last price": st.p,
            "Position": st.pos,
            "Value": st.val,
            "Budget": self._cfg.initial_budget + st.val,
        }

    def calc_initial_position(self, minfo: MarketInfo, price: float, assets: float, currency: float) -> float:
        return 0.0

    def get_equilibrium(self, assets: float) -> float:
        return self._price_at_position(self._state.k, assets, self._state.k)

    def get_center_price(self, last_price: float, assets: float) -> float:
        return self.get_equilibrium(assets)

    # ── Risk & budget queries ────────────────────────────────────

    def calc_safe_range(self, minfo: MarketInfo, assets: float, currency: float) -> MinMax:
        """Price range over which the conserved budget stays non-negative."""
        st = self._state
        k = st.k
        curve = self._curve

        if minfo.leverage:
            budget = currency - st.val

            def conserved(x: float) -> float:
                return curve.value(k, x) + budget

            low = _RANGE_SOLVER.find_root_to_zero(k, conserved)
            high = _RANGE_SOLVER.find_root_to_inf(k, conserved)
            return MinMax(
                self._range_bound(low, conserved, k, 0.0),
                self._range_bound(high, conserved, k, math.inf),
            )

        budget = currency + assets * st.p - st.val

        def conserved(x: float) -> float:
            return curve.value(k, x) + curve.position(k, x) * x + budget

        low = _RANGE_SOLVER.find_root_to_zero(k, conserved)
        return MinMax(self._range_bound(low, conserved, k, 0.0), k)

    @staticmethod
    def _range_bound(result: RootResult, conserved, start: float, unbounded: float) -> float:
        """Root if found; otherwise unbounded, or start when the budget is already gone."""
        if result.converged:
            return result.value
        with np.errstate(all="ignore"):
            at_start = float(conserved(start))
        return start if at_start < 0 else unbounded

    def calc_currency_allocation(self, price: float, leveraged: bool) -> float:
        if leveraged:
            return float(self._curve.value(self._state.k, price)) + self._cfg.initial_budget
        return self._state.val + self._cfg.initial_budget - self._state.p * self._state.pos

    def get_budget_info(self) -> BudgetInfo:
        return BudgetInfo(total=self._cfg.initial_budget + self._state.val, assets=self._state.pos)

    def calc_chart(self, price: float) -> ChartPoint:
        k = self._state.k
        return ChartPoint(
            valid=True,
            position=float(self._curve.position(k, price)),
            budget=float(self._curve.value(k, price)) + self._cfg.initial_budget,
        )
