"""Hold Strategy: keeps the initial position and never re-centers.

Used as a benchmark next to the power-N strategy. Shares the same
event-handler contract, so the host and the replay runner treat both alike.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Mapping

from pivot_matrix.core.data_types import (
    BudgetInfo,
    ChartPoint,
    MarketInfo,
    MinMax,
    OnTradeResult,
    OrderData,
    PivotState,
    Ticker,
)
from pivot_matrix.core.errors import InitializationError
from pivot_matrix.core.types import Alert, StrategyId
from pivot_matrix.strategy.strategy_base import Strategy

logger = logging.getLogger(__name__)


class HoldStrategy(Strategy):
    """Buy-and-hold. State reuses PivotState with k pinned to the last price."""

    id = StrategyId.HOLD.value

    def __init__(self, initial_budget: float = 0.0, state: PivotState | None = None) -> None:
        self._initial_budget = initial_budget
        self._state = state if state is not None else PivotState()

    @property
    def state(self) -> PivotState:
        return self._state

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HoldStrategy):
            return NotImplemented
        return self._initial_budget == other._initial_budget and self._state == other._state

    def is_valid(self) -> bool:
        return self._state.p > 0

    def init(self, minfo: MarketInfo, price: float, assets: float, currency: float) -> HoldStrategy:
        if not price > 0:
            logger.error("Unable to initialize hold strategy at price %.8g", price)
            raise InitializationError("Unable to initialize strategy")
        return HoldStrategy(self._initial_budget, PivotState(val=0.0, k=price, p=price, pos=assets))

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
        return OrderData(0.0, 0.0, Alert.DISABLED)

    def on_trade(
        self,
        minfo: MarketInfo,
        price: float,
        size: float,
        assets_left: float,
        currency_left: float,
    ) -> tuple[OnTradeResult, HoldStrategy]:
        if not self.is_valid():
            return self.init(minfo, price, assets_left - size, currency_left).on_trade(
                minfo, price, size, assets_left, currency_left
            )
        st = self._state
        pnl = (price - st.p) * (assets_left - size)
        new_state = PivotState(val=st.val + pnl, k=price, p=price, pos=assets_left)
        return (
            OnTradeResult(realized_pnl=pnl, fee=0.0, new_pivot=price, extra=0.0),
            HoldStrategy(self._initial_budget, new_state),
        )

    def on_idle(self, minfo: MarketInfo, ticker: Ticker, assets: float, currency: float) -> HoldStrategy:
        if not self.is_valid():
            return self.init(minfo, ticker.last, assets, currency)
        return self

    def reset(self) -> HoldStrategy:
        return HoldStrategy(self._initial_budget)

    def export_state(self) -> dict[str, Any]:
        return self._state.to_dict()

    def import_state(self, src: Mapping[str, Any], minfo: MarketInfo) -> HoldStrategy:
        return HoldStrategy(self._initial_budget, PivotState.from_dict(src))

    def calc_safe_range(self, minfo: MarketInfo, assets: float, currency: float) -> MinMax:
        return MinMax(0.0, math.inf)

    def get_budget_info(self) -> BudgetInfo:
        st = self._state
        return BudgetInfo(total=self._initial_budget + st.pos * st.p, assets=st.pos)

    def calc_chart(self, price: float) -> ChartPoint:
        st = self._state
        return ChartPoint(valid=True, position=st.pos, budget=self._initial_budget + st.pos * price)
