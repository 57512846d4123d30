"""Strategy interface shared by every pivot-matrix strategy variant.

A strategy is an immutable value: every event handler returns a new strategy
instead of mutating the receiver. The host keeps the returned instance and
persists its export_state() after each transition.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping

from pivot_matrix.core.data_types import (
    BudgetInfo,
    ChartPoint,
    MarketInfo,
    MinMax,
    OnTradeResult,
    OrderData,
    Ticker,
)


class Strategy(ABC):
    """Event-handler contract implemented by each concrete variant."""

    id: str = ""

    def get_id(self) -> str:
        return self.id

    @abstractmethod
    def is_valid(self) -> bool:
        ...

    @abstractmethod
    def init(self, minfo: MarketInfo, price: float, assets: float, currency: float) -> Strategy:
        ...

    @abstractmethod
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
        ...

    @abstractmethod
    def on_trade(
        self,
        minfo: MarketInfo,
        price: float,
        size: float,
        assets_left: float,
        currency_left: float,
    ) -> tuple[OnTradeResult, Strategy]:
        ...

    @abstractmethod
    def on_idle(self, minfo: MarketInfo, ticker: Ticker, assets: float, currency: float) -> Strategy:
        ...

    @abstractmethod
    def reset(self) -> Strategy:
        ...

    @abstractmethod
    def export_state(self) -> dict[str, Any]:
        ...

    @abstractmethod
    def import_state(self, src: Mapping[str, Any], minfo: MarketInfo) -> Strategy:
        ...

    @abstractmethod
    def calc_safe_range(self, minfo: MarketInfo, assets: float, currency: float) -> MinMax:
        ...

    @abstractmethod
    def get_budget_info(self) -> BudgetInfo:
        ...

    @abstractmethod
    def calc_chart(self, price: float) -> ChartPoint:
        ...

    def dump_state_pretty(self, minfo: MarketInfo) -> dict[str, Any]:
        return {}
