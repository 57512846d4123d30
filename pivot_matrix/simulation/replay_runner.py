"""Replay Runner: drives one strategy through a bar series.

Per bar:
  1. Ask the strategy for an order at the bar close
  2. Fill it through the FillEngine (slippage, through-fill, partial rate)
  3. Filled → on_trade(); otherwise → on_idle()
  4. Persist the new state when a Storage is attached

Balances (assets, currency) live in the runner; the strategy only sees them
as event arguments, as it would with a real exchange.
"""

from __future__ import annotations

import logging
from typing import Any

import numpy as np

from pivot_matrix.core.data_types import MarketInfo, Ticker
from pivot_matrix.simulation.fill_engine import Fill, FillEngine
from pivot_matrix.storage.versioned_storage import Storage
from pivot_matrix.strategy.strategy_base import Strategy

logger = logging.getLogger(__name__)


BAR_DTYPE = np.dtype([
    ("timestamp_ns", np.int64),
    ("open", np.float64),
    ("high", np.float64),
    ("low", np.float64),
    ("close", np.float64),
])

BAR_INTERVAL_NS = 60_000_000_000


def generate_random_walk(
    start_price: float,
    steps: int,
    volatility: float,
    seed: int | None = None,
) -> np.ndarray:
    """Geometric random walk as BAR_DTYPE bars with intrabar wicks."""
    rng = np.random.default_rng(seed)
    closes = start_price * np.exp(np.cumsum(rng.normal(0.0, volatility, steps)))
    opens = np.concatenate([[start_price], closes[:-1]])
    wick_up = np.exp(np.abs(rng.normal(0.0, volatility / 2, steps)))
    wick_down = np.exp(-np.abs(rng.normal(0.0, volatility / 2, steps)))

    bars = np.zeros(steps, dtype=BAR_DTYPE)
    bars["timestamp_ns"] = np.arange(steps, dtype=np.int64) * BAR_INTERVAL_NS
    bars["open"] = opens
    bars["close"] = closes
    bars["high"] = np.maximum(opens, closes) * wick_up
    bars["low"] = np.minimum(opens, closes) * wick_down
    return bars


def bars_from_prices(prices: np.ndarray) -> np.ndarray:
    """Wrap a plain close-price series into BAR_DTYPE bars (no wicks)."""
    prices = np.asarray(prices, dtype=np.float64)
    bars = np.zeros(len(prices), dtype=BAR_DTYPE)
    if len(prices) == 0:
        return bars
    opens = np.concatenate([[prices[0]], prices[:-1]])
    bars["timestamp_ns"] = np.arange(len(prices), dtype=np.int64) * BAR_INTERVAL_NS
    bars["open"] = opens
    bars["close"] = prices
    bars["high"] = np.maximum(opens, prices)
    bars["low"] = np.minimum(opens, prices)
    return bars


def effective_fill_level(bars: np.ndarray, level: int) -> int:
    """Fill level usable on bars. Close-only series have no intrabar range.

    Without a range a through-fill never triggers, so levels 2 and 3 would
    silently produce zero trades on a plain close series.
    """
    if np.asarray(bars).dtype == BAR_DTYPE or level <= 1:
        return level
    logger.warning("Close-only price series, fill level %d needs intrabar range, using level 1", level)
    return 1


class ReplayRunner:
    """Replays bars through a strategy and tracks balances and realized P&L."""

    def __init__(
        self,
        strategy: Strategy,
        market: MarketInfo,
        fill_engine: FillEngine | None = None,
        storage: Storage | None = None,
        assets: float = 0.0,
        currency: float = 0.0,
    ) -> None:
        self._strategy = strategy
        self._market = market
        self._fill = fill_engine or FillEngine(level=1)
        self._storage = storage
        self._assets = assets
        self._currency = currency
        self._trades: list[dict[str, Any]] = []
        self._realized_pnl = 0.0

    @property
    def strategy(self) -> Strategy:
        return self._strategy

    @property
    def assets(self) -> float:
        return self._assets

    @property
    def currency(self) -> float:
        return self._currency

    @property
    def trades(self) -> list[dict[str, Any]]:
        return self._trades

    def restore(self) -> bool:
        """Resume strategy and balances from the latest stored snapshot.

        Returns True if a snapshot was loaded, False otherwise.
        """
        if self._storage is None:
            return False
        snapshot = self._storage.load()
        if snapshot is None:
            logger.info("No snapshot found at %s, starting fresh", self._storage.file)
            return False
        if not isinstance(snapshot, dict):
            logger.warning(
                "Snapshot at %s is a %s, not a mapping, starting fresh",
                self._storage.file,
                type(snapshot).__name__,
            )
            return False
        if snapshot.get("strategy") != self._strategy.get_id():
            logger.warning(
                "Snapshot belongs to strategy %r, not %r, starting fresh",
                snapshot.get("strategy"),
                self._strategy.get_id(),
            )
            return False
        self._strategy = self._strategy.import_state(snapshot.get("state", {}), self._market)
        self._assets = float(snapshot.get("assets", self._assets))
        self._currency = float(snapshot.get("currency", self._currency))
        logger.info("Restored %s state from %s", self._strategy.get_id(), self._storage.file)
        return True

    def run(self, bars: np.ndarray) -> dict[str, Any]:
        """Replay bars (BAR_DTYPE or a 1-D close series). Returns a summary dict."""
        bars = np.asarray(bars)
        if bars.dtype != BAR_DTYPE:
            bars = bars_from_prices(bars)
        if len(bars) == 0:
            return self._summary(0, None)

        market = self._market
        last = float(bars[0]["close"])
        self._strategy = self._strategy.on_idle(
            market, Ticker(last, last, last, int(bars[0]["timestamp_ns"])), self._assets, self._currency
        )
        self._persist()

        for bar in bars[1:]:
            close = float(bar["close"])
            direction = 1.0 if close <= last else -1.0
            order = self._strategy.get_new_order(
                market, last, close, direction, self._assets, self._currency
            )
            fill = None
            if abs(order.size) >= market.calc_min_size(close):
                fill = self._fill.fill(order.size, close, float(bar["high"]), float(bar["low"]))

            if fill is not None:
                self._execute(bar, fill)
            else:
                ticker = Ticker(close, close, close, int(bar["timestamp_ns"]))
                self._strategy = self._strategy.on_idle(market, ticker, self._assets, self._currency)
            last = close

        summary = self._summary(len(bars), last)
        logger.info(
            "Replay complete: %d bars, %d trades, realized P&L %.4f",
            summary["bars"],
            summary["trades"],
            summary["realized_pnl"],
        )
        return summary

    def _execute(self, bar: np.void, fill: Fill) -> None:
        self._assets += fill.size
        self._currency -= fill.size * fill.price

        result, self._strategy = self._strategy.on_trade(
            self._market, fill.price, fill.size, self._assets, self._currency
        )
        self._realized_pnl += result.realized_pnl
        self._trades.append({
            "timestamp_ns": int(bar["timestamp_ns"]),
            "price": fill.price,
            "size": fill.size,
            "realized_pnl": result.realized_pnl,
            "pivot": result.new_pivot,
            "assets": self._assets,
            "currency": self._currency,
        })
        logger.debug("Fill %+.8g @ %.8g, pivot %.8g", fill.size, fill.price, result.new_pivot)
        self._persist()

    def _persist(self) -> None:
        if self._storage is None:
            return
        self._storage.store({
            "strategy": self._strategy.get_id(),
            "state": self._strategy.export_state(),
            "assets": self._assets,
            "currency": self._currency,
        })

    def _summary(self, bar_count: int, last_price: float | None) -> dict[str, Any]:
        """Run summary. Price-dependent fields are None when no bar was replayed."""
        budget = self._strategy.get_budget_info() if self._strategy.is_valid() else None
        return {
            "bars": bar_count,
            "trades": len(self._trades),
            "realized_pnl": self._realized_pnl,
            "final_price": last_price,
            "final_assets": self._assets,
            "final_currency": self._currency,
            "equity": None if last_price is None else self._currency + self._assets * last_price,
            "pivot": self._strategy.export_state().get("k", 0.0),
            "budget": budget.total if budget is not None else 0.0,
        }
