"""Pessimistic Fill Engine: 3-level fill model for price replays.

Level 1 (Optimistic): fills at touch, no slippage, full size.
Level 2 (Standard): 1-tick slippage, through-fill required, 85% of the size.
Level 3 (Conservative): 2-tick slippage, through-fill required, 65% of the size.

Orders are marketable at the bar close. Sizes are signed fractional asset
amounts (+ buy, - sell), so a partial fill scales the size instead of flooring
a contract count.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class FillConfig:
    """Fill engine configuration for a specific pessimism level."""

    name: str
    level: int
    slippage_ticks: int
    require_through_fill: bool
    partial_fill_rate: float


FILL_LEVELS = {
    cfg.level: cfg
    for cfg in (
        FillConfig("Optimistic", 1, slippage_ticks=0, require_through_fill=False, partial_fill_rate=1.0),
        FillConfig("Standard", 2, slippage_ticks=1, require_through_fill=True, partial_fill_rate=0.85),
        FillConfig("Conservative", 3, slippage_ticks=2, require_through_fill=True, partial_fill_rate=0.65),
    )
}


@dataclass(frozen=True)
class Fill:
    """Executed part of an order: signed size at the slipped price."""

    price: float
    size: float

    @property
    def is_buy(self) -> bool:
        return self.size > 0


class FillEngine:
    """Decides whether and how a strategy order fills inside one bar."""

    def __init__(self, level: int = 2, tick_size: float = 0.01) -> None:
        self._config = FILL_LEVELS.get(level, FILL_LEVELS[2])
        self._tick_size = tick_size

    @property
    def config(self) -> FillConfig:
        return self._config

    def apply_slippage(self, price: float, is_buy: bool) -> float:
        """Move the price against the order by the configured ticks."""
        slippage = self._config.slippage_ticks * self._tick_size
        return price + slippage if is_buy else price - slippage

    def would_fill(self, order_price: float, market_high: float, market_low: float, is_buy: bool) -> bool:
        """Whether the bar range reaches order_price.

        With through-fill the bar must trade beyond the price, a touch is not enough.
        """
        if is_buy:
            reached = market_low < order_price if self._config.require_through_fill else market_low <= order_price
        else:
            reached = market_high > order_price if self._config.require_through_fill else market_high >= order_price
        return reached

    def apply_partial_fill(self, requested: float) -> float:
        """Signed filled amount for a signed requested amount."""
        return requested * self._config.partial_fill_rate

    def fill(self, size: float, price: float, high: float, low: float) -> Fill | None:
        """Fill a signed order at price within the [low, high] bar, or None."""
        if not size:
            return None
        is_buy = size > 0
        if not self.would_fill(price, high, low, is_buy):
            return None
        return Fill(price=self.apply_slippage(price, is_buy), size=self.apply_partial_fill(size))
