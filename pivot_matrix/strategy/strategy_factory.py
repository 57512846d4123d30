"""Strategy factory: selects the strategy variant at construction time."""

from __future__ import annotations

from pivot_matrix.core.data_types import PowerNConfig
from pivot_matrix.core.errors import ConfigError
from pivot_matrix.core.types import StrategyId
from pivot_matrix.strategy.hold_strategy import HoldStrategy
from pivot_matrix.strategy.powern_strategy import PowerNStrategy
from pivot_matrix.strategy.strategy_base import Strategy


def create_strategy(strategy_id: str | StrategyId, config: PowerNConfig) -> Strategy:
    """Build an uninitialized strategy of the requested variant."""
    try:
        sid = StrategyId(strategy_id)
    except ValueError:
        raise ConfigError(f"Unknown strategy: {strategy_id}") from None

    if sid == StrategyId.POWERN:
        return PowerNStrategy(config)
    return HoldStrategy(initial_budget=config.initial_budget)
