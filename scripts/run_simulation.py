#!/usr/bin/env python3
"""Replay a price path through a pivot strategy.

Usage:
    python scripts/run_simulation.py --profile spot --steps 2000 --seed 7
    python scripts/run_simulation.py --profile leveraged --instrument BTCUSD \\
        --prices data/btcusd_closes.npy --fill-level 2 --state-dir state/
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

import numpy as np

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from pivot_matrix.config.config_manager import DEFAULT_CONFIG_PATH, ConfigManager
from pivot_matrix.core.errors import ConfigError
from pivot_matrix.simulation.fill_engine import FillEngine
from pivot_matrix.simulation.replay_runner import ReplayRunner, effective_fill_level, generate_random_walk
from pivot_matrix.strategy.strategy_factory import create_strategy


def parse_args():
    parser = argparse.ArgumentParser(description="Pivot Matrix Replay Simulation")
    parser.add_argument("--config", type=str, default=str(DEFAULT_CONFIG_PATH),
                        help="Path to base config TOML")
    parser.add_argument("--profile", type=str, default=None,
                        help="Account profile (spot, leveraged)")
    parser.add_argument("--instrument", type=str, default=None,
                        help="Instrument override (e.g. BTCUSD)")
    parser.add_argument("--prices", type=str, default=None,
                        help=".npy file with BAR_DTYPE bars or a 1-D close series (synthetic if omitted)")
    parser.add_argument("--steps", type=int, default=None,
                        help="Synthetic path length (overrides simulation.steps)")
    parser.add_argument("--seed", type=int, default=None,
                        help="Synthetic path seed (overrides simulation.seed)")
    parser.add_argument("--fill-level", type=int, default=None, choices=[1, 2, 3],
                        help="Fill pessimism level (1=Optimistic, 2=Standard, 3=Conservative)")
    parser.add_argument("--state-dir", type=str, default=None,
                        help="Persist strategy state to this directory after every transition")
    parser.add_argument("--resume", action="store_true",
                        help="Resume from the latest snapshot in --state-dir")
    parser.add_argument("--output", type=str, default="results/",
                        help="Output directory for results")
    parser.add_argument("--verbose", action="store_true",
                        help="Enable debug logging")
    return parser.parse_args()


def load_bars(path: str | None, settings) -> np.ndarray:
    """Load bars from .npy, or generate a synthetic random walk."""
    if path:
        data = np.load(path)
        logging.info("Loaded %d bars from %s", len(data), path)
        return data

    logging.info("No price file, generating synthetic random walk")
    return generate_random_walk(
        start_price=settings.start_price,
        steps=settings.steps,
        volatility=settings.volatility,
        seed=settings.seed,
    )


def main():
    args = parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    config_path = Path(args.config)
    if not config_path.exists():
        logging.error("Config file not found: %s", config_path)
        sys.exit(1)

    config = ConfigManager()
    try:
        config.load(config_path, args.profile, args.instrument)
        if args.steps is not None:
            config.set("simulation.steps", args.steps)
        if args.seed is not None:
            config.set("simulation.seed", args.seed)
        if args.fill_level is not None:
            config.set("simulation.fill_level", args.fill_level)
        if args.state_dir:
            config.set("storage.path", args.state_dir)
        settings = config.simulation_settings()
        strategy = create_strategy(config.strategy_id, config.strategy_config())
        market = config.market_info()
        storage_factory = config.storage_factory()
    except ConfigError as e:
        logging.error("Invalid configuration: %s", e)
        sys.exit(1)

    output_dir = Path(args.output)
    output_dir.mkdir(parents=True, exist_ok=True)

    logging.info("Pivot Matrix Simulation")
    logging.info("  Config: %s", args.config)
    logging.info("  Profile: %s", config.get("system.profile"))
    logging.info("  Strategy: %s", strategy.get_id())

    bars = load_bars(args.prices, settings)
    logging.info("  Bars loaded: %d", len(bars))
    fill_level = effective_fill_level(bars, settings.fill_level)
    logging.info("  Fill Level: %d", fill_level)

    storage = None
    if args.state_dir:
        storage = storage_factory.create(f"{strategy.get_id()}_{args.instrument or 'default'}")
        logging.info("  State: %s", storage.file)

    runner = ReplayRunner(
        strategy=strategy,
        market=market,
        fill_engine=FillEngine(level=fill_level, tick_size=settings.tick_size),
        storage=storage,
        assets=settings.initial_assets,
        currency=settings.initial_currency,
    )
    if args.resume:
        runner.restore()

    result = runner.run(bars)
    result["trade_log"] = runner.trades

    result_path = output_dir / "simulation_result.json"
    with open(result_path, "w") as f:
        json.dump(result, f, indent=2)

    logging.info("Results saved to %s", result_path)
    logging.info("Simulation complete: %s", {k: v for k, v in result.items() if k != "trade_log"})


if __name__ == "__main__":
    main()
