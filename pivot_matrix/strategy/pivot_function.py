"""Power-N pivot curves: closed-form position, value and inverse.

  position(x) = (w·p·c)/(2·k·w²) · ((x/k)^-w − (x/k)^w)
  value(x)    = ∫ position dx, zero at x = k, negative elsewhere for c·p > 0
  invert(pos) = price at which position(x) == pos for a fixed pivot k

All functions take floats or numpy arrays. Domain: x > 0, k > 0, w > 0,
w != 1, c != 0. Parameters are validated by the config layer, not here.
"""

from __future__ import annotations

import numpy as np

from pivot_matrix.core.data_types import PowerNConfig


def position(p, w, k, c, x):
    xk = np.divide(x, k)
    return (w * p * c) / (2 * k * w * w) * (np.power(xk, -w) - np.power(xk, w))


def value(p, w, k, c, x):
    xk = np.divide(x, k)
    return -(
        c * p * (-2 * k * w + (1 + w) * x * np.power(xk, -w) + (w - 1) * x * np.power(xk, w))
        / (2 * k * (w - 1) * w * (w + 1))
    )


def invert(p, w, k, c, pos):
    """Price at which the curve centered at k holds pos."""
    return k * np.power(
        (np.sqrt(c * c * p * p + k * k * pos * pos * w * w) - k * pos * w) / (c * p),
        1.0 / w,
    )


class PivotCurve:
    """The three curve functions bound to one strategy config."""

    def __init__(self, config: PowerNConfig) -> None:
        self._cfg = config

    @property
    def config(self) -> PowerNConfig:
        return self._cfg

    def position(self, k, x):
        cfg = self._cfg
        return position(cfg.p, cfg.w, k, cfg.c, x)

    def value(self, k, x):
        cfg = self._cfg
        return value(cfg.p, cfg.w, k, cfg.c, x)

    def price_at(self, k, pos):
        cfg = self._cfg
        return invert(cfg.p, cfg.w, k, cfg.c, pos)
