"""Core enums used across the Pivot Matrix system."""

from enum import Enum


class Alert(Enum):
    """Alert policy attached to an order request."""

    DISABLED = "disabled"
    ENABLED = "enabled"
    FORCED = "forced"


class StorageFormat(Enum):
    JSON = "json"            # compact structured text
    JSON_PRETTY = "jsonp"    # indented structured text
    BINARY = "binjson"       # compact binary (pickle)


class StrategyId(Enum):
    POWERN = "powern"
    HOLD = "hold"
