"""Exceptions raised across Pivot Matrix."""


class InitializationError(RuntimeError):
    """Strategy could not be initialized into a valid state."""


class ConfigError(ValueError):
    """Configuration is missing or out of the allowed domain."""


class StorageError(OSError):
    """A state snapshot could not be written."""
