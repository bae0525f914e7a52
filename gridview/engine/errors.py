"""Exception types raised by the grid engine."""
from __future__ import annotations


class GridViewError(Exception):
    """Base class for engine errors."""


class ConfigError(GridViewError, ValueError):
    """Raised when a table definition or column descriptor is invalid."""


class FilterValidationError(GridViewError, ValueError):
    """Raised when a filter is applied without an operator or a numeric value."""


class PersistenceError(GridViewError):
    """Raised by key-value stores when a read or write cannot complete."""


__all__ = ["GridViewError", "ConfigError", "FilterValidationError", "PersistenceError"]
