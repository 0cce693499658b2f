"""Error types raised by PlotGuard."""

from __future__ import annotations


class PlotGuardError(Exception):
    """Base class for all PlotGuard errors."""


class GeometryError(PlotGuardError, ValueError):
    """Polygon text is malformed, insufficient or degenerate.

    Parameters
    ----------
    reason : str
        Human readable description of the problem.
    """

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class SyncError(PlotGuardError):
    """Remote backend failure while paging submissions."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class ConfigError(PlotGuardError):
    """Invalid application settings."""
