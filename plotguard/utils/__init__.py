"""Geometry, payload and export helpers for PlotGuard."""
