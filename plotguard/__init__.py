# PlotGuard - Source Package
"""
PlotGuard: plot reconciliation and overlap detection for survey submissions.

This package provides:
- Geoshape / WKT polygon parsing and bounding boxes
- Plot extraction from KoboToolbox submission payloads
- Region + bounding-box pre-filtered overlap checks
- Delta synchronization with draft-to-submission matching
"""

__version__ = "0.1.0"
