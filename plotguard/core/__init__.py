"""
Core reconciliation logic for PlotGuard.

Contains:
- Plot and submission entities
- Plot extraction from submission payloads
- Overlap checking
- Draft validation
- Submission sync
"""
