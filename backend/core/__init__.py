"""Core mathematics and configuration for the Acca Edge accumulator engine.

This package contains pure building blocks:

- ``acca_config``: every threshold, weight and tier policy in one frozen config
- ``odds_math``  : decimal-odds validity, fair pricing, per-leg break-even odds
- ``season_sim`` : closed-form season projection for a repeated combo

Nothing in this package imports from ``backend.services`` or ``backend.models``.
All modules are side-effect-free and unit-testable in isolation.
"""
