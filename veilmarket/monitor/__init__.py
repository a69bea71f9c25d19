"""veilmarket market monitor — read-only projection over a session.

Modules
-------
projection
    ``MarketProjection`` reads the repository and history and produces
    ``MarketSnapshot`` models.
renderer
    ``MarketRenderer`` turns snapshots into Rich renderables.
"""
