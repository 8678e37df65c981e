"""Top level package for dividend_tracker.

The package provides a small CLI tool that keeps a personal ledger of
dividend payments and holdings in a local JSON store and derives portfolio
analytics from it: growth, yield on cost, payment consistency and forward
income projections.

The analytics live in :mod:`dividend_tracker.analytics` and are pure
functions over a ledger snapshot; everything else loads, stores or displays
that snapshot.
"""

__version__ = "1.0.0"

__all__ = [
    "analytics", "cli", "config", "errors", "fetch", "ledger", "models",
    "persistence", "reports", "tax", "upcoming", "utils",
]
