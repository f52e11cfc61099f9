"""Construction company bookkeeping core: ledger, allocations, trash and analytics on SQLite."""

__version__ = "0.1.0"
