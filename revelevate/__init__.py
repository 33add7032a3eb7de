"""Hotel revenue-management core: ledger metrics, plan requests and plan analytics."""

__version__ = "0.1.0"
