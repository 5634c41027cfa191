"""timeledger - local-first personal time tracking."""

__version__ = "1.0.0"
