"""Budget-aware autonomous agent with adaptive polling and a priority work queue."""

__version__ = "0.1.0"
