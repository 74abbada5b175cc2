"""Summary query package."""

from finance_tracker.queries.executor import SummaryExecutor

__all__ = ["SummaryExecutor"]
