"""Utility modules for ScopeFlow."""

from .background_tasks import (
    schedule,
    drain_background_tasks,
)

from .formatting import (
    format_money,
    format_cost_delta,
    format_weeks,
    format_weeks_delta,
)

__all__ = [
    # Background tasks
    "schedule",
    "drain_background_tasks",
    # Formatting
    "format_money",
    "format_cost_delta",
    "format_weeks",
    "format_weeks_delta",
]
