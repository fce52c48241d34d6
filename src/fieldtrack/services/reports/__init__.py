"""Movement report service exports."""

from .movements import MovementFilters, daily_summaries, filter_movements, movement_stats

__all__ = ["MovementFilters", "filter_movements", "movement_stats", "daily_summaries"]
