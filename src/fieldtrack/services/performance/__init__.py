"""Performance aggregation services."""

from .service import PerformanceAggregator, RatingBands, count_deliveries, success_rate, trajectory_totals

__all__ = [
    "PerformanceAggregator",
    "RatingBands",
    "count_deliveries",
    "success_rate",
    "trajectory_totals",
]
