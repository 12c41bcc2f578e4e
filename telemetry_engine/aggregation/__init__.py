"""Aggregation Engine - series rodantes y estadísticas 24h."""

from .engine import AggregationConfig, AggregationEngine, compute_fleet_stats
from .rolling_stats import RollingStatsBook
from .series import ThrottledSeries
from .trend import TrendDirection, TrendSummary, analyze_trend

__all__ = [
    "AggregationConfig",
    "AggregationEngine",
    "RollingStatsBook",
    "ThrottledSeries",
    "TrendDirection",
    "TrendSummary",
    "analyze_trend",
    "compute_fleet_stats",
]
