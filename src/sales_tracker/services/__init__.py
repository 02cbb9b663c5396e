"""Application services for the sales tracker."""

from .analytics import (
    SalesAnalyzer,
    AnalyticsReport,
    FunnelCounts,
    VelocityStats,
    WeeklyThroughput,
    WeeklyRevenue,
    CohortRevenue,
    compute_funnel,
    compute_velocity_by_priority,
    compute_throughput_by_week,
    compute_weighted_pipeline,
    compute_forecast,
    compute_cohort_revenue,
)
from .export import to_csv, write_csv, CSV_HEADERS

__all__ = [
    "SalesAnalyzer",
    "AnalyticsReport",
    "FunnelCounts",
    "VelocityStats",
    "WeeklyThroughput",
    "WeeklyRevenue",
    "CohortRevenue",
    "compute_funnel",
    "compute_velocity_by_priority",
    "compute_throughput_by_week",
    "compute_weighted_pipeline",
    "compute_forecast",
    "compute_cohort_revenue",
    "to_csv",
    "write_csv",
    "CSV_HEADERS",
]
