"""Logging, stage timing and run reports."""

from .utils import (
    # Logging
    setup_logging,

    # Stage timing
    StageMetrics,
    PerformanceMonitor,
    get_system_info,

    # Reports
    to_jsonable,
    save_results,
    create_results_summary,
    create_performance_report,
    format_duration,
)

__all__ = [
    'setup_logging',
    'StageMetrics',
    'PerformanceMonitor',
    'get_system_info',
    'to_jsonable',
    'save_results',
    'create_results_summary',
    'create_performance_report',
    'format_duration',
]
