#!/usr/bin/env python3
"""
Prometheus metrics for the predictive scaling engine
"""

from prometheus_client import Counter, Histogram

PREDICTIONS_TOTAL = Counter(
    'predictive_autoscaler_predictions_total',
    'Scaling recommendations produced',
    ['action']
)

FORECAST_FAILURES_TOTAL = Counter(
    'predictive_autoscaler_forecast_failures_total',
    'Metrics skipped while forecasting',
    ['reason']  # 'no_data', 'timeout', 'error'
)

SCALING_EXECUTIONS_TOTAL = Counter(
    'predictive_autoscaler_scaling_executions_total',
    'Recommendation execution attempts',
    ['resource_kind', 'status']
)

ACTUATOR_DURATION = Histogram(
    'predictive_autoscaler_actuator_duration_seconds',
    'Time spent in actuator capacity changes',
    ['resource_kind'],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0, 600.0]
)

ANALYTICS_DEFAULTS_TOTAL = Counter(
    'predictive_autoscaler_analytics_defaults_total',
    'Analytics sub-queries that failed and fell back to defaults',
    ['component']
)
