"""
Core engine components for the predictive autoscaler
"""

from .forecasting import MetricForecaster, LinearTrendForecaster
from .scaling import ScalingDecisionEngine
from .executor import RecommendationExecutor
from .performance import PerformanceAnalyzer
from .optimizer import ConfigurationOptimizer
from .engine import PredictiveScalingEngine

__all__ = [
    "MetricForecaster",
    "LinearTrendForecaster",
    "ScalingDecisionEngine",
    "RecommendationExecutor",
    "PerformanceAnalyzer",
    "ConfigurationOptimizer",
    "PredictiveScalingEngine",
]
