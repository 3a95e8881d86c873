"""
Models package for autoscaling data structures
"""

from .scaling import (
    utcnow,
    ScalingAction,
    ScalingStrategy,
    PredictionModel,
    UsagePattern,
    ScheduleType,
    AggregationType,
    MetricDataPoint,
    PredictionPoint,
    MetricPrediction,
    ScalingAnalysis,
    ScalingRecommendation,
    ScalingEvent,
    ScalingPerformanceMetrics,
    UsagePatternAnalysis,
    ScalingMetrics,
    ScalingThresholds,
    ScalingConstraints,
    PredictionSettings,
    ScalingSchedule,
    ScalingConfiguration,
    ResourceInfo,
    CostAnalysis,
    ResourceUtilization,
)

__all__ = [
    "utcnow",
    "ScalingAction",
    "ScalingStrategy",
    "PredictionModel",
    "UsagePattern",
    "ScheduleType",
    "AggregationType",
    "MetricDataPoint",
    "PredictionPoint",
    "MetricPrediction",
    "ScalingAnalysis",
    "ScalingRecommendation",
    "ScalingEvent",
    "ScalingPerformanceMetrics",
    "UsagePatternAnalysis",
    "ScalingMetrics",
    "ScalingThresholds",
    "ScalingConstraints",
    "PredictionSettings",
    "ScalingSchedule",
    "ScalingConfiguration",
    "ResourceInfo",
    "CostAnalysis",
    "ResourceUtilization",
]
