"""
External collaborators consumed by the engine
"""

from .base import (
    TelemetrySource,
    ResourceDirectory,
    CostSignal,
    ScalingEventStore,
    UtilizationAnalyzer,
    AccuracyCalculator,
    UsagePatternSource,
)
from .memory import (
    InMemoryTelemetrySource,
    InMemoryResourceDirectory,
    InMemoryScalingEventStore,
    StaticCostSignal,
)

__all__ = [
    "TelemetrySource",
    "ResourceDirectory",
    "CostSignal",
    "ScalingEventStore",
    "UtilizationAnalyzer",
    "AccuracyCalculator",
    "UsagePatternSource",
    "InMemoryTelemetrySource",
    "InMemoryResourceDirectory",
    "InMemoryScalingEventStore",
    "StaticCostSignal",
]
