#!/usr/bin/env python3
"""
Base classes for the external collaborators the engine consumes
"""

from datetime import datetime
from typing import Dict, List, Optional

from ..models import (
    MetricDataPoint,
    ResourceInfo,
    CostAnalysis,
    ScalingEvent,
    ResourceUtilization,
    UsagePatternAnalysis,
)


class TelemetrySource:
    """Source of historical metric samples for a resource"""

    async def get_metrics(self, resource_id: str, metric_name: str,
                          start_time: datetime, end_time: datetime) -> List[MetricDataPoint]:
        """
        Fetch samples of one metric for one resource

        Args:
            resource_id: Resource identifier
            metric_name: Metric to fetch
            start_time: Start of the window (inclusive)
            end_time: End of the window (inclusive)

        Returns:
            Samples in any order; callers sort them
        """
        raise NotImplementedError("Subclasses must implement get_metrics() method")


class ResourceDirectory:
    """Resolves resource identifiers to their kind and name"""

    async def get_resource(self, resource_id: str) -> Optional[ResourceInfo]:
        """Return the resource, or None when it does not exist"""
        raise NotImplementedError("Subclasses must implement get_resource() method")


class CostSignal:
    """Cost-analysis figures used as an input signal"""

    async def analyze_cost(self, scope_id: str) -> CostAnalysis:
        raise NotImplementedError("Subclasses must implement analyze_cost() method")


class ScalingEventStore:
    """Append-only audit store of scaling events"""

    async def append(self, event: ScalingEvent) -> None:
        raise NotImplementedError("Subclasses must implement append() method")

    async def query(self, resource_id: str, start_date: datetime, end_date: datetime) -> List[ScalingEvent]:
        """Return events for the resource in the window, in completion order"""
        raise NotImplementedError("Subclasses must implement query() method")


class UtilizationAnalyzer:
    """Estimates how much of a window a resource spent over- or under-provisioned"""

    async def analyze(self, resource_id: str, start_date: datetime, end_date: datetime) -> ResourceUtilization:
        raise NotImplementedError("Subclasses must implement analyze() method")


class AccuracyCalculator:
    """Scores past forecasts against what actually happened"""

    async def calculate(self, resource_id: str, start_date: datetime, end_date: datetime) -> Dict[str, float]:
        """Return accuracy in [0, 1] keyed by metric name"""
        raise NotImplementedError("Subclasses must implement calculate() method")


class UsagePatternSource:
    """Produces a usage-pattern analysis for a resource"""

    async def analyze(self, resource_id: str) -> UsagePatternAnalysis:
        raise NotImplementedError("Subclasses must implement analyze() method")
