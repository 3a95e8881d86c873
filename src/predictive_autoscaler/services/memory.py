#!/usr/bin/env python3
"""
In-process collaborator implementations, used by tests and single-process deployments
"""

import asyncio
import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional, Iterable, Tuple

from ..models import MetricDataPoint, ResourceInfo, CostAnalysis, ScalingEvent
from .base import TelemetrySource, ResourceDirectory, CostSignal, ScalingEventStore

logger = logging.getLogger(__name__)


class InMemoryTelemetrySource(TelemetrySource):
    """Telemetry held in a dict keyed by (resource_id, metric_name)"""

    def __init__(self):
        self._series: Dict[Tuple[str, str], List[MetricDataPoint]] = defaultdict(list)

    def add_points(self, resource_id: str, metric_name: str, points: Iterable[MetricDataPoint]) -> None:
        self._series[(resource_id, metric_name)].extend(points)

    async def get_metrics(self, resource_id: str, metric_name: str,
                          start_time: datetime, end_time: datetime) -> List[MetricDataPoint]:
        return [
            point for point in self._series.get((resource_id, metric_name), [])
            if start_time <= point.timestamp <= end_time
        ]


class InMemoryResourceDirectory(ResourceDirectory):
    """Static directory of known resources"""

    def __init__(self, resources: Optional[Iterable[ResourceInfo]] = None):
        self._resources: Dict[str, ResourceInfo] = {}
        for resource in resources or []:
            self.register(resource)

    def register(self, resource: ResourceInfo) -> None:
        self._resources[resource.id] = resource

    async def get_resource(self, resource_id: str) -> Optional[ResourceInfo]:
        return self._resources.get(resource_id)


class StaticCostSignal(CostSignal):
    """Returns the same cost figures for every scope"""

    def __init__(self, total_monthly_cost: float = 0.0, potential_monthly_savings: float = 0.0):
        self.analysis = CostAnalysis(
            total_monthly_cost=total_monthly_cost,
            potential_monthly_savings=potential_monthly_savings
        )

    async def analyze_cost(self, scope_id: str) -> CostAnalysis:
        return self.analysis


class InMemoryScalingEventStore(ScalingEventStore):
    """Audit store kept in a list, in the order events were appended"""

    def __init__(self):
        self._events: List[ScalingEvent] = []
        self._lock = asyncio.Lock()

    async def append(self, event: ScalingEvent) -> None:
        async with self._lock:
            self._events.append(event)
        logger.debug(f"Recorded scaling event {event.id} for {event.resource_id} (success={event.success})")

    async def query(self, resource_id: str, start_date: datetime, end_date: datetime) -> List[ScalingEvent]:
        async with self._lock:
            matching = [
                e for e in self._events
                if e.resource_id == resource_id and start_date <= e.timestamp <= end_date
            ]
        # Stable sort keeps append order for equal timestamps
        return sorted(matching, key=lambda e: e.timestamp)

    @property
    def events(self) -> List[ScalingEvent]:
        return list(self._events)
