"""
Shared fixtures and test doubles for the predictive autoscaler tests
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence, Tuple

import pytest

from predictive_autoscaler.config.settings import ExecutorSettings, ForecastSettings
from predictive_autoscaler.core.actuators import Actuator, ActuatorRegistry
from predictive_autoscaler.core.resource_kinds import VIRTUAL_MACHINE_SCALE_SET
from predictive_autoscaler.models import (
    MetricDataPoint,
    MetricPrediction,
    PredictionPoint,
    ResourceInfo,
)
from predictive_autoscaler.services.memory import (
    InMemoryResourceDirectory,
    InMemoryScalingEventStore,
    InMemoryTelemetrySource,
)

# A Monday at midnight UTC
NOW = datetime(2024, 1, 8, 0, 0, tzinfo=timezone.utc)

VMSS_ID = "/subscriptions/sub/resourceGroups/rg/providers/Microsoft.Compute/virtualMachineScaleSets/web"


def make_series(values: Sequence[float], end: datetime = NOW,
                step: timedelta = timedelta(hours=1)) -> List[MetricDataPoint]:
    """Samples oldest first; the last one lands one step before end"""
    start = end - step * len(values)
    return [MetricDataPoint(timestamp=start + step * i, value=v) for i, v in enumerate(values)]


def make_prediction(metric_name: str, points: Sequence[Tuple[float, float, float]],
                    mae: float = 0.0, start: datetime = NOW) -> MetricPrediction:
    """Build a prediction from (value, lower, upper) triples"""
    return MetricPrediction(
        metric_name=metric_name,
        predictions=[
            PredictionPoint(timestamp=start + timedelta(hours=h), value=v, lower_bound=lo, upper_bound=hi)
            for h, (v, lo, hi) in enumerate(points, start=1)
        ],
        mean_absolute_error=mae,
        root_mean_squared_error=mae * 1.1
    )


class RecordingActuator(Actuator):
    """Actuator double that records calls and entry/exit times"""

    kind = VIRTUAL_MACHINE_SCALE_SET

    def __init__(self, result: bool = True, delay: float = 0.0, capacity: Optional[int] = 2,
                 error: Optional[Exception] = None):
        self.result = result
        self.delay = delay
        self.capacity = capacity
        self.error = error
        self.calls = []
        self.entries = []
        self.exits = []
        self.active = 0
        self.max_active = 0

    async def set_capacity(self, resource, target_instances):
        loop = asyncio.get_running_loop()
        self.calls.append((resource.id, target_instances))
        self.entries.append(loop.time())
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.error:
                raise self.error
            return self.result
        finally:
            self.active -= 1
            self.exits.append(loop.time())

    async def get_capacity(self, resource):
        return self.capacity


@pytest.fixture
def forecast_settings():
    return ForecastSettings(
        lookback_days=30,
        max_window_size=24,
        confidence_z=1.96,
        rmse_inflation=1.1,
        fallback_band=0.2,
        fetch_timeout_seconds=1.0,
        smoothing_alpha=0.5,
        smoothing_beta=0.1,
        seasonal_min_points=48
    )


@pytest.fixture
def executor_settings():
    return ExecutorSettings(
        actuator_timeout_seconds=1.0,
        trigger="Predictive Scaling",
        lock_backend="memory",
        lock_timeout_seconds=600
    )


@pytest.fixture
def vmss_resource():
    return ResourceInfo(id=VMSS_ID, kind=VIRTUAL_MACHINE_SCALE_SET, name="web")


@pytest.fixture
def directory(vmss_resource):
    return InMemoryResourceDirectory([vmss_resource])


@pytest.fixture
def event_store():
    return InMemoryScalingEventStore()


@pytest.fixture
def telemetry():
    return InMemoryTelemetrySource()


@pytest.fixture
def actuator():
    return RecordingActuator()


@pytest.fixture
def actuators(actuator):
    registry = ActuatorRegistry()
    registry.register(VIRTUAL_MACHINE_SCALE_SET, actuator)
    return registry
