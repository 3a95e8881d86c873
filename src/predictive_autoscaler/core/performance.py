#!/usr/bin/env python3
"""
Performance analysis: retrospective scorecards for past scaling decisions
"""

import asyncio
import logging
import math
import statistics
from datetime import datetime, timedelta
from typing import Any, Awaitable, Dict, List, Optional

from ..config.settings import settings, DecisionSettings, ForecastSettings
from ..models import (
    MetricDataPoint,
    ResourceUtilization,
    ScalingEvent,
    ScalingPerformanceMetrics,
    ScalingThresholds,
)
from ..services.base import (
    AccuracyCalculator,
    CostSignal,
    ResourceDirectory,
    ScalingEventStore,
    TelemetrySource,
    UtilizationAnalyzer,
)
from .engine_metrics import ANALYTICS_DEFAULTS_TOTAL
from .forecasting import LinearTrendForecaster
from .resource_kinds import relevant_metrics, primary_metric_name

logger = logging.getLogger(__name__)

MAX_BACKTEST_HOURS = 168


class TelemetryUtilizationAnalyzer(UtilizationAnalyzer):
    """Share of primary-metric samples spent below the scale-down or above the scale-up boundary"""

    def __init__(self, telemetry: TelemetrySource, directory: ResourceDirectory,
                 thresholds: Optional[ScalingThresholds] = None,
                 decision_settings: Optional[DecisionSettings] = None):
        self.telemetry = telemetry
        self.directory = directory
        self.thresholds = thresholds or ScalingThresholds()
        self.decision_settings = decision_settings or settings.decision

    async def analyze(self, resource_id: str, start_date: datetime, end_date: datetime) -> ResourceUtilization:
        resource = await self.directory.get_resource(resource_id)
        if resource is None:
            return ResourceUtilization()

        metric = primary_metric_name(relevant_metrics(resource.kind))
        points = await self.telemetry.get_metrics(resource_id, metric, start_date, end_date)
        values = [p.value for p in points if math.isfinite(p.value)]
        if not values:
            return ResourceUtilization()

        below = sum(1 for v in values if v < self.thresholds.scale_down_threshold)
        above = sum(1 for v in values if v > self.decision_settings.scale_up_boundary)
        return ResourceUtilization(
            over_provisioned_percentage=below / len(values) * 100,
            under_provisioned_percentage=above / len(values) * 100
        )


class ForecastAccuracyCalculator(AccuracyCalculator):
    """Back-tests the baseline forecaster against actual telemetry in the window"""

    def __init__(self, telemetry: TelemetrySource, directory: ResourceDirectory,
                 forecast_settings: Optional[ForecastSettings] = None):
        self.telemetry = telemetry
        self.directory = directory
        self.settings = forecast_settings or settings.forecast
        self.forecaster = LinearTrendForecaster(self.settings)

    async def calculate(self, resource_id: str, start_date: datetime, end_date: datetime) -> Dict[str, float]:
        resource = await self.directory.get_resource(resource_id)
        if resource is None:
            return {}

        hours = math.ceil((end_date - start_date).total_seconds() / 3600)
        horizon = max(1, min(MAX_BACKTEST_HOURS, hours))
        history_start = start_date - timedelta(days=self.settings.lookback_days)
        actual_end = start_date + timedelta(hours=horizon)

        accuracy = {}
        for metric in relevant_metrics(resource.kind):
            history = await self.telemetry.get_metrics(resource_id, metric, history_start, start_date)
            actuals = await self.telemetry.get_metrics(resource_id, metric, start_date, actual_end)
            score = self.score(metric, history, actuals, start_date, horizon)
            if score is not None:
                accuracy[metric] = score
        return accuracy

    def score(self, metric: str, history: List[MetricDataPoint], actuals: List[MetricDataPoint],
              start_date: datetime, horizon: int) -> Optional[float]:
        """
        Forecast from history and compare with hourly actual means

        Returns:
            clamp(1 - MAE / mean(actual), 0, 1), or None without enough data
        """
        history = sorted((p for p in history if math.isfinite(p.value)), key=lambda p: p.timestamp)
        if not history:
            return None

        # Hour h collects samples in (start + (h-1)h, start + h]
        hourly: Dict[int, List[float]] = {}
        for p in actuals:
            if not math.isfinite(p.value):
                continue
            step = math.ceil((p.timestamp - start_date).total_seconds() / 3600)
            if 1 <= step <= horizon:
                hourly.setdefault(step, []).append(p.value)
        if not hourly:
            return None

        prediction = self.forecaster.forecast(metric, history, horizon, start_date)
        pairs = [
            (point.value, statistics.fmean(hourly[step]))
            for step, point in enumerate(prediction.predictions, start=1)
            if step in hourly
        ]
        mae = statistics.fmean(abs(predicted - actual) for predicted, actual in pairs)
        mean_actual = statistics.fmean(actual for _, actual in pairs)
        if mean_actual <= 0:
            return 1.0 if mae == 0 else 0.0
        return max(0.0, min(1.0, 1 - mae / mean_actual))


class PerformanceAnalyzer:
    """Builds performance scorecards; sub-query failures degrade to defaults"""

    def __init__(self, event_store: ScalingEventStore, utilization: UtilizationAnalyzer,
                 cost_signal: CostSignal, accuracy: AccuracyCalculator):
        self.event_store = event_store
        self.utilization = utilization
        self.cost_signal = cost_signal
        self.accuracy = accuracy

    async def analyze(self, resource_id: str, start_date: datetime, end_date: datetime) -> ScalingPerformanceMetrics:
        """
        Score scaling behaviour over a time window

        Args:
            resource_id: Resource identifier
            start_date: Window start
            end_date: Window end

        Returns:
            ScalingPerformanceMetrics, always; failed parts are zero or empty
        """
        if end_date < start_date:
            raise ValueError("end_date must not be before start_date")

        events, utilization, cost, accuracy = await asyncio.gather(
            self._safe("events", self.event_store.query(resource_id, start_date, end_date), []),
            self._safe("utilization", self.utilization.analyze(resource_id, start_date, end_date),
                       ResourceUtilization()),
            self._safe("cost", self.cost_signal.analyze_cost(resource_id), None),
            self._safe("accuracy", self.accuracy.calculate(resource_id, start_date, end_date), {}),
        )

        successful = [e for e in events if e.success]
        cost_savings = 0.0
        if cost is not None and cost.total_monthly_cost > 0:
            cost_savings = cost.potential_monthly_savings / cost.total_monthly_cost * 100

        return ScalingPerformanceMetrics(
            resource_id=resource_id,
            analysis_start_date=start_date,
            analysis_end_date=end_date,
            total_scaling_events=len(events),
            successful_scaling_events=len(successful),
            average_response_time=self._average_response_time(successful),
            cost_savings_percentage=cost_savings,
            over_provisioning_percentage=utilization.over_provisioned_percentage,
            under_provisioning_percentage=utilization.under_provisioned_percentage,
            metric_accuracy=dict(accuracy)
        )

    async def _safe(self, component: str, query: Awaitable, default: Any) -> Any:
        try:
            return await query
        except Exception as e:
            logger.warning(f"Performance {component} query failed, using default: {e}")
            ANALYTICS_DEFAULTS_TOTAL.labels(component=component).inc()
            return default

    @staticmethod
    def _average_response_time(events: List[ScalingEvent]) -> float:
        times = [e.response_time_seconds for e in events if e.response_time_seconds is not None]
        return statistics.fmean(times) if times else 0.0
