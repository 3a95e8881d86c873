#!/usr/bin/env python3
"""
Predictive scaling engine: the caller-facing operations over the five components
"""

import logging
from datetime import datetime
from typing import List, Optional

from ..config.settings import settings as default_settings, Settings
from ..exceptions import ResourceNotFoundError
from ..models import (
    utcnow,
    MetricPrediction,
    PredictionModel,
    ResourceInfo,
    ScalingAction,
    ScalingConfiguration,
    ScalingPerformanceMetrics,
    ScalingRecommendation,
)
from ..services.base import (
    AccuracyCalculator,
    CostSignal,
    ResourceDirectory,
    ScalingEventStore,
    TelemetrySource,
    UsagePatternSource,
    UtilizationAnalyzer,
)
from ..services.memory import StaticCostSignal
from .actuators import ActuatorRegistry
from .engine_metrics import PREDICTIONS_TOTAL
from .executor import RecommendationExecutor
from .forecasting import MetricForecaster
from .optimizer import ConfigurationOptimizer
from .patterns import UsagePatternMiner
from .performance import PerformanceAnalyzer, TelemetryUtilizationAnalyzer, ForecastAccuracyCalculator
from .resource_kinds import relevant_metrics
from .scaling import ScalingDecisionEngine

logger = logging.getLogger(__name__)


class PredictiveScalingEngine:
    """Forecasts demand, recommends and applies capacity changes, and tunes its own policy"""

    def __init__(self, telemetry: TelemetrySource, directory: ResourceDirectory,
                 actuators: ActuatorRegistry, event_store: ScalingEventStore,
                 cost_signal: Optional[CostSignal] = None,
                 utilization: Optional[UtilizationAnalyzer] = None,
                 accuracy: Optional[AccuracyCalculator] = None,
                 pattern_source: Optional[UsagePatternSource] = None,
                 lock_registry=None,
                 app_settings: Optional[Settings] = None):
        """
        Initialize the engine

        Args:
            telemetry: Historical metric source
            directory: Resource directory
            actuators: Actuator registry keyed by resource kind
            event_store: Audit store for scaling events
            cost_signal: Cost figures; zero cost when None
            utilization: Utilization analyzer; telemetry-based when None
            accuracy: Forecast accuracy calculator; back-testing when None
            pattern_source: Usage-pattern source; telemetry miner when None
            lock_registry: Per-resource lock registry; in-process when None
            app_settings: Settings tree; global settings when None
        """
        self.settings = app_settings or default_settings
        self.directory = directory
        self.actuators = actuators

        self.forecaster = MetricForecaster(telemetry, self.settings.forecast)
        self.decision_engine = ScalingDecisionEngine(self.settings.decision)
        self.executor = RecommendationExecutor(
            directory, actuators, event_store,
            lock_registry=lock_registry,
            executor_settings=self.settings.executor
        )
        self.performance = PerformanceAnalyzer(
            event_store,
            utilization or TelemetryUtilizationAnalyzer(telemetry, directory,
                                                        decision_settings=self.settings.decision),
            cost_signal or StaticCostSignal(),
            accuracy or ForecastAccuracyCalculator(telemetry, directory, self.settings.forecast)
        )
        self.optimizer = ConfigurationOptimizer(
            directory,
            pattern_source or UsagePatternMiner(telemetry, directory, self.settings.optimizer),
            self.settings.optimizer
        )

    async def generate_prediction(self, resource_id: str, target_time: datetime,
                                  configuration: Optional[ScalingConfiguration] = None,
                                  now: Optional[datetime] = None) -> ScalingRecommendation:
        """
        Forecast the resource's metrics up to target_time and recommend a capacity

        Args:
            resource_id: Resource identifier
            target_time: Time the prediction is for
            configuration: Optional policy supplying metrics, model, thresholds and constraints
            now: Reference time; defaults to the current UTC time

        Returns:
            ScalingRecommendation

        Raises:
            ResourceNotFoundError: If the resource does not exist
        """
        resource = await self._get_resource(resource_id)
        now = now or utcnow()
        horizon_hours = max(1, int((target_time - now).total_seconds() // 3600))
        current_instances = await self._current_instances(resource)

        if configuration is not None and not configuration.is_enabled:
            logger.info(f"Predictive scaling disabled for {resource_id}; no recommendation")
            return self._record(ScalingRecommendation(
                resource_id=resource_id,
                prediction_time=target_time,
                current_instances=current_instances,
                recommended_instances=current_instances,
                action=ScalingAction.NONE,
                reasoning="Predictive scaling is disabled for this resource."
            ))

        if configuration is not None:
            metric_names = configuration.metrics.all_metrics or relevant_metrics(resource.kind)
            prediction_settings = configuration.prediction_settings
            predictions = await self.forecaster.predict(
                resource_id, metric_names, horizon_hours,
                model=prediction_settings.model,
                lookback_days=configuration.metrics.lookback_period_days,
                anomaly_threshold=(prediction_settings.anomaly_threshold
                                   if prediction_settings.use_anomaly_detection else None),
                now=now
            )
            analysis = self.decision_engine.decide(
                predictions, current_instances, configuration.thresholds, configuration.constraints
            )
        else:
            predictions = await self.forecaster.predict(
                resource_id, relevant_metrics(resource.kind), horizon_hours, now=now
            )
            analysis = self.decision_engine.decide(predictions, current_instances)

        return self._record(ScalingRecommendation(
            resource_id=resource_id,
            prediction_time=target_time,
            current_instances=current_instances,
            recommended_instances=analysis.recommended_instances,
            action=analysis.action,
            predicted_load=analysis.predicted_load,
            confidence_score=analysis.confidence,
            reasoning=analysis.reasoning,
            metric_predictions=predictions
        ))

    async def predict_metrics(self, resource_id: str, metric_names: List[str], horizon_hours: int,
                              model: Optional[PredictionModel] = None) -> List[MetricPrediction]:
        return await self.forecaster.predict(resource_id, metric_names, horizon_hours, model=model)

    async def apply_recommendation(self, recommendation: ScalingRecommendation) -> bool:
        return await self.executor.apply(recommendation)

    async def analyze_performance(self, resource_id: str, start_date: datetime,
                                  end_date: datetime) -> ScalingPerformanceMetrics:
        return await self.performance.analyze(resource_id, start_date, end_date)

    async def optimize_configuration(self, resource_id: str) -> ScalingConfiguration:
        return await self.optimizer.optimize(resource_id)

    async def _get_resource(self, resource_id: str) -> ResourceInfo:
        resource = await self.directory.get_resource(resource_id)
        if resource is None:
            raise ResourceNotFoundError(resource_id)
        return resource

    async def _current_instances(self, resource: ResourceInfo) -> int:
        """Read live capacity through the kind's actuator; 1 when it cannot be read"""
        actuator = self.actuators.get(resource.kind)
        if actuator is None:
            logger.warning(f"No actuator for {resource.kind}; assuming 1 instance for {resource.id}")
            return 1
        capacity = await actuator.get_capacity(resource)
        if capacity is None:
            logger.warning(f"Capacity of {resource.id} unavailable; assuming 1 instance")
            return 1
        return capacity

    @staticmethod
    def _record(recommendation: ScalingRecommendation) -> ScalingRecommendation:
        PREDICTIONS_TOTAL.labels(action=recommendation.action.value).inc()
        logger.info(f"Recommendation for {recommendation.resource_id}: {recommendation.action.value} "
                    f"{recommendation.current_instances} -> {recommendation.recommended_instances} "
                    f"(confidence {recommendation.confidence_score:.2f})")
        return recommendation
