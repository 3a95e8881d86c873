#!/usr/bin/env python3
"""
Configuration optimizer: derives a scaling policy from observed usage patterns
"""

import logging
from typing import List, Optional

from ..config.settings import settings, OptimizerSettings
from ..exceptions import ResourceNotFoundError
from ..models import (
    utcnow,
    AggregationType,
    PredictionModel,
    PredictionSettings,
    ResourceInfo,
    ScalingConfiguration,
    ScalingConstraints,
    ScalingMetrics,
    ScalingSchedule,
    ScalingStrategy,
    ScalingThresholds,
    ScheduleType,
    UsagePattern,
    UsagePatternAnalysis,
)
from ..services.base import ResourceDirectory, UsagePatternSource
from .engine_metrics import ANALYTICS_DEFAULTS_TOTAL
from .resource_kinds import optimal_metrics

logger = logging.getLogger(__name__)


class ConfigurationOptimizer:
    """Proposes a full replacement ScalingConfiguration for a resource"""

    def __init__(self, directory: ResourceDirectory, pattern_source: UsagePatternSource,
                 optimizer_settings: Optional[OptimizerSettings] = None):
        """
        Initialize optimizer

        Args:
            directory: Resolves resource ids to kinds
            pattern_source: Produces the usage-pattern analysis
            optimizer_settings: Schedule sizes, default instance range and maintenance windows
        """
        self.directory = directory
        self.pattern_source = pattern_source
        self.settings = optimizer_settings or settings.optimizer

    async def optimize(self, resource_id: str) -> ScalingConfiguration:
        """
        Derive a scaling configuration from the resource's usage pattern

        Raises:
            ResourceNotFoundError: If the resource does not exist
        """
        resource = await self.directory.get_resource(resource_id)
        if resource is None:
            raise ResourceNotFoundError(resource_id)

        try:
            patterns = await self.pattern_source.analyze(resource_id)
        except ResourceNotFoundError:
            raise
        except Exception as e:
            logger.warning(f"Usage pattern analysis failed for {resource_id}, using neutral pattern: {e}")
            ANALYTICS_DEFAULTS_TOTAL.labels(component="usage_pattern").inc()
            patterns = UsagePatternAnalysis()

        configuration = self.build_configuration(resource, patterns)
        logger.info(f"Optimized configuration for {resource_id}: strategy={configuration.strategy.value} "
                    f"model={configuration.prediction_settings.model.value} "
                    f"schedules={len(configuration.schedules)}")
        return configuration

    def build_configuration(self, resource: ResourceInfo, patterns: UsagePatternAnalysis) -> ScalingConfiguration:
        """Pure derivation of the configuration from a resource and its usage pattern"""
        constraints = self.select_constraints(resource, patterns)
        now = utcnow()
        return ScalingConfiguration(
            resource_id=resource.id,
            resource_type=resource.kind,
            strategy=self.select_strategy(patterns),
            metrics=self.select_metrics(resource),
            thresholds=self.select_thresholds(patterns),
            constraints=constraints,
            prediction_settings=self.select_prediction_settings(patterns),
            schedules=self.generate_schedules(patterns, constraints),
            is_enabled=True,
            created_at=now,
            last_modified_at=now
        )

    @staticmethod
    def select_strategy(patterns: UsagePatternAnalysis) -> ScalingStrategy:
        if patterns.growth_trend > 0.1:
            return ScalingStrategy.AGGRESSIVE
        if patterns.has_seasonality and len(patterns.peak_hours) > 6:
            return ScalingStrategy.PERFORMANCE_OPTIMIZED
        if patterns.weekend_pattern == UsagePattern.LOW:
            return ScalingStrategy.COST_OPTIMIZED
        return ScalingStrategy.BALANCED

    @staticmethod
    def select_metrics(resource: ResourceInfo) -> ScalingMetrics:
        primary, secondary = optimal_metrics(resource.kind)
        return ScalingMetrics(
            primary_metrics=primary,
            secondary_metrics=secondary,
            lookback_period_days=30,
            prediction_horizon_hours=24,
            aggregation_type=AggregationType.AVERAGE,
            aggregation_window_minutes=5
        )

    @staticmethod
    def select_thresholds(patterns: UsagePatternAnalysis) -> ScalingThresholds:
        return ScalingThresholds(
            scale_up_threshold=65 if patterns.has_seasonality else 70,
            scale_down_threshold=30,
            emergency_scale_threshold=85,
            cooldown_minutes=5 if patterns.growth_trend > 0.05 else 10,
            stabilization_window_minutes=5
        )

    def select_constraints(self, resource: ResourceInfo, patterns: UsagePatternAnalysis) -> ScalingConstraints:
        minimum = self.settings.default_minimum_instances
        # Kind or tenant ceilings reported by the directory win over the default
        maximum = int(resource.metadata.get("maximum_instances") or self.settings.default_maximum_instances)
        return ScalingConstraints(
            minimum_instances=minimum,
            maximum_instances=max(minimum, maximum),
            scale_up_step_size=2 if patterns.growth_trend > 0.1 else 1,
            scale_down_step_size=1,
            max_scale_up_per_hour=5,
            max_scale_down_per_hour=3,
            blocked_time_windows=list(self.settings.maintenance_windows)
        )

    @staticmethod
    def select_prediction_settings(patterns: UsagePatternAnalysis) -> PredictionSettings:
        if patterns.has_seasonality and patterns.seasonality_period_days > 1:
            model = PredictionModel.SEASONAL
        elif patterns.growth_trend != 0:
            model = PredictionModel.TREND
        else:
            model = PredictionModel.SMOOTHING

        return PredictionSettings(
            model=model,
            confidence_level=0.95,
            use_seasonal_decomposition=patterns.has_seasonality,
            seasonality_period_days=patterns.seasonality_period_days if patterns.has_seasonality else 7,
            use_anomaly_detection=True,
            anomaly_threshold=3.0
        )

    def generate_schedules(self, patterns: UsagePatternAnalysis,
                           constraints: ScalingConstraints) -> List[ScalingSchedule]:
        schedules = []
        if patterns.peak_hours:
            first_peak = min(patterns.peak_hours)
            after_last_peak = (max(patterns.peak_hours) + 1) % 24
            schedules.append(ScalingSchedule(
                name="Weekday Peak Hours",
                type=ScheduleType.DAILY,
                cron_expression=f"0 {first_peak} * * 1-5",
                target_instances=constraints.clamp(self.settings.peak_instances)
            ))
            schedules.append(ScalingSchedule(
                name="Weekday Off-Peak",
                type=ScheduleType.DAILY,
                cron_expression=f"0 {after_last_peak} * * 1-5",
                target_instances=constraints.clamp(self.settings.off_peak_instances)
            ))

        if patterns.weekend_pattern == UsagePattern.LOW:
            schedules.append(ScalingSchedule(
                name="Weekend Low Usage",
                type=ScheduleType.WEEKLY,
                cron_expression="0 0 * * 6",
                target_instances=constraints.minimum_instances
            ))
        return schedules
