"""
Tests for the configuration optimizer
"""

from unittest.mock import AsyncMock

import pytest

from predictive_autoscaler.config.settings import OptimizerSettings
from predictive_autoscaler.core.optimizer import ConfigurationOptimizer
from predictive_autoscaler.core.resource_kinds import APP_SERVICE_PLAN
from predictive_autoscaler.exceptions import ResourceNotFoundError
from predictive_autoscaler.models import (
    PredictionModel,
    ResourceInfo,
    ScalingStrategy,
    ScheduleType,
    UsagePattern,
    UsagePatternAnalysis,
)

from conftest import VMSS_ID

BUSINESS_HOURS = UsagePatternAnalysis(
    has_seasonality=True,
    seasonality_period_days=1,
    peak_hours=list(range(9, 18)),
    low_usage_hours=list(range(0, 9)),
    weekend_pattern=UsagePattern.LOW,
    growth_trend=0.02
)


@pytest.fixture
def optimizer_settings():
    return OptimizerSettings(
        pattern_lookback_days=90,
        peak_instances=5,
        off_peak_instances=2,
        default_minimum_instances=1,
        default_maximum_instances=10,
        maintenance_windows=["Sunday 02:00-04:00"]
    )


@pytest.fixture
def pattern_source():
    source = AsyncMock()
    source.analyze.return_value = BUSINESS_HOURS
    return source


@pytest.fixture
def optimizer(directory, pattern_source, optimizer_settings):
    return ConfigurationOptimizer(directory, pattern_source, optimizer_settings)


class TestStrategySelection:
    """Test strategy, threshold and model rules"""

    def test_growth_wins(self):
        patterns = BUSINESS_HOURS.model_copy(update={"growth_trend": 0.2})

        assert ConfigurationOptimizer.select_strategy(patterns) == ScalingStrategy.AGGRESSIVE

    def test_long_seasonal_peaks(self):
        assert ConfigurationOptimizer.select_strategy(BUSINESS_HOURS) == ScalingStrategy.PERFORMANCE_OPTIMIZED

    def test_quiet_weekends(self):
        patterns = UsagePatternAnalysis(weekend_pattern=UsagePattern.LOW)

        assert ConfigurationOptimizer.select_strategy(patterns) == ScalingStrategy.COST_OPTIMIZED

    def test_neutral_pattern(self):
        assert ConfigurationOptimizer.select_strategy(UsagePatternAnalysis()) == ScalingStrategy.BALANCED

    def test_thresholds(self):
        seasonal = ConfigurationOptimizer.select_thresholds(BUSINESS_HOURS.model_copy(update={"growth_trend": 0.06}))
        flat = ConfigurationOptimizer.select_thresholds(UsagePatternAnalysis())

        assert (seasonal.scale_up_threshold, seasonal.cooldown_minutes) == (65, 5)
        assert (flat.scale_up_threshold, flat.cooldown_minutes) == (70, 10)
        assert flat.scale_down_threshold == 30
        assert flat.emergency_scale_threshold == 85

    def test_model_selection(self):
        weekly = UsagePatternAnalysis(has_seasonality=True, seasonality_period_days=7)
        daily = BUSINESS_HOURS
        flat = UsagePatternAnalysis()

        assert ConfigurationOptimizer.select_prediction_settings(weekly).model == PredictionModel.SEASONAL
        assert ConfigurationOptimizer.select_prediction_settings(daily).model == PredictionModel.TREND
        assert ConfigurationOptimizer.select_prediction_settings(flat).model == PredictionModel.SMOOTHING

    def test_seasonality_period_defaults_to_a_week(self):
        flat = ConfigurationOptimizer.select_prediction_settings(UsagePatternAnalysis())
        daily = ConfigurationOptimizer.select_prediction_settings(BUSINESS_HOURS)

        assert flat.seasonality_period_days == 7
        assert flat.use_seasonal_decomposition is False
        assert daily.seasonality_period_days == 1


class TestConstraintsAndSchedules:
    """Test instance range and schedule generation"""

    def test_default_constraints(self, optimizer, vmss_resource):
        constraints = optimizer.select_constraints(vmss_resource, BUSINESS_HOURS)

        assert (constraints.minimum_instances, constraints.maximum_instances) == (1, 10)
        assert constraints.scale_up_step_size == 1
        assert constraints.blocked_time_windows == ["Sunday 02:00-04:00"]

    def test_resource_ceiling_overrides_default(self, optimizer):
        resource = ResourceInfo(id="plan", kind=APP_SERVICE_PLAN, name="plan",
                                metadata={"maximum_instances": 3})

        constraints = optimizer.select_constraints(resource, UsagePatternAnalysis(growth_trend=0.5))

        assert constraints.maximum_instances == 3
        assert constraints.scale_up_step_size == 2

    def test_schedules(self, optimizer, vmss_resource):
        constraints = optimizer.select_constraints(vmss_resource, BUSINESS_HOURS)

        peak, off_peak, weekend = optimizer.generate_schedules(BUSINESS_HOURS, constraints)

        assert peak.name == "Weekday Peak Hours"
        assert peak.type == ScheduleType.DAILY
        assert peak.cron_expression == "0 9 * * 1-5"
        assert peak.target_instances == 5
        assert off_peak.cron_expression == "0 18 * * 1-5"
        assert off_peak.target_instances == 2
        assert weekend.type == ScheduleType.WEEKLY
        assert weekend.cron_expression == "0 0 * * 6"
        assert weekend.target_instances == 1

    def test_off_peak_wraps_past_midnight(self, optimizer, vmss_resource):
        patterns = UsagePatternAnalysis(peak_hours=[20, 21, 22, 23])
        constraints = optimizer.select_constraints(vmss_resource, patterns)

        schedules = optimizer.generate_schedules(patterns, constraints)

        assert [s.cron_expression for s in schedules] == ["0 20 * * 1-5", "0 0 * * 1-5"]

    def test_schedule_targets_respect_constraints(self, optimizer):
        resource = ResourceInfo(id="plan", kind=APP_SERVICE_PLAN, name="plan",
                                metadata={"maximum_instances": 3})
        constraints = optimizer.select_constraints(resource, BUSINESS_HOURS)

        schedules = optimizer.generate_schedules(BUSINESS_HOURS, constraints)

        assert all(constraints.minimum_instances <= s.target_instances <= 3 for s in schedules)
        assert schedules[0].target_instances == 3

    def test_no_peaks_no_schedules(self, optimizer, vmss_resource):
        constraints = optimizer.select_constraints(vmss_resource, UsagePatternAnalysis())

        assert optimizer.generate_schedules(UsagePatternAnalysis(), constraints) == []


class TestOptimize:
    """Test the full optimize operation"""

    @pytest.mark.asyncio
    async def test_optimize(self, optimizer, pattern_source):
        configuration = await optimizer.optimize(VMSS_ID)

        pattern_source.analyze.assert_awaited_once_with(VMSS_ID)
        assert configuration.resource_id == VMSS_ID
        assert configuration.strategy == ScalingStrategy.PERFORMANCE_OPTIMIZED
        assert configuration.metrics.primary_metrics == ["Percentage CPU", "Available Memory Bytes"]
        assert configuration.metrics.lookback_period_days == 30
        assert configuration.is_enabled is True
        assert len(configuration.schedules) == 3

    @pytest.mark.asyncio
    async def test_unknown_resource(self, optimizer, pattern_source):
        with pytest.raises(ResourceNotFoundError):
            await optimizer.optimize("missing")

        pattern_source.analyze.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_pattern_failure_gives_balanced_configuration(self, optimizer, pattern_source):
        pattern_source.analyze.side_effect = ConnectionError("telemetry offline")

        configuration = await optimizer.optimize(VMSS_ID)

        assert configuration.strategy == ScalingStrategy.BALANCED
        assert configuration.schedules == []
