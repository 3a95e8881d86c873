"""
Tests for the predictive scaling engine operations
"""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from predictive_autoscaler.config.settings import Settings
from predictive_autoscaler.core.actuators import ActuatorRegistry
from predictive_autoscaler.core.engine import PredictiveScalingEngine
from predictive_autoscaler.exceptions import ResourceNotFoundError
from predictive_autoscaler.models import (
    utcnow,
    ScalingAction,
    ScalingConfiguration,
    ScalingConstraints,
    ScalingStrategy,
    UsagePattern,
    UsagePatternAnalysis,
)
from predictive_autoscaler.services.memory import StaticCostSignal

from conftest import NOW, VMSS_ID, make_series


@pytest.fixture
def app_settings(forecast_settings, executor_settings):
    return Settings(forecast=forecast_settings, executor=executor_settings)


@pytest.fixture
def engine(telemetry, directory, actuators, event_store, app_settings):
    return PredictiveScalingEngine(
        telemetry, directory, actuators, event_store,
        cost_signal=StaticCostSignal(1000.0, 100.0),
        app_settings=app_settings
    )


@pytest.fixture
def hot_telemetry(telemetry, actuator):
    telemetry.add_points(VMSS_ID, "Percentage CPU", make_series([95.0] * 96))
    actuator.capacity = 4
    return telemetry


class TestGeneratePrediction:
    """Test forecasting plus decision for a resource"""

    @pytest.mark.asyncio
    async def test_sustained_high_load_is_an_emergency(self, engine, hot_telemetry):
        rec = await engine.generate_prediction(VMSS_ID, NOW + timedelta(hours=1), now=NOW)

        assert rec.action == ScalingAction.EMERGENCY_SCALE
        assert rec.current_instances == 4
        assert rec.recommended_instances == 6
        assert rec.predicted_load == pytest.approx(95.0)
        assert rec.confidence_score == 1.0
        assert [p.metric_name for p in rec.metric_predictions] == ["Percentage CPU"]
        assert rec.execution_time is None

    @pytest.mark.asyncio
    async def test_horizon_follows_target_time(self, engine, hot_telemetry):
        rec = await engine.generate_prediction(VMSS_ID, NOW + timedelta(hours=6, minutes=30), now=NOW)

        assert len(rec.metric_predictions[0].predictions) == 6
        assert rec.prediction_time == NOW + timedelta(hours=6, minutes=30)

    @pytest.mark.asyncio
    async def test_past_target_time_uses_one_hour(self, engine, hot_telemetry):
        rec = await engine.generate_prediction(VMSS_ID, NOW - timedelta(hours=3), now=NOW)

        assert len(rec.metric_predictions[0].predictions) == 1

    @pytest.mark.asyncio
    async def test_unknown_resource(self, engine):
        with pytest.raises(ResourceNotFoundError) as exc_info:
            await engine.generate_prediction("missing", NOW + timedelta(hours=1), now=NOW)

        assert exc_info.value.resource_id == "missing"

    @pytest.mark.asyncio
    async def test_no_history_means_no_action(self, engine):
        rec = await engine.generate_prediction(VMSS_ID, NOW + timedelta(hours=1), now=NOW)

        assert rec.action == ScalingAction.NONE
        assert rec.recommended_instances == rec.current_instances == 2
        assert rec.confidence_score == 0
        assert rec.metric_predictions == []

    @pytest.mark.asyncio
    async def test_capacity_defaults_to_one_without_actuator(self, telemetry, directory, event_store,
                                                             app_settings):
        telemetry.add_points(VMSS_ID, "Percentage CPU", make_series([50.0] * 48))
        engine = PredictiveScalingEngine(telemetry, directory, ActuatorRegistry(), event_store,
                                         app_settings=app_settings)

        rec = await engine.generate_prediction(VMSS_ID, NOW + timedelta(hours=1), now=NOW)

        assert rec.current_instances == 1

    @pytest.mark.asyncio
    async def test_unreadable_capacity_defaults_to_one(self, engine, telemetry, actuator):
        actuator.capacity = None

        rec = await engine.generate_prediction(VMSS_ID, NOW + timedelta(hours=1), now=NOW)

        assert rec.current_instances == 1

    @pytest.mark.asyncio
    async def test_configuration_constraints_apply(self, engine, hot_telemetry):
        configuration = ScalingConfiguration(
            resource_id=VMSS_ID,
            resource_type="Microsoft.Compute/virtualMachineScaleSets",
            constraints=ScalingConstraints(minimum_instances=1, maximum_instances=5)
        )

        rec = await engine.generate_prediction(VMSS_ID, NOW + timedelta(hours=1), configuration, now=NOW)

        assert rec.action == ScalingAction.EMERGENCY_SCALE
        assert rec.recommended_instances == 5
        assert "Capped at 5" in rec.reasoning

    @pytest.mark.asyncio
    async def test_disabled_configuration(self, engine, hot_telemetry, actuator):
        configuration = ScalingConfiguration(
            resource_id=VMSS_ID,
            resource_type="Microsoft.Compute/virtualMachineScaleSets",
            is_enabled=False
        )

        rec = await engine.generate_prediction(VMSS_ID, NOW + timedelta(hours=1), configuration, now=NOW)

        assert rec.action == ScalingAction.NONE
        assert rec.recommended_instances == 4
        assert rec.metric_predictions == []

    @pytest.mark.asyncio
    async def test_predict_metrics(self, engine, telemetry):
        telemetry.add_points(VMSS_ID, "Network In", make_series([10.0] * 48, end=utcnow()))

        predictions = await engine.predict_metrics(VMSS_ID, ["Network In", "Network Out"], 3)

        assert [p.metric_name for p in predictions] == ["Network In"]
        assert len(predictions[0].predictions) == 3


class TestApplyAndAnalyze:
    """Test the execute-then-score round trip"""

    @pytest.mark.asyncio
    async def test_apply_then_analyze(self, engine, hot_telemetry, actuator):
        rec = await engine.generate_prediction(VMSS_ID, NOW + timedelta(hours=1), now=NOW)

        assert await engine.apply_recommendation(rec) is True
        assert actuator.calls == [(VMSS_ID, 6)]

        metrics = await engine.analyze_performance(
            VMSS_ID, rec.created_at - timedelta(hours=1), utcnow() + timedelta(hours=1)
        )

        assert metrics.total_scaling_events == 1
        assert metrics.successful_scaling_events == 1
        assert metrics.average_response_time >= 0
        assert metrics.cost_savings_percentage == pytest.approx(10.0)

    @pytest.mark.asyncio
    async def test_apply_none_action(self, engine, event_store):
        rec = await engine.generate_prediction(VMSS_ID, NOW + timedelta(hours=1), now=NOW)

        assert await engine.apply_recommendation(rec) is True
        assert event_store.events == []


class TestOptimizeConfiguration:
    """Test policy derivation through the engine"""

    @pytest.mark.asyncio
    async def test_optimize(self, telemetry, directory, actuators, event_store, app_settings):
        pattern_source = AsyncMock()
        pattern_source.analyze.return_value = UsagePatternAnalysis(weekend_pattern=UsagePattern.LOW)
        engine = PredictiveScalingEngine(telemetry, directory, actuators, event_store,
                                         pattern_source=pattern_source, app_settings=app_settings)

        configuration = await engine.optimize_configuration(VMSS_ID)

        assert configuration.strategy == ScalingStrategy.COST_OPTIMIZED
        assert configuration.resource_id == VMSS_ID
        assert [s.name for s in configuration.schedules] == ["Weekend Low Usage"]

    @pytest.mark.asyncio
    async def test_optimize_unknown_resource(self, engine):
        with pytest.raises(ResourceNotFoundError):
            await engine.optimize_configuration("missing")
