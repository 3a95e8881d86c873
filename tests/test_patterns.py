"""
Tests for the usage-pattern miner
"""

from datetime import timedelta

import pytest

from predictive_autoscaler.config.settings import OptimizerSettings
from predictive_autoscaler.core.patterns import UsagePatternMiner
from predictive_autoscaler.exceptions import ResourceNotFoundError
from predictive_autoscaler.models import MetricDataPoint, UsagePattern

from conftest import NOW, VMSS_ID


def hourly_points(days, value_for):
    """Hourly samples for the given number of days ending at NOW"""
    start = NOW - timedelta(days=days)
    return [
        MetricDataPoint(timestamp=start + timedelta(hours=i), value=value_for(start + timedelta(hours=i)))
        for i in range(days * 24)
    ]


class TestUsagePatternMiner:
    """Test seasonality, peak hours, weekend pattern and growth detection"""

    @pytest.fixture
    def miner(self, telemetry, directory):
        return UsagePatternMiner(telemetry, directory, OptimizerSettings(pattern_lookback_days=90))

    def test_business_hours_pattern(self, miner):
        points = hourly_points(28, lambda t: 80.0 if 9 <= t.hour <= 17 else 20.0)

        analysis = miner.mine(points)

        assert analysis.peak_hours == list(range(9, 18))
        assert analysis.low_usage_hours == list(range(0, 9)) + list(range(18, 24))
        assert analysis.has_seasonality is True
        assert analysis.seasonality_period_days == 1
        assert analysis.weekend_pattern == UsagePattern.MEDIUM
        assert analysis.growth_trend == pytest.approx(0.0, abs=1e-9)

    def test_quiet_weekends(self, miner):
        # 28 days starting on a Monday
        points = hourly_points(28, lambda t: 20.0 if t.weekday() >= 5 else 60.0)

        analysis = miner.mine(points)

        assert analysis.weekend_pattern == UsagePattern.LOW
        assert analysis.has_seasonality is True
        assert analysis.seasonality_period_days == 7
        assert analysis.peak_hours == []

    def test_busy_weekends(self, miner):
        points = hourly_points(14, lambda t: 90.0 if t.weekday() >= 5 else 50.0)

        assert miner.mine(points).weekend_pattern == UsagePattern.HIGH

    def test_growth_trend_is_relative_weekly_growth(self, miner):
        start = NOW - timedelta(days=28)
        points = hourly_points(28, lambda t: 40.0 + (t - start).days)

        analysis = miner.mine(points)

        # Daily means rise by one per day around a mean of 53.5
        assert analysis.growth_trend == pytest.approx(7 / 53.5)

    def test_flat_load_has_no_pattern(self, miner):
        analysis = miner.mine(hourly_points(14, lambda t: 50.0))

        assert analysis.has_seasonality is False
        assert analysis.seasonality_period_days == 0
        assert analysis.peak_hours == []
        assert analysis.low_usage_hours == []

    def test_short_history_returns_neutral_pattern(self, miner):
        analysis = miner.mine([
            MetricDataPoint(timestamp=NOW - timedelta(hours=h), value=10.0 * h) for h in range(1, 10)
        ])

        assert analysis.has_seasonality is False
        assert analysis.weekend_pattern == UsagePattern.MEDIUM
        assert analysis.growth_trend == 0

    def test_sub_hourly_samples_are_bucketed(self, miner):
        start = NOW - timedelta(days=7)
        points = [
            MetricDataPoint(timestamp=start + timedelta(minutes=5 * i),
                            value=90.0 if (start + timedelta(minutes=5 * i)).hour == 12 else 10.0)
            for i in range(7 * 24 * 12)
        ]

        assert miner.mine(points).peak_hours == [12]

    @pytest.mark.asyncio
    async def test_analyze_reads_primary_metric(self, miner, telemetry):
        telemetry.add_points(VMSS_ID, "Percentage CPU",
                             hourly_points(28, lambda t: 80.0 if 9 <= t.hour <= 17 else 20.0))

        analysis = await miner.analyze(VMSS_ID, now=NOW)

        assert analysis.peak_hours == list(range(9, 18))

    @pytest.mark.asyncio
    async def test_analyze_unknown_resource(self, miner):
        with pytest.raises(ResourceNotFoundError):
            await miner.analyze("missing", now=NOW)
