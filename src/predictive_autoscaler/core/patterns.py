#!/usr/bin/env python3
"""
Usage-pattern mining over long-range history of a resource's primary metric
"""

import logging
import statistics
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from ..config.settings import settings, OptimizerSettings
from ..exceptions import ResourceNotFoundError
from ..models import utcnow, MetricDataPoint, UsagePattern, UsagePatternAnalysis
from ..services.base import TelemetrySource, ResourceDirectory, UsagePatternSource
from .resource_kinds import relevant_metrics, primary_metric_name

logger = logging.getLogger(__name__)

WEEKLY_LAG_HOURS = 168
DAILY_LAG_HOURS = 24
SEASONALITY_THRESHOLD = 0.3
MIN_HOURLY_SAMPLES = 24


def _hour_start(timestamp: datetime) -> datetime:
    return timestamp.replace(minute=0, second=0, microsecond=0)


def _autocorrelation(hourly: Dict[datetime, float], lag_hours: int) -> float:
    """Sample autocorrelation at the given lag; missing hours are skipped"""
    values = list(hourly.values())
    mean = statistics.fmean(values)
    denominator = sum((v - mean) ** 2 for v in values)
    if denominator == 0:
        return 0.0
    lag = timedelta(hours=lag_hours)
    numerator = 0.0
    for hour, value in hourly.items():
        later = hourly.get(hour + lag)
        if later is not None:
            numerator += (value - mean) * (later - mean)
    return numerator / denominator


class UsagePatternMiner(UsagePatternSource):
    """Derives seasonality, peak hours, weekend pattern and growth from telemetry"""

    def __init__(self, telemetry: TelemetrySource, directory: ResourceDirectory,
                 optimizer_settings: Optional[OptimizerSettings] = None):
        self.telemetry = telemetry
        self.directory = directory
        self.settings = optimizer_settings or settings.optimizer

    async def analyze(self, resource_id: str, now: Optional[datetime] = None) -> UsagePatternAnalysis:
        resource = await self.directory.get_resource(resource_id)
        if resource is None:
            raise ResourceNotFoundError(resource_id)

        metric = primary_metric_name(relevant_metrics(resource.kind))
        now = now or utcnow()
        points = await self.telemetry.get_metrics(
            resource_id, metric, now - timedelta(days=self.settings.pattern_lookback_days), now
        )
        analysis = self.mine(points)
        logger.info(f"Usage pattern for {resource_id} ({metric}): seasonality={analysis.has_seasonality} "
                    f"period={analysis.seasonality_period_days}d peaks={analysis.peak_hours} "
                    f"weekend={analysis.weekend_pattern.value} growth={analysis.growth_trend:.3f}")
        return analysis

    def mine(self, points: List[MetricDataPoint]) -> UsagePatternAnalysis:
        """
        Characterise a series of samples

        Args:
            points: Samples in any order

        Returns:
            UsagePatternAnalysis; neutral defaults when there is under a day of hourly data
        """
        hourly = self._hourly_means(points)
        if len(hourly) < MIN_HOURLY_SAMPLES:
            logger.debug(f"Only {len(hourly)} hourly samples; returning neutral usage pattern")
            return UsagePatternAnalysis()

        peak_hours, low_hours = self._peak_and_low_hours(hourly)
        period = self._seasonality_period(hourly)
        return UsagePatternAnalysis(
            has_seasonality=period > 0,
            seasonality_period_days=period,
            peak_hours=peak_hours,
            low_usage_hours=low_hours,
            weekend_pattern=self._weekend_pattern(hourly),
            growth_trend=self._growth_trend(hourly)
        )

    @staticmethod
    def _hourly_means(points: List[MetricDataPoint]) -> Dict[datetime, float]:
        buckets: Dict[datetime, List[float]] = defaultdict(list)
        for p in points or []:
            buckets[_hour_start(p.timestamp)].append(p.value)
        return {hour: statistics.fmean(buckets[hour]) for hour in sorted(buckets)}

    @staticmethod
    def _peak_and_low_hours(hourly: Dict[datetime, float]):
        by_hour: Dict[int, List[float]] = defaultdict(list)
        for hour, value in hourly.items():
            by_hour[hour.hour].append(value)
        profile = {h: statistics.fmean(v) for h, v in by_hour.items()}

        mean = statistics.fmean(profile.values())
        std_dev = statistics.pstdev(profile.values())
        if std_dev == 0:
            return [], []
        peaks = sorted(h for h, v in profile.items() if v > mean + 0.5 * std_dev)
        lows = sorted(h for h, v in profile.items() if v < mean - 0.5 * std_dev)
        return peaks, lows

    @staticmethod
    def _weekend_pattern(hourly: Dict[datetime, float]) -> UsagePattern:
        weekend = [v for h, v in hourly.items() if h.weekday() >= 5]
        weekday = [v for h, v in hourly.items() if h.weekday() < 5]
        if not weekend or not weekday:
            return UsagePattern.MEDIUM
        weekday_mean = statistics.fmean(weekday)
        if weekday_mean == 0:
            return UsagePattern.MEDIUM
        ratio = statistics.fmean(weekend) / weekday_mean
        if ratio < 0.7:
            return UsagePattern.LOW
        if ratio > 1.3:
            return UsagePattern.HIGH
        return UsagePattern.MEDIUM

    @staticmethod
    def _growth_trend(hourly: Dict[datetime, float]) -> float:
        """Least-squares slope of daily means, as a fraction of the mean per week"""
        daily: Dict[datetime, List[float]] = defaultdict(list)
        for hour, value in hourly.items():
            daily[hour.replace(hour=0)].append(value)
        if len(daily) < 2:
            return 0.0

        days = sorted(daily)
        xs = [(day - days[0]).days for day in days]
        ys = [statistics.fmean(daily[day]) for day in days]
        x_mean = statistics.fmean(xs)
        y_mean = statistics.fmean(ys)
        denominator = sum((x - x_mean) ** 2 for x in xs)
        if denominator == 0 or y_mean == 0:
            return 0.0
        slope = sum((x - x_mean) * (y - y_mean) for x, y in zip(xs, ys)) / denominator
        return slope * 7 / y_mean

    @staticmethod
    def _seasonality_period(hourly: Dict[datetime, float]) -> int:
        """Period in days: 7 for weekly structure beyond the daily cycle, 1 for daily, 0 for none"""
        weekly = _autocorrelation(hourly, WEEKLY_LAG_HOURS)
        daily = _autocorrelation(hourly, DAILY_LAG_HOURS)
        if weekly > SEASONALITY_THRESHOLD and weekly >= daily + 0.1:
            return 7
        if daily > SEASONALITY_THRESHOLD:
            return 1
        if weekly > SEASONALITY_THRESHOLD:
            return 7
        return 0
