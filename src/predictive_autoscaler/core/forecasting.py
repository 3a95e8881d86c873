#!/usr/bin/env python3
"""
Metric forecasting: turns historical telemetry into bounded per-metric projections
"""

import asyncio
import logging
import math
import statistics
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from ..config.settings import settings, ForecastSettings
from ..models import (
    utcnow,
    MetricDataPoint,
    MetricPrediction,
    PredictionModel,
    PredictionPoint,
)
from ..services.base import TelemetrySource
from .engine_metrics import FORECAST_FAILURES_TOTAL
from .logging_config import resource_logger

logger = logging.getLogger(__name__)


class InsufficientHistoryError(ValueError):
    """Raised by a strategy that cannot work with the history it was given"""


class ForecastStrategy:
    """Base class for forecasting strategies"""

    model: PredictionModel = PredictionModel.TREND

    def __init__(self, forecast_settings: Optional[ForecastSettings] = None):
        self.settings = forecast_settings or settings.forecast

    def forecast(self, metric_name: str, points: List[MetricDataPoint],
                 horizon_hours: int, now: datetime) -> MetricPrediction:
        """
        Project a metric over the horizon

        Args:
            metric_name: Name of the metric being forecast
            points: Historical samples sorted by timestamp
            horizon_hours: Number of hourly steps to produce
            now: Reference time; the first step is now + 1 hour

        Returns:
            MetricPrediction with one point per horizon step
        """
        raise NotImplementedError("Subclasses must implement forecast() method")

    @staticmethod
    def _step_times(now: datetime, horizon_hours: int) -> List[datetime]:
        return [now + timedelta(hours=h) for h in range(1, horizon_hours + 1)]

    def _point(self, timestamp: datetime, center: float, radius: float) -> PredictionPoint:
        value = max(0.0, center)
        return PredictionPoint(
            timestamp=timestamp,
            value=value,
            lower_bound=max(0.0, value - radius),
            upper_bound=value + radius
        )


class LinearTrendForecaster(ForecastStrategy):
    """
    Moving-average linear trend with a normal confidence band.

    Always able to produce a forecast from at least one sample, so it backs
    every other strategy.
    """

    model = PredictionModel.TREND

    def window_size(self, count: int) -> int:
        return min(self.settings.max_window_size, count // 4)

    def forecast(self, metric_name: str, points: List[MetricDataPoint],
                 horizon_hours: int, now: datetime) -> MetricPrediction:
        values = [p.value for p in points]
        if not values:
            raise InsufficientHistoryError(f"No history for {metric_name}")

        window = self.window_size(len(values))
        if window < 1 or len(values) < window:
            return self._flat_forecast(metric_name, values, horizon_hours, now)

        moving_averages = [
            statistics.fmean(values[i:i + window])
            for i in range(len(values) - window + 1)
        ]
        if len(moving_averages) > 1:
            trend = (moving_averages[-1] - moving_averages[0]) / len(moving_averages)
            std_dev = statistics.pstdev(moving_averages)
        else:
            trend = 0.0
            std_dev = 0.0

        radius = self.settings.confidence_z * std_dev
        last = moving_averages[-1]
        predictions = [
            self._point(timestamp, last + trend * h, radius)
            for h, timestamp in enumerate(self._step_times(now, horizon_hours), start=1)
        ]

        return MetricPrediction(
            metric_name=metric_name,
            predictions=predictions,
            mean_absolute_error=std_dev,
            root_mean_squared_error=std_dev * self.settings.rmse_inflation,
            model=self.model
        )

    def _flat_forecast(self, metric_name: str, values: List[float],
                       horizon_hours: int, now: datetime) -> MetricPrediction:
        """Project the sample mean with a fixed relative band"""
        mean = max(0.0, statistics.fmean(values))
        band = self.settings.fallback_band
        predictions = [
            PredictionPoint(
                timestamp=timestamp,
                value=mean,
                lower_bound=mean * (1 - band),
                upper_bound=mean * (1 + band)
            )
            for timestamp in self._step_times(now, horizon_hours)
        ]
        # Spread of the samples stands in for an error estimate
        spread = statistics.pstdev(values) if len(values) > 1 else 0.0
        logger.debug(f"Flat forecast for {metric_name} from {len(values)} samples (mean {mean:.2f})")
        return MetricPrediction(
            metric_name=metric_name,
            predictions=predictions,
            mean_absolute_error=spread,
            root_mean_squared_error=spread * self.settings.rmse_inflation,
            model=self.model
        )


class HoltSmoothingForecaster(ForecastStrategy):
    """Double exponential smoothing (level + trend)"""

    model = PredictionModel.SMOOTHING
    min_points = 8

    def forecast(self, metric_name: str, points: List[MetricDataPoint],
                 horizon_hours: int, now: datetime) -> MetricPrediction:
        values = [p.value for p in points]
        if len(values) < self.min_points:
            raise InsufficientHistoryError(
                f"Smoothing needs {self.min_points} samples, {metric_name} has {len(values)}"
            )

        alpha = self.settings.smoothing_alpha
        beta = self.settings.smoothing_beta
        level = values[0]
        trend = values[1] - values[0]
        residuals = []
        for value in values[1:]:
            residuals.append(value - (level + trend))
            new_level = alpha * value + (1 - alpha) * (level + trend)
            trend = beta * (new_level - level) + (1 - beta) * trend
            level = new_level

        mae = statistics.fmean(abs(r) for r in residuals)
        rmse = math.sqrt(statistics.fmean(r * r for r in residuals))
        radius = self.settings.confidence_z * rmse

        predictions = [
            self._point(timestamp, level + trend * h, radius)
            for h, timestamp in enumerate(self._step_times(now, horizon_hours), start=1)
        ]
        return MetricPrediction(
            metric_name=metric_name,
            predictions=predictions,
            mean_absolute_error=mae,
            root_mean_squared_error=rmse,
            model=self.model
        )


class SeasonalProfileForecaster(ForecastStrategy):
    """
    Seasonal decomposition over an hour-of-day profile, or hour-of-week when
    at least two weeks of history are available, plus a least-squares trend
    fitted to the deseasonalised series.
    """

    model = PredictionModel.SEASONAL
    min_distinct_hours = 12

    @staticmethod
    def _bucket(timestamp: datetime, weekly: bool) -> int:
        if weekly:
            return timestamp.weekday() * 24 + timestamp.hour
        return timestamp.hour

    def forecast(self, metric_name: str, points: List[MetricDataPoint],
                 horizon_hours: int, now: datetime) -> MetricPrediction:
        if len(points) < self.settings.seasonal_min_points:
            raise InsufficientHistoryError(
                f"Seasonal model needs {self.settings.seasonal_min_points} samples, "
                f"{metric_name} has {len(points)}"
            )
        if len({p.timestamp.hour for p in points}) < self.min_distinct_hours:
            raise InsufficientHistoryError(f"History for {metric_name} covers too few hours of the day")

        span = points[-1].timestamp - points[0].timestamp
        weekly = span >= timedelta(days=14)

        buckets: Dict[int, List[float]] = defaultdict(list)
        for p in points:
            buckets[self._bucket(p.timestamp, weekly)].append(p.value)
        overall = statistics.fmean(p.value for p in points)
        seasonal_index = {k: statistics.fmean(v) - overall for k, v in buckets.items()}

        # Least-squares trend over hours elapsed, on the deseasonalised series
        origin = points[0].timestamp
        xs = [(p.timestamp - origin).total_seconds() / 3600 for p in points]
        ys = [p.value - seasonal_index[self._bucket(p.timestamp, weekly)] for p in points]
        x_mean = statistics.fmean(xs)
        y_mean = statistics.fmean(ys)
        denominator = sum((x - x_mean) ** 2 for x in xs)
        slope = sum((x - x_mean) * (y - y_mean) for x, y in zip(xs, ys)) / denominator if denominator else 0.0
        intercept = y_mean - slope * x_mean

        residuals = [
            p.value - (intercept + slope * x + seasonal_index[self._bucket(p.timestamp, weekly)])
            for p, x in zip(points, xs)
        ]
        mae = statistics.fmean(abs(r) for r in residuals)
        rmse = math.sqrt(statistics.fmean(r * r for r in residuals))
        radius = self.settings.confidence_z * rmse

        predictions = []
        for timestamp in self._step_times(now, horizon_hours):
            x = (timestamp - origin).total_seconds() / 3600
            season = seasonal_index.get(self._bucket(timestamp, weekly), 0.0)
            predictions.append(self._point(timestamp, intercept + slope * x + season, radius))

        return MetricPrediction(
            metric_name=metric_name,
            predictions=predictions,
            mean_absolute_error=mae,
            root_mean_squared_error=rmse,
            model=self.model
        )


class MetricForecaster:
    """Fetches history per metric and forecasts it with the selected strategy"""

    def __init__(self, telemetry: TelemetrySource, forecast_settings: Optional[ForecastSettings] = None):
        """
        Initialize the forecaster

        Args:
            telemetry: Source of historical samples
            forecast_settings: Forecast settings; defaults to the global settings
        """
        self.telemetry = telemetry
        self.settings = forecast_settings or settings.forecast
        self.baseline = LinearTrendForecaster(self.settings)
        self.strategies: Dict[PredictionModel, ForecastStrategy] = {
            PredictionModel.TREND: self.baseline,
            PredictionModel.SMOOTHING: HoltSmoothingForecaster(self.settings),
            PredictionModel.SEASONAL: SeasonalProfileForecaster(self.settings),
        }

    def register_strategy(self, model: PredictionModel, strategy: ForecastStrategy) -> None:
        self.strategies[model] = strategy

    async def predict(self, resource_id: str, metric_names: List[str], horizon_hours: int,
                      model: Optional[PredictionModel] = None,
                      lookback_days: Optional[int] = None,
                      anomaly_threshold: Optional[float] = None,
                      now: Optional[datetime] = None) -> List[MetricPrediction]:
        """
        Forecast every metric concurrently; metrics that fail are left out

        Args:
            resource_id: Resource identifier
            metric_names: Metrics to forecast (non-empty)
            horizon_hours: Number of hourly steps (>= 1)
            model: Strategy to use; linear trend when None
            lookback_days: History window; defaults to settings
            anomaly_threshold: Drop samples further than this many standard deviations from the mean
            now: Reference time; defaults to the current UTC time

        Returns:
            Predictions in the order the metrics were requested
        """
        if not metric_names:
            raise ValueError("At least one metric name is required")
        if horizon_hours < 1:
            raise ValueError(f"horizon_hours must be >= 1, got {horizon_hours}")

        now = now or utcnow()
        lookback = timedelta(days=lookback_days or self.settings.lookback_days)
        strategy = self.strategies.get(model or PredictionModel.TREND, self.baseline)
        unique_names = list(dict.fromkeys(metric_names))

        results = await asyncio.gather(*[
            self._predict_metric(resource_id, name, horizon_hours, strategy,
                                 now - lookback, now, anomaly_threshold)
            for name in unique_names
        ])

        predictions = [r for r in results if r is not None]
        resource_logger(logger, resource_id).info(
            f"Forecast {len(predictions)}/{len(unique_names)} metrics for {resource_id} "
            f"over {horizon_hours}h using {strategy.model.value}"
        )
        return predictions

    async def _predict_metric(self, resource_id: str, metric_name: str, horizon_hours: int,
                              strategy: ForecastStrategy, start_time: datetime, now: datetime,
                              anomaly_threshold: Optional[float]) -> Optional[MetricPrediction]:
        """Fetch and forecast one metric, returning None when it has to be skipped"""
        log = resource_logger(logger, resource_id)
        try:
            points = await asyncio.wait_for(
                self.telemetry.get_metrics(resource_id, metric_name, start_time, now),
                timeout=self.settings.fetch_timeout_seconds
            )
        except asyncio.TimeoutError:
            log.warning(f"Telemetry fetch for {metric_name} on {resource_id} timed out; treating as no data")
            FORECAST_FAILURES_TOTAL.labels(reason='timeout').inc()
            return None
        except Exception as e:
            log.error(f"Error fetching {metric_name} for {resource_id}: {e}")
            FORECAST_FAILURES_TOTAL.labels(reason='error').inc()
            return None

        series = self._prepare(points, anomaly_threshold)
        if not series:
            log.warning(f"No historical data for {metric_name} on {resource_id}; skipping")
            FORECAST_FAILURES_TOTAL.labels(reason='no_data').inc()
            return None

        try:
            if strategy is not self.baseline:
                try:
                    return strategy.forecast(metric_name, series, horizon_hours, now)
                except Exception as e:
                    log.info(f"{strategy.model.value} forecast unavailable for {metric_name}: {e}; "
                             f"falling back to linear trend")
            return self.baseline.forecast(metric_name, series, horizon_hours, now)
        except Exception as e:
            log.error(f"Error forecasting {metric_name} for {resource_id}: {e}")
            FORECAST_FAILURES_TOTAL.labels(reason='error').inc()
            return None

    @staticmethod
    def _prepare(points: List[MetricDataPoint], anomaly_threshold: Optional[float]) -> List[MetricDataPoint]:
        """Sort by timestamp, drop non-finite samples and, optionally, outliers"""
        series = sorted((p for p in points or [] if math.isfinite(p.value)), key=lambda p: p.timestamp)
        if anomaly_threshold and len(series) >= 4:
            mean = statistics.fmean(p.value for p in series)
            std_dev = statistics.pstdev([p.value for p in series])
            if std_dev > 0:
                kept = [p for p in series if abs(p.value - mean) / std_dev <= anomaly_threshold]
                if len(kept) < len(series):
                    logger.debug(f"Dropped {len(series) - len(kept)} anomalous samples")
                series = kept
        return series
