#!/usr/bin/env python3
"""
Scaling decision engine: reduces forecasts plus current capacity to a single action
"""

import logging
import math
import statistics
from typing import List, Optional

from ..config.settings import settings, DecisionSettings
from ..exceptions import MalformedPredictionError
from ..models import (
    MetricPrediction,
    ScalingAction,
    ScalingAnalysis,
    ScalingConstraints,
    ScalingThresholds,
)

logger = logging.getLogger(__name__)


class ScalingDecisionEngine:
    """Makes scaling decisions from metric forecasts. Holds no state between calls."""

    def __init__(self, decision_settings: Optional[DecisionSettings] = None):
        """
        Initialize decision engine

        Args:
            decision_settings: Emergency/scale-up boundaries and scale-down target
        """
        self.settings = decision_settings or settings.decision

    def decide(self, predictions: List[MetricPrediction], current_instances: int,
               thresholds: Optional[ScalingThresholds] = None,
               constraints: Optional[ScalingConstraints] = None) -> ScalingAnalysis:
        """
        Evaluate forecasts and determine the scaling action

        Args:
            predictions: Per-metric forecasts; the first CPU-like one drives the decision
            current_instances: Current instance count
            thresholds: Scaling thresholds; defaults apply when None
            constraints: Optional min/max bounds applied to the recommendation

        Returns:
            ScalingAnalysis with action, target count, predicted load, confidence and reasoning

        Raises:
            MalformedPredictionError: If the primary forecast holds non-finite or inconsistent values
        """
        if current_instances < 0:
            raise ValueError(f"current_instances must be >= 0, got {current_instances}")
        thresholds = thresholds or ScalingThresholds()

        primary = self._primary_prediction(predictions)
        if primary is None or not primary.predictions:
            return ScalingAnalysis(
                action=ScalingAction.NONE,
                recommended_instances=current_instances,
                predicted_load=0.0,
                confidence=0.0,
                reasoning="No CPU metric forecast available. Insufficient signal for a scaling decision."
            )

        self._validate(primary)

        next_step = primary.predictions[0]
        avg_predicted = next_step.value
        max_predicted = next_step.upper_bound
        confidence = self._confidence(primary)

        action = ScalingAction.NONE
        recommended = current_instances

        if max_predicted > self.settings.scale_up_boundary:
            recommended = math.ceil(current_instances * max_predicted / thresholds.scale_up_threshold)
            if max_predicted > self.settings.emergency_boundary:
                action = ScalingAction.EMERGENCY_SCALE
                reasoning = (f"Predicted CPU usage of {avg_predicted:.1f}% (max {max_predicted:.1f}%) exceeds "
                             f"the emergency boundary of {self.settings.emergency_boundary:.0f}%. "
                             f"Emergency scaling from {current_instances} to {recommended} instances.")
            else:
                action = ScalingAction.SCALE_UP
                reasoning = (f"Predicted CPU usage of {avg_predicted:.1f}% (max {max_predicted:.1f}%) exceeds "
                             f"threshold. Scaling up from {current_instances} to {recommended} instances "
                             f"to maintain performance.")
        elif avg_predicted < thresholds.scale_down_threshold and current_instances > 1:
            recommended = max(1, math.floor(current_instances * avg_predicted / self.settings.scale_down_target))
            action = ScalingAction.SCALE_DOWN
            reasoning = (f"Predicted CPU usage of {avg_predicted:.1f}% (max {max_predicted:.1f}%) is below "
                         f"threshold. Scaling down from {current_instances} to {recommended} instances "
                         f"to optimize costs.")
        else:
            reasoning = (f"Predicted CPU usage of {avg_predicted:.1f}% (max {max_predicted:.1f}%) is within "
                         f"acceptable range. No scaling needed.")

        if action != ScalingAction.NONE and constraints is not None:
            bounded = constraints.clamp(recommended)
            if bounded != recommended:
                reasoning += (f" Capped at {bounded} by constraints "
                              f"({constraints.minimum_instances}-{constraints.maximum_instances}).")
                recommended = bounded

        if action != ScalingAction.NONE and recommended == current_instances:
            action = ScalingAction.NONE
            reasoning += " Recommendation equals current capacity; no change."

        logger.debug(f"Decision on {primary.metric_name}: {action.value} {current_instances} -> {recommended}")

        return ScalingAnalysis(
            action=action,
            recommended_instances=recommended,
            predicted_load=avg_predicted,
            confidence=confidence,
            reasoning=reasoning
        )

    @staticmethod
    def _primary_prediction(predictions: List[MetricPrediction]) -> Optional[MetricPrediction]:
        for prediction in predictions or []:
            if "cpu" in prediction.metric_name.lower():
                return prediction
        return None

    @staticmethod
    def _validate(prediction: MetricPrediction) -> None:
        if not math.isfinite(prediction.mean_absolute_error) or prediction.mean_absolute_error < 0:
            raise MalformedPredictionError(
                f"Invalid mean absolute error {prediction.mean_absolute_error} for {prediction.metric_name}"
            )
        for point in prediction.predictions:
            values = (point.lower_bound, point.value, point.upper_bound)
            if not all(math.isfinite(v) for v in values):
                raise MalformedPredictionError(f"Non-finite forecast value for {prediction.metric_name}")
            if not (0 <= point.lower_bound <= point.value <= point.upper_bound):
                raise MalformedPredictionError(
                    f"Forecast bounds violated for {prediction.metric_name} at {point.timestamp.isoformat()}"
                )

    @staticmethod
    def _confidence(prediction: MetricPrediction) -> float:
        """1 - MAE / mean forecast value, clamped to [0, 1]"""
        mae = prediction.mean_absolute_error
        if mae == 0:
            return 1.0
        average = statistics.fmean(p.value for p in prediction.predictions)
        if average == 0:
            return 0.5
        return max(0.0, min(1.0, 1 - mae / average))
