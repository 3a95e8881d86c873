#!/usr/bin/env python3
"""
Pydantic models for forecasts, scaling recommendations, audit events and scaling policy
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Any

from pydantic import BaseModel, Field, model_validator


def utcnow() -> datetime:
    """Timezone-aware current UTC time"""
    return datetime.now(timezone.utc)


class ScalingAction(str, Enum):
    """Scaling actions a recommendation can carry"""
    NONE = "none"
    SCALE_UP = "scale_up"
    SCALE_DOWN = "scale_down"
    EMERGENCY_SCALE = "emergency_scale"
    SCHEDULED = "scheduled"


class ScalingStrategy(str, Enum):
    """High-level scaling posture chosen for a resource"""
    CONSERVATIVE = "conservative"
    BALANCED = "balanced"
    AGGRESSIVE = "aggressive"
    COST_OPTIMIZED = "cost_optimized"
    PERFORMANCE_OPTIMIZED = "performance_optimized"
    CUSTOM = "custom"


class PredictionModel(str, Enum):
    """Forecasting strategies selectable per resource"""
    TREND = "trend"
    SMOOTHING = "smoothing"
    SEASONAL = "seasonal"


class UsagePattern(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ScheduleType(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"


class AggregationType(str, Enum):
    AVERAGE = "average"
    MAXIMUM = "maximum"
    MINIMUM = "minimum"
    SUM = "sum"
    PERCENTILE = "percentile"


class MetricDataPoint(BaseModel):
    """Single telemetry sample"""
    timestamp: datetime = Field(..., description="Sample timestamp")
    value: float = Field(..., description="Sample value")

    class Config:
        frozen = True


class PredictionPoint(BaseModel):
    """Forecast value for one horizon step with its confidence band"""
    timestamp: datetime = Field(..., description="Timestamp the forecast applies to")
    value: float = Field(..., ge=0, description="Forecast value")
    lower_bound: float = Field(..., ge=0, description="Lower edge of the confidence band")
    upper_bound: float = Field(..., ge=0, description="Upper edge of the confidence band")

    class Config:
        frozen = True

    @model_validator(mode="after")
    def check_bounds(self) -> "PredictionPoint":
        if not (self.lower_bound <= self.value <= self.upper_bound):
            raise ValueError(
                f"Bounds violated: {self.lower_bound} <= {self.value} <= {self.upper_bound} does not hold"
            )
        return self


class MetricPrediction(BaseModel):
    """Forecast for a single metric over the requested horizon"""
    metric_name: str = Field(..., description="Name of the forecast metric")
    predictions: List[PredictionPoint] = Field(default_factory=list, description="One point per horizon step")
    mean_absolute_error: float = Field(0.0, ge=0, description="Estimated mean absolute error")
    root_mean_squared_error: float = Field(0.0, ge=0, description="Estimated root mean squared error")
    model: PredictionModel = Field(PredictionModel.TREND, description="Strategy that produced the forecast")

    class Config:
        frozen = True


class ScalingAnalysis(BaseModel):
    """Output of the decision engine"""
    action: ScalingAction = ScalingAction.NONE
    recommended_instances: int = Field(..., ge=0)
    predicted_load: float = 0.0
    confidence: float = Field(0.0, ge=0, le=1)
    reasoning: str = ""

    class Config:
        frozen = True


class ScalingRecommendation(BaseModel):
    """Scaling recommendation produced for one resource at one prediction time"""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    resource_id: str = Field(..., description="Target resource identifier")
    prediction_time: datetime = Field(..., description="Time the prediction was requested for")
    created_at: datetime = Field(default_factory=utcnow, description="Time the recommendation was produced")
    current_instances: int = Field(..., ge=0)
    recommended_instances: int = Field(..., ge=0)
    action: ScalingAction = ScalingAction.NONE
    predicted_load: float = 0.0
    confidence_score: float = Field(0.0, ge=0, le=1)
    reasoning: str = ""
    metric_predictions: List[MetricPrediction] = Field(default_factory=list)
    execution_time: Optional[datetime] = Field(None, description="Set once, when the recommendation is applied")

    @model_validator(mode="after")
    def check_no_action_keeps_capacity(self) -> "ScalingRecommendation":
        if self.action == ScalingAction.NONE and self.recommended_instances != self.current_instances:
            raise ValueError("A recommendation without an action must keep the current instance count")
        return self

    def mark_executed(self, when: Optional[datetime] = None) -> None:
        """Stamp the execution time; a recommendation can only be executed once"""
        if self.execution_time is not None:
            raise ValueError(f"Recommendation {self.id} was already executed at {self.execution_time.isoformat()}")
        self.execution_time = when or utcnow()


class ScalingEvent(BaseModel):
    """Append-only audit record of one execution attempt"""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    resource_id: str
    action: ScalingAction
    from_instances: int = Field(..., ge=0)
    to_instances: int = Field(..., ge=0)
    trigger: str = ""
    success: bool
    error_message: Optional[str] = None
    timestamp: datetime = Field(default_factory=utcnow, description="Time the execution attempt completed")
    triggered_at: Optional[datetime] = Field(None, description="Time the triggering recommendation was produced")
    metrics_at_time: Dict[str, float] = Field(default_factory=dict)

    class Config:
        frozen = True

    @property
    def response_time_seconds(self) -> Optional[float]:
        if self.triggered_at is None:
            return None
        return (self.timestamp - self.triggered_at).total_seconds()


class ScalingPerformanceMetrics(BaseModel):
    """Retrospective scorecard for a resource over a time window"""
    resource_id: str
    analysis_start_date: datetime
    analysis_end_date: datetime
    total_scaling_events: int = 0
    successful_scaling_events: int = 0
    average_response_time: float = Field(0.0, description="Mean seconds from trigger to completed execution")
    cost_savings_percentage: float = 0.0
    over_provisioning_percentage: float = 0.0
    under_provisioning_percentage: float = 0.0
    metric_accuracy: Dict[str, float] = Field(default_factory=dict)


class UsagePatternAnalysis(BaseModel):
    """Derived characterisation of a resource's historical load"""
    has_seasonality: bool = False
    seasonality_period_days: int = 0
    peak_hours: List[int] = Field(default_factory=list)
    low_usage_hours: List[int] = Field(default_factory=list)
    weekend_pattern: UsagePattern = UsagePattern.MEDIUM
    growth_trend: float = 0.0


class ScalingMetrics(BaseModel):
    primary_metrics: List[str] = Field(default_factory=list)
    secondary_metrics: List[str] = Field(default_factory=list)
    lookback_period_days: int = Field(30, ge=1)
    prediction_horizon_hours: int = Field(24, ge=1)
    aggregation_type: AggregationType = AggregationType.AVERAGE
    aggregation_window_minutes: int = Field(5, ge=1)

    class Config:
        frozen = True

    @property
    def all_metrics(self) -> List[str]:
        return list(self.primary_metrics) + [m for m in self.secondary_metrics if m not in self.primary_metrics]


class ScalingThresholds(BaseModel):
    scale_up_threshold: float = Field(70, gt=0, description="Target utilisation when scaling up")
    scale_down_threshold: float = Field(30, ge=0, description="Average utilisation below which capacity shrinks")
    emergency_scale_threshold: float = Field(85, gt=0)
    cooldown_minutes: int = Field(10, ge=0)
    stabilization_window_minutes: int = Field(5, ge=0)

    class Config:
        frozen = True


class ScalingConstraints(BaseModel):
    minimum_instances: int = Field(1, ge=0)
    maximum_instances: int = Field(10, ge=1)
    scale_up_step_size: int = Field(1, ge=1)
    scale_down_step_size: int = Field(1, ge=1)
    max_scale_up_per_hour: int = Field(5, ge=0)
    max_scale_down_per_hour: int = Field(3, ge=0)
    blocked_time_windows: List[str] = Field(default_factory=list)

    class Config:
        frozen = True

    @model_validator(mode="after")
    def check_range(self) -> "ScalingConstraints":
        if self.minimum_instances > self.maximum_instances:
            raise ValueError("minimum_instances must not exceed maximum_instances")
        return self

    def clamp(self, instances: int) -> int:
        return max(self.minimum_instances, min(self.maximum_instances, instances))


class PredictionSettings(BaseModel):
    model: PredictionModel = PredictionModel.TREND
    confidence_level: float = Field(0.95, gt=0, lt=1)
    use_seasonal_decomposition: bool = True
    seasonality_period_days: int = Field(7, ge=0)
    use_anomaly_detection: bool = True
    anomaly_threshold: float = Field(3.0, gt=0, description="Standard deviations")

    class Config:
        frozen = True


class ScalingSchedule(BaseModel):
    name: str
    type: ScheduleType
    cron_expression: str
    target_instances: int = Field(..., ge=0)
    is_enabled: bool = True
    next_run: Optional[datetime] = None

    class Config:
        frozen = True


class ScalingConfiguration(BaseModel):
    """Scaling policy for one resource; replaced as a whole, never patched"""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    resource_id: str
    resource_type: str
    strategy: ScalingStrategy = ScalingStrategy.BALANCED
    metrics: ScalingMetrics = Field(default_factory=ScalingMetrics)
    thresholds: ScalingThresholds = Field(default_factory=ScalingThresholds)
    constraints: ScalingConstraints = Field(default_factory=ScalingConstraints)
    prediction_settings: PredictionSettings = Field(default_factory=PredictionSettings)
    schedules: List[ScalingSchedule] = Field(default_factory=list)
    is_enabled: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    last_modified_at: Optional[datetime] = None

    class Config:
        frozen = True


class ResourceInfo(BaseModel):
    """Resource as reported by the resource directory"""
    id: str
    kind: str
    name: str
    metadata: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        frozen = True


class CostAnalysis(BaseModel):
    total_monthly_cost: float = Field(0.0, ge=0)
    potential_monthly_savings: float = Field(0.0, ge=0)


class ResourceUtilization(BaseModel):
    over_provisioned_percentage: float = Field(0.0, ge=0, le=100)
    under_provisioned_percentage: float = Field(0.0, ge=0, le=100)
