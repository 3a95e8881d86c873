#!/usr/bin/env python3
"""
MongoDB document schemas for the predictive autoscaler
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from ..models import utcnow, ScalingAction, ScalingEvent


@dataclass
class ScalingEventDocument:
    """Scaling event document schema"""
    id: str
    resource_id: str
    action: ScalingAction
    from_instances: int
    to_instances: int
    trigger: str
    success: bool
    timestamp: datetime
    error_message: Optional[str] = None
    triggered_at: Optional[datetime] = None
    metrics_at_time: Dict[str, float] = field(default_factory=dict)

    @classmethod
    def from_event(cls, event: ScalingEvent) -> 'ScalingEventDocument':
        return cls(
            id=event.id,
            resource_id=event.resource_id,
            action=event.action,
            from_instances=event.from_instances,
            to_instances=event.to_instances,
            trigger=event.trigger,
            success=event.success,
            timestamp=event.timestamp,
            error_message=event.error_message,
            triggered_at=event.triggered_at,
            metrics_at_time=dict(event.metrics_at_time)
        )

    def to_event(self) -> ScalingEvent:
        return ScalingEvent(
            id=self.id,
            resource_id=self.resource_id,
            action=self.action,
            from_instances=self.from_instances,
            to_instances=self.to_instances,
            trigger=self.trigger,
            success=self.success,
            error_message=self.error_message,
            timestamp=self.timestamp,
            triggered_at=self.triggered_at,
            metrics_at_time=self.metrics_at_time
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to MongoDB document"""
        return {
            "_id": self.id,
            "resource_id": self.resource_id,
            "action": self.action.value,
            "from_instances": self.from_instances,
            "to_instances": self.to_instances,
            "trigger": self.trigger,
            "success": self.success,
            "error_message": self.error_message,
            "timestamp": self.timestamp,
            "triggered_at": self.triggered_at,
            "metrics_at_time": self.metrics_at_time,
            "recorded_at": utcnow()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ScalingEventDocument':
        """Create from MongoDB document"""
        return cls(
            id=str(data.get("_id")),
            resource_id=data.get("resource_id"),
            action=ScalingAction(data.get("action")),
            from_instances=data.get("from_instances", 0),
            to_instances=data.get("to_instances", 0),
            trigger=data.get("trigger", ""),
            success=data.get("success", False),
            timestamp=data.get("timestamp"),
            error_message=data.get("error_message"),
            triggered_at=data.get("triggered_at"),
            metrics_at_time=data.get("metrics_at_time") or {}
        )
