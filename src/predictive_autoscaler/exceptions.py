#!/usr/bin/env python3
"""
Exception types raised by the predictive autoscaling engine
"""


class PredictiveScalingError(Exception):
    """Base class for engine errors"""


class ResourceNotFoundError(PredictiveScalingError, LookupError):
    """Raised when a single-resource operation targets an unknown resource"""

    def __init__(self, resource_id: str):
        super().__init__(f"Resource {resource_id} not found")
        self.resource_id = resource_id


class MalformedPredictionError(PredictiveScalingError, ValueError):
    """Raised when prediction data cannot be trusted to drive a scaling decision"""
