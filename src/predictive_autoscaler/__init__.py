"""
Predictive autoscaler

Forecasts resource demand, recommends and applies capacity changes, scores
past decisions and re-tunes scaling policy from observed usage patterns.
"""

from .core.engine import PredictiveScalingEngine

__version__ = "0.1.0"

__all__ = ["PredictiveScalingEngine", "__version__"]
