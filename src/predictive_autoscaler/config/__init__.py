"""
Configuration module for predictive autoscaler settings
"""

from .settings import (
    Settings,
    settings,
    ForecastSettings,
    DecisionSettings,
    ExecutorSettings,
    OptimizerSettings,
    PrometheusSettings,
    AzureSettings,
    KubernetesSettings,
    MongoDBSettings,
    RedisSettings,
    LoggingSettings,
)

__all__ = [
    "Settings",
    "settings",
    "ForecastSettings",
    "DecisionSettings",
    "ExecutorSettings",
    "OptimizerSettings",
    "PrometheusSettings",
    "AzureSettings",
    "KubernetesSettings",
    "MongoDBSettings",
    "RedisSettings",
    "LoggingSettings",
]
