#!/usr/bin/env python3
"""
Configuration settings using Pydantic for environment variable loading
"""

import os
from typing import Optional, List

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings

# Load environment variables from .env file if it exists
load_dotenv()


class ForecastSettings(BaseSettings):
    """Metric forecaster settings"""
    lookback_days: int = int(os.getenv("FORECAST_LOOKBACK_DAYS", "30"))
    max_window_size: int = int(os.getenv("FORECAST_MAX_WINDOW_SIZE", "24"))
    confidence_z: float = float(os.getenv("FORECAST_CONFIDENCE_Z", "1.96"))
    rmse_inflation: float = float(os.getenv("FORECAST_RMSE_INFLATION", "1.1"))
    fallback_band: float = float(os.getenv("FORECAST_FALLBACK_BAND", "0.2"))
    fetch_timeout_seconds: float = float(os.getenv("FORECAST_FETCH_TIMEOUT_SECONDS", "30"))
    smoothing_alpha: float = float(os.getenv("FORECAST_SMOOTHING_ALPHA", "0.5"))
    smoothing_beta: float = float(os.getenv("FORECAST_SMOOTHING_BETA", "0.1"))
    seasonal_min_points: int = int(os.getenv("FORECAST_SEASONAL_MIN_POINTS", "48"))

    class Config:
        env_prefix = "FORECAST_"
        extra = "ignore"


class DecisionSettings(BaseSettings):
    """Boundaries the decision engine compares the forecast against"""
    scale_up_boundary: float = float(os.getenv("DECISION_SCALE_UP_BOUNDARY", "80.0"))
    emergency_boundary: float = float(os.getenv("DECISION_EMERGENCY_BOUNDARY", "90.0"))
    scale_down_target: float = float(os.getenv("DECISION_SCALE_DOWN_TARGET", "50.0"))

    class Config:
        env_prefix = "DECISION_"
        extra = "ignore"


class ExecutorSettings(BaseSettings):
    """Recommendation executor settings"""
    actuator_timeout_seconds: float = float(os.getenv("EXECUTOR_ACTUATOR_TIMEOUT_SECONDS", "300"))
    trigger: str = os.getenv("EXECUTOR_TRIGGER", "Predictive Scaling")
    lock_backend: str = os.getenv("EXECUTOR_LOCK_BACKEND", "memory")
    lock_timeout_seconds: int = int(os.getenv("EXECUTOR_LOCK_TIMEOUT_SECONDS", "600"))

    class Config:
        env_prefix = "EXECUTOR_"
        extra = "ignore"


class OptimizerSettings(BaseSettings):
    """Configuration optimizer and usage-pattern mining settings"""
    pattern_lookback_days: int = int(os.getenv("OPTIMIZER_PATTERN_LOOKBACK_DAYS", "90"))
    peak_instances: int = int(os.getenv("OPTIMIZER_PEAK_INSTANCES", "5"))
    off_peak_instances: int = int(os.getenv("OPTIMIZER_OFF_PEAK_INSTANCES", "2"))
    default_minimum_instances: int = int(os.getenv("OPTIMIZER_DEFAULT_MINIMUM_INSTANCES", "1"))
    default_maximum_instances: int = int(os.getenv("OPTIMIZER_DEFAULT_MAXIMUM_INSTANCES", "10"))
    # JSON list when set through OPTIMIZER_MAINTENANCE_WINDOWS
    maintenance_windows: List[str] = Field(
        default_factory=lambda: ["Sunday 02:00-04:00", "Wednesday 02:00-04:00"]
    )

    class Config:
        env_prefix = "OPTIMIZER_"
        extra = "ignore"


class PrometheusSettings(BaseSettings):
    """Prometheus configuration settings"""
    url: str = os.getenv("PROMETHEUS_URL", "http://prometheus:9090")
    query_timeout: int = int(os.getenv("PROMETHEUS_QUERY_TIMEOUT", "5"))
    step: str = os.getenv("PROMETHEUS_STEP", "5m")

    class Config:
        env_prefix = "PROMETHEUS_"
        extra = "ignore"


class AzureSettings(BaseSettings):
    """Azure Resource Manager settings used by the ARM actuators and directory"""
    management_url: str = os.getenv("AZURE_MANAGEMENT_URL", "https://management.azure.com")
    access_token: Optional[str] = os.getenv("AZURE_ACCESS_TOKEN", None)
    request_timeout: int = int(os.getenv("AZURE_REQUEST_TIMEOUT", "30"))
    resources_api_version: str = os.getenv("AZURE_RESOURCES_API_VERSION", "2021-04-01")
    vmss_api_version: str = os.getenv("AZURE_VMSS_API_VERSION", "2023-09-01")
    web_api_version: str = os.getenv("AZURE_WEB_API_VERSION", "2022-09-01")
    aks_api_version: str = os.getenv("AZURE_AKS_API_VERSION", "2023-10-01")
    aks_agent_pool: str = os.getenv("AZURE_AKS_AGENT_POOL", "nodepool1")

    class Config:
        env_prefix = "AZURE_"
        extra = "ignore"


class KubernetesSettings(BaseSettings):
    """Kubernetes configuration settings"""
    in_cluster: bool = os.getenv("KUBERNETES_IN_CLUSTER", "false").lower() == "true"
    kubeconfig_path: Optional[str] = os.getenv("KUBERNETES_KUBECONFIG_PATH", None)

    class Config:
        env_prefix = "KUBERNETES_"
        extra = "ignore"


class MongoDBSettings(BaseSettings):
    """MongoDB configuration settings"""
    url: str = os.getenv("MONGODB_URL", "mongodb://localhost:27017")
    database_name: str = os.getenv("MONGODB_DATABASE_NAME", "predictive_autoscaler")
    connection_timeout: int = int(os.getenv("MONGODB_CONNECTION_TIMEOUT", "5"))

    class Config:
        env_prefix = "MONGODB_"
        extra = "ignore"


class RedisSettings(BaseSettings):
    """Redis configuration settings"""
    host: str = os.getenv("REDIS_HOST", "localhost")
    port: int = int(os.getenv("REDIS_PORT", "6379"))
    db: int = int(os.getenv("REDIS_DB", "0"))
    password: Optional[str] = os.getenv("REDIS_PASSWORD", None)
    key_prefix: str = os.getenv("REDIS_KEY_PREFIX", "predictive_autoscaler:")

    class Config:
        env_prefix = "REDIS_"
        extra = "ignore"


class LoggingSettings(BaseSettings):
    """Logging configuration settings"""
    level: str = os.getenv("LOG_LEVEL", "INFO")
    file: Optional[str] = os.getenv("LOG_FILE", None)
    colors: bool = os.getenv("LOG_COLORS", "true").lower() == "true"

    class Config:
        env_prefix = "LOG_"
        extra = "ignore"


class Settings(BaseSettings):
    """Main settings class that includes all sub-settings"""

    forecast: ForecastSettings = Field(default_factory=ForecastSettings)
    decision: DecisionSettings = Field(default_factory=DecisionSettings)
    executor: ExecutorSettings = Field(default_factory=ExecutorSettings)
    optimizer: OptimizerSettings = Field(default_factory=OptimizerSettings)
    prometheus: PrometheusSettings = Field(default_factory=PrometheusSettings)
    azure: AzureSettings = Field(default_factory=AzureSettings)
    kubernetes: KubernetesSettings = Field(default_factory=KubernetesSettings)
    mongodb: MongoDBSettings = Field(default_factory=MongoDBSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"

    @classmethod
    def load_from_yaml_with_env_override(cls, yaml_path: str) -> "Settings":
        """Load settings from YAML file and override with environment variables"""
        import yaml

        yaml_config = {}
        if os.path.exists(yaml_path):
            with open(yaml_path, 'r') as f:
                # Process environment variables in YAML
                yaml_content = f.read()
                for key, value in os.environ.items():
                    yaml_content = yaml_content.replace(f"${{{key}}}", value)
                yaml_config = yaml.safe_load(yaml_content) or {}

        return Settings(
            forecast=ForecastSettings(**yaml_config.get("forecast", {})),
            decision=DecisionSettings(**yaml_config.get("decision", {})),
            executor=ExecutorSettings(**yaml_config.get("executor", {})),
            optimizer=OptimizerSettings(**yaml_config.get("optimizer", {})),
            prometheus=PrometheusSettings(**yaml_config.get("prometheus", {})),
            azure=AzureSettings(**yaml_config.get("azure", {})),
            kubernetes=KubernetesSettings(**yaml_config.get("kubernetes", {})),
            mongodb=MongoDBSettings(**yaml_config.get("mongodb", {})),
            redis=RedisSettings(**yaml_config.get("redis", {})),
            logging=LoggingSettings(**yaml_config.get("logging", {}))
        )


# Global settings instance
settings = Settings()
