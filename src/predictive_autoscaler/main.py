#!/usr/bin/env python3
"""
Command-line driver for the predictive scaling engine
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from datetime import timedelta
from typing import List, Optional

from prometheus_client import start_http_server

from .config.settings import Settings
from .core.actuators import (
    ActuatorRegistry,
    AppServicePlanActuator,
    KubernetesDeploymentActuator,
    ManagedClusterActuator,
    VirtualMachineScaleSetActuator,
)
from .core.engine import PredictiveScalingEngine
from .core.logging_config import setup_logging
from .core.metrics import PrometheusTelemetrySource
from .core.resource_kinds import KUBERNETES_DEPLOYMENT, normalize_kind
from .exceptions import PredictiveScalingError
from .models import utcnow, ResourceInfo
from .services.azure import ArmClient, ArmResourceDirectory
from .services.memory import InMemoryResourceDirectory, InMemoryScalingEventStore

logger = logging.getLogger(__name__)


def build_engine(app_settings: Settings, resource_kind: Optional[str] = None,
                 resource_id: Optional[str] = None, event_store_backend: str = "memory") -> PredictiveScalingEngine:
    """
    Wire the engine to Prometheus, Resource Manager and the configured stores

    Args:
        app_settings: Settings tree
        resource_kind: When given, resource_id is registered locally with this kind
            instead of being resolved through Resource Manager
        resource_id: Resource to register when resource_kind is given
        event_store_backend: 'memory' or 'mongodb'
    """
    arm = ArmClient(app_settings.azure)
    actuators = ActuatorRegistry()
    actuators.register(VirtualMachineScaleSetActuator.kind, VirtualMachineScaleSetActuator(arm, app_settings.azure))
    actuators.register(AppServicePlanActuator.kind, AppServicePlanActuator(arm, app_settings.azure))
    actuators.register(ManagedClusterActuator.kind, ManagedClusterActuator(arm, app_settings.azure))

    if resource_kind:
        kind = normalize_kind(resource_kind)
        directory = InMemoryResourceDirectory([
            ResourceInfo(id=resource_id, kind=kind, name=resource_id)
        ])
        if kind == KUBERNETES_DEPLOYMENT:
            actuators.register(kind, KubernetesDeploymentActuator(kubernetes_settings=app_settings.kubernetes))
    else:
        directory = ArmResourceDirectory(arm)

    if event_store_backend == "mongodb":
        from .database.repositories import MongoScalingEventStore
        event_store = MongoScalingEventStore(
            app_settings.mongodb.url,
            app_settings.mongodb.database_name,
            app_settings.mongodb.connection_timeout
        )
    else:
        event_store = InMemoryScalingEventStore()

    lock_registry = None
    if app_settings.executor.lock_backend == "redis":
        from .database.redis_client import RedisLockRegistry
        lock_registry = RedisLockRegistry(app_settings.redis, app_settings.executor.lock_timeout_seconds)

    logger.info(f"Actuators registered for: {', '.join(actuators.kinds)}")
    return PredictiveScalingEngine(
        telemetry=PrometheusTelemetrySource(app_settings.prometheus),
        directory=directory,
        actuators=actuators,
        event_store=event_store,
        lock_registry=lock_registry,
        app_settings=app_settings
    )


async def run_command(args, engine: PredictiveScalingEngine) -> dict:
    """Run one subcommand and return its JSON-ready result"""
    if args.command == "predict":
        target_time = utcnow() + timedelta(hours=args.hours)
        recommendation = await engine.generate_prediction(args.resource_id, target_time)
        result = {"recommendation": recommendation.model_dump(mode="json")}
        if args.apply:
            result["applied"] = await engine.apply_recommendation(recommendation)
            result["recommendation"] = recommendation.model_dump(mode="json")
        return result

    if args.command == "optimize":
        configuration = await engine.optimize_configuration(args.resource_id)
        return {"configuration": configuration.model_dump(mode="json")}

    end_date = utcnow()
    performance = await engine.analyze_performance(args.resource_id, end_date - timedelta(days=args.days), end_date)
    return {"performance": performance.model_dump(mode="json")}


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Predictive Autoscaler')
    parser.add_argument(
        '--config',
        default=os.getenv('CONFIG_PATH', 'config/config.yaml'),
        help='Path to configuration file'
    )
    parser.add_argument(
        '--metrics-port',
        type=int,
        default=None,
        help='Expose Prometheus metrics on this port'
    )
    parser.add_argument(
        '--kind',
        default=None,
        help='Resource kind; skips the Resource Manager lookup (e.g. kubernetes/deployments)'
    )
    parser.add_argument(
        '--event-store',
        choices=['memory', 'mongodb'],
        default='memory',
        help='Where scaling events are recorded'
    )

    subparsers = parser.add_subparsers(dest='command', required=True)

    predict = subparsers.add_parser('predict', help='Generate a scaling recommendation')
    predict.add_argument('resource_id')
    predict.add_argument('--hours', type=int, default=1, help='Hours ahead to predict for')
    predict.add_argument('--apply', action='store_true', help='Apply the recommendation')

    optimize = subparsers.add_parser('optimize', help='Derive a scaling configuration')
    optimize.add_argument('resource_id')

    analyze = subparsers.add_parser('analyze', help='Score past scaling performance')
    analyze.add_argument('resource_id')
    analyze.add_argument('--days', type=int, default=7, help='Days of history to analyze')

    return parser


def main(argv: Optional[List[str]] = None):
    """Entry point"""
    args = create_parser().parse_args(argv)

    app_settings = Settings.load_from_yaml_with_env_override(args.config)
    setup_logging(
        level=app_settings.logging.level,
        log_file=app_settings.logging.file,
        enable_colors=app_settings.logging.colors
    )

    if args.metrics_port:
        start_http_server(args.metrics_port)
        logger.info(f"Prometheus metrics server started on port {args.metrics_port}")

    try:
        engine = build_engine(app_settings, args.kind, args.resource_id, args.event_store)
        result = asyncio.run(run_command(args, engine))
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")
        sys.exit(130)
    except (PredictiveScalingError, ValueError) as e:
        logger.error(f"{args.command} failed: {e}")
        sys.exit(1)

    print(json.dumps(result, indent=2))


if __name__ == "__main__":
    main()
