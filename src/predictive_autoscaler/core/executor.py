#!/usr/bin/env python3
"""
Recommendation executor: drives actuators and records the audit trail
"""

import asyncio
import logging
import time
from typing import Optional

from ..config.settings import settings, ExecutorSettings
from ..models import utcnow, ResourceInfo, ScalingAction, ScalingEvent, ScalingRecommendation
from ..services.base import ResourceDirectory, ScalingEventStore
from .actuators import Actuator, ActuatorRegistry
from .engine_metrics import SCALING_EXECUTIONS_TOTAL, ACTUATOR_DURATION
from .locks import ResourceLockRegistry
from .logging_config import resource_logger

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "cancelled before confirmation; outcome unknown"


class RecommendationExecutor:
    """Applies scaling recommendations, one capacity change per resource at a time"""

    def __init__(self, directory: ResourceDirectory, actuators: ActuatorRegistry,
                 event_store: ScalingEventStore, lock_registry=None,
                 executor_settings: Optional[ExecutorSettings] = None):
        """
        Initialize executor

        Args:
            directory: Resolves resource ids to kinds
            actuators: Actuator registry keyed by resource kind
            event_store: Audit store receiving one event per attempt
            lock_registry: Per-resource lock registry; in-process when None
            executor_settings: Actuator timeout and trigger label
        """
        self.directory = directory
        self.actuators = actuators
        self.event_store = event_store
        self.locks = lock_registry or ResourceLockRegistry()
        self.settings = executor_settings or settings.executor

    async def apply(self, recommendation: ScalingRecommendation) -> bool:
        """
        Apply a recommendation through the actuator for the resource's kind

        Args:
            recommendation: Recommendation to apply

        Returns:
            True if the change was applied, or no change was needed
        """
        log = resource_logger(logger, recommendation.resource_id)
        if recommendation.action == ScalingAction.NONE:
            log.debug(f"No scaling needed for {recommendation.resource_id}")
            return True

        resource_id = recommendation.resource_id
        # Cancellation while waiting here leaves no trace; nothing was attempted.
        # Every event for the resource is recorded while its lock is held.
        async with self.locks.acquire(resource_id):
            if recommendation.execution_time is not None:
                log.warning(f"Recommendation {recommendation.id} was already executed; ignoring")
                return False

            try:
                resource = await self.directory.get_resource(resource_id)
            except Exception as e:
                log.error(f"Error resolving resource {resource_id}: {e}")
                await self._record(recommendation, False, f"resource lookup failed: {e}")
                SCALING_EXECUTIONS_TOTAL.labels(resource_kind="unknown", status="failure").inc()
                return False

            if resource is None:
                log.error(f"Cannot apply recommendation: resource {resource_id} not found")
                await self._record(recommendation, False, f"resource not found: {resource_id}")
                SCALING_EXECUTIONS_TOTAL.labels(resource_kind="unknown", status="not_found").inc()
                return False

            actuator = self.actuators.get(resource.kind)
            if actuator is None:
                log.error(f"Unsupported resource kind {resource.kind} for {resource_id}")
                await self._record(recommendation, False, f"unsupported resource kind: {resource.kind}")
                SCALING_EXECUTIONS_TOTAL.labels(resource_kind=resource.kind, status="unsupported").inc()
                return False

            return await self._execute(recommendation, resource, actuator)

    async def _execute(self, recommendation: ScalingRecommendation, resource: ResourceInfo,
                       actuator: Actuator) -> bool:
        """Call the actuator and record the outcome; the caller holds the resource lock"""
        log = resource_logger(logger, resource.id)
        target = recommendation.recommended_instances
        timeout = self.settings.actuator_timeout_seconds
        log.info(f"Scaling {resource.name} ({resource.kind}) from "
                    f"{recommendation.current_instances} to {target}: {recommendation.action.value}")

        start_time = time.time()
        error_message = None
        status = "success"
        try:
            success = bool(await asyncio.wait_for(actuator.set_capacity(resource, target), timeout=timeout))
            if not success:
                error_message = "actuator reported failure"
                status = "failure"
        except asyncio.TimeoutError:
            success = False
            error_message = f"timeout: no response from actuator within {timeout:g}s"
            status = "timeout"
        except asyncio.CancelledError:
            # The change may have taken effect remotely, so the attempt is still recorded
            log.warning(f"Scaling of {resource.name} cancelled after the actuator call was issued")
            SCALING_EXECUTIONS_TOTAL.labels(resource_kind=resource.kind, status="cancelled").inc()
            await self._record(recommendation, False, CANCELLED_MESSAGE)
            raise
        except Exception as e:
            success = False
            error_message = str(e) or e.__class__.__name__
            status = "failure"
        finally:
            ACTUATOR_DURATION.labels(resource_kind=resource.kind).observe(time.time() - start_time)

        SCALING_EXECUTIONS_TOTAL.labels(resource_kind=resource.kind, status=status).inc()
        if success:
            completed_at = utcnow()
            if recommendation.execution_time is None:
                recommendation.mark_executed(completed_at)
            else:
                log.warning(f"Recommendation {recommendation.id} was marked executed while scaling {resource.name}")
            log.info(f"Scaled {resource.name} to {target} instances")
            await self._record(recommendation, True, None, completed_at)
        else:
            log.error(f"Scaling {resource.name} to {target} failed: {error_message}")
            await self._record(recommendation, False, error_message)
        return success

    async def _record(self, recommendation: ScalingRecommendation, success: bool,
                      error_message: Optional[str], completed_at=None) -> None:
        """Append the audit event; failures to record are logged, never raised"""
        try:
            event = ScalingEvent(
                resource_id=recommendation.resource_id,
                action=recommendation.action,
                from_instances=recommendation.current_instances,
                to_instances=recommendation.recommended_instances,
                trigger=self.settings.trigger,
                success=success,
                error_message=error_message,
                timestamp=completed_at or utcnow(),
                triggered_at=recommendation.created_at,
                metrics_at_time={
                    p.metric_name: p.predictions[0].value
                    for p in recommendation.metric_predictions if p.predictions
                }
            )
            await self.event_store.append(event)
        except Exception as e:
            resource_logger(logger, recommendation.resource_id).error(
                f"Failed to record scaling event for {recommendation.resource_id}: {e}"
            )
