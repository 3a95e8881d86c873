#!/usr/bin/env python3
"""
Resource-kind actuators that read and change live capacity
"""

import asyncio
import concurrent.futures
import logging
import os
from typing import Dict, List, Optional, Tuple

from kubernetes import client
from kubernetes import config as k8s_config

from ..config.settings import settings, AzureSettings, KubernetesSettings
from ..models import ResourceInfo
from ..services.azure import ArmClient
from .resource_kinds import (
    VIRTUAL_MACHINE_SCALE_SET,
    APP_SERVICE_PLAN,
    MANAGED_CLUSTER,
    KUBERNETES_DEPLOYMENT,
    normalize_kind,
)

logger = logging.getLogger(__name__)


class Actuator:
    """Base class for actuators; one implementation per resource kind"""

    kind: str = ""

    async def set_capacity(self, resource: ResourceInfo, target_instances: int) -> bool:
        """
        Change the resource's instance or node count

        Args:
            resource: Resource to scale
            target_instances: Desired instance count

        Returns:
            True if the change was accepted
        """
        raise NotImplementedError("Subclasses must implement set_capacity() method")

    async def get_capacity(self, resource: ResourceInfo) -> Optional[int]:
        """Return the current instance count, or None if it cannot be read"""
        raise NotImplementedError("Subclasses must implement get_capacity() method")


class ActuatorRegistry:
    """Maps resource-kind identifiers to actuators"""

    def __init__(self):
        self._actuators: Dict[str, Actuator] = {}

    def register(self, kind: str, actuator: Actuator) -> None:
        self._actuators[normalize_kind(kind)] = actuator
        logger.debug(f"Registered {actuator.__class__.__name__} for {normalize_kind(kind)}")

    def get(self, kind: str) -> Optional[Actuator]:
        return self._actuators.get(normalize_kind(kind))

    def __contains__(self, kind: str) -> bool:
        return normalize_kind(kind) in self._actuators

    @property
    def kinds(self) -> List[str]:
        return sorted(self._actuators)


class _ThreadPoolActuator(Actuator):
    """Runs a blocking client in a thread pool"""

    def __init__(self, max_workers: int = 2):
        self.thread_pool = concurrent.futures.ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix=f"actuator-{self.__class__.__name__.lower()}"
        )

    async def _run(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.thread_pool, func, *args)

    async def set_capacity(self, resource: ResourceInfo, target_instances: int) -> bool:
        if target_instances < 0:
            raise ValueError(f"target_instances must be >= 0, got {target_instances}")
        return await self._run(self._set_capacity_sync, resource, target_instances)

    async def get_capacity(self, resource: ResourceInfo) -> Optional[int]:
        return await self._run(self._get_capacity_sync, resource)

    def _set_capacity_sync(self, resource: ResourceInfo, target_instances: int) -> bool:
        raise NotImplementedError

    def _get_capacity_sync(self, resource: ResourceInfo) -> Optional[int]:
        raise NotImplementedError


class ArmSkuCapacityActuator(_ThreadPoolActuator):
    """Scales ARM resources whose instance count is sku.capacity"""

    def __init__(self, arm_client: Optional[ArmClient] = None, api_version: str = "", max_workers: int = 2):
        super().__init__(max_workers)
        self.arm = arm_client or ArmClient()
        self.api_version = api_version

    def _set_capacity_sync(self, resource: ResourceInfo, target_instances: int) -> bool:
        result = self.arm.patch(resource.id, self.api_version, {"sku": {"capacity": target_instances}})
        logger.info(f"Requested sku.capacity={target_instances} for {resource.name}")
        state = (result.get("properties") or {}).get("provisioningState", "")
        return state.lower() != "failed"

    def _get_capacity_sync(self, resource: ResourceInfo) -> Optional[int]:
        data = self.arm.get(resource.id, self.api_version)
        if not data:
            return None
        capacity = (data.get("sku") or {}).get("capacity")
        return int(capacity) if capacity is not None else None


class VirtualMachineScaleSetActuator(ArmSkuCapacityActuator):
    kind = VIRTUAL_MACHINE_SCALE_SET

    def __init__(self, arm_client: Optional[ArmClient] = None, azure_settings: Optional[AzureSettings] = None):
        azure_settings = azure_settings or settings.azure
        super().__init__(arm_client or ArmClient(azure_settings), azure_settings.vmss_api_version)


class AppServicePlanActuator(ArmSkuCapacityActuator):
    kind = APP_SERVICE_PLAN

    def __init__(self, arm_client: Optional[ArmClient] = None, azure_settings: Optional[AzureSettings] = None):
        azure_settings = azure_settings or settings.azure
        super().__init__(arm_client or ArmClient(azure_settings), azure_settings.web_api_version)


class ManagedClusterActuator(_ThreadPoolActuator):
    """Scales a managed cluster by changing its agent pool node count"""

    kind = MANAGED_CLUSTER

    def __init__(self, arm_client: Optional[ArmClient] = None, azure_settings: Optional[AzureSettings] = None):
        super().__init__()
        self.settings = azure_settings or settings.azure
        self.arm = arm_client or ArmClient(self.settings)

    def _pool_id(self, resource: ResourceInfo) -> str:
        pool = resource.metadata.get("agent_pool") or self.settings.aks_agent_pool
        return f"{resource.id.rstrip('/')}/agentPools/{pool}"

    def _set_capacity_sync(self, resource: ResourceInfo, target_instances: int) -> bool:
        pool_id = self._pool_id(resource)
        pool = self.arm.get(pool_id, self.settings.aks_api_version)
        if pool is None:
            logger.error(f"Agent pool {pool_id} not found")
            return False

        # Agent pools are updated with PUT, so send back the full properties
        properties = dict(pool.get("properties") or {})
        properties["count"] = target_instances
        result = self.arm.put(pool_id, self.settings.aks_api_version, {"properties": properties})
        logger.info(f"Requested node count {target_instances} for {resource.name}")
        state = (result.get("properties") or {}).get("provisioningState", "")
        return state.lower() != "failed"

    def _get_capacity_sync(self, resource: ResourceInfo) -> Optional[int]:
        pool = self.arm.get(self._pool_id(resource), self.settings.aks_api_version)
        if not pool:
            return None
        count = (pool.get("properties") or {}).get("count")
        return int(count) if count is not None else None


class KubernetesDeploymentActuator(_ThreadPoolActuator):
    """Scales Kubernetes deployments addressed as namespace/name"""

    kind = KUBERNETES_DEPLOYMENT

    def __init__(self, apps_api: Optional[client.AppsV1Api] = None,
                 kubernetes_settings: Optional[KubernetesSettings] = None):
        super().__init__()
        self.settings = kubernetes_settings or settings.kubernetes
        self.apps_api = apps_api or self._init_kubernetes_client()

    def _init_kubernetes_client(self) -> client.AppsV1Api:
        """Initialize Kubernetes API client"""
        if self.settings.in_cluster:
            logger.info("Loading in-cluster config")
            k8s_config.load_incluster_config()
        else:
            kubeconfig_path = self.settings.kubeconfig_path
            if kubeconfig_path and not os.path.exists(kubeconfig_path):
                raise FileNotFoundError(f"Kubeconfig file not found: {kubeconfig_path}")
            k8s_config.load_kube_config(config_file=kubeconfig_path)
        logger.info("Kubernetes client initialized successfully")
        return client.AppsV1Api()

    @staticmethod
    def _split_name(resource: ResourceInfo) -> Tuple[str, str]:
        if "/" in resource.name:
            namespace, name = resource.name.split("/", 1)
            return namespace, name
        return resource.metadata.get("namespace", "default"), resource.name

    def _set_capacity_sync(self, resource: ResourceInfo, target_instances: int) -> bool:
        namespace, name = self._split_name(resource)
        result = self.apps_api.patch_namespaced_deployment_scale(
            name=name,
            namespace=namespace,
            body={"spec": {"replicas": target_instances}}
        )
        logger.info(f"Scaled deployment {namespace}/{name} to {target_instances} replicas")
        return result.spec.replicas == target_instances

    def _get_capacity_sync(self, resource: ResourceInfo) -> Optional[int]:
        namespace, name = self._split_name(resource)
        scale = self.apps_api.read_namespaced_deployment_scale(name=name, namespace=namespace)
        return scale.spec.replicas
