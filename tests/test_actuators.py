"""
Tests for Resource Manager and Kubernetes actuators
"""

from unittest.mock import Mock

import pytest
import requests

from predictive_autoscaler.config.settings import AzureSettings, KubernetesSettings
from predictive_autoscaler.core.actuators import (
    AppServicePlanActuator,
    KubernetesDeploymentActuator,
    ManagedClusterActuator,
    VirtualMachineScaleSetActuator,
)
from predictive_autoscaler.core.resource_kinds import (
    APP_SERVICE_PLAN,
    KUBERNETES_DEPLOYMENT,
    MANAGED_CLUSTER,
)
from predictive_autoscaler.models import ResourceInfo
from predictive_autoscaler.services.azure import ArmClient, ArmResourceDirectory

from conftest import VMSS_ID


@pytest.fixture
def azure_settings():
    return AzureSettings(
        management_url="https://management.example.com",
        access_token="token",
        request_timeout=10,
        resources_api_version="2021-04-01",
        vmss_api_version="2023-09-01",
        web_api_version="2022-09-01",
        aks_api_version="2023-10-01",
        aks_agent_pool="nodepool1"
    )


@pytest.fixture
def arm_client():
    return Mock(spec=ArmClient)


class TestArmSkuCapacityActuators:
    """Test sku.capacity based actuators"""

    @pytest.mark.asyncio
    async def test_vmss_set_capacity(self, arm_client, azure_settings, vmss_resource):
        arm_client.patch.return_value = {"properties": {"provisioningState": "Updating"}}
        actuator = VirtualMachineScaleSetActuator(arm_client, azure_settings)

        assert await actuator.set_capacity(vmss_resource, 4) is True
        arm_client.patch.assert_called_once_with(VMSS_ID, "2023-09-01", {"sku": {"capacity": 4}})

    @pytest.mark.asyncio
    async def test_failed_provisioning_state(self, arm_client, azure_settings, vmss_resource):
        arm_client.patch.return_value = {"properties": {"provisioningState": "Failed"}}
        actuator = VirtualMachineScaleSetActuator(arm_client, azure_settings)

        assert await actuator.set_capacity(vmss_resource, 4) is False

    @pytest.mark.asyncio
    async def test_app_service_plan_capacity(self, arm_client, azure_settings):
        plan = ResourceInfo(id="/subscriptions/s/resourceGroups/rg/providers/Microsoft.Web/serverfarms/plan",
                            kind=APP_SERVICE_PLAN, name="plan")
        arm_client.get.return_value = {"sku": {"name": "P1v3", "capacity": 3}}
        actuator = AppServicePlanActuator(arm_client, azure_settings)

        assert await actuator.get_capacity(plan) == 3
        arm_client.get.assert_called_once_with(plan.id, "2022-09-01")

    @pytest.mark.asyncio
    async def test_missing_resource_capacity(self, arm_client, azure_settings, vmss_resource):
        arm_client.get.return_value = None
        actuator = VirtualMachineScaleSetActuator(arm_client, azure_settings)

        assert await actuator.get_capacity(vmss_resource) is None

    @pytest.mark.asyncio
    async def test_negative_target_rejected(self, arm_client, azure_settings, vmss_resource):
        actuator = VirtualMachineScaleSetActuator(arm_client, azure_settings)

        with pytest.raises(ValueError):
            await actuator.set_capacity(vmss_resource, -1)


class TestManagedClusterActuator:
    """Test agent pool node count changes"""

    @pytest.fixture
    def cluster(self):
        return ResourceInfo(
            id="/subscriptions/s/resourceGroups/rg/providers/Microsoft.ContainerService/managedClusters/aks",
            kind=MANAGED_CLUSTER,
            name="aks"
        )

    @pytest.mark.asyncio
    async def test_set_capacity_keeps_pool_properties(self, arm_client, azure_settings, cluster):
        arm_client.get.return_value = {"properties": {"count": 3, "vmSize": "Standard_D4s_v5"}}
        arm_client.put.return_value = {"properties": {"count": 5, "provisioningState": "Scaling"}}
        actuator = ManagedClusterActuator(arm_client, azure_settings)

        assert await actuator.set_capacity(cluster, 5) is True

        pool_id = f"{cluster.id}/agentPools/nodepool1"
        arm_client.put.assert_called_once_with(
            pool_id, "2023-10-01", {"properties": {"count": 5, "vmSize": "Standard_D4s_v5"}}
        )

    @pytest.mark.asyncio
    async def test_missing_pool(self, arm_client, azure_settings, cluster):
        arm_client.get.return_value = None
        actuator = ManagedClusterActuator(arm_client, azure_settings)

        assert await actuator.set_capacity(cluster, 5) is False
        arm_client.put.assert_not_called()

    @pytest.mark.asyncio
    async def test_pool_from_metadata(self, arm_client, azure_settings):
        cluster = ResourceInfo(id="/clusters/aks", kind=MANAGED_CLUSTER, name="aks",
                               metadata={"agent_pool": "userpool"})
        arm_client.get.return_value = {"properties": {"count": 7}}
        actuator = ManagedClusterActuator(arm_client, azure_settings)

        assert await actuator.get_capacity(cluster) == 7
        arm_client.get.assert_called_once_with("/clusters/aks/agentPools/userpool", "2023-10-01")


class TestKubernetesDeploymentActuator:
    """Test deployment scaling through the apps API"""

    @pytest.fixture
    def apps_api(self):
        return Mock()

    @pytest.fixture
    def deployment(self):
        return ResourceInfo(id="shop/checkout", kind=KUBERNETES_DEPLOYMENT, name="shop/checkout")

    @pytest.mark.asyncio
    async def test_set_capacity(self, apps_api, deployment):
        scale = Mock()
        scale.spec.replicas = 4
        apps_api.patch_namespaced_deployment_scale.return_value = scale
        actuator = KubernetesDeploymentActuator(apps_api, KubernetesSettings(in_cluster=False))

        assert await actuator.set_capacity(deployment, 4) is True
        apps_api.patch_namespaced_deployment_scale.assert_called_once_with(
            name="checkout", namespace="shop", body={"spec": {"replicas": 4}}
        )

    @pytest.mark.asyncio
    async def test_get_capacity_defaults_namespace(self, apps_api):
        deployment = ResourceInfo(id="api", kind=KUBERNETES_DEPLOYMENT, name="api")
        scale = Mock()
        scale.spec.replicas = 2
        apps_api.read_namespaced_deployment_scale.return_value = scale
        actuator = KubernetesDeploymentActuator(apps_api, KubernetesSettings(in_cluster=False))

        assert await actuator.get_capacity(deployment) == 2
        apps_api.read_namespaced_deployment_scale.assert_called_once_with(name="api", namespace="default")


class TestArmClient:
    """Test the Resource Manager REST wrapper and directory"""

    def _response(self, status_code=200, payload=None):
        response = Mock()
        response.status_code = status_code
        response.json.return_value = payload or {}
        response.content = b"{}"
        if status_code >= 400:
            response.raise_for_status.side_effect = requests.exceptions.HTTPError(f"{status_code}")
        return response

    def test_get_sends_api_version_and_token(self, azure_settings):
        session = Mock()
        session.get.return_value = self._response(payload={"id": VMSS_ID})
        client = ArmClient(azure_settings, session)

        assert client.get(VMSS_ID, "2023-09-01") == {"id": VMSS_ID}

        args, kwargs = session.get.call_args
        assert args[0] == f"https://management.example.com{VMSS_ID}"
        assert kwargs["params"] == {"api-version": "2023-09-01"}
        assert kwargs["headers"]["Authorization"] == "Bearer token"

    def test_get_returns_none_on_404(self, azure_settings):
        session = Mock()
        session.get.return_value = self._response(status_code=404)

        assert ArmClient(azure_settings, session).get(VMSS_ID, "2023-09-01") is None

    def test_patch_raises_on_error(self, azure_settings):
        session = Mock()
        session.patch.return_value = self._response(status_code=409)

        with pytest.raises(requests.exceptions.HTTPError):
            ArmClient(azure_settings, session).patch(VMSS_ID, "2023-09-01", {"sku": {"capacity": 2}})

    @pytest.mark.asyncio
    async def test_directory_maps_resource(self, arm_client, azure_settings):
        arm_client.settings = azure_settings
        arm_client.get.return_value = {
            "id": VMSS_ID,
            "name": "web",
            "type": "Microsoft.Compute/virtualMachineScaleSets",
            "location": "westeurope",
            "sku": {"capacity": 2}
        }
        directory = ArmResourceDirectory(arm_client)

        resource = await directory.get_resource(VMSS_ID)

        assert resource.kind == "microsoft.compute/virtualmachinescalesets"
        assert resource.name == "web"
        assert resource.metadata["location"] == "westeurope"

    @pytest.mark.asyncio
    async def test_directory_not_found(self, arm_client, azure_settings):
        arm_client.settings = azure_settings
        arm_client.get.return_value = None

        assert await ArmResourceDirectory(arm_client).get_resource(VMSS_ID) is None
