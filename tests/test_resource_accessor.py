"""Unit tests for ResourceAccessor routing of typed and custom kinds."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from kubernetes.client import (
    ApiClient,
    V1Deployment,
    V1DeploymentList,
    V1DeploymentSpec,
    V1DeploymentStatus,
    V1LabelSelector,
    V1Namespace,
    V1ObjectMeta,
    V1Pod,
    V1PodList,
    V1PodStatus,
    V1PodTemplateSpec,
)

from kubesmoke.kubernetes_controller import ResourceNotFound, TransportError
from kubesmoke.models import ALL_NAMESPACES, ResourceKind
from kubesmoke.resource_accessor import (
    CUSTOM_RESOURCE_DEFINITIONS,
    DEPLOYMENTS,
    NAMESPACES,
    PODS,
    ResourceAccessor,
)

ROLLOUTS = ResourceKind("argoproj.io", "v1alpha1", "rollouts")
CLUSTER_POLICIES = ResourceKind("kyverno.io", "v1", "clusterpolicies", namespaced=False)


@pytest.fixture()
def controller() -> MagicMock:
    """Controller mock whose ``call`` invokes the API method directly."""
    mock_controller = MagicMock()
    mock_controller.api_client = ApiClient()
    mock_controller.call.side_effect = lambda fn, description, **kwargs: fn(**kwargs)
    return mock_controller


def _make_pod(name: str, phase: str) -> V1Pod:
    return V1Pod(
        metadata=V1ObjectMeta(name=name, namespace="kube-system", labels={"k8s-app": "kube-dns"}),
        status=V1PodStatus(phase=phase),
    )


# ---------------------------------------------------------------------------
# Typed kinds
# ---------------------------------------------------------------------------


class TestTypedKinds:
    """Tests for built-in kinds served by generated client APIs."""

    def test_list_namespaced_pods_with_selector(self, controller: MagicMock) -> None:
        """Verify namespaced listing forwards the selector and yields API JSON records."""
        controller.core_v1.list_namespaced_pod.return_value = V1PodList(
            items=[_make_pod("coredns-a", "Running"), _make_pod("coredns-b", "Pending")],
        )
        accessor = ResourceAccessor(k8s_controller=controller)

        records = accessor.list(PODS.at(namespace="kube-system", label_selector="k8s-app=kube-dns"))

        controller.core_v1.list_namespaced_pod.assert_called_once_with(
            namespace="kube-system", label_selector="k8s-app=kube-dns",
        )
        assert [record.name for record in records] == ["coredns-a", "coredns-b"]
        assert [record.phase for record in records] == ["Running", "Pending"]
        assert records[0].labels == {"k8s-app": "kube-dns"}

    def test_list_all_namespaces(self, controller: MagicMock) -> None:
        controller.core_v1.list_pod_for_all_namespaces.return_value = V1PodList(items=[])
        accessor = ResourceAccessor(k8s_controller=controller)

        assert accessor.list(PODS.at(namespace=ALL_NAMESPACES)) == []
        controller.core_v1.list_pod_for_all_namespaces.assert_called_once_with()
        controller.core_v1.list_namespaced_pod.assert_not_called()

    def test_get_deployment_uses_camel_case_fields(self, controller: MagicMock) -> None:
        """Verify typed objects are read through the same JSON paths as custom ones."""
        controller.apps_v1.read_namespaced_deployment.return_value = V1Deployment(
            metadata=V1ObjectMeta(name="argocd-server", namespace="argocd"),
            spec=V1DeploymentSpec(
                replicas=3,
                selector=V1LabelSelector(match_labels={"app": "argocd-server"}),
                template=V1PodTemplateSpec(),
            ),
            status=V1DeploymentStatus(ready_replicas=2),
        )
        accessor = ResourceAccessor(k8s_controller=controller)

        record = accessor.get(DEPLOYMENTS.at(namespace="argocd", name="argocd-server"))

        controller.apps_v1.read_namespaced_deployment.assert_called_once_with(
            name="argocd-server", namespace="argocd",
        )
        assert record.replicas == 3
        assert record.ready_replicas == 2

    def test_get_cluster_scoped(self, controller: MagicMock) -> None:
        controller.core_v1.read_namespace.return_value = V1Namespace(metadata=V1ObjectMeta(name="argocd"))
        accessor = ResourceAccessor(k8s_controller=controller)

        record = accessor.get(NAMESPACES.at(name="argocd"))

        controller.core_v1.read_namespace.assert_called_once_with(name="argocd")
        assert record.name == "argocd"

    def test_list_deployments_in_namespace(self, controller: MagicMock) -> None:
        controller.apps_v1.list_namespaced_deployment.return_value = V1DeploymentList(items=[])
        accessor = ResourceAccessor(k8s_controller=controller)

        accessor.list(DEPLOYMENTS.at(namespace="argo-events"))

        controller.apps_v1.list_namespaced_deployment.assert_called_once_with(namespace="argo-events")

    def test_get_requires_name(self, controller: MagicMock) -> None:
        accessor = ResourceAccessor(k8s_controller=controller)

        with pytest.raises(ValueError):
            accessor.get(PODS.at(namespace="default"))


# ---------------------------------------------------------------------------
# Custom kinds
# ---------------------------------------------------------------------------


class TestCustomKinds:
    """Tests for kinds addressed through the custom objects API."""

    def test_list_namespaced_custom(self, controller: MagicMock) -> None:
        controller.custom_objects.list_namespaced_custom_object.return_value = {
            "items": [{"metadata": {"name": "web"}, "status": {"phase": "Healthy"}}],
        }
        accessor = ResourceAccessor(k8s_controller=controller)

        records = accessor.list(ROLLOUTS.at(namespace="apps"))

        controller.custom_objects.list_namespaced_custom_object.assert_called_once_with(
            group="argoproj.io", version="v1alpha1", plural="rollouts", namespace="apps",
        )
        assert records[0].phase == "Healthy"
        assert records[0].kind == ROLLOUTS

    def test_list_across_all_namespaces_uses_cluster_listing(self, controller: MagicMock) -> None:
        controller.custom_objects.list_cluster_custom_object.return_value = {"items": []}
        accessor = ResourceAccessor(k8s_controller=controller)

        accessor.list(ROLLOUTS.at(namespace=ALL_NAMESPACES, label_selector="team=web"))

        controller.custom_objects.list_cluster_custom_object.assert_called_once_with(
            group="argoproj.io", version="v1alpha1", plural="rollouts", label_selector="team=web",
        )

    def test_list_cluster_scoped_custom(self, controller: MagicMock) -> None:
        controller.custom_objects.list_cluster_custom_object.return_value = {"items": None}
        accessor = ResourceAccessor(k8s_controller=controller)

        assert accessor.list(CLUSTER_POLICIES.at()) == []

    def test_get_crd_through_custom_objects(self, controller: MagicMock) -> None:
        """Verify CRDs are read by group/version so either served version can be addressed."""
        controller.custom_objects.get_cluster_custom_object.return_value = {
            "metadata": {"name": "rollouts.argoproj.io"},
        }
        accessor = ResourceAccessor(k8s_controller=controller)

        coordinate = CUSTOM_RESOURCE_DEFINITIONS.at(name="rollouts.argoproj.io").with_version("v1beta1")
        record = accessor.get(coordinate)

        controller.custom_objects.get_cluster_custom_object.assert_called_once_with(
            group="apiextensions.k8s.io", version="v1beta1", plural="customresourcedefinitions",
            name="rollouts.argoproj.io",
        )
        assert record.name == "rollouts.argoproj.io"

    def test_get_namespaced_custom(self, controller: MagicMock) -> None:
        controller.custom_objects.get_namespaced_custom_object.return_value = {"metadata": {"name": "web"}}
        accessor = ResourceAccessor(k8s_controller=controller)

        accessor.get(ROLLOUTS.at(namespace="apps", name="web"))

        controller.custom_objects.get_namespaced_custom_object.assert_called_once_with(
            group="argoproj.io", version="v1alpha1", plural="rollouts", name="web", namespace="apps",
        )

    def test_unexpected_payload_is_transport_error(self, controller: MagicMock) -> None:
        controller.custom_objects.list_namespaced_custom_object.return_value = "garbage"
        accessor = ResourceAccessor(k8s_controller=controller)

        with pytest.raises(TransportError):
            accessor.list(ROLLOUTS.at(namespace="apps"))

    def test_unknown_core_kind_is_rejected(self, controller: MagicMock) -> None:
        accessor = ResourceAccessor(k8s_controller=controller)

        with pytest.raises(ValueError):
            accessor.list(ResourceKind("", "v1", "endpoints").at(namespace="default"))

    def test_errors_propagate(self, controller: MagicMock) -> None:
        """Verify the accessor does not swallow or retry lookup errors."""
        controller.call.side_effect = ResourceNotFound("rollouts not found")
        accessor = ResourceAccessor(k8s_controller=controller)

        with pytest.raises(ResourceNotFound):
            accessor.list(ROLLOUTS.at(namespace="apps"))
        assert controller.call.call_count == 1


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


class TestDiscovery:
    """Tests for server version and API group discovery."""

    def test_server_version(self, controller: MagicMock) -> None:
        controller.version_api.get_code.return_value = MagicMock(git_version="v1.29.3-eks-1234")
        accessor = ResourceAccessor(k8s_controller=controller)

        assert accessor.server_version() == "v1.29.3-eks-1234"

    def test_has_group_version(self, controller: MagicMock) -> None:
        metrics = MagicMock(versions=[MagicMock(group_version="metrics.k8s.io/v1beta1")])
        apps = MagicMock(versions=[MagicMock(group_version="apps/v1")])
        controller.apis_api.get_api_versions.return_value = MagicMock(groups=[apps, metrics])
        accessor = ResourceAccessor(k8s_controller=controller)

        assert accessor.has_group_version("metrics.k8s.io/v1beta1")
        assert not accessor.has_group_version("custom.metrics.k8s.io/v1beta1")
