"""Uniform read-only access to typed and custom Kubernetes resources.

Typed built-in kinds are served by their generated client APIs; every other
kind is addressed through the custom objects API by group/version/plural.
Both paths return :class:`~kubesmoke.models.ResourceRecord` instances in API
JSON form, so callers read fields the same way regardless of origin.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from .kubernetes_controller import KubernetesController, ResourceNotFound, TransportError
from .models import ResourceCoordinate, ResourceKind, ResourceRecord

# ---------------------------------------------------------------------------
# Well-known kinds
# ---------------------------------------------------------------------------
NAMESPACES = ResourceKind("", "v1", "namespaces", namespaced=False)
NODES = ResourceKind("", "v1", "nodes", namespaced=False)
PODS = ResourceKind("", "v1", "pods")
SECRETS = ResourceKind("", "v1", "secrets")
CONFIG_MAPS = ResourceKind("", "v1", "configmaps")
SERVICE_ACCOUNTS = ResourceKind("", "v1", "serviceaccounts")
DEPLOYMENTS = ResourceKind("apps", "v1", "deployments")
STATEFUL_SETS = ResourceKind("apps", "v1", "statefulsets")
INGRESSES = ResourceKind("networking.k8s.io", "v1", "ingresses")
CUSTOM_RESOURCE_DEFINITIONS = ResourceKind(
    "apiextensions.k8s.io", "v1", "customresourcedefinitions", namespaced=False,
)


@dataclass(frozen=True)
class _TypedEndpoints:
    """Method names on one generated API object serving a typed kind."""

    api: str
    list_namespaced: str | None
    list_all: str
    read: str


_TYPED_ENDPOINTS: dict[ResourceKind, _TypedEndpoints] = {
    NAMESPACES: _TypedEndpoints("core_v1", None, "list_namespace", "read_namespace"),
    NODES: _TypedEndpoints("core_v1", None, "list_node", "read_node"),
    PODS: _TypedEndpoints(
        "core_v1", "list_namespaced_pod", "list_pod_for_all_namespaces", "read_namespaced_pod",
    ),
    SECRETS: _TypedEndpoints(
        "core_v1", "list_namespaced_secret", "list_secret_for_all_namespaces", "read_namespaced_secret",
    ),
    CONFIG_MAPS: _TypedEndpoints(
        "core_v1", "list_namespaced_config_map", "list_config_map_for_all_namespaces", "read_namespaced_config_map",
    ),
    SERVICE_ACCOUNTS: _TypedEndpoints(
        "core_v1",
        "list_namespaced_service_account",
        "list_service_account_for_all_namespaces",
        "read_namespaced_service_account",
    ),
    DEPLOYMENTS: _TypedEndpoints(
        "apps_v1", "list_namespaced_deployment", "list_deployment_for_all_namespaces", "read_namespaced_deployment",
    ),
    STATEFUL_SETS: _TypedEndpoints(
        "apps_v1",
        "list_namespaced_stateful_set",
        "list_stateful_set_for_all_namespaces",
        "read_namespaced_stateful_set",
    ),
    INGRESSES: _TypedEndpoints(
        "networking_v1", "list_namespaced_ingress", "list_ingress_for_all_namespaces", "read_namespaced_ingress",
    ),
}


class ResourceAccessor:
    """Read-only resource queries addressed by :class:`ResourceCoordinate`.

    No retries happen here: a failing call surfaces immediately as
    :class:`ResourceNotFound` or :class:`TransportError`.

    Args:
        k8s_controller: Initialised controller providing the API objects.
    """

    def __init__(self, k8s_controller: KubernetesController) -> None:
        self.logger = logging.getLogger(__name__)
        self.k8s_controller = k8s_controller

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list(self, coordinate: ResourceCoordinate) -> list[ResourceRecord]:
        """List resources of a kind within the coordinate's scope and label selector.

        Args:
            coordinate: Kind, namespace (or ``ALL_NAMESPACES``) and optional selector.
                A ``name`` on the coordinate is ignored.

        Returns:
            Matching records; an empty list when nothing matches.

        Raises:
            ResourceNotFound: If the kind (or namespace) is unknown to the API server.
            TransportError: On any other API failure.
        """
        self.logger.debug(f"Listing {coordinate}")
        endpoints = _TYPED_ENDPOINTS.get(coordinate.kind)
        if endpoints:
            return self._list_typed(coordinate, endpoints)
        return self._list_custom(coordinate)

    def get(self, coordinate: ResourceCoordinate) -> ResourceRecord:
        """Read a single named resource.

        Raises:
            ValueError: If the coordinate carries no name.
            ResourceNotFound: If the resource does not exist.
            TransportError: On any other API failure.
        """
        if not coordinate.name:
            raise ValueError(f"A resource name is required to get {coordinate}")
        self.logger.debug(f"Reading {coordinate}")
        endpoints = _TYPED_ENDPOINTS.get(coordinate.kind)
        if endpoints:
            return self._get_typed(coordinate, endpoints)
        return self._get_custom(coordinate)

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def server_version(self) -> str:
        """Return the API server's git version (e.g. ``v1.29.3-eks-1234``)."""
        info = self.k8s_controller.call(self.k8s_controller.version_api.get_code, "server version")
        return info.git_version

    def has_group_version(self, group_version: str) -> bool:
        """Whether the API server serves ``group_version`` (e.g. ``metrics.k8s.io/v1beta1``)."""
        group_list = self.k8s_controller.call(self.k8s_controller.apis_api.get_api_versions, "API groups")
        for group in group_list.groups or []:
            if any(version.group_version == group_version for version in group.versions or []):
                return True
        return False

    # ------------------------------------------------------------------
    # Typed kinds
    # ------------------------------------------------------------------

    def _to_record(self, kind: ResourceKind, obj: Any) -> ResourceRecord:
        raw = self.k8s_controller.api_client.sanitize_for_serialization(obj)
        if not isinstance(raw, dict):
            raise TransportError(f"Unexpected payload for {kind}: {type(obj).__name__}")
        return ResourceRecord(kind=kind, raw=raw)

    def _list_typed(self, coordinate: ResourceCoordinate, endpoints: _TypedEndpoints) -> list[ResourceRecord]:
        api = getattr(self.k8s_controller, endpoints.api)
        kwargs: dict[str, Any] = {}
        if coordinate.label_selector:
            kwargs["label_selector"] = coordinate.label_selector

        if endpoints.list_namespaced and not coordinate.all_namespaces:
            fn = getattr(api, endpoints.list_namespaced)
            kwargs["namespace"] = coordinate.namespace
        else:
            fn = getattr(api, endpoints.list_all)

        ret = self.k8s_controller.call(fn, str(coordinate), **kwargs)
        return [self._to_record(coordinate.kind, item) for item in ret.items or []]

    def _get_typed(self, coordinate: ResourceCoordinate, endpoints: _TypedEndpoints) -> ResourceRecord:
        api = getattr(self.k8s_controller, endpoints.api)
        kwargs: dict[str, Any] = {"name": coordinate.name}
        if coordinate.kind.namespaced:
            kwargs["namespace"] = coordinate.namespace
        obj = self.k8s_controller.call(getattr(api, endpoints.read), str(coordinate), **kwargs)
        return self._to_record(coordinate.kind, obj)

    # ------------------------------------------------------------------
    # Custom kinds
    # ------------------------------------------------------------------

    def _custom_kwargs(self, coordinate: ResourceCoordinate) -> dict[str, Any]:
        kind = coordinate.kind
        if not kind.group:
            raise ValueError(f"{kind} is not a known typed kind and has no API group")
        return {"group": kind.group, "version": kind.version, "plural": kind.resource}

    def _list_custom(self, coordinate: ResourceCoordinate) -> list[ResourceRecord]:
        custom_objects = self.k8s_controller.custom_objects
        kwargs = self._custom_kwargs(coordinate)
        if coordinate.label_selector:
            kwargs["label_selector"] = coordinate.label_selector

        if coordinate.kind.namespaced and not coordinate.all_namespaces:
            ret = self.k8s_controller.call(
                custom_objects.list_namespaced_custom_object, str(coordinate), namespace=coordinate.namespace, **kwargs,
            )
        else:
            # Also serves namespaced kinds across all namespaces
            ret = self.k8s_controller.call(custom_objects.list_cluster_custom_object, str(coordinate), **kwargs)

        if not isinstance(ret, dict):
            raise TransportError(f"Unexpected payload listing {coordinate}: {type(ret).__name__}")
        return [ResourceRecord(kind=coordinate.kind, raw=item) for item in ret.get("items") or []]

    def _get_custom(self, coordinate: ResourceCoordinate) -> ResourceRecord:
        custom_objects = self.k8s_controller.custom_objects
        kwargs = self._custom_kwargs(coordinate)
        kwargs["name"] = coordinate.name

        if coordinate.kind.namespaced:
            ret = self.k8s_controller.call(
                custom_objects.get_namespaced_custom_object, str(coordinate), namespace=coordinate.namespace, **kwargs,
            )
        else:
            ret = self.k8s_controller.call(custom_objects.get_cluster_custom_object, str(coordinate), **kwargs)

        if not isinstance(ret, dict):
            raise TransportError(f"Unexpected payload reading {coordinate}: {type(ret).__name__}")
        return ResourceRecord(kind=coordinate.kind, raw=ret)


__all__ = [
    "CONFIG_MAPS",
    "CUSTOM_RESOURCE_DEFINITIONS",
    "DEPLOYMENTS",
    "INGRESSES",
    "NAMESPACES",
    "NODES",
    "PODS",
    "SECRETS",
    "SERVICE_ACCOUNTS",
    "STATEFUL_SETS",
    "ResourceAccessor",
    "ResourceNotFound",
    "TransportError",
]
