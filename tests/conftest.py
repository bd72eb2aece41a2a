"""Shared pytest fixtures for the kubesmoke test suite."""

from __future__ import annotations

import base64
from typing import Any
from unittest.mock import MagicMock

import pytest

from kubesmoke.kubernetes_controller import ResourceNotFound
from kubesmoke.models import (
    ALL_NAMESPACES,
    ProbeResult,
    ResourceCoordinate,
    ResourceKind,
    ResourceRecord,
    parse_label_selector,
)
from kubesmoke.reachability import ReachabilityProbe
from kubesmoke.resource_accessor import (
    CONFIG_MAPS,
    CUSTOM_RESOURCE_DEFINITIONS,
    DEPLOYMENTS,
    INGRESSES,
    NAMESPACES,
    NODES,
    PODS,
    SECRETS,
    SERVICE_ACCOUNTS,
    STATEFUL_SETS,
)

BUILTIN_KINDS = {
    NAMESPACES,
    NODES,
    PODS,
    SECRETS,
    CONFIG_MAPS,
    SERVICE_ACCOUNTS,
    DEPLOYMENTS,
    STATEFUL_SETS,
    INGRESSES,
    CUSTOM_RESOURCE_DEFINITIONS,
}


# ---------------------------------------------------------------------------
# Payload builders (API JSON form)
# ---------------------------------------------------------------------------


def make_object(
    name: str,
    namespace: str | None = None,
    labels: dict[str, str] | None = None,
    annotations: dict[str, str] | None = None,
    **body: Any,
) -> dict[str, Any]:
    """Build a resource payload with metadata plus arbitrary top-level sections."""
    metadata: dict[str, Any] = {"name": name}
    if namespace is not None:
        metadata["namespace"] = namespace
    if labels:
        metadata["labels"] = labels
    if annotations:
        metadata["annotations"] = annotations
    return {"metadata": metadata, **body}


def make_pod(name: str, namespace: str, labels: dict[str, str], phase: str = "Running") -> dict[str, Any]:
    return make_object(name, namespace, labels=labels, status={"phase": phase})


def make_deployment(name: str, namespace: str, replicas: int, ready: int | None) -> dict[str, Any]:
    status = {} if ready is None else {"readyReplicas": ready}
    return make_object(name, namespace, spec={"replicas": replicas}, status=status)


def make_secret(name: str, namespace: str, data: dict[str, str]) -> dict[str, Any]:
    """Build a Secret whose ``data`` values are base64-encoded from plain text."""
    encoded = {key: base64.b64encode(value.encode("utf-8")).decode("ascii") for key, value in data.items()}
    return make_object(name, namespace, data=encoded)


def make_node(name: str, ready: str = "True") -> dict[str, Any]:
    return make_object(name, status={"conditions": [{"type": "Ready", "status": ready}]})


# ---------------------------------------------------------------------------
# In-memory accessor
# ---------------------------------------------------------------------------


class FakeAccessor:
    """In-memory stand-in for ``ResourceAccessor``.

    Built-in kinds are always served (empty by default). Any other kind is
    served only once objects were added for it, otherwise queries raise
    ``ResourceNotFound`` like an API server that lacks the CRD.
    """

    def __init__(self) -> None:
        self.objects: dict[ResourceKind, list[dict[str, Any]]] = {}
        self.errors: dict[ResourceKind, Exception] = {}
        self.calls: list[tuple[str, ResourceCoordinate]] = []
        self.version = "v1.29.3-eks-1234"
        self.group_versions: set[str] = set()

    def add(self, kind: ResourceKind, *payloads: dict[str, Any]) -> FakeAccessor:
        self.objects.setdefault(kind, []).extend(payloads)
        return self

    def fail(self, kind: ResourceKind, error: Exception) -> FakeAccessor:
        self.errors[kind] = error
        return self

    def _served(self, kind: ResourceKind) -> list[dict[str, Any]]:
        if kind in self.errors:
            raise self.errors[kind]
        if kind in self.objects:
            return self.objects[kind]
        if kind in BUILTIN_KINDS:
            return []
        raise ResourceNotFound(f"{kind} not found")

    def _in_scope(self, coordinate: ResourceCoordinate, payload: dict[str, Any]) -> bool:
        if not coordinate.kind.namespaced or coordinate.namespace == ALL_NAMESPACES:
            return True
        return payload["metadata"].get("namespace") == coordinate.namespace

    def list(self, coordinate: ResourceCoordinate) -> list[ResourceRecord]:
        self.calls.append(("list", coordinate))
        terms = parse_label_selector(coordinate.label_selector)
        records = []
        for payload in self._served(coordinate.kind):
            labels = payload["metadata"].get("labels") or {}
            if not self._in_scope(coordinate, payload):
                continue
            if all((labels.get(key) == value) == (op == "=") for key, op, value in terms):
                records.append(ResourceRecord(kind=coordinate.kind, raw=payload))
        return records

    def get(self, coordinate: ResourceCoordinate) -> ResourceRecord:
        self.calls.append(("get", coordinate))
        for payload in self._served(coordinate.kind):
            if payload["metadata"]["name"] == coordinate.name and self._in_scope(coordinate, payload):
                return ResourceRecord(kind=coordinate.kind, raw=payload)
        raise ResourceNotFound(f"{coordinate} not found")

    def server_version(self) -> str:
        return self.version

    def has_group_version(self, group_version: str) -> bool:
        return group_version in self.group_versions


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def accessor() -> FakeAccessor:
    """Return an empty in-memory accessor."""
    return FakeAccessor()


@pytest.fixture()
def probe() -> MagicMock:
    """Return a probe mock that reports every host reachable with HTTP 200."""
    mock_probe = MagicMock(spec=ReachabilityProbe)
    mock_probe.probe.side_effect = lambda hostname: ProbeResult(hostname=hostname, reachable=True, status_code=200)
    return mock_probe
