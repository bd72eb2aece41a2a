"""Reusable check factories.

Each factory returns a :class:`~kubesmoke.models.CheckDefinition` whose
evaluation reads cluster state through a ``ResourceAccessor`` (and, for
ingress checks, a ``ReachabilityProbe``) and reports one or more outcomes.
Lookup errors that a check does not handle itself are turned into an outcome
by the check runner using the definition's ``name`` and ``on_error`` status.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence

from .kubernetes_controller import ResourceNotFound
from .models import (
    ALL_NAMESPACES,
    IRSA_ROLE_ANNOTATION,
    CheckDefinition,
    CheckOutcome,
    CheckStatus,
    ResourceCoordinate,
    ResourceKind,
    ResourceRecord,
    SecretComparison,
)
from .reachability import ReachabilityProbe
from .resource_accessor import (
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
    ResourceAccessor,
)
from .version_resolver import VersionResolver

CRD_API_VERSIONS: tuple[str, ...] = ("v1", "v1beta1")

RecordPredicate = Callable[[ResourceRecord], bool]


# ---------------------------------------------------------------------------
# Record predicates
# ---------------------------------------------------------------------------


def field_equals(path: str, expected: str) -> RecordPredicate:
    """Predicate: the string at ``path`` equals ``expected``."""
    return lambda record: record.string_field(path) == expected


def field_present(path: str) -> RecordPredicate:
    """Predicate: ``path`` exists on the record (any value)."""
    return lambda record: record.get_field(path).found


def condition_true(condition_type: str) -> RecordPredicate:
    return lambda record: record.condition_status(condition_type) == "True"


def _replica_outcome(name: str, record: ResourceRecord, require_replicas: bool = False) -> CheckOutcome:
    desired = record.replicas or 0
    ready = record.ready_replicas
    label = f"{name}: {ready}/{desired} ready"
    if ready == desired and (desired > 0 or not require_replicas):
        return CheckOutcome.passed(label)
    return CheckOutcome.failed(label)


# ---------------------------------------------------------------------------
# Cluster
# ---------------------------------------------------------------------------


def cluster_connectivity() -> CheckDefinition:
    def evaluate(accessor: ResourceAccessor, probe: ReachabilityProbe) -> CheckOutcome:
        return CheckOutcome.passed("Cluster connectivity", accessor.server_version())

    return CheckDefinition(name="Cluster connectivity", evaluate=evaluate)


def node_readiness() -> CheckDefinition:
    """Count nodes by their Ready condition; not-ready nodes are a warning, not a failure."""

    def evaluate(accessor: ResourceAccessor, probe: ReachabilityProbe) -> list[CheckOutcome]:
        ready = not_ready = 0
        for node in accessor.list(NODES.at()):
            status = node.condition_status("Ready")
            if status == "True":
                ready += 1
            elif status is not None:
                not_ready += 1

        outcomes = [CheckOutcome.passed(f"Nodes ready: {ready}")]
        if not_ready:
            outcomes.append(CheckOutcome.warning(f"Nodes not ready: {not_ready}"))
        return outcomes

    return CheckDefinition(name="List nodes", evaluate=evaluate)


def namespace_exists(name: str) -> CheckDefinition:
    label = f"Namespace '{name}' exists"

    def evaluate(accessor: ResourceAccessor, probe: ReachabilityProbe) -> CheckOutcome:
        accessor.get(NAMESPACES.at(name=name))
        return CheckOutcome.passed(label)

    return CheckDefinition(name=label, evaluate=evaluate)


def metrics_api_available(group_version: str = "metrics.k8s.io/v1beta1") -> CheckDefinition:
    """Whether an aggregated API (by default the metrics API) is registered."""

    def evaluate(accessor: ResourceAccessor, probe: ReachabilityProbe) -> CheckOutcome:
        if accessor.has_group_version(group_version):
            return CheckOutcome.passed("Metrics API available", group_version)
        return CheckOutcome.warning("Metrics API not available", group_version)

    return CheckDefinition(name="Metrics API not available", evaluate=evaluate, on_error=CheckStatus.WARNING)


# ---------------------------------------------------------------------------
# Workloads
# ---------------------------------------------------------------------------


def pods_running(namespace: str, label_selector: str, display: str, required: bool = True) -> CheckDefinition:
    """At least one pod matching ``label_selector`` must be in phase ``Running``.

    Args:
        namespace: Namespace to search.
        label_selector: Equality-based selector, e.g. ``k8s-app=kube-dns``.
        display: Component name used in outcome labels.
        required: When ``False`` the component is optional and its absence is
            only a warning.
    """

    def evaluate(accessor: ResourceAccessor, probe: ReachabilityProbe) -> CheckOutcome:
        pods = accessor.list(PODS.at(namespace=namespace, label_selector=label_selector))
        running = sum(1 for pod in pods if pod.phase == "Running")
        if running > 0:
            return CheckOutcome.passed(f"{display}: {running} running")
        if required:
            return CheckOutcome.failed(f"{display}: no pods running", f"{len(pods)} pods match {label_selector}")
        if not pods:
            return CheckOutcome.warning(f"{display}: not found")
        return CheckOutcome.warning(f"{display}: none running")

    return CheckDefinition(
        name=f"{display} (error listing)",
        evaluate=evaluate,
        on_error=CheckStatus.FAIL if required else CheckStatus.WARNING,
    )


def deployment_ready(namespace: str, name: str) -> CheckDefinition:
    """Ready replicas of a named Deployment must equal its desired replicas."""

    def evaluate(accessor: ResourceAccessor, probe: ReachabilityProbe) -> CheckOutcome:
        return _replica_outcome(name, accessor.get(DEPLOYMENTS.at(namespace=namespace, name=name)))

    return CheckDefinition(name=f"{name} deployment", evaluate=evaluate)


def statefulset_ready(namespace: str, name: str) -> CheckDefinition:
    def evaluate(accessor: ResourceAccessor, probe: ReachabilityProbe) -> CheckOutcome:
        return _replica_outcome(name, accessor.get(STATEFUL_SETS.at(namespace=namespace, name=name)))

    return CheckDefinition(name=f"{name} statefulset", evaluate=evaluate)


def first_deployment_ready(namespace: str, display: str) -> CheckDefinition:
    """Check the first Deployment found in ``namespace``, whatever its (release-prefixed) name.

    The Deployment must have at least one desired replica, all of them ready.
    """
    not_found = f"{display} deployment not found"

    def evaluate(accessor: ResourceAccessor, probe: ReachabilityProbe) -> CheckOutcome:
        deployments = accessor.list(DEPLOYMENTS.at(namespace=namespace))
        if not deployments:
            return CheckOutcome.failed(not_found)
        deployment = deployments[0]
        return _replica_outcome(f"{display} ({deployment.name})", deployment, require_replicas=True)

    return CheckDefinition(name=not_found, evaluate=evaluate)


def all_deployments_ready(namespace: str) -> CheckDefinition:
    """One outcome per Deployment in ``namespace``."""

    def evaluate(accessor: ResourceAccessor, probe: ReachabilityProbe) -> list[CheckOutcome]:
        deployments = accessor.list(DEPLOYMENTS.at(namespace=namespace))
        if not deployments:
            return [CheckOutcome.warning(f"No deployments found in '{namespace}'")]
        return [_replica_outcome(deployment.name, deployment) for deployment in deployments]

    return CheckDefinition(name=f"Deployments in '{namespace}'", evaluate=evaluate)


# ---------------------------------------------------------------------------
# Custom resources
# ---------------------------------------------------------------------------


def crd_exists(name: str, display: str) -> CheckDefinition:
    """The CustomResourceDefinition ``name`` (e.g. ``rollouts.argoproj.io``) is registered."""

    def evaluate(accessor: ResourceAccessor, probe: ReachabilityProbe) -> CheckOutcome:
        resolution = VersionResolver(accessor).get(CUSTOM_RESOURCE_DEFINITIONS.at(name=name), CRD_API_VERSIONS)
        return CheckOutcome.passed(display, f"{name} ({resolution.version})")

    return CheckDefinition(name=display, evaluate=evaluate)


def custom_resource_exists(
    kind: ResourceKind,
    name: str,
    versions: Sequence[str],
    label: str,
    namespace: str | None = None,
) -> CheckDefinition:
    """A named custom resource exists under any of ``versions`` (tried in order)."""
    coordinate = kind.at(namespace=namespace, name=name)

    def evaluate(accessor: ResourceAccessor, probe: ReachabilityProbe) -> CheckOutcome:
        resolution = VersionResolver(accessor).get(coordinate, versions)
        return CheckOutcome.passed(label, f"served by {kind.group}/{resolution.version}")

    return CheckDefinition(name=label, evaluate=evaluate)


def _scope(kind: ResourceKind, namespace: str | None) -> str | None:
    if not kind.namespaced:
        return None
    return namespace or ALL_NAMESPACES


def custom_resource_summary(
    kind: ResourceKind,
    versions: Sequence[str],
    label: str,
    namespace: str | None = None,
    healthy: RecordPredicate | None = None,
    healthy_label: str = "healthy",
    error_label: str | None = None,
) -> CheckDefinition:
    """Informational inventory of a custom-resource kind.

    Reports ``"<label>: N"`` or, with a ``healthy`` predicate,
    ``"<label>: N total, M <healthy_label>"``. Zero items still passes;
    a listing error is a warning.
    """
    coordinate = kind.at(namespace=_scope(kind, namespace))

    def evaluate(accessor: ResourceAccessor, probe: ReachabilityProbe) -> CheckOutcome:
        records = VersionResolver(accessor).list(coordinate, versions).value
        if healthy is None:
            return CheckOutcome.passed(f"{label}: {len(records)}")
        matching = sum(1 for record in records if healthy(record))
        return CheckOutcome.passed(f"{label}: {len(records)} total, {matching} {healthy_label}")

    return CheckDefinition(
        name=error_label or f"Could not list {label}", evaluate=evaluate, on_error=CheckStatus.WARNING,
    )


def custom_resources_ready(
    kind: ResourceKind,
    versions: Sequence[str],
    label: str,
    namespace: str | None = None,
    ready: RecordPredicate = condition_true("Ready"),
) -> CheckDefinition:
    """All items of a custom-resource kind report ready; partial readiness is a warning."""
    coordinate = kind.at(namespace=_scope(kind, namespace))

    def evaluate(accessor: ResourceAccessor, probe: ReachabilityProbe) -> CheckOutcome:
        records = VersionResolver(accessor).list(coordinate, versions).value
        total = len(records)
        if total == 0:
            return CheckOutcome.warning(f"{label}: none found")
        synced = sum(1 for record in records if ready(record))
        outcome_label = f"{label}: {synced}/{total}"
        if synced == total:
            return CheckOutcome.passed(outcome_label)
        return CheckOutcome.warning(outcome_label)

    return CheckDefinition(name=f"Could not list {label}", evaluate=evaluate, on_error=CheckStatus.WARNING)


def custom_resource_phases(
    kind: ResourceKind,
    namespace: str,
    versions: Sequence[str],
    expected_phase: str,
    label: str,
) -> CheckDefinition:
    """One outcome per item: pass when ``status.phase`` is ``expected_phase``, else warn."""
    none_found = f"No {label} resources found"
    coordinate = kind.at(namespace=_scope(kind, namespace))

    def evaluate(accessor: ResourceAccessor, probe: ReachabilityProbe) -> list[CheckOutcome]:
        records = VersionResolver(accessor).list(coordinate, versions).value
        if not records:
            return [CheckOutcome.warning(none_found)]
        outcomes = []
        for record in records:
            phase = record.phase or "Unknown"
            outcome_label = f"{label} '{record.name}': {phase}"
            if phase == expected_phase:
                outcomes.append(CheckOutcome.passed(outcome_label))
            else:
                outcomes.append(CheckOutcome.warning(outcome_label))
        return outcomes

    return CheckDefinition(name=none_found, evaluate=evaluate, on_error=CheckStatus.WARNING)


# ---------------------------------------------------------------------------
# Secrets & configuration
# ---------------------------------------------------------------------------


def secret_exists(namespace: str, name: str, label: str) -> CheckDefinition:
    def evaluate(accessor: ResourceAccessor, probe: ReachabilityProbe) -> CheckOutcome:
        try:
            accessor.get(SECRETS.at(namespace=namespace, name=name))
        except ResourceNotFound:
            return CheckOutcome.warning(f"{label} not found", f"{namespace}/{name}")
        return CheckOutcome.passed(f"{label} exists")

    return CheckDefinition(name=f"{label} not found", evaluate=evaluate, on_error=CheckStatus.WARNING)


def secret_name_present(namespace: str, fragments: Sequence[str], label: str) -> CheckDefinition:
    """Some secret in ``namespace`` has a name containing one of ``fragments``."""

    def evaluate(accessor: ResourceAccessor, probe: ReachabilityProbe) -> CheckOutcome:
        for secret in accessor.list(SECRETS.at(namespace=namespace)):
            if any(fragment in secret.name for fragment in fragments):
                return CheckOutcome.passed(f"{label} exists", secret.name)
        return CheckOutcome.warning(f"{label} not found")

    return CheckDefinition(name=f"{label} not found", evaluate=evaluate, on_error=CheckStatus.WARNING)


def _secret_value(accessor: ResourceAccessor, coordinate: ResourceCoordinate, key: str) -> str | None:
    try:
        record = accessor.get(coordinate)
    except ResourceNotFound:
        return None
    lookup = record.secret_value(key)
    return lookup.value if lookup.found else None


def secret_field_matches(
    first: ResourceCoordinate,
    second: ResourceCoordinate,
    key: str,
    label: str,
) -> CheckDefinition:
    """Compare one data field of two secrets that must hold the same value.

    Equal values pass, differing values fail. A missing secret or field is a
    warning: there is not enough information to conclude a mismatch.
    """
    pair = f"({first.namespace} ↔ {second.namespace})"

    def evaluate(accessor: ResourceAccessor, probe: ReachabilityProbe) -> CheckOutcome:
        comparison = SecretComparison(
            key=key,
            first=_secret_value(accessor, first, key),
            second=_secret_value(accessor, second, key),
        )
        if comparison.status is CheckStatus.PASS:
            return CheckOutcome.passed(f"{label} match {pair}")
        if comparison.status is CheckStatus.FAIL:
            return CheckOutcome.failed(f"{label} MISMATCH {pair}", f"field '{key}' differs")
        missing = [str(c) for c, value in ((first, comparison.first), (second, comparison.second)) if value is None]
        return CheckOutcome.warning(f"{label} cannot be compared {pair}", f"missing: {', '.join(missing)}")

    return CheckDefinition(
        name=f"{label} cannot be compared {pair}", evaluate=evaluate, on_error=CheckStatus.WARNING,
    )


def secret_field_configured(
    namespace: str,
    name: str,
    key: str,
    label: str,
    pod_selector: str | None = None,
    consumer: str | None = None,
) -> CheckDefinition:
    """A secret field used by a component holds a non-empty value.

    When ``pod_selector`` is given, the consuming pods must exist first;
    otherwise the check cannot say anything useful and warns.
    """

    def evaluate(accessor: ResourceAccessor, probe: ReachabilityProbe) -> CheckOutcome:
        if pod_selector and not accessor.list(PODS.at(namespace=namespace, label_selector=pod_selector)):
            return CheckOutcome.warning(f"Could not check {consumer or 'consumer'} {label}", "no consumer pods")
        value = _secret_value(accessor, SECRETS.at(namespace=namespace, name=name), key)
        if value is None:
            return CheckOutcome.warning(f"{name} secret not found in {namespace} namespace")
        if not value:
            return CheckOutcome.warning(f"{label} is empty")
        return CheckOutcome.passed(f"{label} configured (len={len(value)})")

    return CheckDefinition(name=f"Could not check {label}", evaluate=evaluate, on_error=CheckStatus.WARNING)


def _config_value(accessor: ResourceAccessor, namespace: str, name: str, key: str) -> str | None:
    config_map = accessor.get(CONFIG_MAPS.at(namespace=namespace, name=name))
    return config_map.string_field(["data", key])


def configmap_contains(
    namespace: str, name: str, key: str, needle: str, pass_label: str, warn_label: str,
) -> CheckDefinition:
    """``data[key]`` of a ConfigMap mentions ``needle``."""

    def evaluate(accessor: ResourceAccessor, probe: ReachabilityProbe) -> CheckOutcome:
        value = _config_value(accessor, namespace, name, key)
        if value is not None and needle in value:
            return CheckOutcome.passed(pass_label)
        return CheckOutcome.warning(warn_label)

    return CheckDefinition(
        name=f"ConfigMap '{namespace}/{name}' unavailable", evaluate=evaluate, on_error=CheckStatus.WARNING,
    )


def sso_rbac_mode(namespace: str, name: str, key: str = "config") -> CheckDefinition:
    """Report whether SSO RBAC is enabled in a controller ConfigMap."""

    def evaluate(accessor: ResourceAccessor, probe: ReachabilityProbe) -> CheckOutcome:
        value = _config_value(accessor, namespace, name, key) or ""
        if "rbac" not in value:
            return CheckOutcome.warning("SSO RBAC: not configured")
        if "enabled: false" in value:
            return CheckOutcome.passed("SSO RBAC: disabled (all authenticated users allowed)")
        return CheckOutcome.passed("SSO RBAC: enabled")

    return CheckDefinition(
        name=f"ConfigMap '{namespace}/{name}' unavailable", evaluate=evaluate, on_error=CheckStatus.WARNING,
    )


def service_account_irsa(
    namespace: str,
    name: str,
    display: str | None = None,
    missing_status: CheckStatus = CheckStatus.WARNING,
) -> CheckDefinition:
    """A service account carries an IRSA role annotation."""
    display = display or name

    def evaluate(accessor: ResourceAccessor, probe: ReachabilityProbe) -> CheckOutcome:
        try:
            account = accessor.get(SERVICE_ACCOUNTS.at(namespace=namespace, name=name))
        except ResourceNotFound:
            return CheckOutcome(missing_status, f"{display} not found")
        if not account.annotations:
            return CheckOutcome.warning(f"{display} has no annotations")
        if account.annotations.get(IRSA_ROLE_ANNOTATION):
            return CheckOutcome.passed(f"{display} has IRSA", account.annotations[IRSA_ROLE_ANNOTATION])
        return CheckOutcome.warning(f"{display} missing IRSA annotation")

    return CheckDefinition(name=f"{display} not found", evaluate=evaluate, on_error=missing_status)


# ---------------------------------------------------------------------------
# Ingress
# ---------------------------------------------------------------------------


def _ingress_host(ingresses: list[ResourceRecord], preferred: str | None) -> str | None:
    ordered = sorted(ingresses, key=lambda ingress: ingress.name != preferred) if preferred else ingresses
    for ingress in ordered:
        host = ingress.string_field("spec.rules.0.host")
        if host:
            return host
    return None


def ingress_reachable(namespace: str, display: str, ingress_name: str | None = None) -> CheckDefinition:
    """Find the component's ingress host and probe it over HTTPS.

    An unreachable host is a warning: DNS propagation and the edge network
    are outside the platform's direct control.
    """
    no_ingress = f"{display}: no ingress found"

    def evaluate(accessor: ResourceAccessor, probe: ReachabilityProbe) -> list[CheckOutcome]:
        ingresses = accessor.list(INGRESSES.at(namespace=namespace))
        if not ingresses:
            return [CheckOutcome.warning(no_ingress)]
        host = _ingress_host(ingresses, ingress_name)
        if not host:
            return [CheckOutcome.warning(f"{display}: no host configured")]

        outcomes = [CheckOutcome.passed(f"{display} ingress: {host}")]
        result = probe.probe(host)
        if result.reachable:
            outcomes.append(CheckOutcome.passed(f"{display}: reachable (HTTP {result.status_code})"))
        else:
            outcomes.append(CheckOutcome.warning(f"{display}: not reachable (DNS/network)", result.reason))
        return outcomes

    return CheckDefinition(name=no_ingress, evaluate=evaluate, on_error=CheckStatus.WARNING)
