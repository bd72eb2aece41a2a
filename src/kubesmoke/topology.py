"""Expected shape of the audited developer platform.

Everything here is data: which namespaces, selectors, CRDs, secrets and
service accounts should exist. Changing the audited platform means editing
these tables, not the engine.
"""

from __future__ import annotations

from dataclasses import replace

from .checks import (
    all_deployments_ready,
    cluster_connectivity,
    configmap_contains,
    crd_exists,
    custom_resource_exists,
    custom_resource_phases,
    custom_resource_summary,
    custom_resources_ready,
    deployment_ready,
    field_equals,
    field_present,
    first_deployment_ready,
    ingress_reachable,
    metrics_api_available,
    namespace_exists,
    node_readiness,
    pods_running,
    secret_exists,
    secret_field_configured,
    secret_field_matches,
    secret_name_present,
    service_account_irsa,
    sso_rbac_mode,
    statefulset_ready,
)
from .models import CheckDefinition, CheckGroup, CheckStatus, ResourceKind
from .resource_accessor import SECRETS

# ---------------------------------------------------------------------------
# Custom resource kinds
# ---------------------------------------------------------------------------
CLUSTER_SECRET_STORES = ResourceKind("external-secrets.io", "v1", "clustersecretstores", namespaced=False)
EXTERNAL_SECRETS = ResourceKind("external-secrets.io", "v1", "externalsecrets")
KYVERNO_CLUSTER_POLICIES = ResourceKind("kyverno.io", "v1", "clusterpolicies", namespaced=False)
ARGO_APPLICATIONS = ResourceKind("argoproj.io", "v1alpha1", "applications")
EVENT_BUSES = ResourceKind("argoproj.io", "v1alpha1", "eventbus")
EVENT_SOURCES = ResourceKind("argoproj.io", "v1alpha1", "eventsources")
SENSORS = ResourceKind("argoproj.io", "v1alpha1", "sensors")
ROLLOUTS = ResourceKind("argoproj.io", "v1alpha1", "rollouts")
ANALYSIS_TEMPLATES = ResourceKind("argoproj.io", "v1alpha1", "analysistemplates")

EXTERNAL_SECRETS_VERSIONS = ("v1", "v1beta1")
ARGO_VERSIONS = ("v1alpha1",)

# ---------------------------------------------------------------------------
# Inventory tables
# ---------------------------------------------------------------------------
REQUIRED_CRDS: list[tuple[str, str]] = [
    ("applications.argoproj.io", "ArgoCD Applications"),
    ("workflows.argoproj.io", "Argo Workflows"),
    ("eventsources.argoproj.io", "Argo Events EventSources"),
    ("sensors.argoproj.io", "Argo Events Sensors"),
    ("eventbus.argoproj.io", "Argo Events EventBus"),
    ("rollouts.argoproj.io", "Argo Rollouts"),
    ("analysistemplates.argoproj.io", "Argo Rollouts AnalysisTemplates"),
    ("externalsecrets.external-secrets.io", "External Secrets"),
    ("certificates.cert-manager.io", "Cert Manager"),
    ("clusterpolicies.kyverno.io", "Kyverno Policies"),
]

# (namespace, label selector, display name)
RELEASE_COMPONENTS: list[tuple[str, str, str]] = [
    ("argocd", "app.kubernetes.io/name=argocd-server", "ArgoCD Server"),
    ("argo", "app.kubernetes.io/name=argo-workflows-server", "Argo Workflows Server"),
    ("argo-events", "app.kubernetes.io/name=argo-events-controller-manager", "Argo Events Controller"),
    ("argo-rollouts", "app.kubernetes.io/name=argo-rollouts", "Argo Rollouts Controller"),
    ("external-secrets", "app.kubernetes.io/name=external-secrets", "External Secrets"),
    ("cert-manager", "app.kubernetes.io/name=cert-manager", "Cert Manager"),
    ("kyverno", "app.kubernetes.io/part-of=kyverno", "Kyverno"),
    ("aws-load-balancer", "app.kubernetes.io/name=aws-load-balancer-controller", "AWS LB Controller"),
    ("external-dns", "app.kubernetes.io/name=external-dns", "External DNS"),
    ("reloader", "app.kubernetes.io/name=reloader", "Reloader"),
]

ARGOCD_DEPLOYMENTS = ["argocd-server", "argocd-repo-server", "argocd-dex-server", "argocd-redis"]

ALLOY_COMPONENTS: list[tuple[str, str]] = [
    ("app.kubernetes.io/name=alloy-logs", "Alloy Logs"),
    ("app.kubernetes.io/name=alloy-metrics", "Alloy Metrics"),
    ("app.kubernetes.io/name=alloy-singleton", "Alloy Singleton"),
]

WORKFLOWS_SSO_SECRET = "argo-workflows-sso"
SSO_CLIENT_SECRET_KEY = "client-secret"


def in_section(section: str, *checks: CheckDefinition) -> list[CheckDefinition]:
    """Tag checks with a report sub-heading."""
    return [replace(check, section=section) for check in checks]


# ---------------------------------------------------------------------------
# Groups
# ---------------------------------------------------------------------------


def cluster_health() -> CheckGroup:
    return CheckGroup("EKS CLUSTER HEALTH", (
        *in_section("Cluster Connectivity", cluster_connectivity()),
        *in_section("Node Health", node_readiness()),
        *in_section(
            "System Pods",
            pods_running("kube-system", "k8s-app=kube-dns", "CoreDNS"),
            pods_running("kube-system", "k8s-app=kube-proxy", "kube-proxy"),
        ),
        *in_section(
            "Karpenter",
            pods_running("kube-system", "app.kubernetes.io/name=karpenter", "Karpenter controller"),
            crd_exists("nodepools.karpenter.sh", "NodePool CRD"),
            crd_exists("ec2nodeclasses.karpenter.k8s.aws", "EC2NodeClass CRD"),
        ),
    ))


def helm_releases() -> CheckGroup:
    return CheckGroup("HELM RELEASES & CRDs", (
        *in_section("CRDs Installed", *(crd_exists(name, display) for name, display in REQUIRED_CRDS)),
        *in_section(
            "Namespace Deployments",
            *(pods_running(namespace, selector, display) for namespace, selector, display in RELEASE_COMPONENTS),
        ),
    ))


def security() -> CheckGroup:
    return CheckGroup("SECURITY CONFIGURATION", (
        *in_section(
            "Secrets Management",
            custom_resource_exists(
                CLUSTER_SECRET_STORES, "aws-secrets-manager", EXTERNAL_SECRETS_VERSIONS,
                "ClusterSecretStore 'aws-secrets-manager'",
            ),
            custom_resources_ready(EXTERNAL_SECRETS, EXTERNAL_SECRETS_VERSIONS, "ExternalSecrets synced"),
        ),
        *in_section(
            "Kyverno Policies",
            custom_resource_summary(
                KYVERNO_CLUSTER_POLICIES, ("v1",), "Kyverno policies", error_label="Could not list Kyverno policies",
            ),
        ),
        *in_section(
            "TLS/Certificates",
            pods_running("cert-manager", "app.kubernetes.io/name=cert-manager", "Cert Manager"),
        ),
    ))


def backstage() -> CheckGroup:
    return CheckGroup("BACKSTAGE", (
        *in_section(
            "Deployment Status",
            namespace_exists("backstage"),
            first_deployment_ready("backstage", "Backstage"),
        ),
        *in_section(
            "Database",
            secret_name_present("backstage", ("db", "database", "postgres"), "Database credentials secret"),
        ),
        *in_section("Ingress & Connectivity", ingress_reachable("backstage", "Backstage", "backstage")),
    ))


def argocd() -> CheckGroup:
    return CheckGroup("ARGOCD", (
        *in_section(
            "Deployment Status",
            namespace_exists("argocd"),
            *(deployment_ready("argocd", name) for name in ARGOCD_DEPLOYMENTS),
            statefulset_ready("argocd", "argocd-application-controller"),
        ),
        *in_section(
            "SSO Configuration",
            configmap_contains(
                "argocd", "argocd-cm", "dex.config", "github",
                "GitHub SSO configured in Dex", "GitHub SSO not configured",
            ),
            secret_field_configured(
                "argocd", WORKFLOWS_SSO_SECRET, SSO_CLIENT_SECRET_KEY, "SSO secret",
                pod_selector="app.kubernetes.io/name=argocd-dex-server", consumer="Dex",
            ),
        ),
        *in_section("Ingress & Health", ingress_reachable("argocd", "ArgoCD", "argocd-server")),
        *in_section(
            "Applications",
            custom_resource_summary(
                ARGO_APPLICATIONS, ARGO_VERSIONS, "Applications", namespace="argocd",
                healthy=field_equals("status.health.status", "Healthy"),
            ),
        ),
    ))


def argo_workflows() -> CheckGroup:
    controller_config = "argo-workflows-workflow-controller-configmap"
    return CheckGroup("ARGO WORKFLOWS", (
        *in_section(
            "Deployment Status",
            namespace_exists("argo"),
            deployment_ready("argo", "argo-workflows-server"),
            deployment_ready("argo", "argo-workflows-workflow-controller"),
        ),
        *in_section(
            "SSO Configuration",
            configmap_contains("argo", controller_config, "config", "issuer", "SSO configured", "SSO not configured"),
            sso_rbac_mode("argo", controller_config),
            secret_field_matches(
                SECRETS.at(namespace="argo", name=WORKFLOWS_SSO_SECRET),
                SECRETS.at(namespace="argocd", name=WORKFLOWS_SSO_SECRET),
                SSO_CLIENT_SECRET_KEY,
                "SSO secrets",
            ),
        ),
        *in_section(
            "Database",
            secret_exists("argo", "argo-workflows-db-credentials", "Database credentials secret"),
        ),
        *in_section(
            "Ingress & Connectivity",
            ingress_reachable("argo", "Argo Workflows", "argo-workflows-server"),
        ),
    ))


def argo_events() -> CheckGroup:
    return CheckGroup("ARGO EVENTS", (
        *in_section("Deployment Status", namespace_exists("argo-events"), all_deployments_ready("argo-events")),
        *in_section(
            "Event Bus",
            custom_resource_phases(EVENT_BUSES, "argo-events", ARGO_VERSIONS, "Running", "EventBus"),
        ),
        *in_section(
            "Event Sources",
            custom_resource_summary(
                EVENT_SOURCES, ARGO_VERSIONS, "EventSources",
                healthy=field_present("status"), healthy_label="with status",
            ),
        ),
        *in_section(
            "Sensors",
            custom_resource_summary(
                SENSORS, ARGO_VERSIONS, "Sensors", healthy=field_present("status"), healthy_label="with status",
            ),
        ),
        *in_section(
            "Service Account",
            service_account_irsa(
                "argo-events", "argo-events-controller",
                display="Controller service account", missing_status=CheckStatus.FAIL,
            ),
        ),
    ))


def argo_rollouts() -> CheckGroup:
    return CheckGroup("ARGO ROLLOUTS", (
        *in_section("Deployment Status", namespace_exists("argo-rollouts"), all_deployments_ready("argo-rollouts")),
        *in_section(
            "Rollouts",
            custom_resource_summary(
                ROLLOUTS, ARGO_VERSIONS, "Rollouts", healthy=field_equals("status.phase", "Healthy"),
            ),
        ),
        *in_section(
            "Analysis Templates",
            custom_resource_summary(ANALYSIS_TEMPLATES, ARGO_VERSIONS, "AnalysisTemplates"),
        ),
        *in_section(
            "Service Accounts",
            service_account_irsa("argo-rollouts", "argo-rollouts-controller"),
            service_account_irsa("argo-rollouts", "argo-rollouts-dashboard"),
        ),
        *in_section(
            "Ingress & Connectivity",
            ingress_reachable("argo-rollouts", "Argo Rollouts Dashboard", "argo-rollouts-dashboard"),
        ),
    ))


def observability() -> CheckGroup:
    return CheckGroup("OBSERVABILITY", (
        *in_section(
            "Grafana k8s-monitoring Stack",
            *(pods_running("monitoring", selector, display, required=False) for selector, display in ALLOY_COMPONENTS),
            pods_running("monitoring", "app.kubernetes.io/name=beyla", "Beyla (eBPF)", required=False),
        ),
        *in_section(
            "Metrics Server",
            pods_running("kube-system", "app.kubernetes.io/name=metrics-server", "Metrics Server"),
            metrics_api_available("metrics.k8s.io/v1beta1"),
        ),
    ))


def build_platform_groups() -> list[CheckGroup]:
    """All check groups of the platform audit, in run order."""
    return [
        cluster_health(),
        helm_releases(),
        security(),
        backstage(),
        argocd(),
        argo_workflows(),
        argo_events(),
        argo_rollouts(),
        observability(),
    ]
