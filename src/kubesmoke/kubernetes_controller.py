"""Kubernetes API controller for kubesmoke.

Loads cluster configuration (explicit kubeconfig context, in-cluster, or the
default context), builds the API objects over one shared client, and maps
client errors onto the package's error taxonomy.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any

import kubernetes
import kubernetes.client
import kubernetes.config
from kubernetes.client.exceptions import ApiException

from .models import DEFAULT_API_TIMEOUT_SECONDS


class KubernetesControllerException(Exception):
    """Base exception for KubernetesController errors."""


class ResourceNotFound(KubernetesControllerException):
    """The targeted resource, namespace or custom-resource kind does not exist."""


class TransportError(KubernetesControllerException):
    """An API call failed below the resource-existence level (auth, network, serialisation)."""


class KubernetesController:
    """Thin wrapper around the Kubernetes Python client.

    Handles configuration loading (in-cluster or kubeconfig) and exposes the
    API objects used by :class:`~kubesmoke.resource_accessor.ResourceAccessor`.
    Client-side retries are disabled; every call carries ``request_timeout``.

    Args:
        context: Kubeconfig context name to use directly for cluster connection.
        insecure: When ``True``, disable SSL certificate verification.
        request_timeout: Timeout in seconds applied to every API request.
    """

    def __init__(
        self,
        context: str | None = None,
        insecure: bool = False,
        request_timeout: int = DEFAULT_API_TIMEOUT_SECONDS,
    ) -> None:
        self.logger = logging.getLogger(__name__)

        # Reduce noise from kubernetes client REST logging (only set once)
        k8s_rest_logger = logging.getLogger("kubernetes.client.rest")
        if not k8s_rest_logger.level or k8s_rest_logger.level == logging.NOTSET:
            k8s_rest_logger.setLevel(logging.INFO)

        self._context = context
        self._insecure = insecure
        self.request_timeout = request_timeout

        # Client and API instances
        self._api_client: kubernetes.client.ApiClient | None = None
        self._core_v1: kubernetes.client.CoreV1Api | None = None
        self._apps_v1: kubernetes.client.AppsV1Api | None = None
        self._networking_v1: kubernetes.client.NetworkingV1Api | None = None
        self._custom_objects: kubernetes.client.CustomObjectsApi | None = None
        self._version_api: kubernetes.client.VersionApi | None = None
        self._apis_api: kubernetes.client.ApisApi | None = None

        # Lock for thread-safe initialization of the client
        self._client_lock = threading.Lock()

        self._initialize_client()

    # ------------------------------------------------------------------
    # Client initialisation
    # ------------------------------------------------------------------

    def _initialize_client(self) -> None:
        """Initialise the Kubernetes client.

        Resolution logic:
            - If ``context`` is provided → load kubeconfig with that context.
            - Otherwise → try in-cluster config first, then fall back to the
              default kubeconfig context.
        """
        with self._client_lock:
            if self._api_client:
                return

            try:
                if self._context:
                    kubernetes.config.load_kube_config(context=self._context)
                    self.logger.info(f"Successfully loaded kubeconfig for context: {self._context}")
                else:
                    try:
                        kubernetes.config.load_incluster_config()
                        self.logger.info("Successfully loaded in-cluster configuration.")
                    except kubernetes.config.ConfigException:
                        self.logger.info("In-cluster config not found. Falling back to default kubeconfig context.")
                        kubernetes.config.load_kube_config()
                        self.logger.info("Successfully loaded default kubeconfig context.")

                configuration = kubernetes.client.Configuration.get_default_copy()
                if self._insecure:
                    configuration.verify_ssl = False
                    configuration.assert_hostname = False
                # One attempt per request; a one-shot audit reports errors instead of retrying
                configuration.retries = 0

                self._api_client = kubernetes.client.ApiClient(configuration)
                self._core_v1 = kubernetes.client.CoreV1Api(self._api_client)
                self._apps_v1 = kubernetes.client.AppsV1Api(self._api_client)
                self._networking_v1 = kubernetes.client.NetworkingV1Api(self._api_client)
                self._custom_objects = kubernetes.client.CustomObjectsApi(self._api_client)
                self._version_api = kubernetes.client.VersionApi(self._api_client)
                self._apis_api = kubernetes.client.ApisApi(self._api_client)

            except Exception as e:
                identifier = self._context or "in-cluster/default"
                error_msg = f"Failed to initialize Kubernetes client for {identifier}: {e}"
                self.logger.error(error_msg)
                raise KubernetesControllerException(error_msg) from e

    @property
    def context_name(self) -> str:
        """Name of the cluster context for reporting."""
        if self._context:
            return self._context
        try:
            _, active_context = kubernetes.config.list_kube_config_contexts()
            return active_context.get("name", "in-cluster")
        except (kubernetes.config.ConfigException, OSError):
            return "in-cluster"

    @property
    def api_client(self) -> kubernetes.client.ApiClient:
        return self._api_client

    @property
    def core_v1(self) -> kubernetes.client.CoreV1Api:
        return self._core_v1

    @property
    def apps_v1(self) -> kubernetes.client.AppsV1Api:
        return self._apps_v1

    @property
    def networking_v1(self) -> kubernetes.client.NetworkingV1Api:
        return self._networking_v1

    @property
    def custom_objects(self) -> kubernetes.client.CustomObjectsApi:
        return self._custom_objects

    @property
    def version_api(self) -> kubernetes.client.VersionApi:
        return self._version_api

    @property
    def apis_api(self) -> kubernetes.client.ApisApi:
        return self._apis_api

    # ------------------------------------------------------------------
    # Calls
    # ------------------------------------------------------------------

    def call(self, fn: Callable[..., Any], description: str, **kwargs: Any) -> Any:
        """Invoke an API method once and translate its failures.

        Args:
            fn: Bound API method (e.g. ``core_v1.list_namespaced_pod``).
            description: Human-readable target for error messages.
            **kwargs: Arguments forwarded to ``fn``.

        Returns:
            Whatever ``fn`` returns.

        Raises:
            ResourceNotFound: On HTTP 404.
            TransportError: On any other failure.
        """
        try:
            return fn(_request_timeout=self.request_timeout, **kwargs)
        except ApiException as e:
            if e.status == 404:
                raise ResourceNotFound(f"{description} not found") from e
            raise TransportError(f"Failed to read {description}: {e.status} {e.reason}") from e
        except Exception as e:
            raise TransportError(f"Failed to read {description}: {e}") from e
