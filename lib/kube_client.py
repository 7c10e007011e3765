"""
Kubernetes client wrappers for the management and infrastructure clusters.

KubeClient talks to the management cluster (where HostedClusters live and
where infra kubeconfig secrets are stored). InfraClusterClient talks to a
KubeVirt infrastructure cluster and only knows how to discover the versions
the admission gate needs. Every failure reaching a cluster is translated into
ClusterUnreachableError at this boundary.
"""

import base64
import logging
from typing import Any, Dict, Optional

import yaml
from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.config import ConfigException
from urllib3.exceptions import HTTPError
from urllib3.exceptions import TimeoutError as Urllib3TimeoutError

from lib.constants import (
    HOSTED_CLUSTER_PLURAL,
    HYPERSHIFT_API_GROUP,
    HYPERSHIFT_API_VERSION,
    KUBEVIRT_GROUP,
    KUBEVIRT_OBSERVED_VERSION_FIELD,
    KUBEVIRT_PLURAL,
    KUBEVIRT_VERSION,
    LOGGER_NAME,
)
from lib.exceptions import ClusterUnreachableError
from lib.validation import InputValidator

logger = logging.getLogger(LOGGER_NAME)


def is_timeout_error(exception: BaseException) -> bool:
    """Check if exception is a client-side timeout."""
    return isinstance(exception, (Urllib3TimeoutError, TimeoutError))


def to_cluster_unreachable(action: str, exception: BaseException, cluster: str) -> ClusterUnreachableError:
    """Translate a client exception into ClusterUnreachableError."""
    if isinstance(exception, ApiException):
        message = f"{cluster}: failed {action}: status={exception.status} reason={exception.reason}"
    else:
        message = f"{cluster}: failed {action}: {exception}"
    logger.error("%s", message)
    return ClusterUnreachableError(message, timed_out=is_timeout_error(exception))


def _request_kwargs(timeout: Optional[float]) -> Dict[str, Any]:
    if timeout is None:
        return {}
    return {"_request_timeout": timeout}


class InfraClusterClient:
    """Client for a KubeVirt infrastructure cluster."""

    def __init__(self, api_client: client.ApiClient, name: str = "infra cluster", owns_api_client: bool = True) -> None:
        """
        Args:
            api_client: Configured ApiClient for the infrastructure cluster
            name: Human readable label used in log and error messages
            owns_api_client: Whether close() should close the ApiClient
        """
        self.name = name
        self.api_client = api_client
        self.custom_api = client.CustomObjectsApi(api_client)
        self.version_api = client.VersionApi(api_client)
        self._owns_api_client = owns_api_client

    @classmethod
    def from_kubeconfig_dict(cls, kubeconfig: Dict[str, Any], name: str = "infra cluster") -> "InfraClusterClient":
        """Build a client from a parsed kubeconfig document."""
        try:
            api_client = config.new_client_from_config_dict(kubeconfig)
        except (ConfigException, KeyError, TypeError, ValueError) as e:
            raise ClusterUnreachableError(f"{name}: invalid kubeconfig: {e}") from e
        return cls(api_client, name=name)

    def get_kubevirt_version(self, timeout: Optional[float] = None) -> str:
        """Return status.observedKubeVirtVersion of the installed KubeVirt CR.

        Raises:
            ClusterUnreachableError: If the API call fails or KubeVirt is not installed
        """
        try:
            result = self.custom_api.list_cluster_custom_object(
                group=KUBEVIRT_GROUP,
                version=KUBEVIRT_VERSION,
                plural=KUBEVIRT_PLURAL,
                **_request_kwargs(timeout),
            )
        except (ApiException, HTTPError) as e:
            raise to_cluster_unreachable("listing KubeVirt installations", e, self.name) from e

        items = result.get("items", []) if isinstance(result, dict) else []
        if not items:
            raise ClusterUnreachableError(f"{self.name}: no KubeVirt installation found")

        version = (items[0].get("status") or {}).get(KUBEVIRT_OBSERVED_VERSION_FIELD) or ""
        logger.debug("%s: KubeVirt version %s", self.name, version or "<empty>")
        return version

    def get_kubernetes_version(self, timeout: Optional[float] = None) -> str:
        """Return the API server gitVersion (e.g. "v1.27.3+4eadeb2").

        Raises:
            ClusterUnreachableError: If the API call fails
        """
        try:
            info = self.version_api.get_code(**_request_kwargs(timeout))
        except (ApiException, HTTPError) as e:
            raise to_cluster_unreachable("reading server version", e, self.name) from e

        version = info.git_version or ""
        logger.debug("%s: Kubernetes version %s", self.name, version or "<empty>")
        return version

    def close(self) -> None:
        if self._owns_api_client:
            self.api_client.close()


class KubeClient:
    """Wrapper for the management cluster API client."""

    def __init__(
        self,
        context: Optional[str] = None,
        in_cluster: bool = False,
        request_timeout: int = 30,
    ) -> None:
        """
        Initialize Kubernetes client for the management cluster.

        Args:
            context: Kubernetes context name (ignored when in_cluster is True)
            in_cluster: Use the pod's service account instead of a kubeconfig
            request_timeout: Default API request timeout in seconds
        """
        self.context = context
        self.request_timeout = request_timeout

        # Per-instance configuration to avoid affecting other clients
        configuration = client.Configuration()
        try:
            if in_cluster:
                config.load_incluster_config(client_configuration=configuration)
            else:
                config.load_kube_config(context=context, client_configuration=configuration)
        except (ConfigException, OSError) as e:
            raise ClusterUnreachableError(f"management cluster: cannot load configuration: {e}") from e

        self.api_client = client.ApiClient(configuration)
        self.core_v1 = client.CoreV1Api(self.api_client)
        self.custom_api = client.CustomObjectsApi(self.api_client)

        logger.info(
            "Initialized management cluster client for %s (timeout: %ss)",
            "in-cluster config" if in_cluster else f"context {context or 'default'}",
            request_timeout,
        )

    def get_secret_value(self, namespace: str, name: str, key: str, timeout: Optional[float] = None) -> bytes:
        """Read and decode one key of a Secret.

        Args:
            namespace: Namespace name
            name: Secret name
            key: Key in the secret's data map
            timeout: Request timeout in seconds, defaults to request_timeout

        Returns:
            Decoded secret value

        Raises:
            ValidationError: If namespace, name or key is invalid
            ClusterUnreachableError: If the secret cannot be read or lacks the key
        """
        InputValidator.validate_kubernetes_namespace(namespace)
        InputValidator.validate_kubernetes_name(name, "secret")
        InputValidator.validate_secret_key(key)

        try:
            secret = self.core_v1.read_namespaced_secret(
                name=name,
                namespace=namespace,
                _request_timeout=timeout if timeout is not None else self.request_timeout,
            )
        except (ApiException, HTTPError) as e:
            raise to_cluster_unreachable(f"reading secret {namespace}/{name}", e, "management cluster") from e

        data = secret.data or {}
        if key not in data:
            raise ClusterUnreachableError(f"secret {namespace}/{name} has no key {key!r}")
        return base64.b64decode(data[key])

    def get_hosted_cluster(self, namespace: str, name: str, timeout: Optional[float] = None) -> Dict[str, Any]:
        """Read a HostedCluster from the management cluster.

        Raises:
            ValidationError: If namespace or name is invalid
            ClusterUnreachableError: If the HostedCluster cannot be read
        """
        InputValidator.validate_kubernetes_namespace(namespace)
        InputValidator.validate_kubernetes_name(name, "HostedCluster")

        try:
            return self.custom_api.get_namespaced_custom_object(
                group=HYPERSHIFT_API_GROUP,
                version=HYPERSHIFT_API_VERSION,
                namespace=namespace,
                plural=HOSTED_CLUSTER_PLURAL,
                name=name,
                _request_timeout=timeout if timeout is not None else self.request_timeout,
            )
        except (ApiException, HTTPError) as e:
            raise to_cluster_unreachable(f"reading HostedCluster {namespace}/{name}", e, "management cluster") from e

    def local_infra_client(self) -> InfraClusterClient:
        """Infra client for the management cluster acting as its own infrastructure."""
        return InfraClusterClient(self.api_client, name="management cluster", owns_api_client=False)


class ManagementInfraClientFactory:
    """Builds infrastructure cluster clients from a resource's KubeVirt credentials.

    Without credentials the management cluster hosts the KubeVirt VMs itself.
    With credentials the referenced secret (in the resource's namespace) holds
    a kubeconfig for the external infrastructure cluster.
    """

    def __init__(self, management: KubeClient) -> None:
        self.management = management

    def __call__(self, namespace: str, kubevirt_spec: Any, timeout: Optional[float] = None) -> InfraClusterClient:
        credentials = getattr(kubevirt_spec, "credentials", None)
        if credentials is None:
            return self.management.local_infra_client()

        secret_ref = credentials.infra_kubeconfig_secret
        raw = self.management.get_secret_value(namespace, secret_ref.name, secret_ref.key, timeout=timeout)
        try:
            kubeconfig = yaml.safe_load(raw)
        except yaml.YAMLError as e:
            raise ClusterUnreachableError(f"secret {namespace}/{secret_ref.name}: kubeconfig is not valid YAML: {e}") from e
        if not isinstance(kubeconfig, dict):
            raise ClusterUnreachableError(f"secret {namespace}/{secret_ref.name}: kubeconfig is not a mapping")

        return InfraClusterClient.from_kubeconfig_dict(
            kubeconfig,
            name=f"infra cluster {namespace}/{secret_ref.name}",
        )
