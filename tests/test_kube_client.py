"""Unit tests for lib/kube_client.py.

Kubernetes API classes are mocked; no cluster is contacted.
"""

import base64
from unittest.mock import MagicMock, patch

import pytest
from kubernetes.client.rest import ApiException
from kubernetes.config import ConfigException
from urllib3.exceptions import ReadTimeoutError

from admission.models import KubevirtCredentials, KubevirtPlatformSpec, SecretKeyRef
from lib.exceptions import ClusterUnreachableError, ValidationError
from lib.kube_client import InfraClusterClient, KubeClient, ManagementInfraClientFactory

INFRA_KUBECONFIG = """
apiVersion: v1
kind: Config
clusters:
- name: infra
  cluster:
    server: https://infra.example.com:6443
contexts:
- name: infra
  context:
    cluster: infra
    user: infra
current-context: infra
users:
- name: infra
  user:
    token: abc
"""


@pytest.fixture
def infra_apis():
    """Mock the API classes InfraClusterClient builds on."""
    with patch("lib.kube_client.client.CustomObjectsApi") as mock_custom_cls, patch(
        "lib.kube_client.client.VersionApi"
    ) as mock_version_cls:
        yield {
            "custom_api": mock_custom_cls.return_value,
            "version_api": mock_version_cls.return_value,
        }


@pytest.fixture
def infra_client(infra_apis):
    return InfraClusterClient(MagicMock(), name="test infra")


@pytest.fixture
def mock_management_apis():
    with patch("lib.kube_client.config.load_kube_config") as mock_load, patch(
        "lib.kube_client.config.load_incluster_config"
    ) as mock_incluster, patch("lib.kube_client.client.ApiClient") as mock_api_client_cls, patch(
        "lib.kube_client.client.CoreV1Api"
    ) as mock_core_cls, patch("lib.kube_client.client.CustomObjectsApi") as mock_custom_cls:
        yield {
            "load_kube_config": mock_load,
            "load_incluster_config": mock_incluster,
            "api_client": mock_api_client_cls.return_value,
            "core_api": mock_core_cls.return_value,
            "custom_api": mock_custom_cls.return_value,
        }


@pytest.fixture
def management(mock_management_apis):
    return KubeClient(context="mgmt")


@pytest.mark.unit
class TestInfraClusterClient:
    def test_get_kubevirt_version(self, infra_client, infra_apis):
        infra_apis["custom_api"].list_cluster_custom_object.return_value = {
            "items": [{"metadata": {"name": "kubevirt"}, "status": {"observedKubeVirtVersion": "v1.0.0"}}]
        }

        assert infra_client.get_kubevirt_version(timeout=3) == "v1.0.0"
        infra_apis["custom_api"].list_cluster_custom_object.assert_called_once_with(
            group="kubevirt.io",
            version="v1",
            plural="kubevirts",
            _request_timeout=3,
        )

    def test_kubevirt_not_installed(self, infra_client, infra_apis):
        infra_apis["custom_api"].list_cluster_custom_object.return_value = {"items": []}

        with pytest.raises(ClusterUnreachableError, match="no KubeVirt installation"):
            infra_client.get_kubevirt_version()

    def test_kubevirt_version_not_reported_yet(self, infra_client, infra_apis):
        infra_apis["custom_api"].list_cluster_custom_object.return_value = {"items": [{"status": {}}]}

        assert infra_client.get_kubevirt_version() == ""

    def test_get_kubernetes_version(self, infra_client, infra_apis):
        infra_apis["version_api"].get_code.return_value = MagicMock(git_version="v1.27.3+4eadeb2")

        assert infra_client.get_kubernetes_version(timeout=2) == "v1.27.3+4eadeb2"
        infra_apis["version_api"].get_code.assert_called_once_with(_request_timeout=2)

    def test_no_timeout_kwarg_when_unbounded(self, infra_client, infra_apis):
        infra_apis["version_api"].get_code.return_value = MagicMock(git_version="v1.27.0")

        infra_client.get_kubernetes_version()

        infra_apis["version_api"].get_code.assert_called_once_with()

    @pytest.mark.parametrize("status", [401, 403, 500, 503])
    def test_api_errors_are_unreachable(self, infra_client, infra_apis, status):
        infra_apis["version_api"].get_code.side_effect = ApiException(status=status)

        with pytest.raises(ClusterUnreachableError) as exc_info:
            infra_client.get_kubernetes_version()

        assert f"status={status}" in str(exc_info.value)
        assert exc_info.value.timed_out is False

    def test_read_timeout(self, infra_client, infra_apis):
        infra_apis["custom_api"].list_cluster_custom_object.side_effect = ReadTimeoutError(None, "/apis", "read timed out")

        with pytest.raises(ClusterUnreachableError) as exc_info:
            infra_client.get_kubevirt_version(timeout=1)

        assert exc_info.value.timed_out is True

    def test_from_kubeconfig_dict_invalid(self):
        with patch("lib.kube_client.config.new_client_from_config_dict", side_effect=ConfigException("bad")):
            with pytest.raises(ClusterUnreachableError, match="invalid kubeconfig"):
                InfraClusterClient.from_kubeconfig_dict({})

    def test_close_owned_client(self, infra_apis):
        api_client = MagicMock()

        InfraClusterClient(api_client).close()

        api_client.close.assert_called_once()

    def test_close_shared_client(self, infra_apis):
        api_client = MagicMock()

        InfraClusterClient(api_client, owns_api_client=False).close()

        api_client.close.assert_not_called()


@pytest.mark.unit
class TestKubeClient:
    def test_loads_context(self, management, mock_management_apis):
        kwargs = mock_management_apis["load_kube_config"].call_args.kwargs
        assert kwargs["context"] == "mgmt"
        mock_management_apis["load_incluster_config"].assert_not_called()

    def test_in_cluster(self, mock_management_apis):
        KubeClient(in_cluster=True)

        mock_management_apis["load_incluster_config"].assert_called_once()
        mock_management_apis["load_kube_config"].assert_not_called()

    def test_config_failure(self, mock_management_apis):
        mock_management_apis["load_kube_config"].side_effect = ConfigException("no kubeconfig")

        with pytest.raises(ClusterUnreachableError):
            KubeClient(context="missing")

    def test_get_secret_value(self, management, mock_management_apis):
        secret = MagicMock()
        secret.data = {"kubeconfig": base64.b64encode(b"payload").decode()}
        mock_management_apis["core_api"].read_namespaced_secret.return_value = secret

        assert management.get_secret_value("clusters", "infra-kc", "kubeconfig", timeout=4) == b"payload"
        mock_management_apis["core_api"].read_namespaced_secret.assert_called_once_with(
            name="infra-kc", namespace="clusters", _request_timeout=4
        )

    def test_get_secret_missing_key(self, management, mock_management_apis):
        secret = MagicMock()
        secret.data = {"other": "eA=="}
        mock_management_apis["core_api"].read_namespaced_secret.return_value = secret

        with pytest.raises(ClusterUnreachableError, match="has no key"):
            management.get_secret_value("clusters", "infra-kc", "kubeconfig")

    def test_get_secret_not_found(self, management, mock_management_apis):
        mock_management_apis["core_api"].read_namespaced_secret.side_effect = ApiException(status=404, reason="Not Found")

        with pytest.raises(ClusterUnreachableError, match="status=404"):
            management.get_secret_value("clusters", "infra-kc", "kubeconfig")

    def test_get_hosted_cluster(self, management, mock_management_apis):
        hosted_cluster = {"kind": "HostedCluster", "metadata": {"name": "example", "namespace": "clusters"}}
        mock_management_apis["custom_api"].get_namespaced_custom_object.return_value = hosted_cluster

        assert management.get_hosted_cluster("clusters", "example", timeout=2) == hosted_cluster
        mock_management_apis["custom_api"].get_namespaced_custom_object.assert_called_once_with(
            group="hypershift.openshift.io",
            version="v1beta1",
            namespace="clusters",
            plural="hostedclusters",
            name="example",
            _request_timeout=2,
        )

    def test_get_hosted_cluster_not_found(self, management, mock_management_apis):
        mock_management_apis["custom_api"].get_namespaced_custom_object.side_effect = ApiException(
            status=404, reason="Not Found"
        )

        with pytest.raises(ClusterUnreachableError, match="HostedCluster clusters/example"):
            management.get_hosted_cluster("clusters", "example")

    def test_get_secret_invalid_name(self, management):
        with pytest.raises(ValidationError):
            management.get_secret_value("clusters", "Bad_Name", "kubeconfig")


@pytest.mark.unit
class TestManagementInfraClientFactory:
    def _external_spec(self):
        return KubevirtPlatformSpec(
            credentials=KubevirtCredentials(
                infra_kubeconfig_secret=SecretKeyRef(name="infra-kc"),
                infra_namespace="infra-ns",
            )
        )

    def test_local_infra(self, management, infra_apis):
        infra = ManagementInfraClientFactory(management)("clusters", KubevirtPlatformSpec())

        assert infra.api_client is management.api_client
        assert infra._owns_api_client is False

    def test_external_infra(self, management):
        management.get_secret_value = MagicMock(return_value=INFRA_KUBECONFIG.encode())

        with patch("lib.kube_client.InfraClusterClient.from_kubeconfig_dict") as mock_from_dict:
            ManagementInfraClientFactory(management)("clusters", self._external_spec(), 5)

        management.get_secret_value.assert_called_once_with("clusters", "infra-kc", "kubeconfig", timeout=5)
        kubeconfig = mock_from_dict.call_args.args[0]
        assert kubeconfig["current-context"] == "infra"

    @pytest.mark.parametrize("payload", [b"clusters: [", b"just a string"])
    def test_unusable_kubeconfig(self, management, payload):
        management.get_secret_value = MagicMock(return_value=payload)

        with pytest.raises(ClusterUnreachableError):
            ManagementInfraClientFactory(management)("clusters", self._external_spec())
