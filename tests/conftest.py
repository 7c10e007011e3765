"""Shared fixtures for admission tests."""

import threading

import pytest

from admission.models import HostedResource
from admission.registry import InfraClientEntry, InfraClientRegistry, VersionPair
from lib.constants import LOCAL_INFRA_KEY
from lib.utils import parse_semver


class FakeInfraClient:
    """Stands in for InfraClusterClient with fixed versions."""

    def __init__(self, kubevirt_version="1.0.0", kubernetes_version="v1.27.0", error=None):
        self.kubevirt_version = kubevirt_version
        self.kubernetes_version = kubernetes_version
        self.error = error
        self.closed = False

    def get_kubevirt_version(self, timeout=None):
        if self.error:
            raise self.error
        return self.kubevirt_version

    def get_kubernetes_version(self, timeout=None):
        return self.kubernetes_version

    def close(self):
        self.closed = True


class CountingFactory:
    """Client factory recording every construction."""

    def __init__(self, client=None, delay=0.0, error=None):
        self.client = client or FakeInfraClient()
        self.delay = delay
        self.error = error
        self.calls = []
        self._lock = threading.Lock()
        self.release = threading.Event()
        if not delay:
            self.release.set()

    def __call__(self, namespace, kubevirt_spec, timeout=None):
        with self._lock:
            self.calls.append((namespace, kubevirt_spec, timeout))
        if self.delay:
            self.release.wait(self.delay)
        if self.error:
            raise self.error
        return self.client


def hosted_cluster_dict(
    platform=None,
    annotations=None,
    name="cluster-under-test",
    namespace="myns",
    kind="HostedCluster",
):
    if platform is None:
        platform = {"type": "KubeVirt", "kubevirt": {}}
    obj = {
        "apiVersion": "hypershift.openshift.io/v1beta1",
        "kind": kind,
        "metadata": {"name": name, "namespace": namespace},
        "spec": {"platform": platform},
    }
    if annotations is not None:
        obj["metadata"]["annotations"] = annotations
    if kind == "NodePool":
        obj["spec"]["clusterName"] = "example"
    return obj


def external_platform(secret_name="infra-kubeconfig", key=None):
    secret = {"name": secret_name}
    if key:
        secret["key"] = key
    return {
        "type": "KubeVirt",
        "kubevirt": {
            "credentials": {
                "infraKubeConfigSecret": secret,
                "infraNamespace": "infra-ns",
            }
        },
    }


def seeded_registry(kubevirt_version, kubernetes_version, key=LOCAL_INFRA_KEY):
    """Registry with one pre-resolved entry, like a mock infra client map."""
    entry = InfraClientEntry(
        key=key,
        client=FakeInfraClient(kubevirt_version, kubernetes_version),
        versions=VersionPair(parse_semver(kubevirt_version), parse_semver(kubernetes_version)),
    )
    return InfraClientRegistry.seeded([entry])


@pytest.fixture
def make_resource():
    """Build a HostedResource from keyword overrides."""

    def _make(**kwargs):
        return HostedResource.from_dict(hosted_cluster_dict(**kwargs))

    return _make
