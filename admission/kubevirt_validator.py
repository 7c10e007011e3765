"""KubeVirt platform compatibility validation."""

import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from lib.config import AdmissionConfig
from lib.constants import KIND_NODE_POOL, LOGGER_NAME
from lib.exceptions import (
    AdmissionError,
    MissingPlatformSpecError,
    UnsupportedOperatorVersionError,
    UnsupportedOrchestrationVersionError,
)
from lib.utils import Deadline, satisfies

from .models import HostedResource, KubevirtPlatform
from .registry import InfraClientRegistry

logger = logging.getLogger(LOGGER_NAME)

ValidationOutcome = Tuple[Optional[List[str]], Optional[AdmissionError]]

# (namespace, name, timeout seconds) -> deserialized HostedCluster
HostedClusterLookup = Callable[[str, str, Optional[float]], Dict[str, Any]]


class KubevirtClusterValidator:
    """Rejects KubeVirt resources whose infrastructure cluster runs unsupported versions."""

    def __init__(
        self,
        registry: InfraClientRegistry,
        config: Optional[AdmissionConfig] = None,
        hosted_cluster_lookup: Optional[HostedClusterLookup] = None,
    ) -> None:
        """
        Args:
            registry: Infrastructure client registry
            config: Version minimums, defaults to AdmissionConfig()
            hosted_cluster_lookup: Reads a NodePool's HostedCluster so the pool is
                gated against the cluster's infrastructure. Without it a NodePool
                is resolved from its own spec.platform.kubevirt.
        """
        self.registry = registry
        self.config = config or AdmissionConfig()
        self.hosted_cluster_lookup = hosted_cluster_lookup

    def validate(self, resource: HostedResource, deadline: Optional[Deadline] = None) -> ValidationOutcome:
        """Validate a resource against the KubeVirt version minimums.

        Args:
            resource: HostedCluster or NodePool
            deadline: Deadline of the enclosing admission request

        Returns:
            (warnings, error); both None when the resource is not on KubeVirt
            or its infrastructure cluster is supported
        """
        platform = resource.platform
        if not isinstance(platform, KubevirtPlatform):
            return None, None

        if platform.kubevirt is None:
            return None, MissingPlatformSpecError(resource.kind, resource.namespace, resource.name)

        deadline = deadline or Deadline(None)
        try:
            infra_owner = self._infra_owner(resource, deadline)
            entry = self.registry.resolve(infra_owner, deadline)
        except AdmissionError as e:
            return None, e

        return None, self._check_versions(resource, entry.versions)

    def _infra_owner(self, resource: HostedResource, deadline: Deadline) -> HostedResource:
        """The resource whose KubeVirt credentials identify the infrastructure cluster.

        A NodePool runs on its HostedCluster's infrastructure cluster.
        """
        if resource.kind != KIND_NODE_POOL or self.hosted_cluster_lookup is None:
            return resource

        deadline.check(f"reading HostedCluster {resource.namespace}/{resource.cluster_name}")
        hosted_cluster = HostedResource.from_dict(
            self.hosted_cluster_lookup(resource.namespace, resource.cluster_name, deadline.remaining())
        )
        if isinstance(hosted_cluster.platform, KubevirtPlatform) and hosted_cluster.platform.kubevirt is not None:
            return hosted_cluster

        logger.debug(
            "HostedCluster %s/%s has no KubeVirt platform, resolving NodePool %s from its own spec",
            hosted_cluster.namespace,
            hosted_cluster.name,
            resource.name,
        )
        return resource

    def _check_versions(self, resource: HostedResource, versions) -> Optional[AdmissionError]:
        kubevirt_error = None
        if not satisfies(versions.kubevirt_version, self.config.min_kubevirt_version):
            kubevirt_error = UnsupportedOperatorVersionError(
                str(versions.kubevirt_version), self.config.min_kubevirt_version
            )

        kubernetes_error = None
        if not satisfies(versions.kubernetes_version, self.config.min_kubernetes_version):
            kubernetes_error = UnsupportedOrchestrationVersionError(
                str(versions.kubernetes_version), self.config.min_kubernetes_version
            )

        if kubevirt_error and kubernetes_error:
            kubevirt_error = UnsupportedOperatorVersionError(
                str(versions.kubevirt_version),
                self.config.min_kubevirt_version,
                extra=str(kubernetes_error),
            )

        error = kubevirt_error or kubernetes_error
        if error:
            logger.warning("%s %s/%s: %s", resource.kind, resource.namespace, resource.name, error)
        return error
