"""Resource model for HostedCluster and NodePool admission.

Submitted objects arrive as deserialized Kubernetes dicts. They are parsed
once into immutable dataclasses; the platform is a tagged union with one
class per platform type, so KubeVirt fields only exist on KubevirtPlatform.
"""

import types
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union

from lib.constants import (
    INFRA_KUBECONFIG_SECRET_KEY,
    KIND_HOSTED_CLUSTER,
    KIND_NODE_POOL,
    PLATFORM_AGENT,
    PLATFORM_AWS,
    PLATFORM_KUBEVIRT,
    PLATFORM_NONE,
)
from lib.exceptions import ValidationError
from lib.validation import InputValidator

SUPPORTED_KINDS = (KIND_HOSTED_CLUSTER, KIND_NODE_POOL)


@dataclass(frozen=True)
class SecretKeyRef:
    name: str
    key: str = INFRA_KUBECONFIG_SECRET_KEY


@dataclass(frozen=True)
class KubevirtCredentials:
    """Reference to the kubeconfig of an external infrastructure cluster."""

    infra_kubeconfig_secret: SecretKeyRef
    infra_namespace: str


@dataclass(frozen=True)
class KubevirtPlatformSpec:
    """spec.platform.kubevirt. Without credentials the management cluster is the infra cluster."""

    credentials: Optional[KubevirtCredentials] = None
    base_domain_passthrough: Optional[bool] = None
    generate_id: Optional[str] = None


@dataclass(frozen=True)
class AWSPlatform:
    region: str = ""
    type: str = field(default=PLATFORM_AWS, init=False)


@dataclass(frozen=True)
class KubevirtPlatform:
    kubevirt: Optional[KubevirtPlatformSpec] = None
    type: str = field(default=PLATFORM_KUBEVIRT, init=False)


@dataclass(frozen=True)
class AgentPlatform:
    agent_namespace: str = ""
    type: str = field(default=PLATFORM_AGENT, init=False)


@dataclass(frozen=True)
class NonePlatform:
    type: str = field(default=PLATFORM_NONE, init=False)


@dataclass(frozen=True)
class OtherPlatform:
    """A platform this admission core has no rules for (Azure, PowerVS, ...)."""

    type: str


PlatformSpec = Union[AWSPlatform, KubevirtPlatform, AgentPlatform, NonePlatform, OtherPlatform]


@dataclass(frozen=True)
class HostedResource:
    """A HostedCluster or NodePool as seen by admission. Never mutated."""

    kind: str
    name: str
    namespace: str
    platform: PlatformSpec
    annotations: Mapping[str, str] = field(default_factory=lambda: types.MappingProxyType({}))
    cluster_name: Optional[str] = None

    @property
    def is_kubevirt(self) -> bool:
        return isinstance(self.platform, KubevirtPlatform)

    @classmethod
    def from_dict(cls, obj: Dict[str, Any]) -> "HostedResource":
        """Parse a deserialized HostedCluster or NodePool.

        Raises:
            ValidationError: If the object is not a well-formed HostedCluster/NodePool
        """
        if not isinstance(obj, dict):
            raise ValidationError("object must be a mapping")

        kind = obj.get("kind")
        if kind not in SUPPORTED_KINDS:
            raise ValidationError(f"unsupported kind {kind!r}, expected one of: {', '.join(SUPPORTED_KINDS)}")

        metadata = _mapping(obj.get("metadata"), "metadata")
        name = metadata.get("name")
        namespace = metadata.get("namespace")
        InputValidator.validate_kubernetes_name(name, kind)
        InputValidator.validate_kubernetes_namespace(namespace)

        spec = _mapping(obj.get("spec"), "spec")
        platform = parse_platform(spec.get("platform"))

        cluster_name = None
        if kind == KIND_NODE_POOL:
            cluster_name = spec.get("clusterName")
            InputValidator.validate_kubernetes_name(cluster_name, "spec.clusterName")

        return cls(
            kind=kind,
            name=name,
            namespace=namespace,
            platform=platform,
            annotations=types.MappingProxyType(_annotations(metadata.get("annotations"))),
            cluster_name=cluster_name,
        )


def _mapping(value: Any, path: str) -> Dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValidationError(f"{path} must be a mapping, got {type(value).__name__}")
    return value


def _annotations(value: Any) -> Dict[str, str]:
    annotations = _mapping(value, "metadata.annotations")
    for key, annotation in annotations.items():
        if not isinstance(key, str) or not isinstance(annotation, str):
            raise ValidationError(f"metadata.annotations[{key!r}] must be a string")
    return dict(annotations)


def parse_platform(value: Any) -> PlatformSpec:
    """Parse spec.platform into its platform variant."""
    platform = _mapping(value, "spec.platform")
    platform_type = platform.get("type")
    if not platform_type or not isinstance(platform_type, str):
        raise ValidationError("spec.platform.type is required")

    if platform_type == PLATFORM_KUBEVIRT:
        kubevirt = platform.get("kubevirt")
        if kubevirt is None:
            return KubevirtPlatform()
        return KubevirtPlatform(kubevirt=parse_kubevirt_spec(kubevirt))
    if platform_type == PLATFORM_AWS:
        return AWSPlatform(region=_mapping(platform.get("aws"), "spec.platform.aws").get("region", ""))
    if platform_type == PLATFORM_AGENT:
        agent = _mapping(platform.get("agent"), "spec.platform.agent")
        return AgentPlatform(agent_namespace=agent.get("agentNamespace", ""))
    if platform_type == PLATFORM_NONE:
        return NonePlatform()
    return OtherPlatform(type=platform_type)


def parse_kubevirt_spec(value: Any) -> KubevirtPlatformSpec:
    kubevirt = _mapping(value, "spec.platform.kubevirt")

    credentials = None
    raw_credentials = kubevirt.get("credentials")
    if raw_credentials is not None:
        raw_credentials = _mapping(raw_credentials, "spec.platform.kubevirt.credentials")
        secret = _mapping(
            raw_credentials.get("infraKubeConfigSecret"),
            "spec.platform.kubevirt.credentials.infraKubeConfigSecret",
        )
        secret_name = secret.get("name")
        InputValidator.validate_kubernetes_name(secret_name, "infraKubeConfigSecret")
        secret_key = secret.get("key") or INFRA_KUBECONFIG_SECRET_KEY
        InputValidator.validate_secret_key(secret_key)
        infra_namespace = raw_credentials.get("infraNamespace")
        InputValidator.validate_kubernetes_namespace(infra_namespace)
        credentials = KubevirtCredentials(
            infra_kubeconfig_secret=SecretKeyRef(name=secret_name, key=secret_key),
            infra_namespace=infra_namespace,
        )

    return KubevirtPlatformSpec(
        credentials=credentials,
        base_domain_passthrough=kubevirt.get("baseDomainPassthrough"),
        generate_id=kubevirt.get("generateID"),
    )


@dataclass
class AdmissionResult:
    """Outcome of one admission decision."""

    allowed: bool
    warnings: List[str] = field(default_factory=list)
    reason: Optional[str] = None

    @classmethod
    def allow(cls, warnings: Optional[List[str]] = None) -> "AdmissionResult":
        return cls(allowed=True, warnings=list(warnings or []))

    @classmethod
    def deny(cls, reason: str, warnings: Optional[List[str]] = None) -> "AdmissionResult":
        return cls(allowed=False, warnings=list(warnings or []), reason=reason)
