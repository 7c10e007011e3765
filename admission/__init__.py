"""HostedCluster / NodePool admission validation."""

from .kubevirt_validator import KubevirtClusterValidator
from .models import (
    AdmissionResult,
    AgentPlatform,
    AWSPlatform,
    HostedResource,
    KubevirtCredentials,
    KubevirtPlatform,
    KubevirtPlatformSpec,
    NonePlatform,
    OtherPlatform,
    SecretKeyRef,
)
from .patch_annotation import check_json_patch_annotation, validate_json_patch_annotation
from .registry import InfraClientEntry, InfraClientRegistry, VersionPair, resolution_key
from .server import WebhookServer
from .webhook import AdmissionWebhook

__all__ = [
    "AdmissionResult",
    "AdmissionWebhook",
    "AgentPlatform",
    "AWSPlatform",
    "HostedResource",
    "InfraClientEntry",
    "InfraClientRegistry",
    "KubevirtClusterValidator",
    "KubevirtCredentials",
    "KubevirtPlatform",
    "KubevirtPlatformSpec",
    "NonePlatform",
    "OtherPlatform",
    "SecretKeyRef",
    "VersionPair",
    "WebhookServer",
    "check_json_patch_annotation",
    "resolution_key",
    "validate_json_patch_annotation",
]
