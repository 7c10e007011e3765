"""
Library package for HostedCluster admission validation.
"""

# Import version from lightweight module (avoids importing heavy deps at build time)
from ._version import __version__, __version_date__

from .config import AdmissionConfig
from .exceptions import (
    AdmissionError,
    ClusterUnreachableError,
    ConfigurationError,
    FatalError,
    InvalidVersionFormatError,
    TransientError,
    ValidationError,
)
from .kube_client import InfraClusterClient, KubeClient, ManagementInfraClientFactory
from .utils import (
    Deadline,
    SemVer,
    format_duration,
    parse_semver,
    satisfies,
    setup_logging,
)

__all__ = [
    "__version__",
    "__version_date__",
    "AdmissionConfig",
    "AdmissionError",
    "ClusterUnreachableError",
    "ConfigurationError",
    "FatalError",
    "InvalidVersionFormatError",
    "TransientError",
    "ValidationError",
    "InfraClusterClient",
    "KubeClient",
    "ManagementInfraClientFactory",
    "Deadline",
    "SemVer",
    "format_duration",
    "parse_semver",
    "satisfies",
    "setup_logging",
]
