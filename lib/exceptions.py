"""
Custom exceptions for HostedCluster admission validation.

Every error raised here is terminal for the admission request that produced
it; its message is returned verbatim to the submitter as the denial reason.
"""

from typing import Optional


class AdmissionError(Exception):
    """Base class for all admission errors."""


class TransientError(AdmissionError):
    """
    Error caused by the infrastructure side rather than by the resource.
    Examples: Network timeouts, 503 Service Unavailable, expired credentials.
    """


class ClusterUnreachableError(TransientError):
    """The infrastructure cluster could not be reached within the deadline."""

    def __init__(self, message: str, key: Optional[str] = None, timed_out: bool = False) -> None:
        super().__init__(message)
        self.key = key
        self.timed_out = timed_out


class FatalError(AdmissionError):
    """
    Error that will not go away by resubmitting the same resource.
    Examples: Unsupported versions, malformed annotations, missing platform fields.
    """


class ConfigurationError(FatalError):
    """Invalid configuration or arguments."""


class InvalidVersionFormatError(FatalError):
    """A version string could not be parsed as a semantic version."""

    def __init__(self, version: str) -> None:
        super().__init__(f"invalid version format {version!r}: expected major.minor.patch")
        self.version = version


class UnsupportedVersionError(FatalError):
    """A version reported by the infrastructure cluster is below the supported minimum."""

    component = "component"

    def __init__(self, observed: str, minimum: str, extra: str = "") -> None:
        message = f"the minimum {self.component} version supported is {minimum}, but the infra cluster runs {observed}"
        if extra:
            message = f"{message}; {extra}"
        super().__init__(message)
        self.observed = observed
        self.minimum = minimum


class UnsupportedOperatorVersionError(UnsupportedVersionError):
    """KubeVirt (OpenShift Virtualization) operator version is too old."""

    component = "KubeVirt"


class UnsupportedOrchestrationVersionError(UnsupportedVersionError):
    """Kubernetes version of the infrastructure cluster is too old."""

    component = "Kubernetes"


class ValidationError(FatalError):
    """The submitted resource has an invalid shape."""


class MissingPlatformSpecError(ValidationError):
    """A KubeVirt-typed resource does not carry spec.platform.kubevirt."""

    def __init__(self, kind: str, namespace: str, name: str) -> None:
        super().__init__(f"{kind} {namespace}/{name}: spec.platform.kubevirt is required for the KubeVirt platform")
        self.kind = kind
        self.namespace = namespace
        self.name = name


class PatchAnnotationError(ValidationError):
    """Base class for JSON-patch annotation shape errors."""


class MalformedJSONError(PatchAnnotationError):
    """Annotation value is not valid JSON text."""


class NotAnArrayError(PatchAnnotationError):
    """Annotation value is valid JSON but not an array of operations."""


class NotAnObjectError(PatchAnnotationError):
    """A patch operation is not a JSON object."""

    def __init__(self, message: str, index: int) -> None:
        super().__init__(message)
        self.index = index


class MissingOperationFieldError(PatchAnnotationError):
    """A patch operation lacks one of the required op/path/value fields."""

    def __init__(self, field: str, index: int, annotation: str) -> None:
        super().__init__(f"{annotation}: operation at index {index} is missing the {field!r} field")
        self.field = field
        self.index = index


class InvalidOperationFieldError(PatchAnnotationError):
    """A patch operation's op or path is not a string."""

    def __init__(self, field: str, index: int, annotation: str, value: object) -> None:
        super().__init__(
            f"{annotation}: operation at index {index} has a non-string {field!r} field ({type(value).__name__})"
        )
        self.field = field
        self.index = index
