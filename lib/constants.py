"""Centralized constants for HostedCluster admission."""

# Exit codes
EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_INTERRUPT = 130

# Logger shared by every module
LOGGER_NAME = "hcp_admission"

# Minimum supported versions on the KubeVirt infrastructure cluster
MIN_KUBEVIRT_VERSION = "1.0.0"
MIN_KUBERNETES_VERSION = "1.27.0"

# Timeouts (in seconds)
ADMISSION_REQUEST_TIMEOUT = 10

# Environment overrides for AdmissionConfig
ENV_MIN_KUBEVIRT_VERSION = "HCP_ADMISSION_MIN_KUBEVIRT_VERSION"
ENV_MIN_KUBERNETES_VERSION = "HCP_ADMISSION_MIN_KUBERNETES_VERSION"
ENV_REQUEST_TIMEOUT = "HCP_ADMISSION_REQUEST_TIMEOUT"

# Resource kinds
KIND_HOSTED_CLUSTER = "HostedCluster"
KIND_NODE_POOL = "NodePool"
HYPERSHIFT_API_GROUP = "hypershift.openshift.io"
HYPERSHIFT_API_VERSION = "v1beta1"
HOSTED_CLUSTER_PLURAL = "hostedclusters"

# Platform discriminator values (spec.platform.type)
PLATFORM_AWS = "AWS"
PLATFORM_KUBEVIRT = "KubeVirt"
PLATFORM_AGENT = "Agent"
PLATFORM_NONE = "None"

# Annotations
JSON_PATCH_ANNOTATION = "hypershift.openshift.io/kubevirt-vm-jsonpatch"
JSON_PATCH_REQUIRED_FIELDS = ("op", "path", "value")
JSON_PATCH_STRING_FIELDS = ("op", "path")

# KubeVirt CR used for operator version discovery
KUBEVIRT_GROUP = "kubevirt.io"
KUBEVIRT_VERSION = "v1"
KUBEVIRT_PLURAL = "kubevirts"
KUBEVIRT_OBSERVED_VERSION_FIELD = "observedKubeVirtVersion"

# Infra kubeconfig secret default key
INFRA_KUBECONFIG_SECRET_KEY = "kubeconfig"

# Registry key for the management cluster acting as its own infrastructure
LOCAL_INFRA_KEY = "local"

# Admission operations
OPERATION_CREATE = "CREATE"
OPERATION_UPDATE = "UPDATE"
VALIDATED_OPERATIONS = (OPERATION_CREATE, OPERATION_UPDATE)

# AdmissionReview
ADMISSION_REVIEW_API_VERSION = "admission.k8s.io/v1"
ADMISSION_REVIEW_KIND = "AdmissionReview"
HTTP_STATUS_BAD_REQUEST = 400
HTTP_STATUS_FORBIDDEN = 403

# Webhook server defaults
WEBHOOK_DEFAULT_HOST = "0.0.0.0"  # nosec B104 - webhook must be reachable by the API server
WEBHOOK_DEFAULT_PORT = 9443
