"""
Admission entry point for HostedCluster and NodePool resources.

Runs the KubeVirt compatibility gate and the JSON-patch annotation check and
folds their outcomes into one decision. Compatibility errors take precedence
over annotation errors so identical input always yields the same reason.
"""

import logging
from typing import Any, Dict, List, Optional

from lib.config import AdmissionConfig
from lib.constants import (
    ADMISSION_REVIEW_API_VERSION,
    ADMISSION_REVIEW_KIND,
    HTTP_STATUS_BAD_REQUEST,
    HTTP_STATUS_FORBIDDEN,
    LOGGER_NAME,
    OPERATION_CREATE,
    VALIDATED_OPERATIONS,
)
from lib.exceptions import ValidationError
from lib.utils import Deadline

from .kubevirt_validator import HostedClusterLookup, KubevirtClusterValidator
from .models import AdmissionResult, HostedResource
from .patch_annotation import check_json_patch_annotation
from .registry import InfraClientRegistry

logger = logging.getLogger(LOGGER_NAME)


class AdmissionWebhook:
    """Validating admission webhook for hosted cluster resources."""

    def __init__(
        self,
        registry: InfraClientRegistry,
        config: Optional[AdmissionConfig] = None,
        hosted_cluster_lookup: Optional[HostedClusterLookup] = None,
    ) -> None:
        self.config = config or AdmissionConfig()
        self.registry = registry
        self.kubevirt_validator = KubevirtClusterValidator(registry, self.config, hosted_cluster_lookup)

    def decide(
        self,
        resource: HostedResource,
        operation: str = OPERATION_CREATE,
        deadline: Optional[Deadline] = None,
    ) -> AdmissionResult:
        """Decide whether a resource may be persisted.

        Args:
            resource: Parsed HostedCluster or NodePool
            operation: Admission operation (CREATE, UPDATE, DELETE, CONNECT)
            deadline: Deadline of the request; defaults to config.request_timeout

        Returns:
            AdmissionResult; denied with the first error's message, if any
        """
        if operation not in VALIDATED_OPERATIONS:
            return AdmissionResult.allow()

        deadline = deadline or Deadline(self.config.request_timeout)

        warnings, error = self.kubevirt_validator.validate(resource, deadline)
        annotation_error = check_json_patch_annotation(resource.annotations)
        error = error or annotation_error

        result = AdmissionResult(allowed=error is None, warnings=list(warnings or []), reason=None)
        if error is not None:
            result.reason = str(error)
            logger.warning(
                "Denied %s of %s %s/%s: %s",
                operation,
                resource.kind,
                resource.namespace,
                resource.name,
                result.reason,
            )
        else:
            logger.info(
                "Allowed %s of %s %s/%s%s",
                operation,
                resource.kind,
                resource.namespace,
                resource.name,
                f" with {len(result.warnings)} warning(s)" if result.warnings else "",
            )
        return result

    def review(self, admission_review: Dict[str, Any]) -> Dict[str, Any]:
        """Answer an admission.k8s.io/v1 AdmissionReview.

        Args:
            admission_review: Deserialized AdmissionReview request

        Returns:
            AdmissionReview with the response filled in
        """
        request = admission_review.get("request") if isinstance(admission_review, dict) else None
        if not isinstance(request, dict):
            request = {}
        uid = request.get("uid", "")
        operation = request.get("operation", OPERATION_CREATE)

        # DELETE requests carry object: null
        if operation not in VALIDATED_OPERATIONS:
            logger.debug("Allowing %s request %s without validation", operation, uid or "<no uid>")
            return _review_response(uid, AdmissionResult.allow(), HTTP_STATUS_FORBIDDEN)

        try:
            resource = HostedResource.from_dict(request.get("object"))
        except ValidationError as e:
            logger.warning("Rejecting malformed %s request %s: %s", operation, uid or "<no uid>", e)
            return _review_response(uid, AdmissionResult.deny(str(e)), HTTP_STATUS_BAD_REQUEST)

        result = self.decide(resource, operation)
        return _review_response(uid, result, HTTP_STATUS_FORBIDDEN)


def _review_response(uid: str, result: AdmissionResult, deny_code: int) -> Dict[str, Any]:
    response: Dict[str, Any] = {"uid": uid, "allowed": result.allowed}
    if result.warnings:
        response["warnings"] = list(result.warnings)
    if not result.allowed:
        response["status"] = {"code": deny_code, "message": result.reason}
    return {
        "apiVersion": ADMISSION_REVIEW_API_VERSION,
        "kind": ADMISSION_REVIEW_KIND,
        "response": response,
    }


def decide_all(webhook: AdmissionWebhook, objects: List[Dict[str, Any]], operation: str) -> List[AdmissionResult]:
    """Decide a batch of deserialized objects, denying the malformed ones."""
    results = []
    for obj in objects:
        try:
            resource = HostedResource.from_dict(obj)
        except ValidationError as e:
            results.append(AdmissionResult.deny(str(e)))
            continue
        results.append(webhook.decide(resource, operation))
    return results
