"""Structural validation of the KubeVirt VM JSON-patch annotation.

The annotation lets operators inject raw JSON-patch operations into the
generated KubeVirt VirtualMachine. Here its shape is checked only; the
operations are never applied.

Every operation must carry non-empty "op", "path" and "value" fields, and
"op" and "path" must be strings. RFC 6902 does not require "value" for
remove, move or copy; requiring it everywhere is the established behavior
of this check.
"""

import json
import logging
from typing import Any, Mapping, Optional

from lib.constants import (
    JSON_PATCH_ANNOTATION,
    JSON_PATCH_REQUIRED_FIELDS,
    JSON_PATCH_STRING_FIELDS,
    LOGGER_NAME,
)
from lib.exceptions import (
    InvalidOperationFieldError,
    MalformedJSONError,
    MissingOperationFieldError,
    NotAnArrayError,
    NotAnObjectError,
    PatchAnnotationError,
)

logger = logging.getLogger(LOGGER_NAME)


def _is_empty(value: Any) -> bool:
    return value is None or value == ""


def validate_json_patch_annotation(annotations: Optional[Mapping[str, str]]) -> None:
    """
    Validate the JSON-patch annotation if present.

    Args:
        annotations: Resource annotations, may be None

    Raises:
        MalformedJSONError: If the value is not valid JSON
        NotAnArrayError: If the value is not a JSON array
        NotAnObjectError: If an element is not a JSON object
        MissingOperationFieldError: If an element lacks op, path or value (0-based index)
        InvalidOperationFieldError: If an element's op or path is not a string
    """
    if not annotations or JSON_PATCH_ANNOTATION not in annotations:
        return

    raw = annotations[JSON_PATCH_ANNOTATION]
    try:
        document = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise MalformedJSONError(f"{JSON_PATCH_ANNOTATION}: invalid JSON: {e}") from e

    if not isinstance(document, list):
        raise NotAnArrayError(
            f"{JSON_PATCH_ANNOTATION}: expected a JSON array of patch operations, got {type(document).__name__}"
        )

    for index, operation in enumerate(document):
        if not isinstance(operation, dict):
            raise NotAnObjectError(
                f"{JSON_PATCH_ANNOTATION}: operation at index {index} must be a JSON object",
                index,
            )
        for field_name in JSON_PATCH_REQUIRED_FIELDS:
            value = operation.get(field_name)
            if _is_empty(value):
                raise MissingOperationFieldError(field_name, index, JSON_PATCH_ANNOTATION)
            if field_name in JSON_PATCH_STRING_FIELDS and not isinstance(value, str):
                raise InvalidOperationFieldError(field_name, index, JSON_PATCH_ANNOTATION, value)

    logger.debug("%s: %d patch operation(s) accepted", JSON_PATCH_ANNOTATION, len(document))


def check_json_patch_annotation(annotations: Optional[Mapping[str, str]]) -> Optional[PatchAnnotationError]:
    """Same as validate_json_patch_annotation, returning the error instead of raising it."""
    try:
        validate_json_patch_annotation(annotations)
    except PatchAnnotationError as e:
        return e
    return None
