#!/usr/bin/env python3
"""
Input validation utilities for HostedCluster admission.

This module validates the identifiers the admission core reads out of
submitted resources and CLI arguments before they are used to address
Kubernetes objects:

- Kubernetes resource name validation (DNS-1123 subdomain rules)
- Kubernetes namespace validation (DNS-1123 label rules)
- Context name validation
- CLI argument validation
"""

import logging
import re
from typing import Pattern

from lib.constants import LOGGER_NAME, VALIDATED_OPERATIONS
from lib.exceptions import InvalidVersionFormatError, ValidationError
from lib.utils import parse_semver

logger = logging.getLogger(LOGGER_NAME)

# Kubernetes resource name validation patterns
# Based on Kubernetes naming conventions: https://kubernetes.io/docs/concepts/overview/working-with-objects/names/
# DNS-1123 subdomain format: contains only lowercase alphanumeric characters, '-' or '.',
# starts with an alphanumeric character, ends with an alphanumeric character
K8S_NAME_PATTERN: Pattern[str] = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*$")
K8S_NAME_MAX_LENGTH = 253

# RFC 1123 label format: lowercase alphanumeric characters or '-',
# starts with an alphabetic character, ends with an alphanumeric character
K8S_NAMESPACE_PATTERN: Pattern[str] = re.compile(r"^[a-z]([-a-z0-9]*[a-z0-9])?$")
K8S_NAMESPACE_MAX_LENGTH = 63

# Secret data keys: alphanumeric, '-', '_' or '.'
SECRET_KEY_PATTERN: Pattern[str] = re.compile(r"^[-._a-zA-Z0-9]+$")

# Context name validation pattern (more permissive than K8s names)
# This accommodates default oc login contexts like 'default/api.example.com:6443/admin'
CONTEXT_NAME_PATTERN: Pattern[str] = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.:\-/]*[A-Za-z0-9]$|^[A-Za-z0-9]$")
CONTEXT_NAME_MAX_LENGTH = 128


class InputValidator:
    """Input validation for admission requests and CLI arguments."""

    @staticmethod
    def validate_kubernetes_name(name: str, resource_type: str = "resource") -> None:
        """
        Validate Kubernetes resource name according to DNS-1123 subdomain rules.

        Args:
            name: The name to validate
            resource_type: Type of resource for error messages

        Raises:
            ValidationError: If name is invalid
        """
        if not name:
            raise ValidationError(f"{resource_type} name cannot be empty")

        if not isinstance(name, str):
            raise ValidationError(f"{resource_type} name must be a string, got {type(name).__name__}")

        if len(name) > K8S_NAME_MAX_LENGTH:
            raise ValidationError(
                f"{resource_type} name '{name}' exceeds maximum length of {K8S_NAME_MAX_LENGTH} characters"
            )

        if not K8S_NAME_PATTERN.match(name):
            raise ValidationError(
                f"Invalid {resource_type} name '{name}'. "
                f"Must consist of lowercase alphanumeric characters, '-', or '.', "
                f"must start and end with an alphanumeric character (DNS-1123 subdomain)"
            )

    @staticmethod
    def validate_kubernetes_namespace(namespace: str) -> None:
        """
        Validate Kubernetes namespace name according to DNS-1123 label rules.

        Args:
            namespace: The namespace to validate

        Raises:
            ValidationError: If namespace is invalid
        """
        if not namespace:
            raise ValidationError("Namespace cannot be empty")

        if not isinstance(namespace, str):
            raise ValidationError(f"Namespace must be a string, got {type(namespace).__name__}")

        if len(namespace) > K8S_NAMESPACE_MAX_LENGTH:
            raise ValidationError(
                f"Namespace '{namespace}' exceeds maximum length of {K8S_NAMESPACE_MAX_LENGTH} characters"
            )

        if not K8S_NAMESPACE_PATTERN.match(namespace):
            raise ValidationError(
                f"Invalid namespace '{namespace}'. "
                f"Must consist of lower case alphanumeric characters or '-', "
                f"and must start and end with an alphanumeric character"
            )

    @staticmethod
    def validate_secret_key(key: str) -> None:
        """Validate a key inside a Secret's data map."""
        if not key or not isinstance(key, str) or not SECRET_KEY_PATTERN.match(key):
            raise ValidationError(
                f"Invalid secret key '{key}'. Must consist of alphanumeric characters, '-', '_' or '.'"
            )

    @staticmethod
    def validate_context_name(context: str) -> None:
        """
        Validate Kubernetes context name.

        Args:
            context: The context name to validate

        Raises:
            ValidationError: If context name is invalid
        """
        if not context:
            raise ValidationError("Context name cannot be empty")

        if len(context) > CONTEXT_NAME_MAX_LENGTH:
            raise ValidationError(
                f"Context name '{context}' exceeds maximum length of {CONTEXT_NAME_MAX_LENGTH} characters"
            )

        if not CONTEXT_NAME_PATTERN.match(context):
            raise ValidationError(
                f"Invalid context name '{context}'. "
                f"Must consist of alphanumeric characters, '-', '_', '.', ':', or '/', "
                f"and must start and end with an alphanumeric character"
            )

    @staticmethod
    def _validate_choice(value: str, valid_choices: list, field_name: str) -> None:
        """Validate that a value is one of the allowed choices.

        Raises:
            ValidationError: If value is not in valid_choices
        """
        if value not in valid_choices:
            raise ValidationError(f"Invalid {field_name} '{value}'. Must be one of: {', '.join(valid_choices)}")

    @staticmethod
    def validate_cli_log_format(log_format: str) -> None:
        """Validate CLI log format argument."""
        InputValidator._validate_choice(log_format, ["text", "json"], "log format")

    @staticmethod
    def validate_cli_operation(operation: str) -> None:
        """Validate CLI admission operation argument."""
        InputValidator._validate_choice(operation, list(VALIDATED_OPERATIONS), "operation")

    @staticmethod
    def validate_version(value: str, field_name: str) -> None:
        """Validate that a configured value is a semantic version."""
        try:
            parse_semver(value)
        except InvalidVersionFormatError as e:
            raise ValidationError(f"{field_name}: {e}") from e

    @staticmethod
    def validate_timeout(value: float, field_name: str = "timeout") -> None:
        """Validate that a timeout is a positive number of seconds."""
        if value is None or value <= 0:
            raise ValidationError(f"{field_name} must be a positive number of seconds, got {value}")

    @staticmethod
    def validate_all_cli_args(args: object) -> None:
        """
        Validate all CLI arguments.

        Args:
            args: Parsed CLI arguments object

        Raises:
            ValidationError: If any argument validation fails
        """
        if getattr(args, "context", None):
            InputValidator.validate_context_name(args.context)

        if getattr(args, "log_format", None):
            InputValidator.validate_cli_log_format(args.log_format)

        if getattr(args, "operation", None):
            InputValidator.validate_cli_operation(args.operation)

        if getattr(args, "min_kubevirt_version", None):
            InputValidator.validate_version(args.min_kubevirt_version, "min-kubevirt-version")

        if getattr(args, "min_kubernetes_version", None):
            InputValidator.validate_version(args.min_kubernetes_version, "min-kubernetes-version")

        if getattr(args, "timeout", None) is not None:
            InputValidator.validate_timeout(args.timeout)

        # TLS needs both halves of the key pair
        tls_cert = getattr(args, "tls_cert", None)
        tls_key = getattr(args, "tls_key", None)
        if bool(tls_cert) != bool(tls_key):
            raise ValidationError("--tls-cert and --tls-key must be provided together")
