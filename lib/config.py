"""
Admission configuration.

Supported-version minimums and the per-request timeout come from the
environment (or CLI flags, which take precedence) rather than being baked
into the validators.
"""

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from lib.constants import (
    ADMISSION_REQUEST_TIMEOUT,
    ENV_MIN_KUBERNETES_VERSION,
    ENV_MIN_KUBEVIRT_VERSION,
    ENV_REQUEST_TIMEOUT,
    LOGGER_NAME,
    MIN_KUBERNETES_VERSION,
    MIN_KUBEVIRT_VERSION,
)
from lib.exceptions import ConfigurationError, InvalidVersionFormatError
from lib.utils import parse_semver

logger = logging.getLogger(LOGGER_NAME)


@dataclass(frozen=True)
class AdmissionConfig:
    """Settings consulted by the admission validators."""

    min_kubevirt_version: str = MIN_KUBEVIRT_VERSION
    min_kubernetes_version: str = MIN_KUBERNETES_VERSION
    request_timeout: float = ADMISSION_REQUEST_TIMEOUT

    def __post_init__(self) -> None:
        for field_name in ("min_kubevirt_version", "min_kubernetes_version"):
            try:
                parse_semver(getattr(self, field_name))
            except InvalidVersionFormatError as e:
                raise ConfigurationError(f"{field_name}: {e}") from e
        if self.request_timeout is None or self.request_timeout <= 0:
            raise ConfigurationError(f"request_timeout must be positive, got {self.request_timeout}")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "AdmissionConfig":
        """
        Build configuration from environment variables.

        Args:
            environ: Mapping to read instead of os.environ
            **overrides: Explicit values (e.g. from CLI flags); None values are ignored

        Raises:
            ConfigurationError: If a value is malformed
        """
        env = os.environ if environ is None else environ
        values = {}

        min_kubevirt = env.get(ENV_MIN_KUBEVIRT_VERSION, "").strip()
        if min_kubevirt:
            values["min_kubevirt_version"] = min_kubevirt

        min_kubernetes = env.get(ENV_MIN_KUBERNETES_VERSION, "").strip()
        if min_kubernetes:
            values["min_kubernetes_version"] = min_kubernetes

        timeout = env.get(ENV_REQUEST_TIMEOUT, "").strip()
        if timeout:
            try:
                values["request_timeout"] = float(timeout)
            except ValueError as e:
                raise ConfigurationError(f"{ENV_REQUEST_TIMEOUT} must be a number of seconds, got {timeout!r}") from e

        values.update({k: v for k, v in overrides.items() if v is not None})

        config = cls(**values)
        logger.debug(
            "Admission config: min KubeVirt %s, min Kubernetes %s, timeout %ss",
            config.min_kubevirt_version,
            config.min_kubernetes_version,
            config.request_timeout,
        )
        return config
