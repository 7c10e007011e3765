"""
Common utilities for HostedCluster admission.
"""

import json
import logging
import re
import time
from datetime import datetime, timezone
from typing import NamedTuple, Optional, Union

from lib.constants import LOGGER_NAME
from lib.exceptions import ClusterUnreachableError, InvalidVersionFormatError

# major.minor.patch with optional leading "v", pre-release and build metadata
SEMVER_PATTERN = re.compile(
    r"^v?(?P<major>0|[1-9]\d*)\.(?P<minor>0|[1-9]\d*)\.(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<prerelease>[0-9A-Za-z.-]+))?"
    r"(?:\+(?P<build>[0-9A-Za-z.-]+))?$"
)


class SemVer(NamedTuple):
    """Parsed semantic version. Ordering only considers major.minor.patch."""

    major: int
    minor: int
    patch: int
    prerelease: str = ""
    build: str = ""

    @property
    def core(self) -> tuple:
        return (self.major, self.minor, self.patch)

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            text += f"-{self.prerelease}"
        if self.build:
            text += f"+{self.build}"
        return text


def parse_semver(version_string: str) -> SemVer:
    """
    Parse a semantic version string.

    Args:
        version_string: Version like "1.0.0", "v1.27.3" or "1.0.0-rc.1+abc"

    Returns:
        SemVer tuple

    Raises:
        InvalidVersionFormatError: If the string is not major.minor.patch
    """
    if isinstance(version_string, SemVer):
        return version_string
    if not isinstance(version_string, str):
        raise InvalidVersionFormatError(repr(version_string))

    match = SEMVER_PATTERN.match(version_string.strip())
    if not match:
        raise InvalidVersionFormatError(version_string)

    return SemVer(
        int(match.group("major")),
        int(match.group("minor")),
        int(match.group("patch")),
        match.group("prerelease") or "",
        match.group("build") or "",
    )


def satisfies(actual: Union[str, SemVer], minimum: Union[str, SemVer]) -> bool:
    """
    Check if a version is greater than or equal to a minimum version.

    Pre-release and build metadata are ignored; only major.minor.patch is
    compared, numerically.

    Args:
        actual: Observed version
        minimum: Minimum acceptable version

    Returns:
        True if actual >= minimum

    Raises:
        InvalidVersionFormatError: If either version cannot be parsed
    """
    return parse_semver(actual).core >= parse_semver(minimum).core


class Deadline:
    """Absolute point in time by which an admission request must finish."""

    def __init__(self, timeout: Optional[float]) -> None:
        self.timeout = timeout
        self._expires_at = None if timeout is None else time.monotonic() + timeout

    def remaining(self) -> Optional[float]:
        """Seconds left, or None when unbounded. Never negative."""
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def check(self, action: str, key: Optional[str] = None) -> None:
        """Raise ClusterUnreachableError if the deadline has passed."""
        if self.expired:
            raise ClusterUnreachableError(
                f"timed out after {format_duration(self.timeout)} while {action}",
                key=key,
                timed_out=True,
            )


class JSONFormatter(logging.Formatter):
    """Format logs as JSON for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_record = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_record)


def setup_logging(verbose: bool = False, log_format: str = "text") -> logging.Logger:
    """
    Configure root logging.

    Args:
        verbose: Enable debug logging
        log_format: 'text' or 'json'
    """
    level = logging.DEBUG if verbose else logging.INFO
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()

    if log_format.lower() == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )

    root_logger.addHandler(handler)

    return logging.getLogger(LOGGER_NAME)


def format_duration(seconds: Optional[float]) -> str:
    """Format duration in seconds to human-readable string."""
    if seconds is None:
        return "unbounded"
    if seconds < 60:
        return f"{seconds:.1f}s"
    elif seconds < 3600:
        minutes = seconds / 60
        return f"{minutes:.1f}m"
    else:
        hours = seconds / 3600
        return f"{hours:.1f}h"
