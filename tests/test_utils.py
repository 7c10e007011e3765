"""Unit tests for lib/utils.py."""

import json
import logging
import time
from unittest.mock import MagicMock, patch

import pytest

from lib.exceptions import ClusterUnreachableError, InvalidVersionFormatError
from lib.utils import (
    Deadline,
    JSONFormatter,
    SemVer,
    format_duration,
    parse_semver,
    satisfies,
    setup_logging,
)


@pytest.mark.unit
class TestParseSemver:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("1.0.0", SemVer(1, 0, 0)),
            ("0.111.0", SemVer(0, 111, 0)),
            ("v1.27.3", SemVer(1, 27, 3)),
            ("v1.27.3+4eadeb2", SemVer(1, 27, 3, "", "4eadeb2")),
            ("1.0.0-rc.1", SemVer(1, 0, 0, "rc.1")),
            (" 1.2.3 ", SemVer(1, 2, 3)),
        ],
    )
    def test_valid(self, text, expected):
        assert parse_semver(text) == expected

    @pytest.mark.parametrize("text", ["", "invalid", "1.27", "1", "1.2.3.4", "01.2.3", "1.2.x", "v", None, 127])
    def test_invalid(self, text):
        with pytest.raises(InvalidVersionFormatError):
            parse_semver(text)

    def test_semver_passthrough(self):
        version = SemVer(1, 2, 3)
        assert parse_semver(version) is version

    def test_str(self):
        assert str(parse_semver("v1.0.0-rc.1+build.5")) == "1.0.0-rc.1+build.5"


@pytest.mark.unit
class TestSatisfies:
    @pytest.mark.parametrize(
        "actual,minimum",
        [
            ("1.0.0", "1.0.0"),
            ("1.27.0", "1.27.0"),
            ("1.0.1", "1.0.0"),
            ("2.0.0", "1.99.99"),
            ("1.10.0", "1.9.0"),
            ("v1.28.2+abc", "1.27.0"),
        ],
    )
    def test_satisfied(self, actual, minimum):
        assert satisfies(actual, minimum) is True

    @pytest.mark.parametrize(
        "actual,minimum",
        [
            ("0.111.0", "1.0.0"),
            ("1.26.99", "1.27.0"),
            ("1.9.0", "1.10.0"),
            ("0.59.2", "0.60.0"),
        ],
    )
    def test_not_satisfied(self, actual, minimum):
        assert satisfies(actual, minimum) is False

    def test_prerelease_ignored(self):
        assert satisfies("1.0.0-rc.1", "1.0.0") is True

    @pytest.mark.parametrize("actual,minimum", [("invalid", "1.0.0"), ("1.0.0", "invalid")])
    def test_invalid_raises(self, actual, minimum):
        with pytest.raises(InvalidVersionFormatError):
            satisfies(actual, minimum)


@pytest.mark.unit
class TestDeadline:
    def test_unbounded(self):
        deadline = Deadline(None)

        assert deadline.remaining() is None
        assert deadline.expired is False
        deadline.check("doing anything")

    def test_remaining(self):
        deadline = Deadline(10)

        assert 9 < deadline.remaining() <= 10
        assert deadline.expired is False

    def test_expired(self):
        deadline = Deadline(0.01)
        time.sleep(0.02)

        assert deadline.remaining() == 0
        assert deadline.expired is True
        with pytest.raises(ClusterUnreachableError) as exc_info:
            deadline.check("discovering versions", key="local")

        assert exc_info.value.timed_out is True
        assert exc_info.value.key == "local"
        assert "discovering versions" in str(exc_info.value)


@pytest.mark.unit
class TestFormatDuration:
    @pytest.mark.parametrize(
        "seconds,expected",
        [(None, "unbounded"), (0.5, "0.5s"), (10, "10.0s"), (90, "1.5m"), (5400, "1.5h")],
    )
    def test_format(self, seconds, expected):
        assert format_duration(seconds) == expected


@pytest.mark.unit
class TestSetupLogging:
    """Test cases for logging setup."""

    def _mock_logging_env(self, mock_logging):
        root_logger = MagicMock()
        root_logger.handlers = [MagicMock()]
        named_logger = MagicMock()
        mock_logging.getLogger.side_effect = [root_logger, named_logger]
        return root_logger, named_logger

    @patch("lib.utils.logging")
    def test_setup_logging_default(self, mock_logging):
        root_logger, named_logger = self._mock_logging_env(mock_logging)

        result_logger = setup_logging()

        root_logger.setLevel.assert_called_once_with(mock_logging.INFO)
        assert root_logger.removeHandler.call_count == 1
        root_logger.addHandler.assert_called_once()
        assert result_logger is named_logger

    @patch("lib.utils.logging")
    def test_setup_logging_verbose(self, mock_logging):
        root_logger, _ = self._mock_logging_env(mock_logging)

        setup_logging(verbose=True)

        root_logger.setLevel.assert_called_once_with(mock_logging.DEBUG)

    def test_json_formatter(self):
        record = logging.LogRecord("hcp_admission", logging.WARNING, __file__, 10, "denied %s", ("x",), None)

        payload = json.loads(JSONFormatter().format(record))

        assert payload["level"] == "WARNING"
        assert payload["message"] == "denied x"
        assert payload["logger"] == "hcp_admission"
