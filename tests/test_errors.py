# CUI // SP-CTI
"""Tests for shipline.resilience.errors: Structured exception hierarchy.

Validates ShiplineError base class, transient/permanent subclasses, the
configuration/version/descriptor errors and the external-command errors.
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import pytest

from shipline.resilience.errors import (
    CommandError,
    CommandTimeoutError,
    ConfigurationError,
    DescriptorError,
    ShiplineError,
    ShiplinePermanentError,
    ShiplineTransientError,
    ToolNotFoundError,
    VersionFormatError,
)


class TestShiplineError:
    """Tests for the ShiplineError base exception."""

    def test_has_message_attribute(self):
        err = ShiplineError("something broke")
        assert str(err) == "something broke"

    def test_has_service_attribute(self):
        err = ShiplineError("fail", service="docker")
        assert err.service == "docker"

    def test_default_retryable_is_false(self):
        assert ShiplineError("fail").retryable is False


class TestTransientAndPermanent:
    def test_transient_is_retryable(self):
        err = ShiplineTransientError("timeout")
        assert err.retryable is True
        assert isinstance(err, ShiplineError)

    def test_permanent_is_not_retryable(self):
        err = ShiplinePermanentError("bad pom")
        assert err.retryable is False
        assert isinstance(err, ShiplineError)


class TestDomainErrors:
    def test_configuration_error(self):
        err = ConfigurationError("missing host", config_key="deploy.host")
        assert err.config_key == "deploy.host"
        assert err.service == "config"
        assert isinstance(err, ShiplinePermanentError)

    def test_version_format_error_keeps_value(self):
        err = VersionFormatError("bad version", value="1.0")
        assert err.value == "1.0"
        assert err.retryable is False

    def test_descriptor_error_keeps_path(self):
        err = DescriptorError("malformed", path="/work/pom.xml")
        assert err.path == "/work/pom.xml"
        assert isinstance(err, ShiplinePermanentError)


class TestCommandErrors:
    def test_command_error_fields(self):
        err = CommandError("docker failed", args=["docker", "push", "x"], returncode=1,
                           stderr="denied", service="docker")
        assert err.command == ["docker", "push", "x"]
        assert err.returncode == 1
        assert err.stderr == "denied"
        assert err.retryable is False

    def test_command_error_retryable_flag_mutable(self):
        err = CommandError("push failed")
        err.retryable = True
        assert err.retryable is True

    def test_tool_not_found(self):
        err = ToolNotFoundError("mvn")
        assert err.tool == "mvn"
        assert "mvn not found" in str(err)
        assert isinstance(err, ShiplinePermanentError)

    def test_timeout_is_transient(self):
        err = CommandTimeoutError("ssh timed out", service="ssh", timeout=600)
        assert err.timeout == 600
        assert isinstance(err, ShiplineTransientError)
        assert err.retryable is True

    def test_all_catchable_as_base(self):
        for err in (ConfigurationError("x"), VersionFormatError("x"), DescriptorError("x"),
                    CommandError("x"), ToolNotFoundError("git"), CommandTimeoutError("x")):
            with pytest.raises(ShiplineError):
                raise err
