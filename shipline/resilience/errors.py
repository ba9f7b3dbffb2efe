#!/usr/bin/env python3
# CUI // SP-CTI
"""shipline Resilience: Structured Exception Hierarchy.

Every failure a pipeline stage can raise derives from ShiplineError and is
either transient (worth retrying) or permanent. External tool failures carry
the command, exit code and stderr so the CLI can report them verbatim.

Usage:
    from shipline.resilience.errors import CommandError, VersionFormatError

    raise VersionFormatError("Extracted version '' is not MAJOR.MINOR.PATCH", value="")
"""

from typing import Optional, Sequence


class ShiplineError(Exception):
    """Base exception for all shipline errors.

    Attributes:
        service: Name of the external tool or subsystem (e.g. "docker").
        retryable: Whether the caller should retry the operation.
    """

    def __init__(self, message: str, service: str = "", retryable: bool = False):
        super().__init__(message)
        self.service = service
        self.retryable = retryable


class ShiplineTransientError(ShiplineError):
    """Transient error: the operation may succeed on retry.

    Examples: registry timeout, SSH connection reset.
    """

    def __init__(self, message: str, service: str = "", retryable: bool = True):
        super().__init__(message, service=service, retryable=retryable)


class ShiplinePermanentError(ShiplineError):
    """Permanent error: retrying will not help.

    Examples: malformed pom.xml, invalid version, missing configuration.
    """

    def __init__(self, message: str, service: str = "", retryable: bool = False):
        super().__init__(message, service=service, retryable=retryable)


class ConfigurationError(ShiplinePermanentError):
    """Configuration error: missing or invalid shipline.yaml / env value."""

    def __init__(self, message: str, config_key: str = ""):
        super().__init__(message, service="config", retryable=False)
        self.config_key = config_key


class VersionFormatError(ShiplinePermanentError):
    """A version string does not satisfy the MAJOR.MINOR.PATCH format."""

    def __init__(self, message: str, value: Optional[str] = None):
        super().__init__(message, service="versioning", retryable=False)
        self.value = value


class DescriptorError(ShiplinePermanentError):
    """The project descriptor (pom.xml) is missing, malformed or unwritable."""

    def __init__(self, message: str, path: str = ""):
        super().__init__(message, service="descriptor", retryable=False)
        self.path = path


class CommandError(ShiplineError):
    """An external command exited non-zero.

    Attributes:
        args: Masked argument vector of the failed command.
        returncode: Process exit code.
        stderr: Captured (masked) stderr.
    """

    def __init__(
        self,
        message: str,
        args: Sequence[str] = (),
        returncode: int = 1,
        stderr: str = "",
        service: str = "",
        retryable: bool = False,
    ):
        super().__init__(message, service=service, retryable=retryable)
        self.command = list(args)
        self.returncode = returncode
        self.stderr = stderr


class ToolNotFoundError(ShiplinePermanentError):
    """The external executable is not installed or not on PATH."""

    def __init__(self, tool: str):
        super().__init__(
            f"{tool} not found. Ensure {tool} is installed and in PATH.",
            service=tool,
        )
        self.tool = tool


class CommandTimeoutError(ShiplineTransientError):
    """An external command exceeded its timeout."""

    def __init__(self, message: str, service: str = "", timeout: float = 0):
        super().__init__(message, service=service, retryable=True)
        self.timeout = timeout
