#!/usr/bin/env python3
# CUI // SP-CTI
"""shipline Resilience Package: Errors and Retry."""

from shipline.resilience.errors import (  # noqa: F401
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
from shipline.resilience.retry import backoff_delay, call_with_retry, retry  # noqa: F401
