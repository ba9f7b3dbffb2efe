# CUI // SP-CTI
"""Re-extract the project version after a bump, reliably.

The Jenkins history behind this tool shows single-heuristic extraction
returning empty output at runtime. Here the heuristics form an ordered chain
and a value is only accepted when it satisfies MAJOR.MINOR.PATCH:

    xml    structured read of <project><version>
    maven  mvn help:evaluate -Dexpression=project.version
    regex  first <version> after </parent> in the raw text

When every strategy fails the on_invalid policy decides: "fail" raises
VersionFormatError, "warn" logs and substitutes the fallback literal.
"""

import logging
import re
from pathlib import Path
from typing import Callable, Dict, Optional, Sequence

from shipline.ci.modules import maven
from shipline.data_types import ExtractionResult
from shipline.resilience.errors import ConfigurationError, ShiplineError, VersionFormatError
from shipline.versioning.descriptor import PomDescriptor
from shipline.versioning.semver import is_release_version

logger = logging.getLogger("shipline.versioning.extractor")

STRATEGIES = ("xml", "maven", "regex")
ON_INVALID_POLICIES = ("fail", "warn")
DEFAULT_FALLBACK = "latest"

_COMMENT_RE = re.compile(r"<!--.*?-->", re.DOTALL)
_VERSION_TAG_RE = re.compile(r"<version>\s*([^<]*?)\s*</version>")


def _from_xml(descriptor: Path, project_dir: Path, maven_executable: str) -> Optional[str]:
    return PomDescriptor(descriptor).read_version()


def _from_maven(descriptor: Path, project_dir: Path, maven_executable: str) -> Optional[str]:
    if not maven.is_available(maven_executable):
        return None
    return maven.evaluate_version(project_dir, descriptor=str(descriptor),
                                  executable=maven_executable)


def _from_regex(descriptor: Path, project_dir: Path, maven_executable: str) -> Optional[str]:
    text = _COMMENT_RE.sub("", descriptor.read_text(encoding="utf-8"))
    if "</parent>" in text:
        text = text.split("</parent>", 1)[1]
    match = _VERSION_TAG_RE.search(text)
    return match.group(1) if match else None


_STRATEGY_FUNCS: Dict[str, Callable] = {
    "xml": _from_xml,
    "maven": _from_maven,
    "regex": _from_regex,
}


def extract_version(
    descriptor,
    project_dir=None,
    strategies: Sequence[str] = STRATEGIES,
    on_invalid: str = "fail",
    fallback: str = DEFAULT_FALLBACK,
    maven_executable: str = "mvn",
    log: Optional[logging.Logger] = None,
) -> ExtractionResult:
    """Run the strategy chain and return the first valid version."""
    log = log or logger
    if on_invalid not in ON_INVALID_POLICIES:
        raise ConfigurationError(
            f"versioning.on_invalid must be one of {ON_INVALID_POLICIES}, got '{on_invalid}'",
            config_key="versioning.on_invalid",
        )

    descriptor = Path(descriptor)
    project_dir = Path(project_dir) if project_dir else descriptor.parent
    attempts: Dict[str, str] = {}

    for name in strategies:
        func = _STRATEGY_FUNCS.get(name)
        if func is None:
            raise ConfigurationError(
                f"Unknown extraction strategy '{name}' (valid: {', '.join(STRATEGIES)})",
                config_key="versioning.extractors",
            )
        try:
            value = func(descriptor, project_dir, maven_executable)
        except (ShiplineError, OSError) as exc:
            attempts[name] = f"error: {exc}"
            log.debug(f"Version extraction via {name} failed: {exc}")
            continue

        if is_release_version(value):
            attempts[name] = value
            log.debug(f"Version {value} extracted via {name}")
            return ExtractionResult(version=value, strategy=name, attempts=attempts)

        attempts[name] = f"invalid: {value!r}" if value else "empty"
        log.debug(f"Version extraction via {name} gave {attempts[name]}")

    summary = ", ".join(f"{k}={v}" for k, v in attempts.items()) or "no strategies"
    if on_invalid == "fail":
        raise VersionFormatError(
            f"Could not extract a MAJOR.MINOR.PATCH version from {descriptor} ({summary})",
            value=None,
        )

    log.warning(f"No valid version in {descriptor} ({summary}); using fallback '{fallback}'")
    return ExtractionResult(version=fallback, strategy="fallback", valid=False, attempts=attempts)
