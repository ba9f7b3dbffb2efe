# CUI // SP-CTI
"""Semantic version parsing, pom.xml access and version re-extraction."""

from shipline.versioning.semver import (  # noqa: F401
    BUMP_PARTS,
    RELEASE_VERSION_RE,
    SemanticVersion,
    is_release_version,
)
from shipline.versioning.descriptor import PomDescriptor  # noqa: F401
