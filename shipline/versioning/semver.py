# CUI // SP-CTI
"""Semantic version value used as the pipeline's single piece of data.

A version is ``MAJOR.MINOR.PATCH`` with an optional Maven qualifier
(``1.4.0-SNAPSHOT``). Only unqualified versions are valid image tags and
commit labels; :func:`is_release_version` is that check.
"""

import functools
import re
from dataclasses import dataclass
from typing import Optional

from shipline.resilience.errors import VersionFormatError

RELEASE_VERSION_RE = re.compile(r"^\d+\.\d+\.\d+$")

_VERSION_RE = re.compile(
    r"^(?P<major>\d+)\.(?P<minor>\d+)\.(?P<patch>\d+)"
    r"(?:-(?P<qualifier>[0-9A-Za-z][0-9A-Za-z.-]*))?$"
)

BUMP_PARTS = ("major", "minor", "patch")


def is_release_version(text: Optional[str]) -> bool:
    """True when text is exactly MAJOR.MINOR.PATCH (no qualifier, no padding)."""
    return bool(text) and RELEASE_VERSION_RE.match(text) is not None


@functools.total_ordering
@dataclass(frozen=True)
class SemanticVersion:
    """Immutable MAJOR.MINOR.PATCH[-QUALIFIER] version."""

    major: int
    minor: int
    patch: int
    qualifier: Optional[str] = None

    @classmethod
    def parse(cls, text: Optional[str]) -> "SemanticVersion":
        if text is None:
            raise VersionFormatError("No version string given", value=None)
        match = _VERSION_RE.match(text.strip())
        if not match:
            raise VersionFormatError(
                f"Invalid version '{text}': expected MAJOR.MINOR.PATCH", value=text
            )
        return cls(
            major=int(match.group("major")),
            minor=int(match.group("minor")),
            patch=int(match.group("patch")),
            qualifier=match.group("qualifier"),
        )

    def bump(self, part: str = "patch") -> "SemanticVersion":
        """Return the next version; lower parts reset and the qualifier is dropped."""
        if part == "major":
            return SemanticVersion(self.major + 1, 0, 0)
        if part == "minor":
            return SemanticVersion(self.major, self.minor + 1, 0)
        if part == "patch":
            return SemanticVersion(self.major, self.minor, self.patch + 1)
        raise VersionFormatError(
            f"Unknown version part '{part}' (valid: {', '.join(BUMP_PARTS)})",
            value=part,
        )

    def release(self) -> "SemanticVersion":
        """Same numbers without the qualifier."""
        return SemanticVersion(self.major, self.minor, self.patch)

    @property
    def is_release(self) -> bool:
        return self.qualifier is None

    @property
    def core(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"

    def _key(self):
        # A qualified build precedes its release: 1.0.0-SNAPSHOT < 1.0.0
        return (self.major, self.minor, self.patch, self.qualifier is None, self.qualifier or "")

    def __lt__(self, other):
        if not isinstance(other, SemanticVersion):
            return NotImplemented
        return self._key() < other._key()

    def __str__(self) -> str:
        if self.qualifier:
            return f"{self.core}-{self.qualifier}"
        return self.core
