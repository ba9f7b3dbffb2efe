# CUI // SP-CTI
"""Read and rewrite the version held in a Maven project descriptor (pom.xml).

Parsing uses xml.etree.ElementTree only to prove the file is well formed.
Locating elements is done on the raw text with a tag walker so that a
rewrite touches nothing but the characters of the project's own
``<version>`` value: comments, indentation, the parent version and every
dependency or plugin version stay byte-identical.

Usage:
    pom = PomDescriptor("pom.xml")
    pom.read_version()          # "1.0.3"
    pom.write_version("1.0.4")
"""

import re
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Dict, Optional, Tuple

from shipline.resilience.errors import DescriptorError

DEFAULT_DESCRIPTOR = "pom.xml"

# Comments, CDATA, processing instructions and doctype are blanked out
# (same length) before walking tags so offsets stay valid.
_OPAQUE_RE = re.compile(
    r"<!--.*?-->|<!\[CDATA\[.*?\]\]>|<\?.*?\?>|<!DOCTYPE[^>]*>", re.DOTALL
)
_TAG_RE = re.compile(r"<(/?)([A-Za-z_][\w.:-]*)((?:\s[^<>]*?)?)(/?)>")

PROJECT_VERSION = ("project", "version")
PARENT_VERSION = ("project", "parent", "version")
PROJECT_ARTIFACT_ID = ("project", "artifactId")
PROJECT_GROUP_ID = ("project", "groupId")
PARENT_GROUP_ID = ("project", "parent", "groupId")

_WANTED = (PROJECT_VERSION, PARENT_VERSION, PROJECT_ARTIFACT_ID,
           PROJECT_GROUP_ID, PARENT_GROUP_ID)


def _local(name: str) -> str:
    return name.split(":")[-1]


def locate_elements(text: str) -> Dict[Tuple[str, ...], Tuple[int, int]]:
    """Map element paths of interest to the (start, end) span of their text.

    Only the first occurrence of each path is kept.
    """
    scrubbed = _OPAQUE_RE.sub(lambda m: " " * len(m.group(0)), text)
    spans: Dict[Tuple[str, ...], Tuple[int, int]] = {}
    open_at: Dict[Tuple[str, ...], int] = {}
    stack = []

    for match in _TAG_RE.finditer(scrubbed):
        closing, name, _, self_closing = match.groups()
        name = _local(name)
        if closing:
            path = tuple(stack)
            if path in open_at and path not in spans:
                spans[path] = (open_at.pop(path), match.start())
            if stack:
                stack.pop()
            continue
        if self_closing:
            continue
        stack.append(name)
        path = tuple(stack)
        if path in _WANTED and path not in spans:
            open_at[path] = match.end()

    return spans


class PomDescriptor:
    """The project's build-metadata file holding its semantic version."""

    def __init__(self, path="pom.xml"):
        self.path = Path(path)

    def _read_text(self) -> str:
        if not self.path.exists():
            raise DescriptorError(f"Descriptor not found: {self.path}", path=str(self.path))
        with open(self.path, encoding="utf-8", newline="") as f:
            text = f.read()
        try:
            root = ET.fromstring(text.encode("utf-8"))
        except ET.ParseError as exc:
            raise DescriptorError(
                f"Malformed XML in {self.path}: {exc}", path=str(self.path)
            ) from exc
        if _local(root.tag.split("}")[-1]) != "project":
            raise DescriptorError(
                f"{self.path} is not a Maven POM (root element <{root.tag}>)",
                path=str(self.path),
            )
        return text

    def _value(self, text: str, spans: dict, key: tuple) -> Optional[str]:
        span = spans.get(key)
        if span is None:
            return None
        value = text[span[0]:span[1]].strip()
        return value or None

    def read_version_info(self) -> Tuple[str, bool]:
        """Return (version, inherited). inherited=True means it came from <parent>."""
        text = self._read_text()
        spans = locate_elements(text)
        own = self._value(text, spans, PROJECT_VERSION)
        if own:
            return own, False
        parent = self._value(text, spans, PARENT_VERSION)
        if parent:
            return parent, True
        raise DescriptorError(
            f"No <version> element under <project> in {self.path}", path=str(self.path)
        )

    def read_version(self) -> str:
        return self.read_version_info()[0]

    def write_version(self, new_version: str) -> str:
        """Replace the project's own version text; returns the previous value."""
        text = self._read_text()
        spans = locate_elements(text)
        span = spans.get(PROJECT_VERSION)
        if span is None:
            raise DescriptorError(
                f"{self.path} inherits its version from <parent>; "
                f"add a <version> element to the project before bumping",
                path=str(self.path),
            )
        start, end = span
        raw = text[start:end]
        old = raw.strip()
        if old:
            start += len(raw) - len(raw.lstrip())
            end -= len(raw) - len(raw.rstrip())
        updated = text[:start] + new_version + text[end:]

        with open(self.path, "w", encoding="utf-8", newline="") as f:
            f.write(updated)
        return old

    def artifact_id(self) -> Optional[str]:
        text = self._read_text()
        return self._value(text, locate_elements(text), PROJECT_ARTIFACT_ID)

    def group_id(self) -> Optional[str]:
        text = self._read_text()
        spans = locate_elements(text)
        return (self._value(text, spans, PROJECT_GROUP_ID)
                or self._value(text, spans, PARENT_GROUP_ID))

    def __repr__(self):
        return f"PomDescriptor(path={self.path})"
