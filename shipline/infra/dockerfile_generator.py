#!/usr/bin/env python3
# CUI // SP-CTI
"""Generate the runtime Dockerfile for the Maven-built jar.
JRE-only base image, the jar-with-dependencies copied in as app.jar, exec-form CMD."""

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from shipline.resilience.errors import ShiplineError
from shipline.versioning.descriptor import PomDescriptor

HEADER = (
    "# Generated: {timestamp}\n"
    "# Generator: shipline Dockerfile Generator\n"
)


def _header() -> str:
    return HEADER.format(timestamp=datetime.now(timezone.utc).isoformat())


def _write(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def _artifact_id(config: dict) -> str:
    docker = config.get("dockerfile", {})
    if docker.get("artifact_id"):
        return docker["artifact_id"]
    pom = Path(config["_project_dir"]) / config["project"]["descriptor"]
    try:
        return PomDescriptor(pom).artifact_id() or "app"
    except ShiplineError:
        return "app"


def render(config: dict) -> str:
    """Render Dockerfile text for a normalized shipline config."""
    docker = config.get("dockerfile", {})
    java_version = docker.get("java_version", 17)
    base_image = docker.get("base_image", f"eclipse-temurin:{java_version}-jre")
    port = docker.get("port")
    artifact_id = _artifact_id(config)

    lines = [
        _header().rstrip("\n"),
        f"FROM {base_image}",
        "ARG APP_VERSION=unknown",
        'LABEL org.opencontainers.image.version="${APP_VERSION}"',
        "WORKDIR /app",
        f"COPY target/{artifact_id}-*-jar-with-dependencies.jar app.jar",
    ]
    if port:
        lines.append(f"EXPOSE {port}")
    lines.append('CMD ["java","-jar","/app/app.jar"]')
    return "\n".join(lines) + "\n"


def write(config: dict, output: Optional[str] = None) -> Path:
    image = config.get("image", {})
    default = Path(config["_project_dir"]) / image.get("context", ".") / image.get("dockerfile", "Dockerfile")
    path = Path(output) if output else default
    return _write(path, render(config))
