#!/usr/bin/env python3
# CUI // SP-CTI
"""Shared pytest fixtures for the shipline test suite.

Provides a realistic pom.xml (parent block, dependencies, plugins, comments),
a project directory with shipline.yaml, a normalized config and a subprocess
stub so no test needs Maven, Docker, SSH or a network.
"""

import os
import subprocess
import sys
from pathlib import Path

import pytest
import yaml

# Ensure project root is on sys.path
BASE_DIR = Path(__file__).resolve().parent.parent
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))


SAMPLE_POM = """<?xml version="1.0" encoding="UTF-8"?>
<project xmlns="http://maven.apache.org/POM/4.0.0"
         xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance"
         xsi:schemaLocation="http://maven.apache.org/POM/4.0.0 http://maven.apache.org/xsd/maven-4.0.0.xsd">
    <modelVersion>4.0.0</modelVersion>

    <parent>
        <groupId>org.example</groupId>
        <artifactId>parent-pom</artifactId>
        <version>9.9.9</version>
    </parent>

    <!-- <version>0.0.0</version> must never be picked up -->
    <groupId>com.example</groupId>
    <artifactId>java-cicd-demo</artifactId>
    <version>1.0.3</version>
    <packaging>jar</packaging>

    <dependencies>
        <dependency>
            <groupId>junit</groupId>
            <artifactId>junit</artifactId>
            <version>4.13.2</version>
            <scope>test</scope>
        </dependency>
    </dependencies>

    <build>
        <plugins>
            <plugin>
                <artifactId>maven-assembly-plugin</artifactId>
                <version>3.6.0</version>
            </plugin>
        </plugins>
    </build>
</project>
"""

SAMPLE_CONFIG = {
    "version": 1,
    "project": {"name": "java-cicd-demo", "descriptor": "pom.xml"},
    "versioning": {"bump": "patch", "strategy": "native", "on_invalid": "fail"},
    "image": {"registry": "nexus.example.com:8082", "name": "my-app", "push_retries": 0},
    "deploy": {"host": "deploy.example.com", "user": "ubuntu", "ports": ["8080:8080"]},
    "git": {"branch": "main"},
}

_CLEARED_ENV = (
    "SHIPLINE_REGISTRY_USER", "SHIPLINE_REGISTRY_PASSWORD", "NEXUS_USER", "NEXUS_PASS",
    "SHIPLINE_GIT_USER", "SHIPLINE_GIT_TOKEN", "GIT_USERNAME", "GIT_PASSWORD",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Strip shipline/Jenkins credential and override variables from the environment."""
    for name in list(os.environ):
        if name.startswith("SHIPLINE_") or name in _CLEARED_ENV:
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def pom_file(tmp_path):
    path = tmp_path / "pom.xml"
    path.write_text(SAMPLE_POM, encoding="utf-8")
    return path


@pytest.fixture
def project_dir(tmp_path, pom_file):
    (tmp_path / "shipline.yaml").write_text(yaml.safe_dump(SAMPLE_CONFIG), encoding="utf-8")
    (tmp_path / "Dockerfile").write_text("FROM eclipse-temurin:17-jre\n", encoding="utf-8")
    return tmp_path


@pytest.fixture
def config(project_dir):
    from shipline.project.config_loader import require_config
    return require_config(directory=str(project_dir))


@pytest.fixture
def fake_subprocess(monkeypatch):
    """Replace subprocess.run in the runner; records calls, returns scripted results.

    Usage:
        fake_subprocess.responses.append((0, "out", ""))
        ... code under test ...
        fake_subprocess.calls[0]["args"]
    """

    class _Fake:
        def __init__(self):
            self.calls = []
            self.responses = []

        def __call__(self, args, **kwargs):
            self.calls.append({"args": list(args), **kwargs})
            rc, out, err = self.responses.pop(0) if self.responses else (0, "", "")
            return subprocess.CompletedProcess(args, rc, stdout=out, stderr=err)

    fake = _Fake()
    monkeypatch.setattr("shipline.ci.modules.runner.subprocess.run", fake)
    return fake
