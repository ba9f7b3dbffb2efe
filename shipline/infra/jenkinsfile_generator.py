#!/usr/bin/env python3
# CUI // SP-CTI
"""Generate the declarative Jenkinsfile that drives shipline.
One Jenkins stage per pipeline stage, all sharing run id ${BUILD_TAG}; registry
and git credentials are bound with withCredentials, the deploy key with sshagent."""

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

HEADER = (
    "// Generated: {timestamp}\n"
    "// Generator: shipline Jenkinsfile Generator\n"
)

# (Jenkins stage title, shipline command, pipeline stage)
STAGES = [
    ("Increment Version", "bump", "bump_version"),
    ("Build App", "build", "build"),
    ("Build & Push Image", "publish", "publish_image"),
    ("Deploy", "deploy", "deploy"),
    ("Commit Version Update", "commit", "commit_version"),
]

DEFAULT_CREDENTIALS = {
    "registry": "docker-registry-credentials",
    "git": "git-credentials",
    "ssh": "deploy-ssh-key",
}


def _header() -> str:
    return HEADER.format(timestamp=datetime.now(timezone.utc).isoformat())


def _write(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def _step(command: str, stage: str, creds: dict) -> str:
    sh = f"sh 'shipline {command} --run-id ${{BUILD_TAG}}'"
    if stage == "publish_image":
        return (
            f"withCredentials([usernamePassword(credentialsId: '{creds['registry']}', "
            f"usernameVariable: 'SHIPLINE_REGISTRY_USER', "
            f"passwordVariable: 'SHIPLINE_REGISTRY_PASSWORD')]) {{\n"
            f"                    {sh}\n"
            f"                }}"
        )
    if stage == "deploy":
        return (
            f"withCredentials([usernamePassword(credentialsId: '{creds['registry']}', "
            f"usernameVariable: 'SHIPLINE_REGISTRY_USER', "
            f"passwordVariable: 'SHIPLINE_REGISTRY_PASSWORD')]) {{\n"
            f"                    sshagent(['{creds['ssh']}']) {{\n"
            f"                        {sh}\n"
            f"                    }}\n"
            f"                }}"
        )
    if stage == "commit_version":
        return (
            f"withCredentials([usernamePassword(credentialsId: '{creds['git']}', "
            f"usernameVariable: 'SHIPLINE_GIT_USER', "
            f"passwordVariable: 'SHIPLINE_GIT_TOKEN')]) {{\n"
            f"                    {sh}\n"
            f"                }}"
        )
    return sh


def render(config: dict) -> str:
    """Render the Jenkinsfile text for a normalized shipline config."""
    jenkins = config.get("jenkins", {})
    creds = {**DEFAULT_CREDENTIALS, **jenkins.get("credentials", {})}
    skipped = set(config.get("pipeline", {}).get("skip", []))
    if not config.get("deploy", {}).get("enabled", True):
        skipped.add("deploy")
    marker = config.get("git", {}).get("skip_marker", "[ci skip]")
    tools = jenkins.get("tools", {"maven": "maven-3", "jdk": "jdk-17"})

    tool_lines = "\n".join(f"        {k} '{v}'" for k, v in tools.items())
    stage_blocks = []
    for title, command, stage in STAGES:
        if stage in skipped:
            continue
        stage_blocks.append(
            f"        stage('{title}') {{\n"
            f"            when {{ expression {{ env.SHIPLINE_SKIP != 'true' }} }}\n"
            f"            steps {{\n"
            f"                {_step(command, stage, creds)}\n"
            f"            }}\n"
            f"        }}"
        )

    check = ""
    if "check_skip" not in skipped:
        check = (
            "        stage('Check Skip') {\n"
            "            steps {\n"
            "                script {\n"
            "                    def msg = sh(script: 'git log -1 --pretty=%B', returnStdout: true).trim()\n"
            f"                    if (msg.contains('{marker}')) {{\n"
            "                        env.SHIPLINE_SKIP = 'true'\n"
            "                        currentBuild.result = 'NOT_BUILT'\n"
            "                    }\n"
            "                }\n"
            "            }\n"
            "        }\n"
        )

    return (
        f"{_header()}"
        "pipeline {\n"
        "    agent any\n\n"
        "    options {\n"
        "        disableConcurrentBuilds()\n"
        "        buildDiscarder(logRotator(numToKeepStr: '10'))\n"
        "    }\n\n"
        "    tools {\n"
        f"{tool_lines}\n"
        "    }\n\n"
        "    stages {\n"
        f"{check}"
        + "\n".join(stage_blocks) + "\n"
        "    }\n\n"
        "    post {\n"
        "        always {\n"
        "            archiveArtifacts artifacts: '.shipline/runs/**/*', allowEmptyArchive: true\n"
        "        }\n"
        "    }\n"
        "}\n"
    )


def write(config: dict, output: Optional[str] = None) -> Path:
    path = Path(output) if output else Path(config["_project_dir"]) / "Jenkinsfile"
    return _write(path, render(config))
