#!/usr/bin/env python3
# CUI // SP-CTI
"""Parse and validate shipline.yaml pipeline configuration.

Reads shipline.yaml from a project directory, applies defaults, applies
``SHIPLINE_*`` environment overrides (env wins over yaml, so a Jenkins job
can retarget a host without editing the repo) and validates cross-field
constraints. Credentials are never read from yaml; see :func:`credentials`.

Usage:
    shipline config --dir /path/to/project --json
    python -m shipline.project.config_loader --file shipline.yaml --validate
"""

import argparse
import json
import os
import sys
from copy import deepcopy
from pathlib import Path

import yaml

from shipline.resilience.errors import ConfigurationError
from shipline.versioning.extractor import ON_INVALID_POLICIES, STRATEGIES
from shipline.versioning.semver import BUMP_PARTS

CONFIG_FILENAME = "shipline.yaml"
CONFIG_VERSION = 1

PIPELINE_STAGES = [
    "check_skip",
    "bump_version",
    "build",
    "publish_image",
    "deploy",
    "commit_version",
]

BUMP_STRATEGIES = ["native", "maven"]

# ── Env-var override mapping ─────────────────────────────────────────────

_ENV_MAP = {
    "SHIPLINE_DESCRIPTOR": ("project", "descriptor"),
    "SHIPLINE_BUMP": ("versioning", "bump"),
    "SHIPLINE_BUMP_STRATEGY": ("versioning", "strategy"),
    "SHIPLINE_ON_INVALID_VERSION": ("versioning", "on_invalid"),
    "SHIPLINE_FALLBACK_VERSION": ("versioning", "fallback"),
    "SHIPLINE_REGISTRY": ("image", "registry"),
    "SHIPLINE_IMAGE_NAME": ("image", "name"),
    "SHIPLINE_PUSH_RETRIES": ("image", "push_retries"),
    "SHIPLINE_DEPLOY_HOST": ("deploy", "host"),
    "SHIPLINE_DEPLOY_USER": ("deploy", "user"),
    "SHIPLINE_DEPLOY_PORT": ("deploy", "port"),
    "SHIPLINE_DEPLOY_IDENTITY_FILE": ("deploy", "identity_file"),
    "SHIPLINE_CONTAINER_NAME": ("deploy", "container_name"),
    "SHIPLINE_GIT_REMOTE": ("git", "remote"),
    "SHIPLINE_GIT_BRANCH": ("git", "branch"),
    "SHIPLINE_GIT_REMOTE_URL": ("git", "remote_url"),
}

# (primary, fallback) env names; fallbacks match build-and-push.sh
_CREDENTIAL_ENV = {
    "registry_user": ("SHIPLINE_REGISTRY_USER", "NEXUS_USER"),
    "registry_password": ("SHIPLINE_REGISTRY_PASSWORD", "NEXUS_PASS"),
    "git_user": ("SHIPLINE_GIT_USER", "GIT_USERNAME"),
    "git_token": ("SHIPLINE_GIT_TOKEN", "GIT_PASSWORD"),
}


# ── Helpers ──────────────────────────────────────────────────────────────

def _deep_get(d: dict, keys: tuple, default=None):
    """Get a nested dict value by key path."""
    for k in keys:
        if not isinstance(d, dict):
            return default
        d = d.get(k, default)
    return d


def _deep_set(d: dict, keys: tuple, value):
    """Set a nested dict value by key path, creating intermediate dicts."""
    for k in keys[:-1]:
        d = d.setdefault(k, {})
    d[keys[-1]] = value


def _try_int(val):
    """Attempt to parse as int, return original on failure."""
    try:
        return int(val)
    except (ValueError, TypeError):
        return val


# ── Core functions ───────────────────────────────────────────────────────

def load_config(directory: str = None, file_path: str = None) -> dict:
    """Load and parse shipline.yaml from a directory or explicit path.

    Returns:
        dict with keys:
            raw (dict): Original yaml content.
            normalized (dict): Config with defaults and env overrides applied.
            file_path (str): Resolved file path.
            project_dir (str): Directory the pipeline operates in.
            valid (bool): True if no errors.
            errors (list[str]): Validation errors.
            warnings (list[str]): Validation warnings.
    """
    if file_path:
        config_path = Path(file_path)
    else:
        base = Path(directory) if directory else Path.cwd()
        config_path = base / CONFIG_FILENAME

    project_dir = Path(directory) if directory else config_path.parent

    result = {
        "raw": {},
        "normalized": {},
        "file_path": str(config_path),
        "project_dir": str(project_dir.resolve()),
        "valid": False,
        "errors": [],
        "warnings": [],
    }

    if config_path.exists():
        try:
            raw = yaml.safe_load(config_path.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            result["errors"].append(f"YAML parse error: {exc}")
            return result
        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            result["errors"].append("Config root must be a YAML mapping")
            return result
    else:
        raw = {}
        result["warnings"].append(f"Config not found: {config_path} (using defaults)")

    result["raw"] = raw

    version = raw.get("version")
    if version is not None and version != CONFIG_VERSION:
        result["warnings"].append(
            f"Config version {version} differs from expected {CONFIG_VERSION}"
        )

    normalized = _apply_defaults(deepcopy(raw))
    normalized = _apply_env_overrides(normalized)
    result["normalized"] = normalized

    errors, warnings = validate_config(normalized)
    result["errors"] = errors
    result["warnings"] += warnings
    result["valid"] = len(errors) == 0

    return result


def _apply_defaults(raw: dict) -> dict:
    """Apply defaults to raw yaml config."""
    config = deepcopy(raw)

    project = config.setdefault("project", {})
    project.setdefault("descriptor", "pom.xml")
    project.setdefault("name", None)

    versioning = config.setdefault("versioning", {})
    versioning.setdefault("bump", "patch")
    versioning.setdefault("strategy", "native")
    versioning.setdefault("on_invalid", "fail")
    versioning.setdefault("fallback", "latest")
    versioning.setdefault("extractors", list(STRATEGIES))

    build = config.setdefault("build", {})
    build.setdefault("maven", "mvn")
    build.setdefault("skip_tests", False)
    build.setdefault("args", [])

    image = config.setdefault("image", {})
    image.setdefault("registry", "")
    image.setdefault("name", project.get("name") or "my-app")
    image.setdefault("dockerfile", "Dockerfile")
    image.setdefault("context", ".")
    image.setdefault("tag_latest", True)
    image.setdefault("push_retries", 2)
    image.setdefault("build_args", {})

    deploy = config.setdefault("deploy", {})
    deploy.setdefault("enabled", True)
    deploy.setdefault("host", "")
    deploy.setdefault("user", "")
    deploy.setdefault("port", 22)
    deploy.setdefault("identity_file", "")
    deploy.setdefault("strict_host_key_checking", False)
    deploy.setdefault("container_name", image["name"])
    deploy.setdefault("ports", [])
    deploy.setdefault("env", {})
    deploy.setdefault("remote_dir", "")
    deploy.setdefault("files", [])
    deploy.setdefault("registry_login", True)

    git = config.setdefault("git", {})
    git.setdefault("remote", "origin")
    git.setdefault("branch", "main")
    git.setdefault("remote_url", "")
    git.setdefault("author_name", "shipline")
    git.setdefault("author_email", "shipline@localhost")
    git.setdefault("skip_marker", "[ci skip]")
    git.setdefault("commit_message", "ci: bump version to {version} " + git["skip_marker"])

    pipeline = config.setdefault("pipeline", {})
    pipeline.setdefault("skip", [])

    return config


def _apply_env_overrides(config: dict) -> dict:
    """Override config values from SHIPLINE_* environment variables."""
    for env_var, key_path in _ENV_MAP.items():
        val = os.environ.get(env_var)
        if val is not None:
            _deep_set(config, key_path, _try_int(val))
    return config


def validate_config(config: dict) -> tuple:
    """Validate cross-field constraints.

    Returns:
        (errors: list[str], warnings: list[str])
    """
    errors = []
    warnings = []

    bump = _deep_get(config, ("versioning", "bump"))
    if bump not in BUMP_PARTS:
        errors.append(f"versioning.bump must be one of {', '.join(BUMP_PARTS)} (got '{bump}')")

    strategy = _deep_get(config, ("versioning", "strategy"))
    if strategy not in BUMP_STRATEGIES:
        errors.append(
            f"versioning.strategy must be one of {', '.join(BUMP_STRATEGIES)} (got '{strategy}')"
        )

    on_invalid = _deep_get(config, ("versioning", "on_invalid"))
    if on_invalid not in ON_INVALID_POLICIES:
        errors.append(
            f"versioning.on_invalid must be one of {', '.join(ON_INVALID_POLICIES)} "
            f"(got '{on_invalid}')"
        )

    for name in _deep_get(config, ("versioning", "extractors"), []) or []:
        if name not in STRATEGIES:
            errors.append(f"Unknown versioning.extractors entry '{name}'")

    skip = _deep_get(config, ("pipeline", "skip"), []) or []
    for stage in skip:
        if stage not in PIPELINE_STAGES:
            errors.append(f"Unknown stage '{stage}' in pipeline.skip")

    deploy_enabled = (
        _deep_get(config, ("deploy", "enabled"), True) and "deploy" not in skip
    )
    if deploy_enabled and not _deep_get(config, ("deploy", "host")):
        warnings.append("deploy.host is empty; the deploy stage will fail unless skipped")

    port = _deep_get(config, ("deploy", "port"))
    if not isinstance(port, int) or not 0 < port < 65536:
        errors.append(f"deploy.port must be an integer between 1 and 65535 (got '{port}')")

    retries = _deep_get(config, ("image", "push_retries"))
    if not isinstance(retries, int) or retries < 0:
        errors.append(f"image.push_retries must be a non-negative integer (got '{retries}')")

    if not _deep_get(config, ("image", "registry")):
        warnings.append("image.registry is empty; images are pushed to Docker Hub")

    commit_message = str(_deep_get(config, ("git", "commit_message"), ""))
    try:
        commit_message.format(version="0.0.0")
    except (KeyError, IndexError, ValueError) as exc:
        errors.append(
            f"git.commit_message may only use the {{version}} placeholder "
            f"(literal braces as {{{{ }}}}): {type(exc).__name__} {exc}"
        )
    if "{version}" not in commit_message:
        warnings.append("git.commit_message has no {version} placeholder")

    marker = _deep_get(config, ("git", "skip_marker"))
    if marker and marker not in str(_deep_get(config, ("git", "commit_message"), "")):
        warnings.append(
            "git.commit_message does not contain git.skip_marker; "
            "the bump commit will trigger another release"
        )

    return errors, warnings


def require_config(directory: str = None, file_path: str = None) -> dict:
    """Load config and raise ConfigurationError unless valid.

    Returns the normalized config with ``_project_dir`` and ``_file_path`` set.
    """
    result = load_config(directory=directory, file_path=file_path)
    if not result["valid"]:
        raise ConfigurationError(
            "Invalid shipline configuration: " + "; ".join(result["errors"]),
            config_key=result["file_path"],
        )
    config = result["normalized"]
    config["_project_dir"] = result["project_dir"]
    config["_file_path"] = result["file_path"]
    config["_warnings"] = result["warnings"]
    return config


def credentials() -> dict:
    """Read registry and git credentials from the environment (Jenkins bindings)."""
    creds = {}
    for key, names in _CREDENTIAL_ENV.items():
        value = None
        for name in names:
            value = os.environ.get(name)
            if value:
                break
        creds[key] = value or None
    return creds


# ── CLI ──────────────────────────────────────────────────────────────────

def main(argv=None):
    parser = argparse.ArgumentParser(description="Parse and validate shipline.yaml")
    parser.add_argument("--dir", help="Project directory containing shipline.yaml")
    parser.add_argument("--file", help="Explicit path to shipline.yaml")
    parser.add_argument("--validate", action="store_true",
                        help="Validate only, print errors/warnings")
    parser.add_argument("--json", action="store_true", help="Output JSON")
    args = parser.parse_args(argv)

    result = load_config(directory=args.dir, file_path=args.file)

    if args.json:
        print(json.dumps(result, indent=2, default=str))
        return 0 if result["valid"] else 1

    for err in result["errors"]:
        print(f"ERROR: {err}")
    for warn in result["warnings"]:
        print(f"WARNING: {warn}")
    if result["valid"]:
        if args.validate:
            print("Config is valid.")
        else:
            print(yaml.safe_dump(result["normalized"], sort_keys=False))
    return 0 if result["valid"] else 1


if __name__ == "__main__":
    sys.exit(main())
