# CUI // SP-CTI
# shipline Docker Operations: login, build, tag, push

"""
Container image operations for the publish_image stage.

Mirrors build-and-push.sh: log in to the registry only when credentials are
present (password on stdin, never argv), build a local image, tag it with the
full registry reference, push. The versioned tag is always pushed; `latest`
is pushed as well when image.tag_latest is set.

Usage:
    from shipline.ci.modules import docker_ops
    refs = docker_ops.publish(context=".", name="my-app", tag="1.0.4",
                              registry="nexus.example:8082", user=u, password=p)
"""

import logging
from typing import Dict, List, Mapping, Optional

from shipline.ci.modules.runner import run_command
from shipline.resilience.errors import CommandError, VersionFormatError
from shipline.resilience.retry import call_with_retry

logger = logging.getLogger("shipline.ci.docker")

LATEST_TAG = "latest"


def image_reference(registry: Optional[str], name: str, tag: str) -> str:
    """Return registry/name:tag (name:tag when no registry is configured)."""
    if not tag:
        raise VersionFormatError("Refusing to build an image reference with an empty tag", value=tag)
    registry = (registry or "").strip().rstrip("/")
    for prefix in ("https://", "http://"):
        if registry.startswith(prefix):
            registry = registry[len(prefix):]
    if registry:
        return f"{registry}/{name}:{tag}"
    return f"{name}:{tag}"


def login(registry: Optional[str], user: Optional[str], password: Optional[str],
          dry_run: bool = False, log=None) -> bool:
    """docker login with --password-stdin. Returns False when skipped (no credentials)."""
    log = log or logger
    if not (user and password):
        log.info("No registry credentials set, skipping docker login")
        return False
    args = ["docker", "login"]
    if registry:
        args.append(registry)
    args += ["-u", user, "--password-stdin"]
    log.info(f"Logging into registry {registry or 'docker.io'}...")
    run_command(args, input_text=password, secrets=[password], dry_run=dry_run,
                service="docker", log=log)
    return True


def build_image(context: str, local_ref: str, dockerfile: Optional[str] = None,
                build_args: Optional[Mapping[str, str]] = None,
                dry_run: bool = False, log=None):
    args = ["docker", "build", "-t", local_ref]
    if dockerfile:
        args += ["-f", dockerfile]
    for key, value in (build_args or {}).items():
        args += ["--build-arg", f"{key}={value}"]
    args.append(context)
    return run_command(args, dry_run=dry_run, timeout=1800, service="docker", log=log or logger)


def tag_image(source: str, target: str, dry_run: bool = False, log=None):
    return run_command(["docker", "tag", source, target], dry_run=dry_run,
                       service="docker", log=log or logger)


def push_image(ref: str, retries: int = 2, dry_run: bool = False, log=None):
    """docker push with exponential backoff on failure."""
    log = log or logger

    def _push():
        try:
            return run_command(["docker", "push", ref], dry_run=dry_run,
                               timeout=1800, service="docker", log=log)
        except CommandError as exc:
            # registry push failures are usually network/auth hiccups
            exc.retryable = True
            raise

    return call_with_retry(_push, max_retries=retries,
                           retryable_exceptions=(CommandError,))


def publish(
    context: str,
    name: str,
    tag: str,
    registry: Optional[str] = None,
    user: Optional[str] = None,
    password: Optional[str] = None,
    dockerfile: Optional[str] = None,
    build_args: Optional[Dict[str, str]] = None,
    tag_latest: bool = True,
    retries: int = 2,
    dry_run: bool = False,
    log=None,
) -> List[str]:
    """Login, build, tag and push. Returns the pushed references, versioned first."""
    log = log or logger
    login(registry, user, password, dry_run=dry_run, log=log)

    local_ref = f"{name}:{tag}"
    log.info(f"Building Docker image {local_ref}...")
    build_image(context, local_ref, dockerfile=dockerfile, build_args=build_args,
                dry_run=dry_run, log=log)

    tags = [tag]
    if tag_latest and tag != LATEST_TAG:
        tags.append(LATEST_TAG)

    pushed = []
    for t in tags:
        ref = image_reference(registry, name, t)
        if ref != local_ref:
            tag_image(local_ref, ref, dry_run=dry_run, log=log)
        log.info(f"Pushing {ref}...")
        push_image(ref, retries=retries, dry_run=dry_run, log=log)
        pushed.append(ref)

    log.info(f"Successfully pushed {pushed[0]}")
    return pushed
