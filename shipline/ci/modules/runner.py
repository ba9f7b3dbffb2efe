# CUI // SP-CTI
# shipline Command Runner: one place where external tools are executed

"""
Run external commands (mvn, docker, ssh, scp, git) for pipeline stages.

Every stage funnels through run_command so that secrets are masked the same
way in logs, results and errors, missing executables and timeouts map onto
the shipline error hierarchy, and --dry-run is honoured uniformly.

Usage:
    from shipline.ci.modules.runner import run_command
    result = run_command(["docker", "push", ref], secrets=[password])
    result = run_command(["git", "status", "--porcelain"], check=False)
"""

import logging
import os
import shlex
import subprocess
import time
from pathlib import Path
from typing import Iterable, Mapping, Optional, Sequence

from shipline.data_types import CommandResult
from shipline.resilience.errors import CommandError, CommandTimeoutError, ToolNotFoundError

logger = logging.getLogger("shipline.ci.runner")

MASK = "****"
DEFAULT_TIMEOUT = 900


def mask_secrets(text: str, secrets: Iterable[Optional[str]] = ()) -> str:
    """Replace every non-empty secret in text with the mask, longest first."""
    if not text:
        return text
    for secret in sorted((s for s in secrets if s), key=len, reverse=True):
        text = text.replace(secret, MASK)
    return text


def format_command(args: Sequence[str], secrets: Iterable[Optional[str]] = ()) -> str:
    secrets = list(secrets)
    return " ".join(shlex.quote(mask_secrets(str(a), secrets)) for a in args)


def run_command(
    args: Sequence[str],
    cwd=None,
    env: Optional[Mapping[str, str]] = None,
    input_text: Optional[str] = None,
    timeout: Optional[float] = DEFAULT_TIMEOUT,
    secrets: Iterable[Optional[str]] = (),
    dry_run: bool = False,
    check: bool = True,
    service: Optional[str] = None,
    log: Optional[logging.Logger] = None,
) -> CommandResult:
    """Run a command and capture its output.

    Raises:
        ToolNotFoundError: executable missing from PATH.
        CommandTimeoutError: command exceeded timeout.
        CommandError: non-zero exit and check=True.
    """
    log = log or logger
    args = [str(a) for a in args]
    secrets = [s for s in secrets if s]
    masked_args = [mask_secrets(a, secrets) for a in args]
    service = service or Path(args[0]).name
    where = f" (cwd={cwd})" if cwd else ""

    if dry_run:
        log.info(f"[dry-run] {format_command(args, secrets)}{where}")
        return CommandResult(args=masked_args, returncode=0, dry_run=True)

    log.debug(f"$ {format_command(args, secrets)}{where}")

    full_env = None
    if env:
        full_env = dict(os.environ)
        full_env.update({k: str(v) for k, v in env.items()})

    started = time.monotonic()
    try:
        proc = subprocess.run(
            args,
            cwd=str(cwd) if cwd else None,
            env=full_env,
            input=input_text,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except FileNotFoundError as exc:
        raise ToolNotFoundError(service) from exc
    except subprocess.TimeoutExpired as exc:
        raise CommandTimeoutError(
            f"{format_command(args, secrets)} timed out after {timeout}s",
            service=service,
            timeout=timeout or 0,
        ) from exc

    result = CommandResult(
        args=masked_args,
        returncode=proc.returncode,
        stdout=mask_secrets((proc.stdout or "").strip(), secrets),
        stderr=mask_secrets((proc.stderr or "").strip(), secrets),
        duration_ms=int((time.monotonic() - started) * 1000),
    )

    if result.stdout:
        log.debug(result.stdout)
    if result.returncode != 0:
        log.debug(f"exit {result.returncode}: {result.stderr}")
        if check:
            detail = result.stderr or result.stdout
            raise CommandError(
                f"{service} failed (exit {result.returncode}): {detail}",
                args=masked_args,
                returncode=result.returncode,
                stderr=result.stderr,
                service=service,
            )

    return result
