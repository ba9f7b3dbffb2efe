# CUI // SP-CTI
# shipline Remote Deployment: ssh/scp to the target docker host

"""
Deploy a published image to a remote Docker host over SSH.

The remote side only needs sshd and docker. The sequence is the one the
Jenkins `sshagent` block ran by hand: optional registry login, pull, remove
the previous container (absent is fine), run the new one detached, then
confirm with `docker inspect` that it is running.

Usage:
    host = RemoteHost("deploy.example", user="ubuntu")
    deploy_container(host, "nexus:8082/my-app:1.0.4", "my-app", ports=["8080:8080"])
"""

import logging
import shlex
from typing import Iterable, List, Mapping, Optional, Sequence

from shipline.ci.modules.runner import run_command
from shipline.resilience.errors import CommandError, ConfigurationError
from shipline.resilience.retry import call_with_retry

logger = logging.getLogger("shipline.ci.remote")


class RemoteHost:
    """SSH connection parameters for the deployment target."""

    def __init__(self, host: str, user: str = "", port: int = 22,
                 identity_file: str = "", strict_host_key_checking: bool = False):
        if not host:
            raise ConfigurationError("deploy.host is required for the deploy stage",
                                     config_key="deploy.host")
        self.host = host
        self.user = user
        self.port = int(port)
        self.identity_file = identity_file
        self.strict_host_key_checking = strict_host_key_checking

    @property
    def target(self) -> str:
        return f"{self.user}@{self.host}" if self.user else self.host

    def _options(self) -> List[str]:
        opts = ["-o", "BatchMode=yes"]
        if not self.strict_host_key_checking:
            opts += ["-o", "StrictHostKeyChecking=no"]
        if self.identity_file:
            opts += ["-i", self.identity_file]
        return opts

    def ssh_args(self, remote_command: str) -> List[str]:
        return ["ssh"] + self._options() + ["-p", str(self.port), self.target, remote_command]

    def scp_args(self, local_path: str, remote_path: str) -> List[str]:
        # scp takes the port with a capital -P
        return (["scp"] + self._options() + ["-P", str(self.port), local_path,
                f"{self.target}:{remote_path}"])

    def __repr__(self):
        return f"RemoteHost({self.target}:{self.port})"


def run_remote(host: RemoteHost, remote_command: str, secrets: Iterable[str] = (),
               input_text: Optional[str] = None, check: bool = True,
               dry_run: bool = False, log=None):
    """Run remote_command over ssh; input_text is fed to the remote command's stdin."""
    return run_command(host.ssh_args(remote_command), input_text=input_text, secrets=secrets,
                       check=check, dry_run=dry_run, timeout=600, service="ssh",
                       log=log or logger)


def copy_files(host: RemoteHost, files: Sequence[str], remote_dir: str,
               dry_run: bool = False, log=None) -> List[str]:
    """Copy local files into remote_dir (created if missing). Returns remote paths."""
    log = log or logger
    if not files:
        return []
    if not remote_dir:
        raise ConfigurationError("deploy.remote_dir is required when deploy.files is set",
                                 config_key="deploy.remote_dir")
    run_remote(host, f"mkdir -p {shlex.quote(remote_dir)}", dry_run=dry_run, log=log)
    copied = []
    for path in files:
        log.info(f"Copying {path} to {host.target}:{remote_dir}")
        run_command(host.scp_args(str(path), remote_dir.rstrip("/") + "/"),
                    dry_run=dry_run, timeout=600, service="scp", log=log)
        copied.append(f"{remote_dir.rstrip('/')}/{str(path).split('/')[-1]}")
    return copied


def build_run_command(image_ref: str, container_name: str,
                      ports: Sequence[str] = (), env: Optional[Mapping[str, str]] = None,
                      restart: str = "unless-stopped") -> str:
    """Compose the remote `docker run -d` command line."""
    parts = ["docker", "run", "-d", "--name", container_name, "--restart", restart]
    for port in ports:
        parts += ["-p", str(port)]
    for key, value in (env or {}).items():
        parts += ["-e", f"{key}={value}"]
    parts.append(image_ref)
    return " ".join(shlex.quote(p) for p in parts)


def deploy_container(
    host: RemoteHost,
    image_ref: str,
    container_name: str,
    ports: Sequence[str] = (),
    env: Optional[Mapping[str, str]] = None,
    registry: Optional[str] = None,
    registry_user: Optional[str] = None,
    registry_password: Optional[str] = None,
    pull_retries: int = 2,
    dry_run: bool = False,
    log=None,
):
    """Pull image_ref on the remote host and replace the running container."""
    log = log or logger
    name = shlex.quote(container_name)

    if registry_user and registry_password:
        login_cmd = ["docker", "login"] + ([registry] if registry else []) + [
            "-u", registry_user, "--password-stdin"]
        log.info(f"Logging into registry on {host.target}...")
        run_remote(host, " ".join(shlex.quote(p) for p in login_cmd),
                   input_text=registry_password, secrets=[registry_password],
                   dry_run=dry_run, log=log)

    log.info(f"Pulling {image_ref} on {host.target}...")

    def _pull():
        try:
            return run_remote(host, f"docker pull {shlex.quote(image_ref)}",
                              dry_run=dry_run, log=log)
        except CommandError as exc:
            exc.retryable = True
            raise

    call_with_retry(_pull, max_retries=pull_retries, retryable_exceptions=(CommandError,))

    log.info(f"Replacing container {container_name}...")
    run_remote(host, f"docker rm -f {name} >/dev/null 2>&1 || true", dry_run=dry_run, log=log)
    result = run_remote(host, build_run_command(image_ref, container_name, ports, env),
                        dry_run=dry_run, log=log)
    return result


def verify_container(host: RemoteHost, container_name: str,
                     dry_run: bool = False, log=None) -> bool:
    """True when the named container is running on the remote host."""
    result = run_remote(
        host,
        f"docker inspect -f '{{{{.State.Running}}}}' {shlex.quote(container_name)}",
        check=False, dry_run=dry_run, log=log,
    )
    if result.dry_run:
        return True
    return result.returncode == 0 and result.stdout.strip() == "true"
