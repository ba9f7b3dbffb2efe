# CUI // SP-CTI
# shipline Git Operations: identity, authenticated remote, commit-back, push

"""
Git operations for the commit_version and check_skip stages.

Uses the git CLI directly. Functions return (success, error) tuples the way
the workflow scripts expect; only configuration problems raise.

Usage:
    from shipline.ci.modules.git_ops import commit_changes, push
    committed, error = commit_changes("ci: bump version to 1.0.4 [ci skip]", ["pom.xml"], cwd=repo)
    success, error = push("origin", "main", cwd=repo)
"""

import logging
from typing import List, Optional, Sequence, Tuple
from urllib.parse import quote, urlsplit, urlunsplit

from shipline.ci.modules.runner import run_command
from shipline.resilience.errors import ConfigurationError

logger = logging.getLogger("shipline.ci.git")


def token_secrets(token: Optional[str]) -> List[str]:
    """Forms of token that can show up in git output (raw and URL-quoted)."""
    if not token:
        return []
    return sorted({token, quote(token, safe="")}, key=len, reverse=True)


def _git(args: list, cwd=None, secrets: Sequence[str] = (), dry_run: bool = False,
         log=None) -> Tuple[str, str, int]:
    """Run a git command."""
    result = run_command(["git"] + list(args), cwd=cwd, check=False, secrets=secrets,
                         dry_run=dry_run, timeout=300, service="git", log=log or logger)
    return result.stdout, result.stderr, result.returncode


def configure_identity(name: str, email: str, cwd=None, dry_run: bool = False,
                       log=None) -> Tuple[bool, Optional[str]]:
    """Set the repo-local author used for the bump commit."""
    for key, value in (("user.name", name), ("user.email", email)):
        _, stderr, rc = _git(["config", key, value], cwd=cwd, dry_run=dry_run, log=log)
        if rc != 0:
            return False, f"git config {key} failed: {stderr}"
    return True, None


def authenticated_url(url: str, user: Optional[str], token: Optional[str]) -> str:
    """Inject HTTPS credentials into a remote URL. SSH URLs are returned unchanged."""
    if not token:
        return url
    parts = urlsplit(url)
    if parts.scheme not in ("http", "https"):
        return url
    host = parts.hostname or ""
    if parts.port:
        host = f"{host}:{parts.port}"
    userinfo = f"{quote(user or 'git', safe='')}:{quote(token, safe='')}"
    return urlunsplit((parts.scheme, f"{userinfo}@{host}", parts.path, parts.query, parts.fragment))


def get_remote_url(remote: str = "origin", cwd=None,
                   secrets: Sequence[str] = ()) -> Optional[str]:
    stdout, _, rc = _git(["remote", "get-url", remote], cwd=cwd, secrets=secrets)
    return stdout if rc == 0 and stdout else None


def configure_remote(remote: str = "origin", url: Optional[str] = None,
                     user: Optional[str] = None, token: Optional[str] = None,
                     cwd=None, dry_run: bool = False, log=None) -> Tuple[bool, Optional[str]]:
    """Point remote at url (or its current URL) with credentials embedded."""
    secrets = token_secrets(token)
    base_url = url or get_remote_url(remote, cwd=cwd, secrets=secrets)
    if not base_url:
        raise ConfigurationError(
            f"git remote '{remote}' has no URL and git.remote_url is not set",
            config_key="git.remote_url",
        )
    target = authenticated_url(base_url, user, token)

    action = "add" if get_remote_url(remote, cwd=cwd, secrets=secrets) is None else "set-url"
    _, stderr, rc = _git(["remote", action, remote, target], cwd=cwd, secrets=secrets,
                         dry_run=dry_run, log=log)
    if rc != 0:
        return False, f"git remote configuration failed: {stderr}"
    return True, None


def has_changes(paths: Optional[Sequence[str]] = None, cwd=None) -> bool:
    """True when the given paths (or the whole tree) differ from HEAD."""
    args = ["status", "--porcelain"]
    if paths:
        args += ["--"] + list(paths)
    stdout, _, _ = _git(args, cwd=cwd)
    return bool(stdout.strip())


def commit_changes(message: str, paths: Optional[Sequence[str]] = None, cwd=None,
                   dry_run: bool = False, log=None) -> Tuple[bool, Optional[str]]:
    """Stage paths and commit them if they changed.

    Args:
        message: Commit message.
        paths: Files to stage. If None, stages tracked modified files
               (``git add -u``), never untracked ones.

    Returns:
        (committed, error). (False, None) means nothing to commit.
    """
    log = log or logger
    if not has_changes(paths, cwd=cwd):
        log.info("No changes to commit")
        return False, None

    if paths:
        _, stderr, rc = _git(["add", "--"] + list(paths), cwd=cwd, dry_run=dry_run, log=log)
    else:
        _, stderr, rc = _git(["add", "-u"], cwd=cwd, dry_run=dry_run, log=log)
    if rc != 0:
        return False, f"git add failed: {stderr}"

    _, stderr, rc = _git(["commit", "-m", message], cwd=cwd, dry_run=dry_run, log=log)
    if rc != 0:
        return False, f"git commit failed: {stderr}"

    return True, None


def push(remote: str = "origin", branch: str = "main", cwd=None, secrets: Sequence[str] = (),
         dry_run: bool = False, log=None) -> Tuple[bool, Optional[str]]:
    """Push HEAD to remote/branch (works from Jenkins' detached HEAD)."""
    _, stderr, rc = _git(["push", remote, f"HEAD:{branch}"], cwd=cwd, secrets=secrets,
                         dry_run=dry_run, log=log)
    if rc != 0:
        return False, f"git push failed: {stderr}"
    return True, None


def get_current_branch(cwd=None) -> Optional[str]:
    """Get the current branch name (None on detached HEAD)."""
    stdout, _, rc = _git(["branch", "--show-current"], cwd=cwd)
    return stdout if rc == 0 and stdout else None


def head_commit(cwd=None) -> Optional[str]:
    stdout, _, rc = _git(["rev-parse", "HEAD"], cwd=cwd)
    return stdout if rc == 0 and stdout else None


def last_commit_message(cwd=None) -> str:
    stdout, _, rc = _git(["log", "-1", "--pretty=%B"], cwd=cwd)
    return stdout if rc == 0 else ""


def should_skip_build(marker: str, cwd=None) -> bool:
    """True when HEAD is a commit shipline made itself (message carries marker)."""
    if not marker:
        return False
    return marker in last_commit_message(cwd=cwd)
