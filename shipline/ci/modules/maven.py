# CUI // SP-CTI
# shipline Maven Operations: version bump via plugins, evaluate, package

"""
Maven invocations used by the bump_version and build stages.

The maven bump strategy delegates the increment to build-helper and
versions-maven-plugin exactly as a Jenkins `sh` step would; the native
strategy (shipline.versioning) edits pom.xml itself and never calls here.

Usage:
    from shipline.ci.modules import maven
    maven.bump_version("/work/app", "patch")
    maven.evaluate_version("/work/app")     # "1.0.4"
    maven.package("/work/app", skip_tests=True)
"""

import logging
import shutil
from pathlib import Path
from typing import List, Optional, Sequence

from shipline.ci.modules.runner import run_command
from shipline.resilience.errors import VersionFormatError

logger = logging.getLogger("shipline.ci.maven")

# parsedVersion.* properties are set by build-helper:parse-version
NEW_VERSION_EXPRESSIONS = {
    "patch": "${parsedVersion.majorVersion}.${parsedVersion.minorVersion}"
             ".${parsedVersion.nextIncrementalVersion}",
    "minor": "${parsedVersion.majorVersion}.${parsedVersion.nextMinorVersion}.0",
    "major": "${parsedVersion.nextMajorVersion}.0.0",
}


def _base_args(executable: str, descriptor: Optional[str]) -> List[str]:
    args = [executable, "-B"]
    if descriptor and Path(descriptor).name != "pom.xml":
        args += ["-f", str(descriptor)]
    return args


def is_available(executable: str = "mvn") -> bool:
    return shutil.which(executable) is not None


def bump_version(project_dir, part: str = "patch", descriptor: Optional[str] = None,
                 executable: str = "mvn", dry_run: bool = False, log=None):
    """Increment the pom version in place with build-helper + versions:set."""
    if part not in NEW_VERSION_EXPRESSIONS:
        raise VersionFormatError(f"Unknown version part '{part}'", value=part)
    args = _base_args(executable, descriptor) + [
        "build-helper:parse-version",
        "versions:set",
        f"-DnewVersion={NEW_VERSION_EXPRESSIONS[part]}",
        "versions:commit",
    ]
    return run_command(args, cwd=project_dir, dry_run=dry_run, service="mvn", log=log or logger)


def evaluate_version(project_dir, descriptor: Optional[str] = None,
                     executable: str = "mvn", log=None) -> str:
    """Return project.version as Maven resolves it (empty string on failure)."""
    args = _base_args(executable, descriptor) + [
        "help:evaluate",
        "-Dexpression=project.version",
        "-q",
        "-DforceStdout",
    ]
    result = run_command(args, cwd=project_dir, check=False, timeout=300,
                         service="mvn", log=log or logger)
    if result.returncode != 0:
        return ""
    # -q still lets download noise through on some setups; the value is the last line
    lines = [line.strip() for line in result.stdout.splitlines() if line.strip()]
    return lines[-1] if lines else ""


def package(project_dir, skip_tests: bool = False, extra_args: Sequence[str] = (),
            descriptor: Optional[str] = None, executable: str = "mvn",
            dry_run: bool = False, log=None):
    """Run `mvn -B clean package`."""
    args = _base_args(executable, descriptor) + ["clean", "package"]
    if skip_tests:
        args.append("-DskipTests")
    args += list(extra_args)
    return run_command(args, cwd=project_dir, dry_run=dry_run, timeout=1800,
                       service="mvn", log=log or logger)


def find_artifact(project_dir, artifact_id: str) -> Optional[Path]:
    """Locate the built jar, preferring the jar-with-dependencies assembly."""
    target = Path(project_dir) / "target"
    for pattern in (f"{artifact_id}-*-jar-with-dependencies.jar", f"{artifact_id}-*.jar"):
        matches = sorted(
            p for p in target.glob(pattern)
            if not p.name.endswith(("-sources.jar", "-javadoc.jar"))
        )
        if matches:
            return matches[-1]
    return None
