#!/usr/bin/env python3
# CUI // SP-CTI
# shipline Release: version bump, build, publish, deploy, commit-back

"""
shipline Release: the fixed, strictly sequential release pipeline.

Usage:
    shipline release [--dir DIR] [--run-id ID] [--skip deploy] [--dry-run]
    shipline bump|build|publish|deploy|commit --run-id ID     (one Jenkins stage)
    shipline version | history | rollback | generate | config

Workflow:
    1. check_skip      stop as not_built when HEAD is shipline's own bump commit
    2. bump_version    increment pom.xml version, re-extract and validate it
    3. build           mvn -B clean package
    4. publish_image   docker build/tag/push registry/name:<version> (+ latest)
    5. deploy          ssh: pull image, replace container, verify it runs
    6. commit_version  commit pom.xml with the new version and push it back
"""

import argparse
import json
import logging
import sys
import time
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

from shipline.ci.modules import docker_ops, git_ops, history, maven
from shipline.ci.modules.remote import RemoteHost, copy_files, deploy_container, verify_container
from shipline.ci.modules.state import PipelineState
from shipline.data_types import PipelineResult, StageResult
from shipline.project.config_loader import PIPELINE_STAGES, credentials, require_config
from shipline.resilience.errors import (
    ConfigurationError,
    ShiplineError,
    ShiplinePermanentError,
)
from shipline.utils import make_run_id, setup_logger
from shipline.versioning.descriptor import PomDescriptor
from shipline.versioning.extractor import extract_version
from shipline.versioning.semver import SemanticVersion

# CLI command name -> pipeline stage
STAGE_COMMANDS = {
    "bump": "bump_version",
    "build": "build",
    "publish": "publish_image",
    "deploy": "deploy",
    "commit": "commit_version",
}


class StageContext:
    """Everything a stage needs: config, run state, credentials, logger."""

    def __init__(self, config: dict, state: PipelineState, logger: logging.Logger,
                 dry_run: bool = False, creds: Optional[dict] = None):
        self.config = config
        self.state = state
        self.logger = logger
        self.dry_run = dry_run
        self.creds = creds if creds is not None else credentials()
        # status the running stage had in state before this invocation
        self.previous_status = "pending"

    @property
    def project_dir(self) -> Path:
        return Path(self.config["_project_dir"])

    @property
    def descriptor_path(self) -> Path:
        return self.project_dir / self.config["project"]["descriptor"]

    def section(self, name: str) -> dict:
        return self.config.get(name, {})

    def project_name(self) -> str:
        name = self.config["project"].get("name")
        if name:
            return name
        try:
            return PomDescriptor(self.descriptor_path).artifact_id() or self.config["image"]["name"]
        except ShiplineError:
            return self.config["image"]["name"]

    def require_version(self) -> str:
        version = self.state.get("version")
        if not version:
            raise ShiplinePermanentError(
                f"No version in run state {self.state.run_id}; run the bump_version stage first",
                service="state",
            )
        return version


# ---------------------------------------------------------------------------
# Stages
# ---------------------------------------------------------------------------
def stage_check_skip(ctx: StageContext) -> StageResult:
    marker = ctx.section("git").get("skip_marker", "")
    if git_ops.should_skip_build(marker, cwd=ctx.project_dir):
        ctx.logger.info(f"HEAD commit carries '{marker}', this run was triggered by a version bump")
        return StageResult(name="check_skip", status="succeeded",
                           message="version bump commit, nothing to release",
                           outputs={"skip": "true"})
    return StageResult(name="check_skip", status="succeeded", message="release required")


def stage_bump_version(ctx: StageContext) -> StageResult:
    versioning = ctx.section("versioning")
    part = versioning["bump"]
    strategy = versioning["strategy"]
    state = ctx.state

    if ctx.previous_status == "succeeded" and state.get("version"):
        version = state.get("version")
        ctx.logger.info(f"Version already bumped to {version} in run {state.run_id}")
        return StageResult(name="bump_version", status="succeeded",
                           message=f"already bumped to {version}",
                           outputs={"version": version})

    pom = PomDescriptor(ctx.descriptor_path)
    previous, inherited = pom.read_version_info()
    if inherited:
        raise ShiplinePermanentError(
            f"{ctx.descriptor_path} inherits version {previous} from its parent; cannot bump",
            service="versioning",
        )
    current = SemanticVersion.parse(previous)
    expected = str(current.bump(part))
    ctx.logger.info(f"Current version: {previous} (bumping {part} via {strategy})")

    if strategy == "maven":
        maven.bump_version(ctx.project_dir, part, descriptor=str(ctx.descriptor_path),
                           executable=ctx.section("build")["maven"],
                           dry_run=ctx.dry_run, log=ctx.logger)
    elif not ctx.dry_run:
        pom.write_version(expected)

    if ctx.dry_run:
        version, valid, used = expected, True, "predicted"
    else:
        extraction = extract_version(
            ctx.descriptor_path,
            project_dir=ctx.project_dir,
            strategies=versioning["extractors"],
            on_invalid=versioning["on_invalid"],
            fallback=versioning["fallback"],
            maven_executable=ctx.section("build")["maven"],
            log=ctx.logger,
        )
        version, valid, used = extraction.version, extraction.valid, extraction.strategy
        if valid and version != expected:
            ctx.logger.warning(f"Extracted version {version} differs from expected {expected}")

    state.update(version=version, previous_version=previous, version_strategy=used,
                 version_valid=valid, project=ctx.project_name())
    ctx.logger.info(f"New version: {version} (extracted via {used})")
    return StageResult(name="bump_version", status="succeeded",
                       message=f"{previous} -> {version}",
                       outputs={"version": version, "previous_version": previous})


def stage_build(ctx: StageContext) -> StageResult:
    build = ctx.section("build")
    ctx.logger.info("Building application with Maven...")
    maven.package(ctx.project_dir, skip_tests=build["skip_tests"], extra_args=build["args"],
                  descriptor=str(ctx.descriptor_path), executable=build["maven"],
                  dry_run=ctx.dry_run, log=ctx.logger)

    outputs = {}
    artifact_id = PomDescriptor(ctx.descriptor_path).artifact_id()
    artifact = maven.find_artifact(ctx.project_dir, artifact_id) if artifact_id else None
    if artifact:
        ctx.state.update(artifact=str(artifact))
        outputs["artifact"] = str(artifact)
        ctx.logger.info(f"Built {artifact.name}")
    elif not ctx.dry_run:
        ctx.logger.warning(f"No jar for {artifact_id} found under target/")
    return StageResult(name="build", status="succeeded", message="mvn package", outputs=outputs)


def stage_publish_image(ctx: StageContext) -> StageResult:
    image = ctx.section("image")
    version = ctx.require_version()
    if ctx.state.get("version_valid") is False:
        ctx.logger.warning(f"Publishing with fallback tag '{version}'")

    build_args = dict(image["build_args"])
    build_args.setdefault("APP_VERSION", version)
    context = ctx.project_dir / image["context"]
    dockerfile = context / image["dockerfile"]

    refs = docker_ops.publish(
        context=str(context),
        name=image["name"],
        tag=version,
        registry=image["registry"],
        user=ctx.creds.get("registry_user"),
        password=ctx.creds.get("registry_password"),
        dockerfile=str(dockerfile),
        build_args=build_args,
        tag_latest=image["tag_latest"],
        retries=image["push_retries"],
        dry_run=ctx.dry_run,
        log=ctx.logger,
    )
    ctx.state.update(image=refs[0], images=refs)

    if not ctx.dry_run:
        release_id = history.record_release(
            ctx.state.run_id, ctx.project_name(), version, refs[0],
            host=ctx.section("deploy").get("host") or None,
            project_dir=str(ctx.project_dir),
        )
        ctx.state.update(release_id=release_id, release_status="in_progress")
    return StageResult(name="publish_image", status="succeeded", message=refs[0],
                       outputs={"image": refs[0]})


def deploy_image(ctx: StageContext, image_ref: str) -> str:
    """Deploy image_ref to the configured host; returns the host name."""
    deploy = ctx.section("deploy")
    host = RemoteHost(deploy["host"], user=deploy["user"], port=deploy["port"],
                      identity_file=deploy["identity_file"],
                      strict_host_key_checking=deploy["strict_host_key_checking"])

    files = [str(ctx.project_dir / f) for f in deploy["files"]]
    copy_files(host, files, deploy["remote_dir"], dry_run=ctx.dry_run, log=ctx.logger)

    login = deploy["registry_login"]
    deploy_container(
        host, image_ref, deploy["container_name"],
        ports=deploy["ports"], env=deploy["env"],
        registry=ctx.section("image")["registry"],
        registry_user=ctx.creds.get("registry_user") if login else None,
        registry_password=ctx.creds.get("registry_password") if login else None,
        pull_retries=ctx.section("image")["push_retries"],
        dry_run=ctx.dry_run, log=ctx.logger,
    )
    if not verify_container(host, deploy["container_name"], dry_run=ctx.dry_run, log=ctx.logger):
        raise ShiplinePermanentError(
            f"Container {deploy['container_name']} is not running on {host.target} after deploy",
            service="docker",
        )
    return deploy["host"]


def stage_deploy(ctx: StageContext) -> StageResult:
    image_ref = ctx.state.get("image")
    if not image_ref:
        raise ShiplinePermanentError(
            f"No image in run state {ctx.state.run_id}; run the publish_image stage first",
            service="state",
        )
    ctx.logger.info(f"Deploying {image_ref} to {ctx.section('deploy').get('host') or '?'}...")
    try:
        host = deploy_image(ctx, image_ref)
    except ShiplineError:
        finalize_release(ctx, "failed")
        raise
    ctx.state.update(host=host)
    finalize_release(ctx, "succeeded")
    return StageResult(name="deploy", status="succeeded", message=f"{image_ref} on {host}",
                       outputs={"host": host})


def stage_commit_version(ctx: StageContext) -> StageResult:
    git = ctx.section("git")
    version = ctx.require_version()
    if ctx.state.get("version_valid") is False:
        ctx.logger.warning(f"Version '{version}' is a fallback value, not committing")
        return StageResult(name="commit_version", status="skipped",
                           message="fallback version, nothing committed")

    cwd = ctx.project_dir
    descriptor = str(ctx.descriptor_path.relative_to(cwd))

    ok, error = git_ops.configure_identity(git["author_name"], git["author_email"],
                                           cwd=cwd, dry_run=ctx.dry_run, log=ctx.logger)
    if not ok:
        raise ShiplinePermanentError(error, service="git")

    token = ctx.creds.get("git_token")
    if token or git["remote_url"]:
        ok, error = git_ops.configure_remote(git["remote"], url=git["remote_url"] or None,
                                             user=ctx.creds.get("git_user"), token=token,
                                             cwd=cwd, dry_run=ctx.dry_run, log=ctx.logger)
        if not ok:
            raise ShiplinePermanentError(error, service="git")

    message = git["commit_message"].format(version=version)
    committed, error = git_ops.commit_changes(message, [descriptor], cwd=cwd,
                                              dry_run=ctx.dry_run, log=ctx.logger)
    if error:
        raise ShiplinePermanentError(error, service="git")
    if not committed:
        return StageResult(name="commit_version", status="succeeded",
                           message=f"{descriptor} unchanged, nothing to commit")

    ok, error = git_ops.push(git["remote"], git["branch"], cwd=cwd,
                             secrets=git_ops.token_secrets(token),
                             dry_run=ctx.dry_run, log=ctx.logger)
    if not ok:
        raise ShiplinePermanentError(error, service="git")

    commit = git_ops.head_commit(cwd=cwd) or ""
    ctx.state.update(commit=commit)
    ctx.logger.info(f"Committed and pushed: {message}")
    return StageResult(name="commit_version", status="succeeded", message=message,
                       outputs={"commit": commit})


STAGE_FUNCS: Dict[str, Callable[[StageContext], StageResult]] = {
    "check_skip": stage_check_skip,
    "bump_version": stage_bump_version,
    "build": stage_build,
    "publish_image": stage_publish_image,
    "deploy": stage_deploy,
    "commit_version": stage_commit_version,
}


def finalize_release(ctx: StageContext, status: str) -> None:
    """Close the history row opened by publish_image, once.

    "published" marks an image that was pushed but never deployed by this run;
    only "succeeded" rows are rollback targets.
    """
    release_id = ctx.state.get("release_id")
    if not release_id or ctx.state.get("release_status") != "in_progress" or ctx.dry_run:
        return
    history.complete_release(release_id, status, host=ctx.state.get("host"),
                             project_dir=str(ctx.project_dir))
    ctx.state.update(release_status=status)


def run_stage(name: str, ctx: StageContext) -> StageResult:
    """Run one stage, recording its status in state.

    ShiplineError becomes a failed StageResult. Any other exception is recorded
    as a failed stage and re-raised.
    """
    func = STAGE_FUNCS[name]
    ctx.previous_status = ctx.state.stage_status(name)
    ctx.state.mark_stage(name, "running")
    ctx.state.save(name)
    ctx.logger.info(f"=== Stage: {name} ===")
    started = time.monotonic()
    result = None
    try:
        result = func(ctx)
    except ShiplineError as exc:
        ctx.logger.error(f"Stage {name} failed: {exc}")
        result = StageResult(name=name, status="failed", error=str(exc),
                             error_type=type(exc).__name__)
    finally:
        if result is None:
            ctx.logger.error(f"Stage {name} crashed")
            ctx.state.mark_stage(name, "failed", "unexpected error")
            ctx.state.save(name)
    result.duration_ms = int((time.monotonic() - started) * 1000)
    ctx.state.mark_stage(name, result.status, result.error or result.message)
    ctx.state.save(name)
    return result


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------
def run_pipeline(config: dict, run_id: Optional[str] = None, skip: Iterable[str] = (),
                 dry_run: bool = False, logger: Optional[logging.Logger] = None,
                 creds: Optional[dict] = None) -> PipelineResult:
    """Run every stage in order; the first failure stops the run."""
    run_id = run_id or make_run_id()
    project_dir = config["_project_dir"]
    logger = logger or setup_logger(run_id, "release", project_dir)
    state = PipelineState.load(run_id, project_dir, logger)
    ctx = StageContext(config, state, logger, dry_run=dry_run, creds=creds)

    skipped = set(config.get("pipeline", {}).get("skip", [])) | set(skip)
    unknown = skipped - set(PIPELINE_STAGES)
    if unknown:
        raise ConfigurationError(f"Unknown stage(s) to skip: {', '.join(sorted(unknown))}",
                                 config_key="pipeline.skip")

    for warning in config.get("_warnings", []):
        logger.warning(warning)
    logger.info(f"shipline release starting, run_id: {run_id}{' (dry run)' if dry_run else ''}")

    result = PipelineResult(run_id=run_id, status="succeeded")
    not_built = False

    for name in PIPELINE_STAGES:
        if not_built or name in skipped:
            state.mark_stage(name, "skipped")
            result.stages.append(StageResult(name=name, status="skipped"))
            continue

        stage_result = run_stage(name, ctx)
        result.stages.append(stage_result)

        if stage_result.status == "failed":
            result.status = "failed"
            result.error = f"{name}: {stage_result.error}"
            break
        if name == "check_skip" and stage_result.outputs.get("skip") == "true":
            not_built = True
            result.status = "not_built"

    if result.status == "succeeded":
        finalize_release(ctx, "published")
        if dry_run:
            result.status = "dry_run"
    elif result.status == "failed":
        finalize_release(ctx, "failed")

    result.version = state.get("version")
    result.previous_version = state.get("previous_version")
    result.image = state.get("image")
    state.save("release")

    logger.info(f"shipline release finished: {result.status}"
                + (f" ({result.error})" if result.error else ""))
    return result


def run_single_stage(config: dict, stage: str, run_id: str, dry_run: bool = False,
                     logger: Optional[logging.Logger] = None,
                     creds: Optional[dict] = None) -> StageResult:
    """Run one stage against an existing run's state (one Jenkins stage)."""
    project_dir = config["_project_dir"]
    logger = logger or setup_logger(run_id, stage, project_dir)
    state = PipelineState.load(run_id, project_dir, logger)
    ctx = StageContext(config, state, logger, dry_run=dry_run, creds=creds)
    result = run_stage(stage, ctx)
    if stage == "commit_version" and result.status != "failed":
        finalize_release(ctx, "published")
        state.save(stage)
    return result


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------
def _print_result(result, as_json: bool) -> None:
    if as_json:
        print(json.dumps(result.model_dump(), indent=2, default=str))
        return
    if isinstance(result, PipelineResult):
        for stage in result.stages:
            line = f"  {stage.name:<15} {stage.status}"
            if stage.error or stage.message:
                line += f"  {stage.error or stage.message}"
            print(line)
        print(f"\n[shipline] {result.status.upper()}: run {result.run_id}"
              + (f", version {result.version}" if result.version else "")
              + (f", image {result.image}" if result.image else ""))
    else:
        print(f"[shipline] {result.name}: {result.status.upper()}"
              + (f"  {result.error or result.message}" if (result.error or result.message) else ""))


def _exit_code(result) -> int:
    """0 on success, 2 when a stage failed on configuration, 1 otherwise."""
    if result.status != "failed":
        return 0
    stages = result.stages if isinstance(result, PipelineResult) else [result]
    if any(s.error_type == "ConfigurationError" for s in stages if s.status == "failed"):
        return 2
    return 1


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--dir", help="Project directory (default: cwd)")
    parser.add_argument("--config", help="Explicit path to shipline.yaml")
    parser.add_argument("--json", action="store_true", help="Output JSON")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shipline",
        description="Version-bump, build, publish, deploy and commit-back pipeline",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("release", help="Run the full pipeline")
    _add_common(p)
    p.add_argument("--run-id", help="Run ID (default: new)")
    p.add_argument("--skip", action="append", default=[], choices=PIPELINE_STAGES,
                   help="Stage to skip (repeatable)")
    p.add_argument("--dry-run", action="store_true", help="Log commands without executing")

    for command, stage in STAGE_COMMANDS.items():
        p = sub.add_parser(command, help=f"Run only the {stage} stage")
        _add_common(p)
        p.add_argument("--run-id", required=True, help="Run ID shared by all stages")
        p.add_argument("--dry-run", action="store_true", help="Log commands without executing")
        p.add_argument("--pipe", action="store_true",
                       help="Read state from stdin and write it to stdout")

    p = sub.add_parser("version", help="Print the descriptor's current version")
    _add_common(p)

    p = sub.add_parser("history", help="List recorded releases")
    _add_common(p)
    p.add_argument("--limit", type=int, default=20)

    p = sub.add_parser("rollback", help="Redeploy the previous successful release")
    _add_common(p)
    p.add_argument("--dry-run", action="store_true")
    p.add_argument("--target-only", action="store_true", help="Only show rollback target")

    p = sub.add_parser("generate", help="Generate Jenkinsfile or Dockerfile")
    _add_common(p)
    p.add_argument("kind", choices=["jenkinsfile", "dockerfile"])
    p.add_argument("--output", help="Output path (default: project dir)")
    p.add_argument("--stdout", action="store_true", help="Print instead of writing")

    p = sub.add_parser("config", help="Show or validate shipline.yaml")
    _add_common(p)
    p.add_argument("--validate", action="store_true")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "config":
        from shipline.project.config_loader import main as config_main
        forwarded = []
        if args.dir:
            forwarded += ["--dir", args.dir]
        if args.config:
            forwarded += ["--file", args.config]
        if args.validate:
            forwarded.append("--validate")
        if args.json:
            forwarded.append("--json")
        return config_main(forwarded)

    try:
        config = require_config(directory=args.dir, file_path=args.config)
    except ConfigurationError as exc:
        print(f"[shipline] CONFIG ERROR: {exc}", file=sys.stderr)
        return 2

    try:
        if args.command == "release":
            result = run_pipeline(config, run_id=args.run_id, skip=args.skip, dry_run=args.dry_run)
            _print_result(result, args.json)
            return _exit_code(result)

        if args.command in STAGE_COMMANDS:
            stage = STAGE_COMMANDS[args.command]
            if args.pipe:
                piped = PipelineState.from_stdin(config["_project_dir"])
                if piped is not None:
                    stored = PipelineState.load(args.run_id, config["_project_dir"])
                    stored.update(**piped.to_dict())
                    stored.save("pipe")
            result = run_single_stage(config, stage, args.run_id, dry_run=args.dry_run)
            if args.pipe:
                PipelineState.load(args.run_id, config["_project_dir"]).to_stdout()
            else:
                _print_result(result, args.json)
            return _exit_code(result)

        if args.command == "version":
            pom = PomDescriptor(Path(config["_project_dir"]) / config["project"]["descriptor"])
            version, inherited = pom.read_version_info()
            if args.json:
                print(json.dumps({"version": version, "inherited": inherited}))
            else:
                print(version)
            return 0

        if args.command == "history":
            rows = history.list_releases(limit=args.limit, project_dir=config["_project_dir"])
            if args.json:
                print(json.dumps(rows, indent=2, default=str))
            else:
                for row in rows:
                    print(f"  #{row['id']:<4} {row['version']:<12} {row['status']:<12} "
                          f"{row['image']}  {row['created_at']}")
            return 0

        if args.command == "rollback":
            from shipline.ci.workflows.rollback import rollback
            result = rollback(config, dry_run=args.dry_run, target_only=args.target_only)
            print(json.dumps(result, indent=2, default=str))
            return 0 if result.get("status") in ("succeeded", "dry_run", "target") else 1

        if args.command == "generate":
            from shipline.infra import dockerfile_generator, jenkinsfile_generator
            generator = (jenkinsfile_generator if args.kind == "jenkinsfile"
                         else dockerfile_generator)
            content = generator.render(config)
            if args.stdout:
                print(content)
            else:
                path = generator.write(config, args.output)
                print(f"[shipline] wrote {path}")
            return 0

    except ConfigurationError as exc:
        print(f"[shipline] CONFIG ERROR: {exc}", file=sys.stderr)
        return 2
    except ShiplineError as exc:
        print(f"[shipline] FAILED: {exc}", file=sys.stderr)
        return 1

    parser.error(f"Unknown command {args.command}")
    return 2


if __name__ == "__main__":
    sys.exit(main())
