#!/usr/bin/env python3
# CUI // SP-CTI
"""Release rollback. Looks up the previous successful release in the history
ledger, redeploys its image over SSH and records the rollback as a release."""

import argparse
import json
import sys
from datetime import datetime, timezone

from shipline.ci.modules import history
from shipline.ci.modules.state import PipelineState
from shipline.ci.workflows.release import StageContext, deploy_image
from shipline.project.config_loader import require_config
from shipline.resilience.errors import ConfigurationError, ShiplineError
from shipline.utils import make_run_id, setup_logger


def rollback(config: dict, dry_run: bool = False, target_only: bool = False,
             creds: dict = None) -> dict:
    """Redeploy the last succeeded release before the current one.

    Returns result dict with status, versions and any error.
    """
    project_dir = config["_project_dir"]
    run_id = make_run_id()
    logger = setup_logger(run_id, "rollback", project_dir)
    ctx = StageContext(config, PipelineState(run_id, project_dir, logger), logger,
                       dry_run=dry_run, creds=creds)
    project = ctx.project_name()

    result = {
        "run_id": run_id,
        "project": project,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "dry_run": dry_run,
    }

    target_info = history.get_rollback_target(project, project_dir=project_dir)
    if "error" in target_info:
        result["status"] = "failed"
        result["error"] = target_info["error"]
        return result

    current = target_info["current"]
    target = target_info["rollback_target"]
    result["current_version"] = current["version"]
    result["target_version"] = target["version"]
    result["image"] = target["image"]

    if target_only:
        result["status"] = "target"
        return result

    if dry_run:
        deploy_image(ctx, target["image"])
        result["status"] = "dry_run"
        result["message"] = (
            f"Would roll back {project} from {current['version']} to {target['version']}"
        )
        return result

    release_id = history.record_release(
        run_id, project, target["version"], target["image"],
        host=config["deploy"].get("host") or None, kind="rollback",
        rollback_from=current["version"], project_dir=project_dir,
    )
    try:
        host = deploy_image(ctx, target["image"])
    except ShiplineError as exc:
        history.complete_release(release_id, "failed", project_dir=project_dir)
        logger.error(f"Rollback failed: {exc}")
        result["status"] = "failed"
        result["error"] = str(exc)
        return result

    history.complete_release(release_id, "succeeded", host=host, project_dir=project_dir)
    result["status"] = "succeeded"
    result["message"] = (
        f"Rolled back {project} from {current['version']} to {target['version']} on {host}"
    )
    logger.info(result["message"])
    return result


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------
def main(argv=None):
    parser = argparse.ArgumentParser(description="Redeploy the previous successful release")
    parser.add_argument("--dir", help="Project directory")
    parser.add_argument("--config", help="Explicit path to shipline.yaml")
    parser.add_argument("--dry-run", action="store_true",
                        help="Show what would happen without executing")
    parser.add_argument("--target-only", action="store_true",
                        help="Only show rollback target, don't execute")
    args = parser.parse_args(argv)

    try:
        config = require_config(directory=args.dir, file_path=args.config)
    except ConfigurationError as exc:
        print(f"[rollback] CONFIG ERROR: {exc}", file=sys.stderr)
        return 2

    result = rollback(config, dry_run=args.dry_run, target_only=args.target_only)
    print(json.dumps(result, indent=2, default=str))

    if result.get("status") == "succeeded":
        print(f"\n[rollback] SUCCESS: {result.get('message')}")
    elif result.get("status") == "dry_run":
        print(f"\n[rollback] DRY RUN: {result.get('message')}")
    elif result.get("status") == "target":
        print(f"\n[rollback] TARGET: {result.get('target_version')} ({result.get('image')})")
    else:
        print(f"\n[rollback] FAILED: {result.get('error')}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
