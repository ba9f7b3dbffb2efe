# CUI // SP-CTI
# shipline Utilities: run IDs, run directories, logger setup

"""Utility functions shared by every pipeline stage.

Provides run ID generation, the per-run working directory layout and the
dual-output (file + console) logger each stage writes to.
"""

import logging
import sys
import uuid
from pathlib import Path
from typing import Optional

WORK_DIR_NAME = ".shipline"


def make_run_id() -> str:
    """Generate a short 8-character UUID for run tracking."""
    return str(uuid.uuid4())[:8]


def work_dir(project_dir: Optional[str] = None) -> Path:
    """Return the .shipline directory for a project (cwd by default)."""
    base = Path(project_dir) if project_dir else Path.cwd()
    return base / WORK_DIR_NAME


def run_dir(run_id: str, project_dir: Optional[str] = None) -> Path:
    """Return .shipline/runs/{run_id} for a project."""
    return work_dir(project_dir) / "runs" / run_id


def setup_logger(run_id: str, phase: str = "release",
                 project_dir: Optional[str] = None) -> logging.Logger:
    """Set up a logger that writes to both console and file.

    Args:
        run_id: The pipeline run ID
        phase: Stage name (release, bump_version, deploy, etc.)
        project_dir: Project root holding the .shipline directory

    Returns:
        Configured logger instance
    """
    # .shipline/runs/{run_id}/{phase}/execution.log
    log_dir = run_dir(run_id, project_dir) / phase
    log_dir.mkdir(parents=True, exist_ok=True)

    log_file = log_dir / "execution.log"

    logger = logging.getLogger(f"shipline.run.{run_id}.{phase}")
    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    # Clear any existing handlers to avoid duplicates
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()

    file_handler = logging.FileHandler(str(log_file), mode="a")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(
        "%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))

    logger.addHandler(file_handler)
    logger.addHandler(console_handler)

    logger.debug(f"Logger initialized - run: {run_id}, phase: {phase}, file: {log_file}")

    return logger


def get_logger(run_id: str, phase: str = "release") -> logging.Logger:
    """Get existing logger by run ID and phase."""
    return logging.getLogger(f"shipline.run.{run_id}.{phase}")
