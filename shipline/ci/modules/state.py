# CUI // SP-CTI
# shipline Pipeline State Management

"""
Persistent state for one shipline pipeline run.

State is stored at .shipline/runs/{run_id}/state.json and tracks:
- run_id, version, previous_version, image, images, artifact, commit
- per-stage status (pending / running / succeeded / failed / skipped)

Each Jenkins stage runs a separate `shipline <stage> --run-id ...` process,
so the version extracted in bump_version reaches publish_image and
commit_version through this file (or stdin/stdout piping).

Usage:
    state = PipelineState.load(run_id, project_dir, logger)
    state.update(version="1.0.4")
    state.mark_stage("bump_version", "succeeded")
    state.save("bump_version")
"""

import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from shipline.utils import run_dir

# Core fields persisted to state file
CORE_FIELDS = {
    "run_id", "project", "version", "previous_version", "version_strategy",
    "version_valid", "image", "images", "artifact", "commit", "host", "release_id",
    "release_status",
}

STAGE_STATUSES = ("pending", "running", "succeeded", "failed", "skipped")


class PipelineState:
    """Persistent workflow state for a shipline run."""

    def __init__(self, run_id: str, project_dir: Optional[str] = None, logger=None):
        self.run_id = run_id
        self.project_dir = project_dir
        self._data = {"run_id": run_id, "stages": {}}
        self._logger = logger

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def update(self, **kwargs):
        """Update state with key-value pairs (only core fields)."""
        for key, value in kwargs.items():
            if key in CORE_FIELDS and value is not None:
                self._data[key] = value

    def mark_stage(self, stage: str, status: str, message: str = ""):
        if status not in STAGE_STATUSES:
            raise ValueError(f"Unknown stage status '{status}'")
        self._data.setdefault("stages", {})[stage] = {
            "status": status,
            "message": message,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }

    def stage_status(self, stage: str) -> str:
        return self._data.get("stages", {}).get(stage, {}).get("status", "pending")

    @property
    def state_dir(self) -> Path:
        return run_dir(self.run_id, self.project_dir)

    @property
    def state_file(self) -> Path:
        return self.state_dir / "state.json"

    def save(self, workflow_step: str = ""):
        """Persist state to file."""
        self.state_dir.mkdir(parents=True, exist_ok=True)
        if workflow_step:
            self._data["last_step"] = workflow_step
        with open(self.state_file, "w") as f:
            json.dump(self._data, f, indent=2)
        if self._logger:
            self._logger.debug(f"State saved to {self.state_file}")

    @classmethod
    def load(cls, run_id: str, project_dir: Optional[str] = None, logger=None) -> "PipelineState":
        """Load state from file, or create new."""
        state = cls(run_id, project_dir, logger)
        state_file = state.state_file
        if state_file.exists():
            try:
                with open(state_file) as f:
                    data = json.load(f)
                data.setdefault("stages", {})
                state._data = data
                if logger:
                    logger.debug(f"State loaded from {state_file}")
            except (json.JSONDecodeError, IOError) as e:
                if logger:
                    logger.warning(f"Could not load state: {e}")
        return state

    @classmethod
    def from_stdin(cls, project_dir: Optional[str] = None, logger=None) -> Optional["PipelineState"]:
        """Read state from stdin if piped (shipline bump | shipline publish)."""
        if sys.stdin.isatty():
            return None

        try:
            raw = sys.stdin.read().strip()
            if not raw:
                return None
            data = json.loads(raw)
            run_id = data.get("run_id")
            if not run_id:
                return None
            state = cls(run_id, project_dir, logger)
            state._data = {"run_id": run_id, "stages": {}}
            state.update(**data)
            return state
        except (json.JSONDecodeError, IOError):
            return None

    def to_stdout(self):
        """Write core state to stdout for piping to the next stage."""
        output = {k: v for k, v in self._data.items() if k in CORE_FIELDS}
        print(json.dumps(output))

    def to_dict(self) -> dict:
        return json.loads(json.dumps(self._data))

    def __repr__(self):
        return f"PipelineState(run_id={self.run_id}, keys={list(self._data.keys())})"
