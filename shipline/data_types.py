# CUI // SP-CTI
# shipline Data Types

"""Pydantic data models for pipeline results.

Every external command, stage and run produces one of these so the CLI can
print them as JSON and the state file can persist them.
"""

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

StageStatus = Literal["pending", "running", "succeeded", "failed", "skipped"]
RunStatus = Literal["succeeded", "failed", "not_built", "dry_run"]


class CommandResult(BaseModel):
    """Outcome of one external command (secrets already masked)."""
    args: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 0
    dry_run: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class ExtractionResult(BaseModel):
    """Outcome of re-extracting the version from the descriptor."""
    version: str
    strategy: str
    valid: bool = True
    attempts: Dict[str, str] = Field(default_factory=dict)


class StageResult(BaseModel):
    """Result of a single pipeline stage."""
    name: str
    status: StageStatus
    message: str = ""
    error: Optional[str] = None
    error_type: Optional[str] = None
    duration_ms: int = 0
    outputs: Dict[str, str] = Field(default_factory=dict)

    @property
    def passed(self) -> bool:
        return self.status in ("succeeded", "skipped")


class PipelineResult(BaseModel):
    """Result of a full release run."""
    run_id: str
    status: RunStatus
    version: Optional[str] = None
    previous_version: Optional[str] = None
    image: Optional[str] = None
    stages: List[StageResult] = Field(default_factory=list)
    error: Optional[str] = None

    def stage(self, name: str) -> Optional[StageResult]:
        for stage in self.stages:
            if stage.name == name:
                return stage
        return None
