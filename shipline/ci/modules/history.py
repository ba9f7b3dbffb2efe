# CUI // SP-CTI
# shipline Release History: sqlite ledger of deployed versions

"""Release ledger backing `shipline history` and `shipline rollback`.

One row per pipeline run that reached publish_image, stored in
.shipline/shipline.db. The rollback target is the most recent succeeded
release older than the latest release for the project.
Rows end as succeeded (deployed), published (pushed, deploy skipped) or failed.
"""

import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from shipline.utils import work_dir

SCHEMA = """
CREATE TABLE IF NOT EXISTS releases (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    run_id TEXT NOT NULL,
    project TEXT NOT NULL,
    version TEXT NOT NULL,
    image TEXT NOT NULL,
    host TEXT,
    status TEXT NOT NULL DEFAULT 'in_progress',
    kind TEXT NOT NULL DEFAULT 'release',
    rollback_from TEXT,
    created_at TIMESTAMP NOT NULL,
    completed_at TIMESTAMP
);
CREATE INDEX IF NOT EXISTS idx_releases_project ON releases(project, id);
"""

RELEASE_STATUSES = ("in_progress", "succeeded", "published", "failed")


def db_path(project_dir: Optional[str] = None) -> Path:
    return work_dir(project_dir) / "shipline.db"


def _get_db(path: Optional[Path] = None, project_dir: Optional[str] = None) -> sqlite3.Connection:
    path = Path(path) if path else db_path(project_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row
    conn.executescript(SCHEMA)
    return conn


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def record_release(run_id: str, project: str, version: str, image: str,
                   host: Optional[str] = None, kind: str = "release",
                   rollback_from: Optional[str] = None,
                   path: Optional[Path] = None, project_dir: Optional[str] = None) -> int:
    """Insert an in-progress release row and return its id."""
    conn = _get_db(path, project_dir)
    try:
        cur = conn.execute(
            """INSERT INTO releases
               (run_id, project, version, image, host, status, kind, rollback_from, created_at)
               VALUES (?, ?, ?, ?, ?, 'in_progress', ?, ?, ?)""",
            (run_id, project, version, image, host, kind, rollback_from, _now()),
        )
        conn.commit()
        return cur.lastrowid
    finally:
        conn.close()


def complete_release(release_id: int, status: str, host: Optional[str] = None,
                     path: Optional[Path] = None, project_dir: Optional[str] = None) -> None:
    if status not in RELEASE_STATUSES:
        raise ValueError(f"Unknown release status '{status}'")
    conn = _get_db(path, project_dir)
    try:
        if host:
            conn.execute(
                "UPDATE releases SET status = ?, host = ?, completed_at = ? WHERE id = ?",
                (status, host, _now(), release_id),
            )
        else:
            conn.execute(
                "UPDATE releases SET status = ?, completed_at = ? WHERE id = ?",
                (status, _now(), release_id),
            )
        conn.commit()
    finally:
        conn.close()


def list_releases(project: Optional[str] = None, limit: int = 20,
                  path: Optional[Path] = None, project_dir: Optional[str] = None) -> List[dict]:
    """Newest first."""
    conn = _get_db(path, project_dir)
    try:
        if project:
            rows = conn.execute(
                "SELECT * FROM releases WHERE project = ? ORDER BY id DESC LIMIT ?",
                (project, limit),
            ).fetchall()
        else:
            rows = conn.execute(
                "SELECT * FROM releases ORDER BY id DESC LIMIT ?", (limit,)
            ).fetchall()
        return [dict(r) for r in rows]
    finally:
        conn.close()


def get_rollback_target(project: str, path: Optional[Path] = None,
                        project_dir: Optional[str] = None) -> dict:
    """Find the last succeeded release before the current one.

    Returns a dict with "current" and "rollback_target", or "error".
    """
    conn = _get_db(path, project_dir)
    try:
        current = conn.execute(
            """SELECT * FROM releases WHERE project = ?
               ORDER BY id DESC LIMIT 1""",
            (project,),
        ).fetchone()
        if not current:
            return {"error": f"No releases recorded for {project}"}

        target = conn.execute(
            """SELECT * FROM releases
               WHERE project = ? AND status = 'succeeded' AND id < ? AND version != ?
               ORDER BY id DESC LIMIT 1""",
            (project, current["id"], current["version"]),
        ).fetchone()

        if not target:
            return {
                "error": "No previous successful release found to roll back to",
                "current": dict(current),
            }
        return {"current": dict(current), "rollback_target": dict(target)}
    finally:
        conn.close()
