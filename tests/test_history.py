# CUI // SP-CTI
"""Tests for shipline.ci.modules.history: release ledger and rollback target."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import pytest

from shipline.ci.modules import history


@pytest.fixture
def db(tmp_path):
    return tmp_path / "shipline.db"


def _release(db, version, status="succeeded", project="demo"):
    rid = history.record_release(f"run-{version}", project, version,
                                 f"nexus:8082/{project}:{version}", path=db)
    if status != "in_progress":
        history.complete_release(rid, status, host="deploy.example.com", path=db)
    return rid


class TestLedger:
    def test_record_defaults_to_in_progress(self, db):
        rid = history.record_release("run-1", "demo", "1.0.4", "r/demo:1.0.4", path=db)
        row = history.list_releases("demo", path=db)[0]
        assert row["id"] == rid
        assert row["status"] == "in_progress"
        assert row["kind"] == "release"
        assert row["completed_at"] is None

    def test_complete_sets_host(self, db):
        rid = _release(db, "1.0.4")
        row = history.list_releases("demo", path=db)[0]
        assert row["id"] == rid
        assert row["status"] == "succeeded"
        assert row["host"] == "deploy.example.com"
        assert row["completed_at"]

    def test_unknown_status(self, db):
        rid = _release(db, "1.0.4", status="in_progress")
        with pytest.raises(ValueError):
            history.complete_release(rid, "done", path=db)

    def test_list_newest_first_and_filtered(self, db):
        _release(db, "1.0.1")
        _release(db, "1.0.2")
        _release(db, "0.1.0", project="other")
        assert [r["version"] for r in history.list_releases("demo", path=db)] == ["1.0.2", "1.0.1"]
        assert len(history.list_releases(path=db)) == 3
        assert len(history.list_releases(path=db, limit=1)) == 1

    def test_default_location(self, tmp_path):
        history.record_release("run-1", "demo", "1.0.4", "demo:1.0.4", project_dir=str(tmp_path))
        assert (tmp_path / ".shipline" / "shipline.db").exists()


class TestRollbackTarget:
    def test_no_releases(self, db):
        assert "error" in history.get_rollback_target("demo", path=db)

    def test_only_one_release(self, db):
        _release(db, "1.0.1")
        result = history.get_rollback_target("demo", path=db)
        assert "error" in result
        assert result["current"]["version"] == "1.0.1"

    def test_skips_failed_releases(self, db):
        _release(db, "1.0.1")
        _release(db, "1.0.2", status="failed")
        _release(db, "1.0.3")
        result = history.get_rollback_target("demo", path=db)
        assert result["current"]["version"] == "1.0.3"
        assert result["rollback_target"]["version"] == "1.0.1"

    def test_published_release_is_not_a_target(self, db):
        _release(db, "1.0.1")
        _release(db, "1.0.2", status="published")
        _release(db, "1.0.3")
        result = history.get_rollback_target("demo", path=db)
        assert result["rollback_target"]["version"] == "1.0.1"

    def test_current_may_be_failed(self, db):
        _release(db, "1.0.1")
        _release(db, "1.0.2", status="failed")
        result = history.get_rollback_target("demo", path=db)
        assert result["rollback_target"]["version"] == "1.0.1"
