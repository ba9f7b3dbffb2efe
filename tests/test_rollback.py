# CUI // SP-CTI
"""Tests for shipline.ci.workflows.rollback."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import pytest

from shipline.ci.modules import history
from shipline.ci.workflows import release
from shipline.ci.workflows.rollback import main, rollback


@pytest.fixture
def released(project_dir):
    """Two succeeded releases of java-cicd-demo, 1.0.3 then 1.0.4."""
    for version in ("1.0.3", "1.0.4"):
        rid = history.record_release(f"run-{version}", "java-cicd-demo", version,
                                     f"nexus.example.com:8082/my-app:{version}",
                                     project_dir=str(project_dir))
        history.complete_release(rid, "succeeded", host="deploy.example.com",
                                 project_dir=str(project_dir))
    return project_dir


class TestRollback:
    def test_redeploys_previous_image(self, config, released, fake_subprocess, monkeypatch):
        monkeypatch.setattr(release, "verify_container", lambda *a, **kw: True)
        result = rollback(config, creds={})

        assert result["status"] == "succeeded"
        assert result["current_version"] == "1.0.4"
        assert result["target_version"] == "1.0.3"
        pulls = [c["args"][-1] for c in fake_subprocess.calls
                 if c["args"][-1].startswith("docker pull")]
        assert pulls == ["docker pull nexus.example.com:8082/my-app:1.0.3"]

        latest = history.list_releases(project_dir=str(released))[0]
        assert latest["kind"] == "rollback"
        assert latest["rollback_from"] == "1.0.4"
        assert latest["status"] == "succeeded"

    def test_failed_redeploy_recorded(self, config, released, fake_subprocess, monkeypatch):
        monkeypatch.setattr(release, "verify_container", lambda *a, **kw: False)
        result = rollback(config, creds={})

        assert result["status"] == "failed"
        assert history.list_releases(project_dir=str(released))[0]["status"] == "failed"

    def test_target_only(self, config, released, fake_subprocess):
        result = rollback(config, target_only=True, creds={})
        assert result["status"] == "target"
        assert result["image"] == "nexus.example.com:8082/my-app:1.0.3"
        assert fake_subprocess.calls == []

    def test_dry_run(self, config, released, fake_subprocess):
        result = rollback(config, dry_run=True, creds={})
        assert result["status"] == "dry_run"
        assert "1.0.4 to 1.0.3" in result["message"]
        assert fake_subprocess.calls == []
        assert len(history.list_releases(project_dir=str(released))) == 2

    def test_nothing_to_roll_back(self, config, fake_subprocess):
        result = rollback(config, creds={})
        assert result["status"] == "failed"
        assert "No releases" in result["error"]


class TestRollbackCLI:
    def test_target_only_exit_code(self, released, capsys):
        assert main(["--dir", str(released), "--target-only"]) == 0
        assert "1.0.3" in capsys.readouterr().out

    def test_no_history_exit_code(self, project_dir):
        assert main(["--dir", str(project_dir), "--target-only"]) == 1

    def test_config_error_exit_code(self, tmp_path):
        (tmp_path / "shipline.yaml").write_text("versioning:\n  bump: build\n")
        assert main(["--dir", str(tmp_path)]) == 2
