# CUI // SP-CTI
"""Tests for the `shipline` command line (shipline.ci.workflows.release.main)."""

import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import pytest

from shipline.ci.modules.state import PipelineState
from shipline.ci.workflows.release import build_parser, main


class TestParser:
    def test_stage_commands_need_run_id(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["bump"])

    def test_skip_choices(self):
        args = build_parser().parse_args(["release", "--skip", "deploy", "--skip", "build"])
        assert args.skip == ["deploy", "build"]
        with pytest.raises(SystemExit):
            build_parser().parse_args(["release", "--skip", "lint"])


class TestMain:
    def test_version(self, project_dir, capsys):
        assert main(["version", "--dir", str(project_dir)]) == 0
        assert capsys.readouterr().out.strip() == "1.0.3"

    def test_version_json(self, project_dir, capsys):
        assert main(["version", "--dir", str(project_dir), "--json"]) == 0
        assert json.loads(capsys.readouterr().out) == {"version": "1.0.3", "inherited": False}

    def test_config_error_exit_2(self, tmp_path, capsys):
        (tmp_path / "shipline.yaml").write_text("versioning:\n  on_invalid: ignore\n")
        assert main(["version", "--dir", str(tmp_path)]) == 2
        assert "CONFIG ERROR" in capsys.readouterr().err

    def test_release_not_built_exit_0(self, project_dir, fake_subprocess, capsys):
        fake_subprocess.responses.append((0, "ci: bump version to 1.0.3 [ci skip]", ""))
        assert main(["release", "--dir", str(project_dir), "--json"]) == 0
        out = capsys.readouterr().out
        assert json.loads(out[out.index("{\n"):])["status"] == "not_built"

    def test_release_failure_exit_1(self, project_dir, fake_subprocess):
        fake_subprocess.responses.extend([(0, "feat", ""), (1, "", "BUILD FAILURE")])
        assert main(["release", "--dir", str(project_dir), "--run-id", "cli-1"]) == 1

    def test_single_stage_uses_run_state(self, project_dir, fake_subprocess):
        assert main(["bump", "--dir", str(project_dir), "--run-id", "cli-2"]) == 0
        state = PipelineState.load("cli-2", str(project_dir))
        assert state.get("version") == "1.0.4"
        assert state.stage_status("bump_version") == "succeeded"

    def test_history_empty(self, project_dir, capsys):
        assert main(["history", "--dir", str(project_dir), "--json"]) == 0
        assert json.loads(capsys.readouterr().out) == []

    def test_generate_stdout(self, project_dir, capsys):
        assert main(["generate", "dockerfile", "--dir", str(project_dir), "--stdout"]) == 0
        assert "eclipse-temurin" in capsys.readouterr().out

    def test_generate_writes_file(self, project_dir):
        assert main(["generate", "jenkinsfile", "--dir", str(project_dir)]) == 0
        assert (project_dir / "Jenkinsfile").exists()

    def test_config_validate(self, project_dir, capsys):
        assert main(["config", "--dir", str(project_dir), "--validate"]) == 0
        assert "Config is valid." in capsys.readouterr().out

    def test_stage_configuration_error_exit_2(self, project_dir, fake_subprocess,
                                              monkeypatch, capsys):
        state = PipelineState("cli-3", str(project_dir))
        state.update(version="1.0.4", image="nexus.example.com:8082/my-app:1.0.4")
        state.save()
        monkeypatch.setenv("SHIPLINE_DEPLOY_HOST", "")
        assert main(["deploy", "--dir", str(project_dir), "--run-id", "cli-3"]) == 2
        assert "deploy.host" in capsys.readouterr().out
        assert fake_subprocess.calls == []

    def test_invalid_commit_message_exit_2(self, project_dir, capsys):
        (project_dir / "shipline.yaml").write_text(
            "git:\n  commit_message: 'ci: bump {version} [ci skip] {ticket}'\n")
        assert main(["commit", "--dir", str(project_dir), "--run-id", "cli-4"]) == 2
        assert "git.commit_message" in capsys.readouterr().err
