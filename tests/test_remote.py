# CUI // SP-CTI
"""Tests for shipline.ci.modules.remote: ssh/scp vectors and container replacement."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import pytest

from shipline.ci.modules.remote import (
    RemoteHost,
    build_run_command,
    copy_files,
    deploy_container,
    verify_container,
)
from shipline.resilience.errors import ConfigurationError


@pytest.fixture
def host():
    return RemoteHost("deploy.example.com", user="ubuntu")


class TestRemoteHost:
    def test_host_required(self):
        with pytest.raises(ConfigurationError) as exc_info:
            RemoteHost("")
        assert exc_info.value.config_key == "deploy.host"

    def test_ssh_args(self, host):
        assert host.ssh_args("uptime") == [
            "ssh", "-o", "BatchMode=yes", "-o", "StrictHostKeyChecking=no",
            "-p", "22", "ubuntu@deploy.example.com", "uptime",
        ]

    def test_scp_uses_capital_p_and_identity(self):
        h = RemoteHost("h", port=2222, identity_file="/keys/id", strict_host_key_checking=True)
        assert h.scp_args("a.txt", "/opt/") == [
            "scp", "-o", "BatchMode=yes", "-i", "/keys/id", "-P", "2222", "a.txt", "h:/opt/",
        ]


class TestBuildRunCommand:
    def test_ports_env_and_quoting(self):
        cmd = build_run_command("nexus:8082/my-app:1.0.4", "my-app", ["8080:8080"],
                                {"GREETING": "hello world"})
        assert cmd == ("docker run -d --name my-app --restart unless-stopped -p 8080:8080 "
                       "-e 'GREETING=hello world' nexus:8082/my-app:1.0.4")


class TestDeployContainer:
    def test_sequence_without_login(self, host, fake_subprocess):
        deploy_container(host, "nexus:8082/my-app:1.0.4", "my-app", ports=["8080:8080"],
                         pull_retries=0)
        remote = [c["args"][-1] for c in fake_subprocess.calls]
        assert remote[0] == "docker pull nexus:8082/my-app:1.0.4"
        assert remote[1] == "docker rm -f my-app >/dev/null 2>&1 || true"
        assert remote[2].startswith("docker run -d --name my-app")

    def test_login_password_only_on_stdin(self, host, fake_subprocess):
        deploy_container(host, "r/my-app:1.0.4", "my-app", registry="nexus:8082",
                         registry_user="admin", registry_password="s3cret", pull_retries=0)
        login = fake_subprocess.calls[0]
        assert login["args"][-1] == "docker login nexus:8082 -u admin --password-stdin"
        assert login["input"] == "s3cret"
        assert all("s3cret" not in arg for c in fake_subprocess.calls for arg in c["args"])
        assert len(fake_subprocess.calls) == 4

    def test_pull_failure_propagates(self, host, fake_subprocess):
        from shipline.resilience.errors import CommandError
        fake_subprocess.responses.append((1, "", "manifest unknown"))
        with pytest.raises(CommandError):
            deploy_container(host, "r/my-app:9.9.9", "my-app", pull_retries=0)
        assert len(fake_subprocess.calls) == 1


class TestVerifyContainer:
    def test_running(self, host, fake_subprocess):
        fake_subprocess.responses.append((0, "true\n", ""))
        assert verify_container(host, "my-app") is True
        assert "docker inspect -f '{{.State.Running}}' my-app" == fake_subprocess.calls[0]["args"][-1]

    def test_not_running(self, host, fake_subprocess):
        fake_subprocess.responses.append((0, "false", ""))
        assert verify_container(host, "my-app") is False

    def test_missing_container(self, host, fake_subprocess):
        fake_subprocess.responses.append((1, "", "No such object: my-app"))
        assert verify_container(host, "my-app") is False


class TestCopyFiles:
    def test_mkdir_then_scp(self, host, fake_subprocess):
        copied = copy_files(host, ["deploy/docker-compose.yml"], "/opt/my-app")
        assert fake_subprocess.calls[0]["args"][-1] == "mkdir -p /opt/my-app"
        assert fake_subprocess.calls[1]["args"][0] == "scp"
        assert fake_subprocess.calls[1]["args"][-1] == "ubuntu@deploy.example.com:/opt/my-app/"
        assert copied == ["/opt/my-app/docker-compose.yml"]

    def test_remote_dir_required(self, host):
        with pytest.raises(ConfigurationError):
            copy_files(host, ["a.txt"], "")

    def test_nothing_to_copy(self, host, fake_subprocess):
        assert copy_files(host, [], "") == []
        assert fake_subprocess.calls == []
