"""Tests for the sandbox security policy and the Docker-backed provider."""

from __future__ import annotations

import threading
import time
from types import SimpleNamespace
from unittest.mock import MagicMock

import docker.errors
import pytest

from webshell.errors import ExecutionTimeout, ProvisionError, TeardownError
from webshell.sandbox.base import SandboxHandle
from webshell.sandbox.container import MANAGED_LABEL, DockerSandboxProvider
from webshell.sandbox.security import SecurityPolicy


class TestSecurityPolicy:
    """Tests for SecurityPolicy dataclass and its container config."""

    def test_default_policy(self):
        policy = SecurityPolicy()
        assert policy.network_disabled is True
        assert policy.read_only_rootfs is False
        assert policy.memory_limit_mb == 256
        assert policy.pids_limit == 64

    def test_network_disabled_enforced(self):
        with pytest.raises(ValueError, match="network_disabled MUST be True"):
            SecurityPolicy(network_disabled=False)

    def test_memory_limit_must_be_positive(self):
        with pytest.raises(ValueError, match="memory_limit_mb"):
            SecurityPolicy(memory_limit_mb=0)

    def test_pids_limit_must_be_positive(self):
        with pytest.raises(ValueError, match="pids_limit"):
            SecurityPolicy(pids_limit=0)

    def test_to_container_config(self):
        config = SecurityPolicy(memory_limit_mb=128).to_container_config()
        assert config["network_mode"] == "none"
        assert config["mem_limit"] == "128m"
        assert config["memswap_limit"] == "128m"
        assert config["cap_drop"] == ["ALL"]
        assert "no-new-privileges" in config["security_opt"]
        assert "/tmp" in config["tmpfs"]
        assert config["hostname"] == "sandbox"

    def test_open_file_ulimit(self):
        (ulimit,) = SecurityPolicy(nofile_limit=512).to_container_config()["ulimits"]
        assert ulimit["Name"] == "nofile"
        assert ulimit["Soft"] == 512
        assert ulimit["Hard"] == 512

    @pytest.mark.parametrize("name", ["cpu_quota", "tmpfs_size_mb", "nofile_limit"])
    def test_limits_must_be_positive_integers(self, name):
        with pytest.raises(ValueError, match=name):
            SecurityPolicy(**{name: -1})
        with pytest.raises(ValueError, match=name):
            SecurityPolicy(**{name: "64"})

    def test_frozen_dataclass(self):
        policy = SecurityPolicy()
        with pytest.raises(AttributeError):
            policy.network_disabled = False  # type: ignore[misc]


HANDLE = SandboxHandle(sandbox_id="abc123", name="webshell-test")


@pytest.fixture
def docker_client() -> MagicMock:
    return MagicMock()


@pytest.fixture
def docker_provider(docker_client) -> DockerSandboxProvider:
    return DockerSandboxProvider(docker_client=docker_client, max_output_bytes=16)


def _exec_result(exit_code, stdout=b"", stderr=b""):
    return SimpleNamespace(exit_code=exit_code, output=(stdout, stderr))


class TestDockerCreate:
    @pytest.mark.asyncio
    async def test_create_runs_hardened_labelled_container(self, docker_provider, docker_client):
        docker_client.containers.run.return_value = SimpleNamespace(id="abc123", short_id="abc")

        handle = await docker_provider.create()

        assert handle.sandbox_id == "abc123"
        assert handle.name.startswith("webshell-")
        args, kwargs = docker_client.containers.run.call_args
        assert args == ("alpine:latest",)
        assert kwargs["network_mode"] == "none"
        assert kwargs["detach"] is True
        assert kwargs["labels"] == {MANAGED_LABEL: "true"}
        assert kwargs["command"] == ["tail", "-f", "/dev/null"]

    @pytest.mark.asyncio
    async def test_names_are_unique(self, docker_provider, docker_client):
        docker_client.containers.run.return_value = SimpleNamespace(id="x", short_id="x")
        first = await docker_provider.create()
        second = await docker_provider.create()
        assert first.name != second.name

    @pytest.mark.asyncio
    async def test_image_missing(self, docker_provider, docker_client):
        docker_client.containers.run.side_effect = docker.errors.ImageNotFound("no image")
        with pytest.raises(ProvisionError, match="not found"):
            await docker_provider.create()

    @pytest.mark.asyncio
    async def test_daemon_unavailable(self, docker_provider, docker_client):
        docker_client.containers.run.side_effect = docker.errors.APIError("boom")
        with pytest.raises(ProvisionError):
            await docker_provider.create()
        assert docker_client.containers.run.call_count == 1


class TestDockerExec:
    @pytest.mark.asyncio
    async def test_runs_through_shell_with_timeout(self, docker_provider, docker_client):
        container = docker_client.containers.get.return_value
        container.exec_run.return_value = _exec_result(0, b"file\n", None)

        result = await docker_provider.exec(HANDLE, "ls | wc -l", timeout=5)

        assert result.exit_code == 0
        assert result.stdout == "file\n"
        assert result.stderr == ""
        docker_client.containers.get.assert_called_with("abc123")
        argv = container.exec_run.call_args.args[0]
        assert argv == ["timeout", "-s", "KILL", "5", "sh", "-c", "ls | wc -l"]

    @pytest.mark.asyncio
    async def test_output_truncated(self, docker_provider, docker_client):
        container = docker_client.containers.get.return_value
        container.exec_run.return_value = _exec_result(0, b"x" * 100, b"")

        result = await docker_provider.exec(HANDLE, "yes", timeout=5)
        assert result.stdout.startswith("x" * 16)
        assert "truncated" in result.stdout

    @pytest.mark.asyncio
    async def test_non_zero_exit_is_a_result(self, docker_provider, docker_client):
        container = docker_client.containers.get.return_value
        container.exec_run.return_value = _exec_result(137, b"", b"Killed\n")

        # 137 only means timeout when the budget actually elapsed.
        result = await docker_provider.exec(HANDLE, "sh crash.sh", timeout=5)
        assert result.exit_code == 137

    @pytest.mark.asyncio
    async def test_killed_after_budget_is_timeout(self, docker_provider, docker_client):
        container = docker_client.containers.get.return_value

        def slow_exec(*args, **kwargs):
            time.sleep(1.05)
            return _exec_result(137)

        container.exec_run.side_effect = slow_exec
        with pytest.raises(ExecutionTimeout):
            await docker_provider.exec(HANDLE, "sleep 100", timeout=1)

    @pytest.mark.asyncio
    async def test_killed_after_budget_kills_leftover_processes(self, docker_provider, docker_client):
        container = docker_client.containers.get.return_value
        container.exec_run.side_effect = lambda argv, **kwargs: _exec_result(137)
        # exec_run returns instantly, so fake an elapsed budget.
        with pytest.raises(ExecutionTimeout):
            await docker_provider.exec(HANDLE, "sleep 5 | cat", timeout=0)
        assert container.exec_run.call_args.args[0] == ["kill", "-KILL", "-1"]

    @pytest.mark.asyncio
    async def test_hung_exec_stream_is_released_before_returning(self, docker_provider, docker_client):
        container = docker_client.containers.get.return_value
        killed = threading.Event()
        exec_thread_done = threading.Event()

        def blocking_exec(argv, **kwargs):
            if argv == ["kill", "-KILL", "-1"]:
                killed.set()
                return _exec_result(0)
            # A backgrounded child holds the stream open until it is killed.
            killed.wait(timeout=10)
            exec_thread_done.set()
            return _exec_result(137)

        container.exec_run.side_effect = blocking_exec

        with pytest.raises(ExecutionTimeout):
            await docker_provider.exec(HANDLE, "sleep 100000 &", timeout=0.1)

        assert killed.is_set()
        assert exec_thread_done.is_set()

    @pytest.mark.asyncio
    async def test_missing_container(self, docker_provider, docker_client):
        docker_client.containers.get.side_effect = docker.errors.NotFound("gone")
        with pytest.raises(ProvisionError, match="no longer exists"):
            await docker_provider.exec(HANDLE, "ls", timeout=5)


class TestDockerDestroy:
    @pytest.mark.asyncio
    async def test_destroy_removes_container(self, docker_provider, docker_client):
        assert await docker_provider.destroy(HANDLE) is True
        docker_client.containers.get.return_value.remove.assert_called_once_with(force=True)

    @pytest.mark.asyncio
    async def test_destroy_twice_is_a_no_op(self, docker_provider, docker_client):
        docker_client.containers.get.side_effect = docker.errors.NotFound("gone")
        assert await docker_provider.destroy(HANDLE) is False
        assert await docker_provider.destroy(HANDLE) is False

    @pytest.mark.asyncio
    async def test_destroy_failure(self, docker_provider, docker_client):
        docker_client.containers.get.return_value.remove.side_effect = docker.errors.APIError("busy")
        with pytest.raises(TeardownError):
            await docker_provider.destroy(HANDLE)


class TestDockerMaintenance:
    @pytest.mark.asyncio
    async def test_health_check(self, docker_provider, docker_client):
        docker_client.ping.return_value = True
        assert await docker_provider.health_check() is True
        docker_client.ping.side_effect = docker.errors.DockerException("down")
        assert await docker_provider.health_check() is False

    @pytest.mark.asyncio
    async def test_reap_orphans(self, docker_provider, docker_client):
        stale = [MagicMock(short_id="a"), MagicMock(short_id="b")]
        stale[1].remove.side_effect = docker.errors.APIError("busy")
        docker_client.containers.list.return_value = stale

        assert await docker_provider.reap_orphans() == 1
        docker_client.containers.list.assert_called_once_with(
            all=True, filters={"label": f"{MANAGED_LABEL}=true"}
        )
        stale[0].remove.assert_called_once_with(force=True)
