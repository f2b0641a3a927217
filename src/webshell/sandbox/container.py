"""Docker-backed sandbox provider: one long-lived container per session."""

from __future__ import annotations

import asyncio
import logging
import math
import secrets
import time

import docker
import docker.errors
import requests.exceptions

from webshell.errors import ExecutionTimeout, ProvisionError, TeardownError
from webshell.sandbox.base import ExecResult, SandboxHandle, SandboxProvider
from webshell.sandbox.security import SecurityPolicy

logger = logging.getLogger(__name__)

# Label stamped on every container this service creates, so leftovers from
# a previous process can be found and removed at startup.
MANAGED_LABEL = "webshell.managed"

# Keeps the container alive between commands.
_IDLE_COMMAND: list[str] = ["tail", "-f", "/dev/null"]

# Extra seconds granted to the Docker API round-trip on top of the
# in-container ``timeout`` before the call is abandoned.
_TIMEOUT_GRACE_SECONDS: float = 2.0

# Exit status of a process killed by SIGKILL (128 + 9).
_SIGKILL_EXIT_CODE = 137

# Run after a timeout. ``kill -1`` spares the caller and the container's PID 1.
_KILL_ALL_COMMAND: list[str] = ["kill", "-KILL", "-1"]

_DOCKER_CONNECTION_ERRORS: tuple[type[Exception], ...] = (
    docker.errors.DockerException,
    requests.exceptions.ConnectionError,
    requests.exceptions.ReadTimeout,
    ConnectionError,
)


def _truncate_bytes(data: bytes | None, limit: int) -> bytes:
    """Truncate *data* to at most *limit* bytes.

    If the data is truncated, a trailing marker is appended so the user
    knows the output was cut short.
    """
    if not data:
        return b""
    if len(data) <= limit:
        return data
    return data[:limit] + f"\n... [truncated at {limit} bytes]\n".encode()


class DockerSandboxProvider(SandboxProvider):
    """Provisions one detached, network-less container per session.

    Commands run through ``sh -c`` under the container's ``timeout``
    utility so that an expired command is killed inside the sandbox and
    the container itself survives.

    All blocking Docker SDK calls are dispatched via ``asyncio.to_thread``
    so that the event loop is never blocked.

    Parameters
    ----------
    docker_client:
        Docker SDK client; defaults to ``docker.from_env()``.
    image:
        Image every session container is started from.
    name_prefix:
        Prefix of generated container names.
    policy:
        Hardening and resource limits applied to each container.
    max_output_bytes:
        Cap on captured stdout and stderr, each.
    """

    def __init__(
        self,
        docker_client: docker.DockerClient | None = None,
        image: str = "alpine:latest",
        name_prefix: str = "webshell-",
        policy: SecurityPolicy | None = None,
        max_output_bytes: int = 64 * 1024,
    ) -> None:
        self._client = docker_client or docker.from_env()
        self._image = image
        self._name_prefix = name_prefix
        self._policy = policy or SecurityPolicy()
        self._max_output_bytes = max_output_bytes

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def create(self) -> SandboxHandle:
        name = f"{self._name_prefix}{secrets.token_hex(8)}"
        try:
            container = await asyncio.to_thread(
                self._client.containers.run,
                self._image,
                command=_IDLE_COMMAND,
                name=name,
                detach=True,
                stdin_open=False,
                tty=False,
                labels={MANAGED_LABEL: "true"},
                **self._policy.to_container_config(),
            )
        except docker.errors.ImageNotFound as exc:
            logger.error("Sandbox image not found: %s", self._image)
            raise ProvisionError(f"Sandbox image {self._image!r} not found") from exc
        except _DOCKER_CONNECTION_ERRORS as exc:
            logger.exception("Docker API error while creating sandbox %s", name)
            raise ProvisionError("Failed to create sandbox container") from exc

        logger.info("Container created: id=%s name=%s", container.short_id, name)
        return SandboxHandle(sandbox_id=container.id, name=name)

    async def destroy(self, handle: SandboxHandle) -> bool:
        try:
            await asyncio.to_thread(self._remove_container, handle.sandbox_id)
        except docker.errors.NotFound:
            logger.debug("Container %s already removed", handle.name)
            return False
        except _DOCKER_CONNECTION_ERRORS as exc:
            raise TeardownError(f"Failed to remove container {handle.name}: {exc}") from exc
        logger.info("Container removed: name=%s", handle.name)
        return True

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def exec(self, handle: SandboxHandle, command: str, timeout: float) -> ExecResult:
        argv = [
            "timeout", "-s", "KILL", str(max(1, math.ceil(timeout))),
            "sh", "-c", command,
        ]
        start_time = time.monotonic()
        worker = asyncio.ensure_future(
            asyncio.to_thread(self._exec_blocking, handle.sandbox_id, argv)
        )
        done, _pending = await asyncio.wait({worker}, timeout=timeout + _TIMEOUT_GRACE_SECONDS)
        if not done:
            # Background jobs and pipe stages outlive ``sh`` and keep the exec
            # stream open; the worker thread only returns once they are gone.
            logger.warning("Exec in %s abandoned after %.1fs", handle.name, timeout)
            await self._kill_leftovers(handle, worker)
            raise ExecutionTimeout(timeout)

        try:
            exit_code, output = worker.result()
        except docker.errors.NotFound as exc:
            raise ProvisionError(f"Sandbox {handle.name} no longer exists") from exc
        except _DOCKER_CONNECTION_ERRORS as exc:
            logger.exception("Docker API error while executing in %s", handle.name)
            raise ProvisionError(f"Sandbox {handle.name} is unreachable") from exc

        elapsed = time.monotonic() - start_time
        if exit_code == _SIGKILL_EXIT_CODE and elapsed >= timeout:
            await self._kill_leftovers(handle)
            raise ExecutionTimeout(timeout)

        raw_stdout, raw_stderr = output if output is not None else (None, None)
        raw_stdout = _truncate_bytes(raw_stdout, self._max_output_bytes)
        raw_stderr = _truncate_bytes(raw_stderr, self._max_output_bytes)

        return ExecResult(
            exit_code=int(exit_code if exit_code is not None else -1),
            stdout=raw_stdout.decode("utf-8", errors="replace"),
            stderr=raw_stderr.decode("utf-8", errors="replace"),
        )

    async def _kill_leftovers(
        self,
        handle: SandboxHandle,
        worker: asyncio.Future | None = None,
    ) -> None:
        """SIGKILL every process in the sandbox except its PID 1.

        When *worker* is given, wait for that exec thread to return so the
        caller's execution slot is not released while it is still live.
        """
        try:
            await asyncio.wait_for(
                asyncio.to_thread(self._exec_blocking, handle.sandbox_id, _KILL_ALL_COMMAND),
                timeout=_TIMEOUT_GRACE_SECONDS,
            )
        except (asyncio.TimeoutError, *_DOCKER_CONNECTION_ERRORS):
            logger.exception("Could not kill leftover processes in %s", handle.name)

        if worker is None:
            return
        # Retrieve a late exception so it is not reported as unhandled.
        worker.add_done_callback(lambda f: f.cancelled() or f.exception())
        done, _pending = await asyncio.wait({worker}, timeout=_TIMEOUT_GRACE_SECONDS)
        if not done:
            logger.error("Exec thread for %s still running after kill", handle.name)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def health_check(self) -> bool:
        try:
            return bool(await asyncio.to_thread(self._client.ping))
        except _DOCKER_CONNECTION_ERRORS:
            return False

    async def reap_orphans(self) -> int:
        try:
            containers = await asyncio.to_thread(
                self._client.containers.list,
                all=True,
                filters={"label": f"{MANAGED_LABEL}=true"},
            )
        except _DOCKER_CONNECTION_ERRORS:
            logger.exception("Could not list orphaned sandbox containers")
            return 0

        removed = 0
        for container in containers:
            try:
                await asyncio.to_thread(container.remove, force=True)
                removed += 1
            except docker.errors.NotFound:
                continue
            except _DOCKER_CONNECTION_ERRORS as exc:
                logger.error("Failed to remove orphaned container %s: %s", container.short_id, exc)
        if removed:
            logger.info("Removed %d orphaned sandbox container(s)", removed)
        return removed

    # ------------------------------------------------------------------
    # Blocking helpers (run in worker threads)
    # ------------------------------------------------------------------

    def _exec_blocking(self, container_id: str, argv: list[str]) -> tuple[int | None, tuple | None]:
        container = self._client.containers.get(container_id)
        result = container.exec_run(argv, stdout=True, stderr=True, demux=True)
        return result.exit_code, result.output

    def _remove_container(self, container_id: str) -> None:
        container = self._client.containers.get(container_id)
        container.remove(force=True)
