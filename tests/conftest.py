"""Shared fixtures: an in-memory sandbox provider and a controllable clock."""

from __future__ import annotations

import asyncio
import itertools
from datetime import UTC, datetime, timedelta

import pytest

from webshell.errors import ExecutionTimeout, ProvisionError, TeardownError
from webshell.sandbox.base import ExecResult, SandboxHandle, SandboxProvider
from webshell.sessions import SessionRegistry


class FakeSandboxProvider(SandboxProvider):
    """Records every call; sandboxes are plain handles in a set."""

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self.live: set[str] = set()
        self.created: list[SandboxHandle] = []
        self.destroy_calls: list[SandboxHandle] = []
        self.exec_calls: list[tuple[SandboxHandle, str, float]] = []
        self.fail_create = False
        self.fail_destroy_for: set[str] = set()
        self.exec_result = ExecResult(exit_code=0, stdout="ok\n", stderr="")
        self.exec_timeout = False
        self.exec_delay = 0.0
        self.destroy_delay = 0.0
        self.healthy = True
        self.in_flight = 0
        self.max_in_flight = 0

    async def create(self) -> SandboxHandle:
        if self.fail_create:
            raise ProvisionError("backend unavailable")
        await asyncio.sleep(0)
        n = next(self._ids)
        handle = SandboxHandle(sandbox_id=f"sbx-{n}", name=f"webshell-test-{n}")
        self.live.add(handle.sandbox_id)
        self.created.append(handle)
        return handle

    async def exec(self, handle: SandboxHandle, command: str, timeout: float) -> ExecResult:
        self.exec_calls.append((handle, command, timeout))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.exec_delay)
            if self.exec_timeout:
                raise ExecutionTimeout(timeout)
            return self.exec_result
        finally:
            self.in_flight -= 1

    async def destroy(self, handle: SandboxHandle) -> bool:
        self.destroy_calls.append(handle)
        await asyncio.sleep(self.destroy_delay)
        if handle.sandbox_id in self.fail_destroy_for:
            raise TeardownError(f"cannot remove {handle.name}")
        if handle.sandbox_id not in self.live:
            return False
        self.live.discard(handle.sandbox_id)
        return True

    async def health_check(self) -> bool:
        return self.healthy


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def provider() -> FakeSandboxProvider:
    return FakeSandboxProvider()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry(provider: FakeSandboxProvider, clock: FakeClock) -> SessionRegistry:
    return SessionRegistry(provider, clock=clock)
