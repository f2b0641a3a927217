"""Tests for the command execution path."""

from __future__ import annotations

import asyncio

import pytest

from webshell.admission import CommandValidator
from webshell.errors import SessionNotFound
from webshell.models import CommandStatus
from webshell.sandbox.base import ExecResult
from webshell.service import ShellService


@pytest.fixture
def service(registry, provider) -> ShellService:
    return ShellService(
        registry=registry,
        provider=provider,
        validator=CommandValidator(),
        command_timeout_seconds=3.0,
    )


class TestRunCommand:
    @pytest.mark.asyncio
    async def test_completed_output_is_verbatim(self, service, provider):
        provider.exec_result = ExecResult(exit_code=2, stdout="out\x1b[0m\n", stderr="err\n")
        session_id = await service.start_session()

        outcome = await service.run_command(session_id, "ls -la | wc -l")

        assert outcome.status is CommandStatus.COMPLETED
        assert outcome.stdout == "out\x1b[0m\n"
        assert outcome.stderr == "err\n"
        assert outcome.exit_code == 2
        handle, command, timeout = provider.exec_calls[0]
        assert command == "ls -la | wc -l"
        assert timeout == 3.0

    @pytest.mark.asyncio
    async def test_unknown_session_is_expired_not_rejected(self, service, provider):
        outcome = await service.run_command("missing", "sudo ls")
        assert outcome.status is CommandStatus.SESSION_EXPIRED
        assert provider.exec_calls == []

    @pytest.mark.asyncio
    async def test_rejected_never_reaches_sandbox(self, service, provider):
        session_id = await service.start_session()
        outcome = await service.run_command(session_id, "rm -rf /")
        assert outcome.status is CommandStatus.REJECTED
        assert "'/'" in outcome.reason
        assert provider.exec_calls == []

    @pytest.mark.asyncio
    async def test_rejected_request_still_counts_as_activity(self, service, registry, clock):
        session_id = await service.start_session()
        clock.advance(120)
        await service.run_command(session_id, "sudo ls")
        assert (await registry.lookup(session_id)).last_activity == clock.now

    @pytest.mark.asyncio
    async def test_timeout_keeps_session_alive(self, service, provider, registry):
        session_id = await service.start_session()
        provider.exec_timeout = True

        outcome = await service.run_command(session_id, "sleep 100")
        assert outcome.status is CommandStatus.TIMED_OUT
        assert (await registry.lookup(session_id)).id == session_id
        assert provider.live == {provider.created[0].sandbox_id}

        provider.exec_timeout = False
        assert (await service.run_command(session_id, "ls")).status is CommandStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_one_execution_per_session_at_a_time(self, service, provider):
        provider.exec_delay = 0.01
        session_id = await service.start_session()

        outcomes = await asyncio.gather(*(service.run_command(session_id, "ls") for _ in range(5)))

        assert all(o.status is CommandStatus.COMPLETED for o in outcomes)
        assert provider.max_in_flight == 1

    @pytest.mark.asyncio
    async def test_sessions_execute_concurrently(self, service, provider):
        provider.exec_delay = 0.02
        first = await service.start_session()
        second = await service.start_session()

        await asyncio.gather(service.run_command(first, "ls"), service.run_command(second, "ls"))
        assert provider.max_in_flight == 2

    @pytest.mark.asyncio
    async def test_session_ended_while_waiting(self, service, registry, provider):
        provider.exec_delay = 0.02
        session_id = await service.start_session()

        first = asyncio.create_task(service.run_command(session_id, "ls"))
        await asyncio.sleep(0)
        second = asyncio.create_task(service.run_command(session_id, "pwd"))
        await asyncio.sleep(0)
        await service.end_session(session_id)

        assert (await first).status is CommandStatus.COMPLETED
        assert (await second).status is CommandStatus.SESSION_EXPIRED
        assert [call[1] for call in provider.exec_calls] == ["ls"]


class TestEndSession:
    @pytest.mark.asyncio
    async def test_end_then_expired(self, service):
        session_id = await service.start_session()
        await service.end_session(session_id)
        with pytest.raises(SessionNotFound):
            await service.end_session(session_id)
        outcome = await service.run_command(session_id, "ls")
        assert outcome.status is CommandStatus.SESSION_EXPIRED


class TestStatus:
    @pytest.mark.asyncio
    async def test_reports_sessions_and_backend(self, service, provider):
        await service.start_session()
        provider.healthy = False
        assert await service.status() == {"sessions": 1, "sandbox_backend": False}
