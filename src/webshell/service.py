"""Command execution path: session check, admission control, sandbox exec.

:class:`ShellService` is the only object the HTTP layer talks to.  It
composes the session registry, the command validator, and the sandbox
provider, and turns their results into :class:`CommandOutcome` values.
Rejections, expired sessions, and timeouts are ordinary outcomes rather
than exceptions; only provisioning faults propagate.
"""

from __future__ import annotations

import logging

from webshell.admission import CommandValidator
from webshell.errors import ExecutionTimeout, SessionNotFound
from webshell.models import CommandOutcome, CommandStatus
from webshell.sandbox import SandboxProvider
from webshell.sessions import SessionRegistry

logger = logging.getLogger(__name__)


class ShellService:
    """Runs user commands against session sandboxes.

    Parameters
    ----------
    registry:
        Owner of live sessions.
    provider:
        Sandbox backend that executes admitted commands.
    validator:
        Admission policy applied to every command.
    command_timeout_seconds:
        Wall-clock budget for a single command.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        provider: SandboxProvider,
        validator: CommandValidator | None = None,
        command_timeout_seconds: float = 5.0,
    ) -> None:
        self._registry = registry
        self._provider = provider
        self._validator = validator or CommandValidator()
        self._timeout = command_timeout_seconds

    async def start_session(self) -> str:
        """Provision a sandbox and return the new session id.

        Raises :class:`~webshell.errors.ProvisionError` if the backend fails.
        """
        session = await self._registry.start()
        return session.id

    async def run_command(self, session_id: str, command: str) -> CommandOutcome:
        """Admit and execute *command* in the session's sandbox.

        1. Refresh the session's idle clock (SESSION_EXPIRED if unknown).
        2. Classify the command (REJECTED, sandbox never invoked).
        3. Execute it under the per-session execution slot and the
           command timeout (TIMED_OUT, session survives).
        4. Report stdout, stderr, and exit code verbatim (COMPLETED).
        """
        try:
            await self._registry.touch(session_id)
        except SessionNotFound:
            logger.info("Command for unknown session %s", session_id)
            return CommandOutcome.session_expired()

        verdict = self._validator.classify(command)
        if not verdict.allowed:
            logger.info("Command rejected for session %s: %s", session_id, verdict.reason)
            return CommandOutcome.rejected(verdict.reason or "Command not allowed")

        try:
            async with self._registry.exclusive(session_id) as session:
                result = await self._provider.exec(
                    session.sandbox_handle,
                    verdict.normalized_command,
                    self._timeout,
                )
        except SessionNotFound:
            logger.info("Session %s ended before its command ran", session_id)
            return CommandOutcome.session_expired()
        except ExecutionTimeout:
            logger.warning("Command timed out for session %s after %ss", session_id, self._timeout)
            return CommandOutcome.timed_out()

        logger.debug("Command finished for session %s: exit=%d", session_id, result.exit_code)
        return CommandOutcome(
            status=CommandStatus.COMPLETED,
            stdout=result.stdout,
            stderr=result.stderr,
            exit_code=result.exit_code,
        )

    async def end_session(self, session_id: str) -> None:
        """End the session and destroy its sandbox.

        Raises :class:`~webshell.errors.SessionNotFound` if the session is
        unknown or already ended.
        """
        await self._registry.end(session_id)

    async def status(self) -> dict:
        """Liveness snapshot of the validator/registry subsystem."""
        return {
            "sessions": len(self._registry),
            "sandbox_backend": await self._provider.health_check(),
        }
