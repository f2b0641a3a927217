"""Abstract sandbox provider interface and shared data structures."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class SandboxHandle:
    """Opaque reference to one provisioned sandbox.

    Attributes
    ----------
    sandbox_id:
        Backend identifier (for Docker, the container id).
    name:
        Human-readable backend name, used in logs.
    """

    sandbox_id: str
    name: str


@dataclass(frozen=True)
class ExecResult:
    """Outcome of one command executed inside a sandbox."""

    exit_code: int
    stdout: str
    stderr: str


class SandboxProvider(ABC):
    """Capability interface for isolated execution environments.

    The session registry and command path only talk to this interface, so
    alternate isolation backends can be substituted freely.  Providers
    never retry ``create`` or ``destroy``.
    """

    @abstractmethod
    async def create(self) -> SandboxHandle:
        """Provision a fresh sandbox.

        Raises
        ------
        ProvisionError
            If the backend is unavailable or refuses the request.
        """
        ...

    @abstractmethod
    async def exec(self, handle: SandboxHandle, command: str, timeout: float) -> ExecResult:
        """Run *command* inside the sandbox and wait at most *timeout* seconds.

        A non-zero exit status is a normal result, not an error.

        Raises
        ------
        ExecutionTimeout
            If the command did not finish within *timeout*.
        ProvisionError
            If the sandbox no longer exists or the backend is unreachable.
        """
        ...

    @abstractmethod
    async def destroy(self, handle: SandboxHandle) -> bool:
        """Tear the sandbox down.

        Returns ``True`` if a sandbox was removed and ``False`` if it was
        already gone, so calling twice is harmless.

        Raises
        ------
        TeardownError
            If the backend failed to remove an existing sandbox.
        """
        ...

    async def health_check(self) -> bool:
        """Return ``True`` if the backend is reachable."""
        return True

    async def reap_orphans(self) -> int:
        """Remove sandboxes left behind by a previous process.

        Returns the number removed.  The default implementation has no
        durable state to inspect.
        """
        return 0
