"""Exception hierarchy shared by the validator, registry, and sandbox providers."""

from __future__ import annotations


class WebshellError(Exception):
    """Base class for every error raised by this package."""


class ValidationRejected(WebshellError):
    """A command was denied by the admission policy.

    Always carries a human-readable ``reason``.  This is a policy outcome,
    never a system fault.
    """

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class SessionNotFound(WebshellError):
    """The session id is unknown or the session has already ended."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session {session_id!r} not found")
        self.session_id = session_id


class ProvisionError(WebshellError):
    """The sandbox backend failed to create an execution environment."""


class ExecutionTimeout(WebshellError):
    """A command exceeded its wall-clock budget inside the sandbox."""

    def __init__(self, timeout_seconds: float) -> None:
        super().__init__(f"Command execution timed out after {timeout_seconds}s")
        self.timeout_seconds = timeout_seconds


class TeardownError(WebshellError):
    """The sandbox backend failed to destroy an execution environment.

    Providers raise it; the session registry logs it and carries on.
    """
