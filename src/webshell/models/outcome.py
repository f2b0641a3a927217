"""CommandOutcome model."""

from __future__ import annotations

from pydantic import BaseModel, Field

from webshell.models.enums import CommandStatus


class CommandOutcome(BaseModel):
    """Result of submitting one command against a session."""

    status: CommandStatus = Field(
        description="How the request ended.",
    )
    stdout: str = Field(
        default="",
        description="Captured standard output (COMPLETED only).",
    )
    stderr: str = Field(
        default="",
        description="Captured standard error (COMPLETED only).",
    )
    exit_code: int | None = Field(
        default=None,
        description="Process exit status reported by the sandbox (COMPLETED only).",
    )
    reason: str | None = Field(
        default=None,
        description="Human-readable explanation for REJECTED, SESSION_EXPIRED, or TIMED_OUT.",
    )

    @classmethod
    def rejected(cls, reason: str) -> CommandOutcome:
        return cls(status=CommandStatus.REJECTED, reason=reason)

    @classmethod
    def session_expired(cls) -> CommandOutcome:
        return cls(status=CommandStatus.SESSION_EXPIRED, reason="Session not found")

    @classmethod
    def timed_out(cls) -> CommandOutcome:
        return cls(status=CommandStatus.TIMED_OUT, reason="Command execution timed out")
