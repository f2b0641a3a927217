"""Session model."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, Field

from webshell.sandbox.base import SandboxHandle


class Session(BaseModel):
    """A client-visible session bound to exactly one sandbox handle."""

    id: str = Field(
        description="Opaque, unguessable session token handed to the client.",
    )
    sandbox_handle: SandboxHandle = Field(
        description="Handle of the sandbox exclusively owned by this session.",
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="UTC timestamp when the session was started.",
    )
    last_activity: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="UTC timestamp of the most recent request against this session.",
    )

    def idle_for(self, now: datetime) -> float:
        """Seconds elapsed since the last request, as seen from *now*."""
        return (now - self.last_activity).total_seconds()
