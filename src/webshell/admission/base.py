"""Verdict type and the abstract argument-sanitizer interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from webshell.errors import ValidationRejected


@dataclass(frozen=True)
class Verdict:
    """Outcome of classifying one command string.

    Attributes:
        allowed: Whether the command may reach the sandbox.
        reason: Why the command was rejected; ``None`` when allowed.
        normalized_command: The command to execute; identical to the
            submitted string when allowed, ``None`` when rejected.
    """

    allowed: bool
    reason: str | None = None
    normalized_command: str | None = None

    @classmethod
    def allow(cls, command: str) -> Verdict:
        return cls(allowed=True, normalized_command=command)

    @classmethod
    def reject(cls, reason: str) -> Verdict:
        return cls(allowed=False, reason=reason)

    def raise_for_rejection(self) -> None:
        """Raise :class:`ValidationRejected` if this verdict denies the command."""
        if not self.allowed:
            raise ValidationRejected(self.reason or "Command not allowed")


class BaseSanitizer(ABC):
    """Argument-level policy for one or more base commands.

    Subclasses set ``commands`` to the base tokens they police and
    implement :meth:`check`.
    """

    commands: tuple[str, ...] = ()

    @abstractmethod
    def check(self, tokens: list[str], pipeline_tail: str) -> str | None:
        """Inspect one pipeline segment.

        Parameters:
            tokens: Whitespace-split tokens of the segment; ``tokens[0]``
                is the base command.
            pipeline_tail: Raw text of the command line from the start of
                this segment to the end of the line, including any later
                pipe stages.

        Returns:
            A rejection reason, or ``None`` if the segment is acceptable.
        """
        ...
