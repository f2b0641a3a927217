"""Core domain models for the webshell service."""

from webshell.models.enums import CommandStatus
from webshell.models.outcome import CommandOutcome
from webshell.models.session import Session

__all__ = [
    "CommandOutcome",
    "CommandStatus",
    "Session",
]
