"""Admission control: decides which command lines may reach a sandbox."""

from webshell.admission.base import BaseSanitizer, Verdict
from webshell.admission.denylist import DENIED_COMMANDS
from webshell.admission.validator import CommandValidator, classify

__all__ = [
    "DENIED_COMMANDS",
    "BaseSanitizer",
    "CommandValidator",
    "Verdict",
    "classify",
]
