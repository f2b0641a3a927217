"""Command admission control.

:class:`CommandValidator` decides whether a command line may be sent to a
sandbox.  It is a blacklist: sequencing and substitution are refused
outright, base commands in :data:`~webshell.admission.denylist.DENIED_COMMANDS`
are refused in any pipeline position, and a handful of commands have their
arguments checked by a sanitizer.  Everything else is admitted unchanged.

The validator does not parse shell grammar.
"""

from __future__ import annotations

import re

from webshell.admission.base import BaseSanitizer, Verdict
from webshell.admission.denylist import DENIED_COMMANDS
from webshell.admission.sanitizers import build_sanitizers

_SEQUENCING_OPERATORS: tuple[str, ...] = ("&&", "||", ";")
# sh -c treats a line break as ";".
_LINE_BREAKS: tuple[str, ...] = ("\n", "\r")
_SUBSTITUTION_MARKERS: tuple[str, ...] = ("$(", "`")
# A lone "&" backgrounds and sequences; "2>&1" and "&>file" are redirections.
_BACKGROUND_RE: re.Pattern[str] = re.compile(r"(?<![<>])&(?!>)")


class CommandValidator:
    """Classifies command strings as safe or unsafe for sandbox execution.

    Instances hold only immutable policy tables, so one validator can be
    shared by every request.

    Parameters
    ----------
    home_prefix:
        Path prefix of the sandbox user's home tree.  ``chown`` is only
        admitted for absolute paths under it.
    denied_commands:
        Base commands refused unconditionally.
    """

    def __init__(
        self,
        home_prefix: str = "/home/",
        denied_commands: frozenset[str] = DENIED_COMMANDS,
    ) -> None:
        self._denied = denied_commands
        self._sanitizers: dict[str, BaseSanitizer] = build_sanitizers(home_prefix)

    def classify(self, raw: object) -> Verdict:
        """Return a :class:`Verdict` for *raw*.

        Never raises: malformed input is rejected with a reason.
        """
        if not isinstance(raw, str):
            return Verdict.reject("Command must be a string")
        if not raw.split():
            return Verdict.reject("Empty command")

        for operator in _SEQUENCING_OPERATORS:
            if operator in raw:
                return Verdict.reject(f"Command chaining with {operator!r} is not allowed")
        for line_break in _LINE_BREAKS:
            if line_break in raw:
                return Verdict.reject("Multi-line commands are not allowed")
        if _BACKGROUND_RE.search(raw):
            return Verdict.reject("Command chaining with '&' is not allowed")
        for marker in _SUBSTITUTION_MARKERS:
            if marker in raw:
                return Verdict.reject("Command substitution is not allowed")

        parts = raw.split("|")
        for index, segment in enumerate(parts):
            tokens = segment.split()
            if not tokens:
                return Verdict.reject("Empty pipeline segment")

            base = tokens[0]
            if base in self._denied:
                return Verdict.reject(f"Command {base!r} is not allowed")

            sanitizer = self._sanitizers.get(base)
            if sanitizer is not None:
                reason = sanitizer.check(tokens, "|".join(parts[index:]))
                if reason is not None:
                    return Verdict.reject(reason)

        return Verdict.allow(raw)


_default_validator = CommandValidator()


def classify(raw: object) -> Verdict:
    """Classify *raw* with the default policy (home prefix ``/home/``)."""
    return _default_validator.classify(raw)
