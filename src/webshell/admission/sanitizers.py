"""Per-command argument sanitizers.

Each sanitizer polices the arguments of specific base commands that are
harmless in general but destructive with particular arguments.  Use
:func:`build_sanitizers` to obtain the lookup table consumed by the
validator.
"""

from __future__ import annotations

import re

from webshell.admission.base import BaseSanitizer

# Targets that would wipe the sandbox root or escape the working tree.
_PROTECTED_RM_TARGETS = frozenset({"/", "/*", "..", "../..", "../*"})
_RM_REMOVAL_FLAGS = frozenset({"-r", "-f", "-rf", "-fr"})

_DANGEROUS_DD_ARGS = frozenset({
    "if=/dev/zero",
    "of=/dev/sda",
    "of=/dev/hda",
    "bs=1G",
    "bs=10G",
    "bs=100G",
    "bs=1024M",
})

_WORLD_WRITABLE_MODES = frozenset({"777", "a+rwx"})

_FORCE_KILL_FLAGS = frozenset({"-9", "-KILL"})

# "| sh", "|bash", "|  sh -s" ...
_PIPE_TO_SHELL_RE: re.Pattern[str] = re.compile(r"\|\s*(?:ba)?sh\b")


def _operands(tokens: list[str]) -> list[str]:
    """Arguments after the base command that are not flags."""
    return [t for t in tokens[1:] if not t.startswith("-")]


class RmSanitizer(BaseSanitizer):
    commands = ("rm",)

    def check(self, tokens: list[str], pipeline_tail: str) -> str | None:
        if not _RM_REMOVAL_FLAGS.intersection(tokens[1:]):
            return None
        for target in _operands(tokens):
            if target in _PROTECTED_RM_TARGETS:
                return f"Removing {target!r} is not allowed"
        return None


class DdSanitizer(BaseSanitizer):
    commands = ("dd",)

    def check(self, tokens: list[str], pipeline_tail: str) -> str | None:
        for arg in tokens[1:]:
            if arg in _DANGEROUS_DD_ARGS:
                return f"dd argument {arg!r} is not allowed"
        return None


class ChmodSanitizer(BaseSanitizer):
    commands = ("chmod",)

    def check(self, tokens: list[str], pipeline_tail: str) -> str | None:
        operands = _operands(tokens)
        if not _WORLD_WRITABLE_MODES.intersection(operands):
            return None
        for path in operands:
            if path.startswith("/"):
                return f"Making {path!r} world-writable is not allowed"
        return None


class ChownSanitizer(BaseSanitizer):
    """Ownership changes are confined to the sandbox user's home tree."""

    commands = ("chown",)

    def __init__(self, home_prefix: str = "/home/") -> None:
        self.home_prefix = home_prefix

    def check(self, tokens: list[str], pipeline_tail: str) -> str | None:
        # First operand is the owner spec, the rest are paths.
        for path in _operands(tokens)[1:]:
            if path.startswith("/") and not path.startswith(self.home_prefix):
                return f"Changing ownership of {path!r} is not allowed"
        return None


class KillSanitizer(BaseSanitizer):
    commands = ("kill",)

    def check(self, tokens: list[str], pipeline_tail: str) -> str | None:
        if _FORCE_KILL_FLAGS.intersection(tokens[1:]):
            return "Force-killing processes is not allowed"
        return None


class DownloadSanitizer(BaseSanitizer):
    """Downloads are fine; piping them into a shell interpreter is not."""

    commands = ("curl", "wget")

    def check(self, tokens: list[str], pipeline_tail: str) -> str | None:
        if _PIPE_TO_SHELL_RE.search(pipeline_tail):
            return f"Piping {tokens[0]} output into a shell is not allowed"
        return None


class DynamicExecutionSanitizer(BaseSanitizer):
    commands = ("eval", "exec")

    def check(self, tokens: list[str], pipeline_tail: str) -> str | None:
        return f"Command {tokens[0]!r} is not allowed"


def build_sanitizers(home_prefix: str = "/home/") -> dict[str, BaseSanitizer]:
    """Return a mapping of base command -> sanitizer instance."""
    instances: list[BaseSanitizer] = [
        RmSanitizer(),
        DdSanitizer(),
        ChmodSanitizer(),
        ChownSanitizer(home_prefix=home_prefix),
        KillSanitizer(),
        DownloadSanitizer(),
        DynamicExecutionSanitizer(),
    ]
    return {name: sanitizer for sanitizer in instances for name in sanitizer.commands}
