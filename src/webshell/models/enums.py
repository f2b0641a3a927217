"""CommandStatus enum."""

from enum import StrEnum


class CommandStatus(StrEnum):
    """Terminal states of a single command request.

    COMPLETED       - The sandbox ran the command; exit code is reported verbatim,
                      including non-zero codes.
    REJECTED        - The admission policy denied the command.  The sandbox was
                      never invoked.
    SESSION_EXPIRED - The session id is unknown or already ended.
    TIMED_OUT       - The command exceeded its wall-clock budget.  The session
                      survives.
    """

    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"
    SESSION_EXPIRED = "SESSION_EXPIRED"
    TIMED_OUT = "TIMED_OUT"
