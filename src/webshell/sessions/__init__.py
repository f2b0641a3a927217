"""Session lifecycle: the registry and its idle-session janitor."""

from webshell.sessions.janitor import SessionJanitor
from webshell.sessions.registry import SessionRegistry

__all__ = [
    "SessionJanitor",
    "SessionRegistry",
]
