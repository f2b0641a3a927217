"""Sandbox subsystem: provider interface and the Docker-backed implementation."""

from webshell.sandbox.base import ExecResult, SandboxHandle, SandboxProvider
from webshell.sandbox.container import DockerSandboxProvider
from webshell.sandbox.security import SecurityPolicy

__all__ = [
    "DockerSandboxProvider",
    "ExecResult",
    "SandboxHandle",
    "SandboxProvider",
    "SecurityPolicy",
]
