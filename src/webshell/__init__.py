"""webshell: a sandboxed remote shell with session lifecycle and command admission control."""

__version__ = "0.1.0"
