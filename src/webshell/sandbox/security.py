"""Hardening applied to every long-lived session container."""

from dataclasses import dataclass, field

import docker.types

_POSITIVE_FIELDS: tuple[str, ...] = (
    "memory_limit_mb",
    "pids_limit",
    "cpu_period",
    "cpu_quota",
    "tmpfs_size_mb",
    "nofile_limit",
)


@dataclass(frozen=True)
class SecurityPolicy:
    """Limits for a container that stays up for a whole interactive session.

    A session sandbox is not a one-shot job: it idles between commands and
    the user writes files into it, so the root filesystem stays writable and
    the limits are sized for many short commands rather than one long run.

    The container is never attached to a network. Constructing a policy
    with ``network_disabled=False`` raises ``ValueError``.

    No init process is injected. The idle command must stay PID 1, since the
    post-timeout cleanup kills every other process in the container.
    """

    network_disabled: bool = True
    read_only_rootfs: bool = False
    memory_limit_mb: int = 256
    cpu_period: int = 100000
    cpu_quota: int = 50000  # half a CPU
    pids_limit: int = 64
    nofile_limit: int = 1024
    tmpfs_size_mb: int = 64
    hostname: str = "sandbox"
    no_new_privileges: bool = True
    cap_drop: list[str] = field(default_factory=lambda: ["ALL"])

    def __post_init__(self) -> None:
        if not self.network_disabled:
            raise ValueError(
                "SecurityPolicy.network_disabled MUST be True. "
                "A session shell can never reach the network."
            )
        for name in _POSITIVE_FIELDS:
            value = getattr(self, name)
            if not isinstance(value, int) or value <= 0:
                raise ValueError(f"{name} must be a positive integer, got {value!r}.")

    def to_container_config(self) -> dict:
        """Keyword arguments merged into ``containers.run`` for a session.

        ``memswap_limit`` equals ``mem_limit`` so a runaway command cannot
        page out to swap. ``/tmp`` is a size-capped tmpfs; unlike the rest of
        the filesystem it is cleared with the container.
        """
        return {
            "network_mode": "none",
            "hostname": self.hostname,
            "read_only": self.read_only_rootfs,
            "mem_limit": f"{self.memory_limit_mb}m",
            "memswap_limit": f"{self.memory_limit_mb}m",
            "cpu_period": self.cpu_period,
            "cpu_quota": self.cpu_quota,
            "pids_limit": self.pids_limit,
            "ulimits": [
                docker.types.Ulimit(name="nofile", soft=self.nofile_limit, hard=self.nofile_limit),
            ],
            "security_opt": ["no-new-privileges"] if self.no_new_privileges else [],
            "cap_drop": list(self.cap_drop),
            "tmpfs": {"/tmp": f"size={self.tmpfs_size_mb}m,nosuid,nodev"},
        }
