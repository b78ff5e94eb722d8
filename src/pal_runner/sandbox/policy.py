"""Resource ceilings applied to every sandbox container."""

from __future__ import annotations

from dataclasses import dataclass

from pal_runner.config import Settings

_NANO_CPUS_PER_CORE = 1_000_000_000


@dataclass(frozen=True)
class ResourcePolicy:
    """Immutable set of resource limits for one sandbox.

    Defaults match the service defaults: 15 minute wall clock, 25
    processes, 100 MiB of memory, 50 MiB of disk and one core.
    """

    timeout_minutes: int = 15
    pids_limit: int = 25
    memory_bytes: int = 100 * 1_048_576
    disk_bytes: int = 50 * 1_048_576
    cpu_budget: float = 1.0
    enforce_disk_quota: bool = True

    def __post_init__(self) -> None:
        """Validate invariants that must never be violated."""
        if self.timeout_minutes <= 0:
            raise ValueError("timeout_minutes must be a positive integer.")
        if self.pids_limit <= 0:
            raise ValueError("pids_limit must be a positive integer.")
        if self.memory_bytes <= 0:
            raise ValueError("memory_bytes must be a positive integer.")
        if self.disk_bytes <= 0:
            raise ValueError("disk_bytes must be a positive integer.")
        if self.cpu_budget <= 0:
            raise ValueError("cpu_budget must be positive.")

    @classmethod
    def from_settings(cls, settings: Settings, cpu_budget: float) -> ResourcePolicy:
        """Build a policy from configuration and an allocated CPU budget."""
        return cls(
            timeout_minutes=settings.timeout,
            pids_limit=settings.pid_limit,
            memory_bytes=settings.memory_quota,
            disk_bytes=settings.disk_quota,
            cpu_budget=cpu_budget,
            enforce_disk_quota=settings.enforce_disk_quota,
        )

    @property
    def timeout_arg(self) -> str:
        """Wall-clock limit in the ``timeout(1)`` duration format, e.g. ``15m``."""
        return f"{self.timeout_minutes}m"

    @property
    def nano_cpus(self) -> int:
        return int(self.cpu_budget * _NANO_CPUS_PER_CORE)

    def to_container_config(self) -> dict:
        """Convert to keyword arguments for ``client.containers.create``."""
        config: dict = {
            "pids_limit": self.pids_limit,
            "mem_limit": self.memory_bytes,
            "memswap_limit": self.memory_bytes,  # No swap
            "nano_cpus": self.nano_cpus,
            "security_opt": ["no-new-privileges"],
        }
        # The size storage option needs a driver with quota support
        # (overlay2 on xfs with pquota, btrfs, zfs).
        if self.enforce_disk_quota:
            config["storage_opt"] = {"size": str(self.disk_bytes)}
        return config
