"""CPU budget allocation for sandbox containers."""

from __future__ import annotations

import logging
import os

from pal_runner.config import Settings

logger = logging.getLogger(__name__)

_MIN_CPU_BUDGET = 0.01


def host_cpu_count() -> int:
    """Number of CPUs this process may schedule on."""
    try:
        return len(os.sched_getaffinity(0))
    except AttributeError:
        # Not available on macOS.
        return os.cpu_count() or 1


def allocate_cpu_budget(settings: Settings, cpus: int | None = None) -> float:
    """Return the fraction of a core each sandbox may use.

    The budget is the configured share of the host's CPUs, capped at
    ``settings.cpu_limit`` and never below one hundredth of a core.
    """
    if cpus is None:
        cpus = host_cpu_count()
    budget = min(settings.cpu_limit, cpus * settings.cpu_share)
    budget = max(_MIN_CPU_BUDGET, round(budget, 2))
    logger.debug("Allocated CPU budget %.2f (host cpus=%d)", budget, cpus)
    return budget
