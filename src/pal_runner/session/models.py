"""Session state kept by the dispatcher while a sandbox is alive."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import StrEnum

from docker.models.containers import Container


class SessionStatus(StrEnum):
    """Lifecycle states for an execution session."""

    IDLE = "IDLE"
    PROVISIONING = "PROVISIONING"
    RUNNING = "RUNNING"
    TERMINATED = "TERMINATED"


@dataclass(eq=False)
class Session:
    """A project's sandbox from provisioning until teardown.

    Attributes
    ----------
    project_id:
        Project identifier; also the container name.
    school_id:
        School the project belongs to, needed to persist changes.
    language:
        Language the sandbox was started with.
    status:
        Current lifecycle state.
    handle:
        The container, once created.  Owned by this session only.
    relay_task:
        Task forwarding the container's output, once attached.
    """

    project_id: str
    school_id: str
    language: str
    status: SessionStatus = SessionStatus.IDLE
    handle: Container | None = None
    relay_task: asyncio.Task | None = None
