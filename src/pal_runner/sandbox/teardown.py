"""Best-effort kill and removal of sandbox containers."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

import docker
import docker.errors
import requests.exceptions

logger = logging.getLogger(__name__)


class Teardown:
    """Kills, then force-removes, a container by name or id.

    Both steps go straight to the low-level API with the reference as
    given, so there is no lookup that can fail first.  Each step is tried
    regardless of how the other went and no failure is ever raised:
    tearing down a sandbox that is already gone is a no-op.
    """

    def __init__(self, docker_client: docker.DockerClient, stop_signal: str = "SIGKILL") -> None:
        self._client = docker_client
        self._signal = stop_signal

    async def stop(self, ref: str) -> None:
        """Tear down the container identified by *ref* (name or id)."""
        killed = await self._attempt("kill", self._client.api.kill, ref, signal=self._signal)
        removed = await self._attempt("remove", self._client.api.remove_container, ref, force=True)
        if killed or removed:
            logger.info("Sandbox %s torn down (killed=%s removed=%s)", ref, killed, removed)

    async def _attempt(self, step: str, call: Callable, ref: str, **kwargs) -> bool:
        try:
            await asyncio.to_thread(call, ref, **kwargs)
        except docker.errors.NotFound:
            logger.debug("Skipping %s of %s: no such container", step, ref)
            return False
        except docker.errors.APIError as exc:
            # 409 from kill means the container already stopped.
            if exc.status_code == 409:
                logger.debug("Skipping %s of %s: %s", step, ref, exc.explanation)
            else:
                logger.warning("Failed to %s sandbox %s: %s", step, ref, exc)
            return False
        except requests.exceptions.RequestException as exc:
            logger.warning("Failed to %s sandbox %s: %s", step, ref, exc)
            return False
        return True
