"""Write client input into a running sandbox."""

from __future__ import annotations

import asyncio
import logging
import socket

import docker
import docker.errors
import requests.exceptions

logger = logging.getLogger(__name__)


class StdinChannel:
    """One-shot writes to a container's stdin over a hijacked attach socket.

    Every call opens a fresh socket, writes once, ends the input side and
    closes it, so a program reading several lines needs several writes.
    """

    def __init__(self, docker_client: docker.DockerClient) -> None:
        self._client = docker_client

    async def write(self, project_id: str, data: str) -> bool:
        """Send *data* to the sandbox named *project_id*.

        Returns ``False`` (after logging) when the sandbox is missing or the
        write fails; errors are never raised to the caller.
        """
        try:
            await asyncio.to_thread(self._write_blocking, project_id, data.encode("utf-8"))
        except docker.errors.NotFound:
            logger.info("Dropping stdin for %s: no such sandbox", project_id)
            return False
        except (docker.errors.DockerException, requests.exceptions.RequestException, OSError) as exc:
            logger.warning("Failed to write stdin to %s: %s", project_id, exc)
            return False
        logger.debug("Wrote %d bytes of stdin to %s", len(data), project_id)
        return True

    def _write_blocking(self, project_id: str, payload: bytes) -> None:
        container = self._client.containers.get(project_id)
        sock = container.attach_socket(params={"stdin": 1, "stream": 1})
        # attach_socket returns a SocketIO wrapper on most transports; the
        # raw socket sits behind ``_sock``.
        raw = getattr(sock, "_sock", sock)
        try:
            raw.sendall(payload)
            raw.shutdown(socket.SHUT_WR)
        finally:
            # Closing the SocketIO wrapper leaves the raw socket open.
            sock.close()
            if raw is not sock:
                raw.close()
