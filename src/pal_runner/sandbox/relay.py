"""Relay a sandbox's combined output stream to subscribers."""

from __future__ import annotations

import asyncio
import codecs
import logging
from collections.abc import AsyncIterator, Awaitable, Callable

import docker.errors
import requests.exceptions
from docker.models.containers import Container

from pal_runner.models.events import OutputChunk, RunEvent

logger = logging.getLogger(__name__)

_END = object()


class StreamRelay:
    """Turns a container's attach stream into ordered ``run`` events.

    :meth:`stream` yields :class:`OutputChunk` objects until the stream
    closes.  :meth:`relay` forwards them and, however the stream ends,
    emits the terminal ``running: false`` event and runs the end hook
    exactly once.
    """

    async def stream(self, container: Container) -> AsyncIterator[OutputChunk]:
        """Yield output chunks from *container* until its stream closes.

        ``logs=True`` replays anything written between start and attach.
        The container runs with a TTY, so stdout and stderr arrive as a
        single raw stream.
        """
        raw = await asyncio.to_thread(
            container.attach,
            stdout=True,
            stderr=True,
            stream=True,
            logs=True,
        )
        iterator = iter(raw)
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

        while True:
            data = await asyncio.to_thread(next, iterator, _END)
            if data is _END:
                break
            text = decoder.decode(data)
            if text:
                yield OutputChunk(text)

        tail = decoder.decode(b"", final=True)
        if tail:
            yield OutputChunk(tail)

    async def relay(
        self,
        container: Container,
        emit: Callable[[RunEvent], Awaitable[None]],
        on_end: Callable[[], Awaitable[None]],
    ) -> None:
        """Forward *container*'s output through *emit* until it ends.

        *emit* must not raise.  The terminal event and *on_end* run even
        when the attach fails or the task is cancelled.
        """
        chunks = 0
        try:
            async for chunk in self.stream(container):
                chunks += 1
                await emit(RunEvent.output(chunk))
        except (docker.errors.DockerException, requests.exceptions.RequestException, OSError) as exc:
            logger.warning("Output stream for %s ended with error: %s", container.name, exc)
        finally:
            logger.info("Output stream for %s closed after %d chunks", container.name, chunks)
            try:
                await emit(RunEvent.stopped())
            finally:
                await on_end()
