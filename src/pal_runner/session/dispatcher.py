"""Command dispatcher: maps client commands onto sandbox lifecycles.

A ``start`` fetches the project's code, tears down any previous sandbox of
the same project, moves the caller into the project's subscriber set and
provisions a new sandbox whose output is relayed to that set.  ``stdin``
and ``stop`` address the sandbox by project id at call time.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from functools import partial

from pal_runner.errors import InvalidRequest, ProvisionError, RunnerError
from pal_runner.languages import is_valid_language
from pal_runner.models.commands import StartCommand, StdinCommand, StopCommand
from pal_runner.models.events import RunEvent
from pal_runner.sandbox import SandboxProvisioner, StdinChannel, StreamRelay, Teardown
from pal_runner.session.models import Session, SessionStatus
from pal_runner.session.subscribers import Subscriber, SubscriberRegistry
from pal_runner.storage import CodeStore

logger = logging.getLogger(__name__)

MSG_ACKNOWLEDGED = "Request acknowledged. Downloading code..."
MSG_STARTING = "Starting..."
MSG_CREATED = "Container created! Mounting..."
MSG_FAILED = "Run failed. Try again."

# Seconds a new start waits for the replaced sandbox's relay to finish.
RELAY_DRAIN_TIMEOUT = 10.0


class SessionDispatcher:
    """Handles ``start``, ``stdin`` and ``stop`` commands from connections.

    Parameters
    ----------
    provisioner:
        Creates and starts sandbox containers.
    relay:
        Forwards a container's output to subscribers.
    stdin:
        Writes client input into containers.
    teardown:
        Kills and removes containers.
    code_store:
        Fetches code before a run and persists it afterwards.
    language_validator:
        Predicate deciding whether a ``start`` names a supported language.
    """

    def __init__(
        self,
        provisioner: SandboxProvisioner,
        relay: StreamRelay,
        stdin: StdinChannel,
        teardown: Teardown,
        code_store: CodeStore,
        language_validator: Callable[[str], bool] = is_valid_language,
    ) -> None:
        self._provisioner = provisioner
        self._relay = relay
        self._stdin = stdin
        self._teardown = teardown
        self._code_store = code_store
        self._is_valid_language = language_validator
        self.subscribers = SubscriberRegistry()
        self._sessions: dict[str, Session] = {}
        self._tasks: set[asyncio.Task] = set()
        self._handlers = {
            "start": self.start,
            "stdin": self.stdin,
            "stop": self.stop,
        }

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def dispatch(self, subscriber: Subscriber, command: str, data: object) -> asyncio.Task:
        """Handle *command* in its own task so the caller can keep reading."""
        return self._spawn(self.handle(subscriber, command, data), name=f"command-{command}")

    async def handle(self, subscriber: Subscriber, command: str, data: object) -> None:
        """Run one command, replying with a status event if it fails."""
        try:
            handler = self._handlers.get(command)
            if handler is None:
                raise InvalidRequest(f"Unknown command {command!r}")
            await handler(subscriber, data)
        except RunnerError as exc:
            logger.info("Rejected %s command (%d): %s", command, exc.status, exc)
            await subscriber.send(RunEvent.error(exc.status))
        except Exception:
            logger.exception("Unexpected error while handling %s command", command)
            await subscriber.send(RunEvent(status=500, running=False))

    def disconnect(self, subscriber: Subscriber) -> None:
        """Forget *subscriber*; its projects' sandboxes keep running."""
        left = self.subscribers.forget(subscriber)
        if left:
            logger.debug("Subscriber left %s", sorted(left))

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def start(self, subscriber: Subscriber, data: object) -> None:
        cmd = StartCommand.from_payload(data)
        if not self._is_valid_language(cmd.language):
            raise InvalidRequest(f"Unsupported language {cmd.language!r}")

        await subscriber.send(RunEvent.progress(MSG_ACKNOWLEDGED))
        await self._code_store.clone_code(cmd.project_id, cmd.school_id)

        # The old sandbox must be gone before the name can be reused.
        previous = self._sessions.get(cmd.project_id)
        await self._teardown.stop(cmd.project_id)
        if previous is not None:
            await self._await_relay(previous)

        # Stop broadcasting any other project to this connection.
        if not self.subscribers.replace(subscriber, cmd.project_id):
            logger.info("Dropping start for %s: connection already closed", cmd.project_id)
            return

        await self._launch(Session(cmd.project_id, cmd.school_id, cmd.language))

    async def stdin(self, subscriber: Subscriber, data: object) -> None:
        cmd = StdinCommand.from_payload(data)
        await self._stdin.write(cmd.project_id, cmd.stdin)

    async def stop(self, subscriber: Subscriber, data: object) -> None:
        cmd = StopCommand.from_payload(data)
        await self._teardown.stop(cmd.project_id)
        # Reply straight away; the relay's own end event follows when the
        # stream notices the kill.
        await subscriber.send(RunEvent.stopped())

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    async def publish(self, project_id: str, event: RunEvent) -> None:
        """Send *event* to every current subscriber of *project_id*, in order."""
        for subscriber in self.subscribers.subscribers(project_id):
            await subscriber.send(event)

    def session(self, project_id: str) -> Session | None:
        return self._sessions.get(project_id)

    async def _launch(self, session: Session) -> None:
        project_id = session.project_id
        session.status = SessionStatus.PROVISIONING
        self._sessions[project_id] = session
        await self.publish(project_id, RunEvent.progress(MSG_STARTING))

        try:
            container = await self._provisioner.create(project_id, session.language)
        except ProvisionError as exc:
            logger.warning("Provisioning failed for %s: %s", project_id, exc)
            self._retire(session)
            await self.publish(
                project_id,
                RunEvent(status=exc.status, message=MSG_FAILED, running=False),
            )
            return

        session.handle = container
        session.status = SessionStatus.RUNNING
        await self.publish(project_id, RunEvent.progress(MSG_CREATED, running=True))

        session.relay_task = self._spawn(
            self._relay.relay(
                container,
                emit=partial(self.publish, project_id),
                on_end=partial(self._finish, session),
            ),
            name=f"relay-{project_id}",
        )

    async def _finish(self, session: Session) -> None:
        """Relay end hook: retire the session, remove its container, persist."""
        self._retire(session)
        if session.handle is not None:
            # By id, so a newer sandbox with the same name is left alone.
            await self._teardown.stop(session.handle.id)
        await self._code_store.save_changes(session.project_id, session.school_id)

    async def _await_relay(self, session: Session) -> None:
        """Wait for a replaced session's relay to emit its end event and persist."""
        task = session.relay_task
        if task is None or task.done():
            return
        done, _ = await asyncio.wait({task}, timeout=RELAY_DRAIN_TIMEOUT)
        if not done:
            logger.warning("Relay for %s still running after teardown", session.project_id)

    def _retire(self, session: Session) -> None:
        session.status = SessionStatus.TERMINATED
        if self._sessions.get(session.project_id) is session:
            del self._sessions[session.project_id]

    # ------------------------------------------------------------------
    # Task bookkeeping
    # ------------------------------------------------------------------

    def _spawn(self, coro: Coroutine, name: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Task %s failed", task.get_name(), exc_info=task.exception())

    async def close(self) -> None:
        """Cancel outstanding work; relays still emit their end event and clean up."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Dispatcher closed (%d tasks cancelled)", len(tasks))
