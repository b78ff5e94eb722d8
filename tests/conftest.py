"""Shared fixtures: in-memory stand-ins for the Docker daemon and code store."""

from __future__ import annotations

import asyncio
import threading
from types import SimpleNamespace
from uuid import uuid4

import docker.errors
import pytest

from pal_runner.config import Settings
from pal_runner.errors import NotFound
from pal_runner.models.events import RunEvent
from pal_runner.sandbox import SandboxProvisioner, StdinChannel, StreamRelay, Teardown
from pal_runner.session import SessionDispatcher


def _conflict(message: str) -> docker.errors.APIError:
    response = SimpleNamespace(status_code=409, url="http+docker://localhost/", reason="Conflict")
    return docker.errors.APIError(message, response=response, explanation=message)


# ======================================================================
# Fake Docker daemon
# ======================================================================


class FakeSocket:
    def __init__(self) -> None:
        self.sent: list[bytes] = []
        self.shutdowns: list[int] = []
        self.closed = False

    def sendall(self, data: bytes) -> None:
        self.sent.append(data)

    def shutdown(self, how: int) -> None:
        self.shutdowns.append(how)

    def close(self) -> None:
        self.closed = True


class FakeContainer:
    def __init__(self, client: FakeDockerClient, **options) -> None:
        self.client = client
        self.options = options
        self.name = options["name"]
        self.id = uuid4().hex
        self.short_id = self.id[:10]
        self.started = False
        self.killed = threading.Event()
        self.attach_kwargs: dict | None = None
        self.sockets: list[FakeSocket] = []

    def start(self) -> None:
        if self.client.fail_start:
            raise docker.errors.APIError("cannot start container")
        self.started = True

    def attach(self, **kwargs):
        self.attach_kwargs = kwargs
        if self.client.fail_attach:
            raise docker.errors.APIError("attach failed")
        return self._stream(list(self.client.chunks), self.client.block)

    def _stream(self, chunks: list[bytes], block: bool):
        yield from chunks
        if block:
            # Runs until killed, like a program waiting for input.
            self.killed.wait(timeout=5)

    def attach_socket(self, params: dict) -> FakeSocket:
        sock = FakeSocket()
        self.sockets.append(sock)
        return sock

    def remove(self, force: bool = False) -> None:
        self.client.api.remove_container(self.id, force=force)


class FakeContainers:
    def __init__(self, client: FakeDockerClient) -> None:
        self.client = client

    def create(self, **options) -> FakeContainer:
        self.client.create_calls.append(options)
        if self.client.fail_create:
            raise docker.errors.ImageNotFound(f"No such image: {options['image']}")
        if options["name"] in self.client.live:
            raise _conflict(f"Conflict. The container name {options['name']!r} is already in use")
        container = FakeContainer(self.client, **options)
        self.client.live[container.name] = container
        self.client.created.append(container)
        return container

    def get(self, ref: str) -> FakeContainer:
        return self.client.lookup(ref)


class FakeAPI:
    def __init__(self, client: FakeDockerClient) -> None:
        self.client = client
        self.calls: list[tuple] = []

    def kill(self, ref: str, signal: str | None = None) -> None:
        self.calls.append(("kill", ref, signal))
        container = self.client.lookup(ref)
        if container.killed.is_set():
            raise _conflict(f"Container {ref} is not running")
        container.killed.set()

    def remove_container(self, ref: str, force: bool = False) -> None:
        self.calls.append(("remove", ref, force))
        container = self.client.lookup(ref)
        container.killed.set()
        del self.client.live[container.name]


class FakeDockerClient:
    """Tracks live containers by name the way the daemon does."""

    def __init__(self) -> None:
        self.live: dict[str, FakeContainer] = {}
        self.created: list[FakeContainer] = []
        self.create_calls: list[dict] = []
        self.chunks: list[bytes] = [b"hello\n"]
        self.block = False
        self.fail_create = False
        self.fail_start = False
        self.fail_attach = False
        self.containers = FakeContainers(self)
        self.api = FakeAPI(self)

    def lookup(self, ref: str) -> FakeContainer:
        for container in self.live.values():
            if ref in (container.name, container.id):
                return container
        raise docker.errors.NotFound(f"No such container: {ref}")

    def ping(self) -> bool:
        return True


# ======================================================================
# Fake code store and subscriber
# ======================================================================


class FakeCodeStore:
    def __init__(self) -> None:
        self.cloned: list[tuple[str, str]] = []
        self.saved: list[tuple[str, str]] = []
        self.fail_clone = False
        self.clone_gate: asyncio.Event | None = None

    async def clone_code(self, project_id: str, school_id: str) -> None:
        self.cloned.append((project_id, school_id))
        if self.clone_gate is not None:
            await self.clone_gate.wait()
        if self.fail_clone:
            raise NotFound(f"no code for {project_id}")

    async def save_changes(self, project_id: str, school_id: str) -> None:
        self.saved.append((project_id, school_id))


class RecordingSubscriber:
    def __init__(self, name: str = "client") -> None:
        self.name = name
        self.events: list[dict] = []

    async def send(self, event: RunEvent) -> None:
        self.events.append(event.to_wire())

    def messages(self) -> list[str]:
        return [e["message"] for e in self.events if "message" in e]

    def stdout(self) -> list[dict]:
        return [e for e in self.events if "stdout" in e]

    def __repr__(self) -> str:
        return f"<RecordingSubscriber {self.name}>"


async def drain(dispatcher: SessionDispatcher) -> None:
    """Wait until every command and relay task has finished."""
    while dispatcher._tasks:
        await asyncio.gather(*list(dispatcher._tasks), return_exceptions=True)


# ======================================================================
# Fixtures
# ======================================================================


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(storage_root=str(tmp_path / "projects"))


@pytest.fixture
def docker_client() -> FakeDockerClient:
    return FakeDockerClient()


@pytest.fixture
def code_store() -> FakeCodeStore:
    return FakeCodeStore()


@pytest.fixture
def teardown(docker_client) -> Teardown:
    return Teardown(docker_client)


@pytest.fixture
def dispatcher(settings, docker_client, code_store, teardown) -> SessionDispatcher:
    return SessionDispatcher(
        provisioner=SandboxProvisioner(docker_client, settings, cpu_allocator=lambda _s: 0.5),
        relay=StreamRelay(),
        stdin=StdinChannel(docker_client),
        teardown=teardown,
        code_store=code_store,
    )
