"""Create and start resource-bounded sandbox containers."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

import docker
import docker.errors
import requests.exceptions
from docker.models.containers import Container

from pal_runner.config import Settings
from pal_runner.errors import ProvisionError
from pal_runner.languages import get_tag
from pal_runner.sandbox.policy import ResourcePolicy
from pal_runner.sandbox.resources import allocate_cpu_budget
from pal_runner.storage.workspace import workspace_path

logger = logging.getLogger(__name__)


class SandboxProvisioner:
    """Creates one named container per project and starts it.

    The container is named after the project id.  Docker refuses a second
    container with the same name, which is what keeps a project to a
    single live sandbox; callers tear the old one down first.

    All blocking Docker SDK calls are dispatched via ``asyncio.to_thread``.
    """

    def __init__(
        self,
        docker_client: docker.DockerClient,
        settings: Settings,
        cpu_allocator: Callable[[Settings], float] = allocate_cpu_budget,
    ) -> None:
        self._client = docker_client
        self._settings = settings
        self._cpu_allocator = cpu_allocator

    def policy(self) -> ResourcePolicy:
        """Resource policy for the next sandbox, with a freshly allocated CPU budget."""
        return ResourcePolicy.from_settings(self._settings, self._cpu_allocator(self._settings))

    def container_options(self, project_id: str, language: str) -> dict:
        """Keyword arguments for ``client.containers.create``.

        Raises
        ------
        ValueError
            If *language* is unsupported or *project_id* cannot name a
            workspace directory.
        """
        settings = self._settings
        policy = self.policy()
        workspace = workspace_path(settings.storage_root, project_id)
        return {
            "image": get_tag(language, settings.image_prefix),
            "name": project_id,
            "working_dir": settings.working_dir,
            "volumes": {
                str(workspace): {"bind": settings.mount_path, "mode": "rw"},
            },
            # The runner script wraps the real command in timeout(1) so the
            # container exits on its own after the wall-clock limit.
            "entrypoint": [settings.entrypoint, policy.timeout_arg],
            "stdin_open": True,
            "tty": True,
            "detach": True,
            **policy.to_container_config(),
        }

    async def create(self, project_id: str, language: str) -> Container:
        """Create and start the sandbox for *project_id*.

        Returns
        -------
        Container
            Handle of the running container.

        Raises
        ------
        ProvisionError
            If the container could not be created or started.  A container
            that was created but failed to start is removed again.
        """
        try:
            options = self.container_options(project_id, language)
        except ValueError as exc:
            raise ProvisionError(str(exc)) from exc

        container: Container | None = None
        try:
            container = await asyncio.to_thread(self._client.containers.create, **options)
            logger.info(
                "Container created: name=%s id=%s image=%s",
                project_id,
                container.short_id,
                options["image"],
            )
            await asyncio.to_thread(container.start)
        except (docker.errors.DockerException, requests.exceptions.RequestException) as exc:
            logger.error("Failed to provision sandbox %s: %s", project_id, exc)
            if container is not None:
                try:
                    await asyncio.to_thread(container.remove, force=True)
                except (docker.errors.DockerException, requests.exceptions.RequestException) as cleanup_exc:
                    logger.error(
                        "Failed to remove unstarted container %s: %s",
                        container.short_id,
                        cleanup_exc,
                    )
            raise ProvisionError(f"Could not start sandbox {project_id!r}") from exc

        return container
