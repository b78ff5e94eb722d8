"""FastAPI application entry point.

Creates the app with a lifespan that initialises the Docker client, the
code store client and the sandbox components, and wires them into a
:class:`SessionDispatcher`.  Everything is stored in ``app.state`` and
torn down cleanly on shutdown.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import docker
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pal_runner.api.router import api_router
from pal_runner.config import Settings
from pal_runner.sandbox import SandboxProvisioner, StdinChannel, StreamRelay, Teardown
from pal_runner.session import SessionDispatcher
from pal_runner.storage import CodeStore

logger = logging.getLogger(__name__)


def build_dispatcher(
    settings: Settings,
    docker_client: docker.DockerClient,
    code_store: CodeStore,
) -> SessionDispatcher:
    """Wire the sandbox components around one shared Docker client."""
    return SessionDispatcher(
        provisioner=SandboxProvisioner(docker_client, settings),
        relay=StreamRelay(),
        stdin=StdinChannel(docker_client),
        teardown=Teardown(docker_client, stop_signal=settings.stop_signal),
        code_store=code_store,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan -- set up and tear down shared resources.

    On startup:
        1. Load :class:`Settings` from the environment.
        2. Connect to the Docker daemon.
        3. Create the :class:`CodeStore` client.
        4. Build the :class:`SessionDispatcher`.
        5. Store all objects in ``app.state``.

    On shutdown:
        1. Close the dispatcher (cancels relays, which tear down their
           sandboxes and persist changes).
        2. Close the code store client.
        3. Close the Docker client.
    """
    settings = Settings()

    # Configure root logging level.
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    logger.info("Starting pal-runner (log_level=%s)", settings.log_level)

    # ---- Docker ----------------------------------------------------------
    docker_client = docker.from_env()

    # ---- Code store ------------------------------------------------------
    code_store = CodeStore(
        base_url=settings.code_store_url,
        api_key=settings.code_store_api_key,
        storage_root=settings.storage_root,
    )

    # ---- Store in app.state ----------------------------------------------
    app.state.settings = settings
    app.state.docker_client = docker_client
    app.state.code_store = code_store
    app.state.dispatcher = build_dispatcher(settings, docker_client, code_store)

    logger.info("Application startup complete")

    try:
        yield
    finally:
        # ---- Shutdown ----------------------------------------------------
        logger.info("Shutting down pal-runner")

        await app.state.dispatcher.close()
        await code_store.close()
        docker_client.close()

        logger.info("Shutdown complete")


# ---------------------------------------------------------------------------
# Application instance
# ---------------------------------------------------------------------------

app = FastAPI(
    title="pal-runner",
    description="Sandboxed, streamed execution of project code.",
    version="0.1.0",
    lifespan=lifespan,
)

# ---- Middleware ----------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=Settings().cors_allowed_origins,
    allow_credentials=False,
    allow_methods=["GET"],
    allow_headers=["Authorization", "Content-Type"],
)

# ---- Routes --------------------------------------------------------------

app.include_router(api_router)
