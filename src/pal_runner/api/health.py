"""Health and readiness probes."""

import asyncio

import docker.errors
import requests.exceptions
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict:
    """Liveness probe -- always returns OK if the process is running."""
    return {"status": "ok"}


@router.get("/ready")
async def ready(request: Request) -> JSONResponse:
    """Readiness probe -- checks that the Docker daemon is reachable.

    Returns HTTP 200 with ``{"status": "ready"}`` when the daemon answers a
    ping, or HTTP 503 with ``{"status": "not_ready"}`` otherwise.
    """
    client = getattr(request.app.state, "docker_client", None)
    if client is not None:
        try:
            if await asyncio.to_thread(client.ping):
                return JSONResponse(content={"status": "ready"}, status_code=200)
        except (docker.errors.DockerException, requests.exceptions.RequestException):
            pass
    return JSONResponse(content={"status": "not_ready"}, status_code=503)
