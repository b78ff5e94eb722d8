"""Async HTTP client for the project code store.

Provides :class:`CodeStore` for downloading a project's latest code into
its host workspace before a run and uploading the workspace afterwards.
"""

from __future__ import annotations

import asyncio
import logging
import tarfile
from pathlib import Path
from urllib.parse import quote

import httpx

from pal_runner.errors import NotFound
from pal_runner.storage.archive import extract_tar, pack_directory, replace_directory
from pal_runner.storage.workspace import workspace_path

logger = logging.getLogger(__name__)


class CodeStore:
    """Async HTTP client for the code store.

    Parameters
    ----------
    base_url:
        Root URL of the code store API (e.g. ``http://localhost:8000``).
    api_key:
        Bearer token used for authentication.
    storage_root:
        Host directory holding one workspace per project.
    transport:
        Optional httpx transport, used by tests to stub the API.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        storage_root: str | Path,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._storage_root = Path(storage_root)
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=30.0,
            transport=transport,
        )

    @staticmethod
    def _archive_url(project_id: str, school_id: str) -> str:
        return f"/v1/schools/{quote(school_id, safe='')}/projects/{quote(project_id, safe='')}/archive"

    def workspace(self, project_id: str) -> Path:
        """Host path of *project_id*'s workspace."""
        return workspace_path(self._storage_root, project_id)

    # ------------------------------------------------------------------
    # Fetch
    # ------------------------------------------------------------------

    async def clone_code(self, project_id: str, school_id: str) -> Path:
        """Replace the project's workspace with the latest stored code.

        Returns
        -------
        Path
            The populated workspace directory.

        Raises
        ------
        NotFound
            If the archive could not be downloaded, read or unpacked.
        """
        try:
            workspace = self.workspace(project_id)
            resp = await self._client.get(self._archive_url(project_id, school_id))
            resp.raise_for_status()
            files = extract_tar(resp.content)
            await asyncio.to_thread(replace_directory, workspace, files)
        except (httpx.HTTPError, tarfile.TarError, OSError, ValueError) as exc:
            logger.warning("Failed to fetch code for %s (school %s): %s", project_id, school_id, exc)
            raise NotFound(f"Code for project {project_id!r} could not be fetched") from exc

        logger.info("Fetched %d files for %s into %s", len(files), project_id, workspace)
        return workspace

    # ------------------------------------------------------------------
    # Persist
    # ------------------------------------------------------------------

    async def save_changes(self, project_id: str, school_id: str) -> None:
        """Upload the project's workspace.  Failures are logged, never raised."""
        try:
            workspace = self.workspace(project_id)
            if not workspace.is_dir():
                logger.warning("No workspace to save for %s", project_id)
                return
            payload = await asyncio.to_thread(pack_directory, workspace)
            resp = await self._client.put(
                self._archive_url(project_id, school_id),
                content=payload,
                headers={"Content-Type": "application/x-tar"},
            )
            resp.raise_for_status()
        except (httpx.HTTPError, OSError, ValueError) as exc:
            logger.error("Failed to save changes for %s (school %s): %s", project_id, school_id, exc)
            return
        logger.info("Saved %d bytes of changes for %s", len(payload), project_id)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Close the underlying HTTP client and release resources."""
        await self._client.aclose()
