"""Host-side project workspaces that are bind-mounted into sandboxes."""

from __future__ import annotations

import re
from pathlib import Path

# Characters that are unsafe in a single path component on common filesystems.
_UNSAFE_CHARS_RE: re.Pattern[str] = re.compile(r'[/\\?%*:|"<>\x00-\x1f\x7f]')

_MAX_COMPONENT_LENGTH = 255


def sanitize_project_id(project_id: str) -> str:
    """Turn *project_id* into a safe single directory name.

    Separators and control characters are dropped and ``.``/``..`` are
    rejected, so the result can never escape the storage root.
    """
    cleaned = _UNSAFE_CHARS_RE.sub("", project_id).strip()[:_MAX_COMPONENT_LENGTH]
    if cleaned in {"", ".", ".."}:
        raise ValueError(f"Project id {project_id!r} has no usable characters.")
    return cleaned


def workspace_path(storage_root: str | Path, project_id: str) -> Path:
    """Absolute path of the workspace for *project_id* under *storage_root*."""
    return Path(storage_root).resolve() / sanitize_project_id(project_id)
