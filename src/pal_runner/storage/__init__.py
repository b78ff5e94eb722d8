"""Project code storage: workspace paths, archives and the code store client."""

from pal_runner.storage.code_store import CodeStore
from pal_runner.storage.workspace import sanitize_project_id, workspace_path

__all__ = [
    "CodeStore",
    "sanitize_project_id",
    "workspace_path",
]
