"""Tar helpers for moving project workspaces to and from the code store."""

from __future__ import annotations

import io
import logging
import shutil
import tarfile
from pathlib import Path

logger = logging.getLogger(__name__)

# Maximum total bytes accepted from a downloaded archive.
MAX_ARCHIVE_BYTES: int = 32 * 1024 * 1024  # 32 MB


def _is_safe_member(name: str) -> bool:
    return bool(name) and not name.startswith("/") and ".." not in name.split("/")


def make_tar(files: dict[str, bytes]) -> bytes:
    """Create an in-memory tar archive from a mapping of path -> content."""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w") as tar:
        for name, raw in sorted(files.items()):
            info = tarfile.TarInfo(name=name)
            info.size = len(raw)
            info.mode = 0o644
            tar.addfile(info, io.BytesIO(raw))
    return buf.getvalue()


def extract_tar(data: bytes) -> dict[str, bytes]:
    """Extract an in-memory tar archive into a dict of path -> content.

    Only regular files are kept.  Members with absolute paths or ``..``
    components are skipped so an archive cannot write outside the
    workspace.

    Raises
    ------
    tarfile.TarError
        If *data* is not a readable archive or unpacks to more than
        :data:`MAX_ARCHIVE_BYTES`.
    """
    result: dict[str, bytes] = {}
    total = 0
    with tarfile.open(fileobj=io.BytesIO(data), mode="r:*") as tar:
        for member in tar.getmembers():
            if not member.isfile():
                continue
            name = member.name.removeprefix("./")
            if not _is_safe_member(name):
                logger.warning("Skipping tar member with suspicious path: %s", member.name)
                continue
            total += member.size
            if total > MAX_ARCHIVE_BYTES:
                raise tarfile.TarError(f"Archive exceeds {MAX_ARCHIVE_BYTES} bytes")
            extracted = tar.extractfile(member)
            if extracted is not None:
                result[name] = extracted.read()
    return result


def replace_directory(root: Path, files: dict[str, bytes]) -> None:
    """Replace the contents of *root* with *files*."""
    if root.exists():
        shutil.rmtree(root)
    root.mkdir(parents=True)
    for relative_path, raw in files.items():
        if not _is_safe_member(relative_path):
            raise ValueError(f"Path traversal in archive member: {relative_path!r}")
        dest = root / relative_path
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(raw)


def pack_directory(root: Path) -> bytes:
    """Archive every regular file under *root*, with paths relative to it."""
    files = {
        path.relative_to(root).as_posix(): path.read_bytes()
        for path in root.rglob("*")
        if path.is_file() and not path.is_symlink()
    }
    return make_tar(files)
