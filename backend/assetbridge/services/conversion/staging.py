"""Scoped temp resources for one conversion.

Every conversion gets its own workspace directory under the staging root.
It holds the staged glTF, GLB and MML files (named ``{asset_id}{suffix}``)
and the auxiliary skeleton at ``data/skeleton.glb``. The workspace is torn
down on every exit path; a deletion that fails is logged as a
``CleanupWarning`` and never propagates.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import tempfile
import weakref
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import httpx

from assetbridge.services.config import AUX_RESOURCE_RELATIVE_PATH
from assetbridge.services.errors import CleanupWarning
from assetbridge.services.http import get_checked

logger = logging.getLogger(__name__)

STAGED_SUFFIXES = (".gltf", ".glb", ".mml")

# Guards os.chdir: the working directory is shared by the whole process.
# One lock per event loop; an asyncio.Lock cannot be shared between loops.
_cwd_locks: weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, asyncio.Lock] = (
    weakref.WeakKeyDictionary()
)


def _cwd_lock() -> asyncio.Lock:
    loop = asyncio.get_running_loop()
    lock = _cwd_locks.get(loop)
    if lock is None:
        lock = _cwd_locks[loop] = asyncio.Lock()
    return lock


class StagingWorkspace:
    """A uniquely named directory owned by a single conversion."""

    def __init__(self, path: Path, asset_id: str) -> None:
        self.path = path
        self.asset_id = asset_id
        self.warnings: list[CleanupWarning] = []

    @classmethod
    def create(cls, root: Path, asset_id: str) -> "StagingWorkspace":
        root = Path(root).expanduser().resolve()
        root.mkdir(parents=True, exist_ok=True)
        path = Path(tempfile.mkdtemp(prefix="assetbridge-", dir=root))
        return cls(path, asset_id)

    def staged_path(self, suffix: str) -> Path:
        if suffix not in STAGED_SUFFIXES:
            raise ValueError(f"Unknown staged suffix {suffix!r}")
        return self.path / f"{self.asset_id}{suffix}"

    @property
    def aux_path(self) -> Path:
        return self.path / AUX_RESOURCE_RELATIVE_PATH

    def stage(self, suffix: str, data: bytes) -> Path:
        """Write *data* to the staged file for *suffix* and return its path."""
        path = self.staged_path(suffix)
        path.write_bytes(data)
        return path

    def _remove(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            self._warn(path, exc)

    def _warn(self, path: Path, exc: BaseException) -> None:
        warning = CleanupWarning(path=str(path), reason=str(exc))
        self.warnings.append(warning)
        logger.warning("Error cleaning up temporary files: %s", warning)

    def cleanup(self) -> list[CleanupWarning]:
        """Delete staged files, the auxiliary resource, then the workspace."""
        for suffix in STAGED_SUFFIXES:
            self._remove(self.staged_path(suffix))

        self._remove(self.aux_path)
        aux_dir = self.aux_path.parent
        try:
            if aux_dir.is_dir() and not any(aux_dir.iterdir()):
                aux_dir.rmdir()
        except OSError as exc:
            self._warn(aux_dir, exc)

        # Whatever the converter left behind goes with the workspace
        shutil.rmtree(self.path, onexc=lambda _func, path, exc: self._warn(Path(path), exc))
        return self.warnings


@asynccontextmanager
async def staging_workspace(root: Path, asset_id: str) -> AsyncIterator[StagingWorkspace]:
    """Create a workspace for *asset_id* and clean it up however the block exits."""
    workspace = StagingWorkspace.create(root, asset_id)
    logger.debug("Staging asset %s in %s", asset_id, workspace.path)
    try:
        yield workspace
    finally:
        workspace.cleanup()


async def ensure_aux_resource(
    workspace: StagingWorkspace,
    client: httpx.AsyncClient,
    base_url: str,
) -> Path:
    """Download the skeleton the converter needs into the workspace."""
    url = f"{base_url}/{AUX_RESOURCE_RELATIVE_PATH.as_posix()}"
    logger.info("Fetching skeleton.glb from %s", url)
    resp = await get_checked(
        client, url, failure_message=f"Failed to fetch skeleton.glb from {url}"
    )
    workspace.aux_path.parent.mkdir(parents=True, exist_ok=True)
    workspace.aux_path.write_bytes(resp.content)
    return workspace.aux_path


@asynccontextmanager
async def working_directory(path: Path) -> AsyncIterator[Path]:
    """Hold the working-directory lock with cwd set to *path*.

    The original directory is restored on every exit path.
    """
    async with _cwd_lock():
        original = os.getcwd()
        os.chdir(path)
        try:
            yield path
        finally:
            os.chdir(original)
