"""Filesystem result store for local mode."""

import os
from typing import Optional
import tempfile

from tryon.jobs.errors import StorageCollisionError
from tryon.storage.assets import AssetWriter, StoredObject


class LocalAssetWriter(AssetWriter):
    """Writes result images under a base directory, one folder per owner.

    Files are opened in exclusive-create mode so an existing result is never
    replaced.
    """

    def __init__(self, base_dir: Optional[str] = None, public_base_url: str = ""):
        if base_dir:
            self._base_dir = base_dir
        else:
            self._base_dir = os.path.join(tempfile.gettempdir(), "tryon_results")
        os.makedirs(self._base_dir, exist_ok=True)
        self._public_base_url = public_base_url.rstrip("/")

    def get_full_path(self, path: str) -> str:
        full = os.path.normpath(os.path.join(self._base_dir, path))
        if not full.startswith(os.path.normpath(self._base_dir) + os.sep):
            raise ValueError(f"Path escapes result directory: {path}")
        return full

    async def store(
        self,
        owner_id: str,
        path_hint: str,
        data: bytes,
        content_type: str,
    ) -> StoredObject:
        if not path_hint.startswith(f"{owner_id}/"):
            path_hint = f"{owner_id}/{path_hint}"
        full = self.get_full_path(path_hint)
        os.makedirs(os.path.dirname(full), exist_ok=True)
        try:
            with open(full, "xb") as dst:
                dst.write(data)
        except FileExistsError:
            raise StorageCollisionError(path_hint)
        return StoredObject(path=path_hint)

    async def public_url(self, path: str) -> str:
        return f"{self._public_base_url}/{path}"

    def file_exists(self, path: str) -> bool:
        return os.path.exists(self.get_full_path(path))
