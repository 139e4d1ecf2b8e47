"""Filesystem-backed document store."""

import asyncio
import os
from pathlib import Path

import structlog

from governance.storage.base import StoredDocument
from governance.storage.retry import with_retry

logger = structlog.get_logger()


class LocalDocumentStore:
    """Store documents as files below a root directory.

    Writes go to a temporary file first and are moved into place, so a
    reader never sees a partially written document.
    """

    def __init__(self, root: str | Path):
        """Initialize store.

        Args:
            root: Directory documents are stored under (created on demand)
        """
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if not path.is_relative_to(self.root.resolve()):
            msg = f"Storage key escapes the store root: {key}"
            raise ValueError(msg)
        return path

    @with_retry
    async def put(self, key: str, data: bytes) -> StoredDocument:
        path = self._path(key)
        await asyncio.to_thread(self._write, path, data)
        logger.info("document stored", key=key, size_bytes=len(data))
        return StoredDocument(key=key, size_bytes=len(data), location=str(path))

    @staticmethod
    def _write(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_bytes(data)
        os.replace(tmp, path)

    @with_retry
    async def get(self, key: str) -> bytes:
        return await asyncio.to_thread(self._path(key).read_bytes)

    async def delete(self, key: str) -> None:
        path = self._path(key)
        await asyncio.to_thread(path.unlink, missing_ok=True)
        logger.info("document deleted", key=key)

    async def exists(self, key: str) -> bool:
        return self._path(key).is_file()

    async def health_check(self) -> bool:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning("document store unavailable", root=str(self.root), error=str(e))
            return False
        return os.access(self.root, os.W_OK)
