"""
Local Filesystem Storage Implementation.
This implementation stores all data on the server's local filesystem.
"""

import asyncio
import logging
import os
import shutil
import uuid
import aiofiles
from pathlib import Path
from typing import Optional, List

from .interface import StorageInterface
from ..core.exceptions import StorageError

logger = logging.getLogger(__name__)


class LocalStorage(StorageInterface):
    """
    Local filesystem storage implementation.
    Stores all data in a base directory on the server.
    """

    def __init__(self, base_dir: str = "./data"):
        """
        Initialize local storage with a base directory.

        Args:
            base_dir: Base directory for all stored files
        """
        self.base_dir = Path(base_dir).resolve()
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _get_full_path(self, path: str) -> Path:
        """Convert relative path to full absolute path within base directory."""
        full_path = (self.base_dir / path).resolve()

        # Security check: ensure path is within base_dir
        if full_path != self.base_dir and self.base_dir not in full_path.parents:
            raise StorageError(f"Invalid path: {path} - path traversal detected")

        return full_path

    async def save(self, path: str, content: bytes | str) -> None:
        """Write to a temp file beside the target, then rename over it."""
        full_path = self._get_full_path(path)
        tmp_path = full_path.with_name(f".{full_path.name}.{uuid.uuid4().hex}.tmp")
        try:
            full_path.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, str):
                async with aiofiles.open(tmp_path, 'w', encoding='utf-8') as f:
                    await f.write(content)
            else:
                async with aiofiles.open(tmp_path, 'wb') as f:
                    await f.write(content)
            os.replace(tmp_path, full_path)
        except OSError as e:
            logger.error(f"Error saving file {path}: {e}", exc_info=True)
            raise StorageError(f"Failed to save {path}: {e}") from e
        finally:
            # Also reached on cancellation mid-write
            tmp_path.unlink(missing_ok=True)

    async def load(self, path: str) -> Optional[bytes]:
        """Load content from local filesystem."""
        full_path = self._get_full_path(path)
        if not full_path.exists():
            return None
        try:
            async with aiofiles.open(full_path, 'rb') as f:
                return await f.read()
        except OSError as e:
            logger.error(f"Error loading file {path}: {e}", exc_info=True)
            raise StorageError(f"Failed to load {path}: {e}") from e

    async def exists(self, path: str) -> bool:
        """Check if file exists."""
        return self._get_full_path(path).is_file()

    async def delete(self, path: str) -> bool:
        """Delete file from local filesystem."""
        full_path = self._get_full_path(path)
        if not full_path.is_file():
            return False
        try:
            full_path.unlink()
            return True
        except OSError as e:
            logger.error(f"Error deleting file {path}: {e}", exc_info=True)
            raise StorageError(f"Failed to delete {path}: {e}") from e

    async def delete_tree(self, path: str) -> bool:
        """Delete a directory and everything under it."""
        full_path = self._get_full_path(path)
        if full_path == self.base_dir:
            raise StorageError("Refusing to delete the storage root")
        if not full_path.is_dir():
            return False
        try:
            await asyncio.to_thread(shutil.rmtree, full_path)
            return True
        except OSError as e:
            logger.error(f"Error deleting directory {path}: {e}", exc_info=True)
            raise StorageError(f"Failed to delete {path}: {e}") from e

    async def list(self, path: str, pattern: Optional[str] = None) -> List[str]:
        """List files in directory, skipping in-flight temp files."""
        full_path = self._get_full_path(path)
        if not full_path.is_dir():
            return []

        files = full_path.glob(pattern or "*")
        return sorted(
            str(p.relative_to(self.base_dir))
            for p in files
            if p.is_file() and not p.name.startswith(".")
        )
