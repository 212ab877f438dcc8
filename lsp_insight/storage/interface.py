"""
Storage Interface - Abstract base class for all storage implementations.
Session documents and image payloads go through this contract, so the
filesystem backend can be swapped for an object store.
"""

from abc import ABC, abstractmethod
from typing import Optional, List


class StorageInterface(ABC):
    """
    Abstract storage interface that defines the contract for all storage implementations.

    Implementations raise StorageError when the backend fails; a missing
    path is not a failure.
    """

    @abstractmethod
    async def save(self, path: str, content: bytes | str) -> None:
        """
        Atomically save content to the specified path.

        Readers see either the previous content or the new content, never a
        partial write.

        Args:
            path: Relative path, e.g. "sessions/<id>.json"
            content: Bytes for binary payloads or str for text
        """
        pass

    @abstractmethod
    async def load(self, path: str) -> Optional[bytes]:
        """
        Load content from the specified path.

        Args:
            path: Relative path to load from

        Returns:
            Optional[bytes]: File content, or None if the file doesn't exist
        """
        pass

    @abstractmethod
    async def exists(self, path: str) -> bool:
        """Check if a file exists at the specified path."""
        pass

    @abstractmethod
    async def delete(self, path: str) -> bool:
        """
        Delete the file at the specified path.

        Returns:
            bool: True if a file was deleted, False if there was nothing to delete
        """
        pass

    @abstractmethod
    async def delete_tree(self, path: str) -> bool:
        """
        Recursively delete a directory.

        Returns:
            bool: True if a directory was deleted
        """
        pass

    @abstractmethod
    async def list(self, path: str, pattern: Optional[str] = None) -> List[str]:
        """
        List files directly inside a directory.

        Args:
            path: Directory path to list
            pattern: Optional glob pattern to filter files (e.g. "*.json")

        Returns:
            List[str]: Sorted relative file paths
        """
        pass
