"""Service for file operations with checksum tracking."""

from pathlib import Path
from typing import List, Tuple, Union

from loguru import logger

from notegraph import file_utils
from notegraph.services.exceptions import FileOperationError

FilePath = Union[Path, str]


class FileService:
    """
    File access for the knowledge base.

    Paths are relative to ``base_path`` and use forward slashes. Every call is
    a single blocking operation; failures surface as FileOperationError and
    are never retried here.
    """

    def __init__(self, base_path: Path):
        self.base_path = base_path

    def get_path(self, path: FilePath) -> Path:
        """Absolute filesystem path for a knowledge base relative path."""
        path = Path(path)
        if path.is_absolute():
            return path
        return self.base_path / path

    def relative_path(self, path: FilePath) -> str:
        """Knowledge base relative path, in posix form."""
        path = Path(path)
        if path.is_absolute():
            path = path.relative_to(self.base_path)
        return path.as_posix()

    async def exists(self, path: FilePath) -> bool:
        """
        Check if file exists.

        Args:
            path: Path to check

        Returns:
            True if file exists, False otherwise
        """
        try:
            return self.get_path(path).exists()
        except Exception as e:
            logger.error(f"Failed to check file existence {path}: {e}")
            raise FileOperationError(f"Failed to check file existence: {e}")

    async def write_file(self, path: FilePath, content: str) -> str:
        """
        Write content to file and return checksum.

        Args:
            path: Path where to write
            content: Content to write

        Returns:
            Checksum of written content

        Raises:
            FileOperationError: If write fails
        """
        full_path = self.get_path(path)
        try:
            file_utils.write_file_atomic(full_path, content)

            checksum = file_utils.compute_checksum(content)
            logger.debug(f"wrote file: {path}, checksum: {checksum}")
            return checksum

        except Exception as e:
            logger.error(f"Failed to write file {path}: {e}")
            raise FileOperationError(f"Failed to write file: {e}")

    async def read_file(self, path: FilePath) -> Tuple[str, str]:
        """
        Read file and compute checksum.

        Args:
            path: Path to read

        Returns:
            Tuple of (content, checksum)

        Raises:
            FileOperationError: If read fails
        """
        try:
            content = self.get_path(path).read_text(encoding="utf-8")
            checksum = file_utils.compute_checksum(content)
            logger.debug(f"read file: {path}, checksum: {checksum}")
            return content, checksum

        except Exception as e:
            logger.error(f"Failed to read file {path}: {e}")
            raise FileOperationError(f"Failed to read file: {e}")

    async def delete_file(self, path: FilePath) -> None:
        """
        Delete file if it exists.

        Raises:
            FileOperationError: If deletion fails
        """
        try:
            self.get_path(path).unlink(missing_ok=True)
        except Exception as e:
            logger.error(f"Failed to delete file {path}: {e}")
            raise FileOperationError(f"Failed to delete file: {e}")

    async def list_files(self, pattern: str = "**/*.md") -> List[str]:
        """
        List files matching a glob pattern, sorted, skipping hidden directories.

        Returns:
            Relative posix paths

        Raises:
            FileOperationError: If the directory cannot be listed
        """
        try:
            paths = []
            for path in self.base_path.glob(pattern):
                relative = path.relative_to(self.base_path)
                if not path.is_file() or file_utils.is_hidden(relative):
                    continue
                paths.append(relative.as_posix())
            return sorted(paths)

        except Exception as e:
            logger.error(f"Failed to list files in {self.base_path}: {e}")
            raise FileOperationError(f"Failed to list files: {e}")
