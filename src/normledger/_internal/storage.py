"""Hierarchical named-blob storage (internal).

Blobs are addressed by path. Neither OSError nor UnicodeDecodeError escapes
this module: failures become StorageError or CorruptArtifactError so components
above it only see the domain taxonomy.
"""

import json
from pathlib import Path
from typing import Any, Union

from normledger.errors import CorruptArtifactError, StorageError

PathLike = Union[str, Path]


class FileStorage:
    """Blob storage backed by the local filesystem."""

    def exists(self, path: PathLike) -> bool:
        return Path(path).exists()

    def mkdir(self, path: PathLike) -> None:
        """Create a directory and its parents (no error if present)."""
        try:
            Path(path).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(str(path), "Failed to create directory") from e

    def read_text(self, path: PathLike) -> str:
        """Read a UTF-8 blob.

        Raises:
            StorageError: If the blob cannot be read
            CorruptArtifactError: If the bytes are not valid UTF-8
        """
        try:
            return Path(path).read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise CorruptArtifactError(str(path), f"not valid UTF-8: {e.reason}") from e
        except OSError as e:
            raise StorageError(str(path), "Failed to read") from e

    def write_text(self, path: PathLike, content: str) -> None:
        """Write content atomically (temp file, then replace)."""
        target = Path(path)
        tmp = target.with_suffix(target.suffix + ".tmp")
        try:
            with tmp.open("w", encoding="utf-8") as handle:
                handle.write(content)
            tmp.replace(target)
        except OSError as e:
            raise StorageError(str(path), "Failed to write") from e

    def read_json(self, path: PathLike) -> Any:
        """Read and parse a JSON blob.

        Raises:
            StorageError: If the blob cannot be read
            CorruptArtifactError: If the content is not valid UTF-8 JSON
        """
        content = self.read_text(path)
        try:
            return json.loads(content)
        except json.JSONDecodeError as e:
            raise CorruptArtifactError(str(path), f"invalid JSON: {e.msg}") from e
