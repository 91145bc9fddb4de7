"""Helpers for note files on disk."""

import hashlib
from pathlib import Path, PurePath

from loguru import logger


def compute_checksum(content: str) -> str:
    """SHA-256 hex digest of the text as written to disk (utf-8)."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def is_hidden(relative: PurePath) -> bool:
    """True for paths inside or naming a dot file, e.g. ``.notegraph/search.db``."""
    return any(part.startswith(".") for part in relative.parts)


def write_file_atomic(path: Path, content: str) -> None:
    """
    Write ``content`` to ``path`` through a temporary file in the same folder.

    Readers see either the old or the new text, never a partial write. The
    temporary file is a dot file so file listings skip it.

    Raises:
        OSError: If the folder or file cannot be written
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.with_name(f".{path.name}.tmp")
    try:
        temp_path.write_text(content, encoding="utf-8")
        temp_path.replace(path)
    except OSError as e:
        logger.error(f"Failed to write file: {path}: {e}")
        temp_path.unlink(missing_ok=True)
        raise
