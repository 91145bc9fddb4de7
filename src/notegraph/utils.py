"""Utility functions for notegraph."""

import os
import re
import sys
from pathlib import Path
from typing import Any, List, Optional, Union

from loguru import logger
from unidecode import unidecode


def slugify(text: str) -> str:
    """Turn a single path segment into a lowercase, hyphen separated slug.

    Examples:
        >>> slugify("My Feature")
        'my-feature'
        >>> slugify("API (v2)")
        'api-v2'
    """
    # Transliterate unicode to ascii
    ascii_text = unidecode(text)

    # Replace runs of anything non-alphanumeric with a single hyphen
    clean_text = re.sub(r"[^a-z0-9]+", "-", ascii_text.lower())

    return clean_text.strip("-")


def generate_permalink(folder: str, title: str) -> str:
    """Generate the base permalink for a title stored in a folder.

    Each folder segment is slugified the same way as the title, so the
    result is always URL-safe.

    Examples:
        >>> generate_permalink("notes", "Meeting")
        'notes/meeting'
        >>> generate_permalink("Specs/Search", "API (v2)")
        'specs/search/api-v2'
    """
    segments = [slugify(s) for s in folder.replace("\\", "/").split("/")]
    segments = [s for s in segments if s]
    name = slugify(title) or "untitled"
    return "/".join(segments + [name])


def parse_tags(tags: Any) -> List[str]:
    """Parse frontmatter tags into a list of distinct strings.

    Accepts a list, a comma separated string, or None. Leading '#' is removed.
    """
    if tags is None:
        return []

    if isinstance(tags, (list, tuple, set)):
        raw = [str(t) for t in tags]
    else:
        raw = str(tags).split(",")

    result: List[str] = []
    for tag in raw:
        cleaned = tag.strip().lstrip("#").strip()
        if cleaned and cleaned not in result:
            result.append(cleaned)
    return result


def normalize_title(title: str) -> str:
    """Key used for case-insensitive title lookups."""
    return title.strip().casefold()


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[Union[str, Path]] = None,
    console: bool = True,
) -> None:
    """Configure loguru sinks.

    Args:
        log_level: Minimum level for all sinks
        log_file: Optional file to log to, rotated at 10 MB
        console: Whether to log to stderr
    """
    logger.remove()

    if console:
        logger.add(sys.stderr, level=log_level, backtrace=True, diagnose=False)

    if log_file:
        log_path = Path(log_file).expanduser()
        os.makedirs(log_path.parent, exist_ok=True)
        logger.add(
            str(log_path),
            level=log_level,
            rotation="10 MB",
            retention="10 days",
            backtrace=True,
            diagnose=False,
            enqueue=True,
        )

    logger.debug(f"Logging configured at level {log_level}")
