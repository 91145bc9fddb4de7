"""Parser for markdown files into entity markdown.

``parse`` is a pure function over text. ``EntityParser`` wraps it with the
file-level defaults (title from file name, default type, date handling).
"""

import re
from datetime import date, datetime
from pathlib import Path
from typing import Any, List, Optional, Tuple

import dateparser
import frontmatter
import yaml
from loguru import logger

from notegraph.markdown.schemas import (
    EntityFrontmatter,
    EntityMarkdown,
    Observation,
    Relation,
)
from notegraph.models.knowledge import DEFAULT_RELATION_TYPE
from notegraph.utils import parse_tags

# - [category] content #tag
OBSERVATION_LINE = re.compile(r"^\s*-\s+\[(\w+)\]\s+(.+?)\s*$")

# - relation_type [[Target]]
RELATION_LINE = re.compile(r"^\s*-\s+(\w+)\s*\[\[([^\[\]]+)\]\]")

# [[Target]] anywhere in the body
WIKILINK = re.compile(r"\[\[([^\[\]]+)\]\]")

# #tag preceded by start of text or whitespace, ends at the last word character
TAG = re.compile(r"(?:^|(?<=\s))#(\w+(?:[\-/]\w+)*)")
TAG_TOKEN = re.compile(r"(?:^|\s+)#\w+(?:[\-/]\w+)*")

# a bullet that starts like an observation but did not parse
MALFORMED_OBSERVATION = re.compile(r"^\s*-\s+\[[^\]\[]*\]\s")


def parse_observation(line: str) -> Optional[Observation]:
    """Parse a single observation line, None when the line is not one."""
    match = OBSERVATION_LINE.match(line)
    if not match:
        if MALFORMED_OBSERVATION.match(line) and not WIKILINK.search(line):
            logger.debug(f"Skipping malformed observation line: {line!r}")
        return None

    category, text = match.groups()

    tags: List[str] = []
    for tag in TAG.findall(text):
        if tag not in tags:
            tags.append(tag)

    content = TAG_TOKEN.sub("", text).strip()
    if not content:
        logger.debug(f"Skipping observation without content: {line!r}")
        return None

    return Observation(category=category, content=content, tags=tags)


def parse_relation(line: str) -> Optional[Relation]:
    """Parse a declared relation line, None when the line is not one."""
    match = RELATION_LINE.match(line)
    if not match:
        return None

    relation_type, target = match.groups()
    target = target.strip()
    if not target:
        return None

    return Relation(type=relation_type, target=target)


def split_frontmatter(text: str) -> Tuple[dict, str]:
    """Split raw text into (metadata, content).

    Malformed YAML is not fatal: the whole text is treated as content. That
    includes values PyYAML fails to construct, such as `created: 2024-13-45`.
    """
    try:
        post = frontmatter.loads(text)
    except (yaml.YAMLError, ValueError, TypeError) as e:
        logger.warning(f"Failed to parse YAML frontmatter: {e}. Treating text as plain markdown.")
        return {}, text.strip()
    return dict(post.metadata), post.content.strip()


def parse(text: str) -> EntityMarkdown:
    """Parse note text into frontmatter, body, observations and relations.

    Declared relation lines win over inline ``[[links]]`` to the same target;
    remaining inline links become ``relates_to`` relations in order of
    appearance, each target once.
    """
    metadata, content = split_frontmatter(text or "")

    observations: List[Observation] = []
    declared: List[Relation] = []
    body_lines: List[str] = []

    for line in content.splitlines():
        observation = parse_observation(line)
        if observation:
            observations.append(observation)
            continue

        relation = parse_relation(line)
        if relation:
            if relation not in declared:
                declared.append(relation)
            continue

        body_lines.append(line)

    relations = list(declared)
    covered = {r.target for r in declared}
    for match in WIKILINK.finditer(content):
        target = match.group(1).strip()
        if not target or target in covered:
            continue
        covered.add(target)
        relations.append(Relation(type=DEFAULT_RELATION_TYPE, target=target))

    return EntityMarkdown(
        frontmatter=EntityFrontmatter(metadata=metadata),
        content=content,
        body="\n".join(body_lines).strip(),
        observations=observations,
        relations=relations,
    )


class EntityParser:
    """Parser for markdown files into EntityMarkdown."""

    def parse_date(self, value: Any) -> Optional[datetime]:
        """Parse frontmatter dates.

        ISO strings are read exactly; anything else goes through dateparser,
        which accepts human friendly formats like:
        - Jan 15, 2024
        - 2024-01-15 10:00 AM
        - 2 days ago
        """
        if isinstance(value, datetime):
            return value
        if isinstance(value, date):
            return datetime(value.year, value.month, value.day).astimezone()
        if isinstance(value, str) and value.strip():
            try:
                return datetime.fromisoformat(value.strip())
            except ValueError:
                pass
            parsed = dateparser.parse(value)
            if parsed:
                return parsed
            logger.debug(f"Unparseable date in frontmatter: {value!r}")
        return None

    def parse_file_content(self, file_path: str, text: str) -> EntityMarkdown:
        """Parse the text of the file at ``file_path`` (relative to the knowledge base root)."""
        markdown = parse(text)
        metadata = markdown.frontmatter.metadata

        # Handle title - use the file name if missing, null, or empty
        title = metadata.get("title")
        if title is None or not str(title).strip() or title == "None":
            metadata["title"] = Path(file_path).stem
        else:
            metadata["title"] = str(title).strip()

        entity_type = metadata.get("type")
        metadata["type"] = str(entity_type) if entity_type else "note"

        permalink = metadata.get("permalink")
        metadata["permalink"] = str(permalink).strip() if permalink else None

        metadata["tags"] = parse_tags(metadata.get("tags"))

        markdown.created = self.parse_date(metadata.get("created"))
        markdown.modified = self.parse_date(metadata.get("modified"))
        return markdown
