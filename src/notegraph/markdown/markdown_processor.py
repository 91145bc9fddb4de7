"""Formats entity markdown files: frontmatter plus body text."""

from datetime import datetime
from typing import Any, Dict, List, Optional

import frontmatter
from frontmatter import Post

from notegraph.markdown.entity_parser import split_frontmatter


class MarkdownProcessor:
    """Builds the persisted text of an entity file.

    The frontmatter carries title, type, permalink, tags, created and
    modified. Any other keys already present in a file are preserved.
    """

    def format_frontmatter(
        self,
        title: str,
        entity_type: str,
        permalink: str,
        tags: List[str],
        created: Optional[datetime],
        modified: Optional[datetime],
        extra: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        metadata: Dict[str, Any] = dict(extra or {})
        metadata.update(
            {
                "title": title,
                "type": entity_type,
                "permalink": permalink,
                "tags": list(tags),
                "created": created.isoformat() if created else None,
                "modified": modified.isoformat() if modified else None,
            }
        )
        return metadata

    def dumps(self, metadata: Dict[str, Any], content: str) -> str:
        """Serialize metadata and content into file text."""
        post = Post(content.strip(), **metadata)
        return frontmatter.dumps(post, sort_keys=False) + "\n"

    def update_frontmatter(self, text: str, updates: Dict[str, Any]) -> str:
        """Return ``text`` with frontmatter keys replaced, body untouched."""
        metadata, content = split_frontmatter(text)
        metadata.update(updates)
        return self.dumps(metadata, content)
