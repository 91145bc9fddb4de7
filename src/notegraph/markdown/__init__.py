"""Base package for markdown parsing."""

from notegraph.markdown.entity_parser import EntityParser, parse
from notegraph.markdown.markdown_processor import MarkdownProcessor
from notegraph.markdown.schemas import (
    EntityMarkdown,
    EntityFrontmatter,
    Observation,
    Relation,
)

__all__ = [
    "EntityMarkdown",
    "EntityFrontmatter",
    "EntityParser",
    "MarkdownProcessor",
    "Observation",
    "Relation",
    "parse",
]
