from typing import List, Optional


class KnowledgeGraphError(Exception):
    """Base class for errors surfaced by the knowledge graph."""

    pass


class EntityNotFoundError(KnowledgeGraphError):
    """Raised when an identifier resolves to no entity"""

    def __init__(self, message: str, identifier: Optional[str] = None):
        super().__init__(message)
        self.identifier = identifier


class AmbiguousIdentifierError(KnowledgeGraphError):
    """Raised when a title matches more than one entity"""

    def __init__(self, identifier: str, candidates: List[str]):
        super().__init__(
            f"Identifier '{identifier}' matches {len(candidates)} entities: {', '.join(candidates)}"
        )
        self.identifier = identifier
        self.candidates = candidates


class PermalinkConflictError(KnowledgeGraphError):
    """Raised when two live entities would share a permalink. Indicates an internal bug."""

    pass


class FileOperationError(KnowledgeGraphError):
    """Raised when file operations fail"""

    pass


class EntityCreationError(KnowledgeGraphError):
    """Raised when an entity cannot be created"""

    pass
