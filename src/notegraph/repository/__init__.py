from notegraph.repository.entity_repository import EntityRepository
from notegraph.repository.search_repository import SearchRepository

__all__ = ["EntityRepository", "SearchRepository"]
