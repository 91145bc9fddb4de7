"""Models for the in-memory knowledge graph and the search index."""

from notegraph.models.knowledge import Entity, Observation, Relation, DEFAULT_RELATION_TYPE
from notegraph.models.search import CREATE_SEARCH_INDEX, DROP_SEARCH_INDEX

__all__ = [
    "Entity",
    "Observation",
    "Relation",
    "DEFAULT_RELATION_TYPE",
    "CREATE_SEARCH_INDEX",
    "DROP_SEARCH_INDEX",
]
