"""notegraph - knowledge graph engine over plain-text markdown notes."""

__version__ = "0.1.0"
