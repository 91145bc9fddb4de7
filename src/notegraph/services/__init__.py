"""Services that implement the knowledge graph write and read paths."""
