"""Search index table definitions."""

from sqlalchemy import DDL

# One row per entity. Only text columns are tokenized; the rest ride along
# for result rendering.
CREATE_SEARCH_INDEX = DDL("""
CREATE VIRTUAL TABLE IF NOT EXISTS search_index USING fts5(
    id UNINDEXED,          -- Entity id
    title,                 -- Title for searching
    content,               -- Body, observations and tags
    permalink,             -- Stable identifier
    file_path UNINDEXED,   -- Physical location
    entity_type UNINDEXED, -- Open entity type tag
    metadata UNINDEXED,    -- JSON metadata

    tokenize='unicode61',
    prefix='1,2,3,4'
);
""")

DROP_SEARCH_INDEX = DDL("DROP TABLE IF EXISTS search_index")
