"""Database layer for the structural index."""

from contextdex.index._internal.db.database import Database
from contextdex.index._internal.db.schema import (
    EDGE_TABLE,
    ENTITY_TABLE,
    FTS_TABLE,
    REQUIRED_TABLES,
    create_schema,
    drop_schema,
)

__all__ = [
    "Database",
    "EDGE_TABLE",
    "ENTITY_TABLE",
    "FTS_TABLE",
    "REQUIRED_TABLES",
    "create_schema",
    "drop_schema",
]
