"""Schema creation for the entity, edge and full-text structures.

The two relational tables come from SQLModel metadata. The FTS5 mirror and
the secondary indexes cannot be expressed via SQLModel Field() declarations,
so they are created here with raw SQL.

Schema version is implicit: a full rebuild always drops and recreates all
three structures.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import text

from contextdex.index.models import EdgeRow, EntityRow

if TYPE_CHECKING:
    from sqlalchemy import Connection

ENTITY_TABLE = EntityRow.__tablename__
EDGE_TABLE = EdgeRow.__tablename__
FTS_TABLE = "functions_fts"

REQUIRED_TABLES = frozenset({ENTITY_TABLE, EDGE_TABLE, FTS_TABLE})

FTS_DDL = f"CREATE VIRTUAL TABLE {FTS_TABLE} USING fts5(id, container, lexical_text)"

ADDITIONAL_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_functions_container_name_arity "
    f"ON {ENTITY_TABLE}(container, name, arity)",
    f"CREATE INDEX IF NOT EXISTS idx_functions_path ON {ENTITY_TABLE}(path)",
    f"CREATE INDEX IF NOT EXISTS idx_functions_kind ON {ENTITY_TABLE}(kind)",
    f"CREATE INDEX IF NOT EXISTS idx_edges_target ON {EDGE_TABLE}(target_reference)",
]


def drop_schema(conn: Connection) -> None:
    """Drop the full-text mirror first, then the relational tables."""
    conn.execute(text(f"DROP TABLE IF EXISTS {FTS_TABLE}"))
    conn.execute(text(f"DROP TABLE IF EXISTS {EDGE_TABLE}"))
    conn.execute(text(f"DROP TABLE IF EXISTS {ENTITY_TABLE}"))


def create_schema(conn: Connection) -> None:
    """Create tables, the FTS5 mirror, and the secondary indexes."""
    EntityRow.__table__.create(conn)  # type: ignore[attr-defined]
    EdgeRow.__table__.create(conn)  # type: ignore[attr-defined]
    conn.execute(text(FTS_DDL))
    for sql in ADDITIONAL_INDEXES:
        conn.execute(text(sql))
