"""Index Store: the only writer of the persisted entity index.

Owns three structures kept in lockstep:
- ``functions``: one row per Entity
- ``edges``: outbound references, unique per (source, target, kind)
- ``functions_fts``: FTS5 mirror of ``functions`` keyed by the same id

Every mutation runs in a single BEGIN IMMEDIATE transaction, so concurrent
readers observe either the state before a batch or the state after it.
Deletions always remove full-text rows first, then edges, then entities.
"""

from __future__ import annotations

import re
import threading
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import bindparam, text
from sqlalchemy.exc import DatabaseError, OperationalError, SQLAlchemyError

from contextdex.core.errors import SchemaMissing, StoreUnavailable
from contextdex.index._internal.db import (
    FTS_TABLE,
    REQUIRED_TABLES,
    Database,
    create_schema,
    drop_schema,
)
from contextdex.index.models import Entity
from contextdex.index.records import Record, coerce_entities, merge_clauses

if TYPE_CHECKING:
    from sqlalchemy import Connection

    from contextdex.config.models import DatabaseConfig

logger = structlog.get_logger()

_ENTITY_COLUMNS = (
    "id, container, name, arity, kind, path, start_line, end_line, "
    "signature, spec, doc, lexical_text, raw_text"
)
_REFERENCE_EXPR = "{t}.container || '.' || {t}.name || '/' || {t}.arity"
_FTS_TOKEN = re.compile(r"\w+", re.UNICODE)


@dataclass
class IndexHit:
    """One full-text match. Higher score is more relevant."""

    entity: Entity
    score: float


@dataclass
class Neighbors:
    """1-hop neighbourhood of an entity through call edges."""

    callees: list[Entity] = field(default_factory=list)
    callers: list[Entity] = field(default_factory=list)


@dataclass
class StoreStatus:
    """Point-in-time store health. Produced without raising."""

    db_path: str
    connected: bool
    schema_present: bool
    entity_count: int = 0
    edge_count: int = 0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "db_path": self.db_path,
            "connected": self.connected,
            "schema_present": self.schema_present,
            "entity_count": self.entity_count,
            "edge_count": self.edge_count,
            "error": self.error,
        }


def quote_fts_query(query: str) -> str:
    """Rewrite free text as a conjunction of quoted FTS5 tokens."""
    tokens = _FTS_TOKEN.findall(query)
    return " ".join('"' + token.replace('"', '""') + '"' for token in tokens)


def _row_to_entity(row: Any, references: list[str] | None = None) -> Entity:
    data = dict(row._mapping)
    data.pop("score", None)
    data["references"] = references or []
    return Entity.model_validate(data)


class IndexStore:
    """Transactional access to the persisted index."""

    def __init__(self, db_path: Path, database: DatabaseConfig | None = None) -> None:
        self.db_path = db_path
        self._database_config = database
        self._db: Database | None = None
        # Readers on worker threads and the writer executor share one engine
        self._db_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Connection management
    # ------------------------------------------------------------------

    def _open(self, create: bool = False) -> Database:
        # No store file means no full rebuild has ever run
        if not create and not self.db_path.exists():
            raise SchemaMissing.at(str(self.db_path))
        with self._db_lock:
            if self._db is None:
                if create:
                    try:
                        self.db_path.parent.mkdir(parents=True, exist_ok=True)
                    except OSError as e:
                        raise StoreUnavailable.at(str(self.db_path), str(e)) from e
                cfg = self._database_config
                if cfg is None:
                    self._db = Database(self.db_path)
                else:
                    self._db = Database(
                        self.db_path,
                        busy_timeout_ms=cfg.busy_timeout_ms,
                        max_retries=cfg.max_retries,
                        retry_base_delay=cfg.retry_base_delay_sec,
                    )
            return self._db

    def close(self) -> None:
        with self._db_lock:
            if self._db is not None:
                self._db.dispose()
                self._db = None

    def _require_schema(self, db: Database, conn: Connection) -> None:
        if not REQUIRED_TABLES <= db.table_names(conn):
            raise SchemaMissing.at(str(self.db_path))

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def rebuild_full(self, records: Iterable[Record]) -> int:
        """Drop and recreate the schema, then insert every record.

        Works on a missing or corrupted store. Returns the entity count.
        """
        entities = merge_clauses(coerce_entities(records))
        try:
            self._rebuild(entities)
        except DatabaseError as e:
            if "not a database" not in str(e).lower():
                raise StoreUnavailable.at(str(self.db_path), str(e)) from e
            logger.warning("store_corrupt_recreated", db_path=str(self.db_path))
            self._discard_files()
            try:
                self._rebuild(entities)
            except SQLAlchemyError as retry_error:
                raise StoreUnavailable.at(str(self.db_path), str(retry_error)) from retry_error
        except SQLAlchemyError as e:
            raise StoreUnavailable.at(str(self.db_path), str(e)) from e

        logger.info("rebuild_completed", entities=len(entities), db_path=str(self.db_path))
        return len(entities)

    def _rebuild(self, entities: Sequence[Entity]) -> None:
        db = self._open(create=True)
        with db.immediate_transaction() as conn:
            drop_schema(conn)
            create_schema(conn)
            self._insert_entities(conn, entities)

    def _discard_files(self) -> None:
        self.close()
        for suffix in ("", "-wal", "-shm"):
            candidate = self.db_path.with_name(self.db_path.name + suffix)
            try:
                candidate.unlink(missing_ok=True)
            except OSError as e:
                raise StoreUnavailable.at(str(self.db_path), str(e)) from e

    def merge_incremental(
        self,
        records: Iterable[Record],
        paths: Iterable[str] | None = None,
    ) -> int:
        """Replace everything indexed for the affected paths with the new records.

        Affected paths are the records' paths plus any explicitly listed
        paths, so a file whose entities all disappeared is still purged.
        Purge and insert commit together or not at all.
        """
        entities = merge_clauses(coerce_entities(records))
        affected = {e.path for e in entities}
        if paths is not None:
            affected.update(paths)

        db = self._open()
        try:
            with db.immediate_transaction() as conn:
                self._require_schema(db, conn)
                purged = sum(self._purge_path(conn, p) for p in sorted(affected))
                self._insert_entities(conn, entities)
        except DatabaseError as e:
            raise StoreUnavailable.at(str(self.db_path), str(e)) from e

        logger.info(
            "merge_completed",
            paths=len(affected),
            purged=purged,
            inserted=len(entities),
        )
        return len(entities)

    def purge_by_path(self, path: str) -> int:
        """Remove all entities, edges and full-text rows for one path."""
        db = self._open()
        try:
            with db.immediate_transaction() as conn:
                self._require_schema(db, conn)
                removed = self._purge_path(conn, path)
        except DatabaseError as e:
            raise StoreUnavailable.at(str(self.db_path), str(e)) from e

        logger.debug("path_purged", path=path, removed=removed)
        return removed

    def _purge_path(self, conn: Connection, path: str) -> int:
        params = {"path": path}
        conn.execute(
            text(f"DELETE FROM {FTS_TABLE} WHERE id IN (SELECT id FROM functions WHERE path = :path)"),
            params,
        )
        conn.execute(
            text("DELETE FROM edges WHERE source_id IN (SELECT id FROM functions WHERE path = :path)"),
            params,
        )
        result = conn.execute(text("DELETE FROM functions WHERE path = :path"), params)
        return result.rowcount or 0

    def _insert_entities(self, conn: Connection, entities: Sequence[Entity]) -> None:
        if not entities:
            return
        ids = [{"id": e.id} for e in entities]
        conn.execute(text(f"DELETE FROM {FTS_TABLE} WHERE id = :id"), ids)
        conn.execute(text("DELETE FROM edges WHERE source_id = :id"), ids)
        conn.execute(
            text(
                f"INSERT OR REPLACE INTO functions ({_ENTITY_COLUMNS}) VALUES "
                "(:id, :container, :name, :arity, :kind, :path, :start_line, :end_line, "
                ":signature, :spec, :doc, :lexical_text, :raw_text)"
            ),
            [e.to_row() for e in entities],
        )
        conn.execute(
            text(f"INSERT INTO {FTS_TABLE} (id, container, lexical_text) VALUES (:id, :container, :lexical_text)"),
            [{"id": e.id, "container": e.container, "lexical_text": e.lexical_text} for e in entities],
        )
        edges = [
            {"source_id": e.id, "target_reference": ref, "kind": "call"}
            for e in entities
            for ref in e.references
        ]
        if edges:
            conn.execute(
                text(
                    "INSERT OR IGNORE INTO edges (source_id, target_reference, kind) "
                    "VALUES (:source_id, :target_reference, :kind)"
                ),
                edges,
            )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def status(self) -> StoreStatus:
        """Counts and connection state. Degrades instead of raising."""
        path = str(self.db_path)
        if not self.db_path.exists():
            return StoreStatus(path, connected=False, schema_present=False, error="store file does not exist")
        try:
            db = self._open()
            with db.read_connection() as conn:
                if not REQUIRED_TABLES <= db.table_names(conn):
                    return StoreStatus(path, connected=True, schema_present=False)
                entity_count = conn.execute(text("SELECT COUNT(*) FROM functions")).scalar_one()
                edge_count = conn.execute(text("SELECT COUNT(*) FROM edges")).scalar_one()
        except (SQLAlchemyError, StoreUnavailable, SchemaMissing, OSError) as e:
            logger.warning("store_status_degraded", db_path=path, error=str(e))
            return StoreStatus(path, connected=False, schema_present=False, error=str(e))
        return StoreStatus(
            path,
            connected=True,
            schema_present=True,
            entity_count=entity_count,
            edge_count=edge_count,
        )

    def search(self, query: str, k: int = 10) -> list[IndexHit]:
        """Full-text match ranked by bm25, best first."""
        if not query.strip() or k <= 0:
            return []
        db = self._open()
        with db.read_connection() as conn:
            self._require_schema(db, conn)
            try:
                rows = self._match(conn, query, k)
            except OperationalError as e:
                # Free text is rarely valid FTS5 syntax; retry it as plain tokens
                quoted = quote_fts_query(query)
                logger.debug("fts_query_requoted", query=query, quoted=quoted, error=str(e.orig))
                if not quoted:
                    return []
                try:
                    rows = self._match(conn, quoted, k)
                except OperationalError as retry_error:
                    raise StoreUnavailable.at(str(self.db_path), str(retry_error)) from retry_error
        return [IndexHit(entity=_row_to_entity(row), score=float(row.score)) for row in rows]

    def _match(self, conn: Connection, fts_query: str, k: int) -> list[Any]:
        columns = ", ".join(f"f.{c.strip()}" for c in _ENTITY_COLUMNS.split(","))
        sql = text(
            f"SELECT {columns}, -bm25({FTS_TABLE}) AS score "
            f"FROM {FTS_TABLE} JOIN functions f ON f.id = {FTS_TABLE}.id "
            f"WHERE {FTS_TABLE} MATCH :query "
            f"ORDER BY bm25({FTS_TABLE}) LIMIT :k"
        )
        return list(conn.execute(sql, {"query": fts_query, "k": k}))

    def get_entities(self, ids: Sequence[str]) -> list[Entity]:
        """Entities for ids, in the order requested. Unknown ids are skipped."""
        if not ids:
            return []
        db = self._open()
        with db.read_connection() as conn:
            self._require_schema(db, conn)
            rows = conn.execute(
                text(f"SELECT {_ENTITY_COLUMNS} FROM functions WHERE id IN :ids").bindparams(
                    bindparam("ids", expanding=True)
                ),
                {"ids": list(ids)},
            ).all()
            refs: dict[str, list[str]] = {}
            for edge in conn.execute(
                text(
                    "SELECT source_id, target_reference FROM edges WHERE source_id IN :ids ORDER BY rowid"
                ).bindparams(bindparam("ids", expanding=True)),
                {"ids": list(ids)},
            ):
                refs.setdefault(edge.source_id, []).append(edge.target_reference)

        by_id = {row.id: _row_to_entity(row, refs.get(row.id)) for row in rows}
        return [by_id[i] for i in dict.fromkeys(ids) if i in by_id]

    def neighbors(self, entity_id: str, limit: int = 5) -> Neighbors:
        """Callees resolved by reference and callers by target, one hop each."""
        columns = ", ".join(f"n.{c.strip()}" for c in _ENTITY_COLUMNS.split(","))
        callees_sql = text(
            f"SELECT DISTINCT {columns} FROM edges e "
            f"JOIN functions n ON {_REFERENCE_EXPR.format(t='n')} = e.target_reference "
            "WHERE e.source_id = :id AND n.id != :id LIMIT :limit"
        )
        callers_sql = text(
            f"SELECT DISTINCT {columns} FROM functions s "
            f"JOIN edges e ON e.target_reference = {_REFERENCE_EXPR.format(t='s')} "
            "JOIN functions n ON n.id = e.source_id "
            "WHERE s.id = :id AND n.id != :id LIMIT :limit"
        )
        params = {"id": entity_id, "limit": limit}
        db = self._open()
        with db.read_connection() as conn:
            self._require_schema(db, conn)
            callees = [_row_to_entity(r) for r in conn.execute(callees_sql, params)]
            callers = [_row_to_entity(r) for r in conn.execute(callers_sql, params)]
        return Neighbors(callees=callees, callers=callers)
