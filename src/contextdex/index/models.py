"""Entity model and table definitions for the structural index.

Single source of truth for the persisted layout:
- ``functions``: one row per Entity
- ``edges``: one row per outbound reference of an Entity
- ``functions_fts``: FTS5 mirror of ``functions`` (created in _internal/db/schema.py,
  virtual tables are outside SQLModel metadata)
"""

import hashlib
import json
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from sqlmodel import Field as SQLField
from sqlmodel import SQLModel

# ============================================================================
# ENUMS
# ============================================================================


class EntityKind(str, Enum):
    """Structural unit kinds produced by the extractor."""

    DEFINITION = "definition"
    PRIVATE_DEFINITION = "private-definition"
    MACRO_DEFINITION = "macro-definition"
    MACRO_INVOCATION = "macro-invocation"
    DECLARATION = "declaration"
    MODULE = "module"
    TEMPLATE = "template"
    USING_DIRECTIVE = "using-directive"


# Kind names emitted by older exporters
_KIND_ALIASES: dict[str, EntityKind] = {
    "function": EntityKind.DEFINITION,
    "macro": EntityKind.MACRO_DEFINITION,
}


class EdgeKind(str, Enum):
    CALL = "call"


# ============================================================================
# IDENTITY
# ============================================================================


def entity_id(container: str, name: str, arity: int, path: str) -> str:
    """Stable identity for an entity, independent of its line numbers."""
    return hashlib.sha256(f"{container}|{name}|{arity}|{path}".encode()).hexdigest()


def qualified_reference(container: str, name: str, arity: int | None) -> str:
    """Reference form used by edges: ``Container.name/arity``."""
    return f"{container}.{name}/{arity}"


# ============================================================================
# ENTITY
# ============================================================================


class Entity(BaseModel):
    """One structural unit found in the codebase.

    Accepts the original exporter's field names (``module``, ``calls``,
    ``struct_text``) alongside the canonical ones.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = ""
    container: str = Field(validation_alias=AliasChoices("container", "module"))
    name: str
    arity: int = Field(ge=0)
    kind: EntityKind = EntityKind.DEFINITION
    path: str = Field(min_length=1)
    start_line: int = Field(ge=0)
    end_line: int | None = None
    signature: str | None = None
    doc: str | None = None
    spec: str | None = None
    lexical_text: str = ""
    raw_text: str | None = Field(
        default=None, validation_alias=AliasChoices("raw_text", "struct_text")
    )
    references: list[str] = Field(
        default_factory=list, validation_alias=AliasChoices("references", "calls")
    )

    @field_validator("kind", mode="before")
    @classmethod
    def _normalize_kind(cls, v: Any) -> Any:
        if v is None:
            return EntityKind.DEFINITION
        if isinstance(v, str):
            return _KIND_ALIASES.get(v, v)
        return v

    @field_validator("doc", "spec", mode="before")
    @classmethod
    def _stringify_text(cls, v: Any) -> Any:
        if v is None or isinstance(v, str):
            return v
        return json.dumps(v)

    @field_validator("references", mode="before")
    @classmethod
    def _dedupe_references(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, list):
            return list(dict.fromkeys(str(ref) for ref in v))
        return v

    @model_validator(mode="after")
    def _fill_derived(self) -> "Entity":
        if not self.id:
            self.id = entity_id(self.container, self.name, self.arity, self.path)
        if self.end_line is None or self.end_line < self.start_line:
            self.end_line = max(self.start_line, self.end_line or 0)
        return self

    @property
    def reference(self) -> str:
        return qualified_reference(self.container, self.name, self.arity)

    def to_row(self) -> dict[str, Any]:
        """Column values for the ``functions`` table."""
        return {
            "id": self.id,
            "container": self.container,
            "name": self.name,
            "arity": self.arity,
            "kind": self.kind.value,
            "path": self.path,
            "start_line": self.start_line,
            "end_line": self.end_line,
            "signature": self.signature,
            "spec": self.spec,
            "doc": self.doc,
            "lexical_text": self.lexical_text,
            "raw_text": self.raw_text,
        }


# ============================================================================
# TABLES
# ============================================================================


class EntityRow(SQLModel, table=True):
    """Primary entity table."""

    __tablename__ = "functions"

    id: str = SQLField(primary_key=True)
    container: str
    name: str
    arity: int
    kind: str = SQLField(default=EntityKind.DEFINITION.value)
    path: str
    start_line: int
    end_line: int | None = None
    signature: str | None = None
    spec: str | None = None
    doc: str | None = None
    lexical_text: str = ""
    raw_text: str | None = None


class EdgeRow(SQLModel, table=True):
    """Outbound reference from an entity to a possibly unresolved target."""

    __tablename__ = "edges"

    source_id: str = SQLField(primary_key=True)
    target_reference: str = SQLField(primary_key=True)
    kind: str = SQLField(default=EdgeKind.CALL.value, primary_key=True)
