"""
models/schema.py
----------------
Column/table descriptors and the schema differences computed between them.

Design Decision:
    Descriptors are frozen dataclasses: they are rebuilt on every run from
    either the live catalog or the desired model and never mutated after
    construction. The diff engine does not care which source built them.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable


class SemanticType(str, Enum):
    """Database-independent value types a column can hold."""
    INTEGER16 = "integer16"
    INTEGER32 = "integer32"
    INTEGER64 = "integer64"
    TEXT = "text"
    DATETIME = "datetime"
    DATETIME_OFFSET = "datetime_offset"
    DATE = "date"
    BOOLEAN = "boolean"
    DECIMAL = "decimal"
    FLOAT32 = "float32"
    FLOAT64 = "float64"
    JSON = "json"


class GenerationPolicy(str, Enum):
    """How a column's value is produced."""
    NONE = "none"
    IDENTITY = "identity"
    COMPUTED = "computed"


class DifferenceType(str, Enum):
    ADD_COLUMN = "add_column"
    MODIFY_COLUMN = "modify_column"
    REMOVE_COLUMN = "remove_column"


@dataclass(frozen=True)
class ColumnDescriptor:
    """
    One physical or desired column.

    Attributes:
        name:                Column name as declared / stored.
        semantic_type:       :class:`SemanticType` of the stored values.
        raw_type_override:   Explicit DDL type name (desired side) or the
                             catalog's full ``COLUMN_TYPE`` (live side).
        default_value:       Raw, unnormalised default expression.
        computed_expression: Expression body for computed columns, if known.
    """
    name: str
    semantic_type: SemanticType
    is_nullable: bool = True
    is_primary_key: bool = False
    is_auto_increment: bool = False
    max_length: int | None = None
    raw_type_override: str | None = None
    default_value: str | None = None
    is_unique: bool = False
    collation: str | None = None
    precision: int | None = None
    scale: int | None = None
    generation_policy: GenerationPolicy = GenerationPolicy.NONE
    computed_expression: str | None = None


@dataclass(frozen=True)
class TableDescriptor:
    """
    A table name plus its ordered columns.

    ``unique_keys`` lists multi-column unique keys by column name; a
    single-column unique key is carried by ``ColumnDescriptor.is_unique``.
    Only CREATE TABLE uses them; existing tables are not compared on them.
    """
    name: str
    columns: tuple[ColumnDescriptor, ...] = field(default_factory=tuple)
    unique_keys: tuple[tuple[str, ...], ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        # Callers may pass any iterable of columns.
        object.__setattr__(self, "columns", tuple(self.columns))
        object.__setattr__(
            self, "unique_keys", tuple(tuple(key) for key in self.unique_keys)
        )
        seen: set[str] = set()
        for col in self.columns:
            key = col.name.lower()
            if key in seen:
                raise ValueError(
                    f"Duplicate column '{col.name}' in table '{self.name}'."
                )
            seen.add(key)

    def get_column(self, name: str) -> ColumnDescriptor | None:
        """Get column by name, ignoring case."""
        for col in self.columns:
            if col.name.lower() == name.lower():
                return col
        return None

    @property
    def primary_key_columns(self) -> list[ColumnDescriptor]:
        return [c for c in self.columns if c.is_primary_key]


def find_table(tables: Iterable[TableDescriptor], name: str) -> TableDescriptor | None:
    """Return the first table whose name matches *name* case-insensitively."""
    wanted = name.lower()
    for table in tables:
        if table.name.lower() == wanted:
            return table
    return None


# ---------------------------------------------------------------------------
# Schema differences
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AddColumn:
    """
    A desired column missing from the live table.

    ``creates_table`` is set when the whole table is absent; every column of
    such a table is reported and the DDL collapses them into one CREATE TABLE.
    Those entries also carry the new table's multi-column ``unique_keys``.
    """
    table_name: str
    column: ColumnDescriptor
    creates_table: bool = False
    unique_keys: tuple[tuple[str, ...], ...] = ()

    @property
    def kind(self) -> DifferenceType:
        return DifferenceType.ADD_COLUMN


@dataclass(frozen=True)
class ModifyColumn:
    """A column present on both sides whose definition differs."""
    table_name: str
    old_column: ColumnDescriptor
    new_column: ColumnDescriptor

    @property
    def kind(self) -> DifferenceType:
        return DifferenceType.MODIFY_COLUMN


@dataclass(frozen=True)
class RemoveColumn:
    """A live column absent from the desired model."""
    table_name: str
    column: ColumnDescriptor

    @property
    def kind(self) -> DifferenceType:
        return DifferenceType.REMOVE_COLUMN


SchemaDifference = AddColumn | ModifyColumn | RemoveColumn
