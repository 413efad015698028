"""
core/ddl.py
-----------
Turns descriptors and schema differences into MySQL DDL statements.

Design Decisions:
    * Every identifier is backtick-quoted (embedded backticks doubled).
    * CREATE TABLE, ADD and MODIFY share one column-definition fragment:
      ``name type [COLLATE c] [generation] [NULL|NOT NULL] [DEFAULT d]``.
    * ``statements_for`` has exactly one branch per difference kind; a new
      kind only needs a new branch here.
"""
from __future__ import annotations

import re
from typing import Iterable

from core.type_mapper import semantic_to_ddl
from logger import get_logger
from models.schema import (
    AddColumn,
    ColumnDescriptor,
    GenerationPolicy,
    ModifyColumn,
    RemoveColumn,
    SchemaDifference,
    TableDescriptor,
)

log = get_logger(__name__)

COMPUTED_PLACEHOLDER = "/* computed expression */"

_NUMERIC_RE = re.compile(r"^[+-]?\d+(\.\d+)?$")
_VERBATIM_DEFAULTS = frozenset({
    "NULL", "TRUE", "FALSE", "CURRENT_TIMESTAMP", "CURRENT_DATE", "NOW()",
})


def quote_identifier(name: str) -> str:
    """Backtick-quote a MySQL identifier."""
    return "`" + name.replace("`", "``") + "`"


def render_default(value: str) -> str:
    """
    Render a raw default for a ``DEFAULT`` clause.

    Quoted literals, numbers, ``NULL``/booleans, timestamp functions and
    parenthesised expressions pass through; anything else is quoted as a
    string literal.
    """
    stripped = value.strip()
    if len(stripped) >= 2 and stripped[0] == stripped[-1] and stripped[0] in "'\"":
        return stripped
    if _NUMERIC_RE.match(stripped) or stripped.upper() in _VERBATIM_DEFAULTS:
        return stripped
    if stripped.startswith("(") and stripped.endswith(")"):
        return stripped
    return "'" + stripped.replace("\\", "\\\\").replace("'", "''") + "'"


def _generation_clause(column: ColumnDescriptor) -> str:
    if column.generation_policy == GenerationPolicy.COMPUTED:
        return f"GENERATED ALWAYS AS ({column.computed_expression or COMPUTED_PLACEHOLDER})"
    identity = (
        column.generation_policy == GenerationPolicy.IDENTITY or column.is_auto_increment
    )
    if identity and column.is_primary_key:
        return "AUTO_INCREMENT"
    return ""


def column_definition(column: ColumnDescriptor) -> str:
    """The column fragment shared by CREATE TABLE, ADD and MODIFY."""
    parts = [quote_identifier(column.name), semantic_to_ddl(column.semantic_type, column)]
    if column.collation:
        parts.append(f"COLLATE {column.collation}")
    generation = _generation_clause(column)
    if generation:
        parts.append(generation)
    parts.append("NULL" if column.is_nullable else "NOT NULL")
    if column.default_value is not None and column.generation_policy != GenerationPolicy.COMPUTED:
        parts.append(f"DEFAULT {render_default(column.default_value)}")
    return " ".join(parts)


def create_table_statement(table: TableDescriptor, if_not_exists: bool = False) -> str:
    """
    ``CREATE TABLE`` with every column followed by a ``PRIMARY KEY`` clause
    listing the key columns (omitted when there are none).

    Unique, non-key columns get their unique constraint inline; each of
    ``table.unique_keys`` becomes a ``UNIQUE KEY`` line. ``if_not_exists``
    leaves an existing table of the same name untouched.
    """
    lines = []
    for col in table.columns:
        definition = column_definition(col)
        if col.is_unique and not col.is_primary_key:
            definition += " UNIQUE"
        lines.append(f"  {definition}")
    pk_cols = table.primary_key_columns
    if pk_cols:
        keys = ", ".join(quote_identifier(c.name) for c in pk_cols)
        lines.append(f"  PRIMARY KEY ({keys})")
    for unique_key in table.unique_keys:
        keys = ", ".join(quote_identifier(c) for c in unique_key)
        lines.append(f"  UNIQUE KEY ({keys})")
    body = ",\n".join(lines)
    guard = "IF NOT EXISTS " if if_not_exists else ""
    return f"CREATE TABLE {guard}{quote_identifier(table.name)} (\n{body}\n)"


def add_column_statement(table_name: str, column: ColumnDescriptor) -> str:
    sql = f"ALTER TABLE {quote_identifier(table_name)} ADD {column_definition(column)}"
    if column.is_unique and not column.is_primary_key:
        sql += " UNIQUE"
    return sql


def modify_column_statement(
    table_name: str,
    column: ColumnDescriptor,
    previous: ColumnDescriptor | None = None,
) -> str:
    """
    ``MODIFY COLUMN`` rewriting the full definition of *column*.

    When *previous* is given and the column gains uniqueness, ``UNIQUE`` is
    appended so MySQL creates the index.
    """
    sql = (
        f"ALTER TABLE {quote_identifier(table_name)} "
        f"MODIFY COLUMN {column_definition(column)}"
    )
    if (
        previous is not None
        and column.is_unique
        and not previous.is_unique
        and not column.is_primary_key
    ):
        sql += " UNIQUE"
    return sql


def drop_unique_index_statement(table_name: str, column_name: str) -> str:
    # MySQL names a single-column UNIQUE index after the column.
    return (
        f"ALTER TABLE {quote_identifier(table_name)} "
        f"DROP INDEX {quote_identifier(column_name)}"
    )


def drop_column_statement(table_name: str, column_name: str) -> str:
    return (
        f"ALTER TABLE {quote_identifier(table_name)} "
        f"DROP COLUMN {quote_identifier(column_name)}"
    )


def statements_for(differences: Iterable[SchemaDifference]) -> list[str]:
    """
    Translate *differences* into the ordered statements that apply them.

    ``AddColumn`` entries flagged ``creates_table`` are gathered per table
    into one ``CREATE TABLE``, emitted where the table's first column
    appeared.
    """
    diffs = list(differences)

    new_tables: dict[str, list[ColumnDescriptor]] = {}
    new_table_keys: dict[str, tuple[tuple[str, ...], ...]] = {}
    for diff in diffs:
        if isinstance(diff, AddColumn) and diff.creates_table:
            new_tables.setdefault(diff.table_name, []).append(diff.column)
            new_table_keys.setdefault(diff.table_name, diff.unique_keys)

    statements: list[str] = []
    created: set[str] = set()
    for diff in diffs:
        if isinstance(diff, AddColumn):
            if not diff.creates_table:
                statements.append(add_column_statement(diff.table_name, diff.column))
            elif diff.table_name not in created:
                created.add(diff.table_name)
                table = TableDescriptor(
                    name=diff.table_name,
                    columns=new_tables[diff.table_name],
                    unique_keys=new_table_keys[diff.table_name],
                )
                statements.append(create_table_statement(table))
        elif isinstance(diff, ModifyColumn):
            statements.append(
                modify_column_statement(diff.table_name, diff.new_column, diff.old_column)
            )
            if diff.old_column.is_unique and not diff.new_column.is_unique:
                statements.append(
                    drop_unique_index_statement(diff.table_name, diff.old_column.name)
                )
        elif isinstance(diff, RemoveColumn):
            statements.append(drop_column_statement(diff.table_name, diff.column.name))
        else:
            raise TypeError(f"Unknown schema difference: {diff!r}")

    log.debug("Synthesized %d statement(s) from %d difference(s).",
              len(statements), len(diffs))
    return statements
