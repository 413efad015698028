"""
core/introspector.py
--------------------
Reads the live database catalog into :class:`TableDescriptor` objects.

A single ``INFORMATION_SCHEMA.COLUMNS`` query covers the whole active
schema; rows are grouped into tables in catalog order.
"""
from __future__ import annotations

from typing import Any, Protocol

from core.type_mapper import LENGTH_BEARING_TYPES, get_base_type, native_to_semantic
from logger import get_logger
from models.schema import (
    ColumnDescriptor,
    GenerationPolicy,
    SemanticType,
    TableDescriptor,
)

log = get_logger(__name__)

CATALOG_QUERY = """
SELECT
    TABLE_NAME,
    COLUMN_NAME,
    DATA_TYPE,
    IS_NULLABLE,
    CHARACTER_MAXIMUM_LENGTH,
    NUMERIC_PRECISION,
    NUMERIC_SCALE,
    COLUMN_TYPE,
    COLUMN_DEFAULT,
    COLLATION_NAME,
    COLUMN_KEY,
    EXTRA,
    GENERATION_EXPRESSION
FROM INFORMATION_SCHEMA.COLUMNS
WHERE TABLE_SCHEMA = DATABASE()
ORDER BY TABLE_NAME, ORDINAL_POSITION
"""

_IDENTITY_TOKEN = "auto_increment"
_COMPUTED_TOKEN = "generated"


class CatalogSource(Protocol):
    """Anything that can run a catalog query (e.g. ``DatabaseManager``)."""

    def query(self, sql: str, params: tuple | None = None) -> list[dict[str, Any]]: ...


def _optional_int(value: Any) -> int | None:
    return None if value is None else int(value)


def _text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        return value.decode("utf-8")
    return str(value)


def column_from_row(row: dict[str, Any]) -> ColumnDescriptor:
    """
    Build a :class:`ColumnDescriptor` from one catalog row.

    Raises:
        UnsupportedTypeError: If ``DATA_TYPE`` has no semantic mapping.
    """
    data_type = _text(row.get("DATA_TYPE")) or ""
    column_type = _text(row.get("COLUMN_TYPE"))
    semantic = native_to_semantic(data_type, column_type)
    base = get_base_type(data_type)

    column_key = (_text(row.get("COLUMN_KEY")) or "").upper()
    extra = (_text(row.get("EXTRA")) or "").lower()
    is_auto_increment = _IDENTITY_TOKEN in extra
    if is_auto_increment:
        policy = GenerationPolicy.IDENTITY
    elif _COMPUTED_TOKEN in extra and "default_generated" not in extra:
        policy = GenerationPolicy.COMPUTED
    else:
        policy = GenerationPolicy.NONE

    is_nullable = (_text(row.get("IS_NULLABLE")) or "YES").upper() == "YES"

    # Only declared lengths / decimal parameters are meaningful to compare;
    # the catalog also reports implicit ones (e.g. int precision 10).
    max_length = (
        _optional_int(row.get("CHARACTER_MAXIMUM_LENGTH"))
        if base in LENGTH_BEARING_TYPES else None
    )
    if semantic == SemanticType.DECIMAL:
        precision = _optional_int(row.get("NUMERIC_PRECISION"))
        scale = _optional_int(row.get("NUMERIC_SCALE"))
    else:
        precision = scale = None

    return ColumnDescriptor(
        name=_text(row["COLUMN_NAME"]) or "",
        semantic_type=semantic,
        is_nullable=is_nullable,
        is_primary_key=column_key == "PRI",
        is_auto_increment=is_auto_increment,
        max_length=max_length,
        raw_type_override=column_type,
        default_value=_text(row.get("COLUMN_DEFAULT")),
        is_unique=column_key == "UNI",
        collation=_text(row.get("COLLATION_NAME")),
        precision=precision,
        scale=scale,
        generation_policy=policy,
        computed_expression=(
            _text(row.get("GENERATION_EXPRESSION")) or None
            if policy == GenerationPolicy.COMPUTED else None
        ),
    )


def read_live_schema(connector: CatalogSource) -> list[TableDescriptor]:
    """
    Query the catalog and return the live tables in catalog order.

    The connector opens its connection on demand and leaves it open, so the
    same connector can execute DDL afterwards.

    Raises:
        UnsupportedTypeError: If any live column has an unmapped type.
        DatabaseError: If the catalog query fails.
    """
    rows = connector.query(CATALOG_QUERY)

    grouped: dict[str, list[ColumnDescriptor]] = {}
    for row in rows:
        table_name = _text(row.get("TABLE_NAME"))
        column_name = _text(row.get("COLUMN_NAME"))
        if not table_name or not column_name:
            log.debug("Skipping catalog row without table/column name: %r", row)
            continue
        grouped.setdefault(table_name, []).append(column_from_row(row))

    tables = [TableDescriptor(name=name, columns=cols) for name, cols in grouped.items()]
    log.info(
        "Read live schema: %d table(s), %d column(s).",
        len(tables), sum(len(t.columns) for t in tables),
    )
    return tables
