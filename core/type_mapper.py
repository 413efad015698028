"""
core/type_mapper.py
-------------------
Bidirectional mapping between MySQL column types and semantic value types.

Owns three pieces of domain knowledge:
    * native → semantic: how a catalog ``DATA_TYPE`` is interpreted.
    * semantic → DDL: the column type emitted for a desired column,
      including the default length / precision / scale policy.
    * safe widening: the one-directional table of type changes that never
      make an existing value unrepresentable.

Design Decision:
    Pure functions over lookup tables; the classification lives in data
    (dicts + frozensets) rather than an if/else tree. Unknown types are a
    hard error: skipping a column would corrupt the diff.
"""
from __future__ import annotations

from models.schema import ColumnDescriptor, SemanticType

DEFAULT_STRING_LENGTH = 255
DEFAULT_DECIMAL_PRECISION = 18
DEFAULT_DECIMAL_SCALE = 2


class UnsupportedTypeError(Exception):
    """Raised when a native or semantic type has no mapping."""


# ---------------------------------------------------------------------------
# Native (MySQL DATA_TYPE) → semantic
# ---------------------------------------------------------------------------
_NATIVE_TO_SEMANTIC: dict[str, SemanticType] = {
    "bool": SemanticType.BOOLEAN,
    "boolean": SemanticType.BOOLEAN,
    "bit": SemanticType.BOOLEAN,
    "tinyint": SemanticType.INTEGER16,
    "smallint": SemanticType.INTEGER16,
    "mediumint": SemanticType.INTEGER32,
    "int": SemanticType.INTEGER32,
    "integer": SemanticType.INTEGER32,
    "bigint": SemanticType.INTEGER64,
    "char": SemanticType.TEXT,
    "varchar": SemanticType.TEXT,
    "nchar": SemanticType.TEXT,
    "nvarchar": SemanticType.TEXT,
    "tinytext": SemanticType.TEXT,
    "text": SemanticType.TEXT,
    "mediumtext": SemanticType.TEXT,
    "longtext": SemanticType.TEXT,
    "datetime": SemanticType.DATETIME,
    "timestamp": SemanticType.DATETIME,
    "date": SemanticType.DATE,
    "decimal": SemanticType.DECIMAL,
    "numeric": SemanticType.DECIMAL,
    "float": SemanticType.FLOAT32,
    "double": SemanticType.FLOAT64,
    "real": SemanticType.FLOAT64,
    "json": SemanticType.JSON,
}

# Types whose catalog length is part of the declared type.
LENGTH_BEARING_TYPES = frozenset({"char", "varchar", "nchar", "nvarchar"})

# ---------------------------------------------------------------------------
# Semantic → DDL (types without length / precision parameters)
# ---------------------------------------------------------------------------
_SEMANTIC_TO_DDL: dict[SemanticType, str] = {
    SemanticType.INTEGER16: "smallint",
    SemanticType.INTEGER32: "int",
    SemanticType.INTEGER64: "bigint",
    SemanticType.DATETIME: "datetime",
    SemanticType.DATETIME_OFFSET: "datetime(6)",
    SemanticType.DATE: "date",
    SemanticType.BOOLEAN: "tinyint(1)",
    SemanticType.FLOAT32: "float",
    SemanticType.FLOAT64: "double",
    SemanticType.JSON: "json",
}

# ---------------------------------------------------------------------------
# Safe widening conversions (from → {to}); deliberately one-directional
# ---------------------------------------------------------------------------
_SAFE_WIDENINGS: dict[SemanticType, frozenset[SemanticType]] = {
    SemanticType.INTEGER32: frozenset({SemanticType.INTEGER64, SemanticType.DECIMAL}),
    SemanticType.FLOAT32: frozenset({SemanticType.FLOAT64}),
    SemanticType.INTEGER16: frozenset({SemanticType.INTEGER32, SemanticType.INTEGER64}),
    SemanticType.DATETIME: frozenset({SemanticType.DATETIME_OFFSET}),
    # Length changes are compared separately, not as a type change.
    SemanticType.TEXT: frozenset({SemanticType.TEXT}),
}

# Names accepted in declarative models, case-insensitive.
_DECLARED_TYPE_ALIASES: dict[str, SemanticType] = {
    "short": SemanticType.INTEGER16,
    "int16": SemanticType.INTEGER16,
    "integer16": SemanticType.INTEGER16,
    "int": SemanticType.INTEGER32,
    "int32": SemanticType.INTEGER32,
    "integer": SemanticType.INTEGER32,
    "integer32": SemanticType.INTEGER32,
    "long": SemanticType.INTEGER64,
    "int64": SemanticType.INTEGER64,
    "integer64": SemanticType.INTEGER64,
    "str": SemanticType.TEXT,
    "string": SemanticType.TEXT,
    "text": SemanticType.TEXT,
    "datetime": SemanticType.DATETIME,
    "datetimeoffset": SemanticType.DATETIME_OFFSET,
    "datetime_offset": SemanticType.DATETIME_OFFSET,
    "date": SemanticType.DATE,
    "bool": SemanticType.BOOLEAN,
    "boolean": SemanticType.BOOLEAN,
    "decimal": SemanticType.DECIMAL,
    "float": SemanticType.FLOAT32,
    "float32": SemanticType.FLOAT32,
    "single": SemanticType.FLOAT32,
    "double": SemanticType.FLOAT64,
    "float64": SemanticType.FLOAT64,
    "json": SemanticType.JSON,
}


def get_base_type(dtype_string: str) -> str:
    """
    Extract the base SQL type keyword from a full type definition string.

    Examples::

        get_base_type("VARCHAR(255)")   →  "varchar"
        get_base_type("int unsigned")   →  "int"
        get_base_type("")               →  ""
    """
    if not dtype_string:
        return ""
    return dtype_string.split("(")[0].split()[0].lower()


def native_to_semantic(native_type: str, column_type: str | None = None) -> SemanticType:
    """
    Map a catalog ``DATA_TYPE`` to its :class:`SemanticType`.

    Args:
        native_type: The bare native type name, e.g. ``"varchar"``.
        column_type: Optional full ``COLUMN_TYPE`` (e.g. ``"tinyint(1)"``),
                     used to recognise boolean columns.

    Raises:
        UnsupportedTypeError: If the native type has no mapping.
    """
    base = get_base_type(native_type)
    if base == "tinyint" and column_type and column_type.lower().startswith("tinyint(1)"):
        return SemanticType.BOOLEAN
    try:
        return _NATIVE_TO_SEMANTIC[base]
    except KeyError:
        raise UnsupportedTypeError(
            f"MySQL type '{native_type}' is not supported"
        ) from None


def parse_semantic_type(declared: str) -> SemanticType:
    """
    Resolve a declared model type name (``"int"``, ``"string"``…) to a
    :class:`SemanticType`.

    Raises:
        UnsupportedTypeError: If the name is not recognised.
    """
    key = declared.strip().lower()
    if key in _DECLARED_TYPE_ALIASES:
        return _DECLARED_TYPE_ALIASES[key]
    try:
        return SemanticType(key)
    except ValueError:
        raise UnsupportedTypeError(f"Type '{declared}' is not supported") from None


def semantic_to_ddl(semantic_type: SemanticType, column: ColumnDescriptor) -> str:
    """
    Synthesize the MySQL column type for *column*.

    ``column.raw_type_override`` wins when present. Text defaults to
    ``varchar(255)``; decimal defaults to ``decimal(18,2)``.

    Raises:
        UnsupportedTypeError: If *semantic_type* has no DDL mapping.

    Examples::

        semantic_to_ddl(SemanticType.TEXT, col(max_length=1000))  → "varchar(1000)"
        semantic_to_ddl(SemanticType.DECIMAL, col())              → "decimal(18,2)"
    """
    if column.raw_type_override:
        return column.raw_type_override
    if semantic_type == SemanticType.TEXT:
        length = column.max_length if column.max_length is not None else DEFAULT_STRING_LENGTH
        return f"varchar({length})"
    if semantic_type == SemanticType.DECIMAL:
        precision = (
            column.precision if column.precision is not None else DEFAULT_DECIMAL_PRECISION
        )
        scale = column.scale if column.scale is not None else DEFAULT_DECIMAL_SCALE
        return f"decimal({precision},{scale})"
    try:
        return _SEMANTIC_TO_DDL[semantic_type]
    except KeyError:
        raise UnsupportedTypeError(
            f"Type {getattr(semantic_type, 'value', semantic_type)} is not supported"
        ) from None


def is_safe_widening(from_type: SemanticType, to_type: SemanticType) -> bool:
    """
    Return True if changing a column from *from_type* to *to_type* can never
    lose data. Narrowing conversions are never safe.

    Examples::

        is_safe_widening(INTEGER32, INTEGER64)  → True
        is_safe_widening(INTEGER64, INTEGER32)  → False
    """
    return to_type in _SAFE_WIDENINGS.get(from_type, frozenset())


# ---------------------------------------------------------------------------
# Effective parameters (what the DDL actually produces)
# ---------------------------------------------------------------------------

def effective_max_length(column: ColumnDescriptor) -> int | None:
    """
    Length the column really has: the declared one, or the varchar default
    for text columns whose DDL is synthesized from the semantic type.
    """
    if column.max_length is not None:
        return column.max_length
    if column.semantic_type == SemanticType.TEXT and not column.raw_type_override:
        return DEFAULT_STRING_LENGTH
    return None


def effective_precision(column: ColumnDescriptor) -> int | None:
    if column.precision is not None:
        return column.precision
    if column.semantic_type == SemanticType.DECIMAL and not column.raw_type_override:
        return DEFAULT_DECIMAL_PRECISION
    return None


def effective_scale(column: ColumnDescriptor) -> int | None:
    if column.scale is not None:
        return column.scale
    if column.semantic_type == SemanticType.DECIMAL and not column.raw_type_override:
        return DEFAULT_DECIMAL_SCALE
    return None
