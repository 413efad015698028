"""
core/schema_parser.py
---------------------
Parses plain-text model definition files into a :class:`DeclarativeModel`.

File Format (supported)::

    Table: users
      id          INT AUTO_INCREMENT PRIMARY KEY
      username    VARCHAR(100) NOT NULL
      email       VARCHAR(255) NOT NULL UNIQUE
      created_at  DATETIME DEFAULT CURRENT_TIMESTAMP
      # comments are ignored (lines starting with # or --)

    Table: orders
      order_id  INT AUTO_INCREMENT PRIMARY KEY
      user_id   INT NOT NULL
      total     DECIMAL(10,2)

Design Decisions:
    * The parser is a pure function of the text (no side effects) to
      simplify testing; ``parse_schema_file`` only adds the file read.
    * Regex is kept minimal; full SQL parsing is out of scope.
    * Each ``Table:`` block becomes one entity whose name is the table name;
      each column line becomes one property.
    * Duplicate table or column names (ignoring case) are an error, since
      the synchronizer could not tell which definition is wanted.
"""
from __future__ import annotations

import re
from pathlib import Path

from core.type_mapper import UnsupportedTypeError, get_base_type, native_to_semantic
from logger import get_logger
from models.entity import (
    DatabaseGenerated,
    DeclarativeModel,
    EntityModel,
    IndexModel,
    PropertyModel,
)
from models.schema import SemanticType

log = get_logger(__name__)

_TABLE_RE = re.compile(r"^\s*Table\s*:\s*(\w+)\s*$", re.IGNORECASE)
_COL_RE = re.compile(r"^\s*[`'\"]?(\w+)[`'\"]?\s+(.+)")
_COMMENT_RE = re.compile(r"^\s*(#|--)")
_TYPE_RE = re.compile(r"^(\w+(?:\s*\([^)]*\))?(?:\s+unsigned)?)", re.IGNORECASE)
_PARAMS_RE = re.compile(r"\(\s*(\d+)\s*(?:,\s*(\d+)\s*)?\)")
_DEFAULT_RE = re.compile(
    r"DEFAULT\s+('(?:[^']|'')*'|\"(?:[^\"]|\"\")*\"|\([^)]*\)|[\w.\-+]+(?:\(\))?)",
    re.IGNORECASE,
)
_COLLATE_RE = re.compile(r"COLLATE\s+(\w+)", re.IGNORECASE)
_GENERATED_RE = re.compile(r"GENERATED\s+ALWAYS\s+AS\s*\((.*)\)", re.IGNORECASE)

# Declared types the default semantic → DDL mapping reproduces exactly.
_CANONICAL_TYPES = frozenset({
    "varchar", "int", "integer", "bigint", "smallint", "decimal", "numeric",
    "datetime", "date", "float", "double", "json",
})


class SchemaParseError(Exception):
    """Raised when a model file cannot be read or is fundamentally invalid."""


def parse_column_definition(col_name: str, definition: str) -> tuple[PropertyModel, bool]:
    """
    Build a :class:`PropertyModel` from a raw column definition string.

    Args:
        col_name:   Column name.
        definition: The raw definition, e.g. ``"VARCHAR(255) NOT NULL"``.

    Returns:
        ``(property, is_primary_key)``.

    Raises:
        SchemaParseError: If the type is missing or not supported.
    """
    type_match = _TYPE_RE.match(definition.strip())
    if not type_match:
        raise SchemaParseError(f"Column '{col_name}' has no type: {definition!r}")
    declared_type = type_match.group(1)
    base = get_base_type(declared_type)
    try:
        semantic = native_to_semantic(base, declared_type.lower())
    except UnsupportedTypeError as exc:
        raise SchemaParseError(f"Column '{col_name}': {exc}") from exc

    rest = definition.strip()[len(declared_type):]
    rest_upper = rest.upper()

    max_length = precision = scale = None
    params = _PARAMS_RE.search(declared_type)
    if params and semantic == SemanticType.TEXT:
        max_length = int(params.group(1))
    elif params and semantic == SemanticType.DECIMAL:
        precision = int(params.group(1))
        scale = int(params.group(2)) if params.group(2) else 0

    canonical = (
        (base in _CANONICAL_TYPES or semantic == SemanticType.BOOLEAN)
        and "UNSIGNED" not in declared_type.upper()
    )
    type_name = None if canonical else declared_type.lower()

    is_pk = "PRIMARY KEY" in rest_upper
    generated = _GENERATED_RE.search(rest)
    if generated:
        database_generated = DatabaseGenerated.COMPUTED
    elif "AUTO_INCREMENT" in rest_upper:
        database_generated = DatabaseGenerated.IDENTITY
    else:
        database_generated = None

    default_match = _DEFAULT_RE.search(rest)
    default_value = None
    if default_match and default_match.group(1).upper() != "NULL":
        default_value = default_match.group(1)

    collate_match = _COLLATE_RE.search(rest)

    prop = PropertyModel(
        name=col_name,
        type=semantic.value,
        nullable=not is_pk and "NOT NULL" not in rest_upper,
        type_name=type_name,
        max_length=max_length,
        precision=precision,
        scale=scale,
        database_generated=database_generated,
        default_value=default_value,
        collation=collate_match.group(1) if collate_match else None,
        computed_sql=generated.group(1).strip() if generated else None,
    )
    return prop, is_pk


def parse_schema_text(text: str, source: str = "<text>") -> DeclarativeModel:
    """
    Parse model definition text into a :class:`DeclarativeModel`.

    Raises:
        SchemaParseError: On unrecognised lines, unsupported types, or
                          duplicate table/column names.
    """
    entities: list[EntityModel] = []
    current: EntityModel | None = None
    errors: list[str] = []

    for line_num, line in enumerate(text.splitlines(), start=1):
        stripped = line.strip()
        if not stripped or _COMMENT_RE.match(stripped):
            continue

        table_match = _TABLE_RE.match(stripped)
        if table_match:
            name = table_match.group(1)
            if any(e.name.lower() == name.lower() for e in entities):
                errors.append(f"Line {line_num}: duplicate table '{name}'")
            current = EntityModel(name=name)
            entities.append(current)
            continue

        if current is None:
            log.debug("Line %d is outside any Table block, skipped: %s", line_num, stripped)
            continue

        col_match = _COL_RE.match(stripped)
        if not col_match:
            errors.append(f"Line {line_num}: unrecognised column syntax → {stripped!r}")
            continue

        col_name, definition = col_match.group(1), col_match.group(2).strip()
        if any(p.name.lower() == col_name.lower() for p in current.properties):
            errors.append(f"Line {line_num}: duplicate column '{col_name}' in '{current.name}'")
            continue
        try:
            prop, is_pk = parse_column_definition(col_name, definition)
        except SchemaParseError as exc:
            errors.append(f"Line {line_num}: {exc}")
            continue

        current.properties.append(prop)
        if is_pk:
            current.primary_key.append(col_name)
        if "UNIQUE" in definition.upper() and not is_pk:
            current.indexes.append(IndexModel(columns=[col_name], unique=True))

    if errors:
        raise SchemaParseError(
            f"Invalid model definition in '{source}':\n  " + "\n  ".join(errors)
        )

    log.info(
        "Parsed model '%s': %d table(s), %d column(s) total.",
        source, len(entities), sum(len(e.properties) for e in entities),
    )
    return DeclarativeModel(entities=entities)


def parse_schema_file(file_path: str | Path) -> DeclarativeModel:
    """
    Parse a plain-text model definition file.

    Raises:
        SchemaParseError: If the file cannot be read or is invalid.
    """
    path = Path(file_path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SchemaParseError(f"Cannot read model file '{path}': {exc}") from exc
    return parse_schema_text(text, source=path.name)
