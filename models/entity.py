"""
models/entity.py
----------------
Declarative application model: the desired entities and their properties.

Design Decision:
    Entities are described by plain ``@dataclass`` structures built either
    in code, from a JSON model file, or from the plain-text ``Table:`` format
    (see ``core/schema_parser.py``). The schema extractor only needs an
    iterable of :class:`EntityModel`, so any of those sources is a model
    provider.

JSON layout::

    {
        "entities": [
            {
                "name": "Model",
                "table_name": "Temp",
                "primary_key": ["Id"],
                "indexes": [{"columns": ["Temp"], "unique": true}],
                "properties": [
                    {"name": "Id", "type": "int", "nullable": false,
                     "database_generated": "identity"},
                    {"name": "Context", "type": "string", "column": "Con",
                     "max_length": 1000}
                ]
            }
        ]
    }
"""
from __future__ import annotations

import json
from dataclasses import MISSING, dataclass, field, fields
from enum import Enum
from pathlib import Path
from typing import Any, Iterator


class ModelError(Exception):
    """Raised when a declarative model file is unreadable or malformed."""


class DatabaseGenerated(str, Enum):
    """Explicit value-generation annotation on a property."""
    NONE = "none"
    IDENTITY = "identity"
    COMPUTED = "computed"


@dataclass
class PropertyModel:
    """
    One declared property of an entity.

    Attributes:
        name:                   Property name (column name unless ``column``).
        type:                   Declared value type, e.g. ``"int"``, ``"string"``.
        nullable:               Whether the declared type admits null.
        column:                 Column-name override.
        type_name:              Explicit DDL type, bypassing the default mapping.
        required:               "Required" annotation; forces NOT NULL.
        max_length:             Explicit max-length annotation.
        string_length:          String-length annotation (fallback for length).
        precision / scale:      Precision annotation for decimals.
        database_generated:     Explicit generation annotation.
        value_generated_on_add: The model generates the value on insert.
        default_value:          Configured default, raw SQL text.
        collation:              Configured collation.
        computed_sql:           Expression body for computed columns.
    """
    name: str
    type: str
    nullable: bool = True
    column: str | None = None
    type_name: str | None = None
    required: bool = False
    max_length: int | None = None
    string_length: int | None = None
    precision: int | None = None
    scale: int | None = None
    database_generated: DatabaseGenerated | None = None
    value_generated_on_add: bool = False
    default_value: str | None = None
    collation: str | None = None
    computed_sql: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None or (f.default is not MISSING and value == f.default):
                continue
            data[f.name] = value.value if isinstance(value, Enum) else value
        return data

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "PropertyModel":
        known = {f.name for f in fields(PropertyModel)}
        unknown = set(data) - known
        if unknown:
            raise ModelError(
                f"Unknown property attribute(s) {sorted(unknown)} "
                f"on '{data.get('name', '?')}'."
            )
        if "name" not in data or "type" not in data:
            raise ModelError(f"Property requires 'name' and 'type': {data!r}")
        values = dict(data)
        generated = values.get("database_generated")
        if generated is not None:
            try:
                values["database_generated"] = DatabaseGenerated(str(generated).lower())
            except ValueError as exc:
                raise ModelError(
                    f"Invalid database_generated value {generated!r} "
                    f"on '{data['name']}'."
                ) from exc
        return PropertyModel(**values)


@dataclass
class IndexModel:
    """A declared index over one or more properties."""
    columns: list[str]
    unique: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"columns": self.columns, "unique": self.unique}

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "IndexModel":
        return IndexModel(
            columns=list(data.get("columns", [])),
            unique=bool(data.get("unique", False)),
        )


@dataclass
class EntityModel:
    """
    One declared entity (maps to one table).

    Attributes:
        name:         Entity name; the table name unless ``table_name`` is set.
        properties:   Ordered declared properties.
        table_name:   Table-name annotation.
        primary_key:  Property names forming the primary key.
        indexes:      Declared indexes; a single-column unique index marks its
                      column unique, wider ones become table-level keys.
    """
    name: str
    properties: list[PropertyModel] = field(default_factory=list)
    table_name: str | None = None
    primary_key: list[str] = field(default_factory=list)
    indexes: list[IndexModel] = field(default_factory=list)

    def find_property(self, name: str) -> PropertyModel | None:
        for prop in self.properties:
            if prop.name == name:
                return prop
        return None

    def is_unique_property(self, name: str) -> bool:
        """True if *name* alone is covered by a single-column unique index."""
        return any(idx.unique and idx.columns == [name] for idx in self.indexes)

    def composite_unique_indexes(self) -> list[IndexModel]:
        """Unique indexes spanning more than one property."""
        return [idx for idx in self.indexes if idx.unique and len(idx.columns) > 1]

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "properties": [p.to_dict() for p in self.properties],
        }
        if self.table_name:
            data["table_name"] = self.table_name
        if self.primary_key:
            data["primary_key"] = self.primary_key
        if self.indexes:
            data["indexes"] = [i.to_dict() for i in self.indexes]
        return data

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "EntityModel":
        if "name" not in data:
            raise ModelError(f"Entity requires a 'name': {data!r}")
        return EntityModel(
            name=data["name"],
            table_name=data.get("table_name"),
            primary_key=list(data.get("primary_key", [])),
            properties=[PropertyModel.from_dict(p) for p in data.get("properties", [])],
            indexes=[IndexModel.from_dict(i) for i in data.get("indexes", [])],
        )


@dataclass
class DeclarativeModel:
    """
    An ordered collection of entities; iterating it yields each entity.

    This is the model provider handed to the schema extractor.
    """
    entities: list[EntityModel] = field(default_factory=list)

    def __iter__(self) -> Iterator[EntityModel]:
        return iter(self.entities)

    def __len__(self) -> int:
        return len(self.entities)

    def to_dict(self) -> dict[str, Any]:
        return {"entities": [e.to_dict() for e in self.entities]}

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "DeclarativeModel":
        if not isinstance(data, dict) or not isinstance(data.get("entities"), list):
            raise ModelError("Model must be an object with an 'entities' list.")
        return DeclarativeModel(
            entities=[EntityModel.from_dict(e) for e in data["entities"]]
        )


def load_model_from_file(path: Path | str) -> DeclarativeModel:
    """
    Load and deserialise a declarative model from a JSON file.

    Args:
        path: Path to the JSON model file.

    Returns:
        The :class:`DeclarativeModel` described by the file.

    Raises:
        ModelError: If the file is missing, not valid JSON, or malformed.
    """
    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ModelError(f"Cannot read model file '{path}': {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ModelError(f"Invalid JSON in model file '{path}': {exc}") from exc
    return DeclarativeModel.from_dict(raw)


def save_model_to_file(path: Path | str, model: DeclarativeModel) -> None:
    """
    Serialise a model to JSON and write atomically (write-then-rename).
    """
    path = Path(path)
    tmp = path.with_suffix(".tmp")
    tmp.write_text(json.dumps(model.to_dict(), indent=4), encoding="utf-8")
    tmp.replace(path)
