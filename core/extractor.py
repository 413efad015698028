"""
core/extractor.py
-----------------
Builds the desired :class:`TableDescriptor` list from a declarative model.

Design Decision:
    The model provider is any iterable of :class:`EntityModel`; descriptors
    are built by an explicit per-entity step instead of inspecting classes
    at runtime, so the diff engine never knows where descriptors came from.
"""
from __future__ import annotations

from typing import Iterable

from core.type_mapper import parse_semantic_type
from logger import get_logger
from models.entity import DatabaseGenerated, EntityModel, PropertyModel
from models.schema import ColumnDescriptor, GenerationPolicy, TableDescriptor

log = get_logger(__name__)

ModelProvider = Iterable[EntityModel]

_GENERATION = {
    None: GenerationPolicy.NONE,
    DatabaseGenerated.NONE: GenerationPolicy.NONE,
    DatabaseGenerated.IDENTITY: GenerationPolicy.IDENTITY,
    DatabaseGenerated.COMPUTED: GenerationPolicy.COMPUTED,
}


def column_from_property(entity: EntityModel, prop: PropertyModel) -> ColumnDescriptor:
    """
    Build the desired column for one declared property.

    Raises:
        UnsupportedTypeError: If the declared type is not recognised.
    """
    is_identity = prop.database_generated == DatabaseGenerated.IDENTITY
    is_key = prop.name in entity.primary_key
    max_length = prop.max_length if prop.max_length is not None else prop.string_length
    return ColumnDescriptor(
        name=prop.column or prop.name,
        semantic_type=parse_semantic_type(prop.type),
        is_nullable=not (prop.required or is_key) and prop.nullable,
        is_primary_key=is_key,
        is_auto_increment=prop.value_generated_on_add or is_identity,
        max_length=max_length,
        raw_type_override=prop.type_name,
        default_value=prop.default_value,
        is_unique=entity.is_unique_property(prop.name),
        collation=prop.collation,
        precision=prop.precision,
        scale=prop.scale,
        generation_policy=_GENERATION[prop.database_generated],
        computed_expression=prop.computed_sql,
    )


def _column_name(entity: EntityModel, property_name: str) -> str:
    prop = entity.find_property(property_name)
    if prop is None:
        raise ValueError(
            f"Index on '{entity.name}' names unknown property '{property_name}'."
        )
    return prop.column or prop.name


def table_from_entity(entity: EntityModel) -> TableDescriptor:
    return TableDescriptor(
        name=entity.table_name or entity.name,
        columns=[column_from_property(entity, p) for p in entity.properties],
        unique_keys=[
            tuple(_column_name(entity, name) for name in idx.columns)
            for idx in entity.composite_unique_indexes()
        ],
    )


def read_desired_schema(model_provider: ModelProvider) -> list[TableDescriptor]:
    """
    Return one :class:`TableDescriptor` per declared entity, in model order.

    Raises:
        UnsupportedTypeError: If any property type cannot be mapped.
        ValueError: If two tables (or two columns of one table) share a
                    name ignoring case.
    """
    tables: list[TableDescriptor] = []
    seen: set[str] = set()
    for entity in model_provider:
        table = table_from_entity(entity)
        key = table.name.lower()
        if key in seen:
            raise ValueError(f"Duplicate table '{table.name}' in desired model.")
        seen.add(key)
        tables.append(table)

    log.info(
        "Read desired schema: %d table(s), %d column(s).",
        len(tables), sum(len(t.columns) for t in tables),
    )
    return tables
