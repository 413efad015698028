"""models/__init__.py"""
from models.schema import (
    SemanticType,
    GenerationPolicy,
    DifferenceType,
    ColumnDescriptor,
    TableDescriptor,
    AddColumn,
    ModifyColumn,
    RemoveColumn,
    SchemaDifference,
    find_table,
)
from models.entity import (
    ModelError,
    DatabaseGenerated,
    PropertyModel,
    IndexModel,
    EntityModel,
    DeclarativeModel,
    load_model_from_file,
    save_model_to_file,
)

__all__ = [
    "SemanticType",
    "GenerationPolicy",
    "DifferenceType",
    "ColumnDescriptor",
    "TableDescriptor",
    "AddColumn",
    "ModifyColumn",
    "RemoveColumn",
    "SchemaDifference",
    "find_table",
    "ModelError",
    "DatabaseGenerated",
    "PropertyModel",
    "IndexModel",
    "EntityModel",
    "DeclarativeModel",
    "load_model_from_file",
    "save_model_to_file",
]
