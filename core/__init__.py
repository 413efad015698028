"""core/__init__.py"""
from core.database import (
    DatabaseManager,
    DatabaseError,
    ConnectivityError,
    ConnectionLostError,
    StatementExecutionError,
)
from core.type_mapper import (
    UnsupportedTypeError,
    native_to_semantic,
    semantic_to_ddl,
    is_safe_widening,
)
from core.introspector import read_live_schema
from core.extractor import read_desired_schema
from core.differ import compare, has_column_changed, compare_default_values
from core.ddl import (
    create_table_statement,
    add_column_statement,
    modify_column_statement,
    drop_column_statement,
    statements_for,
)
from core.schema_parser import parse_schema_file, parse_schema_text, SchemaParseError
from core.synchronizer import (
    SchemaSynchronizer,
    SchemaSyncError,
    SyncPhase,
    SyncResult,
    SyncState,
    SyncTarget,
)

__all__ = [
    "DatabaseManager",
    "DatabaseError",
    "ConnectivityError",
    "ConnectionLostError",
    "StatementExecutionError",
    "UnsupportedTypeError",
    "native_to_semantic",
    "semantic_to_ddl",
    "is_safe_widening",
    "read_live_schema",
    "read_desired_schema",
    "compare",
    "has_column_changed",
    "compare_default_values",
    "create_table_statement",
    "add_column_statement",
    "modify_column_statement",
    "drop_column_statement",
    "statements_for",
    "parse_schema_file",
    "parse_schema_text",
    "SchemaParseError",
    "SchemaSynchronizer",
    "SchemaSyncError",
    "SyncPhase",
    "SyncResult",
    "SyncState",
    "SyncTarget",
]
