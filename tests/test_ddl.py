"""
tests/test_ddl.py
-----------------
Unit tests for core/ddl.py.
Run with: python -m pytest tests/
"""
from __future__ import annotations

import pytest

from core.ddl import (
    COMPUTED_PLACEHOLDER,
    add_column_statement,
    column_definition,
    create_table_statement,
    drop_column_statement,
    modify_column_statement,
    quote_identifier,
    render_default,
    statements_for,
)
from core.differ import compare
from models.schema import (
    AddColumn,
    ColumnDescriptor,
    GenerationPolicy,
    ModifyColumn,
    RemoveColumn,
    SemanticType as T,
    TableDescriptor,
)


def _col(name: str = "c", semantic_type: T = T.INTEGER32, **kwargs) -> ColumnDescriptor:
    return ColumnDescriptor(name=name, semantic_type=semantic_type, **kwargs)


@pytest.fixture
def temp_table() -> TableDescriptor:
    return TableDescriptor("Temp", [
        _col("Id", T.INTEGER32, is_nullable=False, is_primary_key=True,
             is_auto_increment=True, generation_policy=GenerationPolicy.IDENTITY),
        _col("Con", T.TEXT, max_length=1000),
        _col("Temp", T.TEXT, is_nullable=False, max_length=10),
    ])


# ---------------------------------------------------------------------------
# Fragments
# ---------------------------------------------------------------------------

class TestQuoteIdentifier:
    def test_plain(self) -> None:
        assert quote_identifier("users") == "`users`"

    def test_embedded_backtick(self) -> None:
        assert quote_identifier("we`ird") == "`we``ird`"


class TestRenderDefault:
    @pytest.mark.parametrize("raw,expected", [
        ("'abc'", "'abc'"),
        ("0", "0"),
        ("-1.5", "-1.5"),
        ("NULL", "NULL"),
        ("CURRENT_TIMESTAMP", "CURRENT_TIMESTAMP"),
        ("(uuid())", "(uuid())"),
        ("abc", "'abc'"),
        ("it's", "'it''s'"),
    ])
    def test_render(self, raw: str, expected: str) -> None:
        assert render_default(raw) == expected


class TestColumnDefinition:
    def test_nullable_text(self) -> None:
        assert column_definition(_col("name", T.TEXT)) == "`name` varchar(255) NULL"

    def test_not_null_with_default_and_collation(self) -> None:
        col = _col("code", T.TEXT, is_nullable=False, max_length=8,
                   default_value="'x'", collation="utf8mb4_bin")
        assert column_definition(col) == (
            "`code` varchar(8) COLLATE utf8mb4_bin NOT NULL DEFAULT 'x'"
        )

    def test_identity_primary_key(self) -> None:
        col = _col("id", is_nullable=False, is_primary_key=True,
                   generation_policy=GenerationPolicy.IDENTITY)
        assert column_definition(col) == "`id` int AUTO_INCREMENT NOT NULL"

    def test_auto_increment_without_key_is_omitted(self) -> None:
        col = _col("seq", is_nullable=False, is_auto_increment=True)
        assert "AUTO_INCREMENT" not in column_definition(col)

    def test_computed_with_expression(self) -> None:
        col = _col("total", T.DECIMAL, generation_policy=GenerationPolicy.COMPUTED,
                   computed_expression="price * qty", default_value="0")
        definition = column_definition(col)
        assert "GENERATED ALWAYS AS (price * qty)" in definition
        assert "DEFAULT" not in definition

    def test_computed_without_expression_uses_placeholder(self) -> None:
        col = _col("total", generation_policy=GenerationPolicy.COMPUTED)
        assert COMPUTED_PLACEHOLDER in column_definition(col)


# ---------------------------------------------------------------------------
# Statements
# ---------------------------------------------------------------------------

class TestCreateTable:
    def test_temp_table(self, temp_table: TableDescriptor) -> None:
        assert create_table_statement(temp_table) == (
            "CREATE TABLE `Temp` (\n"
            "  `Id` int AUTO_INCREMENT NOT NULL,\n"
            "  `Con` varchar(1000) NULL,\n"
            "  `Temp` varchar(10) NOT NULL,\n"
            "  PRIMARY KEY (`Id`)\n"
            ")"
        )

    def test_without_primary_key(self) -> None:
        sql = create_table_statement(TableDescriptor("log", [_col("msg", T.TEXT)]))
        assert "PRIMARY KEY" not in sql

    def test_composite_primary_key(self) -> None:
        table = TableDescriptor("link", [
            _col("a", is_nullable=False, is_primary_key=True),
            _col("b", is_nullable=False, is_primary_key=True),
        ])
        assert "PRIMARY KEY (`a`, `b`)" in create_table_statement(table)

    def test_unique_column_inline(self) -> None:
        table = TableDescriptor("u", [_col("email", T.TEXT, is_unique=True)])
        assert "`email` varchar(255) NULL UNIQUE" in create_table_statement(table)

    def test_composite_unique_key(self) -> None:
        table = TableDescriptor(
            "pair",
            [_col("a", is_nullable=False), _col("b", is_nullable=False)],
            unique_keys=[("a", "b")],
        )
        assert create_table_statement(table) == (
            "CREATE TABLE `pair` (\n"
            "  `a` int NOT NULL,\n"
            "  `b` int NOT NULL,\n"
            "  UNIQUE KEY (`a`, `b`)\n"
            ")"
        )

    def test_if_not_exists(self, temp_table: TableDescriptor) -> None:
        sql = create_table_statement(temp_table, if_not_exists=True)
        assert sql.startswith("CREATE TABLE IF NOT EXISTS `Temp` (\n")


class TestAlterStatements:
    def test_add(self) -> None:
        assert add_column_statement("T", _col("b", T.INTEGER64)) == (
            "ALTER TABLE `T` ADD `b` bigint NULL"
        )

    def test_add_unique(self) -> None:
        assert add_column_statement("T", _col("b", is_unique=True)).endswith(" UNIQUE")

    def test_modify(self) -> None:
        assert modify_column_statement("T", _col("b", is_nullable=False)) == (
            "ALTER TABLE `T` MODIFY COLUMN `b` int NOT NULL"
        )

    def test_modify_gaining_unique(self) -> None:
        sql = modify_column_statement("T", _col("b", is_unique=True), previous=_col("b"))
        assert sql.endswith(" UNIQUE")

    def test_modify_already_unique(self) -> None:
        col = _col("b", is_unique=True)
        assert not modify_column_statement("T", col, previous=col).endswith(" UNIQUE")

    def test_drop(self) -> None:
        assert drop_column_statement("T", "Legacy") == "ALTER TABLE `T` DROP COLUMN `Legacy`"


# ---------------------------------------------------------------------------
# statements_for
# ---------------------------------------------------------------------------

class TestStatementsFor:
    def test_new_table_becomes_one_create(self, temp_table: TableDescriptor) -> None:
        statements = statements_for(compare([], [temp_table]))
        assert statements == [create_table_statement(temp_table)]

    def test_one_statement_per_kind(self) -> None:
        diffs = [
            AddColumn("T", _col("b")),
            ModifyColumn("T", _col("a", T.INTEGER64), _col("a")),
            RemoveColumn("T", _col("gone")),
        ]
        assert statements_for(diffs) == [
            "ALTER TABLE `T` ADD `b` int NULL",
            "ALTER TABLE `T` MODIFY COLUMN `a` int NULL",
            "ALTER TABLE `T` DROP COLUMN `gone`",
        ]

    def test_losing_unique_drops_index(self) -> None:
        diffs = [ModifyColumn("T", _col("a", is_unique=True), _col("a"))]
        assert statements_for(diffs) == [
            "ALTER TABLE `T` MODIFY COLUMN `a` int NULL",
            "ALTER TABLE `T` DROP INDEX `a`",
        ]

    def test_two_new_tables_keep_model_order(self) -> None:
        first = TableDescriptor("a", [_col("x")])
        second = TableDescriptor("b", [_col("y")])
        statements = statements_for(compare([], [first, second]))
        assert len(statements) == 2
        assert statements[0].startswith("CREATE TABLE `a`")
        assert statements[1].startswith("CREATE TABLE `b`")

    def test_new_table_keeps_composite_unique_key(self) -> None:
        table = TableDescriptor("pair", [_col("a"), _col("b")], unique_keys=[("a", "b")])
        (statement,) = statements_for(compare([], [table]))
        assert statement == create_table_statement(table)
        assert "UNIQUE KEY (`a`, `b`)" in statement

    def test_no_differences(self) -> None:
        assert statements_for([]) == []

    def test_unknown_difference_raises(self) -> None:
        with pytest.raises(TypeError):
            statements_for([object()])  # type: ignore[list-item]
