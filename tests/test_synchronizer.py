"""
tests/test_synchronizer.py
--------------------------
Unit tests for core/synchronizer.py using a mock connector.
Run with: python -m pytest tests/
"""
from __future__ import annotations

import asyncio
from unittest.mock import MagicMock, call

import pytest

from core.database import ConnectivityError, StatementExecutionError
from core.synchronizer import (
    SchemaSynchronizer,
    SchemaSyncError,
    SyncPhase,
    SyncState,
    SyncTarget,
)
from models.entity import DatabaseGenerated, DeclarativeModel, EntityModel, PropertyModel


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

def _catalog_row(table: str, column: str, **overrides) -> dict:
    row = {
        "TABLE_NAME": table,
        "COLUMN_NAME": column,
        "DATA_TYPE": "int",
        "IS_NULLABLE": "NO",
        "CHARACTER_MAXIMUM_LENGTH": None,
        "NUMERIC_PRECISION": 10,
        "NUMERIC_SCALE": 0,
        "COLUMN_TYPE": "int",
        "COLUMN_DEFAULT": None,
        "COLLATION_NAME": None,
        "COLUMN_KEY": "",
        "EXTRA": "",
        "GENERATION_EXPRESSION": "",
    }
    row.update(overrides)
    return row


def _temp_rows() -> list[dict]:
    """``Temp`` as the catalog reports it once created."""
    text = dict(DATA_TYPE="varchar", NUMERIC_PRECISION=None, NUMERIC_SCALE=None,
                COLLATION_NAME="utf8mb4_unicode_ci")
    return [
        _catalog_row("Temp", "Id", COLUMN_KEY="PRI", EXTRA="auto_increment"),
        _catalog_row("Temp", "Con", COLUMN_TYPE="varchar(1000)",
                     CHARACTER_MAXIMUM_LENGTH=1000, IS_NULLABLE="YES", **text),
        _catalog_row("Temp", "Temp", COLUMN_TYPE="varchar(10)",
                     CHARACTER_MAXIMUM_LENGTH=10, **text),
    ]


@pytest.fixture
def model() -> DeclarativeModel:
    return DeclarativeModel(entities=[
        EntityModel(
            name="Model",
            table_name="Temp",
            primary_key=["Id"],
            properties=[
                PropertyModel(name="Id", type="int", nullable=False,
                              database_generated=DatabaseGenerated.IDENTITY),
                PropertyModel(name="Context", type="string", column="Con",
                              max_length=1000),
                PropertyModel(name="Temp", type="string", required=True,
                              max_length=10),
            ],
        )
    ])


@pytest.fixture
def connector() -> MagicMock:
    conn = MagicMock()
    conn.can_connect.return_value = True
    conn.query.return_value = _temp_rows()
    return conn


@pytest.fixture
def synchronizer() -> SchemaSynchronizer:
    return SchemaSynchronizer()


def _target(connector: MagicMock, model: DeclarativeModel, name: str = "shop") -> SyncTarget:
    return SyncTarget(name=name, connector=connector, model=model)


# ---------------------------------------------------------------------------
# refresh: new database
# ---------------------------------------------------------------------------

class TestRefreshNewDatabase:
    def test_creates_full_schema(self, synchronizer, connector, model) -> None:
        connector.can_connect.return_value = False
        result = synchronizer.refresh(_target(connector, model))

        assert result.success
        assert result.state == SyncState.SCHEMA_CREATED
        assert len(result.statements) == 1
        assert result.statements[0].startswith("CREATE TABLE IF NOT EXISTS `Temp`")
        assert result.statements_applied == 1
        connector.ensure_full_schema_created.assert_called_once_with(result.statements)
        connector.query.assert_not_called()
        connector.execute_statement.assert_not_called()
        connector.close.assert_called_once()

    def test_unreachable_existing_database_is_repeatable(
        self, synchronizer, connector, model
    ) -> None:
        connector.can_connect.return_value = False
        first = synchronizer.refresh(_target(connector, model))
        second = synchronizer.refresh(_target(connector, model))

        assert first.success and second.success
        assert first.statements == second.statements
        assert all("CREATE TABLE IF NOT EXISTS" in sql for sql in first.statements)

    def test_creation_failure(self, synchronizer, connector, model) -> None:
        connector.can_connect.return_value = False
        connector.ensure_full_schema_created.side_effect = ConnectivityError("refused")
        result = synchronizer.refresh(_target(connector, model))

        assert result.state == SyncState.FAILED
        assert result.failed_phase == SyncPhase.DATABASE_CHECK
        assert result.statements_applied == 0
        assert isinstance(result.error.cause, ConnectivityError)


# ---------------------------------------------------------------------------
# refresh: existing database
# ---------------------------------------------------------------------------

class TestRefreshExistingDatabase:
    def test_up_to_date(self, synchronizer, connector, model) -> None:
        result = synchronizer.refresh(_target(connector, model))

        assert result.success
        assert result.state == SyncState.SCHEMA_UPDATED
        assert result.statements == []
        connector.open_connection.assert_called_once()
        connector.execute_statement.assert_not_called()
        connector.ensure_full_schema_created.assert_not_called()

    def test_missing_table_is_created(self, synchronizer, connector, model) -> None:
        connector.query.return_value = []
        result = synchronizer.refresh(_target(connector, model))

        assert result.state == SyncState.SCHEMA_UPDATED
        assert len(result.statements) == 1
        connector.execute_statement.assert_called_once_with(result.statements[0])

    def test_extra_live_column_is_dropped(self, synchronizer, connector, model) -> None:
        connector.query.return_value = _temp_rows() + [
            _catalog_row("Temp", "Legacy", IS_NULLABLE="YES")
        ]
        result = synchronizer.refresh(_target(connector, model))

        assert result.statements == ["ALTER TABLE `Temp` DROP COLUMN `Legacy`"]
        assert result.statements_applied == 1

    def test_statements_run_in_order(self, synchronizer, connector, model) -> None:
        rows = _temp_rows()
        rows[2]["CHARACTER_MAXIMUM_LENGTH"] = 5
        rows[2]["COLUMN_TYPE"] = "varchar(5)"
        connector.query.return_value = rows + [_catalog_row("Temp", "Legacy")]
        result = synchronizer.refresh(_target(connector, model))

        assert connector.execute_statement.call_args_list == [
            call(sql) for sql in result.statements
        ]
        assert "MODIFY COLUMN `Temp` varchar(10) NOT NULL" in result.statements[0]
        assert "DROP COLUMN `Legacy`" in result.statements[1]

    def test_partial_apply_failure(self, synchronizer, connector, model) -> None:
        connector.query.return_value = []
        model.entities.append(EntityModel(
            name="Other", properties=[PropertyModel(name="id", type="int")]
        ))
        connector.execute_statement.side_effect = [
            None, StatementExecutionError("boom", "CREATE TABLE `Other` ...")
        ]
        result = synchronizer.refresh(_target(connector, model))

        assert result.state == SyncState.FAILED
        assert result.failed_phase == SyncPhase.APPLY
        assert result.statements_applied == 1
        assert result.error.statements_applied == 1
        connector.close.assert_called_once()

    def test_introspection_failure(self, synchronizer, connector, model) -> None:
        connector.query.side_effect = StatementExecutionError("denied", "SELECT ...")
        result = synchronizer.refresh(_target(connector, model))

        assert result.failed_phase == SyncPhase.INTROSPECTION
        connector.execute_statement.assert_not_called()

    def test_unsupported_model_type(self, synchronizer, connector, model) -> None:
        model.entities[0].properties.append(PropertyModel(name="x", type="uuid"))
        result = synchronizer.refresh(_target(connector, model))

        assert result.failed_phase == SyncPhase.EXTRACTION
        connector.execute_statement.assert_not_called()

    def test_raise_for_error(self, synchronizer, connector, model) -> None:
        connector.can_connect.side_effect = RuntimeError("driver exploded")
        result = synchronizer.refresh(_target(connector, model))

        with pytest.raises(SchemaSyncError) as exc_info:
            result.raise_for_error()
        assert exc_info.value.phase == SyncPhase.DATABASE_CHECK
        assert "shop" in str(exc_info.value)

    def test_success_does_not_raise(self, synchronizer, connector, model) -> None:
        synchronizer.refresh(_target(connector, model)).raise_for_error()

    def test_close_failure_is_logged_not_raised(self, synchronizer, connector, model) -> None:
        connector.close.side_effect = RuntimeError("socket already gone")
        result = synchronizer.refresh(_target(connector, model))
        assert result.success

    def test_close_failure_keeps_original_error(self, synchronizer, connector, model) -> None:
        connector.query.side_effect = StatementExecutionError("denied", "SELECT ...")
        connector.close.side_effect = RuntimeError("socket already gone")
        result = synchronizer.refresh(_target(connector, model))
        assert result.failed_phase == SyncPhase.INTROSPECTION
        assert isinstance(result.error.cause, StatementExecutionError)

    def test_async(self, synchronizer, connector, model) -> None:
        result = asyncio.run(synchronizer.refresh_async(_target(connector, model)))
        assert result.success


# ---------------------------------------------------------------------------
# refresh_all
# ---------------------------------------------------------------------------

class TestRefreshAll:
    def test_all_targets(self, synchronizer, model) -> None:
        targets = []
        for name in ("a", "b"):
            conn = MagicMock()
            conn.can_connect.return_value = True
            conn.query.return_value = _temp_rows()
            targets.append(_target(conn, model, name))
        results = synchronizer.refresh_all(targets)
        assert [r.target for r in results] == ["a", "b"]
        assert all(r.success for r in results)

    def test_stops_at_first_failure(self, synchronizer, model) -> None:
        failing, untouched = MagicMock(), MagicMock()
        failing.can_connect.return_value = True
        failing.query.side_effect = StatementExecutionError("denied", "SELECT ...")
        results = synchronizer.refresh_all([
            _target(failing, model, "a"), _target(untouched, model, "b")
        ])
        assert len(results) == 1
        assert not results[0].success
        untouched.can_connect.assert_not_called()


# ---------------------------------------------------------------------------
# plan
# ---------------------------------------------------------------------------

class TestPlan:
    def test_existing_database(self, synchronizer, connector, model) -> None:
        connector.query.return_value = _temp_rows() + [_catalog_row("Temp", "Legacy")]
        statements = synchronizer.plan(_target(connector, model))
        assert statements == ["ALTER TABLE `Temp` DROP COLUMN `Legacy`"]
        connector.execute_statement.assert_not_called()
        connector.close.assert_called_once()

    def test_new_database(self, synchronizer, connector, model) -> None:
        connector.can_connect.return_value = False
        statements = synchronizer.plan(_target(connector, model))
        assert len(statements) == 1
        connector.ensure_full_schema_created.assert_not_called()

    def test_failure_is_tagged(self, synchronizer, connector, model) -> None:
        connector.query.side_effect = StatementExecutionError("denied", "SELECT ...")
        with pytest.raises(SchemaSyncError) as exc_info:
            synchronizer.plan(_target(connector, model))
        assert exc_info.value.phase == SyncPhase.INTROSPECTION
