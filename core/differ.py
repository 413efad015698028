"""
core/differ.py
--------------
Compares live and desired table descriptors and lists the column changes.

Rules:
    * Tables and columns are matched by name, ignoring case.
    * A desired table with no live counterpart is new: each of its columns
      is reported as an :class:`AddColumn` flagged ``creates_table`` and the
      table is not compared any further.
    * Live tables absent from the model are never reported; tables are not
      dropped.
    * A renamed column shows up as a removal plus an addition.
"""
from __future__ import annotations

from typing import Sequence

from core.type_mapper import (
    effective_max_length,
    effective_precision,
    effective_scale,
    is_safe_widening,
)
from logger import get_logger
from models.schema import (
    AddColumn,
    ColumnDescriptor,
    GenerationPolicy,
    ModifyColumn,
    RemoveColumn,
    SchemaDifference,
    TableDescriptor,
    find_table,
)

log = get_logger(__name__)

_TIMESTAMP_ALIASES = frozenset({"CURRENT_TIMESTAMP", "CURRENT_DATE", "NOW()"})


def _clean_default(value: str) -> str:
    value = value.strip("'\"")
    if value.upper() in _TIMESTAMP_ALIASES:
        return "CURRENT_TIMESTAMP"
    return value


def compare_default_values(current: str | None, desired: str | None) -> bool:
    """
    Return True if two raw default expressions mean the same thing.

    Surrounding quotes are stripped, the comparison ignores case, and
    ``CURRENT_TIMESTAMP`` / ``CURRENT_DATE`` / ``NOW()`` are one value.

    Examples::

        compare_default_values("'NOW()'", "CURRENT_TIMESTAMP")  → True
        compare_default_values("'abc'", "'ABC'")                → True
        compare_default_values("'abc'", None)                   → False
    """
    if current is None or desired is None:
        return current is None and desired is None
    return _clean_default(current).lower() == _clean_default(desired).lower()


def _effective_auto_increment(column: ColumnDescriptor) -> bool:
    # AUTO_INCREMENT is only emitted for key columns, so only they carry it.
    identity = (
        column.is_auto_increment or column.generation_policy == GenerationPolicy.IDENTITY
    )
    return identity and column.is_primary_key


def _same_text(a: str | None, b: str | None) -> bool:
    if a is None or b is None:
        return a is b
    return a.lower() == b.lower()


def column_changes(current: ColumnDescriptor, desired: ColumnDescriptor) -> list[str]:
    """Describe every difference between a live column and its desired form."""
    changes: list[str] = []

    if current.name.lower() != desired.name.lower():
        changes.append(f"Name changed: {current.name} → {desired.name}")

    if current.semantic_type != desired.semantic_type and not is_safe_widening(
        current.semantic_type, desired.semantic_type
    ):
        changes.append(
            f"Type changed: {current.semantic_type.value} → {desired.semantic_type.value}"
        )

    if current.is_nullable != desired.is_nullable:
        changes.append(
            f"Nullability changed to {'NULL' if desired.is_nullable else 'NOT NULL'}"
        )

    if current.is_primary_key != desired.is_primary_key:
        changes.append("Added PRIMARY KEY" if desired.is_primary_key else "Removed PRIMARY KEY")

    old_identity = _effective_auto_increment(current)
    new_identity = _effective_auto_increment(desired)
    if old_identity != new_identity:
        changes.append("Added AUTO_INCREMENT" if new_identity else "Removed AUTO_INCREMENT")

    old_len, new_len = effective_max_length(current), effective_max_length(desired)
    if old_len != new_len:
        changes.append(f"Max length changed: {old_len} → {new_len}")

    if current.is_unique != desired.is_unique:
        changes.append("Added UNIQUE" if desired.is_unique else "Removed UNIQUE")

    old_prec, new_prec = effective_precision(current), effective_precision(desired)
    if old_prec != new_prec:
        changes.append(f"Precision changed: {old_prec} → {new_prec}")

    old_scale, new_scale = effective_scale(current), effective_scale(desired)
    if old_scale != new_scale:
        changes.append(f"Scale changed: {old_scale} → {new_scale}")

    # An undeclared collation inherits the table default and is not compared.
    if desired.collation is not None and not _same_text(current.collation, desired.collation):
        changes.append(f"Collation changed: {current.collation} → {desired.collation}")

    if not compare_default_values(current.default_value, desired.default_value):
        changes.append(f"Default changed: {current.default_value} → {desired.default_value}")

    return changes


def has_column_changed(current: ColumnDescriptor, desired: ColumnDescriptor) -> bool:
    """True if *current* must be modified to match *desired*."""
    return bool(column_changes(current, desired))


def compare(
    live_tables: Sequence[TableDescriptor],
    desired_tables: Sequence[TableDescriptor],
) -> list[SchemaDifference]:
    """
    Compute the ordered list of differences that turns *live_tables* into
    *desired_tables*.

    Order: desired tables in model order; within a compared table, desired
    columns in declaration order (adds and modifies) followed by removals
    in catalog order.
    """
    differences: list[SchemaDifference] = []

    for desired_table in desired_tables:
        live_table = find_table(live_tables, desired_table.name)

        if live_table is None:
            log.info("Table '%s' is new (%d column(s)).",
                     desired_table.name, len(desired_table.columns))
            differences.extend(
                AddColumn(
                    table_name=desired_table.name,
                    column=col,
                    creates_table=True,
                    unique_keys=desired_table.unique_keys,
                )
                for col in desired_table.columns
            )
            continue

        for desired_col in desired_table.columns:
            live_col = live_table.get_column(desired_col.name)
            if live_col is None:
                log.info("New column: %s.%s", desired_table.name, desired_col.name)
                differences.append(AddColumn(table_name=live_table.name, column=desired_col))
                continue

            changes = column_changes(live_col, desired_col)
            if changes:
                log.info(
                    "Column changed: %s.%s (%s)",
                    desired_table.name, desired_col.name, "; ".join(changes),
                )
                differences.append(
                    ModifyColumn(
                        table_name=live_table.name,
                        old_column=live_col,
                        new_column=desired_col,
                    )
                )

        for live_col in live_table.columns:
            if desired_table.get_column(live_col.name) is None:
                log.info("Removed column: %s.%s", desired_table.name, live_col.name)
                differences.append(RemoveColumn(table_name=live_table.name, column=live_col))

    log.info("Schema comparison found %d difference(s).", len(differences))
    return differences
