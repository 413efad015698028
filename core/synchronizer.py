"""
core/synchronizer.py
--------------------
Schema synchronizer: brings one or more target databases in line with their
declared models at application startup.

Design Decisions:
    * The synchronizer is a plain, stateless class; connector and model
      provider arrive with each :class:`SyncTarget`. No global state.
    * A run walks ``NOT_STARTED → DATABASE_CHECKED →
      {SCHEMA_CREATED | SCHEMA_COMPARED → SCHEMA_UPDATED} | FAILED``.
    * A brand-new database is created from the whole model in one step and
      not diffed afterwards.
    * Failures are returned as a :class:`SyncResult` tagged with the phase
      that failed and how many statements were already applied, so callers
      can tell "never touched the schema" from "partially applied".
      ``SyncResult.raise_for_error`` turns that into a :class:`SchemaSyncError`.
    * Statements run one by one with no wrapping transaction; statements
      applied before a failure stay applied.
    * Closing a target's connection never fails a run; a close error is
      logged as a warning.
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Protocol, Sequence

from core import ddl, differ, extractor, introspector
from core.extractor import ModelProvider
from logger import get_logger
from models.schema import TableDescriptor

log = get_logger(__name__)


class SyncPhase(str, Enum):
    DATABASE_CHECK = "database-check"
    INTROSPECTION = "introspection"
    EXTRACTION = "extraction"
    DIFF = "diff"
    APPLY = "apply"


class SyncState(str, Enum):
    NOT_STARTED = "not_started"
    DATABASE_CHECKED = "database_checked"
    SCHEMA_CREATED = "schema_created"
    SCHEMA_COMPARED = "schema_compared"
    SCHEMA_UPDATED = "schema_updated"
    FAILED = "failed"


class SchemaSyncError(Exception):
    """
    A synchronisation failure tagged with the phase it happened in.

    Attributes:
        target:             Name of the target being synchronised.
        phase:              :class:`SyncPhase` that failed.
        statements_applied: Statements executed before the failure.
    """

    def __init__(
        self,
        target: str,
        phase: SyncPhase,
        cause: BaseException,
        statements_applied: int = 0,
    ) -> None:
        super().__init__(
            f"Schema sync of '{target}' failed during {phase.value}: {cause}"
        )
        self.target = target
        self.phase = phase
        self.cause = cause
        self.statements_applied = statements_applied


class Connector(Protocol):
    """The database operations the synchronizer needs."""

    def can_connect(self) -> bool: ...

    def ensure_full_schema_created(self, statements: Iterable[str]) -> None: ...

    def open_connection(self) -> None: ...

    def execute_statement(self, sql: str) -> None: ...

    def query(self, sql: str, params: tuple | None = None) -> list[dict[str, Any]]: ...

    def close(self) -> None: ...


@dataclass
class SyncTarget:
    """One database and the model it should match."""
    name: str
    connector: Connector
    model: ModelProvider


@dataclass
class SyncResult:
    """Outcome of synchronising a single target."""
    target: str
    state: SyncState = SyncState.NOT_STARTED
    statements: list[str] = field(default_factory=list)
    statements_applied: int = 0
    error: SchemaSyncError | None = None
    elapsed_seconds: float = 0.0

    @property
    def success(self) -> bool:
        return self.state in (SyncState.SCHEMA_CREATED, SyncState.SCHEMA_UPDATED)

    @property
    def failed_phase(self) -> SyncPhase | None:
        return self.error.phase if self.error else None

    def raise_for_error(self) -> None:
        """Raise the captured :class:`SchemaSyncError`, if any."""
        if self.error is not None:
            raise self.error

    def __str__(self) -> str:
        status = "OK" if self.success else "FAILED"
        parts = [
            f"[{status}] {self.target}: {self.state.value}, "
            f"{self.statements_applied}/{len(self.statements)} statement(s) applied"
        ]
        if self.error:
            parts.append(f"  Error: {self.error}")
        return "\n".join(parts)


def _create_statements(tables: Sequence[TableDescriptor]) -> list[str]:
    # Tables that already exist are left as they are.
    return [ddl.create_table_statement(t, if_not_exists=True) for t in tables]


def _release(target: SyncTarget) -> None:
    try:
        target.connector.close()
    except Exception as exc:
        log.warning("Closing the connection for '%s' failed: %s", target.name, exc)


class SchemaSynchronizer:
    """
    Drives connectivity check, introspection, diffing and statement
    application for each target.

    Example::

        target = SyncTarget("shop", DatabaseManager.from_config("shop"), model)
        result = SchemaSynchronizer().refresh(target)
        result.raise_for_error()
    """

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    def refresh(self, target: SyncTarget) -> SyncResult:
        """Synchronise one target; never raises, see :attr:`SyncResult.error`."""
        start = time.monotonic()
        result = SyncResult(target=target.name)
        phase = SyncPhase.DATABASE_CHECK
        try:
            log.info("Synchronising schema for '%s'...", target.name)
            is_new_database = not target.connector.can_connect()
            result.state = SyncState.DATABASE_CHECKED

            if is_new_database:
                phase = SyncPhase.EXTRACTION
                desired = extractor.read_desired_schema(target.model)
                result.statements = _create_statements(desired)
                phase = SyncPhase.DATABASE_CHECK
                log.info("Creating database for '%s' with %d table(s).",
                         target.name, len(desired))
                target.connector.ensure_full_schema_created(result.statements)
                result.statements_applied = len(result.statements)
                result.state = SyncState.SCHEMA_CREATED
            else:
                phase = SyncPhase.INTROSPECTION
                target.connector.open_connection()
                live = introspector.read_live_schema(target.connector)

                phase = SyncPhase.EXTRACTION
                desired = extractor.read_desired_schema(target.model)

                phase = SyncPhase.DIFF
                differences = differ.compare(live, desired)
                result.statements = ddl.statements_for(differences)
                result.state = SyncState.SCHEMA_COMPARED

                phase = SyncPhase.APPLY
                self._apply(target, result)
                result.state = SyncState.SCHEMA_UPDATED
        except Exception as exc:
            result.state = SyncState.FAILED
            result.error = SchemaSyncError(
                target.name, phase, exc, statements_applied=result.statements_applied
            )
            log.error("%s", result.error)
        finally:
            _release(target)
            result.elapsed_seconds = time.monotonic() - start

        if result.success:
            log.info(
                "Schema sync of '%s' finished: %s, %d statement(s), %.2fs",
                target.name, result.state.value,
                result.statements_applied, result.elapsed_seconds,
            )
        return result

    async def refresh_async(self, target: SyncTarget) -> SyncResult:
        """Awaitable :meth:`refresh`; the blocking work runs in a worker thread."""
        return await asyncio.to_thread(self.refresh, target)

    def refresh_all(self, targets: Sequence[SyncTarget]) -> list[SyncResult]:
        """
        Synchronise *targets* one at a time, stopping at the first failure.

        Returns:
            Results for every target attempted; the last one is the failure
            when the batch stopped early.
        """
        results: list[SyncResult] = []
        for target in targets:
            result = self.refresh(target)
            results.append(result)
            if not result.success:
                skipped = len(targets) - len(results)
                if skipped:
                    log.warning("Stopping batch: %d target(s) not synchronised.", skipped)
                break
        return results

    def plan(self, target: SyncTarget) -> list[str]:
        """
        Compute the statements :meth:`refresh` would run, without executing.

        Raises:
            SchemaSyncError: Tagged with the phase that failed.
        """
        phase = SyncPhase.DATABASE_CHECK
        try:
            if not target.connector.can_connect():
                phase = SyncPhase.EXTRACTION
                desired = extractor.read_desired_schema(target.model)
                return _create_statements(desired)

            phase = SyncPhase.INTROSPECTION
            live = introspector.read_live_schema(target.connector)
            phase = SyncPhase.EXTRACTION
            desired = extractor.read_desired_schema(target.model)
            phase = SyncPhase.DIFF
            return ddl.statements_for(differ.compare(live, desired))
        except Exception as exc:
            raise SchemaSyncError(target.name, phase, exc) from exc
        finally:
            _release(target)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _apply(target: SyncTarget, result: SyncResult) -> None:
        """Execute ``result.statements`` in order, counting successes."""
        if not result.statements:
            log.info("Schema of '%s' is up to date.", target.name)
            return
        total = len(result.statements)
        for index, sql in enumerate(result.statements, start=1):
            log.info("Applying statement %d/%d: %s", index, total, sql)
            target.connector.execute_statement(sql)
            result.statements_applied += 1
