"""
core/database.py
----------------
MySQL connection management: the connector the schema synchronizer drives.

Design Decisions:
    * ``DatabaseManager`` is a context manager so callers can use it with
      ``with`` statements and be guaranteed the connection is closed on exit.
    * Database names are backtick-quoted with embedded backticks doubled
      (``core.ddl.quote_identifier``).
    * Connecting retries transient failures with linear back-off
      (configurable via ``max_retries`` / ``retry_delay``). Statement
      execution never retries: a failed DDL statement is fatal.
    * DDL is executed one statement at a time without a wrapping
      transaction; MySQL commits DDL implicitly.
"""
from __future__ import annotations

import time
from typing import Any, Iterable

import mysql.connector
from mysql.connector import MySQLConnection
from mysql.connector import errorcode

from config import CONFIG
from core.ddl import quote_identifier
from logger import get_logger

log = get_logger(__name__)

SCHEMA_EXISTS_QUERY = (
    "SELECT SCHEMA_NAME FROM INFORMATION_SCHEMA.SCHEMATA WHERE SCHEMA_NAME = %s"
)


class DatabaseError(Exception):
    """Raised for database-level failures reported by this module."""


class ConnectivityError(DatabaseError):
    """Raised when the server cannot be reached or the database not created."""


class ConnectionLostError(ConnectivityError):
    """Raised when an operation needs a connection that is not open."""


class StatementExecutionError(DatabaseError):
    """Raised when a SQL statement fails; ``sql`` holds the statement."""

    def __init__(self, message: str, sql: str) -> None:
        super().__init__(message)
        self.sql = sql


class DatabaseManager:
    """
    MySQL connection wrapper bound to one target database.

    Provides:
        * Lazy connect / reconnect with retry back-off.
        * Context-manager support (``with DatabaseManager(...) as db``).
        * The connector primitives used by the synchronizer:
          :meth:`can_connect`, :meth:`ensure_full_schema_created`,
          :meth:`open_connection`, :meth:`execute_statement`, :meth:`query`.

    Example::

        with DatabaseManager.from_config(database="shop") as db:
            rows = db.query("SELECT TABLE_NAME FROM INFORMATION_SCHEMA.TABLES")
    """

    def __init__(
        self,
        host: str,
        port: int,
        user: str,
        password: str,
        database: str,
        charset: str = "utf8mb4",
        collation: str = "utf8mb4_unicode_ci",
        connect_timeout: int = 10,
        max_retries: int = 3,
        retry_delay: float = 1.0,
    ) -> None:
        self._host = host
        self._port = port
        self._user = user
        self._password = password
        self._charset = charset
        self._collation = collation
        self._connect_timeout = connect_timeout
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self.database = database

        self._conn: MySQLConnection | None = None

    # ------------------------------------------------------------------
    # Factory helpers
    # ------------------------------------------------------------------

    @classmethod
    def from_config(
        cls,
        database: str | None = None,
        user: str | None = None,
        password: str | None = None,
    ) -> "DatabaseManager":
        """Convenience factory using values from the application config."""
        name = database or CONFIG.db.database
        if not name:
            raise ValueError("No database name given and DB_NAME is not set.")
        return cls(
            host=CONFIG.db.host,
            port=CONFIG.db.port,
            user=user if user is not None else CONFIG.db.user,
            password=password if password is not None else CONFIG.db.password,
            database=name,
            charset=CONFIG.db.charset,
            collation=CONFIG.db.collation,
            connect_timeout=CONFIG.db.connect_timeout,
            max_retries=CONFIG.db.max_retries,
            retry_delay=CONFIG.db.retry_delay,
        )

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    def __enter__(self) -> "DatabaseManager":
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_type is not None:
            log.warning("Unhandled exception in DatabaseManager context: %s", exc_val)
        self.close()
        return False  # Never suppress exceptions

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    def _open(self, database: str | None) -> MySQLConnection:
        return mysql.connector.connect(
            host=self._host,
            port=self._port,
            user=self._user,
            password=self._password,
            database=database,
            charset=self._charset,
            connect_timeout=self._connect_timeout,
            autocommit=True,
        )

    def connect(self, use_database: bool = True) -> None:
        """
        Open (or re-open) the MySQL connection with linear back-off retries.

        Args:
            use_database: Connect straight into :attr:`database`. Pass False
                          to connect to the server only (e.g. to create it).

        Raises:
            ConnectivityError: If connection fails after all retries.
        """
        target = self.database if use_database else None
        last_exc: Exception | None = None
        for attempt in range(1, self._max_retries + 1):
            try:
                log.info(
                    "Connecting to MySQL at %s:%s (attempt %d/%d)",
                    self._host, self._port, attempt, self._max_retries,
                )
                self._conn = self._open(target)
                log.info("Connected to MySQL successfully.")
                return
            except mysql.connector.Error as exc:
                last_exc = exc
                log.warning("Connection attempt %d failed: %s", attempt, exc)
                if attempt < self._max_retries:
                    time.sleep(self._retry_delay * attempt)
        raise ConnectivityError(
            f"Could not connect to MySQL at {self._host}:{self._port} "
            f"after {self._max_retries} attempts: {last_exc}"
        ) from last_exc

    def open_connection(self) -> None:
        """Connect into the target database unless already connected."""
        if not self.is_connected:
            self.connect()

    def close(self) -> None:
        """Close the connection, logging any cleanup errors."""
        try:
            if self._conn and self._conn.is_connected():
                self._conn.close()
                log.info("Database connection closed.")
        except mysql.connector.Error as exc:
            log.warning("Error while closing connection: %s", exc)
        self._conn = None

    @property
    def is_connected(self) -> bool:
        return bool(self._conn and self._conn.is_connected())

    def _ensure_connected(self) -> None:
        if not self.is_connected:
            raise ConnectionLostError(
                "Database connection is not open. Call connect() first."
            )

    # ------------------------------------------------------------------
    # Connector primitives
    # ------------------------------------------------------------------

    def can_connect(self) -> bool:
        """
        Return True if the server is reachable and the target database exists.

        Performs a single attempt with no retries and closes the test
        connection afterwards.
        """
        try:
            conn = self._open(self.database)
        except mysql.connector.Error as exc:
            if getattr(exc, "errno", None) == errorcode.ER_BAD_DB_ERROR:
                log.info("Database '%s' does not exist yet.", self.database)
            else:
                log.info("Cannot connect to database '%s': %s", self.database, exc)
            return False
        try:
            conn.close()
        except mysql.connector.Error as exc:
            log.debug("Error while closing test connection: %s", exc)
        return True

    def ensure_full_schema_created(self, statements: Iterable[str]) -> None:
        """
        Create the database (if absent) and run *statements* inside it.

        Used for brand-new databases: *statements* are the CREATE TABLE
        statements for the entire desired model. Safe to repeat when
        *statements* use ``CREATE TABLE IF NOT EXISTS``; a database that
        already exists is kept and only logged.

        Raises:
            ConnectivityError: If the server is unreachable or the database
                               cannot be created.
            StatementExecutionError: If a CREATE TABLE statement fails.
        """
        self.connect(use_database=False)
        quoted = quote_identifier(self.database)
        try:
            if self.query(SCHEMA_EXISTS_QUERY, (self.database,)):
                log.warning(
                    "Database '%s' already exists; existing tables are kept.",
                    self.database,
                )
            self.execute_statement(
                f"CREATE DATABASE IF NOT EXISTS {quoted} "
                f"CHARACTER SET {self._charset} COLLATE {self._collation}"
            )
            self.execute_statement(f"USE {quoted}")
        except StatementExecutionError as exc:
            raise ConnectivityError(
                f"Failed to create database '{self.database}': {exc}"
            ) from exc
        log.info("Database '%s' is ready.", self.database)
        for sql in statements:
            self.execute_statement(sql)

    def execute_statement(self, sql: str) -> None:
        """
        Execute a single statement that returns no rows.

        Raises:
            ConnectionLostError: If not connected.
            StatementExecutionError: On any MySQL error.
        """
        self._ensure_connected()
        assert self._conn is not None
        cursor = self._conn.cursor()
        try:
            cursor.execute(sql)
        except mysql.connector.Error as exc:
            log.error("SQL execution error: %s | SQL: %.500s", exc, sql)
            raise StatementExecutionError(str(exc), sql) from exc
        finally:
            cursor.close()

    def query(self, sql: str, params: tuple | None = None) -> list[dict[str, Any]]:
        """
        Run a SELECT and return every row as a ``{column: value}`` dict.

        Opens the connection if it is not open yet.

        Raises:
            ConnectivityError: If the connection cannot be opened.
            StatementExecutionError: On any MySQL error.
        """
        self.open_connection()
        assert self._conn is not None
        cursor = self._conn.cursor(dictionary=True)
        try:
            cursor.execute(sql, params)
            return list(cursor.fetchall() or [])
        except mysql.connector.Error as exc:
            log.error("SQL query error: %s | SQL: %.500s", exc, sql)
            raise StatementExecutionError(str(exc), sql) from exc
        finally:
            cursor.close()
