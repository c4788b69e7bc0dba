"""
SQLite descriptor store for toolhub.

This module provides the persistence collaborator the catalog loader reads
from. Descriptors are authored by external tooling; toolhub only reads the
active rows and flips their registration flag once they are served.

Tables:
    - api_info: One row per API descriptor

Contract used by the core:
    - fetch_active_by_scope(scope): active descriptors of one project
    - fetch_active_all(): every active descriptor
    - fetch_by_name(name): one active descriptor by name
    - mark_registered(ids): idempotent bulk registration-flag update
"""

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Generator, Iterable

from pydantic import ValidationError

from toolhub.errors import StorageConnectionError, StorageReadError, StorageWriteError
from toolhub.schema import DeleteFlag, Descriptor, RegistrationFlag

logger = logging.getLogger(__name__)

# Schema version for migrations
SCHEMA_VERSION = 1

CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS api_info (
    api_id INTEGER PRIMARY KEY AUTOINCREMENT,
    api_name TEXT NOT NULL,
    api_path TEXT NOT NULL DEFAULT '',
    api_type TEXT,
    api_method TEXT DEFAULT 'GET',
    auth_type TEXT,
    sql_data TEXT,
    mock_data TEXT,
    datasource_code TEXT,
    datasource_type TEXT,
    project_id INTEGER,
    api_desc TEXT,
    del_flag TEXT NOT NULL DEFAULT '0',
    request_params TEXT,
    data_type TEXT,
    mcp_flag TEXT NOT NULL DEFAULT '2'
);

CREATE INDEX IF NOT EXISTS idx_api_info_project_id ON api_info(project_id);
CREATE INDEX IF NOT EXISTS idx_api_info_api_name ON api_info(api_name);
"""

# Descriptor field -> api_info column
COLUMNS: dict[str, str] = {
    "id": "api_id",
    "name": "api_name",
    "path": "api_path",
    "kind": "api_type",
    "method": "api_method",
    "auth_type": "auth_type",
    "sql_payload": "sql_data",
    "mock_payload": "mock_data",
    "datasource_code": "datasource_code",
    "datasource_type": "datasource_type",
    "project_id": "project_id",
    "description": "api_desc",
    "del_flag": "del_flag",
    "request_params": "request_params",
    "data_type": "data_type",
    "mcp_flag": "mcp_flag",
}


def row_to_descriptor(row: sqlite3.Row) -> Descriptor:
    """Convert an api_info row to a Descriptor."""
    return Descriptor(**{name: row[column] for name, column in COLUMNS.items()})


class DescriptorStore:
    """
    SQLite-backed store of API descriptors.

    Usage:
        store = DescriptorStore("toolhub.db")
        descriptors = store.fetch_active_by_scope(7)
        store.mark_registered([d.id for d in descriptors])
        store.close()

    Or use as context manager:
        with DescriptorStore("toolhub.db") as store:
            ...
    """

    def __init__(self, db_path: str | Path) -> None:
        """
        Open (and if needed create) the descriptor database.

        Args:
            db_path: Path to the SQLite database file.
                     Will be created if it doesn't exist.
        """
        self.db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None
        self._connect()
        self._init_schema()

    def _connect(self) -> None:
        """Establish database connection."""
        try:
            # Reloads run in a worker thread, so the connection is shared.
            self._conn = sqlite3.connect(
                str(self.db_path),
                check_same_thread=False,
            )
            self._conn.row_factory = sqlite3.Row
        except sqlite3.Error as e:
            raise StorageConnectionError(
                db_path=str(self.db_path),
                operation="connect",
                message=f"Failed to connect to database: {e}",
            ) from e

    def _init_schema(self) -> None:
        """Initialize database schema if needed."""
        try:
            cursor = self._conn.executescript(CREATE_TABLES_SQL)
            cursor.close()

            cursor = self._conn.execute(
                "SELECT version FROM schema_version ORDER BY version DESC LIMIT 1"
            )
            if cursor.fetchone() is None:
                self._conn.execute(
                    "INSERT INTO schema_version (version) VALUES (?)",
                    (SCHEMA_VERSION,),
                )
            self._conn.commit()
        except sqlite3.Error as e:
            raise StorageWriteError(
                operation="init_schema",
                underlying_error=str(e),
            ) from e

    @contextmanager
    def transaction(self) -> Generator[None, None, None]:
        """Context manager for database transactions."""
        try:
            yield
            self._conn.commit()
        except Exception:
            self._conn.rollback()
            raise

    def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "DescriptorStore":
        """Enter context manager."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Exit context manager."""
        self.close()

    # =========================================================================
    # Read Operations
    # =========================================================================

    def _select(self, operation: str, where: str, params: tuple[Any, ...]) -> list[Descriptor]:
        """
        Run a SELECT over api_info and convert the rows.

        A row that does not form a valid Descriptor is logged and skipped.
        """
        if self._conn is None:
            raise StorageReadError(operation=operation, underlying_error="store is closed")
        try:
            cursor = self._conn.execute(
                f"SELECT * FROM api_info WHERE {where} ORDER BY api_id",
                params,
            )
            rows = cursor.fetchall()
        except sqlite3.Error as e:
            raise StorageReadError(
                operation=operation,
                underlying_error=str(e),
            ) from e

        descriptors: list[Descriptor] = []
        for row in rows:
            try:
                descriptors.append(row_to_descriptor(row))
            except ValidationError as e:
                logger.warning("Skipping malformed api_info row %s: %s", row["api_id"], e)
        return descriptors

    def fetch_active_by_scope(self, project_id: int) -> list[Descriptor]:
        """
        Get the active descriptors of one project.

        Args:
            project_id: The project scope

        Returns:
            Descriptors ordered by id
        """
        return self._select(
            "fetch_active_by_scope",
            "project_id = ? AND del_flag = ?",
            (project_id, DeleteFlag.ACTIVE.value),
        )

    def fetch_active_all(self) -> list[Descriptor]:
        """Get every active descriptor, ordered by id."""
        return self._select(
            "fetch_active_all",
            "del_flag = ?",
            (DeleteFlag.ACTIVE.value,),
        )

    def fetch_registered(self) -> list[Descriptor]:
        """Get active descriptors already registered as tools."""
        return self._select(
            "fetch_registered",
            "del_flag = ? AND mcp_flag = ?",
            (DeleteFlag.ACTIVE.value, RegistrationFlag.REGISTERED.value),
        )

    def fetch_by_name(self, name: str) -> Descriptor | None:
        """
        Get an active descriptor by name.

        When several active rows share the name, the newest one is returned,
        matching the shadowing rule of the registry.

        Args:
            name: The descriptor name

        Returns:
            The descriptor or None if not found
        """
        rows = self._select(
            "fetch_by_name",
            "api_name = ? AND del_flag = ?",
            (name, DeleteFlag.ACTIVE.value),
        )
        return rows[-1] if rows else None

    def count_active(self, project_id: int | None = None) -> int:
        """Count active descriptors, optionally within one project."""
        if project_id is None:
            return len(self.fetch_active_all())
        return len(self.fetch_active_by_scope(project_id))

    # =========================================================================
    # Write Operations
    # =========================================================================

    def mark_registered(self, ids: Iterable[int]) -> int:
        """
        Mark descriptors as registered tools.

        Idempotent: rows already flagged are rewritten with the same value.

        Args:
            ids: Descriptor ids to flag

        Returns:
            Number of rows matched
        """
        id_list = [i for i in ids if i is not None]
        if not id_list:
            return 0
        if self._conn is None:
            raise StorageWriteError(operation="mark_registered", underlying_error="store is closed")

        placeholders = ", ".join("?" for _ in id_list)
        try:
            with self.transaction():
                cursor = self._conn.execute(
                    f"UPDATE api_info SET mcp_flag = ? WHERE api_id IN ({placeholders})",
                    (RegistrationFlag.REGISTERED.value, *id_list),
                )
            return cursor.rowcount
        except sqlite3.Error as e:
            raise StorageWriteError(
                operation="mark_registered",
                underlying_error=str(e),
            ) from e

    def add_descriptor(self, descriptor: Descriptor) -> int:
        """
        Insert a descriptor row.

        The descriptor's id is ignored; the store assigns one.

        Args:
            descriptor: The descriptor to insert

        Returns:
            The generated descriptor id
        """
        if self._conn is None:
            raise StorageWriteError(operation="add_descriptor", underlying_error="store is closed")

        values = descriptor.model_dump(exclude={"id"})
        columns = [COLUMNS[name] for name in values]
        placeholders = ", ".join("?" for _ in columns)
        try:
            with self.transaction():
                cursor = self._conn.execute(
                    f"INSERT INTO api_info ({', '.join(columns)}) VALUES ({placeholders})",
                    tuple(values.values()),
                )
            logger.debug("Stored descriptor %s as id %s", descriptor.name, cursor.lastrowid)
            return cursor.lastrowid
        except sqlite3.Error as e:
            raise StorageWriteError(
                operation="add_descriptor",
                underlying_error=str(e),
            ) from e

    def set_deleted(self, descriptor_id: int, deleted: bool = True) -> None:
        """Flip the deletion flag of one descriptor."""
        if self._conn is None:
            raise StorageWriteError(operation="set_deleted", underlying_error="store is closed")
        flag = DeleteFlag.DELETED.value if deleted else DeleteFlag.ACTIVE.value
        try:
            with self.transaction():
                self._conn.execute(
                    "UPDATE api_info SET del_flag = ? WHERE api_id = ?",
                    (flag, descriptor_id),
                )
        except sqlite3.Error as e:
            raise StorageWriteError(
                operation="set_deleted",
                underlying_error=str(e),
            ) from e
