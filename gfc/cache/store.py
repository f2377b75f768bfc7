"""SQLite-backed persistent store for cached forms.

Owns all durable state: the ``forms`` table, the ``schema_version`` table and
the ``sync_metadata`` key-value table. Writes are serialized through a single
connection guarded by a lock.
"""

import json
import logging
import re
import sqlite3
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from gfc.core.constants import CURRENT_SCHEMA_VERSION, MetadataKeys
from gfc.exceptions import CacheError, ConfigurationError, ConstraintViolationError, DatabaseError, InvalidArgumentError
from gfc.models.record import CacheRecord, utc_now
from gfc.models.sync import CacheStats

logger = logging.getLogger(__name__)

_TABLE_NAME_PATTERN = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")

_RECORD_COLUMNS = "id, title, entry_count, is_active, is_trash, last_synced, form_data"

_SCHEMA_V1_SQL = """
CREATE TABLE IF NOT EXISTS forms (
    id INTEGER PRIMARY KEY,
    title TEXT NOT NULL,
    entry_count INTEGER NOT NULL DEFAULT 0,
    is_active INTEGER NOT NULL DEFAULT 1,
    last_synced TEXT NOT NULL,
    form_data TEXT
);
CREATE INDEX IF NOT EXISTS idx_forms_active ON forms(is_active);
CREATE INDEX IF NOT EXISTS idx_forms_last_synced ON forms(last_synced);
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS sync_metadata (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""

_CORRUPTION_MARKERS = ("file is not a database", "malformed", "corrupt")


def format_timestamp(value: datetime) -> str:
    """Serialize a timestamp so that text order matches time order."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse a timestamp written by ``format_timestamp``."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _is_corruption(error: sqlite3.DatabaseError) -> bool:
    message = str(error).lower()
    return any(marker in message for marker in _CORRUPTION_MARKERS)


def validate_form_id(form_id: Any) -> int:
    """Validate a form ID (0 is valid).

    Raises:
        InvalidArgumentError: If the ID is not a non-negative integer
    """
    if isinstance(form_id, bool) or not isinstance(form_id, int) or form_id < 0:
        raise InvalidArgumentError("id", form_id, "Form ID must be a non-negative integer")
    return form_id


def _migrate_v2(conn: sqlite3.Connection) -> None:
    """Add the trash flag to version 1 databases (safe if already present)."""
    columns = {row["name"] for row in conn.execute("PRAGMA table_info(forms)")}
    if "is_trash" not in columns:
        conn.execute("ALTER TABLE forms ADD COLUMN is_trash INTEGER NOT NULL DEFAULT 0")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_forms_trash ON forms(is_trash)")


# version -> migration bringing the schema up to that version
MIGRATIONS: dict[int, Callable[[sqlite3.Connection], None]] = {
    2: _migrate_v2,
}


class FormStore:
    """Persistent store for form records, schema version and sync metadata."""

    def __init__(self, db_path: str | Path, wal_mode: bool = True) -> None:
        """Initialize the store (no I/O happens until ``init``).

        Args:
            db_path: SQLite database path, or ":memory:"
            wal_mode: Enable WAL journal mode for concurrent readers
        """
        self.db_path = str(db_path) if db_path is not None else ""
        self.wal_mode = wal_mode
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()

    def __enter__(self) -> "FormStore":
        self.init()
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def init(self) -> None:
        """Open the database, create the schema and apply pending migrations.

        Raises:
            ConfigurationError: If no database path is configured
            DatabaseError: If the database cannot be opened or is corrupted
        """
        if self._conn is not None and self.is_ready():
            return

        if not self.db_path.strip():
            raise ConfigurationError("Cache database path is not configured")

        try:
            if self.db_path != ":memory:":
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DatabaseError(f"Failed to create cache directory for {self.db_path}: {e}") from e

        try:
            conn = sqlite3.connect(self.db_path, check_same_thread=False)
            conn.row_factory = sqlite3.Row
            # Forces a read of the header so corrupted files fail here
            conn.execute("SELECT name FROM sqlite_master LIMIT 1").fetchall()
            if self.wal_mode and self.db_path != ":memory:":
                conn.execute("PRAGMA journal_mode=WAL")
        except sqlite3.DatabaseError as e:
            if _is_corruption(e):
                logger.error(f"Database corruption detected at {self.db_path}: {e}")
                raise DatabaseError(f"Database corruption detected at {self.db_path}: {e}", corrupted=True) from e
            raise DatabaseError(f"Failed to open database at {self.db_path}: {e}") from e

        self._conn = conn
        try:
            self._create_schema()
            self._apply_migrations()
        except DatabaseError:
            self.close()
            raise

        logger.info(f"FormStore initialized: {self.db_path} (schema v{self.get_schema_version()})")

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is None:
                return
            try:
                self._conn.close()
            except sqlite3.Error as e:
                logger.debug(f"Error closing database (ignored): {e}")
            finally:
                self._conn = None

    def is_ready(self) -> bool:
        """Check if the store is open and answering queries."""
        if self._conn is None:
            return False
        try:
            self._conn.execute("SELECT 1").fetchone()
            return True
        except sqlite3.Error:
            return False

    @property
    def conn(self) -> sqlite3.Connection:
        """Open connection.

        Raises:
            CacheError: If the store has not been initialized
        """
        if self._conn is None:
            raise CacheError("FormCache not initialized")
        return self._conn

    @contextmanager
    def _write(self, operation: str) -> Iterator[sqlite3.Connection]:
        """Serialize a write transaction and classify sqlite failures."""
        conn = self.conn
        with self._lock:
            try:
                with conn:
                    yield conn
            except sqlite3.IntegrityError as e:
                raise ConstraintViolationError(f"Database constraint violation in {operation}: {e}") from e
            except sqlite3.DatabaseError as e:
                corrupted = _is_corruption(e)
                if corrupted:
                    logger.error(f"Database corruption detected during {operation}: {e}")
                raise DatabaseError(f"Failed to {operation}: {e}", corrupted=corrupted) from e

    def _read(self, sql: str, params: tuple[Any, ...] = ()) -> list[sqlite3.Row]:
        try:
            return self.conn.execute(sql, params).fetchall()
        except sqlite3.DatabaseError as e:
            raise DatabaseError(f"Query failed: {e}", corrupted=_is_corruption(e)) from e

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    def _create_schema(self) -> None:
        with self._lock:
            try:
                self.conn.executescript(_SCHEMA_V1_SQL)
            except sqlite3.DatabaseError as e:
                raise DatabaseError(f"Failed to create schema: {e}", corrupted=_is_corruption(e)) from e

        if self.get_schema_version() == 0:
            with self._write("record schema version") as conn:
                conn.execute(
                    "INSERT OR IGNORE INTO schema_version (version, applied_at) VALUES (1, ?)",
                    (format_timestamp(utc_now()),),
                )

    def _apply_migrations(self) -> None:
        current = self.get_schema_version()
        for version in sorted(MIGRATIONS):
            if version <= current:
                continue
            logger.info(f"Migrating cache schema from v{current} to v{version}")
            with self._write(f"migrate schema to v{version}") as conn:
                MIGRATIONS[version](conn)
                conn.execute(
                    "INSERT OR IGNORE INTO schema_version (version, applied_at) VALUES (?, ?)",
                    (version, format_timestamp(utc_now())),
                )
            current = version

    def get_schema_version(self) -> int:
        """Get the highest applied schema version (0 for an empty database)."""
        if not self.table_exists("schema_version"):
            return 0
        rows = self._read("SELECT MAX(version) AS version FROM schema_version")
        return rows[0]["version"] or 0

    def needs_schema_update(self) -> bool:
        """Check if the database is behind the code's schema version."""
        return self.get_schema_version() < CURRENT_SCHEMA_VERSION

    def table_exists(self, table_name: str) -> bool:
        """Check if a table exists."""
        rows = self._read("SELECT name FROM sqlite_master WHERE type='table' AND name=?", (table_name,))
        return len(rows) > 0

    def get_table_columns(self, table_name: str) -> list[dict[str, Any]]:
        """Describe the columns of a table.

        Raises:
            InvalidArgumentError: If the table name is not a plain identifier
        """
        if not _TABLE_NAME_PATTERN.match(table_name):
            raise InvalidArgumentError("table_name", table_name, "Invalid table name format")

        rows = self._read(f"PRAGMA table_info({table_name})")
        return [
            {
                "name": row["name"],
                "type": row["type"],
                "notnull": row["notnull"] == 1,
                "dflt_value": row["dflt_value"],
                "pk": row["pk"] == 1,
            }
            for row in rows
        ]

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def _row_to_record(self, row: sqlite3.Row) -> CacheRecord:
        raw = row["form_data"]
        try:
            raw_data = json.loads(raw) if raw else {}
        except json.JSONDecodeError:
            logger.debug(f"Unreadable form_data for form {row['id']}, returning empty payload")
            raw_data = {}
        return CacheRecord(
            id=row["id"],
            title=row["title"],
            entry_count=row["entry_count"],
            is_active=bool(row["is_active"]),
            is_trash=bool(row["is_trash"]),
            last_synced=parse_timestamp(row["last_synced"]),
            raw_data=raw_data if isinstance(raw_data, dict) else {"value": raw_data},
        )

    def get_record(self, form_id: int) -> CacheRecord | None:
        """Get a single cached form by ID."""
        validate_form_id(form_id)
        rows = self._read(f"SELECT {_RECORD_COLUMNS} FROM forms WHERE id = ?", (form_id,))
        return self._row_to_record(rows[0]) if rows else None

    def get_all_records(self, active_only: bool = False, exclude_trash: bool = False) -> list[CacheRecord]:
        """Get all cached forms ordered by ID."""
        conditions = []
        if active_only:
            conditions.append("is_active = 1")
        if exclude_trash:
            conditions.append("is_trash = 0")

        query = f"SELECT {_RECORD_COLUMNS} FROM forms"
        if conditions:
            query += " WHERE " + " AND ".join(conditions)
        query += " ORDER BY id"

        return [self._row_to_record(row) for row in self._read(query)]

    def upsert(self, record: CacheRecord) -> None:
        """Insert a record, or update it if the ID already exists.

        ``last_synced`` never moves backwards for an existing record.
        """
        validate_form_id(record.id)
        form_data = json.dumps(record.raw_data, default=str)

        with self._write(f"upsert form {record.id}") as conn:
            conn.execute(
                """
                INSERT INTO forms (id, title, entry_count, is_active, is_trash, last_synced, form_data)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    title = excluded.title,
                    entry_count = excluded.entry_count,
                    is_active = excluded.is_active,
                    is_trash = excluded.is_trash,
                    last_synced = MAX(forms.last_synced, excluded.last_synced),
                    form_data = excluded.form_data
                """,
                (
                    record.id,
                    record.title,
                    record.entry_count,
                    1 if record.is_active else 0,
                    1 if record.is_trash else 0,
                    format_timestamp(record.last_synced),
                    form_data,
                ),
            )
        logger.debug(f"Upserted form {record.id}")

    def delete_record(self, form_id: int) -> bool:
        """Delete a cached form.

        Returns:
            True if a record was deleted, False if it did not exist
        """
        validate_form_id(form_id)
        with self._write(f"delete form {form_id}") as conn:
            cursor = conn.execute("DELETE FROM forms WHERE id = ?", (form_id,))
        return cursor.rowcount > 0

    def count(self, active_only: bool = False) -> int:
        """Count cached forms."""
        query = "SELECT COUNT(*) AS count FROM forms"
        if active_only:
            query += " WHERE is_active = 1"
        return self._read(query)[0]["count"]

    def get_max_id(self) -> int:
        """Highest cached form ID, or 0 when empty."""
        return self._read("SELECT MAX(id) AS max_id FROM forms")[0]["max_id"] or 0

    def get_existing_ids(self) -> list[int]:
        """All cached form IDs in ascending order."""
        return [row["id"] for row in self._read("SELECT id FROM forms ORDER BY id")]

    def get_latest_sync_time(self) -> datetime | None:
        """Most recent ``last_synced`` across all records."""
        rows = self._read("SELECT MAX(last_synced) AS latest FROM forms")
        return parse_timestamp(rows[0]["latest"])

    def clear(self) -> None:
        """Invalidate the cache: remove all records and sync metadata."""
        with self._write("clear cache") as conn:
            conn.execute("DELETE FROM forms")
            conn.execute("DELETE FROM sync_metadata")
        logger.info(f"Cleared form cache at {self.db_path}")

    # ------------------------------------------------------------------
    # Sync metadata
    # ------------------------------------------------------------------

    def get_metadata(self, key: str) -> str | None:
        """Read a sync metadata value."""
        rows = self._read("SELECT value FROM sync_metadata WHERE key = ?", (key,))
        return rows[0]["value"] if rows else None

    def set_metadata(self, key: str, value: str) -> None:
        """Write a sync metadata value."""
        with self._write(f"set metadata {key}") as conn:
            conn.execute(
                """
                INSERT INTO sync_metadata (key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                """,
                (key, value, format_timestamp(utc_now())),
            )

    def delete_metadata(self, key: str) -> None:
        """Remove a sync metadata value."""
        with self._write(f"delete metadata {key}") as conn:
            conn.execute("DELETE FROM sync_metadata WHERE key = ?", (key,))

    def get_timestamp_metadata(self, key: str) -> datetime | None:
        """Read a metadata value written by ``set_timestamp_metadata``."""
        return parse_timestamp(self.get_metadata(key))

    def set_timestamp_metadata(self, key: str, value: datetime) -> None:
        """Persist a timestamp under ``key``."""
        self.set_metadata(key, format_timestamp(value))

    def get_cache_stats(self) -> CacheStats:
        """Summarize the cache for health checks and status output."""
        row = self._read(
            """
            SELECT
                COUNT(*) AS total,
                COALESCE(SUM(CASE WHEN is_active = 1 THEN 1 ELSE 0 END), 0) AS active,
                COALESCE(SUM(CASE WHEN is_active = 0 THEN 1 ELSE 0 END), 0) AS inactive,
                COALESCE(SUM(CASE WHEN is_trash = 1 THEN 1 ELSE 0 END), 0) AS trash
            FROM forms
            """
        )[0]
        return CacheStats(
            total_forms=row["total"],
            active_count=row["active"],
            inactive_count=row["inactive"],
            trash_count=row["trash"],
            last_sync=self.get_timestamp_metadata(MetadataKeys.LAST_SYNC),
            last_full_sync=self.get_timestamp_metadata(MetadataKeys.LAST_FULL_SYNC),
            schema_version=self.get_schema_version(),
        )
