"""SQLite-based access history for impossible travel detection."""

import logging
import sqlite3
import threading
from pathlib import Path
from typing import Optional, Protocol

from travelguard.errors import DuplicateRecordError, StoreUnavailableError
from travelguard.models.events import AccessRecord

logger = logging.getLogger(__name__)

MEMORY_PATH = ":memory:"

SCOPE_USER = "user"
SCOPE_GLOBAL = "global"
SCOPES = (SCOPE_USER, SCOPE_GLOBAL)

_COLUMNS = "username, timestamp, event_id, ip_address, latitude, longitude, accuracy_radius"


def validate_db_path(path: Path) -> Path:
    """Validate that a database path is safe to use.

    Args:
        path: The path to validate.

    Returns:
        Resolved Path object.

    Raises:
        ValueError: If the path contains '..' components.
    """
    if '..' in path.parts:
        raise ValueError(
            f"Path traversal not allowed: {path}. "
            "Use direct paths without '..' components."
        )

    try:
        return path.expanduser().resolve()
    except (OSError, ValueError) as e:
        raise ValueError(f"Invalid path: {path} - {e}")


class AccessHistoryStore(Protocol):
    """Time-ordered record of past accesses."""

    def insert(self, record: AccessRecord) -> None:
        ...

    def nearest_before(self, timestamp: int, username: Optional[str] = None) -> Optional[AccessRecord]:
        ...

    def nearest_after(self, timestamp: int, username: Optional[str] = None) -> Optional[AccessRecord]:
        ...


class SQLiteAccessHistory:
    """SQLite table of access records, one row per event.

    Records are append-only: event_id is the primary key and a duplicate
    insert is rejected, never overwritten.

    A single connection is shared by all callers and serialized with a lock,
    so concurrent detect() calls see each other's committed inserts in lock
    order and nothing stronger.
    """

    DEFAULT_PATH = Path.home() / ".travelguard" / "access.db"

    def __init__(self, db_path: Optional[Path | str] = None, reset: bool = False):
        """Open (and create if needed) the access history database.

        Args:
            db_path: Path to the SQLite database file, or ":memory:".
                     Defaults to ~/.travelguard/access.db
            reset: Delete all stored records after opening.

        Raises:
            ValueError: If db_path uses path traversal.
            StoreUnavailableError: If the database cannot be opened.
        """
        if db_path is None:
            self.db_path = self.DEFAULT_PATH
        elif str(db_path) == MEMORY_PATH:
            self.db_path = MEMORY_PATH
        else:
            self.db_path = validate_db_path(Path(db_path))

        if self.db_path != MEMORY_PATH:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._lock = threading.Lock()
        try:
            self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        except sqlite3.Error as e:
            raise StoreUnavailableError(f"Cannot open access history {self.db_path}: {e}") from e
        self._conn.row_factory = sqlite3.Row
        self._closed = False

        self._init_db()
        if reset:
            self.reset()

    def _init_db(self):
        """Initialize database schema."""
        with self._transaction() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS access_records (
                    username TEXT NOT NULL,
                    timestamp INTEGER NOT NULL,
                    event_id TEXT PRIMARY KEY NOT NULL,
                    ip_address TEXT NOT NULL,
                    latitude REAL NOT NULL,
                    longitude REAL NOT NULL,
                    accuracy_radius INTEGER NOT NULL
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_access_timestamp ON access_records(timestamp)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_access_user_timestamp "
                "ON access_records(username, timestamp)"
            )

    def _transaction(self):
        if self._closed:
            raise StoreUnavailableError(f"Access history {self.db_path} is closed")
        return _LockedTransaction(self._lock, self._conn, self.db_path)

    def insert(self, record: AccessRecord) -> None:
        """Append an access record.

        Raises:
            DuplicateRecordError: If record.event_id is already stored.
            StoreUnavailableError: If the database cannot be written.
        """
        try:
            with self._transaction() as conn:
                conn.execute(
                    f"INSERT INTO access_records ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
                    (
                        record.username,
                        record.timestamp,
                        record.event_id,
                        record.ip_address,
                        record.latitude,
                        record.longitude,
                        record.accuracy_radius,
                    ),
                )
        except sqlite3.IntegrityError as e:
            raise DuplicateRecordError(record.event_id) from e

        logger.info(f"Stored access {record.event_id} for '{record.username}' at {record.timestamp}")

    def nearest_before(self, timestamp: int, username: Optional[str] = None) -> Optional[AccessRecord]:
        """Get the latest record strictly before timestamp.

        Args:
            timestamp: Unix timestamp to search below.
            username: Only consider this user's records. None searches all users.

        Returns:
            The record with the greatest timestamp below the given one
            (lowest event_id on ties), or None.
        """
        return self._nearest("timestamp < ?", "timestamp DESC", timestamp, username)

    def nearest_after(self, timestamp: int, username: Optional[str] = None) -> Optional[AccessRecord]:
        """Get the earliest record strictly after timestamp.

        Args:
            timestamp: Unix timestamp to search above.
            username: Only consider this user's records. None searches all users.

        Returns:
            The record with the smallest timestamp above the given one
            (lowest event_id on ties), or None.
        """
        return self._nearest("timestamp > ?", "timestamp ASC", timestamp, username)

    def _nearest(
        self, condition: str, order: str, timestamp: int, username: Optional[str]
    ) -> Optional[AccessRecord]:
        params: list = [timestamp]
        if username is not None:
            condition += " AND username = ?"
            params.append(username)

        with self._transaction() as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM access_records WHERE {condition} "
                f"ORDER BY {order}, event_id ASC LIMIT 1",
                params,
            ).fetchone()

        return _row_to_record(row) if row else None

    def get(self, event_id: str) -> Optional[AccessRecord]:
        """Get a record by event_id."""
        with self._transaction() as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM access_records WHERE event_id = ?", (event_id,)
            ).fetchone()
        return _row_to_record(row) if row else None

    def recent(self, limit: int = 10, username: Optional[str] = None) -> list[AccessRecord]:
        """Get the newest records, latest first."""
        query = f"SELECT {_COLUMNS} FROM access_records"
        params: list = []
        if username is not None:
            query += " WHERE username = ?"
            params.append(username)
        query += " ORDER BY timestamp DESC, event_id ASC LIMIT ?"
        params.append(limit)

        with self._transaction() as conn:
            rows = conn.execute(query, params).fetchall()
        return [_row_to_record(row) for row in rows]

    def count(self) -> int:
        with self._transaction() as conn:
            return conn.execute("SELECT COUNT(*) FROM access_records").fetchone()[0]

    def reset(self) -> int:
        """Delete every stored record.

        Returns:
            Number of records deleted.
        """
        with self._transaction() as conn:
            deleted = conn.execute("DELETE FROM access_records").rowcount
        logger.info(f"Cleared {deleted} records from access history {self.db_path}")
        return deleted

    def close(self):
        """Close the database. Later calls raise StoreUnavailableError."""
        with self._lock:
            if not self._closed:
                self._conn.close()
                self._closed = True

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


class _LockedTransaction:
    """Holds the store lock for one commit-or-rollback unit of work."""

    def __init__(self, lock: threading.Lock, conn: sqlite3.Connection, db_path):
        self._lock = lock
        self._conn = conn
        self._db_path = db_path

    def __enter__(self) -> sqlite3.Connection:
        self._lock.acquire()
        return self._conn

    def __exit__(self, exc_type, exc, tb):
        try:
            if exc_type is None:
                self._conn.commit()
            else:
                self._conn.rollback()
        except sqlite3.Error as e:
            if exc is None:
                raise StoreUnavailableError(
                    f"Access history {self._db_path} unavailable: {e}"
                ) from e
        finally:
            self._lock.release()

        if exc_type is not None and issubclass(exc_type, sqlite3.Error) \
                and not issubclass(exc_type, sqlite3.IntegrityError):
            raise StoreUnavailableError(
                f"Access history {self._db_path} unavailable: {exc}"
            ) from exc
        return False


def _row_to_record(row: sqlite3.Row) -> AccessRecord:
    return AccessRecord(
        username=row['username'],
        timestamp=row['timestamp'],
        event_id=row['event_id'],
        ip_address=row['ip_address'],
        latitude=row['latitude'],
        longitude=row['longitude'],
        accuracy_radius=row['accuracy_radius'],
    )
