from __future__ import annotations
import logging
import os
import shutil
import sqlite3
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .config import SENSOR_DB_FILE, BACKUP_DIR
from .errors import StorageError
from .models import SensorReading

TABLE_NAME = "sensor_readings"

# Column contract of the readings table; readers integrate against these names
EXPECTED_COLUMNS: Tuple[str, ...] = (
    "id",
    "timestamp",
    "temperature",
    "humidity",
    "pressure",
    "air_quality",
    "light_level",
    "reading_date",
    "reading_time",
    "ip_address",
    "wifi_status",
    "ntp_sync",
)

_CREATE_TABLE_SQL = f"""
    CREATE TABLE {TABLE_NAME} (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        timestamp DATETIME DEFAULT CURRENT_TIMESTAMP,
        temperature REAL NOT NULL,
        humidity REAL NOT NULL,
        pressure REAL NOT NULL,
        air_quality INTEGER NOT NULL,
        light_level INTEGER NOT NULL,
        reading_date TEXT NOT NULL,
        reading_time TEXT NOT NULL,
        ip_address TEXT,
        wifi_status TEXT,
        ntp_sync TEXT
    )
"""

_INSERT_SQL = f"""
    INSERT INTO {TABLE_NAME} (
        temperature, humidity, pressure, air_quality, light_level,
        reading_date, reading_time, ip_address, wifi_status, ntp_sync
    ) VALUES (
        :temperature, :humidity, :pressure, :air_quality, :light_level,
        :reading_date, :reading_time, :ip_address, :wifi_status, :ntp_sync
    )
"""


class SchemaStatus(str, Enum):
    ABSENT = "absent"
    CURRENT = "current"
    STALE = "stale"
    PROBE_FAILED = "probe_failed"


@dataclass
class SchemaCheck:
    status: SchemaStatus
    missing: Tuple[str, ...] = field(default_factory=tuple)
    error: Optional[str] = None
    backup_path: Optional[str] = None


class StorageSchema:
    """
    Owns the sensor_readings table definition.

    ensure() brings the table to the expected column set before any write:
      - absent table       -> create
      - all columns there  -> no-op
      - columns missing    -> migrate (backup + drop + recreate)
      - inspection failed  -> migrate as well, but reported as PROBE_FAILED

    migrate() is the only destructive operation and the single place to swap
    in an additive migration later.
    """

    def __init__(
        self,
        db_path: str = SENSOR_DB_FILE,
        backup_dir: Optional[str] = BACKUP_DIR,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self.db_path = db_path
        self.backup_dir = backup_dir or os.path.dirname(os.path.abspath(db_path))
        self.log = log or logging.getLogger(__name__)

    def inspect(self, conn: sqlite3.Connection) -> SchemaCheck:
        """Compare the live table against EXPECTED_COLUMNS without changing anything."""
        try:
            row = conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name=?",
                (TABLE_NAME,),
            ).fetchone()
            if row is None:
                return SchemaCheck(SchemaStatus.ABSENT)

            columns = {r[1] for r in conn.execute(f"PRAGMA table_info({TABLE_NAME})").fetchall()}
        except sqlite3.Error as e:
            return SchemaCheck(SchemaStatus.PROBE_FAILED, error=str(e))

        missing = tuple(c for c in EXPECTED_COLUMNS if c not in columns)
        if missing:
            return SchemaCheck(SchemaStatus.STALE, missing=missing)
        return SchemaCheck(SchemaStatus.CURRENT)

    def ensure(self, conn: sqlite3.Connection) -> SchemaCheck:
        check = self.inspect(conn)

        if check.status == SchemaStatus.CURRENT:
            return check

        if check.status == SchemaStatus.ABSENT:
            self.log.info(f"Creating table {TABLE_NAME} in {self.db_path}")
            try:
                self.create(conn)
            except sqlite3.Error as e:
                raise StorageError(f"failed to create {TABLE_NAME}: {e}") from e
            return check

        if check.status == SchemaStatus.STALE:
            self.log.warning(f"Table {TABLE_NAME} is missing columns {list(check.missing)}, migrating")
        else:
            # A failed probe is treated like drift
            self.log.error(f"Schema probe on {self.db_path} failed ({check.error}), assuming stale")

        check.backup_path = self.migrate(conn)
        return check

    def create(self, conn: sqlite3.Connection) -> None:
        conn.execute(f"DROP TABLE IF EXISTS {TABLE_NAME}")
        conn.execute(_CREATE_TABLE_SQL)
        conn.commit()

    def migrate(self, conn: sqlite3.Connection) -> Optional[str]:
        """
        Recreate the table per the current schema. Existing rows are lost;
        only the raw file backup keeps them. Returns the backup path, if any.
        """
        backup_path = self.backup()
        try:
            self.create(conn)
        except sqlite3.Error as e:
            conn.rollback()
            self.log.error(f"Failed to recreate {TABLE_NAME}: {e}")
            raise StorageError(f"failed to recreate {TABLE_NAME}: {e}") from e
        self.log.info(f"Table {TABLE_NAME} recreated with current schema")
        return backup_path

    def backup(self) -> Optional[str]:
        """Copy the store file to a timestamped backup. Never raises."""
        if not os.path.exists(self.db_path):
            return None

        stem = os.path.join(self.backup_dir, f"backup_{time.strftime('%Y%m%d%H%M%S')}")
        backup_path = f"{stem}.db"
        # Never overwrite an earlier backup taken within the same second
        suffix = 1
        while os.path.exists(backup_path):
            backup_path = f"{stem}_{suffix}.db"
            suffix += 1
        try:
            os.makedirs(self.backup_dir, exist_ok=True)
            shutil.copy2(self.db_path, backup_path)
        except OSError as e:
            self.log.warning(f"Backup of {self.db_path} failed, continuing migration: {e}")
            return None

        self.log.info(f"Created backup {backup_path}")
        return backup_path


class ReadingStore:
    """Append-only write path for sensor readings."""

    def __init__(
        self,
        db_path: str = SENSOR_DB_FILE,
        schema: Optional[StorageSchema] = None,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self.db_path = db_path
        self.log = log or logging.getLogger(__name__)
        self.schema = schema or StorageSchema(db_path=db_path, log=self.log)
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.Lock()

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def open(self) -> SchemaCheck:
        """Open the write handle and make sure the table is writable."""
        if self._conn is not None:
            return self.schema.inspect(self._conn)

        os.makedirs(os.path.dirname(os.path.abspath(self.db_path)), exist_ok=True)
        existed = os.path.exists(self.db_path)
        try:
            # The listener thread writes through this handle; access is serialized by _lock
            conn = sqlite3.connect(self.db_path, check_same_thread=False)
        except sqlite3.Error as e:
            raise StorageError(f"cannot open {self.db_path}: {e}") from e

        try:
            check = self.schema.ensure(conn)
        except StorageError:
            conn.close()
            raise

        self._conn = conn
        self.log.info(
            f"{'Opened existing' if existed else 'Created new'} reading store {self.db_path}"
        )
        return check

    def close(self) -> None:
        with self._lock:
            if self._conn is None:
                return
            self._conn.close()
            self._conn = None
        self.log.info(f"Closed reading store {self.db_path}")

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            if self._conn is None:
                raise StorageError("reading store is not open")
            try:
                yield self._conn
                self._conn.commit()
            except sqlite3.Error as e:
                self._conn.rollback()
                raise StorageError(str(e)) from e

    def append(self, reading: SensorReading) -> int:
        """Insert one reading and return its row id. Raises StorageError on failure."""
        params = {
            "temperature": reading.temperature,
            "humidity": reading.humidity,
            "pressure": reading.pressure,
            "air_quality": reading.air_quality,
            "light_level": reading.light_level,
            "reading_date": reading.date,
            "reading_time": reading.time,
            "ip_address": reading.ip_address,
            "wifi_status": reading.wifi_status,
            "ntp_sync": reading.ntp_sync,
        }
        with self._transaction() as conn:
            cur = conn.execute(_INSERT_SQL, params)
            row_id = cur.lastrowid
        self.log.debug(f"Stored reading #{row_id}")
        return row_id

    # --- read side ---------------------------------------------------------

    @contextmanager
    def _read_connection(self) -> Iterator[Optional[sqlite3.Connection]]:
        """Short-lived read connection; yields None if the store file does not exist."""
        if not os.path.exists(self.db_path):
            yield None
            return
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def fetch_readings(self, limit: int = 100, offset: int = 0) -> List[Dict[str, Any]]:
        """Fetch stored readings ordered newest first."""
        with self._read_connection() as conn:
            if conn is None:
                return []
            try:
                rows = conn.execute(
                    f"""
                    SELECT {', '.join(EXPECTED_COLUMNS)}
                    FROM {TABLE_NAME}
                    ORDER BY id DESC
                    LIMIT ? OFFSET ?
                    """,
                    (limit, offset),
                ).fetchall()
            except sqlite3.OperationalError as e:
                self.log.warning(f"Cannot read {TABLE_NAME}: {e}")
                return []
            return [dict(r) for r in rows]

    def fetch_latest(self) -> Optional[Dict[str, Any]]:
        rows = self.fetch_readings(limit=1)
        return rows[0] if rows else None

    def count(self) -> int:
        with self._read_connection() as conn:
            if conn is None:
                return 0
            try:
                return conn.execute(f"SELECT COUNT(*) FROM {TABLE_NAME}").fetchone()[0]
            except sqlite3.OperationalError:
                return 0
