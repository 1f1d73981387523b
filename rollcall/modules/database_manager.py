"""
Database Manager Module - Roll Call QR Attendance System

This module owns the SQLite store shared by the student registry and the
attendance ledger. It is the single injected store handle: both components
receive the same instance and talk to the database only through the narrow
query/update/transaction contract below.

Features:
- Thread-local SQLite connections for file databases
- A single shared connection for in-memory databases
- Serialized writes so every public operation commits atomically
- Schema creation (students, attendance)
- sqlite3 failures surfaced as StoreError
"""

import sqlite3
import logging
from contextlib import contextmanager
import threading
import os

from rollcall.modules.exceptions import StoreError

MEMORY_DATABASE = ':memory:'


class DatabaseManager:
    """
    SQLite access layer for the attendance system.
    Handles connection management, schema creation and query execution with
    commit/rollback handling and error logging.
    """

    def __init__(self, db_path, timeout=30.0):
        """
        Initialize the database manager with the specified database path.

        Args:
            db_path (str): Path to the SQLite database file, or ':memory:'
            timeout (float): Seconds to wait on a locked database
        """
        self.db_path = str(db_path)
        self.timeout = timeout
        self.logger = logging.getLogger(__name__)
        self._local = threading.local()
        self._lock = threading.RLock()
        self._shared_connection = None

        if self.db_path != MEMORY_DATABASE:
            directory = os.path.dirname(self.db_path)
            if directory:
                os.makedirs(directory, exist_ok=True)

        self.initialize_database()

    def _connect(self):
        connection = sqlite3.connect(
            self.db_path,
            check_same_thread=False,
            timeout=self.timeout
        )
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON")
        return connection

    def _get_raw_connection(self):
        # An in-memory database only exists on the connection that created it
        if self.db_path == MEMORY_DATABASE:
            if self._shared_connection is None:
                self._shared_connection = self._connect()
            return self._shared_connection

        if not hasattr(self._local, 'connection'):
            self._local.connection = self._connect()
        return self._local.connection

    @contextmanager
    def get_connection(self):
        """
        Context manager yielding a connection while holding the store lock.
        Rolls back and raises StoreError on any sqlite3 failure.

        Yields:
            sqlite3.Connection: Database connection object
        """
        with self._lock:
            try:
                connection = self._get_raw_connection()
            except sqlite3.Error as e:
                self.logger.error(f"Could not open database {self.db_path}: {str(e)}")
                raise StoreError(f"Could not open database: {e}") from e

            try:
                yield connection
            except sqlite3.Error as e:
                connection.rollback()
                self.logger.error(f"Database operation failed: {str(e)}")
                raise StoreError(str(e)) from e
            except Exception:
                connection.rollback()
                raise

    def initialize_database(self):
        """
        Create the students and attendance tables if they do not exist.
        Idempotent; safe to call on every startup.
        """
        with self.get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS students (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    roll TEXT NOT NULL,
                    name TEXT NOT NULL,
                    is_active INTEGER NOT NULL DEFAULT 1,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS attendance (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    student_id INTEGER NOT NULL,
                    timestamp TEXT NOT NULL,
                    date TEXT NOT NULL,
                    FOREIGN KEY (student_id) REFERENCES students(id)
                )
            """)

            # Rolls are unique among active students only; a soft-deleted
            # student's roll can be registered again.
            cursor.execute("""
                CREATE UNIQUE INDEX IF NOT EXISTS idx_students_active_roll
                ON students(roll) WHERE is_active = 1
            """)
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_attendance_timestamp ON attendance(timestamp)")
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_attendance_student ON attendance(student_id)")

            conn.commit()

        self.logger.info(f"Database initialized at {self.db_path}")

    def execute_query(self, query, params=None, fetch_all=True):
        """
        Execute a SELECT query and return results.

        Args:
            query (str): SQL query string
            params (tuple): Query parameters
            fetch_all (bool): Whether to fetch all results or just one

        Returns:
            list or dict: Query results
        """
        with self.get_connection() as conn:
            cursor = conn.execute(query, params or ())

            if fetch_all:
                return [dict(row) for row in cursor.fetchall()]

            row = cursor.fetchone()
            return dict(row) if row else None

    def execute_update(self, query, params=None):
        """
        Execute an INSERT, UPDATE, or DELETE query and commit it.

        Args:
            query (str): SQL query string
            params (tuple): Query parameters

        Returns:
            int: Last inserted row ID for INSERT statements, affected rows otherwise
        """
        with self.get_connection() as conn:
            cursor = conn.execute(query, params or ())
            conn.commit()

            if query.strip().upper().startswith('INSERT'):
                return cursor.lastrowid
            return cursor.rowcount

    @contextmanager
    def transaction(self):
        """
        Context manager for a multi-statement unit of work. Commits on success,
        rolls back on error. Other writers are blocked until it finishes.

        Yields:
            sqlite3.Connection: Database connection within transaction
        """
        with self.get_connection() as conn:
            try:
                yield conn
                conn.commit()
            except Exception as e:
                conn.rollback()
                self.logger.error(f"Transaction rolled back: {str(e)}")
                raise

    def close_all_connections(self):
        """Close the connections opened by the calling thread."""
        with self._lock:
            if hasattr(self._local, 'connection'):
                self._local.connection.close()
                del self._local.connection
            if self._shared_connection is not None:
                self._shared_connection.close()
                self._shared_connection = None
