"""
Database management and connection handling.

Queries are written once with ``?`` placeholders; the PostgreSQL manager
rewrites them for psycopg2. Both managers create the same logical schema,
including the constraints the academic record rules rely on:

* one ENROLLED row per (student_id, course_id), via a partial unique index;
* one attendance row per (enrollment_id, attendance_date).
"""

import logging
import sqlite3
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

try:
    import psycopg2
    PSYCOPG2_AVAILABLE = True
except ImportError:
    PSYCOPG2_AVAILABLE = False

from ..core.exceptions import ConfigurationError, EduRecordException, PersistenceError

logger = logging.getLogger(__name__)


SQLITE_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS courses (
        id TEXT PRIMARY KEY,
        max_students INTEGER NOT NULL CHECK (max_students >= 1),
        status TEXT NOT NULL DEFAULT 'ACTIVE',
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS enrollments (
        id TEXT PRIMARY KEY,
        student_id TEXT NOT NULL,
        course_id TEXT NOT NULL REFERENCES courses(id),
        enrollment_date TEXT NOT NULL,
        status TEXT NOT NULL,
        final_grade TEXT,
        version INTEGER NOT NULL DEFAULT 1,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE UNIQUE INDEX IF NOT EXISTS uq_enrollments_active_pair
        ON enrollments (student_id, course_id) WHERE status = 'ENROLLED'
    """,
    "CREATE INDEX IF NOT EXISTS idx_enrollments_course_id ON enrollments (course_id)",
    "CREATE INDEX IF NOT EXISTS idx_enrollments_student_id ON enrollments (student_id)",
    """
    CREATE TABLE IF NOT EXISTS grades (
        id TEXT PRIMARY KEY,
        enrollment_id TEXT NOT NULL REFERENCES enrollments(id) ON DELETE CASCADE,
        assignment_name TEXT NOT NULL,
        score TEXT NOT NULL,
        max_score TEXT NOT NULL,
        weight TEXT NOT NULL,
        grade_date TEXT NOT NULL,
        comments TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_grades_enrollment_id ON grades (enrollment_id)",
    """
    CREATE TABLE IF NOT EXISTS attendance (
        id TEXT PRIMARY KEY,
        enrollment_id TEXT NOT NULL REFERENCES enrollments(id) ON DELETE CASCADE,
        attendance_date TEXT NOT NULL,
        status TEXT NOT NULL,
        comments TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        UNIQUE (enrollment_id, attendance_date)
    )
    """,
]

POSTGRESQL_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS courses (
        id VARCHAR(255) PRIMARY KEY,
        max_students INTEGER NOT NULL CHECK (max_students >= 1),
        status VARCHAR(20) NOT NULL DEFAULT 'ACTIVE',
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS enrollments (
        id VARCHAR(255) PRIMARY KEY,
        student_id VARCHAR(255) NOT NULL,
        course_id VARCHAR(255) NOT NULL REFERENCES courses(id),
        enrollment_date DATE NOT NULL,
        status VARCHAR(20) NOT NULL,
        final_grade NUMERIC(5, 2) CHECK (final_grade BETWEEN 0 AND 100),
        version INTEGER NOT NULL DEFAULT 1,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE UNIQUE INDEX IF NOT EXISTS uq_enrollments_active_pair
        ON enrollments (student_id, course_id) WHERE status = 'ENROLLED'
    """,
    "CREATE INDEX IF NOT EXISTS idx_enrollments_course_id ON enrollments (course_id)",
    "CREATE INDEX IF NOT EXISTS idx_enrollments_student_id ON enrollments (student_id)",
    """
    CREATE TABLE IF NOT EXISTS grades (
        id VARCHAR(255) PRIMARY KEY,
        enrollment_id VARCHAR(255) NOT NULL REFERENCES enrollments(id) ON DELETE CASCADE,
        assignment_name VARCHAR(255) NOT NULL,
        score NUMERIC(7, 2) NOT NULL,
        max_score NUMERIC(7, 2) NOT NULL,
        weight NUMERIC(5, 2) NOT NULL,
        grade_date DATE NOT NULL,
        comments TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_grades_enrollment_id ON grades (enrollment_id)",
    """
    CREATE TABLE IF NOT EXISTS attendance (
        id VARCHAR(255) PRIMARY KEY,
        enrollment_id VARCHAR(255) NOT NULL REFERENCES enrollments(id) ON DELETE CASCADE,
        attendance_date DATE NOT NULL,
        status VARCHAR(20) NOT NULL,
        comments TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        CONSTRAINT uk_enrollment_date UNIQUE (enrollment_id, attendance_date)
    )
    """,
]


class Transaction:
    """Cursor wrapper handed out by ``DatabaseManager.transaction``."""

    def __init__(self, cursor, adapt_query):
        self._cursor = cursor
        self._adapt_query = adapt_query

    def execute(self, query: str, params: Optional[Sequence[Any]] = None) -> int:
        self._cursor.execute(self._adapt_query(query), tuple(params or ()))
        return self._cursor.rowcount

    def fetch_all(self, query: str, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        self._cursor.execute(self._adapt_query(query), tuple(params or ()))
        columns = [description[0] for description in self._cursor.description]
        return [dict(zip(columns, row)) for row in self._cursor.fetchall()]

    def fetch_one(self, query: str, params: Optional[Sequence[Any]] = None) -> Optional[Dict[str, Any]]:
        rows = self.fetch_all(query, params)
        return rows[0] if rows else None


class DatabaseManager(ABC):
    """Abstract base class for database management."""

    # Appended to a SELECT that must lock the rows it reads until commit.
    row_lock_clause = ""
    integrity_errors: Tuple[type, ...] = ()

    @abstractmethod
    def connect(self) -> Any:
        """Create a database connection."""
        pass

    @abstractmethod
    def transaction(self) -> Iterator[Transaction]:
        """Run statements in one serialized transaction."""
        pass

    @abstractmethod
    def table_exists(self, table_name: str) -> bool:
        """Check if a table exists."""
        pass

    def adapt_query(self, query: str) -> str:
        return query

    def execute_query(self, query: str, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        """Execute a query and return results."""
        with self.transaction() as tx:
            return tx.fetch_all(query, params)

    def execute_update(self, query: str, params: Optional[Sequence[Any]] = None) -> int:
        """Execute an update query and return affected rows."""
        with self.transaction() as tx:
            return tx.execute(query, params)

    def create_tables(self, schema: List[str]) -> None:
        """Create database tables from schema."""
        with self.transaction() as tx:
            for statement in schema:
                tx.execute(statement)


class SQLiteDatabase(DatabaseManager):
    """SQLite database implementation."""

    integrity_errors = (sqlite3.IntegrityError,)

    def __init__(self, database_path: str = "edurecord.db", busy_timeout: float = 5.0):
        self._database_path = database_path
        self._busy_timeout = busy_timeout
        self.create_tables(SQLITE_SCHEMA)
        logger.info("SQLite database ready at %s", database_path)

    def connect(self) -> sqlite3.Connection:
        """Create a database connection."""
        conn = sqlite3.connect(self._database_path, timeout=self._busy_timeout,
                               isolation_level=None, check_same_thread=False)
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def transaction(self):
        """BEGIN IMMEDIATE takes the write lock up front, serializing writers."""
        try:
            conn = self.connect()
        except sqlite3.Error as e:
            raise PersistenceError(f"Database connection error: {str(e)}") from e

        try:
            conn.execute("BEGIN IMMEDIATE")
            yield Transaction(conn.cursor(), self.adapt_query)
            conn.execute("COMMIT")
        except EduRecordException:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        except sqlite3.Error as e:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise PersistenceError(f"Transaction failed: {str(e)}") from e
        except BaseException:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        finally:
            conn.close()

    def table_exists(self, table_name: str) -> bool:
        """Check if a table exists."""
        query = "SELECT name FROM sqlite_master WHERE type='table' AND name=?"
        results = self.execute_query(query, (table_name,))
        return len(results) > 0


class PostgreSQLDatabase(DatabaseManager):
    """PostgreSQL database implementation."""

    row_lock_clause = " FOR UPDATE"

    def __init__(self, host: str = "localhost", port: int = 5432,
                 database: str = "edurecord", user: str = "edurecord", password: str = ""):
        if not PSYCOPG2_AVAILABLE:
            raise ConfigurationError("psycopg2 is required for PostgreSQL support")

        self._host = host
        self._port = port
        self._database = database
        self._user = user
        self._password = password
        self.integrity_errors = (psycopg2.IntegrityError,)
        self.create_tables(POSTGRESQL_SCHEMA)
        logger.info("PostgreSQL database ready at %s:%s/%s", host, port, database)

    def _get_connection_string(self) -> str:
        """Get PostgreSQL connection string."""
        return f"host={self._host} port={self._port} dbname={self._database} user={self._user} password={self._password}"

    def connect(self):
        """Create a database connection."""
        return psycopg2.connect(self._get_connection_string())

    def adapt_query(self, query: str) -> str:
        return query.replace("?", "%s")

    @contextmanager
    def transaction(self):
        try:
            conn = self.connect()
        except psycopg2.Error as e:
            raise PersistenceError(f"Database connection error: {str(e)}") from e

        try:
            yield Transaction(conn.cursor(), self.adapt_query)
            conn.commit()
        except EduRecordException:
            conn.rollback()
            raise
        except psycopg2.Error as e:
            conn.rollback()
            raise PersistenceError(f"Transaction failed: {str(e)}") from e
        except BaseException:
            conn.rollback()
            raise
        finally:
            conn.close()

    def table_exists(self, table_name: str) -> bool:
        """Check if a table exists."""
        query = "SELECT table_name FROM information_schema.tables WHERE table_name = ?"
        results = self.execute_query(query, (table_name,))
        return len(results) > 0


class DatabaseFactory:
    """Factory for creating database instances."""

    @staticmethod
    def create_database(database_type: str, **kwargs) -> DatabaseManager:
        """Create a database instance based on type."""
        if database_type.lower() == "sqlite":
            return SQLiteDatabase(**kwargs)
        elif database_type.lower() == "postgresql":
            return PostgreSQLDatabase(**kwargs)
        else:
            raise ConfigurationError(f"Unsupported database type: {database_type}")
