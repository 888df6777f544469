import sqlite3

import pandas as pd
import pytest

from esg_tracker.config import EsgConfig
from esg_tracker.db.postgres_database_manager import DatabaseManagerError
from esg_tracker.utils.rate_limiter import FixedIntervalRateLimiter


class SqliteDatabaseManager:
    """Drop-in for PostgresDatabaseManager backed by a SQLite file.

    Translates psycopg2 `%s` placeholders so the production SQL runs unchanged.
    """

    open_connections = 0

    def __init__(self, db_path, fail_on_names=()):
        self.db_path = db_path
        self.fail_on_names = set(fail_on_names)
        self.connection = None

    def connect(self):
        self.connection = sqlite3.connect(str(self.db_path))
        SqliteDatabaseManager.open_connections += 1

    def close(self):
        if self.connection:
            self.connection.close()
            self.connection = None
            SqliteDatabaseManager.open_connections -= 1

    def execute_query(self, query, params=None):
        if params and params[0] in self.fail_on_names:
            raise DatabaseManagerError(f"Query execution failed: rejected {params[0]}")
        try:
            cursor = self.connection.execute(query.replace("%s", "?"), params or ())
            self.connection.commit()
            return cursor.rowcount
        except sqlite3.Error as e:
            self.connection.rollback()
            raise DatabaseManagerError(f"Query execution failed: {e}") from e

    def fetch_query(self, query, params=None):
        try:
            return self.connection.execute(query.replace("%s", "?"), params or ()).fetchall()
        except sqlite3.Error as e:
            raise DatabaseManagerError(f"Query fetch failed: {e}") from e

    def fetch_dataframe(self, query, params=None):
        return pd.read_sql_query(query.replace("%s", "?"), self.connection, params=params)

    def __enter__(self):
        if not self.connection:
            self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class RecordingDatabaseManager:
    """Records every statement instead of executing it."""

    def __init__(self, log):
        self.log = log

    def execute_query(self, query, params=None):
        self.log.append((query, params))
        return 1

    def __enter__(self):
        self.log.append("connect")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.log.append("close")


class FakeClock:
    """Monotonic clock that only moves when the code under test sleeps or a test advances it."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def sqlite_db(tmp_path):
    db_path = tmp_path / "esg.db"
    conn = sqlite3.connect(str(db_path))
    conn.execute(
        """
        CREATE TABLE companies (
            company_id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            esg_score REAL NOT NULL
        )
        """
    )
    conn.commit()
    conn.close()
    SqliteDatabaseManager.open_connections = 0
    return db_path


@pytest.fixture
def sqlite_factory(sqlite_db):
    return lambda: SqliteDatabaseManager(sqlite_db)


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def config():
    return EsgConfig(
        api_url="https://esg.example.com/api/scores",
        max_requests_per_minute=1,
        postgres_password="secret",
    )


@pytest.fixture
def instant_limiter(fake_clock):
    def make(max_requests_per_minute):
        return FixedIntervalRateLimiter(
            max_requests_per_minute, clock=fake_clock, sleep=fake_clock.sleep
        )
    return make


@pytest.fixture
def read_rows(sqlite_db):
    def read():
        conn = sqlite3.connect(str(sqlite_db))
        try:
            return conn.execute("SELECT name, esg_score FROM companies ORDER BY company_id").fetchall()
        finally:
            conn.close()
    return read


@pytest.fixture
def failing_factory(sqlite_db):
    def make(*names):
        return lambda: SqliteDatabaseManager(sqlite_db, fail_on_names=names)
    return make


@pytest.fixture
def open_connections():
    return lambda: SqliteDatabaseManager.open_connections


@pytest.fixture
def statement_log():
    return []


@pytest.fixture
def recording_factory(statement_log):
    return lambda: RecordingDatabaseManager(statement_log)


@pytest.fixture
def empty_db_factory(tmp_path):
    """Database with no companies table, so every statement fails."""
    return lambda: SqliteDatabaseManager(tmp_path / "empty.db")
