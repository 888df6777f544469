import logging
import os
from pathlib import Path

import pandas as pd
import psycopg2
from dotenv import load_dotenv
from psycopg2 import sql

logger = logging.getLogger(__name__)

SCHEMA_FILE = Path(__file__).parent / "schema" / "esg_schema.sql"


class DatabaseManagerError(Exception):
    """Raised when a PostgreSQL connection or statement fails."""


class PostgresDatabaseManager:
    """A class to manage PostgreSQL database connections and queries."""

    def __init__(self, db_config=None):
        """Initialize with database configuration.

        Args:
            db_config (dict, optional): Database configuration dict with keys:
                host, port, user, password, database, schema
                If None, will load from environment variables.
        """
        load_dotenv()

        if db_config:
            self.config = dict(db_config)
        else:
            # Load from environment variables
            self.config = {
                "host": os.getenv("POSTGRES_HOST", "localhost"),
                "port": os.getenv("POSTGRES_PORT", "5432"),
                "user": os.getenv("POSTGRES_USER", "postgres"),
                "password": os.getenv("POSTGRES_PASSWORD"),
                "database": os.getenv("POSTGRES_DATABASE", "esg"),
                "schema": os.getenv("POSTGRES_SCHEMA", "esg_database"),
            }

        if not self.config.get("password"):
            raise ValueError("PostgreSQL password must be provided")

        self.config.setdefault("schema", "esg_database")
        self.connection = None

    @property
    def schema(self):
        return self.config["schema"]

    def connect(self):
        """Connect to the PostgreSQL database with search_path set to the ESG schema."""
        try:
            self.connection = psycopg2.connect(
                host=self.config["host"],
                port=self.config["port"],
                user=self.config["user"],
                password=self.config["password"],
                database=self.config["database"],
                options=f"-c search_path={self.schema}",
            )
            # Set autocommit to False for transaction control
            self.connection.autocommit = False
        except psycopg2.Error as e:
            raise DatabaseManagerError(f"Failed to connect to PostgreSQL: {e}") from e

    def close(self):
        """Close the database connection."""
        if self.connection:
            try:
                self.connection.close()
            except psycopg2.Error as e:
                logger.warning(f"Error closing PostgreSQL connection: {e}")
            self.connection = None

    def _require_connection(self):
        if not self.connection:
            raise DatabaseManagerError("Database connection is not established.")

    def _cursor(self):
        self._require_connection()
        try:
            return self.connection.cursor()
        except psycopg2.Error as e:
            raise DatabaseManagerError(f"Failed to open cursor: {e}") from e

    def _rollback(self):
        # A dropped connection cannot roll back; the original error is what gets reported
        try:
            self.connection.rollback()
        except psycopg2.Error as e:
            logger.warning(f"Rollback failed: {e}")

    def execute_query(self, query, params=None):
        """Execute and commit a single statement.

        Returns the fetched rows for SELECT statements, otherwise the rowcount.
        """
        cursor = self._cursor()
        try:
            if params:
                cursor.execute(query, params)
            else:
                cursor.execute(query)

            self.connection.commit()

            if query.strip().upper().startswith("SELECT"):
                return cursor.fetchall()
            return cursor.rowcount

        except psycopg2.Error as e:
            self._rollback()
            raise DatabaseManagerError(f"Query execution failed: {e}") from e
        finally:
            cursor.close()

    def fetch_query(self, query, params=None):
        """Execute a SELECT query and return results."""
        cursor = self._cursor()
        try:
            if params:
                cursor.execute(query, params)
            else:
                cursor.execute(query)

            return cursor.fetchall()

        except psycopg2.Error as e:
            raise DatabaseManagerError(f"Query fetch failed: {e}") from e
        finally:
            cursor.close()

    def fetch_dataframe(self, query, params=None):
        """Execute a SELECT query and return results as a pandas DataFrame."""
        self._require_connection()

        try:
            return pd.read_sql_query(query, self.connection, params=params)
        except Exception as e:
            raise DatabaseManagerError(f"DataFrame query failed: {e}") from e

    def initialize_schema(self, schema_file_path=SCHEMA_FILE):
        """Create the ESG schema if needed, then run the table DDL from a SQL file."""
        if not self.connection:
            self.connect()

        schema_path = Path(schema_file_path)
        if not schema_path.exists():
            raise FileNotFoundError(f"Schema file not found: {schema_path}")

        with schema_path.open() as file:
            schema_sql = file.read()

        cursor = self._cursor()
        try:
            cursor.execute(
                sql.SQL("CREATE SCHEMA IF NOT EXISTS {}").format(sql.Identifier(self.schema))
            )
            cursor.execute(
                sql.SQL("SET search_path TO {}").format(sql.Identifier(self.schema))
            )
            # Execute the entire schema as one transaction
            cursor.execute(schema_sql)
            self.connection.commit()
            logger.info(f"✅ Schema '{self.schema}' initialized from {schema_path.name}")

        except psycopg2.Error as e:
            self._rollback()
            raise DatabaseManagerError(f"Schema initialization failed: {e}") from e
        finally:
            cursor.close()

    def __enter__(self):
        """Context manager entry."""
        if not self.connection:
            self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
