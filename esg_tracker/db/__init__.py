from esg_tracker.db.postgres_database_manager import (
    DatabaseManagerError,
    PostgresDatabaseManager,
)

__all__ = ["DatabaseManagerError", "PostgresDatabaseManager"]
