"""
Database connection management for the target PostgreSQL backend.

The same engine serves schema introspection and the table metadata side table.
"""

from typing import Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from loguru import logger

from joinengine.config.settings import DatabaseConfig


class Database:
    """
    Target database connection manager

    Handles connection pooling and configuration.
    """

    def __init__(self, config: DatabaseConfig = None, engine: Optional[Engine] = None):
        """
        Initialize database connection

        Args:
            config: Database configuration (defaults to env vars)
            engine: Pre-built SQLAlchemy engine (used instead of config when given)
        """
        self.config = config or DatabaseConfig()

        if engine is not None:
            self.engine = engine
            return

        connection_string = self.config.get_connection_string()
        logger.info(f"Connecting to target database: {self.config.database} @ {self.config.host}:{self.config.port}")

        self.engine = create_engine(
            connection_string,
            pool_pre_ping=True,      # Verify connections before using
            pool_recycle=3600,       # Recycle connections after 1 hour
            pool_size=5,
            max_overflow=10,
            echo=False,
        )

    def ping(self) -> bool:
        """Return True when the target database answers a trivial query"""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"Target database ping failed: {e}")
            return False


# Global database instance (lazy initialization)
_db_instance: Optional[Database] = None


def get_database() -> Database:
    """Get or create global database instance"""
    global _db_instance
    if _db_instance is None:
        _db_instance = Database()
    return _db_instance


def set_database(db: Optional[Database]) -> None:
    """Replace the global database instance (tests, embedding applications)"""
    global _db_instance
    _db_instance = db
