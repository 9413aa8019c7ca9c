"""
Database setup and connection management for permission storage.

This module handles:
- SQLAlchemy engine creation
- Session management
- Table creation
- Health checks
"""

import logging
import os
from contextlib import contextmanager
from typing import Generator, Optional

import dotenv
from sqlalchemy import create_engine, inspect, pool, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from permissions.models import Base

logger = logging.getLogger(__name__)

dotenv.load_dotenv()


class DatabaseConfig:
    """Configuration for database connections"""

    def __init__(self, url: Optional[str] = None, echo: Optional[bool] = None):
        self.url = url or os.getenv("DATABASE_URL", "sqlite:///:memory:")

        # Connection pooling (ignored for SQLite)
        self.pool_size = int(os.getenv("DB_POOL_SIZE", "10"))
        self.max_overflow = int(os.getenv("DB_MAX_OVERFLOW", "20"))
        self.pool_recycle = int(os.getenv("DB_POOL_RECYCLE", "1500"))

        if echo is None:
            echo = os.getenv("DB_ECHO", "False").lower() == "true"
        self.echo = echo

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")


class DatabaseManager:
    """
    Owns the engine and session factory for permission storage.

    Usage:
        db_manager = DatabaseManager(DatabaseConfig())
        db_manager.create_tables()
        with db_manager.session() as session:
            # Do database operations
            pass
    """

    def __init__(self, config: DatabaseConfig = None):
        self.config = config or DatabaseConfig()
        self.engine = self._create_engine(self.config)
        self._SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=self.engine,
            expire_on_commit=False
        )
        logger.info(f"Permission database configured ({self.engine.dialect.name})")

    @staticmethod
    def _create_engine(config: DatabaseConfig):
        if config.is_sqlite:
            # In-memory SQLite needs a single shared connection across threads
            return create_engine(
                config.url,
                echo=config.echo,
                connect_args={"check_same_thread": False},
                poolclass=pool.StaticPool if ":memory:" in config.url else None,
            )

        return create_engine(
            config.url,
            echo=config.echo,
            pool_size=config.pool_size,
            max_overflow=config.max_overflow,
            pool_recycle=config.pool_recycle,
            pool_pre_ping=True,
        )

    def create_tables(self) -> None:
        """Create missing tables (idempotent)"""
        existing_tables = set(inspect(self.engine).get_table_names())
        Base.metadata.create_all(bind=self.engine, checkfirst=True)

        for table_name in Base.metadata.tables:
            if table_name in existing_tables:
                logger.info(f"Table already exists: {table_name}")
            else:
                logger.info(f"Created table: {table_name}")

    def drop_tables(self) -> None:
        """Drop all tables. USE WITH CAUTION (for testing only)."""
        logger.warning("DROPPING ALL PERMISSION TABLES - THIS IS DESTRUCTIVE")
        Base.metadata.drop_all(bind=self.engine)

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """Session scope: commit on success, rollback on error, always close"""
        session = self._SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def health_check(self) -> bool:
        """Check if database is healthy"""
        try:
            with self.engine.connect() as connection:
                connection.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.error(f"Database health check failed: {e}")
            return False

    def dispose(self) -> None:
        self.engine.dispose()
