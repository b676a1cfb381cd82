import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.exc import ArgumentError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import QueuePool

from telemetry_ingest.errors import ConfigError

logger = logging.getLogger(__name__)

Base = declarative_base()


class Database:
    """
    Bounded pool of store connections plus the session factory built on it.

    At most `pool_size` connections are ever checked out; a caller that
    cannot get one within `pool_timeout` seconds gets
    sqlalchemy.exc.TimeoutError instead of queueing forever.
    """

    def __init__(self, url: Optional[str], pool_size: int = 5,
                 pool_timeout: float = 3.0, **engine_kwargs):
        if not url:
            raise ConfigError("database connection string is empty")
        try:
            self.engine = create_engine(
                url,
                poolclass=QueuePool,
                pool_size=pool_size,
                max_overflow=0,
                pool_timeout=pool_timeout,
                pool_pre_ping=True,
                **engine_kwargs,
            )
        except (ArgumentError, ImportError) as e:
            raise ConfigError(f"invalid database connection string: {e}") from e

        self.pool_size = pool_size
        self.pool_timeout = pool_timeout
        self.SessionLocal = sessionmaker(
            bind=self.engine, autocommit=False, autoflush=False, expire_on_commit=False)

    @classmethod
    def from_config(cls, config, **engine_kwargs) -> "Database":
        return cls(
            config.require_database_url(),
            pool_size=config.DB_POOL_SIZE,
            pool_timeout=config.DB_POOL_TIMEOUT,
            **engine_kwargs,
        )

    def check_connection(self):
        """Acquire one connection and ping the store; failure is fatal."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            raise ConfigError(f"could not connect to database: {e}") from e
        logger.info("Connected to database")

    def init_db(self):
        # register the tables on Base.metadata
        from telemetry_ingest import models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    @contextmanager
    def session(self) -> Iterator[Session]:
        db_session = self.SessionLocal()
        try:
            yield db_session
        finally:
            db_session.close()

    def dispose(self):
        self.engine.dispose()
