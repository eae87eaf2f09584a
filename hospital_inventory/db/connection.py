# hospital_inventory/db/connection.py
from contextlib import contextmanager
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from hospital_inventory.config import config
from hospital_inventory.exceptions import PersistenceError
from hospital_inventory.models import Base

class Database:
    """Database connection manager for the Hospital Inventory system."""

    def __init__(self, connection_string: Optional[str] = None):
        """Initialize the manager; the engine is created lazily.

        Args:
            connection_string: Optional database URL. If not provided,
                               the configured URL is used.
        """
        self._connection_string = connection_string
        self._engine = None
        self._session_factory = None

    def initialize(self, connection_string: Optional[str] = None):
        """Create the engine and session factory.

        Args:
            connection_string: Optional database URL overriding the one given
                               at construction time
        """
        if connection_string is not None:
            self._connection_string = connection_string
        if self._connection_string is None:
            self._connection_string = config.get_db_url()

        echo = config.get_boolean('DATABASE', 'echo', False)

        try:
            if self._connection_string.startswith('sqlite'):
                # One shared connection so an in-memory database is visible to every thread
                self._engine = create_engine(
                    self._connection_string,
                    echo=echo,
                    connect_args={'check_same_thread': False},
                    poolclass=StaticPool
                )
            else:
                self._engine = create_engine(
                    self._connection_string,
                    echo=echo,
                    pool_size=config.get_int('DATABASE', 'pool_size', 10),
                    max_overflow=config.get_int('DATABASE', 'max_overflow', 20),
                    pool_timeout=config.get_int('DATABASE', 'pool_timeout', 30),
                    pool_recycle=config.get_int('DATABASE', 'pool_recycle', 1800)
                )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Database initialization failed: {str(e)}")

        # Objects stay readable after their session closes
        self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)

    def create_all_tables(self):
        """Create all tables defined in the models."""
        Base.metadata.create_all(self.engine)

    def drop_all_tables(self):
        """Drop all tables from the database."""
        Base.metadata.drop_all(self.engine)

    @property
    def engine(self):
        """Get the database engine."""
        if self._engine is None:
            self.initialize()
        return self._engine

    @property
    def session_factory(self):
        """Get the session factory."""
        if self._session_factory is None:
            self.initialize()
        return self._session_factory

    def dispose(self):
        """Release pooled connections."""
        if self._engine is not None:
            self._engine.dispose()

    @contextmanager
    def session_scope(self) -> Session:
        """Provide a transactional scope around a series of operations."""
        session = self.session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

# Default database for command line use
db = Database()

@contextmanager
def session_scope():
    """Session scope context manager on the default database."""
    with db.session_scope() as session:
        yield session
