from __future__ import annotations

from contextlib import contextmanager

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import NullPool

from .base import Base


def build_engine(database_url: str) -> Engine:
    if database_url.startswith("sqlite"):
        # Requests run their unit of work on worker threads
        return create_engine(database_url, connect_args={"check_same_thread": False})

    # PgBouncer already pools; don't pool twice
    if "-pooler" in database_url or "pgbouncer=true" in database_url:
        return create_engine(database_url, poolclass=NullPool)
    return create_engine(database_url, pool_size=10, max_overflow=20, pool_pre_ping=True)


class SessionManager:
    def __init__(self, engine: Engine):
        self.engine = engine
        self._factory = sessionmaker(bind=engine, expire_on_commit=False)

    def get_session(self) -> Session:
        """
        Returns a raw session.
        Caller MUST manually commit/rollback and close the session.
        Use with_session() instead for automatic cleanup.
        """
        return self._factory()

    @contextmanager
    def with_session(self):
        session = self.get_session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def create_all(self) -> None:
        """Create missing tables. Production schemas come from alembic."""
        Base.metadata.create_all(self.engine)
