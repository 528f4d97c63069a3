"""Database configuration using SQLAlchemy.

There is no module-level engine. A ``Database`` is built once at process
start (API lifespan or processor startup), stored on ``app.state`` and
disposed at shutdown. Request handlers reach it through ``get_db``.
"""

from typing import Generator, Optional

from fastapi import Request
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

# Base class for models
Base = declarative_base()


def build_engine(url: str, echo: bool = False) -> Engine:
    """Create an engine with pool options suited to the backend."""
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url in ("sqlite://", "sqlite+pysqlite://"):
            # Share the single in-memory database across sessions
            kwargs["poolclass"] = StaticPool
        return create_engine(url, echo=echo, **kwargs)

    return create_engine(
        url,
        echo=echo,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
        pool_recycle=3600,
    )


class Database:
    """Engine plus session factory, owned by whoever constructed it."""

    def __init__(self, url: str, echo: bool = False, engine: Optional[Engine] = None):
        self.url = url
        self.engine = engine or build_engine(url, echo=echo)
        self.session_factory = sessionmaker(
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
            bind=self.engine,
        )

    def session(self) -> Session:
        """Open a new session. Caller closes it."""
        return self.session_factory()

    def create_all(self) -> None:
        """Create all tables (development and tests; production uses Alembic)."""
        # Import all models to register them with Base
        from api import models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    def check_connection(self) -> bool:
        """Check if database connection is working."""
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True

    def dispose(self) -> None:
        """Release pooled connections."""
        self.engine.dispose()


def get_db(request: Request) -> Generator[Session, None, None]:
    """
    Dependency that provides a database session.

    Usage:
        @router.get("/items")
        def get_items(db: Session = Depends(get_db)):
            return db.query(Item).all()
    """
    database: Database = request.app.state.database
    db = database.session()
    try:
        yield db
    finally:
        db.close()
