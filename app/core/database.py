"""Database setup for Resolvarr using SQLModel."""

from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

# Registers the library tables on SQLModel.metadata
import app.models.library  # noqa: F401


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """Create the engine; an in-memory SQLite URL shares one connection."""
    kwargs = {}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}  # Needed for SQLite
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
    return create_engine(database_url, echo=echo, **kwargs)


def create_db_and_tables(engine: Engine) -> None:
    """Create all database tables."""
    SQLModel.metadata.create_all(engine)
