# -*- coding: utf-8 -*-
"""Database configuration for the search history key/value table."""

from pathlib import Path

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from src.core.config import get_settings

Base = declarative_base()


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine suited to the database type.

    Args:
        database_url: SQLAlchemy database URL
        echo: Whether to log emitted SQL

    Returns:
        SQLAlchemy engine configured for SQLite or PostgreSQL
    """
    if database_url.startswith("sqlite"):
        if database_url.startswith("sqlite:///") and ":memory:" not in database_url:
            db_path = Path(database_url.replace("sqlite:///", ""))
            db_path.parent.mkdir(parents=True, exist_ok=True)

        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},  # Needed for SQLite
            echo=echo,
        )
    if database_url.startswith("postgresql"):
        return create_engine(
            database_url,
            echo=echo,
            pool_size=5,
            max_overflow=10,
            pool_pre_ping=True,
        )
    return create_engine(database_url, echo=echo)


_settings = get_settings()

engine = create_db_engine(_settings.database_url, echo=_settings.debug)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind: Engine | None = None) -> None:
    """Create tables for all registered models."""
    # Register models on Base.metadata
    from src.models import db_models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
