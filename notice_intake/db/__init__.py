"""Database engine, session and metadata helpers."""

from .session import (
    Base,
    build_engine,
    dispose_engine,
    get_engine,
    get_session,
    get_sessionmaker,
    init_db,
)

__all__ = [
    "Base",
    "build_engine",
    "dispose_engine",
    "get_engine",
    "get_session",
    "get_sessionmaker",
    "init_db",
]
