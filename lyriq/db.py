"""SQLAlchemy database setup for Lyriq Notes."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any, Final, cast

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import DeclarativeBase, sessionmaker

if TYPE_CHECKING:
    import sqlite3

    from sqlalchemy.orm import Session

#: The default database name.
DEFAULT_DB_NAME: Final[str] = "lyriq.db"
#: The application directory name used under the platform data directory.
APP_DIR_NAME: Final[str] = "Lyriq Notes"


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""


def get_db_path() -> Path:
    """
    Get the path to the notes database.

    - On Windows, the database is created in the user's
        ``AppData/Local/Lyriq Notes`` directory.
    - On macOS, the database is created in the user's
        ``~/Library/Application Support/Lyriq Notes`` directory.
    - On Linux, the database is created in the user's
        ``~/.config/Lyriq Notes`` directory.
    - If the platform is not supported, raise a ValueError.

    Returns:
        Path to the database file

    """
    if sys.platform not in ["win32", "darwin", "linux"]:
        msg = f"Unsupported platform: {sys.platform}"
        raise ValueError(msg)
    if sys.platform == "win32":
        db_dir = Path.home() / "AppData" / "Local" / APP_DIR_NAME
    elif sys.platform == "darwin":
        db_dir = Path.home() / "Library" / "Application Support" / APP_DIR_NAME
    else:
        db_dir = Path.home() / ".config" / APP_DIR_NAME
    db_dir.mkdir(parents=True, exist_ok=True)
    return db_dir / DEFAULT_DB_NAME


def create_engine_with_path(db_path: Path | None = None) -> Engine:
    """
    Create SQLAlchemy engine with proper SQLite settings.

    Args:
        db_path: Optional path to database file. If None, uses default path.

    Returns:
        SQLAlchemy engine

    """
    if db_path is None:
        db_path = get_db_path()

    db_path.touch(exist_ok=True)

    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
        echo=False,
    )

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(
        dbapi_conn: sqlite3.Connection | Any, _connection_record: Any
    ) -> None:
        """Set SQLite pragmas on connection."""
        cursor = cast("sqlite3.Cursor", dbapi_conn.cursor())
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    return engine


def create_session(db_path: Path | None = None) -> Session:
    """
    Open a session on the notes database, creating tables as needed.

    Args:
        db_path: Optional path to database file. If None, uses default path.

    Returns:
        SQLAlchemy session

    """
    # Import so the table is registered on Base.metadata
    from lyriq.models.stored_value import StoredValue  # noqa: F401, PLC0415

    engine = create_engine_with_path(db_path)
    Base.metadata.create_all(engine)
    session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    return session_factory()
