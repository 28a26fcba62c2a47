import pathlib

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from slotduel.load_secrets import sqlite_path

default_file_path = pathlib.Path(__file__).parents[1] / "slotduel.sqlite3"


def create_sqlite_engine(file_path: str | pathlib.Path | None = None) -> AsyncEngine:
    """Create an aiosqlite engine, used for local runs and tests."""
    if file_path is None:
        file_path = sqlite_path or default_file_path
    sqlite_url = f"sqlite+aiosqlite:///{file_path}"
    return create_async_engine(url=sqlite_url, echo=False)
