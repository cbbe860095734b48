import os
import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

import aiosqlite

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS SERVICE (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL UNIQUE,
        category TEXT NOT NULL,
        type TEXT,
        price REAL,
        available_widths TEXT,
        available_finishes TEXT,
        min_dpi INTEGER,
        formats TEXT,
        file_validation_criteria TEXT,
        updated_at INTEGER
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS ADDITIONAL_INFO (
        key TEXT PRIMARY KEY,
        value TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS ORDERS (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        date TEXT NOT NULL,
        phone TEXT NOT NULL,
        name TEXT,
        details TEXT,
        observations TEXT,
        file_path TEXT,
        status TEXT,
        created_at INTEGER
    )
    """,
)


class AsyncDatabaseInitializer:
    """
    Manage the async SQLite database that caches the catalog and stores orders.

    - The database file is located at: <DATABASE_DIR>/app.db, unless an
      explicit `parent_folder` is given (tests pass a temporary directory).
    - DATABASE_DIR is required otherwise. A RuntimeError is raised if it is
      missing or invalid (not a directory and cannot be created).
    - The first call to `ensure_database()` creates the SERVICE,
      ADDITIONAL_INFO and ORDERS tables if they do not exist. Orders are
      never wiped on startup.
    - Subsequent calls to `ensure_database()` on the same instance are no-ops,
      so it is safe for `connection()` to call it.
    """

    def __init__(self, parent_folder: Optional[Path | str] = None) -> None:
        if parent_folder is not None:
            db_dir = Path(parent_folder).expanduser()
            source = str(parent_folder)
        else:
            env_dir = os.getenv("DATABASE_DIR")
            if env_dir is None or not env_dir.strip():
                raise RuntimeError(
                    "DATABASE_DIR environment variable must be set to a writable "
                    "directory path where the SQLite database file will be stored."
                )
            db_dir = Path(env_dir).expanduser()
            source = env_dir

        # If the path exists but is not a directory, that's a configuration error.
        if db_dir.exists() and not db_dir.is_dir():
            raise RuntimeError(
                f"DATABASE_DIR={source!r} points to a file, not a directory "
                f"({db_dir}). Please set DATABASE_DIR to a directory path."
            )

        try:
            db_dir.mkdir(parents=True, exist_ok=True)
        except Exception as exc:
            raise RuntimeError(
                f"Failed to create or access database directory at {db_dir}"
            ) from exc

        self.db_dir = db_dir
        self.db_path = self.db_dir / "app.db"

        self._initialized = False
        self._init_lock = asyncio.Lock()

    async def ensure_database(self) -> None:
        """
        Ensure the SQLite database and its tables exist at `self.db_path`.

        Subsequent calls on the same instance are no-ops.
        """
        if self._initialized:
            return

        async with self._init_lock:
            if self._initialized:
                return

            max_attempts = 3
            for attempt in range(1, max_attempts + 1):
                try:
                    async with aiosqlite.connect(self.db_path) as db:
                        for statement in SCHEMA:
                            await db.execute(statement)
                        await db.commit()
                    break
                except FileNotFoundError:
                    # On some platforms a transient missing file error may occur; retry a few times.
                    if attempt >= max_attempts:
                        raise
                    await asyncio.sleep(0.1 * attempt)

            self._initialized = True

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Async context manager yielding an `aiosqlite.Connection`.

        Tables are created on first use via `ensure_database()`.
        """
        await self.ensure_database()
        conn = await aiosqlite.connect(self.db_path)
        try:
            yield conn
        finally:
            await conn.close()
