import os
import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

import aiosqlite

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS ANALYSIS_SESSION (
        session_id TEXT PRIMARY KEY,
        status TEXT NOT NULL,
        current_stage TEXT,
        prompt TEXT,
        analysis_prompt TEXT,
        image_urls TEXT NOT NULL,
        user_annotations TEXT,
        error TEXT,
        error_kind TEXT,
        integrity_issues TEXT,
        created_at REAL NOT NULL,
        updated_at REAL NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS STAGE_RESULT (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        session_id TEXT NOT NULL REFERENCES ANALYSIS_SESSION(session_id) ON DELETE CASCADE,
        position INTEGER NOT NULL,
        stage TEXT NOT NULL,
        success INTEGER NOT NULL,
        payload TEXT,
        error TEXT,
        error_kind TEXT,
        duration_ms INTEGER NOT NULL DEFAULT 0
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS ANNOTATION (
        id TEXT NOT NULL,
        session_id TEXT NOT NULL REFERENCES ANALYSIS_SESSION(session_id) ON DELETE CASCADE,
        position INTEGER NOT NULL,
        image_index INTEGER NOT NULL,
        x REAL NOT NULL,
        y REAL NOT NULL,
        category TEXT NOT NULL,
        severity TEXT NOT NULL,
        feedback TEXT NOT NULL,
        implementation_effort TEXT NOT NULL,
        business_impact TEXT NOT NULL,
        PRIMARY KEY (session_id, position)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_annotation_image ON ANNOTATION (session_id, image_index)",
)


class AsyncDatabaseInitializer:
    """
    Manage an async SQLite database using the DATABASE_DIR environment variable.

    - The database file is located at: <DATABASE_DIR>/app.db
    - DATABASE_DIR is required. A RuntimeError is raised if it is missing
      or invalid (not a directory and cannot be created).
    - On the first call to `ensure_database()` for a given instance the
      ANALYSIS_SESSION, STAGE_RESULT and ANNOTATION tables are created. With
      `reset=True` any existing database file is deleted first.
    - Subsequent calls to `ensure_database()` on the same instance are no-ops,
      so it is safe for `connection()` to call it.
    """

    def __init__(self, reset: bool = False, database_dir: Optional[Path | str] = None) -> None:
        env_dir = str(database_dir) if database_dir is not None else os.getenv("DATABASE_DIR")

        if env_dir is None or not env_dir.strip():
            raise RuntimeError(
                "DATABASE_DIR environment variable must be set to a writable "
                "directory path where the SQLite database file will be stored."
            )

        db_dir = Path(env_dir).expanduser()

        if db_dir.exists() and not db_dir.is_dir():
            raise RuntimeError(
                f"DATABASE_DIR={env_dir!r} points to a file, not a directory "
                f"({db_dir}). Please set DATABASE_DIR to a directory path."
            )

        try:
            db_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise RuntimeError(
                f"Failed to create or access database directory at {db_dir}"
            ) from exc

        self.db_dir = db_dir
        self.db_path = self.db_dir / "app.db"
        self.reset = reset

        self._initialized = False

    async def ensure_database(self) -> None:
        """
        Ensure the SQLite database at `self.db_path` carries the analysis schema.

        Subsequent calls on the same instance are no-ops.
        """
        if self._initialized:
            return

        if self.reset and self.db_path.exists():
            try:
                self.db_path.unlink()
            except OSError as exc:
                raise RuntimeError(
                    f"Failed to delete existing database at {self.db_path}"
                ) from exc

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

        The schema is created on first use via `ensure_database()`.
        """
        await self.ensure_database()
        conn = await aiosqlite.connect(self.db_path)
        try:
            await conn.execute("PRAGMA foreign_keys = ON")
            yield conn
        finally:
            await conn.close()
