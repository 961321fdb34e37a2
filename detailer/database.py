import copy
import logging
import os
from dataclasses import asdict, fields

import aiosqlite

from detailer.config import Settings
from detailer.exceptions import StorageError
from detailer.models import Database, Doctor, Presentation, Session, Slide, SlideAnalytic
from detailer.services.storage import StorageService

logger = logging.getLogger(__name__)

CREATE_DOCTORS = """
CREATE TABLE IF NOT EXISTS doctors (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    specialty TEXT NOT NULL,
    email TEXT NOT NULL DEFAULT '',
    phone TEXT NOT NULL DEFAULT '',
    sessions INTEGER NOT NULL DEFAULT 0,
    avg_engagement INTEGER NOT NULL DEFAULT 0,
    last_session TEXT,
    total_time TEXT NOT NULL DEFAULT '0h 0m',
    total_seconds REAL NOT NULL DEFAULT 0,
    engagement_sum INTEGER NOT NULL DEFAULT 0,
    status TEXT NOT NULL DEFAULT 'active'
)
"""

CREATE_PRESENTATIONS = """
CREATE TABLE IF NOT EXISTS presentations (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    slides INTEGER NOT NULL DEFAULT 0,
    sessions INTEGER NOT NULL DEFAULT 0,
    avg_engagement INTEGER NOT NULL DEFAULT 0,
    last_used TEXT,
    status TEXT NOT NULL DEFAULT 'active',
    created_at TEXT NOT NULL DEFAULT '',
    engagement_sum INTEGER NOT NULL DEFAULT 0
)
"""

CREATE_SLIDES = """
CREATE TABLE IF NOT EXISTS slides (
    id TEXT PRIMARY KEY,
    presentation_id TEXT NOT NULL,
    title TEXT NOT NULL,
    content TEXT NOT NULL DEFAULT '',
    image_url TEXT NOT NULL DEFAULT '',
    "order" INTEGER NOT NULL DEFAULT 0,
    FOREIGN KEY (presentation_id) REFERENCES presentations(id)
)
"""

CREATE_SESSIONS = """
CREATE TABLE IF NOT EXISTS sessions (
    id TEXT PRIMARY KEY,
    doctor_id TEXT NOT NULL,
    presentation_id TEXT NOT NULL,
    start_time TEXT NOT NULL,
    end_time TEXT,
    total_time REAL,
    avg_engagement INTEGER,
    FOREIGN KEY (doctor_id) REFERENCES doctors(id),
    FOREIGN KEY (presentation_id) REFERENCES presentations(id)
)
"""

CREATE_SLIDE_ANALYTICS = """
CREATE TABLE IF NOT EXISTS slide_analytics (
    id TEXT PRIMARY KEY,
    session_id TEXT NOT NULL,
    slide_id TEXT NOT NULL,
    time_spent REAL NOT NULL,
    FOREIGN KEY (session_id) REFERENCES sessions(id)
)
"""

_DDL = [
    CREATE_DOCTORS,
    CREATE_PRESENTATIONS,
    CREATE_SLIDES,
    CREATE_SESSIONS,
    CREATE_SLIDE_ANALYTICS,
]

# table name -> (Database attribute, model class)
_TABLES = {
    "doctors": ("doctors", Doctor),
    "presentations": ("presentations", Presentation),
    "slides": ("slides", Slide),
    "sessions": ("sessions", Session),
    "slide_analytics": ("slide_analytics", SlideAnalytic),
}


class StorageBackend:
    """Where the document store lives between process restarts.

    ``load`` returns None when there is nothing usable to load, in which case
    the repository seeds the initial data and saves it back.
    """

    name = "base"

    async def open(self) -> None:
        pass

    async def close(self) -> None:
        pass

    async def load(self) -> Database | None:
        raise NotImplementedError

    async def save(self, db: Database) -> None:
        raise NotImplementedError


class MemoryBackend(StorageBackend):
    """Keeps the document resident for the life of the process."""

    name = "memory"

    def __init__(self, document: dict | None = None) -> None:
        self._document = copy.deepcopy(document) if document is not None else None

    async def load(self) -> Database | None:
        if self._document is None:
            return None
        return Database.from_document(copy.deepcopy(self._document))

    async def save(self, db: Database) -> None:
        self._document = db.to_document()


class JsonFileBackend(StorageBackend):
    """A single pretty-printed JSON document on disk."""

    name = "file"

    def __init__(self, path: str) -> None:
        self.path = path

    async def load(self) -> Database | None:
        if not os.path.exists(self.path):
            logger.info("No store at %s, starting from initial data", self.path)
            return None
        try:
            document = await StorageService.read_json(self.path)
            return Database.from_document(document)
        except (ValueError, TypeError, AttributeError) as e:
            # Corrupt or hand-edited beyond recognition: keep a copy, re-seed.
            backup = f"{self.path}.corrupt"
            try:
                os.replace(self.path, backup)
            except OSError as move_error:
                raise StorageError(
                    f"Failed to move unreadable {self.path} aside: {move_error}", self.name
                ) from move_error
            logger.warning(
                "Store %s is unreadable (%s); moved to %s and re-seeding",
                self.path, e, backup,
            )
            return None
        except OSError as e:
            raise StorageError(f"Failed to load {self.path}: {e}", self.name) from e

    async def save(self, db: Database) -> None:
        try:
            await StorageService.write_json(self.path, db.to_document())
        except OSError as e:
            logger.error("Error saving store %s: %s", self.path, e)
            raise StorageError(f"Failed to save {self.path}: {e}", self.name) from e


class SqliteBackend(StorageBackend):
    """One table per collection; every save is a single transaction of upserts."""

    name = "sqlite"

    def __init__(self, path: str) -> None:
        self.path = path
        self._conn: aiosqlite.Connection | None = None

    async def open(self) -> None:
        StorageService.ensure_dir(self.path)
        self._conn = await aiosqlite.connect(self.path)
        await self._conn.execute("PRAGMA busy_timeout = 5000")
        self._conn.row_factory = aiosqlite.Row
        for stmt in _DDL:
            await self._conn.execute(stmt)
        await self._conn.commit()

    async def close(self) -> None:
        if self._conn is not None:
            await self._conn.close()
            self._conn = None

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise StorageError("SQLite backend used before open()", self.name)
        return self._conn

    async def load(self) -> Database | None:
        db = Database()
        try:
            for table, (attr, model) in _TABLES.items():
                rows = await self.conn.execute(f"SELECT * FROM {table} ORDER BY rowid")
                records = [model(**dict(row)) for row in await rows.fetchall()]
                setattr(db, attr, records)
        except aiosqlite.Error as e:
            raise StorageError(f"Failed to load {self.path}: {e}", self.name) from e
        if db.is_empty():
            return None
        return db

    async def save(self, db: Database) -> None:
        try:
            for table, (attr, model) in _TABLES.items():
                columns = [f.name for f in fields(model)]
                column_list = ", ".join(f'"{c}"' for c in columns)
                placeholders = ", ".join("?" for _ in columns)
                updates = ", ".join(
                    f'"{c}" = excluded."{c}"' for c in columns if c != "id"
                )
                stmt = (
                    f"INSERT INTO {table} ({column_list}) VALUES ({placeholders}) "
                    f"ON CONFLICT(id) DO UPDATE SET {updates}"
                )
                rows = [
                    tuple(asdict(record)[c] for c in columns)
                    for record in getattr(db, attr)
                ]
                if rows:
                    await self.conn.executemany(stmt, rows)
            await self.conn.commit()
        except aiosqlite.Error as e:
            await self.conn.rollback()
            logger.error("Error saving store %s: %s", self.path, e)
            raise StorageError(f"Failed to save {self.path}: {e}", self.name) from e


def build_backend(config: Settings) -> StorageBackend:
    """Construct the backend named by ``config.storage_backend``."""
    if config.storage_backend == "memory":
        return MemoryBackend()
    if config.storage_backend == "file":
        return JsonFileBackend(StorageService.store_path(config.data_dir, config.db_file))
    if config.storage_backend == "sqlite":
        return SqliteBackend(config.sqlite_path)
    raise ValueError(f"Unsupported storage backend: {config.storage_backend}")
