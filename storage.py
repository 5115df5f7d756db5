from __future__ import annotations

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from config import Settings
from database import Base, create_db_engine, make_session_factory, session_scope
from models import DOCUMENT_TABLES, EntityKind


logger = logging.getLogger(__name__)

Document = dict[str, Any]

# Failures a store read or write can raise: connectivity and SQL errors,
# filesystem errors, and undecodable payloads (JSON and pydantic errors are
# ValueErrors).
STORAGE_ERRORS = (SQLAlchemyError, OSError, ValueError)


class StorageProvider(ABC):
    """Whole-collection persistence: one serialized collection per entity kind."""

    name: str = "abstract"

    @abstractmethod
    def read(self, kind: EntityKind) -> Optional[list[Document]]:
        """Return the stored collection, or None when nothing is stored."""

    @abstractmethod
    def write(self, kind: EntityKind, collection: list[Document]) -> None:
        """Replace the stored collection with ``collection``."""


class LocalStorageProvider(StorageProvider):
    """Device-local store keeping one JSON file per storage key.

    Without a data directory the store is absent: reads return None and
    writes are discarded.
    """

    name = "local"

    def __init__(self, root: Optional[Path]) -> None:
        self.root = root

    @staticmethod
    def _path(root: Path, kind: EntityKind) -> Path:
        return root / f"{kind.storage_key}.json"

    def read(self, kind: EntityKind) -> Optional[list[Document]]:
        if self.root is None:
            return None
        path = self._path(self.root, kind)
        if not path.exists():
            return None
        raw = path.read_text(encoding="utf-8")
        if not raw.strip():
            return None
        return json.loads(raw)

    def write(self, kind: EntityKind, collection: list[Document]) -> None:
        if self.root is None:
            logger.debug(f"storage_write_discarded: key={kind.storage_key}")
            return
        self.root.mkdir(parents=True, exist_ok=True)
        path = self._path(self.root, kind)
        fd, tmp_name = tempfile.mkstemp(dir=self.root, prefix=f".{path.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(collection, fh, ensure_ascii=False)
            os.replace(tmp_name, path)
        except Exception:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.info(f"storage_write: key={kind.storage_key} items={len(collection)}")


class DatabaseStorageProvider(StorageProvider):
    """Relational store: one ``(id, data)`` table per kind, rewritten in full on every write."""

    name = "database"

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._sessions = make_session_factory(engine)

    @classmethod
    def from_url(cls, database_url: str) -> "DatabaseStorageProvider":
        return cls(create_db_engine(database_url))

    def read(self, kind: EntityKind) -> Optional[list[Document]]:
        table = DOCUMENT_TABLES[kind]
        with self._sessions() as session:
            return list(session.scalars(select(table.data)).all())

    def write(self, kind: EntityKind, collection: list[Document]) -> None:
        table = DOCUMENT_TABLES[kind]
        with session_scope(self._sessions) as session:
            session.execute(delete(table))
            session.add_all(table(id=str(item["id"]), data=item) for item in collection)
        logger.info(
            f"storage_write: table={table.__tablename__} rows={len(collection)}"
        )

    def init_schema(self) -> None:
        tables = [table.__table__ for table in DOCUMENT_TABLES.values()]
        Base.metadata.create_all(self.engine, tables=tables)
        logger.info("schema_init: tables=" + ",".join(t.name for t in tables))

    def server_time(self) -> datetime | str:
        with self.engine.connect() as conn:
            return conn.execute(select(func.current_timestamp())).scalar_one()


def create_storage_provider(settings: Settings) -> StorageProvider:
    """Pick the relational store when a database URL is configured, else the local one."""
    if settings.uses_database:
        try:
            provider = DatabaseStorageProvider.from_url(settings.database_url)
        except (SQLAlchemyError, ImportError):
            logger.exception("storage_select: database provider unavailable")
        else:
            logger.info("storage_select: provider=database")
            return provider
    logger.info(f"storage_select: provider=local data_dir={settings.data_dir}")
    return LocalStorageProvider(settings.data_dir)
