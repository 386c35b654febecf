"""
Founder record storage: SQLAlchemy-backed table and an in-memory test implementation.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator, Optional, Protocol

from sqlalchemy import Column, Integer, String, Text, create_engine, select
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from backend.errors import StorageError

logger = logging.getLogger(__name__)


@dataclass
class FounderFields:
    """Editable text fields of a founder profile."""

    name: str
    about: str
    description: str


@dataclass
class FounderRecord:
    id: int
    name: str
    about: str
    description: str
    image_url: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "about": self.about,
            "description": self.description,
            "image_url": self.image_url,
        }


class RecordStore(Protocol):
    """Interface for founder row access."""

    def insert(self, fields: FounderFields, image_url: Optional[str] = None) -> int:
        ...

    def update(
        self, founder_id: int, fields: FounderFields, image_url: Optional[str] = None
    ) -> bool:
        ...

    def get_by_id(self, founder_id: int) -> Optional[FounderRecord]:
        ...

    def list_all(self) -> list[FounderRecord]:
        ...

    def delete_by_id(self, founder_id: int) -> bool:
        ...

    def list_image_references(self) -> set[str]:
        ...

    def close(self) -> None:
        ...


class InMemoryRecordStore:
    """Simple in-memory founder table for development and tests."""

    def __init__(self):
        self.rows: Dict[int, FounderRecord] = {}
        # Ids are never reused, even after delete.
        self._next_id = 1
        self._lock = threading.Lock()

    def insert(self, fields: FounderFields, image_url: Optional[str] = None) -> int:
        # Handlers run on a threadpool; id allocation must be atomic.
        with self._lock:
            founder_id = self._next_id
            self._next_id += 1
            self.rows[founder_id] = FounderRecord(
                id=founder_id,
                name=fields.name,
                about=fields.about,
                description=fields.description,
                image_url=image_url,
            )
        return founder_id

    def update(
        self, founder_id: int, fields: FounderFields, image_url: Optional[str] = None
    ) -> bool:
        record = self.rows.get(founder_id)
        if not record:
            return False
        record.name = fields.name
        record.about = fields.about
        record.description = fields.description
        if image_url is not None:
            record.image_url = image_url
        return True

    def get_by_id(self, founder_id: int) -> Optional[FounderRecord]:
        record = self.rows.get(founder_id)
        if record is None:
            return None
        return FounderRecord(**record.as_dict())

    def list_all(self) -> list[FounderRecord]:
        return [FounderRecord(**self.rows[key].as_dict()) for key in sorted(self.rows)]

    def delete_by_id(self, founder_id: int) -> bool:
        return self.rows.pop(founder_id, None) is not None

    def list_image_references(self) -> set[str]:
        return {row.image_url for row in self.rows.values() if row.image_url}

    def reset(self) -> None:
        """Clear all stored data (useful in tests). Ids keep increasing."""
        self.rows.clear()

    def close(self) -> None:
        pass


def _engine_options(database_url: str, timeout_seconds: float) -> dict:
    url = make_url(database_url)
    backend = url.get_backend_name()
    options: dict = {"future": True, "pool_pre_ping": True, "pool_recycle": 1800}
    if backend == "sqlite":
        connect_args: dict = {"timeout": timeout_seconds}
        if url.database in (None, "", ":memory:"):
            # One shared connection so every thread sees the same in-memory DB.
            connect_args["check_same_thread"] = False
            options["poolclass"] = StaticPool
        else:
            options["pool_timeout"] = timeout_seconds
        options["connect_args"] = connect_args
    else:
        options["pool_timeout"] = timeout_seconds
        seconds = max(1, int(timeout_seconds))
        connect_args = {"connect_timeout": seconds}
        if backend == "mysql":
            # Bounds each query round-trip, not just the handshake.
            connect_args["read_timeout"] = seconds
            connect_args["write_timeout"] = seconds
        elif backend == "postgresql":
            connect_args["options"] = f"-c statement_timeout={int(timeout_seconds * 1000)}"
        options["connect_args"] = connect_args
    return options


class SqlRecordStore:
    """
    SQLAlchemy-backed founder table. Accepts any SQLAlchemy URL (MySQL,
    Postgres, or SQLite for tests). The store owns its engine; call
    ``close`` at shutdown to release pooled connections.
    """

    def __init__(self, database_url: str, timeout_seconds: float = 5.0):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlRecordStore")
        self.engine = create_engine(
            database_url, **_engine_options(database_url, timeout_seconds)
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise StorageError("Database error", operation="create_schema") from exc

    @contextmanager
    def _session(self, operation: str) -> Iterator[Session]:
        try:
            with self.Session() as session:
                yield session
        except SQLAlchemyError as exc:
            raise StorageError("Database error", operation=operation) from exc

    @staticmethod
    def _to_record(row: "FounderRow") -> FounderRecord:
        return FounderRecord(
            id=row.id,
            name=row.name,
            about=row.about,
            description=row.description,
            image_url=row.image_url,
        )

    def insert(self, fields: FounderFields, image_url: Optional[str] = None) -> int:
        with self._session("insert") as session:
            row = FounderRow(
                name=fields.name,
                about=fields.about,
                description=fields.description,
                image_url=image_url,
            )
            session.add(row)
            session.commit()
            return row.id

    def update(
        self, founder_id: int, fields: FounderFields, image_url: Optional[str] = None
    ) -> bool:
        with self._session("update") as session:
            row = session.get(FounderRow, founder_id)
            if not row:
                return False
            row.name = fields.name
            row.about = fields.about
            row.description = fields.description
            # The image column is only written when a replacement exists.
            if image_url is not None:
                row.image_url = image_url
            session.commit()
            return True

    def get_by_id(self, founder_id: int) -> Optional[FounderRecord]:
        with self._session("get") as session:
            row = session.get(FounderRow, founder_id)
            if not row:
                return None
            return self._to_record(row)

    def list_all(self) -> list[FounderRecord]:
        with self._session("list") as session:
            rows = session.execute(select(FounderRow).order_by(FounderRow.id.asc()))
            return [self._to_record(row) for row in rows.scalars()]

    def delete_by_id(self, founder_id: int) -> bool:
        with self._session("delete") as session:
            row = session.get(FounderRow, founder_id)
            if not row:
                return False
            session.delete(row)
            session.commit()
            return True

    def list_image_references(self) -> set[str]:
        with self._session("list_images") as session:
            stmt = select(FounderRow.image_url).where(FounderRow.image_url.is_not(None))
            return {value for value in session.execute(stmt).scalars() if value}

    def close(self) -> None:
        self.engine.dispose()


Base = declarative_base()


class FounderRow(Base):
    __tablename__ = "founders"
    # AUTOINCREMENT keeps SQLite from reusing ids of deleted rows.
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    about = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    image_url = Column(String(512), nullable=True)
