"""
Database abstraction for SQL backends and an in-memory test implementation.
"""

from __future__ import annotations

import logging
import re
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional, Protocol

from sqlalchemy import (
    Column,
    DateTime,
    Integer,
    String,
    create_engine,
    select,
    text,
)
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from messverse.exceptions import InvalidIdentifier

logger = logging.getLogger(__name__)

MAX_MEMORIES_LIMIT = 200
MEMORY_ID_PATTERN = re.compile(r"^[0-9a-f]{32}$")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def clamp_limit(limit: int) -> int:
    return max(1, min(int(limit), MAX_MEMORIES_LIMIT))


def validate_memory_id(memory_id: str) -> str:
    if not isinstance(memory_id, str) or not MEMORY_ID_PATTERN.match(memory_id):
        raise InvalidIdentifier(str(memory_id))
    return memory_id


def new_memory_id() -> str:
    return uuid.uuid4().hex


class DbClient(Protocol):
    """Interface for database access."""

    def connect(self) -> None:
        ...

    def close(self) -> None:
        ...

    def list_portraits(self) -> list["PortraitRecord"]:
        ...

    def upsert_portrait(
        self, member_id: str, url: str, media_asset_id: Optional[str] = None
    ) -> "PortraitRecord":
        ...

    def list_recent_memories(self, limit: int = 60) -> list["MemoryRecord"]:
        ...

    def create_memory(
        self,
        url: str,
        *,
        media_asset_id: Optional[str] = None,
        caption: Optional[str] = None,
        alt: Optional[str] = None,
        member_id: Optional[str] = None,
    ) -> "MemoryRecord":
        ...

    def delete_memory(self, memory_id: str) -> Optional["MemoryRecord"]:
        ...


@dataclass
class PortraitRecord:
    member_id: str
    url: str
    media_asset_id: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def as_dict(self) -> dict:
        return {
            "memberId": self.member_id,
            "url": self.url,
            "mediaAssetId": self.media_asset_id,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass
class MemoryRecord:
    id: str
    url: str
    media_asset_id: Optional[str] = None
    caption: Optional[str] = None
    alt: Optional[str] = None
    member_id: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "url": self.url,
            "mediaAssetId": self.media_asset_id,
            "caption": self.caption,
            "alt": self.alt,
            "memberId": self.member_id,
            "createdAt": self.created_at,
        }


class InMemoryDbClient:
    """Simple in-memory database for development and tests."""

    def __init__(self):
        self.portraits: Dict[str, PortraitRecord] = {}
        self.memories: list[MemoryRecord] = []
        self._lock = threading.Lock()

    def connect(self) -> None:
        return None

    def close(self) -> None:
        return None

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        with self._lock:
            self.portraits.clear()
            self.memories.clear()

    def list_portraits(self) -> list[PortraitRecord]:
        with self._lock:
            return list(self.portraits.values())

    def upsert_portrait(
        self, member_id: str, url: str, media_asset_id: Optional[str] = None
    ) -> PortraitRecord:
        with self._lock:
            existing = self.portraits.get(member_id)
            if existing:
                existing.url = url
                existing.media_asset_id = media_asset_id
                existing.updated_at = utcnow()
                return existing
            now = utcnow()
            record = PortraitRecord(
                member_id=member_id,
                url=url,
                media_asset_id=media_asset_id,
                created_at=now,
                updated_at=now,
            )
            self.portraits[member_id] = record
            return record

    def list_recent_memories(self, limit: int = 60) -> list[MemoryRecord]:
        # Position in the list is insertion order; later inserts win ties.
        with self._lock:
            indexed = list(enumerate(self.memories))
        indexed.sort(key=lambda item: (item[1].created_at, item[0]), reverse=True)
        return [record for _, record in indexed[: clamp_limit(limit)]]

    def create_memory(
        self,
        url: str,
        *,
        media_asset_id: Optional[str] = None,
        caption: Optional[str] = None,
        alt: Optional[str] = None,
        member_id: Optional[str] = None,
    ) -> MemoryRecord:
        record = MemoryRecord(
            id=new_memory_id(),
            url=url,
            media_asset_id=media_asset_id,
            caption=caption,
            alt=alt,
            member_id=member_id,
            created_at=utcnow(),
        )
        with self._lock:
            self.memories.append(record)
        return record

    def delete_memory(self, memory_id: str) -> Optional[MemoryRecord]:
        validate_memory_id(memory_id)
        with self._lock:
            for index, record in enumerate(self.memories):
                if record.id == memory_id:
                    return self.memories.pop(index)
        return None


class SqlDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlDbClient")
        if database_url.startswith("sqlite") and ":memory:" in database_url:
            # One shared connection so every thread sees the same database.
            self.engine = create_engine(
                database_url,
                future=True,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            self.engine = create_engine(
                database_url,
                future=True,
                pool_pre_ping=True,
                pool_recycle=1800,
            )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        self._connected = False

    def connect(self) -> None:
        if self._connected:
            return
        Base.metadata.create_all(self.engine)
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        self._connected = True
        logger.info("Connected to database %s", self.engine.url.render_as_string())

    def close(self) -> None:
        self.engine.dispose()
        self._connected = False

    def _to_portrait_record(self, row: "PortraitRow") -> PortraitRecord:
        return PortraitRecord(
            member_id=row.member_id,
            url=row.url,
            media_asset_id=row.media_asset_id,
            created_at=_as_utc(row.created_at),
            updated_at=_as_utc(row.updated_at),
        )

    def _to_memory_record(self, row: "MemoryRow") -> MemoryRecord:
        return MemoryRecord(
            id=row.id,
            url=row.url,
            media_asset_id=row.media_asset_id,
            caption=row.caption,
            alt=row.alt,
            member_id=row.member_id,
            created_at=_as_utc(row.created_at),
        )

    def list_portraits(self) -> list[PortraitRecord]:
        self.connect()
        with self.Session() as session:
            rows = session.execute(select(PortraitRow)).scalars().all()
            return [self._to_portrait_record(row) for row in rows]

    def upsert_portrait(
        self, member_id: str, url: str, media_asset_id: Optional[str] = None
    ) -> PortraitRecord:
        self.connect()
        try:
            return self._upsert_portrait(member_id, url, media_asset_id)
        except IntegrityError:
            # A concurrent upload inserted the row first; update it instead.
            logger.info("Portrait insert raced for member %s, retrying", member_id)
            return self._upsert_portrait(member_id, url, media_asset_id)

    def _upsert_portrait(
        self, member_id: str, url: str, media_asset_id: Optional[str]
    ) -> PortraitRecord:
        now = utcnow()
        with self.Session() as session:
            row = session.get(PortraitRow, member_id)
            if row:
                row.url = url
                row.media_asset_id = media_asset_id
                row.updated_at = now
            else:
                row = PortraitRow(
                    member_id=member_id,
                    url=url,
                    media_asset_id=media_asset_id,
                    created_at=now,
                    updated_at=now,
                )
                session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_portrait_record(row)

    def list_recent_memories(self, limit: int = 60) -> list[MemoryRecord]:
        self.connect()
        with self.Session() as session:
            stmt = (
                select(MemoryRow)
                .order_by(MemoryRow.created_at.desc(), MemoryRow.pk.desc())
                .limit(clamp_limit(limit))
            )
            rows = session.execute(stmt).scalars().all()
            return [self._to_memory_record(row) for row in rows]

    def create_memory(
        self,
        url: str,
        *,
        media_asset_id: Optional[str] = None,
        caption: Optional[str] = None,
        alt: Optional[str] = None,
        member_id: Optional[str] = None,
    ) -> MemoryRecord:
        self.connect()
        with self.Session() as session:
            row = MemoryRow(
                id=new_memory_id(),
                url=url,
                media_asset_id=media_asset_id,
                caption=caption,
                alt=alt,
                member_id=member_id,
                created_at=utcnow(),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_memory_record(row)

    def delete_memory(self, memory_id: str) -> Optional[MemoryRecord]:
        validate_memory_id(memory_id)
        self.connect()
        with self.Session() as session:
            row = session.execute(
                select(MemoryRow).where(MemoryRow.id == memory_id)
            ).scalar_one_or_none()
            if not row:
                return None
            record = self._to_memory_record(row)
            session.delete(row)
            session.commit()
            return record


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on the way back.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


Base = declarative_base()


class PortraitRow(Base):
    __tablename__ = "member_portraits"

    member_id = Column(String, primary_key=True)
    url = Column(String, nullable=False)
    media_asset_id = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)


class MemoryRow(Base):
    __tablename__ = "memories"

    pk = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(32), nullable=False, unique=True, index=True)
    url = Column(String, nullable=False)
    media_asset_id = Column(String, nullable=True)
    caption = Column(String, nullable=True)
    alt = Column(String, nullable=True)
    member_id = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
