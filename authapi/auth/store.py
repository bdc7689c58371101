"""
Credential stores.

A CredentialStore maps usernames to CredentialRecords. The Auth Service only
talks to this interface, so the in-memory store used by default can be
replaced by the SQLAlchemy store without touching registration or login.
Insert is the only write and it is atomic: the uniqueness check and the
write happen as one step.
"""
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.future import select

from authapi.auth.models import Base, CredentialRecord, UserCredential
from authapi.errors import UsernameTakenError


class CredentialStore(ABC):
    """Lookup-by-username credential storage."""

    @abstractmethod
    async def get(self, username: str) -> Optional[CredentialRecord]:
        """Return the record for username, or None."""

    @abstractmethod
    async def exists(self, username: str) -> bool:
        """Return True if username is registered."""

    @abstractmethod
    async def insert(self, record: CredentialRecord) -> CredentialRecord:
        """
        Store a new record.

        Raises:
            UsernameTakenError: If the username is already registered
        """

    @abstractmethod
    async def list_all(self) -> List[CredentialRecord]:
        """Return all records in registration order."""

    async def count(self) -> int:
        return len(await self.list_all())

    async def close(self) -> None:
        """Release any resources held by the store."""


class InMemoryCredentialStore(CredentialStore):
    """
    Process-local store.

    A threading lock guards the dictionary so the store is safe from both the
    event loop and worker threads.
    """

    def __init__(self, records: Optional[List[CredentialRecord]] = None):
        self._records: Dict[str, CredentialRecord] = {}
        self._lock = threading.Lock()
        for record in records or []:
            self._insert_locked(record)

    def _insert_locked(self, record: CredentialRecord) -> CredentialRecord:
        with self._lock:
            if record.username in self._records:
                raise UsernameTakenError()
            self._records[record.username] = record
        return record

    async def get(self, username: str) -> Optional[CredentialRecord]:
        with self._lock:
            return self._records.get(username)

    async def exists(self, username: str) -> bool:
        with self._lock:
            return username in self._records

    async def insert(self, record: CredentialRecord) -> CredentialRecord:
        return self._insert_locked(record)

    async def list_all(self) -> List[CredentialRecord]:
        with self._lock:
            return list(self._records.values())

    async def count(self) -> int:
        with self._lock:
            return len(self._records)


class SqlCredentialStore(CredentialStore):
    """
    SQLAlchemy-backed store.

    Uniqueness is enforced by the UNIQUE constraint on users.username; a
    losing concurrent insert surfaces as IntegrityError and is reported as
    UsernameTakenError.

    Args:
        database_url: Async SQLAlchemy URL, e.g. postgresql+asyncpg://...
        engine: Existing engine to use instead of creating one
    """

    def __init__(self, database_url: Optional[str] = None, engine: Optional[AsyncEngine] = None):
        if engine is None:
            if not database_url:
                raise ValueError("database_url or engine is required")
            engine = create_async_engine(database_url, echo=False, future=True)
        self.engine = engine
        self._sessionmaker = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    async def create_tables(self) -> None:
        """Create the users table if it does not exist."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def get(self, username: str) -> Optional[CredentialRecord]:
        async with self._sessionmaker() as session:
            result = await session.execute(
                select(UserCredential).where(UserCredential.username == username)
            )
            row = result.scalar_one_or_none()
            return row.to_record() if row is not None else None

    async def exists(self, username: str) -> bool:
        async with self._sessionmaker() as session:
            result = await session.execute(
                select(func.count()).select_from(UserCredential).where(
                    UserCredential.username == username
                )
            )
            return result.scalar_one() > 0

    async def insert(self, record: CredentialRecord) -> CredentialRecord:
        async with self._sessionmaker() as session:
            session.add(UserCredential(
                username=record.username,
                hashed_password=record.password_hash,
                created_at=record.created_at,
            ))
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise UsernameTakenError() from e
        return record

    async def list_all(self) -> List[CredentialRecord]:
        async with self._sessionmaker() as session:
            result = await session.execute(select(UserCredential).order_by(UserCredential.id))
            return [row.to_record() for row in result.scalars().all()]

    async def count(self) -> int:
        async with self._sessionmaker() as session:
            result = await session.execute(select(func.count()).select_from(UserCredential))
            return result.scalar_one()

    async def close(self) -> None:
        await self.engine.dispose()
