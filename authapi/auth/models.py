"""
Authentication models.

This module defines:
- CredentialRecord, the stored form of a user's credentials
- UserCredential, the SQLAlchemy table backing the database store
- PublicUser, the only user view returned to clients
- bcrypt password hashing helpers
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

import bcrypt
from pydantic import BaseModel
from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.orm import declarative_base

Base = declarative_base()

# bcrypt only looks at the first 72 bytes of a password
BCRYPT_MAX_BYTES = 72


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(password: str, rounds: int = 12) -> str:
    """Generate a salted bcrypt hash."""
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def check_password(password: str, password_hash: str) -> bool:
    """Check a password against a bcrypt hash."""
    return bcrypt.checkpw(_password_bytes(password), password_hash.encode("utf-8"))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CredentialRecord:
    """A user's stored credentials. Immutable once created."""
    username: str
    password_hash: str = field(repr=False)
    created_at: datetime = field(default_factory=_utcnow)

    def verify_password(self, password: str) -> bool:
        """Check if provided password matches the stored hash."""
        return check_password(password, self.password_hash)

    @classmethod
    def create(cls, username: str, password: str, rounds: int = 12) -> "CredentialRecord":
        """Build a record from a plaintext password."""
        return cls(username=username, password_hash=hash_password(password, rounds))


class UserCredential(Base):
    """Database row for a registered user."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(20), unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    def to_record(self) -> CredentialRecord:
        return CredentialRecord(
            username=self.username,
            password_hash=self.hashed_password,
            created_at=self.created_at,
        )


class PublicUser(BaseModel):
    """User information returned to clients."""
    username: str


class UserSummary(BaseModel):
    """Entry in the public user listing."""
    username: str
    description: Optional[str] = None
