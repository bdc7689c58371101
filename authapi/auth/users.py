"""
User registration and login.

This module provides:
- Request models for the auth endpoints
- UserService, which ties the validators, the credential store and the
  token codec together
"""
import secrets
from dataclasses import dataclass
from typing import List, Optional

from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from authapi.auth.jwt import TokenCodec
from authapi.auth.models import CredentialRecord, PublicUser, UserSummary, check_password, hash_password
from authapi.auth.store import CredentialStore
from authapi.auth.validators import validate_password, validate_username
from authapi.base_service import BaseService
from authapi.errors import (
    InvalidCredentialsError,
    MissingFieldsError,
    UsernameTakenError,
    ValidationError,
)

# Accounts created when SEED_DEMO_USERS is enabled. They predate the password
# policy and are inserted without validation.
DEMO_USERS = [
    ("admin", "admin123"),
    ("user", "password123"),
    ("demo", "demo123"),
]


class UserCreate(BaseModel):
    """Model for user registration."""
    username: Optional[str] = None
    password: Optional[str] = None


class UserLogin(BaseModel):
    """Model for user login."""
    username: Optional[str] = None
    password: Optional[str] = None


@dataclass(frozen=True)
class LoginResult:
    token: str
    user: PublicUser


class UserService:
    """
    Service for registration and login.

    Args:
        store: Credential storage
        codec: Token issuer
        audit: Structured logger for authentication events
        bcrypt_rounds: Cost factor for new password hashes
    """

    def __init__(
        self,
        store: CredentialStore,
        codec: TokenCodec,
        audit: Optional[BaseService] = None,
        bcrypt_rounds: int = 12,
    ):
        self.store = store
        self.codec = codec
        self.audit = audit or BaseService()
        self.bcrypt_rounds = bcrypt_rounds
        # Compared against when the username is unknown so both failure
        # paths cost one bcrypt check
        self._dummy_hash = hash_password(secrets.token_urlsafe(16), bcrypt_rounds)

    async def register(
        self, username: Optional[str], password: Optional[str], ip: Optional[str] = None
    ) -> PublicUser:
        """
        Register a new user.

        Args:
            username: Requested username
            password: Plaintext password
            ip: Client address, for the audit log

        Returns:
            Public view of the created user

        Raises:
            MissingFieldsError: If either field is empty
            ValidationError: If the username or password breaks policy
            UsernameTakenError: If the username already exists
        """
        if not username or not password:
            self.audit.log_auth(username, "registration_attempt", ip, success=False)
            self.audit.log_security("Missing registration fields", {"ip": ip})
            raise MissingFieldsError()

        result = validate_username(username)
        if not result.valid:
            self._registration_failed(username, ip, "Invalid username format", result.reason)
            raise ValidationError(result.reason)

        result = validate_password(password)
        if not result.valid:
            self._registration_failed(username, ip, "Weak password attempt", result.reason)
            raise ValidationError(result.reason)

        if await self.store.exists(username):
            self._registration_failed(username, ip, "Username already exists")
            raise UsernameTakenError()

        record = await run_in_threadpool(
            CredentialRecord.create, username, password, self.bcrypt_rounds
        )
        try:
            await self.store.insert(record)
        except UsernameTakenError:
            # Lost a race with a concurrent registration
            self._registration_failed(username, ip, "Username already exists")
            raise

        self.audit.log_auth(username, "registration_success", ip, success=True)
        return PublicUser(username=record.username)

    async def login(
        self,
        username: Optional[str],
        password: Optional[str],
        ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> LoginResult:
        """
        Authenticate a user and issue an access token.

        Raises:
            MissingFieldsError: If either field is empty
            InvalidCredentialsError: If the username is unknown or the
                password is wrong; the two cases are indistinguishable
        """
        if not username or not password:
            self.audit.log_auth(username, "login_attempt", ip, success=False)
            self.audit.log_security("Missing credentials", {"ip": ip})
            raise MissingFieldsError()

        record = await self.store.get(username)
        if record is None:
            await run_in_threadpool(check_password, password, self._dummy_hash)
            matched = False
        else:
            matched = await run_in_threadpool(record.verify_password, password)

        if not matched:
            self.audit.log_auth(username, "login_failed", ip, success=False)
            self.audit.log_security("Invalid credentials", {
                "username": username,
                "ip": ip,
                "userAgent": user_agent,
            })
            raise InvalidCredentialsError()

        token = self.codec.issue(record.username)
        self.audit.log_auth(record.username, "login_success", ip, success=True)
        return LoginResult(token=token, user=PublicUser(username=record.username))

    async def list_users(self) -> List[UserSummary]:
        """List registered usernames. Contains no credential material."""
        return [
            UserSummary(username=r.username, description=f"{r.username} account")
            for r in await self.store.list_all()
        ]

    async def seed_demo_users(self) -> int:
        """Insert the demo accounts that are not present yet. Returns how many were added."""
        added = 0
        for username, password in DEMO_USERS:
            if await self.store.exists(username):
                continue
            record = await run_in_threadpool(
                CredentialRecord.create, username, password, self.bcrypt_rounds
            )
            try:
                await self.store.insert(record)
            except UsernameTakenError:
                continue
            added += 1
        if added:
            self.audit.log_event("users.seeded", {"count": added})
        return added

    def _registration_failed(
        self, username: str, ip: Optional[str], event: str, reason: Optional[str] = None
    ) -> None:
        self.audit.log_auth(username, "registration_failed", ip, success=False)
        details = {"username": username, "ip": ip}
        if reason:
            details["reason"] = reason
        self.audit.log_security(event, details)
