"""
Application container.

Holds the long-lived components built from Settings so routers can reach
them through request.app.state instead of module globals.
"""
from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import Request

from authapi.auth.jwt import TokenCodec
from authapi.auth.middleware import AuthorizationGate
from authapi.auth.rate_limiter import RateLimiter
from authapi.auth.store import CredentialStore, InMemoryCredentialStore, SqlCredentialStore
from authapi.auth.users import UserService
from authapi.base_service import BaseService
from authapi.config import Settings


@dataclass
class Container:
    settings: Settings
    audit: BaseService
    codec: TokenCodec
    limiter: RateLimiter
    store: CredentialStore
    users: UserService
    gate: AuthorizationGate

    @classmethod
    def build(
        cls,
        settings: Settings,
        store: Optional[CredentialStore] = None,
        clock: Optional[Callable[[], float]] = None,
        limiter_clock: Optional[Callable[[], float]] = None,
    ) -> "Container":
        """
        Wire every component from settings.

        Args:
            settings: Validated configuration
            store: Credential store override; otherwise SQL when DATABASE_URL
                is set, in-memory when it is not
            clock: Wall clock for token issuance and expiry
            limiter_clock: Monotonic clock for rate limit windows
        """
        audit = BaseService()
        if store is None:
            if settings.database_url:
                store = SqlCredentialStore(settings.database_url)
            else:
                store = InMemoryCredentialStore()
        codec = TokenCodec(settings.jwt_secret, ttl=settings.token_ttl, clock=clock)
        limiter = RateLimiter(clock=limiter_clock, max_keys=settings.rate_limit_max_keys)
        users = UserService(store, codec, audit=audit, bcrypt_rounds=settings.bcrypt_rounds)
        gate = AuthorizationGate(codec, audit=audit)
        return cls(
            settings=settings,
            audit=audit,
            codec=codec,
            limiter=limiter,
            store=store,
            users=users,
            gate=gate,
        )


def get_container(request: Request) -> Container:
    """FastAPI dependency returning the application container."""
    return request.app.state.container


def client_address(request: Request) -> str:
    """Rate limit and audit key for the caller."""
    return request.client.host if request.client else "unknown"
