"""
Shared fixtures for the authentication API tests.
"""
import pytest

from authapi.auth.jwt import TokenCodec
from authapi.auth.rate_limiter import RateLimiter
from authapi.auth.store import InMemoryCredentialStore
from authapi.auth.users import UserService
from authapi.base_service import BaseService
from authapi.config import Settings
from authapi.main import create_app

SECRET = "test-signing-secret-0123456789abcdef"
# Lowest cost bcrypt accepts; keeps the suite fast
TEST_BCRYPT_ROUNDS = 4


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def limiter_clock():
    return FakeClock(start=1000.0)


@pytest.fixture
def settings():
    return Settings(jwt_secret=SECRET, bcrypt_rounds=TEST_BCRYPT_ROUNDS)


@pytest.fixture
def codec(clock):
    return TokenCodec(SECRET, clock=clock)


@pytest.fixture
def limiter(limiter_clock):
    return RateLimiter(clock=limiter_clock)


@pytest.fixture
def store():
    return InMemoryCredentialStore()


@pytest.fixture
def user_service(store, codec):
    return UserService(store, codec, audit=BaseService("test"), bcrypt_rounds=TEST_BCRYPT_ROUNDS)


@pytest.fixture
def app(settings, store, clock, limiter_clock):
    return create_app(settings, store=store, clock=clock, limiter_clock=limiter_clock)


B64URL = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_"


def flip_bit(token: str, segment: int, index: int, bit: int = 1) -> str:
    """Flip one bit of one base64url character in a token segment."""
    parts = token.split(".")
    chars = list(parts[segment])
    chars[index] = B64URL[B64URL.index(chars[index]) ^ bit]
    parts[segment] = "".join(chars)
    return ".".join(parts)
