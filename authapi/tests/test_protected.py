"""
Test cases for the protected endpoints.
"""
import pytest
from httpx import ASGITransport, AsyncClient

from authapi.tests.conftest import flip_bit


@pytest.fixture
def token(codec):
    return codec.issue("newuser")


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def client_for(app, ip: str = "127.0.0.1") -> AsyncClient:
    transport = ASGITransport(app=app, client=(ip, 51000))
    return AsyncClient(base_url="http://test", transport=transport)


@pytest.mark.asyncio
async def test_greeting(app, token):
    async with client_for(app) as ac:
        response = await ac.get("/protected", headers=bearer(token))
    assert response.status_code == 200
    assert response.json() == {"message": "Hello, newuser! This is your profile."}


@pytest.mark.asyncio
async def test_profile_returns_claims(app, token, clock):
    async with client_for(app) as ac:
        response = await ac.get("/protected/profile", headers=bearer(token))
    assert response.status_code == 200
    assert response.json() == {
        "user": {
            "username": "newuser",
            "iat": int(clock.now),
            "exp": int(clock.now) + 3600,
        },
        "message": "Profile retrieved successfully",
    }


@pytest.mark.asyncio
async def test_validate(app, token):
    async with client_for(app) as ac:
        response = await ac.post("/protected/validate", headers=bearer(token))
    assert response.status_code == 200
    assert response.json() == {
        "valid": True,
        "message": "Token is valid",
        "user": {"username": "newuser"},
    }


@pytest.mark.asyncio
@pytest.mark.parametrize("path,method", [
    ("/protected", "GET"),
    ("/protected/profile", "GET"),
    ("/protected/validate", "POST"),
])
async def test_missing_token_is_401_with_empty_body(app, path, method):
    async with client_for(app) as ac:
        response = await ac.request(method, path)
    assert response.status_code == 401
    assert response.content == b""


@pytest.mark.asyncio
@pytest.mark.parametrize("header", ["Basic dXNlcjpwYXNz", "Bearer", "token-without-scheme"])
async def test_unusable_header_is_401(app, header):
    async with client_for(app) as ac:
        response = await ac.get("/protected", headers={"Authorization": header})
    assert response.status_code == 401
    assert response.content == b""


@pytest.mark.asyncio
async def test_invalid_token_is_403_with_empty_body(app):
    async with client_for(app) as ac:
        response = await ac.get("/protected", headers=bearer("invalid.token.here"))
    assert response.status_code == 403
    assert response.content == b""


@pytest.mark.asyncio
async def test_expired_token_is_403(app, token, clock):
    clock.advance(3600)
    async with client_for(app) as ac:
        response = await ac.get("/protected/profile", headers=bearer(token))
    assert response.status_code == 403
    assert response.content == b""


@pytest.mark.asyncio
async def test_tampered_token_is_403(app, token):
    async with client_for(app) as ac:
        response = await ac.post("/protected/validate", headers=bearer(flip_bit(token, 1, 4)))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_token_from_login_is_accepted(app):
    credentials = {"username": "newuser", "password": "SecurePass123!"}
    async with client_for(app) as ac:
        await ac.post("/auth/register", json=credentials)
        token = (await ac.post("/auth/login", json=credentials)).json()["token"]
        response = await ac.get("/protected/profile", headers=bearer(token))
    assert response.status_code == 200
    assert response.json()["user"]["username"] == "newuser"


@pytest.mark.asyncio
async def test_sensitive_rate_limit(app, token, limiter_clock):
    async with client_for(app) as ac:
        for _ in range(10):
            assert (await ac.get("/protected", headers=bearer(token))).status_code == 200

        response = await ac.get("/protected/profile", headers=bearer(token))
        assert response.status_code == 429
        assert response.json() == {
            "message": "Too many requests to sensitive endpoints, please try again after 1 hour",
            "retryAfter": 60,
        }

        limiter_clock.advance(60 * 60)
        assert (await ac.get("/protected", headers=bearer(token))).status_code == 200


@pytest.mark.asyncio
async def test_rate_limit_applies_before_authentication(app):
    async with client_for(app) as ac:
        for _ in range(10):
            assert (await ac.get("/protected")).status_code == 401
        response = await ac.get("/protected")
    assert response.status_code == 429


@pytest.mark.asyncio
async def test_sensitive_limit_is_per_client(app, token):
    async with client_for(app, "203.0.113.7") as ac:
        for _ in range(11):
            await ac.get("/protected", headers=bearer(token))
    async with client_for(app, "198.51.100.1") as ac:
        response = await ac.get("/protected", headers=bearer(token))
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_denied_access_is_audited(app, caplog):
    with caplog.at_level("INFO"):
        async with client_for(app, "203.0.113.7") as ac:
            await ac.get("/protected", headers={"User-Agent": "pytest-agent"})
    assert "No token provided" in caplog.text
    assert "203.0.113.7" in caplog.text
    assert "pytest-agent" in caplog.text


@pytest.mark.asyncio
async def test_denied_access_still_reports_budget(app):
    async with client_for(app) as ac:
        response = await ac.get("/protected")
    assert response.status_code == 401
    assert response.headers["RateLimit-Limit"] == "10"
    assert response.headers["RateLimit-Remaining"] == "9"
    assert response.headers["RateLimit-Reset"] == "3600"
