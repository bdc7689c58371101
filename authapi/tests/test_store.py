"""
Tests for the credential stores.
"""
import asyncio

import pytest
import pytest_asyncio

from authapi.auth.models import CredentialRecord, hash_password
from authapi.auth.store import InMemoryCredentialStore, SqlCredentialStore
from authapi.errors import UsernameTakenError
from authapi.tests.conftest import TEST_BCRYPT_ROUNDS


def make_record(username: str, password: str = "SecurePass123!") -> CredentialRecord:
    return CredentialRecord(username=username, password_hash=hash_password(password, TEST_BCRYPT_ROUNDS))


@pytest_asyncio.fixture
async def sql_store(tmp_path):
    store = SqlCredentialStore(f"sqlite+aiosqlite:///{tmp_path / 'users.db'}")
    await store.create_tables()
    yield store
    await store.close()


@pytest.mark.asyncio
async def test_in_memory_insert_and_get():
    store = InMemoryCredentialStore()
    record = make_record("newuser")

    await store.insert(record)

    assert await store.get("newuser") == record
    assert await store.exists("newuser")
    assert await store.get("missing") is None
    assert not await store.exists("missing")
    assert await store.count() == 1


@pytest.mark.asyncio
async def test_in_memory_rejects_duplicate():
    store = InMemoryCredentialStore([make_record("newuser")])
    with pytest.raises(UsernameTakenError):
        await store.insert(make_record("newuser", "OtherPass456!"))
    assert (await store.get("newuser")).verify_password("SecurePass123!")


@pytest.mark.asyncio
async def test_in_memory_concurrent_duplicates():
    store = InMemoryCredentialStore()
    record = make_record("newuser")

    results = await asyncio.gather(
        *(store.insert(record) for _ in range(20)), return_exceptions=True
    )

    assert sum(1 for r in results if isinstance(r, CredentialRecord)) == 1
    assert sum(1 for r in results if isinstance(r, UsernameTakenError)) == 19


@pytest.mark.asyncio
async def test_in_memory_list_keeps_registration_order():
    store = InMemoryCredentialStore()
    for name in ("charlie", "alice", "bob"):
        await store.insert(make_record(name))
    assert [r.username for r in await store.list_all()] == ["charlie", "alice", "bob"]


def test_password_is_stored_hashed():
    record = make_record("newuser")
    assert record.password_hash != "SecurePass123!"
    assert record.password_hash.startswith("$2")
    assert record.verify_password("SecurePass123!")
    assert not record.verify_password("SecurePass123?")
    assert "SecurePass123!" not in repr(record)


def test_same_password_gets_distinct_salts():
    assert make_record("a").password_hash != make_record("b").password_hash


def test_sql_store_requires_url_or_engine():
    with pytest.raises(ValueError):
        SqlCredentialStore()


@pytest.mark.asyncio
async def test_sql_store_round_trip(sql_store):
    await sql_store.insert(make_record("newuser"))

    record = await sql_store.get("newuser")
    assert record is not None
    assert record.username == "newuser"
    assert record.verify_password("SecurePass123!")
    assert await sql_store.exists("newuser")
    assert not await sql_store.exists("ghost")
    assert await sql_store.get("ghost") is None


@pytest.mark.asyncio
async def test_sql_store_rejects_duplicate(sql_store):
    await sql_store.insert(make_record("newuser"))
    with pytest.raises(UsernameTakenError):
        await sql_store.insert(make_record("newuser"))
    assert await sql_store.count() == 1


@pytest.mark.asyncio
async def test_sql_store_list(sql_store):
    for name in ("charlie", "alice"):
        await sql_store.insert(make_record(name))
    assert [r.username for r in await sql_store.list_all()] == ["charlie", "alice"]
