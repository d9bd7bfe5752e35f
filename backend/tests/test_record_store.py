"""
Tests for the record stores
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from pienut.services.record_store import InMemoryRecordStore, RedisRecordStore
from pienut.validation import RecordStore, RecordStoreError


class TestInMemoryRecordStore:
    """Tests for InMemoryRecordStore"""

    def test_satisfies_capability(self):
        assert isinstance(InMemoryRecordStore(), RecordStore)

    @pytest.mark.asyncio
    async def test_exists_after_save(self):
        store = InMemoryRecordStore()
        await store.save("users", "u1", {"email": "a@example.com", "age": 30})

        assert await store.record_exists_excluding("users", "email", "a@example.com")
        assert not await store.record_exists_excluding("users", "email", "b@example.com")
        assert not await store.record_exists_excluding("posts", "email", "a@example.com")

    @pytest.mark.asyncio
    async def test_values_keep_their_type(self):
        store = InMemoryRecordStore()
        await store.save("users", "u1", {"age": 30})

        assert await store.record_exists_excluding("users", "age", 30)
        assert not await store.record_exists_excluding("users", "age", "30")

    @pytest.mark.asyncio
    async def test_exclusion(self):
        store = InMemoryRecordStore()
        await store.save("users", "u1", {"email": "a@example.com"})

        assert not await store.record_exists_excluding("users", "email", "a@example.com", "u1")
        assert await store.record_exists_excluding("users", "email", "a@example.com", "u2")

    @pytest.mark.asyncio
    async def test_save_reindexes_changed_values(self):
        store = InMemoryRecordStore()
        await store.save("users", "u1", {"email": "old@example.com"})
        await store.save("users", "u1", {"email": "new@example.com"})

        assert not await store.record_exists_excluding("users", "email", "old@example.com")
        assert await store.record_exists_excluding("users", "email", "new@example.com")
        assert await store.get("users", "u1") == {"email": "new@example.com"}

    @pytest.mark.asyncio
    async def test_delete_keeps_other_owners(self):
        store = InMemoryRecordStore()
        await store.save("users", "u1", {"role": "member"})
        await store.save("users", "u2", {"role": "member"})

        await store.delete("users", "u2")
        assert await store.record_exists_excluding("users", "role", "member")
        assert await store.get("users", "u2") is None

        await store.delete("users", "u1")
        assert not await store.record_exists_excluding("users", "role", "member")

    @pytest.mark.asyncio
    async def test_shared_value_excluding_one_owner(self):
        """Should still see the other holder when one of two is excluded"""
        store = InMemoryRecordStore()
        await store.save("users", "u1", {"role": "member"})
        await store.save("users", "u2", {"role": "member"})

        assert await store.record_exists_excluding("users", "role", "member", "u1")
        assert await store.record_exists_excluding("users", "role", "member", "u2")

    @pytest.mark.asyncio
    async def test_resave_of_one_owner_keeps_value_indexed(self):
        store = InMemoryRecordStore()
        await store.save("users", "u1", {"role": "member"})
        await store.save("users", "u2", {"role": "member"})
        await store.save("users", "u2", {"role": "admin"})

        assert await store.record_exists_excluding("users", "role", "member", "u2")
        assert not await store.record_exists_excluding("users", "role", "member", "u1")


def redis_client(**methods):
    """MagicMock Redis client whose pipeline records queued commands."""
    client = MagicMock()
    for name, value in methods.items():
        setattr(client, name, value)
    pipe = MagicMock()
    pipe.__aenter__.return_value = pipe
    pipe.execute = AsyncMock(return_value=[])
    client.pipeline = MagicMock(return_value=pipe)
    return client, pipe


class TestRedisRecordStore:
    """Tests for RedisRecordStore against a mocked client"""

    @pytest.mark.asyncio
    async def test_lookup_uses_value_set(self):
        client, _ = redis_client(smembers=AsyncMock(return_value={"u1"}))
        store = RedisRecordStore(client, prefix="test")

        assert await store.record_exists_excluding("users", "email", "a@example.com")
        client.smembers.assert_awaited_once_with('test:users:index:email:"a@example.com"')

    @pytest.mark.asyncio
    async def test_lookup_respects_exclusion(self):
        client, _ = redis_client(smembers=AsyncMock(return_value={b"u1"}))
        store = RedisRecordStore(client)

        assert not await store.record_exists_excluding("users", "email", "a@example.com", "u1")

    @pytest.mark.asyncio
    async def test_shared_value_excluding_one_owner(self):
        client, _ = redis_client(smembers=AsyncMock(return_value={b"u1", b"u2"}))
        store = RedisRecordStore(client)

        assert await store.record_exists_excluding("users", "role", "member", "u2")

    @pytest.mark.asyncio
    async def test_missing_value(self):
        client, _ = redis_client(smembers=AsyncMock(return_value=set()))
        store = RedisRecordStore(client)

        assert not await store.record_exists_excluding("users", "email", "a@example.com")

    @pytest.mark.asyncio
    async def test_save_moves_identity_between_value_sets(self):
        client, pipe = redis_client(get=AsyncMock(return_value='{"role": "member"}'))
        store = RedisRecordStore(client, prefix="test")

        await store.save("users", "u2", {"role": "admin"})

        pipe.srem.assert_called_once_with('test:users:index:role:"member"', "u2")
        pipe.sadd.assert_called_once_with('test:users:index:role:"admin"', "u2")
        pipe.set.assert_called_once_with("test:users:record:u2", '{"role": "admin"}')
        pipe.execute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_delete_only_removes_own_identity(self):
        client, pipe = redis_client(get=AsyncMock(return_value='{"role": "member"}'))
        store = RedisRecordStore(client, prefix="test")

        await store.delete("users", "u1")

        pipe.srem.assert_called_once_with('test:users:index:role:"member"', "u1")
        pipe.delete.assert_called_once_with("test:users:record:u1")

    @pytest.mark.asyncio
    async def test_driver_errors_are_wrapped(self):
        client, _ = redis_client(
            smembers=AsyncMock(side_effect=RedisConnectionError("Connection refused")),
            ping=AsyncMock(side_effect=RedisConnectionError("Connection refused")),
        )
        store = RedisRecordStore(client)

        with pytest.raises(RecordStoreError, match="Connection refused"):
            await store.record_exists_excluding("users", "email", "a@example.com")
        with pytest.raises(RecordStoreError):
            await store.ping()

    @pytest.mark.asyncio
    async def test_get_decodes_json(self):
        client, _ = redis_client(get=AsyncMock(return_value='{"email": "a@example.com"}'))
        store = RedisRecordStore(client, prefix="test")

        assert await store.get("users", "u1") == {"email": "a@example.com"}
        client.get.assert_awaited_once_with("test:users:record:u1")
