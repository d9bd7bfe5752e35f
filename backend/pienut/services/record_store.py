"""Record stores — persistence collaborators behind the Constraint Checker.

Both stores keep whole records plus a per-field value index, so uniqueness is
one index lookup. Values are indexed by their canonical JSON form, which keeps
``1`` and ``"1"`` distinct.
"""

import json
from collections import defaultdict
from typing import Any, Optional

import structlog
from redis.exceptions import RedisError

from pienut.validation.constraints import RecordStoreError

logger = structlog.get_logger()


def _index_key(value: Any) -> str:
    return json.dumps(value, sort_keys=True, default=str)


class InMemoryRecordStore:
    """Process-local store for development and tests."""

    def __init__(self):
        self._records: dict[str, dict[str, dict]] = defaultdict(dict)
        # collection → field → canonical value → identities holding it
        self._index: dict[str, dict[str, dict[str, set[str]]]] = defaultdict(
            lambda: defaultdict(lambda: defaultdict(set))
        )

    async def ping(self) -> bool:
        return True

    async def save(self, collection: str, identity: str, record: dict) -> None:
        """Insert or replace a record and re-index its fields."""
        await self.delete(collection, identity)
        self._records[collection][identity] = dict(record)
        for field, value in record.items():
            self._index[collection][field][_index_key(value)].add(identity)

    async def get(self, collection: str, identity: str) -> Optional[dict]:
        record = self._records.get(collection, {}).get(identity)
        return dict(record) if record is not None else None

    async def delete(self, collection: str, identity: str) -> None:
        previous = self._records.get(collection, {}).pop(identity, None)
        if previous is None:
            return
        for field, value in previous.items():
            index = self._index[collection][field]
            owners = index.get(_index_key(value))
            if owners is None:
                continue
            owners.discard(identity)
            if not owners:
                del index[_index_key(value)]

    async def record_exists_excluding(
        self,
        collection: str,
        field: str,
        value: Any,
        exclude_identity: Optional[str] = None,
    ) -> bool:
        owners = self._index.get(collection, {}).get(field, {}).get(_index_key(value), ())
        return any(owner != exclude_identity for owner in owners)


class RedisRecordStore:
    """Redis-backed record store.

    Layout:
        <prefix>:<collection>:record:<identity>              → JSON record body
        <prefix>:<collection>:index:<field>:<canonical value> → set of identities
    """

    def __init__(self, redis_client, prefix: str = "pienut"):
        self.redis = redis_client
        self._prefix = prefix

    def _record_key(self, collection: str, identity: str) -> str:
        return f"{self._prefix}:{collection}:record:{identity}"

    def _owners_key(self, collection: str, field: str, value: Any) -> str:
        return f"{self._prefix}:{collection}:index:{field}:{_index_key(value)}"

    async def ping(self) -> bool:
        try:
            return bool(await self.redis.ping())
        except RedisError as e:
            raise RecordStoreError(str(e)) from e

    async def save(self, collection: str, identity: str, record: dict) -> None:
        """Insert or replace a record and re-index its fields."""
        try:
            previous = await self.get(collection, identity) or {}
            async with self.redis.pipeline(transaction=True) as pipe:
                for field, value in previous.items():
                    pipe.srem(self._owners_key(collection, field, value), identity)
                pipe.set(self._record_key(collection, identity), json.dumps(record, default=str))
                for field, value in record.items():
                    pipe.sadd(self._owners_key(collection, field, value), identity)
                await pipe.execute()
        except RedisError as e:
            raise RecordStoreError(str(e)) from e

        logger.info("record_saved", collection=collection, identity=identity)

    async def get(self, collection: str, identity: str) -> Optional[dict]:
        try:
            data = await self.redis.get(self._record_key(collection, identity))
        except RedisError as e:
            raise RecordStoreError(str(e)) from e
        if data is None:
            return None
        return json.loads(data)

    async def delete(self, collection: str, identity: str) -> None:
        try:
            previous = await self.get(collection, identity)
            if previous is None:
                return
            async with self.redis.pipeline(transaction=True) as pipe:
                for field, value in previous.items():
                    pipe.srem(self._owners_key(collection, field, value), identity)
                pipe.delete(self._record_key(collection, identity))
                await pipe.execute()
        except RedisError as e:
            raise RecordStoreError(str(e)) from e

        logger.info("record_deleted", collection=collection, identity=identity)

    async def record_exists_excluding(
        self,
        collection: str,
        field: str,
        value: Any,
        exclude_identity: Optional[str] = None,
    ) -> bool:
        try:
            owners = await self.redis.smembers(self._owners_key(collection, field, value))
        except RedisError as e:
            raise RecordStoreError(str(e)) from e
        for owner in owners:
            if isinstance(owner, bytes):
                owner = owner.decode("utf-8")
            if owner != exclude_identity:
                return True
        return False
