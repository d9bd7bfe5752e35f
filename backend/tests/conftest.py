import asyncio

import pytest

from pienut.validation import ConstraintChecker, RecordStoreError


class FakeRecordStore:
    """Record store double: counts queries, can fail or stall on demand."""

    def __init__(self, records=None, fail_times=0, delays=None):
        # (collection, field) → {value: identity}
        self.records = records or {}
        self.fail_times = fail_times
        self.delays = delays or {}
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def record_exists_excluding(self, collection, field, value, exclude_identity=None):
        self.calls.append((collection, field, value, exclude_identity))
        if self.fail_times:
            self.fail_times -= 1
            raise RecordStoreError("connection refused")

        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(value, 0.01))
        finally:
            self.in_flight -= 1

        owner = self.records.get((collection, field), {}).get(value)
        return owner is not None and owner != exclude_identity

    def calls_for(self, field):
        return [c for c in self.calls if c[1] == field]


@pytest.fixture
def store():
    """Store with one existing user."""
    return FakeRecordStore(
        records={
            ("users", "username"): {"alice": "user-1"},
            ("users", "email"): {"alice@example.com": "user-1"},
        }
    )


@pytest.fixture
def checker(store):
    """Checker with no backoff so retry tests stay fast."""
    return ConstraintChecker(store, timeout=1.0, max_attempts=3, backoff_seconds=0)
