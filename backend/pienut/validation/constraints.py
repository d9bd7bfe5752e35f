"""Constraint Checker — uniqueness queries through an injected record store.

The validator never talks to storage directly. It holds a ConstraintChecker,
which holds whatever object implements the RecordStore capability (Redis in
production, an in-memory fake in tests).
"""

import asyncio
from typing import Any, Optional, Protocol, runtime_checkable

import structlog
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from pienut.config import get_settings
from pienut.validation.errors import ConstraintCheckError

logger = structlog.get_logger()


class RecordStoreError(Exception):
    """The backing store could not answer (connectivity, protocol, driver error)."""


@runtime_checkable
class RecordStore(Protocol):
    """Persistence capability consumed by the Constraint Checker."""

    async def record_exists_excluding(
        self,
        collection: str,
        field: str,
        value: Any,
        exclude_identity: Optional[str] = None,
    ) -> bool:
        """True if a record other than ``exclude_identity`` has ``field == value``."""
        ...


class ConstraintChecker:
    """Issues one existence query per reached ``unique`` directive.

    Transient store failures (RecordStoreError, OS-level connection errors,
    timeouts) are retried with exponential backoff. Once attempts run out,
    or the store raises anything else, the failure surfaces as
    ConstraintCheckError, never as a validation message.
    """

    def __init__(
        self,
        store: RecordStore,
        timeout: Optional[float] = None,
        max_attempts: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
    ):
        settings = get_settings()
        self.store = store
        self.timeout = timeout if timeout is not None else settings.UNIQUE_CHECK_TIMEOUT_SECONDS
        self.max_attempts = max_attempts or settings.UNIQUE_CHECK_MAX_ATTEMPTS
        self.backoff_seconds = (
            backoff_seconds if backoff_seconds is not None else settings.UNIQUE_CHECK_BACKOFF_SECONDS
        )

    async def check_unique(
        self,
        collection: str,
        field: str,
        value: Any,
        exclude_identity: Optional[str] = None,
    ) -> bool:
        """Return True when no conflicting record exists.

        Raises:
            ConstraintCheckError: if the store failed on every attempt, or
                raised an error that is not worth retrying
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.backoff_seconds, max=self.backoff_seconds * 10),
            retry=retry_if_exception_type((RecordStoreError, asyncio.TimeoutError, OSError)),
            before_sleep=lambda retry_state: logger.warning(
                "unique_check_retry",
                collection=collection,
                field=field,
                attempt=retry_state.attempt_number,
                wait=retry_state.next_action.sleep,
            ),
        )

        try:
            async for attempt in retrying:
                with attempt:
                    exists = await asyncio.wait_for(
                        self.store.record_exists_excluding(collection, field, value, exclude_identity),
                        timeout=self.timeout,
                    )
        except RetryError as e:
            cause = e.last_attempt.exception()
            raise self._failure(collection, field, cause, self.max_attempts) from cause
        except Exception as e:
            # Anything else the store raises is not retried, but it is still a store failure
            raise self._failure(collection, field, e, attempts=1) from e

        return not exists

    def _failure(
        self, collection: str, field: str, cause: BaseException, attempts: int
    ) -> ConstraintCheckError:
        reason = str(cause) or type(cause).__name__
        logger.error(
            "unique_check_failed",
            collection=collection,
            field=field,
            attempts=attempts,
            error=reason,
        )
        return ConstraintCheckError(
            f"Could not check uniqueness of '{field}' in '{collection}': {reason}",
            collection=collection,
            field=field,
        )
