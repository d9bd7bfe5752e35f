"""Health check endpoint — record store reachability and the compiled rule specs."""

import asyncio
import time

from fastapi import APIRouter, Request

from pienut.config import get_settings
from pienut.models.responses import HealthResponse, StoreHealth, ValidatorSummary
from pienut.validation import RecordStoreError

router = APIRouter()

_start_time = time.time()


async def _probe_store(store) -> StoreHealth:
    """Ping the store within the same budget a uniqueness query gets."""
    backend = type(store).__name__
    start = time.perf_counter()
    try:
        await asyncio.wait_for(store.ping(), timeout=get_settings().UNIQUE_CHECK_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        return StoreHealth(status="unhealthy", backend=backend, message="ping timed out")
    except (RecordStoreError, OSError) as e:
        return StoreHealth(status="unhealthy", backend=backend, message=str(e))
    return StoreHealth(
        status="healthy",
        backend=backend,
        latency_ms=round((time.perf_counter() - start) * 1000, 2),
    )


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    """Report whether ``unique`` rules can currently be answered."""
    record_store = await _probe_store(request.app.state.record_store)

    validators = {
        name: ValidatorSummary(
            fields=list(validator.spec.field_names),
            needs_record_store=validator.spec.needs_constraints,
        )
        for name, validator in request.app.state.validators.items()
    }

    # Without a store, only validators that never query it keep working
    if record_store.status == "healthy":
        status = "healthy"
    elif any(v.needs_record_store for v in validators.values()):
        status = "degraded"
    else:
        status = "healthy"

    return HealthResponse(
        status=status,
        uptime_seconds=round(time.time() - _start_time, 2),
        record_store=record_store,
        validators=validators,
    )
