"""API response models."""

from pydantic import BaseModel
from typing import Optional, Literal
from datetime import datetime


class ErrorResponse(BaseModel):
    """Error envelope returned for every non-2xx response."""

    success: bool = False
    status: int
    message: str
    errors: Optional[dict[str, str]] = None  # Field → message, validation failures only


class UserResponse(BaseModel):
    """A user record as exposed by the API (no credentials)."""

    id: str
    username: str
    email: str
    age: Optional[int] = None
    role: str = "member"
    created_at: datetime
    updated_at: Optional[datetime] = None


class StoreHealth(BaseModel):
    """Reachability of the record store behind the uniqueness checks."""

    status: Literal["healthy", "unhealthy"]
    backend: str
    latency_ms: Optional[float] = None
    message: Optional[str] = None


class ValidatorSummary(BaseModel):
    """A compiled rule spec held by the app."""

    fields: list[str]
    needs_record_store: bool


class HealthResponse(BaseModel):
    """System health check response."""

    status: Literal["healthy", "degraded"]
    version: str = "1.0.0"
    uptime_seconds: float
    record_store: StoreHealth
    validators: dict[str, ValidatorSummary]
