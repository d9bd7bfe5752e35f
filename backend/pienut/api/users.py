"""Users API — sign-up and profile update, validated before anything is written."""

import uuid
from datetime import datetime
from typing import Any

import bcrypt
from fastapi import APIRouter, Body, HTTPException, Request

import structlog

from pienut.models.responses import UserResponse
from pienut.validation import Validator
from pienut.validation.evaluators import is_empty, to_int

logger = structlog.get_logger()

router = APIRouter()

COLLECTION = "users"

ROLES = ["member", "editor", "admin"]

# ─── Rule Specs ───

CREATE_USER_RULES = {
    "username": {
        "required": True,
        "type": "alphanumeric",
        "min_len": 3,
        "max_len": 30,
        "unique": [[COLLECTION, "username"], "Username is already taken"],
    },
    "email": {
        "required": True,
        "email": True,
        "unique": [[COLLECTION, "email"], "Email is already registered"],
    },
    "password": {"required": True, "type": "string", "min_len": 8, "max_len": 128},
    "age": {"type": "int", "between": [13, 120]},
    "role": {"in": ROLES},
}

UPDATE_USER_RULES = {
    "username": {
        "type": "alphanumeric",
        "min_len": 3,
        "max_len": 30,
        "unique": [[COLLECTION, "username"], "Username is already taken"],
    },
    "email": {
        "email": True,
        "unique": [[COLLECTION, "email"], "Email is already registered"],
    },
    "age": {"type": "int", "between": [13, 120]},
    "role": {"in": ROLES},
}


def build_user_validators(store) -> dict[str, Validator]:
    """Compile the users rule specs against a record store (once, at startup)."""
    return {
        "create": Validator(CREATE_USER_RULES, store=store),
        "update": Validator(UPDATE_USER_RULES, store=store),
    }


def _hash_password(password: str) -> str:
    # bcrypt only reads the first 72 bytes
    secret = password.encode("utf-8")[:72]
    return bcrypt.hashpw(secret, bcrypt.gensalt()).decode("utf-8")


def _to_response(identity: str, record: dict) -> UserResponse:
    return UserResponse(id=identity, **{k: v for k, v in record.items() if k != "password_hash"})


def _reject(report) -> HTTPException:
    return HTTPException(
        status_code=422,
        detail={"message": "The given data was invalid", "errors": report.errors()},
    )


# ─── Endpoints ───


@router.post("/users", status_code=201, response_model=UserResponse)
async def create_user(request: Request, payload: dict[str, Any] = Body(...)):
    """Register a new user."""
    validator = request.app.state.validators["create"]
    report = await validator.evaluate(payload)
    if report.any_failed:
        raise _reject(report)

    identity = uuid.uuid4().hex
    record = {
        "username": payload["username"],
        "email": payload["email"],
        "password_hash": _hash_password(payload["password"]),
        "age": to_int(payload.get("age")),
        "role": payload.get("role") or "member",
        "created_at": datetime.utcnow().isoformat(),
    }
    await request.app.state.record_store.save(COLLECTION, identity, record)

    logger.info("user_created", user_id=identity, username=record["username"])

    return _to_response(identity, record)


@router.get("/users/{user_id}", response_model=UserResponse)
async def get_user(user_id: str, request: Request):
    """Fetch a single user."""
    record = await request.app.state.record_store.get(COLLECTION, user_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"User {user_id} not found")
    return _to_response(user_id, record)


@router.patch("/users/{user_id}", response_model=UserResponse)
async def update_user(user_id: str, request: Request, payload: dict[str, Any] = Body(...)):
    """Update a user's profile. Unchanged unique values do not conflict with the user itself."""
    store = request.app.state.record_store
    record = await store.get(COLLECTION, user_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"User {user_id} not found")

    validator = request.app.state.validators["update"]
    report = await validator.evaluate(payload, exclude_identity=user_id)
    if report.any_failed:
        raise _reject(report)

    updates = {k: payload[k] for k in UPDATE_USER_RULES if not is_empty(payload.get(k))}
    if "age" in updates:
        updates["age"] = to_int(updates["age"])
    record.update(updates)
    record["updated_at"] = datetime.utcnow().isoformat()
    await store.save(COLLECTION, user_id, record)

    logger.info("user_updated", user_id=user_id, fields=sorted(updates))

    return _to_response(user_id, record)
