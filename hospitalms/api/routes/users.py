"""User account endpoints. ``user_id`` can never be changed."""

import logging
from typing import Any

from fastapi import APIRouter, Body, status

from hospitalms.api.dependencies import StoreDep
from hospitalms.api.errors import APIError, unwrap
from hospitalms.api.services.collection_service import CollectionService
from hospitalms.domain.models import User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])

REQUIRED_FIELDS = ("user_id", "name", "email", "phone")


def _service(storage) -> CollectionService:
    return CollectionService(storage, User, sort_by="created_at", descending=True)


@router.get("")
@router.get("/", include_in_schema=False)
def list_users(storage: StoreDep):
    return unwrap(_service(storage).list_all(), "Error fetching users")


@router.get("/role/{role}")
def list_users_by_role(role: str, storage: StoreDep):
    """Active users with the given role, by name."""
    users = unwrap(_service(storage).list_by("role", role, sort_by="name", descending=False), "Error fetching users by role")
    return [user for user in users if user.get("is_active", True)]


@router.post("/bulk", status_code=status.HTTP_201_CREATED)
def bulk_create_users(storage: StoreDep, payload: Any = Body(...)):
    if not isinstance(payload, list):
        raise APIError(400, "Expected array of users")
    created = unwrap(
        _service(storage).create_many(payload),
        "Error creating users",
        duplicate_message="Duplicate user_id found. User IDs must be unique.",
    )
    return {"message": "Users created successfully", "count": len(created), "users": created}


@router.get("/{user_id}")
def get_user(user_id: str, storage: StoreDep):
    user = unwrap(_service(storage).get(user_id), "Error fetching user")
    if user is None:
        raise APIError(404, "User not found")
    return user


@router.post("", status_code=status.HTTP_201_CREATED)
@router.post("/", status_code=status.HTTP_201_CREATED, include_in_schema=False)
def create_user(storage: StoreDep, payload: dict = Body(...)):
    if not all(payload.get(field) for field in REQUIRED_FIELDS):
        raise APIError(400, "Missing required fields: user_id, name, email, phone are required")

    service = _service(storage)
    taken = (
        unwrap(service.get(payload["user_id"]), "Error creating user") is not None
        or unwrap(service.exists("email", payload["email"]), "Error creating user")
    )
    if taken:
        raise APIError(400, "User ID or Email already exists")

    document = {field: payload[field] for field in REQUIRED_FIELDS}
    document["role"] = payload.get("role") or "patient"
    document["is_active"] = payload.get("is_active", True)

    user = unwrap(service.create(document), "Error creating user", duplicate_message="User ID or Email already exists")
    logger.info(f"User created: {user['user_id']}")
    return {"message": "User created successfully", "user": user}


@router.put("/{user_id}")
def update_user(user_id: str, storage: StoreDep, changes: dict = Body(...)):
    user = unwrap(_service(storage).update(user_id, changes), "Error updating user")
    if user is None:
        raise APIError(404, "User not found", userId=user_id)
    return {"message": "User updated successfully", "user": user}


@router.delete("/{user_id}")
def delete_user(user_id: str, storage: StoreDep):
    user = unwrap(_service(storage).delete(user_id), "Error deleting user")
    if user is None:
        raise APIError(404, "User not found", userId=user_id)
    return {"message": "User deleted successfully", "user": user}
