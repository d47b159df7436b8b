from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request, status

from app.core.validation import (
    validated_user_id,
    validated_user_patch,
    validated_user_payload,
)
from app.schemas.user import (
    DeletedUserResponse,
    DeletedUsersResponse,
    User,
    UserPatchPayload,
    UserPayload,
)
from app.services.user_store import UserStore

router = APIRouter(tags=["Users"])


def get_user_store(request: Request) -> UserStore:
    """Return the store owned by the running app instance."""
    return request.app.state.user_store


def _json_body(model: type[UserPayload] | type[UserPatchPayload]) -> dict[str, Any]:
    # Bodies are parsed by the validation stage, so document them by hand
    return {
        "requestBody": {
            "required": True,
            "content": {"application/json": {"schema": model.model_json_schema()}},
        }
    }


Store = Annotated[UserStore, Depends(get_user_store)]
UserId = Annotated[int, Depends(validated_user_id)]


@router.get("/users", response_model=list[User])
def list_users(store: Store) -> list[User]:
    """Return all users in insertion order."""
    return store.list()


@router.get("/users/{user_id}", response_model=User)
def get_user(user_id: UserId, store: Store) -> User:
    """Return a single user.

    Raises:
        NotFoundAppError: 404 if the user does not exist.
    """
    return store.get(user_id)


@router.get("/search", response_model=list[User])
def search_users(store: Store, name: str | None = None) -> list[User]:
    """Case-insensitive substring search on user names.

    Raises:
        ValidationAppError: 400 if ``name`` is missing or empty.
    """
    return store.search(name)


@router.post(
    "/users",
    response_model=User,
    status_code=status.HTTP_201_CREATED,
    openapi_extra=_json_body(UserPayload),
)
def create_user(
    payload: Annotated[dict[str, str], Depends(validated_user_payload)],
    store: Store,
) -> User:
    """Create a user from a validated ``{name, email}`` body.

    Raises:
        ConflictAppError: 409 if the email is already in use.
    """
    return store.create(payload["name"], payload["email"])


@router.put("/users/{user_id}", response_model=User, openapi_extra=_json_body(UserPayload))
def replace_user(
    user_id: UserId,
    payload: Annotated[dict[str, str], Depends(validated_user_payload)],
    store: Store,
) -> User:
    """Replace every field of a user; the id is kept."""
    return store.replace(user_id, payload["name"], payload["email"])


@router.patch(
    "/users/{user_id}",
    response_model=User,
    openapi_extra=_json_body(UserPatchPayload),
)
def update_user(
    user_id: UserId,
    updates: Annotated[dict[str, str], Depends(validated_user_patch)],
    store: Store,
) -> User:
    """Update only the supplied fields of a user.

    Raises:
        ValidationAppError: 400 if no updatable field was sent.
        ConflictAppError: 409 if the new email belongs to another user.
    """
    return store.patch(user_id, updates)


@router.delete("/users/{user_id}", response_model=DeletedUserResponse)
def delete_user(user_id: UserId, store: Store) -> DeletedUserResponse:
    user = store.delete(user_id)
    return DeletedUserResponse(message="User deleted", user=user)


@router.delete("/users", response_model=DeletedUsersResponse)
def delete_all_users(store: Store, confirm: str | None = None) -> DeletedUsersResponse:
    """Remove every user; requires ``?confirm=yes``."""
    count = store.delete_all(confirm)
    return DeletedUsersResponse(message=f"{count} users deleted", deleted=count)
