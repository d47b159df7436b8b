"""Pydantic schemas for user records and user endpoint responses."""

from __future__ import annotations

from pydantic import BaseModel, Field


class User(BaseModel):
    """A stored user record."""

    id: int = Field(..., ge=1, description="Sequential identifier, never reused within a run.")
    name: str = Field(..., description="Display name (2-50 characters).")
    email: str = Field(..., description="Email address, unique across users.")


class UserPayload(BaseModel):
    """Body accepted by POST /users and PUT /users/{id} (documentation only)."""

    name: str = Field(..., min_length=2, max_length=50, examples=["Lina"])
    email: str = Field(..., examples=["lina@example.com"])


class UserPatchPayload(BaseModel):
    """Body accepted by PATCH /users/{id} (documentation only)."""

    name: str | None = Field(default=None, min_length=2, max_length=50)
    email: str | None = None


class MessageResponse(BaseModel):
    message: str


class DeletedUserResponse(BaseModel):
    message: str
    user: User


class DeletedUsersResponse(BaseModel):
    message: str
    deleted: int = Field(..., ge=0, description="Number of users removed.")
