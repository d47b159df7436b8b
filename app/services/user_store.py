"""In-memory user store with uniqueness and existence invariants.

The store owns the ordered collection of users for the lifetime of the app
instance. Every operation runs under a single re-entrant lock, so at most one
mutation is in flight and readers never observe a half-applied change.
Records handed out are copies; callers cannot mutate stored state.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Iterable, Mapping

from app.core.errors import ConflictAppError, NotFoundAppError, ValidationAppError
from app.core.logging import fingerprint
from app.schemas.user import User

logger = logging.getLogger(__name__)

PATCHABLE_FIELDS = ("name", "email")
DELETE_ALL_CONFIRMATION = "yes"

SEED_USERS: tuple[tuple[str, str], ...] = (
    ("Anna", "anna@example.com"),
    ("Erik", "erik@example.com"),
    ("Maria", "maria@example.com"),
)


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def _user_not_found(user_id: int) -> NotFoundAppError:
    return NotFoundAppError(
        code="user_not_found",
        message="User not found",
        details={"user_id": user_id},
    )


def _email_taken() -> ConflictAppError:
    return ConflictAppError(code="email_taken", message="Email already in use")


class UserStore:
    """Ordered, lock-guarded collection of users.

    Args:
        enforce_unique_email_on_replace: When True, ``replace`` rejects an
            email owned by another user. Off by default.
    """

    def __init__(self, *, enforce_unique_email_on_replace: bool = False) -> None:
        self._users: list[User] = []
        self._next_id = 1
        self._lock = threading.RLock()
        self._enforce_unique_email_on_replace = enforce_unique_email_on_replace

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return f"UserStore(size={len(self._users)}, next_id={self._next_id})"

    @classmethod
    def with_seed_data(
        cls,
        seed: Iterable[tuple[str, str]] = SEED_USERS,
        **kwargs: Any,
    ) -> "UserStore":
        """Build a store pre-populated with ``seed`` (name, email) pairs."""

        store = cls(**kwargs)
        for name, email in seed:
            store.create(name, email)
        return store

    def _index_of(self, user_id: int) -> int:
        for index, user in enumerate(self._users):
            if user.id == user_id:
                return index
        raise _user_not_found(user_id)

    def _email_owner(self, email: str) -> User | None:
        for user in self._users:
            if user.email == email:
                return user
        return None

    def count(self) -> int:
        with self._lock:
            return len(self._users)

    def list(self) -> list[User]:
        """Return all users in insertion order."""

        with self._lock:
            return [user.model_copy() for user in self._users]

    def get(self, user_id: int) -> User:
        """Return the user with ``user_id``.

        Raises:
            NotFoundAppError: If no such user exists.
        """

        with self._lock:
            return self._users[self._index_of(user_id)].model_copy()

    def search(self, name_substring: str | None) -> list[User]:
        """Return users whose name contains ``name_substring``, ignoring case.

        Raises:
            ValidationAppError: If the search term is missing or empty.
        """

        if not name_substring:
            raise ValidationAppError(
                code="missing_search_term",
                message="Name parameter is required",
            )

        needle = name_substring.lower()
        with self._lock:
            return [user.model_copy() for user in self._users if needle in user.name.lower()]

    def create(self, name: str | None, email: str | None) -> User:
        """Append a new user with the next sequential id.

        Raises:
            ValidationAppError: If name or email is missing.
            ConflictAppError: If the email is already in use.
        """

        if _is_blank(name) or _is_blank(email):
            raise ValidationAppError(
                code="missing_fields",
                message="Name and email are required",
            )

        with self._lock:
            if self._email_owner(email) is not None:
                logger.info(
                    "user_store.create_conflict",
                    extra={"email_hash": fingerprint(email)},
                )
                raise _email_taken()

            user = User(id=self._next_id, name=name, email=email)
            self._next_id += 1
            self._users.append(user)

        logger.info("user_store.created", extra={"user_id": user.id})
        return user.model_copy()

    def replace(self, user_id: int, name: str | None, email: str | None) -> User:
        """Replace every field of an existing user, keeping its id and position.

        Raises:
            NotFoundAppError: If no such user exists.
            ValidationAppError: If name or email is missing.
            ConflictAppError: If cross-user email checks are enabled and the
                email belongs to someone else.
        """

        with self._lock:
            index = self._index_of(user_id)

            if _is_blank(name) or _is_blank(email):
                raise ValidationAppError(
                    code="missing_fields",
                    message="Name and email are required for PUT",
                )

            if self._enforce_unique_email_on_replace:
                owner = self._email_owner(email)
                if owner is not None and owner.id != user_id:
                    raise _email_taken()

            user = User(id=user_id, name=name, email=email)
            self._users[index] = user

        logger.info("user_store.replaced", extra={"user_id": user_id})
        return user.model_copy()

    def patch(self, user_id: int, fields: Mapping[str, Any]) -> User:
        """Apply the supplied ``name``/``email`` fields to an existing user.

        Unknown keys are ignored. Nothing is written unless every check passes.

        Raises:
            NotFoundAppError: If no such user exists.
            ValidationAppError: If no updatable field was supplied.
            ConflictAppError: If the new email belongs to another user.
        """

        updates = {key: fields[key] for key in PATCHABLE_FIELDS if key in fields}

        with self._lock:
            index = self._index_of(user_id)

            if not updates:
                raise ValidationAppError(
                    code="empty_update",
                    message="No data to update",
                )

            if "email" in updates:
                owner = self._email_owner(updates["email"])
                if owner is not None and owner.id != user_id:
                    raise _email_taken()

            user = self._users[index].model_copy(update=updates)
            self._users[index] = user

        logger.info(
            "user_store.patched",
            extra={"user_id": user_id, "fields": sorted(updates)},
        )
        return user.model_copy()

    def delete(self, user_id: int) -> User:
        """Remove and return a user.

        Raises:
            NotFoundAppError: If no such user exists.
        """

        with self._lock:
            user = self._users.pop(self._index_of(user_id))

        logger.info("user_store.deleted", extra={"user_id": user_id})
        return user

    def delete_all(self, confirm_token: str | None) -> int:
        """Remove every user when ``confirm_token`` is ``"yes"``.

        Returns:
            Number of users removed.

        Raises:
            ValidationAppError: If the confirmation token is missing or wrong.
        """

        if confirm_token != DELETE_ALL_CONFIRMATION:
            raise ValidationAppError(
                code="confirmation_required",
                message="Confirmation required. Add ?confirm=yes",
            )

        with self._lock:
            count = len(self._users)
            self._users.clear()

        logger.warning("user_store.deleted_all", extra={"deleted": count})
        return count

    def clear(self) -> None:
        """Drop all users without resetting the id counter."""

        with self._lock:
            self._users.clear()
