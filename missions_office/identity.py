"""Find-or-create resolution of supporter records for authenticated users.

An authenticated user is matched to exactly one row in ``individuals``:

1. by the ``user_id`` link,
2. by email, linking the row when it has no link yet (an existing link to a
   different user is left alone and the row is returned as-is),
3. otherwise by creating a new row from the supplied profile.

The uniqueness constraints on ``individuals.user_id`` and ``individuals.email``
decide concurrent inserts. A caller that loses the race re-runs the lookup and
receives the row the winner created.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Protocol

from .errors import (
    DuplicateRecordError,
    IdentityConflictError,
    InsufficientDataError,
    StoreError,
)
from .results import Result
from .store import MissionsStore

logger = logging.getLogger(__name__)


class AuthProvider(Protocol):
    def update_user_metadata(self, user_id: str, metadata: dict[str, Any]) -> None:
        ...

    def create_user(self, email: str, password: str, metadata: dict[str, Any]) -> str:
        ...


@dataclass(frozen=True)
class Profile:
    full_name: str
    phone_number: str


@dataclass(frozen=True)
class SideEffectFailure:
    operation: str
    user_id: str
    error: str


class IdentityResolver:
    def __init__(
        self,
        store: MissionsStore,
        auth_provider: AuthProvider | None = None,
        on_side_effect_failure: Callable[[SideEffectFailure], None] | None = None,
        max_attempts: int = 3,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1.")
        self.store = store
        self.auth_provider = auth_provider
        self.on_side_effect_failure = on_side_effect_failure
        self.max_attempts = max_attempts

    def resolve_or_create(
        self,
        user_id: str,
        email: str,
        profile: Profile | None = None,
    ) -> Result:
        """Return ``Result.ok(individual_dict)`` or ``Result.fail(message)``."""
        try:
            individual = self._resolve(user_id, email, profile)
        except InsufficientDataError as exc:
            logger.warning("No individual for user %s and no profile to create one", user_id)
            return Result.fail(str(exc))
        except ValueError as exc:
            logger.warning("Rejected identity resolution for user %s: %s", user_id, exc)
            return Result.fail(str(exc))
        except StoreError as exc:
            logger.error("Error resolving individual for user %s: %s", user_id, exc)
            return Result.fail(str(exc))
        return Result.ok(individual)

    def create_individual_for_user(
        self,
        user_id: str,
        email: str,
        profile: Profile,
    ) -> Result:
        """Like :meth:`resolve_or_create` but returns only the individual id."""
        result = self.resolve_or_create(user_id, email, profile)
        if not result.success:
            return result
        return Result.ok(result.data["id"])

    def _resolve(
        self,
        user_id: str,
        email: str,
        profile: Profile | None,
    ) -> dict[str, Any]:
        if not user_id or not user_id.strip():
            raise ValueError("A user id is required.")

        for attempt in range(1, self.max_attempts + 1):
            try:
                existing = self._lookup(user_id, email)
                if existing is not None:
                    return existing
                if profile is None:
                    raise InsufficientDataError()
                return self._create(user_id, email, profile)
            except DuplicateRecordError as exc:
                logger.info(
                    "Conflict while resolving user %s (attempt %d of %d): %s",
                    user_id,
                    attempt,
                    self.max_attempts,
                    exc,
                )

        raise IdentityConflictError(
            f"Could not resolve an individual for user {user_id} "
            f"after {self.max_attempts} attempts"
        )

    def _lookup(self, user_id: str, email: str) -> dict[str, Any] | None:
        by_user = self.store.find_individual_by_user_id(user_id)
        if by_user is not None:
            return dict(by_user)

        by_email = self.store.find_individual_by_email(email)
        if by_email is None:
            return None

        linked_to = by_email["user_id"]
        if linked_to is None:
            if self.store.link_individual(by_email["id"], user_id):
                logger.info("Linked individual %s to user %s", by_email["id"], user_id)
            refreshed = self.store.get_individual(by_email["id"])
            return dict(refreshed) if refreshed is not None else None

        if linked_to != user_id:
            logger.info(
                "Individual %s matched user %s by email but stays linked to user %s",
                by_email["id"],
                user_id,
                linked_to,
            )
        return dict(by_email)

    def _create(self, user_id: str, email: str, profile: Profile) -> dict[str, Any]:
        individual_id = self.store.add_individual(
            name=profile.full_name,
            email=email,
            phone_number=profile.phone_number,
            user_id=user_id,
        )
        logger.info("Created individual %s for user %s", individual_id, user_id)
        self.store_individual_on_user(user_id, individual_id)

        created = self.store.get_individual(individual_id)
        if created is None:
            raise StoreError(f"Individual {individual_id} disappeared after insert")
        return dict(created)

    def store_individual_on_user(self, user_id: str, individual_id: int) -> None:
        if self.auth_provider is None:
            return
        try:
            self.auth_provider.update_user_metadata(user_id, {"individual_id": individual_id})
        except Exception as exc:  # reported through the sink, never raised
            logger.warning(
                "Could not store individual %s on user %s metadata: %s",
                individual_id,
                user_id,
                exc,
            )
            self._report_side_effect_failure(
                SideEffectFailure(
                    operation="update_user_metadata",
                    user_id=user_id,
                    error=str(exc),
                )
            )

    def _report_side_effect_failure(self, failure: SideEffectFailure) -> None:
        if self.on_side_effect_failure is None:
            return
        try:
            self.on_side_effect_failure(failure)
        except Exception:  # a broken sink must not fail the resolution
            logger.exception("Side effect failure sink raised for user %s", failure.user_id)
