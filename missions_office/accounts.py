"""Creation of supporter logins and their links to individuals."""

from __future__ import annotations

import logging
from typing import Any, Callable

from .errors import StoreError
from .identity import AuthProvider, IdentityResolver, Profile, SideEffectFailure
from .passwords import generate_random_password
from .results import Result
from .store import MissionsStore, clean_email, individual_display_name

logger = logging.getLogger(__name__)


def create_supporter_account(
    store: MissionsStore,
    auth_provider: AuthProvider,
    email: str,
    password: str,
    full_name: str,
    phone_number: str,
    on_side_effect_failure: Callable[[SideEffectFailure], None] | None = None,
) -> Result:
    """Create a supporter login and attach it to the matching individual.

    The individual is found or created through :class:`IdentityResolver`, so
    an existing record with the same email is reused. When that record is
    already linked to a different login the account still exists but
    ``individual_id`` is ``None``. Writing the individual id into the login's
    metadata is best-effort.
    """
    if clean_email(email) is None:
        return Result.fail("An email address is required")

    try:
        user_id = auth_provider.create_user(
            email,
            password,
            {
                "full_name": full_name,
                "phone_number": phone_number,
                "is_supporter": True,
                "role": "supporter",
            },
        )
    except Exception as exc:  # provider errors are returned, not raised
        logger.error("Error creating supporter account for %s: %s", email, exc)
        return Result.fail(str(exc))

    resolver = IdentityResolver(
        store,
        auth_provider=auth_provider,
        on_side_effect_failure=on_side_effect_failure,
    )
    resolution = resolver.resolve_or_create(user_id, email, Profile(full_name, phone_number))
    if not resolution.success:
        logger.error("Account %s created without an individual: %s", user_id, resolution.error)
        return Result.ok({"user_id": user_id, "individual_id": None})

    individual = resolution.data
    if individual["user_id"] != user_id:
        logger.warning(
            "Account %s not linked: individual %s belongs to user %s",
            user_id,
            individual["id"],
            individual["user_id"],
        )
        return Result.ok({"user_id": user_id, "individual_id": None})

    # repeats the create path's write when the individual is new
    resolver.store_individual_on_user(user_id, individual["id"])
    return Result.ok({"user_id": user_id, "individual_id": individual["id"]})


def create_account_for_individual(
    store: MissionsStore,
    auth_provider: AuthProvider,
    individual_id: int,
    password_factory: Callable[[], str] = generate_random_password,
) -> Result:
    try:
        individual = store.get_individual(individual_id)
    except StoreError as exc:
        logger.error("Error querying individual %s: %s", individual_id, exc)
        return Result.fail(str(exc))

    if individual is None:
        return Result.fail("Individual not found")
    if individual["user_id"]:
        return Result.fail("Individual already has a user account")
    if not individual["email"]:
        return Result.fail("Individual does not have an email address")

    result = create_supporter_account(
        store,
        auth_provider,
        email=individual["email"],
        password=password_factory(),
        full_name=individual_display_name(individual),
        phone_number=individual["phone_number"] or "",
    )
    if not result.success:
        return result

    if result.data["individual_id"] != individual_id:
        logger.error(
            "User %s was created but individual %s was linked by another request",
            result.data["user_id"],
            individual_id,
        )
        return Result.fail("Individual was linked to another user account by a concurrent request")
    return result


def create_accounts_for_unlinked_individuals(
    store: MissionsStore,
    auth_provider: AuthProvider,
    pledges_only: bool = False,
    password_factory: Callable[[], str] = generate_random_password,
) -> dict[str, Any]:
    individuals = store.list_individuals(
        unlinked_only=True,
        with_email_only=True,
        with_pledges_only=pledges_only,
    )

    created = 0
    errors = 0
    results: list[dict[str, Any]] = []

    for individual in individuals:
        email = individual["email"]
        result = create_account_for_individual(
            store,
            auth_provider,
            individual["id"],
            password_factory=password_factory,
        )
        if not result.success:
            logger.error("Error creating account for %s: %s", email, result.error)
            errors += 1
            results.append({"email": email, "success": False, "error": result.error})
            continue

        created += 1
        results.append({"email": email, "success": True, "user_id": result.data["user_id"]})

    return {
        "processed": len(individuals),
        "created": created,
        "errors": errors,
        "results": results,
    }
