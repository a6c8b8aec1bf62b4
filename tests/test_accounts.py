from __future__ import annotations

from typing import Any

from missions_office.accounts import (
    create_account_for_individual,
    create_accounts_for_unlinked_individuals,
    create_supporter_account,
)
from missions_office.pledges import PledgeInput, PledgeService
from missions_office.store import MissionsStore


class RecordingAuthProvider:
    def __init__(self, failing_emails: set[str] | None = None) -> None:
        self.failing_emails = failing_emails or set()
        self.users: dict[str, dict[str, Any]] = {}

    def create_user(self, email: str, password: str, metadata: dict[str, Any]) -> str:
        if email in self.failing_emails:
            raise RuntimeError("User already registered")
        user_id = f"auth-{len(self.users) + 1}"
        self.users[user_id] = {"email": email, "password": password, **metadata}
        return user_id

    def update_user_metadata(self, user_id: str, metadata: dict[str, Any]) -> None:
        self.users[user_id].update(metadata)


class LinkStealingAuthProvider(RecordingAuthProvider):
    """Links the individual to another login while the account is being created."""

    def __init__(self, store: MissionsStore, individual_id: int) -> None:
        super().__init__()
        self.store = store
        self.individual_id = individual_id

    def create_user(self, email: str, password: str, metadata: dict[str, Any]) -> str:
        self.store.link_individual(self.individual_id, "auth-elsewhere")
        return super().create_user(email, password, metadata)


def _build_store(tmp_path) -> MissionsStore:  # type: ignore[no-untyped-def]
    store = MissionsStore(tmp_path / "accounts_test.db")
    store.init_db()
    return store


def test_supporter_account_creates_linked_individual(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)
    auth = RecordingAuthProvider()

    result = create_supporter_account(
        store, auth, "liya@example.org", "Secret#1", "Liya Mengistu", "251911888999"
    )

    assert result.success
    individual = store.get_individual(result.data["individual_id"])
    assert individual["user_id"] == result.data["user_id"]
    assert individual["name"] == "Liya Mengistu"
    assert auth.users[result.data["user_id"]]["individual_id"] == individual["id"]
    assert auth.users[result.data["user_id"]]["is_supporter"] is True


def test_supporter_account_reuses_individual_with_same_email(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)
    existing_id = store.add_individual("Liya M.", "liya@example.org", None)
    auth = RecordingAuthProvider()

    result = create_supporter_account(
        store, auth, "Liya@Example.org", "Secret#1", "Liya Mengistu", "251911888999"
    )

    assert result.success
    assert result.data["individual_id"] == existing_id
    assert store.get_individual(existing_id)["user_id"] == result.data["user_id"]
    assert auth.users[result.data["user_id"]]["individual_id"] == existing_id
    assert len(store.list_individuals()) == 1


def test_supporter_account_reports_provider_error(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)
    auth = RecordingAuthProvider(failing_emails={"liya@example.org"})

    result = create_supporter_account(
        store, auth, "liya@example.org", "Secret#1", "Liya Mengistu", ""
    )

    assert not result.success
    assert result.error == "User already registered"
    assert store.list_individuals() == []


def test_account_for_individual_rejects_linked_or_emailless_records(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)
    linked_id = store.add_individual("Linked", "linked@example.org", None, user_id="auth-existing")
    no_email_id = store.add_individual("No Email", None, "251911000333")
    auth = RecordingAuthProvider()

    linked = create_account_for_individual(store, auth, linked_id)
    no_email = create_account_for_individual(store, auth, no_email_id)
    missing = create_account_for_individual(store, auth, 999)

    assert linked.error == "Individual already has a user account"
    assert no_email.error == "Individual does not have an email address"
    assert missing.error == "Individual not found"
    assert auth.users == {}


def test_account_for_individual_links_the_requested_record(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)
    individual_id = store.add_individual("Tigist Haile", "tigist@example.org", "251911000222")
    auth = RecordingAuthProvider()

    result = create_account_for_individual(
        store, auth, individual_id, password_factory=lambda: "Temp#Pass1"
    )

    assert result.success
    assert result.data["individual_id"] == individual_id
    assert store.get_individual(individual_id)["user_id"] == result.data["user_id"]
    assert auth.users[result.data["user_id"]]["password"] == "Temp#Pass1"


def test_account_for_individual_fails_when_linked_concurrently(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)
    individual_id = store.add_individual("Tigist Haile", "tigist@example.org", None)
    auth = LinkStealingAuthProvider(store, individual_id)

    result = create_account_for_individual(store, auth, individual_id)

    assert not result.success
    assert "concurrent request" in result.error
    assert store.get_individual(individual_id)["user_id"] == "auth-elsewhere"


def test_accounts_are_created_and_linked_for_unlinked_individuals(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)
    unlinked_id = store.add_individual("Tigist Haile", "tigist@example.org", "251911000222")
    store.add_individual("No Email", None, "251911000333")
    store.add_individual("Linked", "linked@example.org", None, user_id="auth-existing")
    auth = RecordingAuthProvider()

    summary = create_accounts_for_unlinked_individuals(
        store, auth, password_factory=lambda: "Temp#Pass1"
    )

    assert summary["processed"] == 1
    assert summary["created"] == 1
    assert summary["errors"] == 0
    user_id = summary["results"][0]["user_id"]
    assert store.get_individual(unlinked_id)["user_id"] == user_id
    assert auth.users[user_id]["individual_id"] == unlinked_id
    assert auth.users[user_id]["password"] == "Temp#Pass1"


def test_provider_failures_are_counted_not_raised(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)
    store.add_individual("Tigist Haile", "tigist@example.org", None)
    failing_id = store.add_individual("Yonas Tadesse", "yonas@example.org", None)
    auth = RecordingAuthProvider(failing_emails={"yonas@example.org"})

    summary = create_accounts_for_unlinked_individuals(store, auth)

    assert summary["processed"] == 2
    assert summary["created"] == 1
    assert summary["errors"] == 1
    failed = next(row for row in summary["results"] if not row["success"])
    assert failed["email"] == "yonas@example.org"
    assert failed["error"] == "User already registered"
    assert store.get_individual(failing_id)["user_id"] is None


def test_batch_reports_rows_linked_by_another_request_as_errors(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)
    individual_id = store.add_individual("Tigist Haile", "tigist@example.org", None)
    auth = LinkStealingAuthProvider(store, individual_id)

    summary = create_accounts_for_unlinked_individuals(store, auth)

    assert summary["processed"] == 1
    assert summary["created"] == 0
    assert summary["errors"] == 1
    assert summary["results"][0]["success"] is False


def test_pledges_only_limits_to_individuals_with_pledges(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)
    pledger_id = store.add_individual("Tigist Haile", "tigist@example.org", None)
    store.add_individual("Yonas Tadesse", "yonas@example.org", None)
    PledgeService(store).create_pledge(pledger_id, PledgeInput("2026-01-01"))

    summary = create_accounts_for_unlinked_individuals(
        store, RecordingAuthProvider(), pledges_only=True
    )

    assert summary["processed"] == 1
    assert summary["results"][0]["email"] == "tigist@example.org"
