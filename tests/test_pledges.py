from __future__ import annotations

from datetime import date

import pytest

from missions_office.pledges import (
    PledgeInput,
    PledgeService,
    PublicPledgeForm,
    build_pledge_record,
    yearly_amount,
)
from missions_office.store import MissionsStore


def _build_store(tmp_path) -> MissionsStore:  # type: ignore[no-untyped-def]
    store = MissionsStore(tmp_path / "pledges_test.db")
    store.init_db()
    return store


def _individual(store: MissionsStore) -> int:
    return store.add_individual("Meron Alemu", "meron@example.org", "251911445566")


def test_combined_amount_ignores_caller_total(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)
    service = PledgeService(store)

    result = service.create_pledge(
        _individual(store),
        PledgeInput(
            date_of_commitment=date(2026, 1, 15),
            yearly_missionary_support=1200,
            yearly_special_support=300,
            amount=99,
        ),
    )

    assert result.success
    assert result.data["amount"] == 1500
    assert result.data["yearly_missionary_support"] == 1200
    assert result.data["yearly_special_support"] == 300


def test_amount_per_frequency_needs_both_frequency_and_amount() -> None:
    frequency_only = build_pledge_record(1, PledgeInput("2026-01-01", frequency="monthly"))
    amount_only = build_pledge_record(1, PledgeInput("2026-01-01", amount_per_frequency=100))
    both = build_pledge_record(
        1, PledgeInput("2026-01-01", frequency="Monthly", amount_per_frequency=100)
    )

    assert frequency_only["amount_per_frequency"] == 0
    assert amount_only["amount_per_frequency"] == 0
    assert amount_only["frequency"] is None
    assert both["amount_per_frequency"] == 100
    assert both["frequency"] == "monthly"


def test_optional_fields_default_to_zero_false_or_empty(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)

    result = PledgeService(store).create_pledge(
        _individual(store), PledgeInput(date_of_commitment="2026-02-01")
    )

    pledge = result.data
    assert pledge["missionaries_committed"] == 0
    assert pledge["special_support_amount"] == 0
    assert pledge["in_kind_support"] == 0
    assert pledge["in_kind_support_details"] == ""
    assert pledge["yearly_missionary_support"] == 0
    assert pledge["yearly_special_support"] == 0
    assert pledge["amount"] == 0
    assert pledge["fulfillment_status"] == 0
    assert pledge["submission_source"] == "admin"


def test_unknown_frequency_is_rejected(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)
    individual_id = _individual(store)

    result = PledgeService(store).create_pledge(
        individual_id,
        PledgeInput(date_of_commitment="2026-02-01", frequency="weekly", amount_per_frequency=5),
    )

    assert not result.success
    assert "Frequency must be one of" in result.error
    assert store.list_pledges(individual_id) == []


def test_pledge_for_unknown_individual_reports_store_error(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)

    result = PledgeService(store).create_pledge(999, PledgeInput(date_of_commitment="2026-02-01"))

    assert not result.success
    assert "FOREIGN KEY" in result.error


def test_pledges_are_listed_newest_commitment_first(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)
    service = PledgeService(store)
    individual_id = _individual(store)

    for commitment in ("2025-06-01", "2026-03-01", "2024-12-25"):
        service.create_pledge(individual_id, PledgeInput(date_of_commitment=commitment))

    result = service.get_pledges_for_individual(individual_id)

    assert result.success
    assert [row["date_of_commitment"] for row in result.data] == [
        "2026-03-01",
        "2025-06-01",
        "2024-12-25",
    ]


def test_pledge_summary_totals_yearly_amounts(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)
    service = PledgeService(store)
    individual_id = _individual(store)

    service.create_pledge(
        individual_id,
        PledgeInput("2026-01-01", missionaries_committed=2, yearly_missionary_support=2400),
    )
    service.create_pledge(individual_id, PledgeInput("2026-02-01", yearly_special_support=600))

    summary = service.get_pledge_summary(individual_id).data

    assert summary["pledge_count"] == 2
    assert summary["missionaries_committed"] == 2
    assert summary["yearly_total"] == 3000


@pytest.mark.parametrize(
    ("amount", "frequency", "expected"),
    [
        (100, "monthly", 1200),
        (100, "quarterly", 400),
        (100, "annually", 100),
        (100, "one-time", 100),
        (100, None, 0),
        (0, "monthly", 0),
    ],
)
def test_yearly_amount(amount: float, frequency: str | None, expected: float) -> None:
    assert yearly_amount(amount, frequency) == expected


def test_public_pledge_creates_individual_pledge_and_notification(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)
    service = PledgeService(store)

    result = service.submit_public_pledge(
        PublicPledgeForm(
            full_name="Dawit Bekele",
            phone_number="0911 22 33 44",
            email="dawit@example.org",
            date_of_commitment="2026-04-01",
            missionaries_committed=1,
            frequency="Quarterly",
            amount=500,
        )
    )

    assert result.success
    individual = store.get_individual(result.data["individual_id"])
    assert individual["phone_number"] == "251911223344"

    pledge = store.get_pledge(result.data["pledge_id"])
    assert pledge["frequency"] == "quarterly"
    assert pledge["amount_per_frequency"] == 500
    assert pledge["yearly_missionary_support"] == 2000
    assert pledge["amount"] == 2000
    assert pledge["fulfillment_status"] == 0
    assert pledge["submission_source"] == "public_link"

    notifications = store.list_notifications(for_admins=True)
    assert len(notifications) == 1
    assert notifications[0]["related_id"] == pledge["id"]
    assert "Dawit Bekele" in notifications[0]["message"]


def test_public_pledge_reuses_individual_with_same_phone(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)
    existing_id = store.add_individual("D. Bekele", None, "251911223344")
    service = PledgeService(store)

    result = service.submit_public_pledge(
        PublicPledgeForm(
            full_name="Dawit Bekele",
            phone_number="+251 911 223 344",
            email="dawit@example.org",
            date_of_commitment="2026-04-01",
            special_support_amount=1000,
            special_support_frequency="one-time",
        )
    )

    assert result.success
    assert result.data["individual_id"] == existing_id
    assert len(store.list_individuals()) == 1
    individual = store.get_individual(existing_id)
    assert individual["name"] == "Dawit Bekele"
    assert individual["email"] == "dawit@example.org"

    pledge = store.get_pledge(result.data["pledge_id"])
    assert pledge["special_support_frequency"] is None
    assert pledge["yearly_special_support"] == 1000
    assert pledge["amount"] == 1000


def test_public_pledge_requires_a_support_type(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)

    result = PledgeService(store).submit_public_pledge(
        PublicPledgeForm(
            full_name="Dawit Bekele",
            phone_number="0911223344",
            date_of_commitment="2026-04-01",
            in_kind_support=True,
        )
    )

    assert not result.success
    assert "at least one type of support" in result.error
    assert store.list_individuals() == []


def test_public_pledge_requires_frequency_for_missionary_support(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)

    result = PledgeService(store).submit_public_pledge(
        PublicPledgeForm(
            full_name="Dawit Bekele",
            phone_number="0911223344",
            date_of_commitment="2026-04-01",
            missionaries_committed=1,
            amount=300,
        )
    )

    assert not result.success
    assert result.error == "Please select a frequency for missionary support"


def test_public_pledge_rejects_invalid_phone(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)

    result = PledgeService(store).submit_public_pledge(
        PublicPledgeForm(
            full_name="Dawit Bekele",
            phone_number="12345",
            date_of_commitment="2026-04-01",
            in_kind_support=True,
            in_kind_support_details="Vehicle for the summer outreach",
        )
    )

    assert not result.success
    assert "valid Ethiopian number" in result.error
