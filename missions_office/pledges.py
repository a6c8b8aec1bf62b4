"""Pledge creation, listing, and the public pledge intake form."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any

from .errors import StoreError
from .phone import validate_phone
from .results import Result
from .store import FREQUENCIES, MissionsStore, format_currency

logger = logging.getLogger(__name__)

ONE_TIME = "one-time"
PUBLIC_FREQUENCIES = FREQUENCIES + (ONE_TIME,)
FULFILLMENT_PENDING = 0

_PERIODS_PER_YEAR = {
    "monthly": 12,
    "quarterly": 4,
    "annually": 1,
    ONE_TIME: 1,
}


@dataclass
class PledgeInput:
    """Raw pledge fields as submitted by an admin or supporter form.

    ``amount`` is accepted for compatibility with older forms but never
    stored; the combined yearly amount is always recomputed.
    """

    date_of_commitment: date | str
    missionaries_committed: int | None = None
    frequency: str | None = None
    amount_per_frequency: float | None = None
    special_support_amount: float | None = None
    special_support_frequency: str | None = None
    in_kind_support: bool | None = None
    in_kind_support_details: str | None = None
    yearly_missionary_support: float | None = None
    yearly_special_support: float | None = None
    fulfillment_status: int | None = None
    amount: float | None = None


@dataclass
class PublicPledgeForm:
    full_name: str
    phone_number: str
    date_of_commitment: date | str
    email: str | None = None
    missionaries_committed: int = 0
    frequency: str | None = None
    amount: float = 0.0
    special_support_amount: float = 0.0
    special_support_frequency: str | None = None
    in_kind_support: bool = False
    in_kind_support_details: str | None = None


def _normalize_frequency(value: str | None, allowed: tuple[str, ...] = FREQUENCIES) -> str | None:
    if value is None or not value.strip():
        return None
    frequency = value.strip().lower()
    if frequency not in allowed:
        raise ValueError(f"Frequency must be one of: {', '.join(allowed)}.")
    return frequency


def _commitment_date(value: date | str) -> str:
    if isinstance(value, date):
        return value.isoformat()
    if not value or not value.strip():
        raise ValueError("Date of commitment is required.")
    return date.fromisoformat(value.strip()).isoformat()


def yearly_amount(amount: float, frequency: str | None) -> float:
    if not frequency or amount == 0:
        return 0
    return amount * _PERIODS_PER_YEAR.get(frequency.lower(), 12)


def build_pledge_record(
    individual_id: int,
    pledge: PledgeInput,
    submission_source: str = "admin",
) -> dict[str, Any]:
    """Fill defaults and derived totals for a pledge about to be inserted."""
    frequency = _normalize_frequency(pledge.frequency)
    yearly_missionary = pledge.yearly_missionary_support or 0
    yearly_special = pledge.yearly_special_support or 0

    amount_per_frequency: float = 0
    if frequency and pledge.amount_per_frequency:
        amount_per_frequency = pledge.amount_per_frequency

    return {
        "individual_id": individual_id,
        "date_of_commitment": _commitment_date(pledge.date_of_commitment),
        "missionaries_committed": pledge.missionaries_committed or 0,
        "frequency": frequency,
        "amount_per_frequency": amount_per_frequency,
        "special_support_amount": pledge.special_support_amount or 0,
        "special_support_frequency": _normalize_frequency(pledge.special_support_frequency),
        "in_kind_support": bool(pledge.in_kind_support),
        "in_kind_support_details": pledge.in_kind_support_details or "",
        "yearly_missionary_support": yearly_missionary,
        "yearly_special_support": yearly_special,
        "amount": yearly_missionary + yearly_special,
        "fulfillment_status": pledge.fulfillment_status or 0,
        "submission_source": submission_source,
    }


class PledgeService:
    def __init__(self, store: MissionsStore) -> None:
        self.store = store

    def create_pledge(
        self,
        individual_id: int,
        pledge: PledgeInput,
        submission_source: str = "admin",
    ) -> Result:
        try:
            record = build_pledge_record(individual_id, pledge, submission_source)
            pledge_id = self.store.add_pledge(record)
            created = self.store.get_pledge(pledge_id)
        except ValueError as exc:
            logger.warning("Rejected pledge for individual %s: %s", individual_id, exc)
            return Result.fail(str(exc))
        except StoreError as exc:
            logger.error("Error creating pledge for individual %s: %s", individual_id, exc)
            return Result.fail(str(exc))
        return Result.ok(dict(created))

    def get_pledges_for_individual(self, individual_id: int) -> Result:
        try:
            rows = self.store.list_pledges(individual_id)
        except StoreError as exc:
            logger.error("Error fetching pledges for individual %s: %s", individual_id, exc)
            return Result.fail(str(exc))
        return Result.ok([dict(row) for row in rows])

    def get_pledge_summary(self, individual_id: int) -> Result:
        try:
            return Result.ok(self.store.pledge_summary(individual_id))
        except StoreError as exc:
            logger.error("Error summarizing pledges for individual %s: %s", individual_id, exc)
            return Result.fail(str(exc))

    def submit_public_pledge(self, form: PublicPledgeForm) -> Result:
        """Record a pledge from the public link, matching the supporter by phone.

        The pledge is stored as pending and admins get a notification. Only
        the pledge insert decides success; profile updates and the
        notification are best-effort.
        """
        full_name = (form.full_name or "").strip()
        if not full_name or not form.phone_number:
            return Result.fail("Full name and phone number are required")

        phone = validate_phone(form.phone_number)
        if not phone.is_valid:
            return Result.fail(phone.error or "Invalid phone number")

        has_missionary_support = form.amount > 0 and form.missionaries_committed > 0
        has_special_support = form.special_support_amount > 0
        has_in_kind_support = bool(form.in_kind_support and form.in_kind_support_details)

        if not (has_missionary_support or has_special_support or has_in_kind_support):
            return Result.fail(
                "Please select at least one type of support (Missionary, Special, or In-Kind)"
            )
        if has_missionary_support and not form.frequency:
            return Result.fail("Please select a frequency for missionary support")
        if has_special_support and not form.special_support_frequency:
            return Result.fail("Please select a frequency for special support")

        try:
            frequency = _normalize_frequency(form.frequency, PUBLIC_FREQUENCIES)
            special_frequency = _normalize_frequency(
                form.special_support_frequency, PUBLIC_FREQUENCIES
            )
            commitment_date = _commitment_date(form.date_of_commitment)
        except ValueError as exc:
            return Result.fail(str(exc))

        try:
            individual_id = self._public_individual_id(full_name, phone.formatted, form.email)
        except (StoreError, ValueError) as exc:
            logger.error("Error creating individual for public pledge: %s", exc)
            return Result.fail("Failed to create individual profile")

        pledge = PledgeInput(date_of_commitment=commitment_date, fulfillment_status=FULFILLMENT_PENDING)
        if has_missionary_support:
            pledge.frequency = None if frequency == ONE_TIME else frequency
            pledge.amount_per_frequency = form.amount
            pledge.missionaries_committed = form.missionaries_committed
            pledge.yearly_missionary_support = yearly_amount(form.amount, frequency)
        if has_special_support:
            pledge.special_support_amount = form.special_support_amount
            pledge.special_support_frequency = None if special_frequency == ONE_TIME else special_frequency
            pledge.yearly_special_support = yearly_amount(form.special_support_amount, special_frequency)
        if has_in_kind_support:
            pledge.in_kind_support = True
            pledge.in_kind_support_details = form.in_kind_support_details

        try:
            record = build_pledge_record(individual_id, pledge, submission_source="public_link")
            pledge_id = self.store.add_pledge(record)
        except (StoreError, ValueError) as exc:
            logger.error("Error creating public pledge for individual %s: %s", individual_id, exc)
            return Result.fail(f"Failed to create pledge. {exc}")

        logger.info("Created public pledge %s for individual %s", pledge_id, individual_id)
        self._notify_admins(full_name, pledge_id, record["amount"])

        return Result.ok(
            {
                "pledge_id": pledge_id,
                "individual_id": individual_id,
                "message": "Thank you! Your pledge has been submitted successfully and is pending review.",
            }
        )

    def _public_individual_id(self, full_name: str, phone_number: str, email: str | None) -> int:
        by_phone = self.store.find_individuals_by_phone(phone_number)
        if by_phone:
            individual_id = int(by_phone[0]["id"])
            try:
                self.store.update_individual_details(individual_id, name=full_name, email=email)
            except StoreError as exc:
                logger.warning("Could not update details of individual %s: %s", individual_id, exc)
            return individual_id

        if email:
            by_email = self.store.find_individual_by_email(email)
            if by_email is not None:
                return int(by_email["id"])

        individual_id = self.store.add_individual(
            name=full_name,
            email=email,
            phone_number=phone_number,
        )
        logger.info("Created individual %s from public pledge", individual_id)
        return individual_id

    def _notify_admins(self, full_name: str, pledge_id: int, yearly_total: float) -> None:
        try:
            self.store.add_notification(
                title="New Public Pledge Submission",
                message=(
                    f"{full_name} has submitted a new pledge of {format_currency(yearly_total)} "
                    "per year via the public form. Please review and approve."
                ),
                notification_type="pledge",
                related_id=pledge_id,
                for_admins=True,
            )
        except StoreError as exc:
            logger.warning("Could not create admin notification for pledge %s: %s", pledge_id, exc)
