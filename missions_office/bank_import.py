"""Bank statement CSV parsing and import for reconciliation."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date
from typing import IO, Any

import pandas as pd

from .store import MissionsStore

logger = logging.getLogger(__name__)

# Header spellings seen in bank exports, matched case-insensitively.
COLUMN_ALIASES: dict[str, tuple[str, ...]] = {
    "value_date": ("Value Date",),
    "transaction_type": ("Transaction Type",),
    "transaction_reference": ("Transaction Reference", "Reference"),
    "posting_date": ("Posting Date",),
    "debit_amount": ("Debit", "Withdrawal"),
    "credit_amount": ("Credit", "Deposit"),
    "balance": ("Balance",),
    "description": ("Narrative", "Description"),
    "beneficiary_account": ("Beneficiary AC", "Beneficiary Account", "Benificiary AC"),
    "beneficiary_name": ("Beneficiary Name", "Benificiary Name"),
    "transaction_date": ("Transaction Date", "Date"),
    "branch_code": ("Branch Code",),
    "account_number": ("Account Number",),
}

_DATE_FIELDS = {"value_date", "posting_date", "transaction_date"}
_AMOUNT_FIELDS = {"debit_amount", "credit_amount", "balance"}
_DAY_FIRST_PATTERN = re.compile(r"^(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{4})$")


@dataclass
class ImportSummary:
    rows_imported: int = 0
    duplicates_skipped: int = 0
    duplicate_references: list[str] = field(default_factory=list)

    @property
    def message(self) -> str:
        message = f"Successfully imported {self.rows_imported} transactions."
        if self.duplicates_skipped:
            message += f" Skipped {self.duplicates_skipped} duplicate transactions."
        return message


def parse_date(value: str | None) -> str | None:
    """Return ``YYYY-MM-DD`` for a bank date, trying DD/MM/YYYY first."""
    if not value or not value.strip():
        return None
    cleaned = value.strip()

    match = _DAY_FIRST_PATTERN.match(cleaned)
    if match:
        day, month, year = (int(part) for part in match.groups())
        try:
            return date(year, month, day).isoformat()
        except ValueError:
            return None

    parsed = pd.to_datetime(cleaned, errors="coerce")
    if pd.isna(parsed):
        return None
    return parsed.date().isoformat()


def parse_amount(value: str | None) -> float:
    if not value:
        return 0.0
    cleaned = re.sub(r"[^\d.-]", "", value)
    try:
        return float(cleaned)
    except ValueError:
        return 0.0


def _resolve_columns(headers: list[str]) -> dict[str, str]:
    by_lower = {header.strip().lower(): header for header in headers}
    resolved: dict[str, str] = {}
    for target, aliases in COLUMN_ALIASES.items():
        for alias in aliases:
            header = by_lower.get(alias.lower())
            if header is not None:
                resolved[target] = header
                break
    return resolved


def parse_bank_statement(source: str | IO[str]) -> list[dict[str, Any]]:
    try:
        frame = pd.read_csv(source, dtype=str, keep_default_na=False, skipinitialspace=True)
    except pd.errors.EmptyDataError as exc:
        raise ValueError("Bank statement file is empty.") from exc
    except pd.errors.ParserError as exc:
        raise ValueError(f"CSV parsing error: {exc}") from exc

    frame.columns = [str(column).strip() for column in frame.columns]
    columns = _resolve_columns(list(frame.columns))

    transactions: list[dict[str, Any]] = []
    for _, row in frame.iterrows():
        transaction: dict[str, Any] = {}
        for target in COLUMN_ALIASES:
            header = columns.get(target)
            raw = str(row[header]).strip() if header is not None else ""
            if target in _DATE_FIELDS:
                transaction[target] = parse_date(raw)
            elif target in _AMOUNT_FIELDS:
                transaction[target] = parse_amount(raw)
            else:
                transaction[target] = raw
        transactions.append(transaction)

    return transactions


def import_bank_statement(store: MissionsStore, source: str | IO[str]) -> ImportSummary:
    """Store new statement lines, skipping references that are already known."""
    transactions = parse_bank_statement(source)
    seen = store.existing_transaction_references()

    summary = ImportSummary()
    fresh: list[dict[str, Any]] = []
    for transaction in transactions:
        reference = transaction["transaction_reference"]
        if reference and reference in seen:
            summary.duplicates_skipped += 1
            summary.duplicate_references.append(reference)
            continue
        if reference:
            seen.add(reference)
        fresh.append(transaction)

    summary.rows_imported = store.add_bank_transactions(fresh)
    logger.info(
        "Imported %d bank transactions, skipped %d duplicates",
        summary.rows_imported,
        summary.duplicates_skipped,
    )
    return summary
