"""SQLite-backed persistence layer for the church missions office."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import date
from pathlib import Path
from typing import Any, Iterable, Iterator

from .errors import DuplicateRecordError, StoreError

FREQUENCIES = ("monthly", "quarterly", "annually")
SUBMISSION_SOURCES = ("admin", "supporter", "public_link")

_PLEDGE_COLUMNS = (
    "individual_id",
    "date_of_commitment",
    "missionaries_committed",
    "frequency",
    "amount_per_frequency",
    "special_support_amount",
    "special_support_frequency",
    "in_kind_support",
    "in_kind_support_details",
    "yearly_missionary_support",
    "yearly_special_support",
    "amount",
    "fulfillment_status",
    "submission_source",
)

_BANK_TRANSACTION_COLUMNS = (
    "value_date",
    "transaction_type",
    "transaction_reference",
    "posting_date",
    "debit_amount",
    "credit_amount",
    "balance",
    "description",
    "beneficiary_account",
    "beneficiary_name",
    "transaction_date",
    "branch_code",
    "account_number",
)


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def clean_email(value: str | None) -> str | None:
    cleaned = _clean(value)
    return cleaned.lower() if cleaned else None


def _lastrowid(cursor: sqlite3.Cursor) -> int:
    row_id = cursor.lastrowid
    if row_id is None:
        raise RuntimeError("Insert did not return a row id.")
    return row_id


def format_currency(amount: float, currency: str = "ETB") -> str:
    return f"{currency} {amount:,.2f}"


def individual_display_name(row: sqlite3.Row | dict[str, Any]) -> str:
    name = (row["name"] or "").strip()
    return name or "Unnamed individual"


def _table_columns(connection: sqlite3.Connection, table_name: str) -> set[str]:
    rows = connection.execute(f"PRAGMA table_info({table_name})").fetchall()
    return {str(row["name"]) for row in rows}


def _ensure_column(
    connection: sqlite3.Connection,
    table_name: str,
    column_name: str,
    definition: str,
) -> None:
    if column_name in _table_columns(connection, table_name):
        return
    connection.execute(
        f"ALTER TABLE {table_name} ADD COLUMN {column_name} {definition}"
    )


class MissionsStore:
    """Persistence operations for individuals, pledges, bank lines, and notices."""

    def __init__(self, db_path: str | Path, timeout: float = 10.0) -> None:
        self.db_path = Path(db_path)
        self.timeout = timeout

    def _connect(self) -> sqlite3.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        connection = sqlite3.connect(self.db_path, timeout=self.timeout)
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON")
        return connection

    @contextmanager
    def _session(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection that commits on success and maps driver errors."""
        try:
            connection = self._connect()
        except sqlite3.Error as exc:
            raise StoreError(str(exc)) from exc

        try:
            with connection:
                yield connection
        except sqlite3.IntegrityError as exc:
            if "UNIQUE" in str(exc):
                raise DuplicateRecordError(str(exc)) from exc
            raise StoreError(str(exc)) from exc
        except sqlite3.Error as exc:
            raise StoreError(str(exc)) from exc
        finally:
            connection.close()

    def init_db(self) -> None:
        with self._session() as connection:
            connection.executescript(
                """
                CREATE TABLE IF NOT EXISTS individuals (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    email TEXT UNIQUE,
                    phone_number TEXT,
                    user_id TEXT UNIQUE,
                    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
                    updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
                );

                CREATE TABLE IF NOT EXISTS pledges (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    individual_id INTEGER NOT NULL,
                    date_of_commitment TEXT NOT NULL,
                    missionaries_committed INTEGER NOT NULL DEFAULT 0,
                    frequency TEXT CHECK (
                        frequency IS NULL OR frequency IN ('monthly', 'quarterly', 'annually')
                    ),
                    amount_per_frequency REAL NOT NULL DEFAULT 0,
                    special_support_amount REAL NOT NULL DEFAULT 0,
                    special_support_frequency TEXT CHECK (
                        special_support_frequency IS NULL
                        OR special_support_frequency IN ('monthly', 'quarterly', 'annually')
                    ),
                    in_kind_support INTEGER NOT NULL DEFAULT 0,
                    in_kind_support_details TEXT NOT NULL DEFAULT '',
                    yearly_missionary_support REAL NOT NULL DEFAULT 0,
                    yearly_special_support REAL NOT NULL DEFAULT 0,
                    amount REAL NOT NULL DEFAULT 0,
                    fulfillment_status INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
                    FOREIGN KEY (individual_id) REFERENCES individuals(id) ON DELETE CASCADE
                );

                CREATE TABLE IF NOT EXISTS bank_transactions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    value_date TEXT,
                    transaction_type TEXT NOT NULL DEFAULT '',
                    transaction_reference TEXT NOT NULL DEFAULT '',
                    posting_date TEXT,
                    debit_amount REAL NOT NULL DEFAULT 0,
                    credit_amount REAL NOT NULL DEFAULT 0,
                    balance REAL NOT NULL DEFAULT 0,
                    description TEXT NOT NULL DEFAULT '',
                    beneficiary_account TEXT NOT NULL DEFAULT '',
                    beneficiary_name TEXT NOT NULL DEFAULT '',
                    transaction_date TEXT,
                    branch_code TEXT NOT NULL DEFAULT '',
                    account_number TEXT NOT NULL DEFAULT '',
                    reconciled INTEGER NOT NULL DEFAULT 0,
                    notes TEXT NOT NULL DEFAULT '',
                    receipt_number TEXT,
                    pledge_id INTEGER,
                    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
                    FOREIGN KEY (pledge_id) REFERENCES pledges(id) ON DELETE SET NULL
                );

                CREATE TABLE IF NOT EXISTS notifications (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    title TEXT NOT NULL,
                    message TEXT NOT NULL,
                    notification_type TEXT NOT NULL DEFAULT 'general',
                    related_id INTEGER,
                    is_read INTEGER NOT NULL DEFAULT 0,
                    for_admins INTEGER NOT NULL DEFAULT 1,
                    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
                );

                CREATE INDEX IF NOT EXISTS idx_individuals_phone ON individuals (phone_number);
                CREATE INDEX IF NOT EXISTS idx_pledges_individual ON pledges (individual_id);
                CREATE INDEX IF NOT EXISTS idx_pledges_commitment ON pledges (date_of_commitment);
                CREATE INDEX IF NOT EXISTS idx_bank_transactions_reference
                    ON bank_transactions (transaction_reference);
                """
            )

            _ensure_column(
                connection=connection,
                table_name="pledges",
                column_name="submission_source",
                definition="TEXT NOT NULL DEFAULT 'admin'",
            )

    # Individuals

    def get_individual(self, individual_id: int) -> sqlite3.Row | None:
        with self._session() as connection:
            return connection.execute(
                "SELECT * FROM individuals WHERE id = ?",
                (individual_id,),
            ).fetchone()

    def find_individual_by_user_id(self, user_id: str) -> sqlite3.Row | None:
        with self._session() as connection:
            return connection.execute(
                "SELECT * FROM individuals WHERE user_id = ?",
                (user_id,),
            ).fetchone()

    def find_individual_by_email(self, email: str) -> sqlite3.Row | None:
        normalized = clean_email(email)
        if normalized is None:
            return None
        with self._session() as connection:
            return connection.execute(
                "SELECT * FROM individuals WHERE email = ?",
                (normalized,),
            ).fetchone()

    def find_individuals_by_phone(self, phone_number: str) -> list[sqlite3.Row]:
        with self._session() as connection:
            return connection.execute(
                "SELECT * FROM individuals WHERE phone_number = ? ORDER BY id ASC",
                (phone_number,),
            ).fetchall()

    def list_individuals(
        self,
        unlinked_only: bool = False,
        with_email_only: bool = False,
        with_pledges_only: bool = False,
    ) -> list[sqlite3.Row]:
        where_clauses: list[str] = []
        if unlinked_only:
            where_clauses.append("i.user_id IS NULL")
        if with_email_only:
            where_clauses.append("i.email IS NOT NULL")
        if with_pledges_only:
            where_clauses.append(
                "EXISTS (SELECT 1 FROM pledges p WHERE p.individual_id = i.id)"
            )

        where_sql = f"WHERE {' AND '.join(where_clauses)}" if where_clauses else ""
        query = f"""
            SELECT
                i.*,
                (
                    SELECT COUNT(*)
                    FROM pledges p
                    WHERE p.individual_id = i.id
                ) AS pledge_count
            FROM individuals i
            {where_sql}
            ORDER BY i.name ASC, i.id ASC
        """
        with self._session() as connection:
            return connection.execute(query).fetchall()

    def add_individual(
        self,
        name: str,
        email: str | None,
        phone_number: str | None,
        user_id: str | None = None,
    ) -> int:
        clean_name = _clean(name)
        if not clean_name:
            raise ValueError("Individual name is required.")

        with self._session() as connection:
            cursor = connection.execute(
                """
                INSERT INTO individuals (name, email, phone_number, user_id)
                VALUES (?, ?, ?, ?)
                """,
                (clean_name, clean_email(email), _clean(phone_number), user_id or None),
            )
            return _lastrowid(cursor)

    def link_individual(self, individual_id: int, user_id: str) -> bool:
        """Set the auth link only while it is still empty.

        Returns ``False`` when the row was already linked (or vanished), so a
        concurrent link is never overwritten.
        """
        with self._session() as connection:
            cursor = connection.execute(
                """
                UPDATE individuals
                SET user_id = ?, updated_at = CURRENT_TIMESTAMP
                WHERE id = ? AND user_id IS NULL
                """,
                (user_id, individual_id),
            )
            return cursor.rowcount == 1

    def update_individual_details(
        self,
        individual_id: int,
        name: str | None = None,
        email: str | None = None,
    ) -> None:
        with self._session() as connection:
            connection.execute(
                """
                UPDATE individuals
                SET
                    name = COALESCE(?, name),
                    email = COALESCE(?, email),
                    updated_at = CURRENT_TIMESTAMP
                WHERE id = ?
                """,
                (_clean(name), clean_email(email), individual_id),
            )

    # Pledges

    def add_pledge(self, record: dict[str, Any]) -> int:
        missing = [column for column in _PLEDGE_COLUMNS if column not in record]
        if missing:
            raise ValueError(f"Pledge record is missing: {', '.join(missing)}")
        if record["submission_source"] not in SUBMISSION_SOURCES:
            raise ValueError("Unknown pledge submission source.")

        placeholders = ", ".join("?" for _ in _PLEDGE_COLUMNS)
        with self._session() as connection:
            cursor = connection.execute(
                f"INSERT INTO pledges ({', '.join(_PLEDGE_COLUMNS)}) VALUES ({placeholders})",
                tuple(record[column] for column in _PLEDGE_COLUMNS),
            )
            return _lastrowid(cursor)

    def get_pledge(self, pledge_id: int) -> sqlite3.Row | None:
        with self._session() as connection:
            return connection.execute(
                "SELECT * FROM pledges WHERE id = ?",
                (pledge_id,),
            ).fetchone()

    def list_pledges(self, individual_id: int) -> list[sqlite3.Row]:
        with self._session() as connection:
            return connection.execute(
                """
                SELECT *
                FROM pledges
                WHERE individual_id = ?
                ORDER BY date_of_commitment DESC, id DESC
                """,
                (individual_id,),
            ).fetchall()

    def pledge_summary(self, individual_id: int) -> dict[str, int | float]:
        with self._session() as connection:
            row = connection.execute(
                """
                SELECT
                    COUNT(*) AS pledge_count,
                    COALESCE(SUM(missionaries_committed), 0) AS missionaries_committed,
                    COALESCE(SUM(yearly_missionary_support), 0) AS yearly_missionary_support,
                    COALESCE(SUM(yearly_special_support), 0) AS yearly_special_support,
                    COALESCE(SUM(amount), 0) AS yearly_total
                FROM pledges
                WHERE individual_id = ?
                """,
                (individual_id,),
            ).fetchone()

        return {
            "pledge_count": int(row["pledge_count"]),
            "missionaries_committed": int(row["missionaries_committed"]),
            "yearly_missionary_support": float(row["yearly_missionary_support"]),
            "yearly_special_support": float(row["yearly_special_support"]),
            "yearly_total": float(row["yearly_total"]),
        }

    # Bank statements

    def existing_transaction_references(self) -> set[str]:
        with self._session() as connection:
            rows = connection.execute(
                """
                SELECT DISTINCT transaction_reference
                FROM bank_transactions
                WHERE transaction_reference <> ''
                """
            ).fetchall()
        return {str(row["transaction_reference"]) for row in rows}

    def add_bank_transactions(self, transactions: Iterable[dict[str, Any]]) -> int:
        rows = [
            tuple(transaction.get(column) for column in _BANK_TRANSACTION_COLUMNS)
            for transaction in transactions
        ]
        if not rows:
            return 0

        placeholders = ", ".join("?" for _ in _BANK_TRANSACTION_COLUMNS)
        with self._session() as connection:
            connection.executemany(
                f"""
                INSERT INTO bank_transactions ({', '.join(_BANK_TRANSACTION_COLUMNS)})
                VALUES ({placeholders})
                """,
                rows,
            )
        return len(rows)

    def list_bank_transactions(
        self,
        unreconciled_only: bool = False,
        month_start: date | None = None,
        month_end: date | None = None,
    ) -> list[sqlite3.Row]:
        where_clauses: list[str] = []
        parameters: list[Any] = []

        if unreconciled_only:
            where_clauses.append("bt.reconciled = 0")
        if month_start is not None:
            where_clauses.append("bt.transaction_date >= ?")
            parameters.append(month_start.isoformat())
        if month_end is not None:
            where_clauses.append("bt.transaction_date <= ?")
            parameters.append(month_end.isoformat())

        where_sql = f"WHERE {' AND '.join(where_clauses)}" if where_clauses else ""
        query = f"""
            SELECT
                bt.*,
                i.name AS individual_name
            FROM bank_transactions bt
            LEFT JOIN pledges p ON p.id = bt.pledge_id
            LEFT JOIN individuals i ON i.id = p.individual_id
            {where_sql}
            ORDER BY bt.transaction_date DESC, bt.id DESC
        """
        with self._session() as connection:
            return connection.execute(query, parameters).fetchall()

    def reconcile_bank_transaction(
        self,
        bank_transaction_id: int,
        pledge_id: int | None = None,
        receipt_number: str | None = None,
        notes: str | None = None,
    ) -> None:
        with self._session() as connection:
            transaction = connection.execute(
                "SELECT id, reconciled FROM bank_transactions WHERE id = ?",
                (bank_transaction_id,),
            ).fetchone()
            if transaction is None:
                raise ValueError("Bank transaction record was not found.")
            if transaction["reconciled"]:
                raise ValueError("Bank transaction is already reconciled.")

            if pledge_id is not None:
                pledge = connection.execute(
                    "SELECT id FROM pledges WHERE id = ?",
                    (pledge_id,),
                ).fetchone()
                if pledge is None:
                    raise ValueError("Pledge record was not found.")

            connection.execute(
                """
                UPDATE bank_transactions
                SET reconciled = 1, pledge_id = ?, receipt_number = ?, notes = ?
                WHERE id = ?
                """,
                (pledge_id, _clean(receipt_number), _clean(notes) or "", bank_transaction_id),
            )

    # Notifications

    def add_notification(
        self,
        title: str,
        message: str,
        notification_type: str = "general",
        related_id: int | None = None,
        for_admins: bool = True,
    ) -> int:
        clean_title = _clean(title)
        if not clean_title:
            raise ValueError("Notification title is required.")

        with self._session() as connection:
            cursor = connection.execute(
                """
                INSERT INTO notifications (
                    title,
                    message,
                    notification_type,
                    related_id,
                    for_admins
                )
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    clean_title,
                    message.strip(),
                    _clean(notification_type) or "general",
                    related_id,
                    1 if for_admins else 0,
                ),
            )
            return _lastrowid(cursor)

    def list_notifications(
        self,
        for_admins: bool | None = None,
        unread_only: bool = False,
    ) -> list[sqlite3.Row]:
        where_clauses: list[str] = []
        parameters: list[Any] = []

        if for_admins is not None:
            where_clauses.append("for_admins = ?")
            parameters.append(1 if for_admins else 0)
        if unread_only:
            where_clauses.append("is_read = 0")

        where_sql = f"WHERE {' AND '.join(where_clauses)}" if where_clauses else ""
        with self._session() as connection:
            return connection.execute(
                f"SELECT * FROM notifications {where_sql} ORDER BY created_at DESC, id DESC",
                parameters,
            ).fetchall()

    def mark_notification_read(self, notification_id: int) -> None:
        with self._session() as connection:
            connection.execute(
                "UPDATE notifications SET is_read = 1 WHERE id = ?",
                (notification_id,),
            )
