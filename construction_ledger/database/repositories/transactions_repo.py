# construction_ledger/database/repositories/transactions_repo.py
"""
Transaction ledger: invoices and payments.

Every write stores the entered amount, its currency, the exchange rate used
and `amount_try`, the base-currency equivalent derived once here. Reads never
recompute `amount_try`.
"""
from __future__ import annotations

import json
import logging
import sqlite3
from typing import Any, Mapping, Optional, TypedDict

from ... import config
from ...constants import SCOPES, TRANSACTION_TYPES
from ...utils.currency import derive_base_amount, effective_rate, normalize_currency
from ...utils.helpers import fmt_money
from ...utils.loggers import log_event
from ...utils.validators import is_iso_date, non_empty
from .payment_allocations_repo import PaymentAllocationsRepo
from .tx_helpers import OpResult, immediate_tx, row_to_dict

_log = logging.getLogger(__name__)


# Domain-level error the caller can surface directly (e.g., toast/snackbar)
class DomainError(Exception):
    pass


class TransactionFilters(TypedDict, total=False):
    scope: str
    type: str
    company_id: int
    project_id: int
    start_date: str
    end_date: str
    search: str
    limit: int


UPDATABLE_FIELDS = (
    "scope", "company_id", "project_id", "type", "category_id", "date",
    "description", "amount", "currency", "exchange_rate", "document_no",
    "linked_invoice_id", "notes",
)

_MONEY_FIELDS = ("amount", "currency", "exchange_rate")

_SELECT_DETAILED = """
    SELECT t.*,
           c.name    AS company_name,
           p.name    AS project_name,
           cat.name  AS category_name,
           cat.color AS category_color,
           COALESCE(pa_sum.total_allocated, 0) AS allocated_amount
    FROM transactions t
    LEFT JOIN companies  c   ON c.id = t.company_id
    LEFT JOIN projects   p   ON p.id = t.project_id
    LEFT JOIN categories cat ON cat.id = t.category_id
    LEFT JOIN (
        SELECT payment_id, SUM(amount) AS total_allocated
        FROM payment_allocations
        GROUP BY payment_id
    ) pa_sum ON pa_sum.payment_id = t.id
"""


class TransactionsRepo:
    def __init__(self, conn: sqlite3.Connection):
        conn.row_factory = sqlite3.Row
        self.conn = conn

    # ---- Internal helpers -------------------------------------------------

    @staticmethod
    def _check_enums(data: Mapping[str, Any], *, partial: bool) -> None:
        if not partial or "scope" in data:
            if data.get("scope") not in SCOPES:
                raise DomainError(f"Scope must be one of: {', '.join(SCOPES)}.")
        if not partial or "type" in data:
            if data.get("type") not in TRANSACTION_TYPES:
                raise DomainError(f"Type must be one of: {', '.join(TRANSACTION_TYPES)}.")

    @staticmethod
    def _check_required(data: Mapping[str, Any], *, partial: bool) -> None:
        if not partial or "date" in data:
            if not is_iso_date(data.get("date")):
                raise DomainError("Date must be given as YYYY-MM-DD.")
        if not partial or "description" in data:
            if not non_empty(data.get("description")):
                raise DomainError("Description cannot be empty.")

    @staticmethod
    def _nullable(v: Any) -> Any:
        # Empty strings and 0 ids from forms mean "not set".
        return v if v not in ("", 0) else None

    # ---- Queries ----------------------------------------------------------

    def get(self, transaction_id: int) -> dict | None:
        r = self.conn.execute(_SELECT_DETAILED + " WHERE t.id = ?", (transaction_id,)).fetchone()
        return row_to_dict(r)

    def get_all_filtered(self, filters: Optional[TransactionFilters] = None) -> list[dict]:
        """
        Ledger rows matching `filters`, newest first.

        `search` matches description, document number or company name.
        Each row carries company/project/category display fields and
        `allocated_amount` (allocations where the row is the payment side).
        """
        f = filters or {}
        where: list[str] = []
        params: list[Any] = []
        for key, clause in (
            ("scope", "t.scope = ?"),
            ("type", "t.type = ?"),
            ("company_id", "t.company_id = ?"),
            ("project_id", "t.project_id = ?"),
            ("start_date", "t.date >= ?"),
            ("end_date", "t.date <= ?"),
        ):
            if f.get(key):
                where.append(clause)
                params.append(f[key])
        if f.get("search"):
            where.append("(t.description LIKE ? OR t.document_no LIKE ? OR c.name LIKE ?)")
            pattern = f"%{f['search']}%"
            params += [pattern, pattern, pattern]

        sql = _SELECT_DETAILED
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY t.date DESC, t.created_at DESC, t.id DESC"
        if f.get("limit"):
            sql += " LIMIT ?"
            params.append(int(f["limit"]))
        return [dict(r) for r in self.conn.execute(sql, params).fetchall()]

    def get_by_company(self, company_id: int, filters: Optional[TransactionFilters] = None) -> list[dict]:
        return self.get_all_filtered({**(filters or {}), "company_id": company_id})

    def get_by_project(self, project_id: int, filters: Optional[TransactionFilters] = None) -> list[dict]:
        return self.get_all_filtered({**(filters or {}), "project_id": project_id})

    def get_invoices_for_project(self, project_id: int) -> list[dict]:
        rows = self.conn.execute(
            """
            SELECT t.*, c.name AS company_name
            FROM transactions t
            LEFT JOIN companies c ON c.id = t.company_id
            WHERE t.project_id = ? AND t.type IN ('invoice_out', 'invoice_in')
            ORDER BY t.date DESC, t.id DESC
            """,
            (project_id,),
        ).fetchall()
        return [dict(r) for r in rows]

    def get_invoices_for_company(self, company_id: int) -> list[dict]:
        rows = self.conn.execute(
            """
            SELECT t.*, p.name AS project_name
            FROM transactions t
            LEFT JOIN projects p ON p.id = t.project_id
            WHERE t.company_id = ? AND t.type IN ('invoice_out', 'invoice_in')
            ORDER BY t.date DESC, t.id DESC
            """,
            (company_id,),
        ).fetchall()
        return [dict(r) for r in rows]

    def get_recent(self, limit: int = 10) -> list[dict]:
        return self.get_all_filtered({"limit": limit})

    # ---- Mutations --------------------------------------------------------

    def create(self, data: Mapping[str, Any]) -> dict:
        """
        Insert a ledger entry and return it with display fields.

        Raises:
            DomainError: bad scope/type, non-ISO date or missing description.
            InvalidAmount / InvalidExchangeRate / InvalidCurrency: money input.
        """
        self._check_enums(data, partial=False)
        self._check_required(data, partial=False)

        base = config.base_currency()
        currency = normalize_currency(data.get("currency"), base)
        amount_try = derive_base_amount(
            data.get("amount"), currency, data.get("exchange_rate"), base
        )
        rate = 1.0 if currency == base else effective_rate(data.get("exchange_rate"))

        cur = self.conn.execute(
            """
            INSERT INTO transactions (
                scope, company_id, project_id, type, category_id, date, description,
                amount, currency, exchange_rate, amount_try, document_no,
                linked_invoice_id, notes
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                data["scope"],
                self._nullable(data.get("company_id")),
                self._nullable(data.get("project_id")),
                data["type"],
                self._nullable(data.get("category_id")),
                data["date"],
                str(data["description"]).strip(),
                float(data["amount"]),
                currency,
                rate,
                amount_try,
                self._nullable(data.get("document_no")),
                self._nullable(data.get("linked_invoice_id")),
                self._nullable(data.get("notes")),
            ),
        )
        tx_id = int(cur.lastrowid)
        _log.info("Transaction %s created: %s %s", tx_id, data["type"],
                  fmt_money(amount_try, currency=base))
        return self.get(tx_id)  # type: ignore[return-value]

    def update(self, transaction_id: int, data: Mapping[str, Any]) -> dict | None:
        """
        Partial update: only keys present in `data` are written.

        When any of amount/currency/exchange_rate is supplied, the missing ones
        come from the stored row and `amount_try` is rewritten. A supplied rate
        is validated strictly; a stored rate falls back to 1.0. Base-currency
        rows always store a rate of 1.

        Raises:
            DomainError: bad enum, date or description; or a type change that
                would strand existing allocations.
            OverAllocationError: the new amount is below what is already
                allocated on this row.
        """
        self._check_enums(data, partial=True)
        self._check_required(data, partial=True)
        cols = [f for f in UPDATABLE_FIELDS if f in data]
        if not cols:
            return self.get(transaction_id)

        existing = self.get(transaction_id)
        if existing is None:
            return None

        values = {c: data[c] for c in cols}
        if any(f in data for f in _MONEY_FIELDS):
            base = config.base_currency()
            amount = data["amount"] if "amount" in data else existing["amount"]
            currency = normalize_currency(
                data["currency"] if "currency" in data else existing["currency"], base
            )
            rate_supplied = "exchange_rate" in data
            rate = data["exchange_rate"] if rate_supplied else existing["exchange_rate"]
            values["amount_try"] = derive_base_amount(
                amount, currency, rate, base, strict=rate_supplied
            )
            if "amount" in values:
                values["amount"] = float(amount)
            if "currency" in values:
                values["currency"] = currency
            if currency == base:
                values["exchange_rate"] = 1.0
            elif rate_supplied:
                values["exchange_rate"] = effective_rate(rate)

        sets = ", ".join(f"{c} = ?" for c in values)
        with immediate_tx(self.conn):
            self.conn.execute(
                f"UPDATE transactions SET {sets}, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                list(values.values()) + [transaction_id],
            )
            if "type" in values or "amount_try" in values:
                PaymentAllocationsRepo(self.conn).check_existing(transaction_id)
        return self.get(transaction_id)

    def delete(self, transaction_id: int) -> OpResult:
        """
        Move a transaction to trash.

        One atomic unit: snapshot the joined row, drop every allocation that
        references it on either side, delete the row. Failures roll back and
        propagate.
        """
        tx = self.conn.execute(
            """
            SELECT t.*, c.name AS company_name, p.name AS project_name
            FROM transactions t
            LEFT JOIN companies c ON c.id = t.company_id
            LEFT JOIN projects  p ON p.id = t.project_id
            WHERE t.id = ?
            """,
            (transaction_id,),
        ).fetchone()
        if tx is None:
            return OpResult(False, "Transaction not found.")

        try:
            with immediate_tx(self.conn):
                self.conn.execute(
                    "INSERT INTO trash (type, data) VALUES ('transaction', ?)",
                    (json.dumps(dict(tx), default=str),),
                )
                self.conn.execute(
                    "DELETE FROM payment_allocations WHERE payment_id = ? OR invoice_id = ?",
                    (transaction_id, transaction_id),
                )
                self.conn.execute("DELETE FROM transactions WHERE id = ?", (transaction_id,))
        except sqlite3.Error:
            _log.exception("Moving transaction %s to trash failed; rolled back", transaction_id)
            raise
        log_event(_log, "trash", "commit", "Transaction moved to trash",
                  {"type": "transaction", "record_id": transaction_id})
        return OpResult(True)
