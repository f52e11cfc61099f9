# construction_ledger/database/repositories/companies_repo.py
from __future__ import annotations

import json
import logging
import sqlite3
from typing import Any, Mapping, Optional

from ...constants import ACCOUNT_TYPES, COMPANY_TYPES
from ...utils.loggers import log_event
from .tx_helpers import OpResult, immediate_tx, row_to_dict

_log = logging.getLogger(__name__)


# Domain-level error the caller can surface directly (e.g., toast/snackbar)
class DomainError(Exception):
    pass


UPDATABLE_FIELDS = (
    "type", "account_type", "name", "tc_number", "profession", "tax_office",
    "tax_number", "trade_registry_no", "contact_person", "phone", "email",
    "address", "bank_name", "iban", "notes",
)

_OPTIONAL_TEXT = UPDATABLE_FIELDS[3:]


def _amount(t: str, tx_type: str) -> str:
    return (
        f"COALESCE(SUM(CASE WHEN {t}.type = '{tx_type}' "
        f"THEN COALESCE({t}.amount_try, {t}.amount) ELSE 0 END), 0)"
    )


class CompaniesRepo:
    def __init__(self, conn: sqlite3.Connection):
        conn.row_factory = sqlite3.Row
        self.conn = conn

    # ---- Internal helpers -------------------------------------------------

    @staticmethod
    def _normalize_text(s: Optional[str]) -> Optional[str]:
        if s is None:
            return None
        s = str(s).strip()
        return s or None

    @staticmethod
    def _check_choice(value: Any, choices: tuple, field_label: str) -> None:
        if value not in choices:
            raise DomainError(f"{field_label} must be one of: {', '.join(choices)}.")

    def _validate(self, data: Mapping[str, Any], *, partial: bool) -> None:
        if not partial or "name" in data:
            if not self._normalize_text(data.get("name")):
                raise DomainError("Name cannot be empty.")
        if not partial or "type" in data:
            self._check_choice(data.get("type"), COMPANY_TYPES, "Company type")
        if not partial or "account_type" in data:
            self._check_choice(data.get("account_type"), ACCOUNT_TYPES, "Account type")

    # ---- Queries ----------------------------------------------------------

    def list(self, include_inactive: bool = False) -> list[dict]:
        where = "" if include_inactive else " WHERE is_active = 1"
        rows = self.conn.execute(
            f"SELECT * FROM companies{where} ORDER BY created_at DESC, id DESC"
        ).fetchall()
        return [dict(r) for r in rows]

    def get(self, company_id: int) -> dict | None:
        r = self.conn.execute("SELECT * FROM companies WHERE id = ?", (company_id,)).fetchone()
        return row_to_dict(r)

    def get_with_balance(self) -> list[dict]:
        """
        Active companies with their ledger roll-up:
          receivable = invoice_out - payment_in
          payable    = invoice_in  - payment_out
          balance    = receivable - payable
        """
        inv_out, pay_in = _amount("t", "invoice_out"), _amount("t", "payment_in")
        inv_in, pay_out = _amount("t", "invoice_in"), _amount("t", "payment_out")
        rows = self.conn.execute(
            f"""
            SELECT c.*,
                   {inv_out} AS total_invoice_out,
                   {pay_in}  AS total_payment_in,
                   {inv_in}  AS total_invoice_in,
                   {pay_out} AS total_payment_out,
                   {inv_out} - {pay_in} AS receivable,
                   {inv_in} - {pay_out} AS payable,
                   ({inv_out} - {pay_in}) - ({inv_in} - {pay_out}) AS balance,
                   COUNT(DISTINCT t.id) AS transaction_count
            FROM companies c
            LEFT JOIN transactions t ON t.company_id = c.id
            WHERE c.is_active = 1
            GROUP BY c.id
            ORDER BY c.name COLLATE NOCASE ASC
            """
        ).fetchall()
        return [dict(r) for r in rows]

    def get_related_counts(self, company_id: int) -> dict:
        """Counts shown in the delete confirmation."""
        tx = self.conn.execute(
            "SELECT COUNT(*) FROM transactions WHERE company_id = ?", (company_id,)
        ).fetchone()[0]
        proj = self.conn.execute(
            "SELECT COUNT(*) FROM projects WHERE client_company_id = ? AND is_active = 1",
            (company_id,),
        ).fetchone()[0]
        return {"transaction_count": int(tx), "project_count": int(proj)}

    # ---- Mutations --------------------------------------------------------

    def create(self, data: Mapping[str, Any]) -> dict:
        self._validate(data, partial=False)
        values = [data["type"], data["account_type"], self._normalize_text(data["name"])]
        values += [self._normalize_text(data.get(f)) for f in _OPTIONAL_TEXT]
        cur = self.conn.execute(
            f"INSERT INTO companies ({', '.join(UPDATABLE_FIELDS)}) "
            f"VALUES ({', '.join('?' for _ in UPDATABLE_FIELDS)})",
            values,
        )
        return self.get(int(cur.lastrowid))  # type: ignore[return-value]

    def update(self, company_id: int, data: Mapping[str, Any]) -> dict | None:
        """Partial update: only keys present in `data` are written."""
        self._validate(data, partial=True)
        sets: list[str] = []
        params: list[Any] = []
        for field in UPDATABLE_FIELDS:
            if field in data:
                sets.append(f"{field} = ?")
                value = data[field]
                params.append(self._normalize_text(value) if field in _OPTIONAL_TEXT or field == "name" else value)
        if not sets:
            return self.get(company_id)
        sets.append("updated_at = CURRENT_TIMESTAMP")
        params.append(company_id)
        self.conn.execute(f"UPDATE companies SET {', '.join(sets)} WHERE id = ?", params)
        return self.get(company_id)

    def delete(self, company_id: int) -> OpResult:
        """
        Move a company to trash.

        Client projects are removed with it; FK cascades remove its
        transactions (and their allocations) and project parties.
        """
        company = self.get(company_id)
        if company is None:
            return OpResult(False, "Company not found.")
        with immediate_tx(self.conn):
            self.conn.execute(
                "INSERT INTO trash (type, data) VALUES ('company', ?)",
                (json.dumps(company, default=str),),
            )
            self.conn.execute("DELETE FROM projects WHERE client_company_id = ?", (company_id,))
            self.conn.execute("DELETE FROM companies WHERE id = ?", (company_id,))
        log_event(_log, "trash", "commit", "Company moved to trash",
                  {"type": "company", "record_id": company_id})
        return OpResult(True)
