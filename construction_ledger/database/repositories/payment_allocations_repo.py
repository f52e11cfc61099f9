# construction_ledger/database/repositories/payment_allocations_repo.py
"""
Payment allocation engine: ties a payment to one or more invoices with a
partial amount (base currency) per invoice.

Transactions are read-only references here; this repo owns only the
payment_allocations rows.
"""
from __future__ import annotations

import logging
import sqlite3
from typing import Any, Iterable, Mapping

from ...constants import EPSILON, INVOICE_TYPES, PAYMENT_TYPES
from ...utils.validators import try_parse_float
from .tx_helpers import immediate_tx, to_float

_log = logging.getLogger(__name__)


class DomainError(Exception):
    pass


class OverAllocationError(ValueError):
    """Allocations would exceed an invoice's amount or the payment's amount."""


ENTITY_COLUMNS = {"project": "t.project_id", "company": "t.company_id"}


class PaymentAllocationsRepo:
    def __init__(self, conn: sqlite3.Connection):
        conn.row_factory = sqlite3.Row
        self.conn = conn

    # ---- Queries ----------------------------------------------------------

    def get_for_payment(self, payment_id: int) -> list[dict]:
        rows = self.conn.execute(
            """
            SELECT pa.*,
                   t.description AS invoice_description,
                   t.amount      AS invoice_amount,
                   COALESCE(t.amount_try, t.amount) AS invoice_amount_try,
                   t.date        AS invoice_date,
                   t.document_no AS invoice_document_no,
                   t.type        AS invoice_type
            FROM payment_allocations pa
            JOIN transactions t ON t.id = pa.invoice_id
            WHERE pa.payment_id = ?
            ORDER BY t.date ASC, pa.id ASC
            """,
            (payment_id,),
        ).fetchall()
        return [dict(r) for r in rows]

    def get_for_invoice(self, invoice_id: int) -> list[dict]:
        rows = self.conn.execute(
            """
            SELECT pa.*,
                   t.description AS payment_description,
                   t.amount      AS payment_amount,
                   COALESCE(t.amount_try, t.amount) AS payment_amount_try,
                   t.date        AS payment_date,
                   t.document_no AS payment_document_no
            FROM payment_allocations pa
            JOIN transactions t ON t.id = pa.payment_id
            WHERE pa.invoice_id = ?
            ORDER BY t.date ASC, pa.id ASC
            """,
            (invoice_id,),
        ).fetchall()
        return [dict(r) for r in rows]

    def get_invoices_with_balance(self, entity_id: int, entity_type: str, invoice_type: str) -> list[dict]:
        """
        Invoices of `invoice_type` for a company or project that still have
        `remaining = amount_try - allocated > 0`, oldest first.
        """
        column = ENTITY_COLUMNS.get(entity_type)
        if column is None:
            raise DomainError("entity_type must be 'company' or 'project'.")
        if invoice_type not in INVOICE_TYPES:
            raise DomainError("invoice_type must be 'invoice_out' or 'invoice_in'.")
        rows = self.conn.execute(
            f"""
            SELECT t.id, t.type, t.description, t.amount,
                   COALESCE(t.amount_try, t.amount) AS amount_try,
                   t.date, t.document_no,
                   c.name AS company_name,
                   COALESCE(alloc.total_allocated, 0) AS total_allocated,
                   COALESCE(t.amount_try, t.amount) - COALESCE(alloc.total_allocated, 0) AS remaining
            FROM transactions t
            LEFT JOIN companies c ON c.id = t.company_id
            LEFT JOIN (
                SELECT invoice_id, SUM(amount) AS total_allocated
                FROM payment_allocations
                GROUP BY invoice_id
            ) alloc ON alloc.invoice_id = t.id
            WHERE {column} = ? AND t.type = ?
              AND (COALESCE(t.amount_try, t.amount) - COALESCE(alloc.total_allocated, 0)) > ?
            ORDER BY t.date ASC, t.id ASC
            """,
            (entity_id, invoice_type, EPSILON),
        ).fetchall()
        return [dict(r) for r in rows]

    def remaining_for_invoice(self, invoice_id: int) -> float | None:
        """amount_try minus everything allocated to the invoice; None if absent."""
        r = self.conn.execute(
            """
            SELECT COALESCE(t.amount_try, t.amount) AS base,
                   (SELECT COALESCE(SUM(amount), 0) FROM payment_allocations
                    WHERE invoice_id = t.id) AS allocated
            FROM transactions t
            WHERE t.id = ?
            """,
            (invoice_id,),
        ).fetchone()
        if r is None:
            return None
        return to_float(r["base"]) - to_float(r["allocated"])

    # ---- Mutations --------------------------------------------------------

    @staticmethod
    def _normalize(allocations: Iterable[Mapping[str, Any]]) -> list[tuple[int, float]]:
        # Repeated invoice ids are merged into one row.
        merged: dict[int, float] = {}
        for a in allocations:
            invoice_id = a.get("invoice_id", a.get("invoiceId"))
            ok, amount = try_parse_float(a.get("amount"))
            if not ok or amount is None:
                raise DomainError(f"Allocation amount must be numeric (got {a.get('amount')!r}).")
            if amount <= 0:
                continue
            if invoice_id is None:
                raise DomainError("Allocation is missing invoice_id.")
            merged[int(invoice_id)] = merged.get(int(invoice_id), 0.0) + amount
        return list(merged.items())

    def _check_limits(self, payment_id: int, items: list[tuple[int, float]]) -> None:
        payment = self.conn.execute(
            "SELECT type, COALESCE(amount_try, amount) AS base FROM transactions WHERE id = ?",
            (payment_id,),
        ).fetchone()
        if payment is None:
            raise DomainError(f"Payment #{payment_id} not found.")
        if payment["type"] not in PAYMENT_TYPES:
            raise DomainError(f"Transaction #{payment_id} is not a payment.")

        for invoice_id, amount in items:
            inv = self.conn.execute(
                """
                SELECT t.type, COALESCE(t.amount_try, t.amount) AS base,
                       (SELECT COALESCE(SUM(pa.amount), 0) FROM payment_allocations pa
                        WHERE pa.invoice_id = t.id AND pa.payment_id <> ?) AS others
                FROM transactions t
                WHERE t.id = ?
                """,
                (payment_id, invoice_id),
            ).fetchone()
            if inv is None:
                raise DomainError(f"Invoice #{invoice_id} not found.")
            if inv["type"] not in INVOICE_TYPES:
                raise DomainError(f"Transaction #{invoice_id} is not an invoice.")
            if to_float(inv["others"]) + amount > to_float(inv["base"]) + EPSILON:
                raise OverAllocationError(
                    f"Invoice #{invoice_id}: allocations would exceed its amount "
                    f"({to_float(inv['others']) + amount:.2f} > {to_float(inv['base']):.2f})."
                )

        total = sum(amount for _, amount in items)
        if total > to_float(payment["base"]) + EPSILON:
            raise OverAllocationError(
                f"Payment #{payment_id}: allocations ({total:.2f}) exceed the payment "
                f"amount ({to_float(payment['base']):.2f})."
            )

    def check_existing(self, transaction_id: int) -> None:
        """
        Re-validate the allocations already stored on either side of
        `transaction_id`, after its type or amount has been edited.

        Raises:
            DomainError: the row is allocated as a payment but is no longer one,
                or as an invoice but is no longer one.
            OverAllocationError: its allocations now exceed its amount_try.
        """
        tx = self.conn.execute(
            """
            SELECT t.type, COALESCE(t.amount_try, t.amount) AS base,
                   (SELECT COUNT(*) FROM payment_allocations WHERE payment_id = t.id) AS n_paid,
                   (SELECT COALESCE(SUM(amount), 0) FROM payment_allocations WHERE payment_id = t.id) AS paid,
                   (SELECT COUNT(*) FROM payment_allocations WHERE invoice_id = t.id) AS n_inv,
                   (SELECT COALESCE(SUM(amount), 0) FROM payment_allocations WHERE invoice_id = t.id) AS inv
            FROM transactions t
            WHERE t.id = ?
            """,
            (transaction_id,),
        ).fetchone()
        if tx is None:
            return
        base = to_float(tx["base"])
        if tx["n_paid"]:
            if tx["type"] not in PAYMENT_TYPES:
                raise DomainError(
                    f"Transaction #{transaction_id} has allocations as a payment; "
                    "clear them before changing its type."
                )
            if to_float(tx["paid"]) > base + EPSILON:
                raise OverAllocationError(
                    f"Payment #{transaction_id}: allocations ({to_float(tx['paid']):.2f}) "
                    f"exceed the payment amount ({base:.2f})."
                )
        if tx["n_inv"]:
            if tx["type"] not in INVOICE_TYPES:
                raise DomainError(
                    f"Transaction #{transaction_id} has payments allocated to it; "
                    "clear them before changing its type."
                )
            if to_float(tx["inv"]) > base + EPSILON:
                raise OverAllocationError(
                    f"Invoice #{transaction_id}: allocations ({to_float(tx['inv']):.2f}) "
                    f"exceed its amount ({base:.2f})."
                )

    def set_for_payment(self, payment_id: int, allocations: Iterable[Mapping[str, Any]]) -> None:
        """
        Replace the payment's allocations with `allocations` in one atomic unit.

        Entries with amount <= 0 are skipped. On any violation nothing changes
        and the previous allocation set stays in place.

        Raises:
            DomainError: payment/invoice missing or of the wrong type.
            OverAllocationError: an invoice or the payment would be over-allocated.
        """
        items = self._normalize(allocations)
        with immediate_tx(self.conn):
            self._check_limits(payment_id, items)
            self.conn.execute("DELETE FROM payment_allocations WHERE payment_id = ?", (payment_id,))
            self.conn.executemany(
                "INSERT INTO payment_allocations (payment_id, invoice_id, amount) VALUES (?, ?, ?)",
                [(payment_id, invoice_id, amount) for invoice_id, amount in items],
            )
        _log.info("Payment %s allocated to %d invoice(s)", payment_id, len(items))

    def delete_for_payment(self, payment_id: int) -> None:
        self.conn.execute("DELETE FROM payment_allocations WHERE payment_id = ?", (payment_id,))
