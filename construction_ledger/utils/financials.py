"""
utils/financials.py

Pure helpers that roll a list of ledger rows (dicts from TransactionsRepo)
into company / project / list totals. Mirrors the SQL used by
CompaniesRepo.get_with_balance() and ProjectsRepo.get_with_summary() so
that screens computing from an already-loaded list agree with the database.

Do not import repos or open DB connections here.
Only compute numbers; formatting belongs in the UI.
"""
from __future__ import annotations

from typing import Iterable, Mapping, Optional

from ..constants import INVOICE_IN, INVOICE_OUT, PAYMENT_IN, PAYMENT_OUT

__all__ = [
    "clamp_non_negative",
    "base_amount_of",
    "sum_by_type",
    "company_financials",
    "project_financials",
    "transaction_totals",
]


# -----------------------------
# Core utilities
# -----------------------------

def clamp_non_negative(x: float) -> float:
    """Return x if x > 0, else 0.0."""
    return x if x > 0.0 else 0.0


def base_amount_of(row: Mapping) -> float:
    """`amount_try`, falling back to `amount` for legacy rows without it."""
    v = row.get("amount_try")
    if v is None:
        v = row.get("amount")
    return float(v or 0.0)


def sum_by_type(rows: Iterable[Mapping], tx_type: str) -> float:
    return sum(base_amount_of(r) for r in rows if r.get("type") == tx_type)


def _sum_allocated(rows: Iterable[Mapping], tx_type: str) -> float:
    return sum(float(r.get("allocated_amount") or 0.0) for r in rows if r.get("type") == tx_type)


def _sum_independent(rows: Iterable[Mapping], tx_type: str) -> float:
    """
    Unallocated part of payments of `tx_type`.

    A payment with allocations contributes (amount - allocated), clamped >= 0.
    A legacy payment tied to an invoice only via linked_invoice_id counts as
    fully matched.
    """
    total = 0.0
    for r in rows:
        if r.get("type") != tx_type:
            continue
        base = base_amount_of(r)
        allocated = float(r.get("allocated_amount") or 0.0)
        if allocated > 0:
            total += clamp_non_negative(base - allocated)
        elif r.get("linked_invoice_id"):
            continue
        else:
            total += base
    return total


# -----------------------------
# Roll-ups
# -----------------------------

def company_financials(rows: Iterable[Mapping]) -> dict:
    """
    Company account view: every payment reduces the balance regardless of
    allocation.

      receivable = invoice_out - payment_in
      payable    = invoice_in  - payment_out
      balance    = receivable - payable
    """
    rows = list(rows)
    inv_out = sum_by_type(rows, INVOICE_OUT)
    pay_in = sum_by_type(rows, PAYMENT_IN)
    inv_in = sum_by_type(rows, INVOICE_IN)
    pay_out = sum_by_type(rows, PAYMENT_OUT)
    receivable = inv_out - pay_in
    payable = inv_in - pay_out
    return {
        "total_invoice_out": inv_out,
        "total_payment_in": pay_in,
        "total_invoice_in": inv_in,
        "total_payment_out": pay_out,
        "receivable": receivable,
        "payable": payable,
        "balance": receivable - payable,
    }


def project_financials(
    rows: Iterable[Mapping],
    ownership_type: str = "own",
    estimated_budget: Optional[float] = None,
) -> dict:
    """
    Project view: only the unallocated part of a payment counts as
    independent income/expense; allocated payments settle invoices.

      total_income  = invoice_out + independent payment_in
      total_expense = invoice_in  + independent payment_out
      client_receivable = invoice_out - allocated payment_in   (>= 0)
      project_debt      = invoice_in  - allocated payment_out  (>= 0)
    """
    rows = list(rows)
    inv_out = sum_by_type(rows, INVOICE_OUT)
    inv_in = sum_by_type(rows, INVOICE_IN)
    pay_in = sum_by_type(rows, PAYMENT_IN)
    pay_out = sum_by_type(rows, PAYMENT_OUT)
    ind_in = _sum_independent(rows, PAYMENT_IN)
    ind_out = _sum_independent(rows, PAYMENT_OUT)

    total_income = inv_out + ind_in
    total_expense = inv_in + ind_out

    return {
        "total_invoice_out": inv_out,
        "total_invoice_in": inv_in,
        "total_payment_in": pay_in,
        "total_payment_out": pay_out,
        "independent_payment_in": ind_in,
        "independent_payment_out": ind_out,
        "total_income": total_income,
        "total_expense": total_expense,
        "project_profit": total_income - total_expense,
        "estimated_profit": (estimated_budget - total_expense) if estimated_budget else None,
        "budget_used": (total_expense / estimated_budget * 100.0) if estimated_budget else 0.0,
        "ownership_type": ownership_type,
        "client_receivable": clamp_non_negative(inv_out - _sum_allocated(rows, PAYMENT_IN)),
        "project_debt": clamp_non_negative(inv_in - _sum_allocated(rows, PAYMENT_OUT)),
    }


def transaction_totals(rows: Iterable[Mapping]) -> dict:
    """Footer totals for a filtered ledger list."""
    rows = list(rows)
    inv_out = sum_by_type(rows, INVOICE_OUT)
    pay_in = sum_by_type(rows, PAYMENT_IN)
    inv_in = sum_by_type(rows, INVOICE_IN)
    pay_out = sum_by_type(rows, PAYMENT_OUT)
    return {
        "total_invoice_out": inv_out,
        "total_payment_in": pay_in,
        "total_invoice_in": inv_in,
        "total_payment_out": pay_out,
        "total_income": inv_out + pay_in,
        "total_expense": inv_in + pay_out,
        "net_profit": inv_out - inv_in,
        "net_cash_flow": pay_in - pay_out,
        "net_balance": (inv_out + pay_in) - (inv_in + pay_out),
    }
