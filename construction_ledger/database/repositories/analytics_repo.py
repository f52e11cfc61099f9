# construction_ledger/database/repositories/analytics_repo.py
from __future__ import annotations

import sqlite3
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from ...constants import AGING_BUCKETS
from ...utils.helpers import today_str
from .tx_helpers import to_float

# Base-currency value of a row; legacy rows without amount_try fall back to amount.
_BASE = "COALESCE({t}amount_try, {t}amount)"


def _sum_type(tx_type: str, alias: str = "") -> str:
    t = f"{alias}." if alias else ""
    return f"COALESCE(SUM(CASE WHEN {t}type = '{tx_type}' THEN {_BASE.format(t=t)} ELSE 0 END), 0)"


def _parse_iso(d: str) -> date:
    return datetime.strptime(str(d)[:10], "%Y-%m-%d").date()


def cumulative_cash_flow(net_values: Iterable[float]) -> List[float]:
    """Running prefix sum: [100, -50, 20] -> [100, 50, 70]."""
    out: List[float] = []
    running = 0.0
    for v in net_values:
        running += float(v)
        out.append(running)
    return out


def bucket_for_age(age_days: int, buckets: Sequence[Tuple[str, int, Optional[int]]] = AGING_BUCKETS) -> str:
    """Label of the aging bucket for an age in days; future dates count as current."""
    age = max(age_days, 0)
    for label, lo, hi in buckets:
        if age >= lo and (hi is None or age <= hi):
            return label
    return buckets[-1][0]


class AnalyticsRepo:
    """
    Read-only aggregates over the ledger.

    Every figure is recomputed from `transactions` on each call; nothing is
    cached. Sums are in the base currency (`amount_try`).
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn
        self.conn.row_factory = sqlite3.Row

    # ------------------------------ helpers --------------------------------

    def _rows(self, sql: str, params: Tuple[Any, ...] = ()) -> List[Dict[str, Any]]:
        return [dict(r) for r in self.conn.execute(sql, params).fetchall()]

    def _one(self, sql: str, params: Tuple[Any, ...] = ()) -> Dict[str, Any]:
        r = self.conn.execute(sql, params).fetchone()
        return dict(r) if r else {}

    # ------------------------------ dashboard ------------------------------

    def get_dashboard_stats(self) -> Dict[str, float]:
        totals = self._one(
            f"""
            SELECT {_sum_type('invoice_out')} AS income,
                   {_sum_type('invoice_in')}  AS expense,
                   {_sum_type('payment_in')}  AS collected,
                   {_sum_type('payment_out')} AS paid
            FROM transactions
            """
        )
        counts = self._one(
            """
            SELECT
              (SELECT COUNT(*) FROM projects WHERE is_active = 1 AND status = 'active') AS active_projects,
              (SELECT COUNT(*) FROM companies WHERE is_active = 1) AS total_companies,
              (SELECT COUNT(*) FROM materials
                WHERE is_active = 1 AND min_stock > 0 AND current_stock <= min_stock) AS low_stock_count
            """
        )
        # Per-company balances; only positive ones add up.
        balances = self._one(
            f"""
            SELECT COALESCE(SUM(CASE WHEN receivable > 0 THEN receivable ELSE 0 END), 0) AS receivables,
                   COALESCE(SUM(CASE WHEN payable > 0 THEN payable ELSE 0 END), 0)       AS payables
            FROM (
                SELECT {_sum_type('invoice_out', 't')} - {_sum_type('payment_in', 't')} AS receivable,
                       {_sum_type('invoice_in', 't')} - {_sum_type('payment_out', 't')} AS payable
                FROM transactions t
                WHERE t.company_id IS NOT NULL
                GROUP BY t.company_id
            )
            """
        )
        income = to_float(totals.get("income"))
        expense = to_float(totals.get("expense"))
        collected = to_float(totals.get("collected"))
        paid = to_float(totals.get("paid"))
        return {
            "total_income": income,
            "total_expense": expense,
            "net_profit": income - expense,
            "total_collected": collected,
            "total_paid": paid,
            "net_cash": collected - paid,
            "total_receivables": to_float(balances.get("receivables")),
            "total_payables": to_float(balances.get("payables")),
            "active_projects": int(counts.get("active_projects") or 0),
            "total_companies": int(counts.get("total_companies") or 0),
            "low_stock_count": int(counts.get("low_stock_count") or 0),
        }

    def _top_balances(self, plus: str, minus: str, limit: int, start_date: Optional[str]) -> List[Dict[str, Any]]:
        date_filter = " AND t.date >= ?" if start_date else ""
        params: Tuple[Any, ...] = (start_date, limit) if start_date else (limit,)
        return self._rows(
            f"""
            SELECT c.id, c.name, c.account_type,
                   {_sum_type(plus, 't')} - {_sum_type(minus, 't')} AS balance
            FROM companies c
            JOIN transactions t ON t.company_id = c.id
            WHERE c.is_active = 1{date_filter}
            GROUP BY c.id
            HAVING balance > 0
            ORDER BY balance DESC, c.id ASC
            LIMIT ?
            """,
            params,
        )

    def get_top_debtors(self, limit: int = 5, start_date: Optional[str] = None) -> List[Dict[str, Any]]:
        """Companies owing us the most: invoice_out - payment_in > 0."""
        return self._top_balances("invoice_out", "payment_in", limit, start_date)

    def get_top_creditors(self, limit: int = 5, start_date: Optional[str] = None) -> List[Dict[str, Any]]:
        """Companies we owe the most: invoice_in - payment_out > 0."""
        return self._top_balances("invoice_in", "payment_out", limit, start_date)

    # ------------------------------ monthly --------------------------------

    def get_monthly_stats(self, year: int) -> List[Dict[str, Any]]:
        return self._rows(
            f"""
            SELECT CAST(strftime('%m', date) AS INTEGER) AS month,
                   {_sum_type('invoice_out')} AS income,
                   {_sum_type('invoice_in')}  AS expense,
                   {_sum_type('payment_in')}  AS collected,
                   {_sum_type('payment_out')} AS paid
            FROM transactions
            WHERE strftime('%Y', date) = ?
            GROUP BY month
            ORDER BY month
            """,
            (str(year),),
        )

    def get_cash_flow_report(self, year: int) -> List[Dict[str, Any]]:
        """
        Twelve rows (months 1..12) with collected, paid, net_cash and the
        running `cumulative` balance, starting from zero for the year.
        """
        by_month = {
            int(r["month"]): r
            for r in self._rows(
                f"""
                SELECT CAST(strftime('%m', date) AS INTEGER) AS month,
                       {_sum_type('payment_in')}  AS collected,
                       {_sum_type('payment_out')} AS paid
                FROM transactions
                WHERE strftime('%Y', date) = ?
                GROUP BY month
                """,
                (str(year),),
            )
        }
        months = []
        for m in range(1, 13):
            r = by_month.get(m, {})
            collected = to_float(r.get("collected"))
            paid = to_float(r.get("paid"))
            months.append({"month": m, "collected": collected, "paid": paid, "net_cash": collected - paid})
        for row, cum in zip(months, cumulative_cash_flow(r["net_cash"] for r in months)):
            row["cumulative"] = cum
        return months

    # ------------------------------ aging ----------------------------------

    def get_aging_receivables(self, as_of: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Receivables per active company split into age buckets.

        Each bucket is invoice_out - payment_in over the rows whose own date
        falls in that bucket (payments are not matched to invoices here).
        Companies with a non-positive total are left out; largest total first.
        """
        asof = _parse_iso(as_of or today_str())
        labels = [b[0] for b in AGING_BUCKETS]

        rows = self._rows(
            """
            SELECT c.id AS company_id, c.name AS company_name, t.type, t.date,
                   COALESCE(t.amount_try, t.amount) AS base
            FROM companies c
            JOIN transactions t ON t.company_id = c.id
            WHERE c.is_active = 1 AND t.type IN ('invoice_out', 'payment_in')
            ORDER BY c.id
            """
        )

        per_company: Dict[int, Dict[str, Any]] = {}
        for r in rows:
            entry = per_company.setdefault(
                r["company_id"],
                {"company_id": r["company_id"], "company_name": r["company_name"],
                 **{label: 0.0 for label in labels}, "total": 0.0},
            )
            sign = 1.0 if r["type"] == "invoice_out" else -1.0
            value = sign * to_float(r["base"])
            entry[bucket_for_age((asof - _parse_iso(r["date"])).days)] += value
            entry["total"] += value

        out = [e for e in per_company.values() if e["total"] > 0]
        out.sort(key=lambda e: (-e["total"], e["company_id"]))
        return out

    # ------------------------------ breakdowns -----------------------------

    def get_project_category_breakdown(self, project_id: int) -> List[Dict[str, Any]]:
        """Expense side (invoice_in + payment_out) of a project grouped by category."""
        return self._rows(
            """
            SELECT COALESCE(cat.name, 'Other') AS category,
                   cat.color AS color,
                   SUM(COALESCE(t.amount_try, t.amount)) AS total,
                   COUNT(*) AS count
            FROM transactions t
            LEFT JOIN categories cat ON cat.id = t.category_id
            WHERE t.project_id = ? AND t.type IN ('invoice_in', 'payment_out')
            GROUP BY t.category_id
            ORDER BY total DESC
            """,
            (project_id,),
        )

    def get_company_monthly_stats(self, company_id: int, year: int) -> List[Dict[str, Any]]:
        """Per month: debit (invoice_out + payment_in) and credit (invoice_in + payment_out)."""
        return self._rows(
            """
            SELECT CAST(strftime('%m', date) AS INTEGER) AS month,
                   COALESCE(SUM(CASE WHEN type IN ('invoice_out', 'payment_in')
                                     THEN COALESCE(amount_try, amount) ELSE 0 END), 0) AS debit,
                   COALESCE(SUM(CASE WHEN type IN ('invoice_in', 'payment_out')
                                     THEN COALESCE(amount_try, amount) ELSE 0 END), 0) AS credit
            FROM transactions
            WHERE company_id = ? AND strftime('%Y', date) = ?
            GROUP BY month
            ORDER BY month
            """,
            (company_id, str(year)),
        )
