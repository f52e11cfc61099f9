# construction_ledger/database/repositories/projects_repo.py
from __future__ import annotations

import json
import logging
import sqlite3
from datetime import date
from typing import Any, Mapping, Optional

from ...constants import ACCOUNT_TYPES, OWNERSHIP_TYPES, PROJECT_STATUSES, PROJECT_TYPES
from ...utils.financials import clamp_non_negative
from ...utils.loggers import log_event
from ...utils.validators import non_empty
from .tx_helpers import OpResult, immediate_tx, row_to_dict, to_float

_log = logging.getLogger(__name__)


# Domain-level error the caller can surface directly (e.g., toast/snackbar)
class DomainError(Exception):
    pass


UPDATABLE_FIELDS = (
    "code", "name", "ownership_type", "client_company_id", "status", "project_type",
    "location", "total_area", "unit_count", "estimated_budget", "planned_start",
    "planned_end", "actual_start", "actual_end", "description",
)

# Roll-up used by get_with_summary(). Independent payments are the part of a
# payment not allocated to any invoice; a legacy single-invoice link counts as
# fully matched.
_SUMMARY_SQL = """
    WITH tx AS (
        SELECT t.id, t.project_id, t.type, t.linked_invoice_id,
               COALESCE(t.amount_try, t.amount) AS base,
               COALESCE((SELECT SUM(pa.amount) FROM payment_allocations pa
                         WHERE pa.payment_id = t.id), 0) AS allocated
        FROM transactions t
        WHERE t.project_id IS NOT NULL
    ),
    agg AS (
        SELECT project_id,
               SUM(CASE WHEN type = 'invoice_out' THEN base ELSE 0 END) AS total_invoice_out,
               SUM(CASE WHEN type = 'invoice_in'  THEN base ELSE 0 END) AS total_invoice_in,
               SUM(CASE WHEN type = 'payment_in'  THEN base ELSE 0 END) AS total_payment_in,
               SUM(CASE WHEN type = 'payment_out' THEN base ELSE 0 END) AS total_payment_out,
               SUM(CASE WHEN type = 'payment_in' THEN
                       CASE WHEN allocated > 0 THEN MAX(base - allocated, 0)
                            WHEN linked_invoice_id IS NOT NULL THEN 0
                            ELSE base END
                   ELSE 0 END) AS independent_payment_in,
               SUM(CASE WHEN type = 'payment_out' THEN
                       CASE WHEN allocated > 0 THEN MAX(base - allocated, 0)
                            WHEN linked_invoice_id IS NOT NULL THEN 0
                            ELSE base END
                   ELSE 0 END) AS independent_payment_out,
               SUM(CASE WHEN type = 'payment_in'  THEN allocated ELSE 0 END) AS allocated_payment_in,
               SUM(CASE WHEN type = 'payment_out' THEN allocated ELSE 0 END) AS allocated_payment_out
        FROM tx
        GROUP BY project_id
    )
    SELECT p.*, c.name AS client_name,
           COALESCE(agg.total_invoice_out, 0)       AS total_invoice_out,
           COALESCE(agg.total_invoice_in, 0)        AS total_invoice_in,
           COALESCE(agg.total_payment_in, 0)        AS total_payment_in,
           COALESCE(agg.total_payment_out, 0)       AS total_payment_out,
           COALESCE(agg.independent_payment_in, 0)  AS independent_payment_in,
           COALESCE(agg.independent_payment_out, 0) AS independent_payment_out,
           COALESCE(agg.allocated_payment_in, 0)    AS allocated_payment_in,
           COALESCE(agg.allocated_payment_out, 0)   AS allocated_payment_out
    FROM projects p
    LEFT JOIN companies c ON c.id = p.client_company_id
    LEFT JOIN agg ON agg.project_id = p.id
    WHERE p.is_active = 1
    ORDER BY p.created_at DESC, p.id DESC
"""


class ProjectsRepo:
    def __init__(self, conn: sqlite3.Connection):
        conn.row_factory = sqlite3.Row
        self.conn = conn

    # ---- Internal helpers -------------------------------------------------

    @staticmethod
    def _validate(data: Mapping[str, Any], *, partial: bool) -> None:
        if not partial or "name" in data:
            if not non_empty(data.get("name")):
                raise DomainError("Project name cannot be empty.")
        if not partial or "ownership_type" in data:
            if data.get("ownership_type") not in OWNERSHIP_TYPES:
                raise DomainError("Ownership type must be 'own' or 'client'.")
        if "status" in data and data["status"] not in PROJECT_STATUSES:
            raise DomainError(f"Unknown project status: {data['status']!r}.")
        if data.get("project_type") is not None and data["project_type"] not in PROJECT_TYPES:
            raise DomainError(f"Unknown project type: {data['project_type']!r}.")

    # ---- Queries ----------------------------------------------------------

    def list(self, include_inactive: bool = False) -> list[dict]:
        where = "" if include_inactive else " WHERE p.is_active = 1"
        rows = self.conn.execute(
            f"""
            SELECT p.*, c.name AS client_name
            FROM projects p
            LEFT JOIN companies c ON c.id = p.client_company_id
            {where}
            ORDER BY p.created_at DESC, p.id DESC
            """
        ).fetchall()
        return [dict(r) for r in rows]

    def get(self, project_id: int) -> dict | None:
        r = self.conn.execute(
            """
            SELECT p.*, c.name AS client_name
            FROM projects p
            LEFT JOIN companies c ON c.id = p.client_company_id
            WHERE p.id = ?
            """,
            (project_id,),
        ).fetchone()
        return row_to_dict(r)

    def get_with_summary(self) -> list[dict]:
        """
        Active projects with income/expense figures.

          total_income  = invoice_out + independent payment_in
          total_expense = invoice_in  + independent payment_out
          project_profit = total_income - total_expense
          client_receivable = invoice_out - allocated payment_in  (>= 0)
          project_debt      = invoice_in  - allocated payment_out (>= 0)
        """
        out: list[dict] = []
        for r in self.conn.execute(_SUMMARY_SQL).fetchall():
            d = dict(r)
            income = to_float(d["total_invoice_out"]) + to_float(d["independent_payment_in"])
            expense = to_float(d["total_invoice_in"]) + to_float(d["independent_payment_out"])
            budget = to_float(d.get("estimated_budget"))
            d["total_income"] = income
            d["total_expense"] = expense
            d["project_profit"] = income - expense
            d["estimated_profit"] = (budget - expense) if budget else None
            d["budget_used"] = (expense / budget * 100.0) if budget else 0.0
            d["client_receivable"] = clamp_non_negative(
                to_float(d["total_invoice_out"]) - to_float(d.pop("allocated_payment_in"))
            )
            d["project_debt"] = clamp_non_negative(
                to_float(d["total_invoice_in"]) - to_float(d.pop("allocated_payment_out"))
            )
            out.append(d)
        return out

    def generate_code(self, year: Optional[int] = None) -> str:
        """Next free code of the form PRJ-<year>-NNN."""
        year = year or date.today().year
        prefix = f"PRJ-{year}-"
        row = self.conn.execute(
            "SELECT code FROM projects WHERE code LIKE ? ORDER BY code DESC LIMIT 1",
            (prefix + "%",),
        ).fetchone()
        next_num = 1
        if row:
            tail = str(row["code"])[len(prefix):]
            if tail.isdigit():
                next_num = int(tail) + 1
        return f"{prefix}{next_num:03d}"

    # ---- Mutations --------------------------------------------------------

    def create(self, data: Mapping[str, Any]) -> dict:
        self._validate(data, partial=False)
        values = dict(data)
        if not values.get("code"):
            values["code"] = self.generate_code()
        values.setdefault("status", "planned")
        if values["ownership_type"] == "own":
            values["client_company_id"] = None
        cols = [f for f in UPDATABLE_FIELDS if f in values]
        cur = self.conn.execute(
            f"INSERT INTO projects ({', '.join(cols)}) VALUES ({', '.join('?' for _ in cols)})",
            [values[c] for c in cols],
        )
        return self.get(int(cur.lastrowid))  # type: ignore[return-value]

    def update(self, project_id: int, data: Mapping[str, Any]) -> dict | None:
        self._validate(data, partial=True)
        cols = [f for f in UPDATABLE_FIELDS if f in data]
        if not cols:
            return self.get(project_id)
        sets = ", ".join(f"{c} = ?" for c in cols)
        self.conn.execute(
            f"UPDATE projects SET {sets}, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
            [data[c] for c in cols] + [project_id],
        )
        return self.get(project_id)

    def delete(self, project_id: int) -> OpResult:
        """Move a project to trash; its parties go with it, its transactions cascade."""
        project = self.get(project_id)
        if project is None:
            return OpResult(False, "Project not found.")
        with immediate_tx(self.conn):
            self.conn.execute(
                "INSERT INTO trash (type, data) VALUES ('project', ?)",
                (json.dumps(project, default=str),),
            )
            self.conn.execute("DELETE FROM project_parties WHERE project_id = ?", (project_id,))
            self.conn.execute("DELETE FROM projects WHERE id = ?", (project_id,))
        log_event(_log, "trash", "commit", "Project moved to trash",
                  {"type": "project", "record_id": project_id})
        return OpResult(True)

    # ---- Parties ----------------------------------------------------------

    def get_parties(self, project_id: int) -> list[dict]:
        rows = self.conn.execute(
            """
            SELECT pp.*, c.name AS company_name, c.phone, c.email
            FROM project_parties pp
            JOIN companies c ON c.id = pp.company_id
            WHERE pp.project_id = ?
            ORDER BY pp.role, c.name
            """,
            (project_id,),
        ).fetchall()
        return [dict(r) for r in rows]

    def add_party(self, project_id: int, company_id: int, role: str, notes: str | None = None) -> dict:
        if role not in ACCOUNT_TYPES:
            raise DomainError(f"Unknown party role: {role!r}.")
        cur = self.conn.execute(
            """
            INSERT OR REPLACE INTO project_parties (project_id, company_id, role, notes)
            VALUES (?, ?, ?, ?)
            """,
            (project_id, company_id, role, notes),
        )
        r = self.conn.execute(
            "SELECT * FROM project_parties WHERE id = ?", (int(cur.lastrowid),)
        ).fetchone()
        return dict(r)

    def remove_party(self, party_id: int) -> bool:
        cur = self.conn.execute("DELETE FROM project_parties WHERE id = ?", (party_id,))
        return cur.rowcount > 0
