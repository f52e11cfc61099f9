# construction_ledger/database/repositories/materials_repo.py
from __future__ import annotations

import json
import logging
import sqlite3
from typing import Any, Mapping, Optional

from ...constants import MOVEMENT_TYPES
from ...utils.loggers import log_event
from ...utils.validators import is_iso_date, non_empty, try_parse_float
from .tx_helpers import OpResult, immediate_tx, row_to_dict

_log = logging.getLogger(__name__)


# Domain-level error the caller can surface directly (e.g., toast/snackbar)
class DomainError(Exception):
    pass


UPDATABLE_FIELDS = ("name", "category", "unit", "min_stock", "notes")


def stock_delta(movement_type: str, quantity: Any) -> float:
    """
    Signed change a movement applies to `materials.current_stock`.

      in          -> +q   (q > 0)
      out / waste -> -q   (q > 0)
      adjustment  -> +q   (signed correction, q != 0)

    Deleting a movement applies the negation; restoring applies it again.
    """
    ok, q = try_parse_float(quantity)
    if not ok or q is None:
        raise DomainError(f"Quantity must be numeric (got {quantity!r}).")
    if movement_type == "in":
        if q <= 0:
            raise DomainError("Quantity must be greater than zero.")
        return q
    if movement_type in ("out", "waste"):
        if q <= 0:
            raise DomainError("Quantity must be greater than zero.")
        return -q
    if movement_type == "adjustment":
        if q == 0:
            raise DomainError("Adjustment quantity cannot be zero.")
        return q
    raise DomainError(f"Movement type must be one of: {', '.join(MOVEMENT_TYPES)}.")


def apply_stock_delta(conn: sqlite3.Connection, material_id: int, delta: float) -> None:
    """The only writer of current_stock after a material is created."""
    cur = conn.execute(
        "UPDATE materials SET current_stock = COALESCE(current_stock, 0) + ?, "
        "updated_at = CURRENT_TIMESTAMP WHERE id = ?",
        (delta, material_id),
    )
    if cur.rowcount == 0:
        raise DomainError(f"Material #{material_id} not found.")


class MaterialsRepo:
    def __init__(self, conn: sqlite3.Connection):
        conn.row_factory = sqlite3.Row
        self.conn = conn

    # ---- Materials --------------------------------------------------------

    def list(self, include_inactive: bool = False) -> list[dict]:
        where = "" if include_inactive else " WHERE is_active = 1"
        rows = self.conn.execute(f"SELECT * FROM materials{where} ORDER BY name COLLATE NOCASE").fetchall()
        return [dict(r) for r in rows]

    def get(self, material_id: int) -> dict | None:
        r = self.conn.execute("SELECT * FROM materials WHERE id = ?", (material_id,)).fetchone()
        return row_to_dict(r)

    def generate_code(self) -> str:
        """Next code of the form MLZ-NNN, following the highest existing number."""
        rows = self.conn.execute("SELECT code FROM materials WHERE code LIKE 'MLZ-%'").fetchall()
        nums = [int(r["code"][4:]) for r in rows if r["code"][4:].isdigit()]
        return f"MLZ-{(max(nums) + 1) if nums else 1:03d}"

    def get_low_stock(self) -> list[dict]:
        rows = self.conn.execute(
            """
            SELECT * FROM materials
            WHERE is_active = 1 AND min_stock > 0 AND current_stock <= min_stock
            ORDER BY (CAST(current_stock AS REAL) / NULLIF(min_stock, 0)) ASC
            """
        ).fetchall()
        return [dict(r) for r in rows]

    def create(self, data: Mapping[str, Any]) -> dict:
        """Insert a material. `current_stock` here is the opening balance."""
        if not non_empty(data.get("name")):
            raise DomainError("Material name cannot be empty.")
        if not non_empty(data.get("unit")):
            raise DomainError("Unit cannot be empty.")
        cur = self.conn.execute(
            """
            INSERT INTO materials (code, name, category, unit, min_stock, current_stock, notes)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                data.get("code") or self.generate_code(),
                str(data["name"]).strip(),
                data.get("category") or None,
                str(data["unit"]).strip(),
                data.get("min_stock") or 0,
                data.get("current_stock") or 0,
                data.get("notes") or None,
            ),
        )
        return self.get(int(cur.lastrowid))  # type: ignore[return-value]

    def update(self, material_id: int, data: Mapping[str, Any]) -> dict | None:
        # current_stock changes only through movements.
        cols = [f for f in UPDATABLE_FIELDS if f in data]
        if not cols:
            return self.get(material_id)
        sets = ", ".join(f"{c} = ?" for c in cols)
        self.conn.execute(
            f"UPDATE materials SET {sets}, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
            [data[c] for c in cols] + [material_id],
        )
        return self.get(material_id)

    def delete(self, material_id: int) -> OpResult:
        material = self.get(material_id)
        if material is None:
            return OpResult(False, "Material not found.")
        with immediate_tx(self.conn):
            self.conn.execute(
                "INSERT INTO trash (type, data) VALUES ('material', ?)",
                (json.dumps(material, default=str),),
            )
            self.conn.execute("DELETE FROM stock_movements WHERE material_id = ?", (material_id,))
            self.conn.execute("DELETE FROM materials WHERE id = ?", (material_id,))
        log_event(_log, "trash", "commit", "Material moved to trash",
                  {"type": "material", "record_id": material_id})
        return OpResult(True)

    # ---- Movements --------------------------------------------------------

    def get_movement(self, movement_id: int) -> dict | None:
        r = self.conn.execute(
            """
            SELECT sm.*, m.name AS material_name, m.unit AS material_unit
            FROM stock_movements sm
            LEFT JOIN materials m ON m.id = sm.material_id
            WHERE sm.id = ?
            """,
            (movement_id,),
        ).fetchone()
        return row_to_dict(r)

    def get_movements(self, filters: Optional[Mapping[str, Any]] = None) -> list[dict]:
        f = filters or {}
        sql = """
            SELECT sm.*,
                   m.name AS material_name, m.unit AS material_unit,
                   p.name AS project_name,
                   c.name AS company_name
            FROM stock_movements sm
            LEFT JOIN materials m ON m.id = sm.material_id
            LEFT JOIN projects  p ON p.id = sm.project_id
            LEFT JOIN companies c ON c.id = sm.company_id
            WHERE 1=1
        """
        params: list[Any] = []
        for key, clause in (
            ("material_id", " AND sm.material_id = ?"),
            ("movement_type", " AND sm.movement_type = ?"),
            ("project_id", " AND sm.project_id = ?"),
            ("start_date", " AND sm.date >= ?"),
            ("end_date", " AND sm.date <= ?"),
        ):
            if f.get(key):
                sql += clause
                params.append(f[key])
        sql += " ORDER BY sm.date DESC, sm.created_at DESC, sm.id DESC"
        return [dict(r) for r in self.conn.execute(sql, params).fetchall()]

    def create_movement(self, data: Mapping[str, Any]) -> dict:
        """
        Record a stock movement and apply its delta to the material, atomically.

        total_price = quantity * unit_price (unit_price defaults to 0).
        """
        if not is_iso_date(data.get("date")):
            raise DomainError("Date must be given as YYYY-MM-DD.")
        movement_type = data.get("movement_type")
        delta = stock_delta(movement_type, data.get("quantity"))
        quantity = float(data["quantity"])
        unit_price = float(data.get("unit_price") or 0)

        with immediate_tx(self.conn):
            cur = self.conn.execute(
                """
                INSERT INTO stock_movements (
                    material_id, movement_type, quantity, unit_price, total_price,
                    project_id, company_id, date, description, document_no
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    data["material_id"],
                    movement_type,
                    quantity,
                    unit_price,
                    quantity * unit_price,
                    data.get("project_id") or None,
                    data.get("company_id") or None,
                    data["date"],
                    data.get("description") or None,
                    data.get("document_no") or None,
                ),
            )
            apply_stock_delta(self.conn, data["material_id"], delta)
            movement_id = int(cur.lastrowid)
        _log.info("Stock movement %s (%s %s) on material %s",
                  movement_id, movement_type, quantity, data["material_id"])
        return self.get_movement(movement_id)  # type: ignore[return-value]

    def delete_movement(self, movement_id: int) -> OpResult:
        """Snapshot to trash, revert the stock delta, remove the row; one atomic unit."""
        r = self.conn.execute("SELECT * FROM stock_movements WHERE id = ?", (movement_id,)).fetchone()
        if r is None:
            return OpResult(False, "Stock movement not found.")
        movement = dict(r)
        with immediate_tx(self.conn):
            self.conn.execute(
                "INSERT INTO trash (type, data) VALUES ('stock_movement', ?)",
                (json.dumps(movement, default=str),),
            )
            delta = stock_delta(movement["movement_type"], movement["quantity"])
            apply_stock_delta(self.conn, movement["material_id"], -delta)
            self.conn.execute("DELETE FROM stock_movements WHERE id = ?", (movement_id,))
        log_event(_log, "trash", "commit", "Stock movement moved to trash",
                  {"type": "stock_movement", "record_id": movement_id})
        return OpResult(True)
