# construction_ledger/database/repositories/trash_repo.py
"""
Trash: restore and purge of soft-deleted records.

Each repository's `delete` writes a JSON snapshot of the full row into
`trash` before removing it. `restore` re-inserts the snapshot into its
original table with the original primary key; stock movements re-apply their
stock delta. Every outcome is reported as an OpResult, never raised.

Lifecycle: active -> trashed -> restored | purged
"""
from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, ClassVar, Mapping, Optional

from ...utils.loggers import log_event
from ...utils.validators import is_positive_int_id
from .materials_repo import DomainError as MaterialsDomainError
from .materials_repo import apply_stock_delta, stock_delta
from .tx_helpers import OpResult, immediate_tx, row_to_dict

_log = logging.getLogger(__name__)


class TrashType(str, Enum):
    COMPANY = "company"
    PROJECT = "project"
    TRANSACTION = "transaction"
    MATERIAL = "material"
    STOCK_MOVEMENT = "stock_movement"


# ---------------------------------------------------------------------------
# Snapshots: one per table. Field names are the table's columns; any other
# key in the stored JSON (joined display names) is ignored.
# ---------------------------------------------------------------------------

@dataclass
class _Snapshot:
    TABLE: ClassVar[str] = ""
    # Columns forced on restore regardless of the snapshot.
    OVERRIDES: ClassVar[dict] = {}

    id: int

    @classmethod
    def from_data(cls, data: Mapping[str, Any]):
        return cls(**{f.name: data.get(f.name) for f in fields(cls)})

    def row(self) -> dict:
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        values.update(self.OVERRIDES)
        return values

    def insert(self, conn: sqlite3.Connection) -> None:
        values = self.row()
        cols = list(values)
        conn.execute(
            f"INSERT INTO {self.TABLE} ({', '.join(cols)}) VALUES ({', '.join('?' for _ in cols)})",
            [values[c] for c in cols],
        )


@dataclass
class CompanySnapshot(_Snapshot):
    TABLE: ClassVar[str] = "companies"
    OVERRIDES: ClassVar[dict] = {"is_active": 1}

    type: Optional[str] = None
    account_type: Optional[str] = None
    name: Optional[str] = None
    tc_number: Optional[str] = None
    profession: Optional[str] = None
    tax_office: Optional[str] = None
    tax_number: Optional[str] = None
    trade_registry_no: Optional[str] = None
    contact_person: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    bank_name: Optional[str] = None
    iban: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class ProjectSnapshot(_Snapshot):
    TABLE: ClassVar[str] = "projects"
    OVERRIDES: ClassVar[dict] = {"is_active": 1}

    code: Optional[str] = None
    name: Optional[str] = None
    ownership_type: Optional[str] = None
    client_company_id: Optional[int] = None
    status: Optional[str] = None
    project_type: Optional[str] = None
    location: Optional[str] = None
    total_area: Optional[float] = None
    unit_count: Optional[int] = None
    estimated_budget: Optional[float] = None
    planned_start: Optional[str] = None
    planned_end: Optional[str] = None
    actual_start: Optional[str] = None
    actual_end: Optional[str] = None
    description: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class TransactionSnapshot(_Snapshot):
    TABLE: ClassVar[str] = "transactions"

    scope: Optional[str] = None
    company_id: Optional[int] = None
    project_id: Optional[int] = None
    type: Optional[str] = None
    category_id: Optional[int] = None
    date: Optional[str] = None
    description: Optional[str] = None
    amount: Optional[float] = None
    currency: Optional[str] = None
    exchange_rate: Optional[float] = None
    amount_try: Optional[float] = None
    document_no: Optional[str] = None
    linked_invoice_id: Optional[int] = None
    notes: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class MaterialSnapshot(_Snapshot):
    TABLE: ClassVar[str] = "materials"
    OVERRIDES: ClassVar[dict] = {"is_active": 1}

    code: Optional[str] = None
    name: Optional[str] = None
    category: Optional[str] = None
    unit: Optional[str] = None
    min_stock: Optional[float] = None
    current_stock: Optional[float] = None
    notes: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class StockMovementSnapshot(_Snapshot):
    TABLE: ClassVar[str] = "stock_movements"

    material_id: Optional[int] = None
    movement_type: Optional[str] = None
    quantity: Optional[float] = None
    unit_price: Optional[float] = None
    total_price: Optional[float] = None
    project_id: Optional[int] = None
    company_id: Optional[int] = None
    date: Optional[str] = None
    description: Optional[str] = None
    document_no: Optional[str] = None
    created_at: Optional[str] = None

    def insert(self, conn: sqlite3.Connection) -> None:
        super().insert(conn)
        apply_stock_delta(conn, self.material_id, stock_delta(self.movement_type, self.quantity))


SNAPSHOTS: dict[TrashType, type[_Snapshot]] = {
    TrashType.COMPANY: CompanySnapshot,
    TrashType.PROJECT: ProjectSnapshot,
    TrashType.TRANSACTION: TransactionSnapshot,
    TrashType.MATERIAL: MaterialSnapshot,
    TrashType.STOCK_MOVEMENT: StockMovementSnapshot,
}

_RESTORE_ERRORS = (sqlite3.Error, ValueError, TypeError, KeyError, MaterialsDomainError)


class TrashRepo:
    def __init__(self, conn: sqlite3.Connection):
        conn.row_factory = sqlite3.Row
        self.conn = conn

    # ---- Queries ----------------------------------------------------------

    def get_all(self) -> list[dict]:
        rows = self.conn.execute("SELECT * FROM trash ORDER BY deleted_at DESC, id DESC").fetchall()
        return [dict(r) for r in rows]

    def get(self, trash_id: int) -> dict | None:
        r = self.conn.execute("SELECT * FROM trash WHERE id = ?", (trash_id,)).fetchone()
        return row_to_dict(r)

    # ---- Restore ----------------------------------------------------------

    def _reject(self, trash_id: int, error: str) -> OpResult:
        log_event(_log, "restore", "rejected", "Restore rejected",
                  {"trash_id": trash_id, "error": error}, level=logging.WARNING)
        return OpResult(False, error)

    def restore(self, trash_id: int) -> OpResult:
        """
        Put a trashed record back under its original id.

        Fails (success=False) when the item is missing, its JSON is invalid,
        it carries no positive integer id, its type is unknown, or the insert
        hits a constraint. The trash row is removed only on full success.
        """
        item = self.get(trash_id)
        if item is None:
            return OpResult(False, "Item not found.")

        try:
            data = json.loads(item["data"])
        except (TypeError, ValueError) as e:
            return self._reject(trash_id, f"Invalid snapshot data: {e}")
        if not isinstance(data, dict) or not is_positive_int_id(data.get("id")):
            return self._reject(trash_id, "Invalid snapshot data: id missing or invalid.")

        try:
            kind = TrashType(item["type"])
        except ValueError:
            return self._reject(trash_id, f"Unknown type: {item['type']}")

        snapshot = SNAPSHOTS[kind].from_data({**data, "id": int(data["id"])})
        try:
            with immediate_tx(self.conn):
                snapshot.insert(self.conn)
                self.conn.execute("DELETE FROM trash WHERE id = ?", (trash_id,))
        except _RESTORE_ERRORS as e:
            _log.exception("Restore of trash item %s rolled back", trash_id)
            return self._reject(trash_id, str(e) or type(e).__name__)

        log_event(_log, "restore", "commit", "Record restored from trash",
                  {"trash_id": trash_id, "type": kind.value, "record_id": snapshot.id})
        return OpResult(True)

    # ---- Purge ------------------------------------------------------------

    def permanent_delete(self, trash_id: int) -> OpResult:
        cur = self.conn.execute("DELETE FROM trash WHERE id = ?", (trash_id,))
        if cur.rowcount == 0:
            return OpResult(False, "Item not found.")
        log_event(_log, "purge", "commit", "Trash item permanently deleted", {"trash_id": trash_id})
        return OpResult(True)

    def empty_trash(self) -> OpResult:
        cur = self.conn.execute("DELETE FROM trash")
        log_event(_log, "empty", "commit", "Trash emptied", {"removed": cur.rowcount})
        return OpResult(True)
