# construction_ledger/database/service.py
"""
LedgerDatabase: one SQLite connection plus every repository bound to it.

    db = LedgerDatabase().init()
    tx = db.transactions.create({...})
    db.payment_allocations.set_for_payment(tx["id"], [{"invoice_id": 3, "amount": 400}])
    db.close()
"""
from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import Callable, Optional, TypeVar

from ..utils.loggers import get_logger
from . import get_connection
from .repositories import (
    AnalyticsRepo,
    CategoriesRepo,
    CompaniesRepo,
    MaterialsRepo,
    PaymentAllocationsRepo,
    ProjectsRepo,
    TransactionsRepo,
    TrashRepo,
    immediate_tx,
)

_log = logging.getLogger(__name__)

T = TypeVar("T")

_STATS_TABLES = (
    "companies", "projects", "transactions", "payment_allocations",
    "materials", "stock_movements", "categories", "trash",
)


class LedgerDatabase:
    def __init__(self, db_path: Path | str | None = None):
        self.db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None
        self._repos: dict = {}

    # ---- lifecycle --------------------------------------------------------

    def init(self) -> "LedgerDatabase":
        """Open the connection, apply schema/migrations/seed data. Idempotent."""
        if self._conn is None:
            get_logger()
            self._conn = get_connection(self.db_path)
            _log.info("Ledger database opened")
        return self

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            self._repos.clear()
            _log.info("Ledger database closed")

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("Database not initialised; call init() first.")
        return self._conn

    def _repo(self, name: str, cls):
        conn = self.conn
        if name not in self._repos:
            self._repos[name] = cls(conn)
        return self._repos[name]

    # ---- repositories -----------------------------------------------------

    @property
    def companies(self) -> CompaniesRepo:
        return self._repo("companies", CompaniesRepo)

    @property
    def projects(self) -> ProjectsRepo:
        return self._repo("projects", ProjectsRepo)

    @property
    def categories(self) -> CategoriesRepo:
        return self._repo("categories", CategoriesRepo)

    @property
    def transactions(self) -> TransactionsRepo:
        return self._repo("transactions", TransactionsRepo)

    @property
    def payment_allocations(self) -> PaymentAllocationsRepo:
        return self._repo("payment_allocations", PaymentAllocationsRepo)

    @property
    def materials(self) -> MaterialsRepo:
        return self._repo("materials", MaterialsRepo)

    @property
    def trash(self) -> TrashRepo:
        return self._repo("trash", TrashRepo)

    @property
    def analytics(self) -> AnalyticsRepo:
        return self._repo("analytics", AnalyticsRepo)

    # ---- composition & maintenance ----------------------------------------

    def with_transaction(self, fn: Callable[[], T]) -> T:
        """Run `fn` as one atomic unit; repository units inside it nest as savepoints."""
        with immediate_tx(self.conn):
            return fn()

    def check_integrity(self) -> dict:
        rows = self.conn.execute("PRAGMA integrity_check").fetchall()
        messages = [str(r[0]) for r in rows]
        ok = messages == ["ok"]
        if not ok:
            _log.error("Integrity check failed: %s", "; ".join(messages))
        return {"ok": ok, "errors": [] if ok else messages}

    def check_foreign_keys(self) -> dict:
        rows = self.conn.execute("PRAGMA foreign_key_check").fetchall()
        violations = [
            {"table": r[0], "rowid": r[1], "parent": r[2], "fkid": r[3]} for r in rows
        ]
        if violations:
            _log.warning("%d foreign key violation(s) found", len(violations))
        return {"ok": not violations, "violations": violations}

    def get_stats(self) -> dict:
        """Row counts per table."""
        return {
            table: int(self.conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0])
            for table in _STATS_TABLES
        }
