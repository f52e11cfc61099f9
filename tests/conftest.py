# tests/conftest.py
# ---------------------------------------------------------------------
# Ground rules:
# - Every test gets a fresh SQLite file under tmp_path (schema, migrations
#   and default categories applied by get_connection)
# - conn.row_factory = sqlite3.Row, PRAGMA foreign_keys=ON
# - Provide handy ids (two companies, a project, a material) and an
#   initialised LedgerDatabase
# ---------------------------------------------------------------------

from __future__ import annotations

import sqlite3

import pytest

from construction_ledger.database import get_connection
from construction_ledger.database.service import LedgerDatabase


@pytest.fixture(autouse=True)
def _base_currency(monkeypatch):
    """Pin the base currency regardless of the developer's environment."""
    monkeypatch.delenv("LEDGER_BASE_CURRENCY", raising=False)


# ---------- Per-test connection on a fresh database ----------
@pytest.fixture()
def conn(tmp_path):
    con = get_connection(tmp_path / "ledger.db")
    try:
        yield con
    finally:
        con.close()


# ---------- Handy seeded rows ----------
@pytest.fixture()
def ids(conn: sqlite3.Connection) -> dict:
    """A customer, a supplier, a project and a material shared by the tests."""
    def insert(sql: str, *p) -> int:
        return int(conn.execute(sql, p).lastrowid)

    customer = insert(
        "INSERT INTO companies (type, account_type, name) VALUES ('company', 'customer', 'Acme Homes')"
    )
    supplier = insert(
        "INSERT INTO companies (type, account_type, name) VALUES ('company', 'supplier', 'Beton Supply')"
    )
    project = insert(
        "INSERT INTO projects (code, name, ownership_type, status) "
        "VALUES ('PRJ-2026-001', 'Lakeside Residences', 'own', 'active')"
    )
    material = insert(
        "INSERT INTO materials (code, name, unit, min_stock, current_stock) "
        "VALUES ('MLZ-001', 'Cement', 'bag', 20, 50)"
    )
    return {"customer": customer, "supplier": supplier, "project": project, "material": material}


@pytest.fixture()
def db(tmp_path):
    ledger = LedgerDatabase(tmp_path / "service.db").init()
    try:
        yield ledger
    finally:
        ledger.close()
