# tests/test_service.py
import pytest

from construction_ledger.database.service import LedgerDatabase


def test_repositories_require_init(tmp_path):
    ledger = LedgerDatabase(tmp_path / "x.db")
    with pytest.raises(RuntimeError):
        ledger.transactions
    with pytest.raises(RuntimeError):
        ledger.analytics


def test_init_is_idempotent_and_repos_are_shared(db):
    assert db.init() is db
    assert db.transactions is db.transactions
    assert db.transactions.conn is db.trash.conn


def test_end_to_end_payment_flow(db):
    customer = db.companies.create({"type": "company", "account_type": "customer", "name": "Acme Homes"})
    inv = db.transactions.create({"scope": "cari", "company_id": customer["id"], "type": "invoice_out",
                                  "date": "2026-04-01", "description": "Flat 2A", "amount": 1000})
    pay = db.transactions.create({"scope": "cari", "company_id": customer["id"], "type": "payment_in",
                                  "date": "2026-04-10", "description": "Deposit", "amount": 250})
    db.payment_allocations.set_for_payment(pay["id"], [{"invoice_id": inv["id"], "amount": 250}])

    open_rows = db.payment_allocations.get_invoices_with_balance(customer["id"], "company", "invoice_out")
    assert open_rows[0]["remaining"] == 750
    assert db.analytics.get_dashboard_stats()["total_receivables"] == 750

    assert db.transactions.delete(pay["id"]).success
    assert db.payment_allocations.remaining_for_invoice(inv["id"]) == 1000
    trash_id = db.trash.get_all()[0]["id"]
    assert db.trash.restore(trash_id).success
    # allocations are not part of the snapshot
    assert db.payment_allocations.get_for_payment(pay["id"]) == []


def test_with_transaction_commits_and_rolls_back(db):
    def create_two():
        db.categories.create("Elevator", "invoice_in")
        db.categories.create("Facade", "invoice_in")
        return "done"

    assert db.with_transaction(create_two) == "done"
    names = {c["name"] for c in db.categories.list_by_type("invoice_in")}
    assert {"Elevator", "Facade"} <= names

    def half_then_fail():
        db.categories.create("Pool", "invoice_in")
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        db.with_transaction(half_then_fail)
    assert "Pool" not in {c["name"] for c in db.categories.list_by_type("invoice_in")}


def test_nested_units_roll_back_with_outer(db):
    db.materials.create({"name": "Sand", "unit": "m3", "current_stock": 10})
    material_id = db.materials.list()[0]["id"]

    def move_then_fail():
        db.materials.create_movement({"material_id": material_id, "movement_type": "out",
                                      "quantity": 4, "date": "2026-05-01"})
        raise ValueError("cancelled")

    with pytest.raises(ValueError):
        db.with_transaction(move_then_fail)
    assert db.materials.get(material_id)["current_stock"] == 10
    assert db.materials.get_movements() == []


def test_maintenance_checks(db):
    assert db.check_integrity() == {"ok": True, "errors": []}
    assert db.check_foreign_keys() == {"ok": True, "violations": []}
    stats = db.get_stats()
    assert stats["transactions"] == 0
    assert stats["categories"] > 0


def test_close_releases_connection(tmp_path):
    ledger = LedgerDatabase(tmp_path / "closing.db").init()
    ledger.close()
    with pytest.raises(RuntimeError):
        ledger.companies
    ledger.close()
