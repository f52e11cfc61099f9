# tests/test_trash_restore.py
import json

import pytest

from construction_ledger.database.repositories.companies_repo import CompaniesRepo
from construction_ledger.database.repositories.materials_repo import MaterialsRepo
from construction_ledger.database.repositories.projects_repo import ProjectsRepo
from construction_ledger.database.repositories.transactions_repo import TransactionsRepo
from construction_ledger.database.repositories.trash_repo import TrashRepo, TrashType

from builders import make_tx, trash_count


def _trash_id(conn, kind):
    return conn.execute(
        "SELECT id FROM trash WHERE type = ? ORDER BY id DESC LIMIT 1", (kind,)
    ).fetchone()[0]


def _put_in_trash(conn, kind, data):
    payload = data if isinstance(data, str) else json.dumps(data)
    return int(conn.execute("INSERT INTO trash (type, data) VALUES (?, ?)", (kind, payload)).lastrowid)


def test_transaction_round_trip_keeps_id_and_amounts(conn, ids):
    repo = TransactionsRepo(conn)
    tx = make_tx(conn, company_id=ids["customer"], amount=100, currency="USD", exchange_rate=30)
    repo.delete(tx["id"])

    result = TrashRepo(conn).restore(_trash_id(conn, "transaction"))

    assert result.success is True
    back = repo.get(tx["id"])
    assert back["amount_try"] == pytest.approx(3000)
    assert back["exchange_rate"] == 30
    assert back["description"] == tx["description"]
    assert trash_count(conn) == 0


def test_restore_missing_item(conn):
    result = TrashRepo(conn).restore(404)
    assert result.success is False
    assert result.error


@pytest.mark.parametrize("bad_id", [0, -3, "abc", "7", None, True, 1.5])
def test_restore_rejects_invalid_snapshot_id(conn, bad_id):
    trash_id = _put_in_trash(conn, "transaction", {
        "id": bad_id, "scope": "cari", "type": "invoice_out", "date": "2026-01-01",
        "description": "Broken", "amount": 10, "currency": "TRY", "amount_try": 10,
    })

    result = TrashRepo(conn).restore(trash_id)

    assert result.success is False
    assert conn.execute("SELECT COUNT(*) FROM transactions").fetchone()[0] == 0
    assert trash_count(conn) == 1


def test_restore_rejects_missing_id_and_non_objects(conn):
    repo = TrashRepo(conn)
    assert repo.restore(_put_in_trash(conn, "transaction", {"description": "no id"})).success is False
    assert repo.restore(_put_in_trash(conn, "transaction", [1, 2, 3])).success is False
    assert repo.restore(_put_in_trash(conn, "transaction", "{not json")).success is False


def test_restore_unknown_type(conn):
    result = TrashRepo(conn).restore(_put_in_trash(conn, "invoice_template", {"id": 5}))
    assert result.success is False
    assert "Unknown type" in result.error


def test_restore_conflict_rolls_back_and_keeps_trash_row(conn, ids):
    tx = make_tx(conn, company_id=ids["customer"])
    snapshot = dict(TransactionsRepo(conn).get(tx["id"]))
    trash_id = _put_in_trash(conn, "transaction", snapshot)

    result = TrashRepo(conn).restore(trash_id)

    assert result.success is False
    assert trash_count(conn) == 1


def test_restore_fails_when_parent_is_gone(conn, ids):
    tx = make_tx(conn, company_id=ids["customer"])
    TransactionsRepo(conn).delete(tx["id"])
    trash_id = _trash_id(conn, "transaction")
    conn.execute("DELETE FROM companies WHERE id = ?", (ids["customer"],))

    result = TrashRepo(conn).restore(trash_id)

    assert result.success is False
    assert TransactionsRepo(conn).get(tx["id"]) is None
    assert trash_count(conn, "transaction") == 1


def test_company_delete_and_restore(conn, ids):
    companies = CompaniesRepo(conn)
    projects = ProjectsRepo(conn)
    client_project = projects.create({
        "name": "Harbour Offices", "ownership_type": "client",
        "client_company_id": ids["customer"], "code": "PRJ-2026-050",
    })
    make_tx(conn, company_id=ids["customer"])
    conn.execute("UPDATE companies SET is_active = 0 WHERE id = ?", (ids["customer"],))

    assert companies.delete(ids["customer"]).success
    assert companies.get(ids["customer"]) is None
    assert projects.get(client_project["id"]) is None
    assert conn.execute("SELECT COUNT(*) FROM transactions").fetchone()[0] == 0

    assert TrashRepo(conn).restore(_trash_id(conn, "company")).success
    back = companies.get(ids["customer"])
    assert back["name"] == "Acme Homes"
    assert back["is_active"] == 1


def test_project_delete_removes_parties_and_restores(conn, ids):
    projects = ProjectsRepo(conn)
    projects.add_party(ids["project"], ids["supplier"], "supplier")

    assert projects.delete(ids["project"]).success
    assert conn.execute("SELECT COUNT(*) FROM project_parties").fetchone()[0] == 0

    assert TrashRepo(conn).restore(_trash_id(conn, "project")).success
    back = projects.get(ids["project"])
    assert back["code"] == "PRJ-2026-001"
    assert back["is_active"] == 1
    assert projects.get_parties(ids["project"]) == []


def test_material_delete_removes_movements_and_restores_stock_snapshot(conn, ids):
    materials = MaterialsRepo(conn)
    materials.create_movement({"material_id": ids["material"], "movement_type": "in",
                               "quantity": 10, "date": "2026-02-01"})

    assert materials.delete(ids["material"]).success
    assert conn.execute("SELECT COUNT(*) FROM stock_movements").fetchone()[0] == 0

    assert TrashRepo(conn).restore(_trash_id(conn, "material")).success
    assert materials.get(ids["material"])["current_stock"] == 60


def test_stock_movement_round_trip(conn, ids):
    materials = MaterialsRepo(conn)
    trash = TrashRepo(conn)
    before = materials.get(ids["material"])["current_stock"]

    mv = materials.create_movement({"material_id": ids["material"], "movement_type": "in",
                                    "quantity": 10, "date": "2026-02-01"})
    after = materials.get(ids["material"])["current_stock"]
    assert after == before + 10

    assert materials.delete_movement(mv["id"]).success
    assert materials.get(ids["material"])["current_stock"] == before

    assert trash.restore(_trash_id(conn, "stock_movement")).success
    assert materials.get(ids["material"])["current_stock"] == after
    assert materials.get_movement(mv["id"]) is not None


def test_trash_listing_and_purge(conn, ids):
    repo = TrashRepo(conn)
    first = make_tx(conn)
    second = make_tx(conn)
    TransactionsRepo(conn).delete(first["id"])
    TransactionsRepo(conn).delete(second["id"])

    items = repo.get_all()
    assert [json.loads(i["data"])["id"] for i in items] == [second["id"], first["id"]]
    assert repo.get(items[0]["id"])["type"] == TrashType.TRANSACTION.value

    assert repo.permanent_delete(items[0]["id"]).success
    assert repo.permanent_delete(items[0]["id"]).success is False
    assert repo.empty_trash().success
    assert repo.get_all() == []


def test_op_result_as_dict(conn):
    assert TrashRepo(conn).empty_trash().as_dict() == {"success": True}
    assert TrashRepo(conn).permanent_delete(1).as_dict() == {"success": False, "error": "Item not found."}
