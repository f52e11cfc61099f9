# tests/test_parties_projects_categories.py
from datetime import date

import pytest

from construction_ledger.database.repositories.categories_repo import CategoriesRepo
from construction_ledger.database.repositories.categories_repo import DomainError as CategoryError
from construction_ledger.database.repositories.companies_repo import CompaniesRepo
from construction_ledger.database.repositories.companies_repo import DomainError as CompanyError
from construction_ledger.database.repositories.projects_repo import DomainError as ProjectError
from construction_ledger.database.repositories.projects_repo import ProjectsRepo
from construction_ledger.database.seeders.default_data import DEFAULT_CATEGORIES

from builders import make_tx


# ---------------- Companies ----------------

def test_company_create_normalizes_text(conn):
    c = CompaniesRepo(conn).create({"type": "person", "account_type": "subcontractor",
                                    "name": "  Ali Usta  ", "phone": "  ", "iban": "TR00 0000"})
    assert c["name"] == "Ali Usta"
    assert c["phone"] is None
    assert c["iban"] == "TR00 0000"
    assert c["is_active"] == 1


@pytest.mark.parametrize("data", [
    {"type": "company", "account_type": "customer", "name": ""},
    {"type": "robot", "account_type": "customer", "name": "X"},
    {"type": "company", "account_type": "lender", "name": "X"},
])
def test_company_create_validation(conn, data):
    with pytest.raises(CompanyError):
        CompaniesRepo(conn).create(data)


def test_company_partial_update(conn, ids):
    repo = CompaniesRepo(conn)
    updated = repo.update(ids["customer"], {"phone": "0212 555 00 00"})
    assert updated["phone"] == "0212 555 00 00"
    assert updated["name"] == "Acme Homes"
    with pytest.raises(CompanyError):
        repo.update(ids["customer"], {"name": "  "})


def test_company_balances(conn, ids):
    make_tx(conn, company_id=ids["customer"], amount=1000)
    make_tx(conn, company_id=ids["customer"], type="payment_in", amount=250)
    make_tx(conn, company_id=ids["customer"], type="invoice_in", amount=100)
    rows = {r["id"]: r for r in CompaniesRepo(conn).get_with_balance()}
    acme = rows[ids["customer"]]
    assert acme["receivable"] == 750
    assert acme["payable"] == 100
    assert acme["balance"] == 650
    assert acme["transaction_count"] == 3
    assert rows[ids["supplier"]]["balance"] == 0


def test_company_related_counts_and_listing(conn, ids):
    repo = CompaniesRepo(conn)
    make_tx(conn, company_id=ids["customer"])
    ProjectsRepo(conn).create({"name": "Tower", "ownership_type": "client", "client_company_id": ids["customer"]})
    assert repo.get_related_counts(ids["customer"]) == {"transaction_count": 1, "project_count": 1}
    conn.execute("UPDATE companies SET is_active = 0 WHERE id = ?", (ids["supplier"],))
    assert {c["id"] for c in repo.list()} == {ids["customer"]}
    assert len(repo.list(include_inactive=True)) == 2


def test_company_delete_missing(conn):
    assert CompaniesRepo(conn).delete(321).success is False


# ---------------- Projects ----------------

def test_project_code_generation(conn, ids):
    repo = ProjectsRepo(conn)
    assert repo.generate_code(2026) == "PRJ-2026-002"
    assert repo.generate_code(2030) == "PRJ-2030-001"
    p = repo.create({"name": "Hillside Villas", "ownership_type": "own"})
    assert p["code"] == f"PRJ-{date.today().year}-" + p["code"][-3:]
    assert p["status"] == "planned"


def test_project_own_ignores_client(conn, ids):
    p = ProjectsRepo(conn).create({"name": "Depot", "ownership_type": "own",
                                   "client_company_id": ids["customer"]})
    assert p["client_company_id"] is None


def test_project_validation(conn):
    repo = ProjectsRepo(conn)
    with pytest.raises(ProjectError):
        repo.create({"name": "", "ownership_type": "own"})
    with pytest.raises(ProjectError):
        repo.create({"name": "X", "ownership_type": "leased"})
    with pytest.raises(ProjectError):
        repo.create({"name": "X", "ownership_type": "own", "status": "paused"})


def test_project_update(conn, ids):
    repo = ProjectsRepo(conn)
    p = repo.update(ids["project"], {"status": "completed", "actual_end": "2026-09-30"})
    assert p["status"] == "completed"
    assert p["actual_end"] == "2026-09-30"
    assert repo.update(ids["project"], {})["id"] == ids["project"]


def test_project_parties(conn, ids):
    repo = ProjectsRepo(conn)
    repo.add_party(ids["project"], ids["supplier"], "supplier", "rebar")
    party = repo.add_party(ids["project"], ids["supplier"], "supplier", "rebar and mesh")
    parties = repo.get_parties(ids["project"])
    assert len(parties) == 1
    assert parties[0]["notes"] == "rebar and mesh"
    assert parties[0]["company_name"] == "Beton Supply"
    with pytest.raises(ProjectError):
        repo.add_party(ids["project"], ids["supplier"], "auditor")
    assert repo.remove_party(party["id"]) is True
    assert repo.remove_party(party["id"]) is False


def test_project_summary_budget(conn, ids):
    repo = ProjectsRepo(conn)
    repo.update(ids["project"], {"estimated_budget": 1000})
    make_tx(conn, scope="project", project_id=ids["project"], type="invoice_in", amount=250)
    summary = next(p for p in repo.get_with_summary() if p["id"] == ids["project"])
    assert summary["total_expense"] == 250
    assert summary["estimated_profit"] == 750
    assert summary["budget_used"] == pytest.approx(25.0)


# ---------------- Categories ----------------

def test_default_categories_seeded(conn):
    repo = CategoriesRepo(conn)
    assert len(repo.list_by_type()) == len(DEFAULT_CATEGORIES)
    assert all(c["type"] == "payment" for c in repo.list_by_type("payment"))


def test_category_create_and_delete(conn):
    repo = CategoriesRepo(conn)
    cat = repo.create("Elevator", "invoice_in")
    assert cat["color"] == "#6366f1"
    assert cat["is_default"] == 0
    assert repo.delete(cat["id"]).success
    assert repo.delete(cat["id"]).success is False


def test_default_category_cannot_be_deleted(conn):
    repo = CategoriesRepo(conn)
    default_id = repo.list_by_type("invoice_out")[0]["id"]
    result = repo.delete(default_id)
    assert result.success is False
    assert repo.get(default_id) is not None


def test_category_validation(conn):
    with pytest.raises(CategoryError):
        CategoriesRepo(conn).create("", "invoice_in")
    with pytest.raises(CategoryError):
        CategoriesRepo(conn).create("Misc", "refund")


def test_deleting_category_keeps_transactions(conn):
    repo = CategoriesRepo(conn)
    cat = repo.create("Elevator", "invoice_in")
    tx = make_tx(conn, type="invoice_in", category_id=cat["id"])
    repo.delete(cat["id"])
    row = conn.execute("SELECT category_id FROM transactions WHERE id = ?", (tx["id"],)).fetchone()
    assert row["category_id"] is None
