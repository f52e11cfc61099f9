# tests/test_financials.py
import pytest

from construction_ledger.database.repositories.payment_allocations_repo import PaymentAllocationsRepo
from construction_ledger.database.repositories.projects_repo import ProjectsRepo
from construction_ledger.database.repositories.transactions_repo import TransactionsRepo
from construction_ledger.utils.financials import (
    base_amount_of,
    clamp_non_negative,
    company_financials,
    project_financials,
    transaction_totals,
)

from builders import make_tx


def test_clamp_and_base_amount():
    assert clamp_non_negative(-1.0) == 0.0
    assert clamp_non_negative(2.5) == 2.5
    assert base_amount_of({"amount": 10, "amount_try": 300}) == 300
    assert base_amount_of({"amount": 10, "amount_try": None}) == 10


def test_company_financials():
    rows = [
        {"type": "invoice_out", "amount_try": 1000},
        {"type": "payment_in", "amount_try": 400},
        {"type": "invoice_in", "amount_try": 300},
        {"type": "payment_out", "amount_try": 100},
    ]
    f = company_financials(rows)
    assert f["receivable"] == 600
    assert f["payable"] == 200
    assert f["balance"] == 400


def test_project_financials_counts_only_unallocated_payments():
    rows = [
        {"type": "invoice_out", "amount_try": 1000},
        {"type": "payment_in", "amount_try": 700, "allocated_amount": 500},
        {"type": "payment_in", "amount_try": 50, "linked_invoice_id": 1},
        {"type": "invoice_in", "amount_try": 400},
        {"type": "payment_out", "amount_try": 100},
    ]
    f = project_financials(rows, "own", estimated_budget=1000)
    assert f["independent_payment_in"] == 200
    assert f["independent_payment_out"] == 100
    assert f["total_income"] == 1200
    assert f["total_expense"] == 500
    assert f["project_profit"] == 700
    assert f["client_receivable"] == 500
    assert f["project_debt"] == 400
    assert f["estimated_profit"] == 500
    assert f["budget_used"] == pytest.approx(50.0)


def test_project_financials_without_budget():
    f = project_financials([], "client")
    assert f["estimated_profit"] is None
    assert f["budget_used"] == 0.0


def test_transaction_totals():
    rows = [
        {"type": "invoice_out", "amount_try": 100},
        {"type": "payment_in", "amount_try": 80},
        {"type": "invoice_in", "amount_try": 30},
        {"type": "payment_out", "amount_try": 20},
    ]
    t = transaction_totals(rows)
    assert t["net_profit"] == 70
    assert t["net_cash_flow"] == 60
    assert t["net_balance"] == 130


def test_pure_roll_up_matches_project_summary(conn, ids):
    inv = make_tx(conn, scope="project", project_id=ids["project"], amount=1000)
    pay = make_tx(conn, scope="project", project_id=ids["project"], type="payment_in", amount=700)
    make_tx(conn, scope="project", project_id=ids["project"], type="invoice_in", amount=250)
    PaymentAllocationsRepo(conn).set_for_payment(pay["id"], [{"invoice_id": inv["id"], "amount": 500}])

    rows = TransactionsRepo(conn).get_by_project(ids["project"])
    pure = project_financials(rows, "own")
    summary = next(p for p in ProjectsRepo(conn).get_with_summary() if p["id"] == ids["project"])

    for key in ("total_income", "total_expense", "project_profit", "client_receivable", "project_debt"):
        assert summary[key] == pytest.approx(pure[key])
    assert summary["total_income"] == pytest.approx(1200)
