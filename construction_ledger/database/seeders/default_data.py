from ..repositories.tx_helpers import immediate_tx

DEFAULT_CATEGORIES = (
    # income
    ("Apartment / Housing Sale", "invoice_out", "#22c55e"),
    ("Shop / Office Sale", "invoice_out", "#10b981"),
    ("Land Sale", "invoice_out", "#14b8a6"),
    ("Rental Income", "invoice_out", "#06b6d4"),
    ("Progress Billing", "invoice_out", "#3b82f6"),
    ("Service Income", "invoice_out", "#6366f1"),
    ("Other Income", "invoice_out", "#84cc16"),
    # expenses
    ("Land Cost", "invoice_in", "#ef4444"),
    ("Excavation", "invoice_in", "#f97316"),
    ("Concrete", "invoice_in", "#84cc16"),
    ("Rebar / Steel", "invoice_in", "#64748b"),
    ("Labour", "invoice_in", "#8b5cf6"),
    ("Formwork / Scaffolding", "invoice_in", "#a855f7"),
    ("Electrical Material", "invoice_in", "#eab308"),
    ("Plumbing", "invoice_in", "#06b6d4"),
    ("Paint / Coating", "invoice_in", "#ec4899"),
    ("Ceramics / Tiles", "invoice_in", "#14b8a6"),
    ("Doors / Windows", "invoice_in", "#f59e0b"),
    ("Roofing / Insulation", "invoice_in", "#78716c"),
    ("Landscaping", "invoice_in", "#22c55e"),
    ("Design / Permits", "invoice_in", "#6366f1"),
    ("Subcontractor Invoice", "invoice_in", "#0ea5e9"),
    ("Transport", "invoice_in", "#f43f5e"),
    ("Office Rent", "invoice_in", "#ef4444"),
    ("Utilities", "invoice_in", "#f97316"),
    ("Payroll", "invoice_in", "#8b5cf6"),
    ("Social Security", "invoice_in", "#a855f7"),
    ("Tax", "invoice_in", "#ef4444"),
    ("Accounting / Consulting", "invoice_in", "#6366f1"),
    ("Vehicle Expenses", "invoice_in", "#64748b"),
    ("Other Expense", "invoice_in", "#71717a"),
    # payment methods
    ("Cash", "payment", "#22c55e"),
    ("Bank Transfer", "payment", "#3b82f6"),
    ("Cheque", "payment", "#f59e0b"),
    ("Promissory Note", "payment", "#f97316"),
    ("Credit Card", "payment", "#8b5cf6"),
    ("Offset", "payment", "#64748b"),
)


def seed(conn):
    # only on an empty categories table, so user edits survive restarts
    row = conn.execute("SELECT COUNT(*) AS n FROM categories").fetchone()
    if row and row["n"] == 0:
        with immediate_tx(conn):
            conn.executemany(
                "INSERT INTO categories(name, type, color, is_default) VALUES (?, ?, ?, 1)",
                DEFAULT_CATEGORIES,
            )
