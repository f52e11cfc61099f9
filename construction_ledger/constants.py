# construction_ledger/constants.py
"""
Shared constants: storage locations, table names and the closed value sets
the schema CHECK constraints are built from.
"""
from __future__ import annotations

# ---------------- Storage ----------------
DATA_DIR = "data"
DB_FILE_NAME = "construction_ledger.db"

TABLE_SCHEMA_VERSION = "schema_versions"
SCHEMA_VERSION = 2

# ---------------- Money ----------------
DEFAULT_BASE_CURRENCY = "TRY"
CURRENCIES = ("TRY", "USD", "EUR")

# ---------------- Ledger ----------------
SCOPES = ("cari", "project", "company")

INVOICE_OUT = "invoice_out"
INVOICE_IN = "invoice_in"
PAYMENT_IN = "payment_in"
PAYMENT_OUT = "payment_out"

TRANSACTION_TYPES = (INVOICE_OUT, PAYMENT_IN, INVOICE_IN, PAYMENT_OUT)
INVOICE_TYPES = (INVOICE_OUT, INVOICE_IN)
PAYMENT_TYPES = (PAYMENT_IN, PAYMENT_OUT)

CATEGORY_TYPES = (INVOICE_OUT, INVOICE_IN, "payment")
DEFAULT_CATEGORY_COLOR = "#6366f1"

# ---------------- Parties & projects ----------------
COMPANY_TYPES = ("person", "company")
ACCOUNT_TYPES = ("customer", "supplier", "subcontractor", "investor")
OWNERSHIP_TYPES = ("own", "client")
PROJECT_STATUSES = ("planned", "active", "completed", "cancelled")
PROJECT_TYPES = (
    "residential",
    "villa",
    "commercial",
    "mixed",
    "infrastructure",
    "renovation",
)

# ---------------- Stock ----------------
MOVEMENT_TYPES = ("in", "out", "adjustment", "waste")

# ---------------- Reporting ----------------
# (label, lower bound inclusive, upper bound inclusive or None for open-ended)
AGING_BUCKETS = (
    ("current", 0, 30),
    ("days30", 31, 60),
    ("days60", 61, 90),
    ("days90plus", 91, None),
)

# Float tolerance used when comparing money sums.
EPSILON = 1e-9
