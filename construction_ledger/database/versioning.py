"""
Numbered schema migrations tracked in `schema_versions`.

Each migration runs once; databases created before version tracking existed
are stamped retroactively when the change is already present.
"""
import logging
import sqlite3

from ..constants import TABLE_SCHEMA_VERSION

_log = logging.getLogger(__name__)


def _ensure_table(conn: sqlite3.Connection):
    conn.execute(f"""
        CREATE TABLE IF NOT EXISTS {TABLE_SCHEMA_VERSION}(
            version    INTEGER PRIMARY KEY,
            name       TEXT NOT NULL,
            applied_at DATETIME DEFAULT CURRENT_TIMESTAMP
        );
    """)


def get_current_version(conn: sqlite3.Connection) -> int:
    _ensure_table(conn)
    row = conn.execute(f"SELECT COALESCE(MAX(version), 0) FROM {TABLE_SCHEMA_VERSION};").fetchone()
    return int(row[0]) if row else 0


def set_current_version(conn: sqlite3.Connection, version: int, name: str):
    _ensure_table(conn)
    conn.execute(
        f"INSERT OR IGNORE INTO {TABLE_SCHEMA_VERSION}(version, name) VALUES (?, ?);",
        (version, name),
    )


def _columns(conn: sqlite3.Connection, table: str) -> set[str]:
    return {row[1] for row in conn.execute(f"PRAGMA table_info({table});").fetchall()}


def _table_exists(conn: sqlite3.Connection, table: str) -> bool:
    row = conn.execute(
        "SELECT 1 FROM sqlite_master WHERE type='table' AND name=?", (table,)
    ).fetchone()
    return row is not None


# ---------------------------------------------------------------------
# Migrations
# ---------------------------------------------------------------------

def _m1_linked_invoice_id(conn: sqlite3.Connection) -> None:
    if "linked_invoice_id" not in _columns(conn, "transactions"):
        conn.execute(
            "ALTER TABLE transactions ADD COLUMN linked_invoice_id INTEGER "
            "REFERENCES transactions(id) ON DELETE SET NULL;"
        )
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_transactions_linked_invoice "
        "ON transactions(linked_invoice_id);"
    )


def _m2_payment_allocations(conn: sqlite3.Connection) -> None:
    conn.executescript("""
        CREATE TABLE IF NOT EXISTS payment_allocations (
            id          INTEGER PRIMARY KEY AUTOINCREMENT,
            payment_id  INTEGER NOT NULL,
            invoice_id  INTEGER NOT NULL,
            amount      NUMERIC NOT NULL,
            created_at  DATETIME DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY (payment_id) REFERENCES transactions(id) ON DELETE CASCADE,
            FOREIGN KEY (invoice_id) REFERENCES transactions(id) ON DELETE CASCADE,
            UNIQUE (payment_id, invoice_id)
        );
        CREATE INDEX IF NOT EXISTS idx_payment_allocations_payment ON payment_allocations(payment_id);
        CREATE INDEX IF NOT EXISTS idx_payment_allocations_invoice ON payment_allocations(invoice_id);
    """)
    # Single-invoice links recorded before allocations existed become full allocations.
    conn.execute("""
        INSERT OR IGNORE INTO payment_allocations (payment_id, invoice_id, amount)
        SELECT id, linked_invoice_id, COALESCE(amount_try, amount)
        FROM transactions
        WHERE linked_invoice_id IS NOT NULL
    """)


MIGRATIONS = (
    (1, "add_linked_invoice_id", _m1_linked_invoice_id),
    (2, "create_payment_allocations", _m2_payment_allocations),
)


def apply_migrations(conn: sqlite3.Connection) -> int:
    """Apply pending migrations in order; returns the resulting version."""
    _ensure_table(conn)
    if get_current_version(conn) == 0:
        if "linked_invoice_id" in _columns(conn, "transactions"):
            set_current_version(conn, 1, "add_linked_invoice_id (retroactive)")
        if _table_exists(conn, "payment_allocations"):
            set_current_version(conn, 2, "create_payment_allocations (retroactive)")

    for version, name, step in MIGRATIONS:
        if get_current_version(conn) >= version:
            continue
        step(conn)
        set_current_version(conn, version, name)
        _log.info("Migration %s applied: %s", version, name)
    return get_current_version(conn)
