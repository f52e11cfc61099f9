# construction_ledger/database/__init__.py
from __future__ import annotations

from pathlib import Path
import logging
import sqlite3

from ..config import resolve_db_path
from ..constants import SCHEMA_VERSION
from .schema import apply_schema
from .seeders.default_data import seed as seed_default_data

_log = logging.getLogger(__name__)


def get_connection(db_path: Path | str | None = None) -> sqlite3.Connection:
    """
    Returns a sqlite3.Connection with:
      - autocommit mode (isolation_level=None); multi-step writes open their
        own atomic unit via repositories.tx_helpers.immediate_tx
      - WAL mode
      - foreign_keys ON
      - row_factory = sqlite3.Row (so rows behave like dicts and tuples)
    Ensures schema, migrations & seed data are applied idempotently.
    """
    path = resolve_db_path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(path, isolation_level=None)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    conn.execute("PRAGMA journal_mode = WAL;")

    apply_schema(conn)
    version = conn.execute("SELECT COALESCE(MAX(version), 0) FROM schema_versions").fetchone()[0]
    if int(version) != SCHEMA_VERSION:
        _log.warning("Schema version %s differs from expected %s", version, SCHEMA_VERSION)

    # Seeders are idempotent.
    seed_default_data(conn)
    return conn


__all__ = [
    "get_connection",
]
