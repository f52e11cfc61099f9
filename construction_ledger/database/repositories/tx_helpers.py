# construction_ledger/database/repositories/tx_helpers.py
"""
Helpers shared by the repositories: the atomic-unit context manager, row
conversion and the structured result returned by delete/restore calls.
"""
from __future__ import annotations

import itertools
import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterator, Optional

_log = logging.getLogger(__name__)

_savepoint_ids = itertools.count(1)


@dataclass(frozen=True)
class OpResult:
    """Outcome of an operation that reports failure instead of raising."""
    success: bool
    error: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        if d["error"] is None:
            d.pop("error")
        return d


@contextmanager
def immediate_tx(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """
    Run the block as one atomic unit.

    Starts an IMMEDIATE transaction (write lock taken up front), commits on
    success, rolls back on any exception and re-raises. When a transaction is
    already open on the connection the block runs inside a SAVEPOINT instead,
    so composed operations still commit or roll back as a whole.
    """
    if conn.in_transaction:
        name = f"ledger_sp_{next(_savepoint_ids)}"
        conn.execute(f"SAVEPOINT {name}")
        try:
            yield conn
        except Exception:
            conn.execute(f"ROLLBACK TO SAVEPOINT {name}")
            conn.execute(f"RELEASE SAVEPOINT {name}")
            raise
        conn.execute(f"RELEASE SAVEPOINT {name}")
        return

    cur = conn.cursor()
    try:
        cur.execute("BEGIN IMMEDIATE")
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        _log.debug("Rolled back atomic unit", exc_info=True)
        raise
    finally:
        cur.close()


def row_to_dict(r: sqlite3.Row | dict | None) -> Optional[Dict[str, Any]]:
    return dict(r) if r is not None else None


def to_float(x: Optional[Any]) -> float:
    try:
        return float(x or 0.0)
    except (TypeError, ValueError):
        return 0.0
