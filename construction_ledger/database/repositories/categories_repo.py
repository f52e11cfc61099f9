# construction_ledger/database/repositories/categories_repo.py
from __future__ import annotations

import sqlite3
from typing import Optional

from ...constants import CATEGORY_TYPES, DEFAULT_CATEGORY_COLOR
from ...utils.validators import non_empty
from .tx_helpers import OpResult, row_to_dict


class DomainError(Exception):
    pass


class CategoriesRepo:
    def __init__(self, conn: sqlite3.Connection):
        conn.row_factory = sqlite3.Row
        self.conn = conn

    def list_by_type(self, category_type: Optional[str] = None) -> list[dict]:
        if category_type:
            rows = self.conn.execute(
                "SELECT * FROM categories WHERE type = ? ORDER BY name",
                (category_type,),
            ).fetchall()
        else:
            rows = self.conn.execute("SELECT * FROM categories ORDER BY type, name").fetchall()
        return [dict(r) for r in rows]

    def get(self, category_id: int) -> dict | None:
        r = self.conn.execute("SELECT * FROM categories WHERE id = ?", (category_id,)).fetchone()
        return row_to_dict(r)

    def create(self, name: str, category_type: str, color: Optional[str] = None) -> dict:
        if not non_empty(name):
            raise DomainError("Category name cannot be empty.")
        if category_type not in CATEGORY_TYPES:
            raise DomainError(f"Unknown category type: {category_type!r}.")
        cur = self.conn.execute(
            "INSERT INTO categories (name, type, color) VALUES (?, ?, ?)",
            (name.strip(), category_type, color or DEFAULT_CATEGORY_COLOR),
        )
        return self.get(int(cur.lastrowid))  # type: ignore[return-value]

    def delete(self, category_id: int) -> OpResult:
        """
        Remove a user category. Default categories stay; transactions that
        used the category keep their row with category_id set to NULL.
        """
        cat = self.get(category_id)
        if cat is None:
            return OpResult(False, "Category not found.")
        if cat["is_default"]:
            return OpResult(False, "Default categories cannot be deleted.")
        self.conn.execute("DELETE FROM categories WHERE id = ?", (category_id,))
        return OpResult(True)
