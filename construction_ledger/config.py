# construction_ledger/config.py
import os
from pathlib import Path

from .constants import CURRENCIES, DATA_DIR, DB_FILE_NAME, DEFAULT_BASE_CURRENCY

BASE_DIR = Path(__file__).resolve().parent.parent
DATA_PATH = BASE_DIR / DATA_DIR
DB_PATH = DATA_PATH / DB_FILE_NAME


def resolve_db_path(path: str | Path | None = None) -> Path:
    """
    Resolve the live database file.

    Resolution order:
      1) explicit `path`
      2) environment variable LEDGER_DB_PATH
      3) <project>/data/construction_ledger.db
    """
    if path:
        return Path(path).expanduser().resolve()
    env = os.getenv("LEDGER_DB_PATH")
    if env:
        return Path(env).expanduser().resolve()
    return DB_PATH


def base_currency() -> str:
    """Base currency all `amount_try` figures are normalized to."""
    code = (os.getenv("LEDGER_BASE_CURRENCY") or DEFAULT_BASE_CURRENCY).strip().upper()
    if code not in CURRENCIES:
        raise ValueError(
            f"LEDGER_BASE_CURRENCY must be one of {', '.join(CURRENCIES)} (got {code!r})."
        )
    return code


LOG_LEVEL = os.getenv("LEDGER_LOG_LEVEL", "INFO").upper()
LOG_FILE = os.getenv("LEDGER_LOG_FILE") or None
