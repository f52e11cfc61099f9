# utils/helpers.py
from datetime import date
import logging
from typing import Union, Optional

NumberLike = Union[float, int, str]

_log = logging.getLogger(__name__)


def today_str() -> str:
    """Return today's date as ISO string (YYYY-MM-DD)."""
    return date.today().isoformat()


def fmt_money(
    v: NumberLike,
    places: int = 2,
    *,
    currency: Optional[str] = None,
    sentinel: Optional[str] = None,
) -> str:
    """
    Format a number as money with thousands separators and fixed decimals,
    optionally suffixed with a currency code ("1,250.00 TRY").

    On parse failure returns `sentinel` when given, else str(v).
    """
    try:
        x = float(v)
    except (TypeError, ValueError) as e:
        _log.debug("fmt_money: failed to parse %r as float: %s", v, e)
        return str(sentinel) if sentinel is not None else str(v)
    text = f"{x:,.{places}f}"
    return f"{text} {currency}" if currency else text
