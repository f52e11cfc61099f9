# utils/validators.py
import re
from datetime import datetime


def non_empty(text) -> bool:
    """
    True if `text` is not None/empty after stripping whitespace.
    """
    return bool(text and str(text).strip())


# ---- Numeric parsing & validators ----

def try_parse_float(x):
    """
    Best-effort parse to float.

    Returns:
        (ok: bool, value: float|None)

    Booleans are rejected even though Python treats them as ints.
    """
    if x is None or isinstance(x, bool):
        return False, None
    try:
        return True, float(x)
    except (TypeError, ValueError):
        return False, None


def is_positive_int_id(x) -> bool:
    """
    True iff x is an integer primary key (> 0). Floats with an integral value
    (e.g. 12.0 coming back from JSON) are accepted; bools and strings are not.
    """
    if isinstance(x, bool):
        return False
    if isinstance(x, int):
        return x > 0
    if isinstance(x, float):
        return x.is_integer() and x > 0
    return False


# ---- Dates ----

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def is_iso_date(text) -> bool:
    """
    True iff `text` is a calendar date written as YYYY-MM-DD.

    Reports, aging and monthly grouping all read dates in this form.
    """
    if not isinstance(text, str) or not _ISO_DATE.match(text):
        return False
    try:
        datetime.strptime(text, "%Y-%m-%d")
    except ValueError:
        return False
    return True
