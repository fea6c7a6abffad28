"""Shared utility functions for services.

parse_date:          lenient, returns None on bad input
parse_date_input:    strict, raises ValueError on bad input
to_int:              int or None, never truncates

Site staff type dates day-first; ISO strings are what the API and
``pending_data`` overlays carry.
"""
from datetime import date, datetime

_DAY_FIRST_FORMATS = ("%d.%m.%Y", "%d/%m/%Y", "%d-%m-%Y")


def parse_date(value):
    """Coerce *value* to a ``date`` or return None.

    Accepts ``date``/``datetime`` objects, ISO dates, ISO timestamps
    (``Z`` suffix allowed) and the day-first forms in ``_DAY_FIRST_FORMATS``.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    for fmt in _DAY_FIRST_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def parse_date_input(value):
    """Like ``parse_date`` but raises ValueError on unparseable input."""
    if value in (None, ""):
        return None
    parsed = parse_date(value)
    if parsed is None:
        raise ValueError("must be a date (YYYY-MM-DD or DD/MM/YYYY)")
    return parsed


def to_int(value):
    """Coerce *value* to an ``int`` or return None.

    Booleans and non-integral floats are refused: ``True`` is not id 1 and
    ``3.7`` is not 3.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None
