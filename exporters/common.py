import math


def format_number(value: float) -> str:
    """Shortest text that reads back as ``value``; integral values drop ``.0``."""
    value = float(value)
    if value.is_integer() and abs(value) < 1e16:
        return str(int(value))
    if math.isfinite(value):
        return repr(value)
    return str(value)
