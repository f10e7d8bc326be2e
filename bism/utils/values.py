"""
Cell value normalization and display formatting.

Conventions (Chilean workbooks):
  Amounts     →  1.234.567     (dot thousands separator, no decimals)
  Percent     →  42,30%        (comma decimal separator, 2 decimals)
  Errors      →  "#DIV/0!" is shown verbatim and parsed as 0
"""
import math
import numbers
import re
from datetime import date, datetime
from typing import Any, Optional

import pandas as pd

ERROR_MARKER = "#DIV/0!"

# Plain ASCII decimal notation; float() alone also takes "1_000" and non-ASCII digits
_NUMBER = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$", re.ASCII)

# Chilean day-first formats are tried before the ISO and US ones
DATE_FORMATS = [
    "%Y-%m-%d", "%d-%m-%Y", "%d/%m/%Y",
    "%Y/%m/%d", "%d-%m-%y", "%d/%m/%y",
    "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M:%S",
]


def parse_value(value: Any) -> float:
    """
    Parse a spreadsheet cell into a finite number.

    Handles "$1,234,567", " 2,365,037 ", "$0", "#DIV/0!", empty cells and NaN.
    Commas are always thousands separators. Anything unparseable is 0.
    """
    if value is None or isinstance(value, bool):
        return 0.0

    if isinstance(value, numbers.Real):
        number = float(value)
        return number if math.isfinite(number) else 0.0

    if not isinstance(value, str):
        return 0.0

    if value in (ERROR_MARKER, "", "$0"):
        return 0.0

    cleaned = "".join(value.split()).replace("$", "").replace(",", "")
    if not _NUMBER.match(cleaned):
        return 0.0
    try:
        number = float(cleaned)
    except ValueError:
        return 0.0
    return number if math.isfinite(number) else 0.0


def parse_date(value: Any) -> Optional[date]:
    """Parse the date formats found in SII ledger exports. Returns None when unparseable."""
    if value is None or value is pd.NaT or value == "":
        return None

    if isinstance(value, pd.Timestamp):
        return None if pd.isna(value) else value.date()

    if isinstance(value, datetime):
        return value.date()

    if isinstance(value, date):
        return value

    if isinstance(value, float) and math.isnan(value):
        return None

    str_value = str(value).strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(str_value, fmt).date()
        except ValueError:
            continue

    try:
        parsed = pd.to_datetime(str_value, dayfirst=True)
    except (ValueError, OverflowError):
        return None
    return None if pd.isna(parsed) else parsed.date()


def format_number(value: Any) -> str:
    """Format an amount with Chilean thousands separators: 1.234.567"""
    if value is None or value == "":
        return "-"

    str_value = str(value)
    if "#" in str_value or "DIV" in str_value:
        return str_value

    if isinstance(value, numbers.Real) and not isinstance(value, bool):
        number = float(value)
    else:
        try:
            number = float(str_value.replace(",", ""))
        except ValueError:
            return str_value
    if not math.isfinite(number):
        return str_value

    return f"{number:,.0f}".replace(",", ".")


def format_percentage(value: Any, decimal_places: int = 2) -> str:
    """Format a percentage expressed in points (25 for 25%): 25,00%"""
    if value is None or value == "":
        return "-"
    try:
        number = float(value)
    except (TypeError, ValueError):
        return "-"
    if not math.isfinite(number):
        return "-"

    text = f"{number:,.{decimal_places}f}"
    # swap separators to es-CL: 1,234.50 -> 1.234,50
    text = text.replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{text}%"
