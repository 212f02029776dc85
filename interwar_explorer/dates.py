"""
Parsing and display of source-table dates

Stored dates arrive in several shapes depending on how a table was loaded:
DATE values, epoch milliseconds (negative before 1970), numeric strings,
DD.MM.YYYY text or free-form text.
"""
import math
import re
from datetime import date, datetime, timedelta
from typing import Any, Optional

import numpy as np
import pandas as pd

EPOCH = datetime(1970, 1, 1)
NUMERIC_TEXT = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")
DOTTED_DATE = re.compile(r"^(\d{1,2})\.(\d{1,2})\.(\d{4})$")

# Long-format month names: English nominative, Polish genitive ("1 stycznia 1921")
MONTHS = {
    "en": ["January", "February", "March", "April", "May", "June", "July",
           "August", "September", "October", "November", "December"],
    "pl": ["stycznia", "lutego", "marca", "kwietnia", "maja", "czerwca", "lipca",
           "sierpnia", "września", "października", "listopada", "grudnia"],
}


def _from_epoch(number: float, numeric_unit: str) -> Optional[date]:
    if math.isnan(number) or math.isinf(number):
        return None
    if numeric_unit == "auto" and abs(number) < 1e12:
        number *= 1000
    try:
        return (EPOCH + timedelta(milliseconds=number)).date()
    except OverflowError:
        return None


def parse_date_value(value: Any, numeric_unit: str = "ms") -> Optional[date]:
    """
    Parse a stored date into a calendar date

    Args:
        value: Raw stored value
        numeric_unit: "ms" treats numbers as epoch milliseconds; "auto" treats
            magnitudes below 1e12 as seconds

    Returns:
        date, or None when absent or unparseable
    """
    if value is None or value is pd.NaT or isinstance(value, bool):
        return None
    if isinstance(value, pd.Timestamp):
        return None if pd.isna(value) else value.date()
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, np.datetime64):
        return None if np.isnat(value) else pd.Timestamp(value).date()
    if isinstance(value, (int, float, np.integer, np.floating)):
        return _from_epoch(float(value), numeric_unit)

    text = str(value).strip()
    if not text:
        return None
    if NUMERIC_TEXT.match(text):
        return _from_epoch(float(text), numeric_unit)

    match = DOTTED_DATE.match(text)
    if match:
        day, month, year = (int(g) for g in match.groups())
        try:
            return date(year, month, day)
        except ValueError:
            return None

    parsed = pd.to_datetime(text, errors="coerce")
    if parsed is None or pd.isna(parsed):
        return None
    return parsed.date()


def format_long_date(value: date, language: str) -> str:
    """Long date in the UI language: "1 January 1921" / "1 stycznia 1921"."""
    months = MONTHS.get(language, MONTHS["en"])
    return f"{value.day} {months[value.month - 1]} {value.year}"


def format_date_value(value: Any, language: str) -> str:
    """Display string for a metadata date; raw text when it does not parse."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return ""
    parsed = parse_date_value(value, numeric_unit="auto")
    if parsed is not None:
        return format_long_date(parsed, language)
    return str(value)
