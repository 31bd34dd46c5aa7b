"""
Cell Parsers

Turns spreadsheet cell values into numbers. Uploaded exports mix real
numbers, grouped strings ("1,500,000"), percentages ("6%") and blanks.

Two layers:
- coerce_* functions raise CellParseError for malformed, non-blank input
  and return 0 for blanks; the normalizer uses them to record diagnostics.
- parse_* functions never raise and never return NaN: anything that is not
  a number becomes 0.
"""

import math
import numbers
import re
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, Optional, Union

from shop_performance.exceptions import CellParseError

Number = Union[int, float]

# Leading numeric prefix, the way spreadsheet exports are read elsewhere
_FLOAT_PREFIX = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?")
_INT_PREFIX = re.compile(r"^[+-]?\d+")
_DMY_PREFIX = re.compile(r"^(\d{1,2})[-/](\d{1,2})[-/](\d{4})")
_ISO_PREFIX = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})")
# Anything but digits, separators and sign
_CURRENCY_NOISE = re.compile(r"[^0-9.,+-]")

EXCEL_EPOCH = date(1899, 12, 30)


def is_blank(value: Any) -> bool:
    """None, empty strings and NaN (pandas' empty cell) count as blank"""
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, str) and value.strip() == "":
        return True
    return False


def _is_number(value: Any) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def _finite(value: Number) -> Number:
    if isinstance(value, numbers.Integral):
        return int(value)
    value = float(value)
    if not math.isfinite(value):
        return 0
    return value


def coerce_number(value: Any) -> Number:
    """
    Parse a numeric cell, stripping comma grouping separators.

    Raises:
        CellParseError: value is present but not numeric
    """
    if is_blank(value):
        return 0
    if _is_number(value):
        return _finite(value)
    if not isinstance(value, str):
        raise CellParseError(value, "unsupported cell type")

    cleaned = value.replace(",", "").strip()
    match = _FLOAT_PREFIX.match(cleaned)
    if not match:
        raise CellParseError(value, "not a number")
    return _finite(float(match.group(0)))


def coerce_percentage(value: Any) -> Number:
    """Same contract as coerce_number, with a trailing '%' removed first"""
    if isinstance(value, str):
        value = value.strip()
        if value.endswith("%"):
            value = value[:-1]
    return coerce_number(value)


def coerce_integer(value: Any) -> int:
    """
    Parse a base-10 integer from the stringified, comma-stripped value.

    Only the leading digits count, so "12.7" gives 12.
    """
    if is_blank(value):
        return 0
    if isinstance(value, bool) or isinstance(value, (dict, list, tuple, set)):
        raise CellParseError(value, "unsupported cell type")
    if _is_number(value):
        return int(_finite(value))

    cleaned = str(value).replace(",", "").strip()
    match = _INT_PREFIX.match(cleaned)
    if not match:
        raise CellParseError(value, "not an integer")
    return int(match.group(0), 10)


def coerce_money(value: Any) -> int:
    """
    Monetary amount rounded to the smallest currency unit.

    Amounts are never negative in an export; a negative cell is rejected
    rather than read as a deduction.
    """
    amount = int(round(coerce_number(value)))
    if amount < 0:
        raise CellParseError(value, "negative amount")
    return amount


def coerce_currency(value: Any) -> int:
    """
    coerce_money for cells that carry a currency symbol or spacing,
    e.g. "₫1,500,000" or "1 500 000 đ".
    """
    if isinstance(value, str) and not is_blank(value):
        digits = _CURRENCY_NOISE.sub("", value)
        if not digits:
            raise CellParseError(value, "not a number")
        try:
            return coerce_money(digits)
        except CellParseError as e:
            raise CellParseError(value, e.reason) from None
    return coerce_money(value)


def _lenient(func: Callable[[Any], Number]) -> Callable[[Any], Number]:
    def parse(value: Any) -> Number:
        try:
            return func(value)
        except CellParseError:
            return 0
    parse.__name__ = func.__name__.replace("coerce_", "parse_")
    parse.__doc__ = f"Lenient form of {func.__name__}: malformed input yields 0"
    return parse


parse_number = _lenient(coerce_number)
parse_percentage = _lenient(coerce_percentage)
parse_integer = _lenient(coerce_integer)
parse_money = _lenient(coerce_money)
parse_currency = _lenient(coerce_currency)


def parse_report_date(value: Any) -> Optional[date]:
    """
    Parse a report date cell.

    Accepts date/datetime objects (including pandas Timestamps),
    "DD-MM-YYYY" / "DD/MM/YYYY" prefixes, ISO "YYYY-MM-DD" prefixes and
    Excel serial day numbers. Returns None when nothing matches.
    """
    if is_blank(value):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if _is_number(value):
        if value <= 0:
            return None
        return EXCEL_EPOCH + timedelta(days=int(value))
    if not isinstance(value, str):
        return None

    text = value.strip()
    for pattern, order in ((_DMY_PREFIX, (3, 2, 1)), (_ISO_PREFIX, (1, 2, 3))):
        match = pattern.match(text)
        if match:
            year, month, day = (int(match.group(i)) for i in order)
            try:
                return date(year, month, day)
            except ValueError:
                return None
    return None


# Parser registry used by column maps
STRICT_PARSERS: Dict[str, Callable[[Any], Any]] = {
    "number": coerce_number,
    "percentage": coerce_percentage,
    "integer": coerce_integer,
    "money": coerce_money,
    "currency": coerce_currency,
}
