"""
Field normalisation for records received from the payroll system.

Every function here is pure and total: it never raises on malformed input,
it returns None (absent) instead. Validation decides separately whether an
absent value is acceptable.
"""

import re
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

_WHITESPACE = re.compile(r"\s+")
_DATE = re.compile(r"^(\d{4})[-/](\d{1,2})[-/](\d{1,2})(?:[T\s].*)?$")
_YEAR_MONTH = re.compile(r"^(\d{4})[-/]?(\d{1,2})$")
# ASCII digits only; full-width digits are not numbers here
_NUMBER = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$", re.ASCII)

TRUE_TOKENS = frozenset({"1", "on", "true", "yes"})
FALSE_TOKENS = frozenset({"0", "off", "false", "no"})

# Japanese yes/no as written on HR forms
AFFIRMATIVE_TOKEN = "有"
NEGATIVE_TOKEN = "無"

# Leave status values meaning "not on leave"
LEAVE_NONE_TOKENS = frozenset({"なし", "none"})

MALE = "男"
FEMALE = "女"
_MALE_ALIASES = frozenset({"男", "男性", "male"})
_FEMALE_ALIASES = frozenset({"女", "女性", "female"})


def strip_all_whitespace(value: Any) -> str:
    """Remove every whitespace character, including full-width spaces."""
    if value is None:
        return ""
    return _WHITESPACE.sub("", str(value))


def normalize_employee_no(value: Any) -> str:
    return strip_all_whitespace(value)


def normalize_name(value: Any) -> str:
    return strip_all_whitespace(value)


def normalize_string(value: Any) -> Optional[str]:
    """Trim a free-text field; empty becomes None."""
    if value is None:
        return None
    trimmed = str(value).strip()
    return trimmed or None


def is_blank(value: Any) -> bool:
    return value is None or str(value).strip() == ""


def normalize_gender(value: Any) -> Optional[str]:
    """
    Map the usual spellings onto 男 / 女.

    Unrecognised values are kept (trimmed) rather than dropped.
    """
    text = normalize_string(value)
    if text is None:
        return None
    if text in _MALE_ALIASES or text.lower() in _MALE_ALIASES:
        return MALE
    if text in _FEMALE_ALIASES or text.lower() in _FEMALE_ALIASES:
        return FEMALE
    return text


def _token(value: Any) -> str:
    return str(value).strip().lower()


def normalize_flag(value: Any) -> Optional[bool]:
    """Boolean-like flag: True for 1/on/true/yes, False for anything else."""
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    return _token(value) in TRUE_TOKENS


def normalize_has_dependent(value: Any) -> bool:
    """Dependent-presence flag. Also accepts 有; absent means False."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    token = _token(value)
    return token in TRUE_TOKENS or token == AFFIRMATIVE_TOKEN


def normalize_tristate_flag(value: Any) -> Optional[bool]:
    """
    Flag that distinguishes "no" from "unknown".

    Recognised affirmative tokens give True, recognised negative tokens give
    False, anything else gives None.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    token = _token(value)
    if token in TRUE_TOKENS or token == AFFIRMATIVE_TOKEN:
        return True
    if token in FALSE_TOKENS or token == NEGATIVE_TOKEN:
        return False
    return None


def to_decimal(value: Any) -> Optional[Decimal]:
    """
    Coerce a number or numeric string; None when absent or not numeric.

    Thousands separators ("1,200") are accepted since payroll exports use
    them. Digits must be ASCII.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        result = value
    else:
        text = str(value).strip().replace(",", "")
        if not _NUMBER.match(text):
            return None
        try:
            result = Decimal(text)
        except InvalidOperation:
            return None
    if not result.is_finite():
        return None
    return result


def is_numeric_or_absent(value: Any) -> bool:
    return is_blank(value) or to_decimal(value) is not None


def to_worked_days(value: Any) -> Optional[int]:
    """Worked days must be a whole number."""
    number = to_decimal(value)
    if number is None or number != number.to_integral_value():
        return None
    return int(number)


def parse_date(value: Any) -> Optional[date]:
    """
    Parse YYYY-MM-DD or YYYY/MM/DD, ignoring any time-of-day suffix.
    """
    text = normalize_string(value)
    if text is None:
        return None
    match = _DATE.match(text)
    if not match:
        return None
    year, month, day = (int(part) for part in match.groups())
    try:
        return date(year, month, day)
    except ValueError:
        return None


def canonical_year_month(value: Any) -> Optional[str]:
    """
    Canonical six-digit month key.

    Accepts 2025-04, 2025/04, 2025-4 and 202504; returns "202504".
    """
    text = strip_all_whitespace(value)
    if not text:
        return None
    match = _YEAR_MONTH.match(text)
    if not match:
        return None
    year, month = match.groups()
    if len(month) == 1 and "-" not in text and "/" not in text:
        # "20254" is ambiguous
        return None
    month_number = int(month)
    if not 1 <= month_number <= 12:
        return None
    return f"{year}{month_number:02d}"


def year_month_of(day: date) -> str:
    return f"{day.year:04d}{day.month:02d}"


def display_year_month(key: str) -> str:
    """202504 -> 2025-04"""
    return f"{key[:4]}-{key[4:]}"


def is_leave_none(status: Optional[str]) -> bool:
    return status is None or status.strip().lower() in LEAVE_NONE_TOKENS
