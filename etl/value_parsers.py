# WORKFLOW: Value parsers for the irregular cells of the arrivals export.
# Used by: Row parser, persistence writer
# Functions:
# 1. parse_date() - ISO, slash and Arabic month-placeholder dates
# 2. parse_complex_value() - Compound quantities such as "6+4" or "44-66"
# 3. parse_price() - Prices with currency symbols, incoterms and mixed separators
# 4. parse_free_time() - Free-time days from one of two candidate cells
# 5. normalize_text() - Whitespace normalization for mixed Arabic/Latin text
# 6. map_status() - Free-text status phrase -> closed status code
# 7. round_count() - Container counts from fractional quantities
#
# Parsing flow: Raw cell -> Cleanup -> Format detection -> Typed value
# Unparseable input yields a neutral default (None, 0, "planning") and never raises.

"""
Value parsers for the arrivals export.
"""

import re
from datetime import date
from typing import List, Optional

from pydantic import BaseModel

from core.config import settings

DEFAULT_CURRENCY = "USD"
DEFAULT_STATUS = "planning"
PLACEHOLDER_DAY = 15

STATUS_MAP = {
    'تم الوصول': 'arrived',
    'تم التخليص': 'cleared',
    'transit': 'sailed',
    'TRANSIT': 'sailed',
    'TT': 'sailed',
    'CAD': 'sailed',
    'INV': 'planning',
    'DEPO': 'gate_in',
    'depo': 'gate_in',
    'قيد الشحن': 'loading',
    'RE-EXPORT': 'planning',
    '': 'planning',
}

_ISO_DATE = re.compile(r'^\d{4}-\d{2}-\d{2}$')
_SLASH_DATE = re.compile(r'^(\d{4})/(\d{1,2})/(\d{1,2})$')
# "شهر 11", "شحن 11", "شحن شهر 11", "شحن 10-12": first stated month wins
_MONTH_PLACEHOLDER = re.compile(r'(?:شهر|شحن)\s*(?:شهر\s*)?(\d{1,2})')
_LEADING_FLOAT = re.compile(r'^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?')
_INCOTERMS = re.compile(r'فوب|FOB|CFR', re.IGNORECASE)


class ComplexValue(BaseModel):
    total: float = 0
    parts: List[float] = []
    currency: str = DEFAULT_CURRENCY


class PriceValue(BaseModel):
    price: Optional[float] = None
    currency: str = DEFAULT_CURRENCY


def _to_float(text: str) -> Optional[float]:
    """Parse the leading number of ``text``; trailing garbage is ignored."""
    match = _LEADING_FLOAT.match(text.strip())
    if not match:
        return None
    try:
        return float(match.group(0))
    except ValueError:
        return None


def normalize_text(text: Optional[str]) -> str:
    """Trim and collapse whitespace; ``None`` becomes an empty string."""
    if text is None:
        return ""
    return re.sub(r'\s+', ' ', str(text).strip())


def _iso(year: int, month: int, day: int) -> Optional[str]:
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def parse_date(date_str: Optional[str], placeholder_year: Optional[int] = None) -> Optional[str]:
    """
    Parse a date cell into an ISO ``YYYY-MM-DD`` string.

    Args:
        date_str: Raw cell (e.g. "2025-12-23", "2025/9/29", "شهر 11", "شحن 10-12")
        placeholder_year: Year used when the cell only names a month
            (defaults to settings.month_placeholder_year)

    Returns:
        ISO date string, or None when the cell is not a date
    """
    if not date_str:
        return None

    trimmed = str(date_str).strip()

    if _ISO_DATE.match(trimmed):
        year, month, day = (int(p) for p in trimmed.split('-'))
        return _iso(year, month, day)

    slash_match = _SLASH_DATE.match(trimmed)
    if slash_match:
        year, month, day = (int(p) for p in slash_match.groups())
        return _iso(year, month, day)

    placeholder = _MONTH_PLACEHOLDER.search(trimmed)
    if placeholder:
        month = int(placeholder.group(1))
        if 1 <= month <= 12:
            return _iso(placeholder_year or settings.month_placeholder_year, month, PLACEHOLDER_DAY)
        return None

    return None


def parse_complex_value(value) -> ComplexValue:
    """
    Parse a compound quantity such as "6+4", "150+100", "44-66" or "25".

    Args:
        value: Raw cell

    Returns:
        ComplexValue with the total, the individual parts and detected currency
    """
    if not isinstance(value, str) or not value:
        num = _to_float(str(value)) if value not in (None, "") else None
        if num is not None:
            return ComplexValue(total=num, parts=[num])
        return ComplexValue()

    cleaned = value.strip()
    currency = DEFAULT_CURRENCY

    if '€' in cleaned or 'eur' in cleaned.lower():
        currency = "EUR"
        cleaned = re.sub(r'EUR', '', cleaned.replace('€', ''), flags=re.IGNORECASE)
    if '$' in cleaned:
        currency = "USD"
        cleaned = cleaned.replace('$', '')

    # Thousands separators go, a trailing decimal comma becomes a dot
    cleaned = re.sub(r'\s', '', cleaned)
    cleaned = re.sub(r',(?=\d{3})', '', cleaned)
    if re.match(r'^\d+,\d{1,2}$', cleaned):
        cleaned = cleaned.replace(',', '.')

    if '+' in cleaned:
        parts = [n for n in (_to_float(p) for p in cleaned.split('+')) if n is not None]
        return ComplexValue(total=sum(parts), parts=parts, currency=currency)

    if '-' in cleaned and not cleaned.startswith('-'):
        parts = [n for n in (_to_float(p) for p in cleaned.split('-')) if n is not None]
        if parts:
            return ComplexValue(total=sum(parts), parts=parts, currency=currency)

    num = _to_float(cleaned)
    if num is not None:
        return ComplexValue(total=num, parts=[num], currency=currency)

    return ComplexValue(currency=currency)


def parse_price(value: Optional[str]) -> PriceValue:
    """
    Parse a price such as "$1,050.00", "€ 453,00" or "1105 $ فوب".

    Args:
        value: Raw cell

    Returns:
        PriceValue with amount (None if unparseable) and currency
    """
    if not value:
        return PriceValue()

    cleaned = value.strip()
    currency = "EUR" if '€' in cleaned else DEFAULT_CURRENCY

    cleaned = re.sub(r'[$€]', '', cleaned)
    cleaned = _INCOTERMS.sub('', cleaned)
    cleaned = re.sub(r'\s+', ' ', cleaned).strip()

    if re.search(r'\d{1,3}(,\d{3})+(\.\d+)?$', cleaned):
        cleaned = cleaned.replace(',', '')
    elif re.search(r'\d+,\d{2}$', cleaned):
        cleaned = cleaned.replace(',', '.', 1)

    return PriceValue(price=_to_float(cleaned), currency=currency)


def round_count(value: Optional[float]) -> Optional[int]:
    """Round a container count half away from zero; zero or missing -> None."""
    if not value:
        return None
    return int(value + 0.5) if value > 0 else -int(-value + 0.5)


def parse_free_time(primary: Optional[str], fallback: Optional[str] = None) -> Optional[int]:
    """Digits of the first non-empty cell as days; zero or no digits -> None."""
    raw = primary or fallback or ''
    digits = re.sub(r'[^\d]', '', raw)
    if not digits:
        return None
    return int(digits) or None


def map_status(status_text: Optional[str]) -> str:
    """
    Map a free-text status phrase to a status code.

    Exact table lookup first, then substring heuristics; anything else is
    ``planning``.
    """
    normalized = normalize_text(status_text).lower()

    for phrase, code in STATUS_MAP.items():
        if normalized == phrase.lower():
            return code

    if 'وصول' in normalized or 'وصل' in normalized:
        return 'arrived'
    if 'تخليص' in normalized or 'خلص' in normalized or 'مخلص' in normalized:
        return 'cleared'
    if 'transit' in normalized or 'ترانزيت' in normalized:
        return 'sailed'
    if 'شحن' in normalized:
        return 'loading'

    return DEFAULT_STATUS
