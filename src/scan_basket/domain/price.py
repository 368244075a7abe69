import re
from decimal import Decimal, InvalidOperation
from typing import Optional, Sequence, Tuple

from ..logging import get_logger
from .errors import InvalidManualInput
from .models import CurrencyPattern

_LOG = get_logger("price")


# Tried in order; the first pattern with any match wins. Symbol-qualified
# patterns must stay ahead of GENERIC.
CURRENCY_PATTERNS: Tuple[CurrencyPattern, ...] = (
    CurrencyPattern.for_symbol("USD", "$"),
    CurrencyPattern.for_symbol("EUR", "€"),
    CurrencyPattern.for_symbol("INR", "₹"),
    CurrencyPattern.for_symbol("GBP", "£"),
    CurrencyPattern.for_symbol("GENERIC"),
)

# Characters the OCR engine is allowed to emit.
OCR_CHAR_WHITELIST = "0123456789.$€£₹"

PRICE_MIN_EXCLUSIVE = Decimal("0")
PRICE_MAX_EXCLUSIVE = Decimal("10000")

_NUMBER_TOKEN = re.compile(r"[0-9]+\.?[0-9]*")


def _to_decimal(raw: str) -> Optional[Decimal]:
    try:
        value = Decimal(raw)
    except InvalidOperation:
        return None
    return value if value.is_finite() else None


def match_currency_patterns(
    text: str, patterns: Sequence[CurrencyPattern] = CURRENCY_PATTERNS
) -> Optional[Decimal]:
    """First pattern (in order) with a parsable match decides; no range check."""
    for cp in patterns:
        m = cp.pattern.search(text)
        if not m:
            continue
        value = _to_decimal(m.group(1))
        if value is None:
            _LOG.debug(f"{cp.currency} match {m.group(1)!r} did not parse; trying next pattern")
            continue
        _LOG.debug(f"Price {value} matched by {cp.currency} pattern")
        return value
    return None


def scan_numeric_tokens(text: str) -> Optional[Decimal]:
    """Leftmost loose numeric token with 0 < value < 10000."""
    for token in _NUMBER_TOKEN.findall(text):
        value = _to_decimal(token)
        if value is None:
            continue
        if PRICE_MIN_EXCLUSIVE < value < PRICE_MAX_EXCLUSIVE:
            _LOG.debug(f"Price {value} taken from numeric fallback")
            return value
    return None


def extract_price(text: str, patterns: Sequence[CurrencyPattern] = CURRENCY_PATTERNS) -> Optional[Decimal]:
    """Pull a single price out of noisy OCR (or typed) text.

    1. Currency patterns in priority order; the first pattern that matches
       anywhere decides, using its first match only. These matches are not
       range-checked.
    2. Otherwise every loose numeric token, kept if 0 < value < 10000; the
       leftmost survivor wins.

    Returns None when nothing qualifies.
    """
    if not text:
        return None
    price = match_currency_patterns(text, patterns)
    if price is None:
        price = scan_numeric_tokens(text)
    if price is None:
        _LOG.debug("No price candidate found in recognized text")
    return price


def parse_manual_price(text: str) -> Decimal:
    """Parse a typed price; raises InvalidManualInput unless it is a number > 0."""
    raw = (text or "").strip()
    value = _to_decimal(raw) if raw else None
    if value is None or value <= 0:
        raise InvalidManualInput()
    return value
