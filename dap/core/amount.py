"""
Amount Codec - Exact conversion between decimal text and base units.

The ledger stores currency as an integer number of base units
(18 fractional digits: 1 ETH = 10**18 wei). Floats never appear here;
parsing splits the text into integer and fractional digit strings and
scales them with integer arithmetic, so every accepted value round-trips:

    to_display_string(to_base_units(s)) == canonicalize(s)
"""

import re

from dap.core.errors import EncodingError, ParseError


# =============================================================================
# Constants
# =============================================================================

DECIMALS = 18
BASE = 10 ** DECIMALS

# Largest amount a uint256 ledger slot holds
MAX_UINT256 = 2 ** 256 - 1

# "1", "1.5", ".5", "1." (at least one digit overall, checked separately)
_DECIMAL_RE = re.compile(r"^([0-9]*)(?:\.([0-9]*))?$")


# =============================================================================
# Conversion
# =============================================================================


def to_base_units(text: str, decimals: int = DECIMALS) -> int:
    """
    Parse decimal currency text into base units.

    Args:
        text: Human-entered amount, e.g. "1.5"
        decimals: Fractional digits of the base unit

    Returns:
        Non-negative integer amount in base units

    Raises:
        ParseError: Non-numeric or non-ASCII text, a negative value, a value
            above MAX_UINT256, or more fractional digits than the base
            unit can represent
    """
    if not isinstance(text, str):
        raise ParseError(f"Amount must be text, got {type(text).__name__}")

    stripped = text.strip()
    if stripped.startswith("-"):
        raise ParseError(f"Amount must not be negative: {text!r}")
    if stripped.startswith("+"):
        stripped = stripped[1:]

    match = _DECIMAL_RE.match(stripped)
    if not match:
        raise ParseError(f"Amount is not a decimal number: {text!r}")

    whole, fraction = match.group(1), match.group(2) or ""
    if not whole and not fraction:
        raise ParseError(f"Amount is not a decimal number: {text!r}")

    if len(fraction) > decimals:
        # Trailing zeros carry no value
        significant = fraction.rstrip("0")
        if len(significant) > decimals:
            raise ParseError(
                f"Amount {text!r} has more than {decimals} fractional digits"
            )
        fraction = significant

    # Bound the digit count before int() so oversized input stays a ParseError
    whole = whole.lstrip("0")
    if len(whole) + decimals > len(str(MAX_UINT256)):
        raise ParseError(f"Amount {text!r} is too large")

    amount = int(whole or "0") * 10 ** decimals + int(fraction.ljust(decimals, "0") or "0")
    if amount > MAX_UINT256:
        raise ParseError(f"Amount {text!r} is too large")
    return amount


def to_display_string(amount: int, decimals: int = DECIMALS) -> str:
    """
    Render base units as decimal text.

    Trailing fractional zeros are dropped but one fractional digit is
    always kept: 1500000000000000000 -> "1.5", 2 * 10**18 -> "2.0".

    Raises:
        EncodingError: If amount is not a non-negative integer
    """
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise EncodingError(f"Amount must be an integer, got {type(amount).__name__}")
    if amount < 0:
        raise EncodingError(f"Amount must not be negative: {amount}")

    whole, fraction = divmod(amount, 10 ** decimals)
    fraction_text = str(fraction).rjust(decimals, "0").rstrip("0") or "0"
    return f"{whole}.{fraction_text}"


def canonicalize(text: str, decimals: int = DECIMALS) -> str:
    """Canonical display form of decimal text ("01.50" -> "1.5")."""
    return to_display_string(to_base_units(text, decimals), decimals)


__all__ = [
    "DECIMALS",
    "BASE",
    "MAX_UINT256",
    "to_base_units",
    "to_display_string",
    "canonicalize",
]
