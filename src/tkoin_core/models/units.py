"""Token amount conversions between whole tokens and base units.

All ledger amounts are integers in base units (``1 token = 10**decimals``
base units). Human-readable amounts only exist at the edges: deployment
records, CLI arguments and log lines. Conversions are exact; fractional
digits beyond the mint's precision are truncated, never rounded up.
"""

from __future__ import annotations

from decimal import ROUND_DOWN, Decimal, InvalidOperation

DEFAULT_DECIMALS = 9


def tokens_to_base_units(tokens: str | int | Decimal, decimals: int = DEFAULT_DECIMALS) -> int:
    """Convert a human-readable token amount to base units.

    >>> tokens_to_base_units("1.5", 9)
    1500000000
    """
    if decimals < 0:
        msg = f"decimals must be non-negative, got {decimals}"
        raise ValueError(msg)
    if isinstance(tokens, float):
        msg = "Token amounts must not be floats; pass a str or Decimal"
        raise TypeError(msg)

    try:
        value = Decimal(str(tokens).strip())
    except InvalidOperation as exc:
        msg = f"Invalid token amount: {tokens!r}"
        raise ValueError(msg) from exc
    if not value.is_finite() or value < 0:
        msg = f"Invalid token amount: {tokens!r}"
        raise ValueError(msg)

    return int(value.scaleb(decimals).to_integral_value(rounding=ROUND_DOWN))


def base_units_to_tokens(base_units: int, decimals: int = DEFAULT_DECIMALS) -> Decimal:
    """Convert base units to an exact token amount (trailing zeros removed)."""
    if decimals < 0:
        msg = f"decimals must be non-negative, got {decimals}"
        raise ValueError(msg)
    value = Decimal(int(base_units)).scaleb(-decimals)
    if value == value.to_integral_value():
        return value.quantize(Decimal(1))
    return value.normalize()


def format_base_units(base_units: int, decimals: int = DEFAULT_DECIMALS) -> str:
    """Format base units for display with thousands separators.

    >>> format_base_units(1_500_000_000_000_000_000, 9)
    '1,500,000,000'
    """
    tokens = base_units_to_tokens(base_units, decimals)
    exponent = tokens.as_tuple().exponent
    places = max(0, -int(exponent))
    return f"{tokens:,.{places}f}"
