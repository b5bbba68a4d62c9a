"""Fixed-point amount helpers shared by the ledger and the mirror.

Amounts travel as integer wei everywhere; ``Decimal`` only appears at the
edges (CLI input, gateway payloads, display).
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, localcontext
from typing import Final

WEI_DECIMALS: Final[int] = 18
WEI_PER_UNIT: Final[int] = 10**WEI_DECIMALS
PREMIUM_RATE_PERCENT: Final[int] = 2
# Enough digits for any uint256 amount.
_PRECISION: Final[int] = 96


def to_wei(value: Decimal | str | int) -> int:
    """Convert a decimal unit amount into integer wei without rounding."""

    try:
        amount = Decimal(value) if not isinstance(value, Decimal) else value
    except InvalidOperation as exc:
        raise ValueError(f"Invalid amount: {value!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    with localcontext() as context:
        context.prec = _PRECISION
        scaled = amount.scaleb(WEI_DECIMALS)
    if scaled != scaled.to_integral_value():
        raise ValueError(f"Amount {value} has more than {WEI_DECIMALS} decimal places")
    return int(scaled)


def from_wei(value: int) -> Decimal:
    """Exact decimal representation of a wei amount, without trailing zeros."""

    with localcontext() as context:
        context.prec = _PRECISION
        amount = Decimal(value).scaleb(-WEI_DECIMALS).normalize()
        exponent = amount.as_tuple().exponent
        if isinstance(exponent, int) and exponent > 0:
            # normalize() turns 100 into 1E+2
            return amount.quantize(Decimal(1))
        return amount


def premium_for(coverage_amount: int) -> int:
    """Premium owed for ``coverage_amount`` wei (2%, integer arithmetic)."""

    if coverage_amount <= 0:
        raise ValueError("Coverage amount must be positive")
    return coverage_amount * PREMIUM_RATE_PERCENT // 100
