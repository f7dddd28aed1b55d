from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation


CENT = Decimal('0.01')
ZERO = Decimal('0.00')
# Largest value a Numeric(10, 2) column holds.
MAX_MONEY = Decimal('99999999.99')


def to_money(value) -> Decimal:
    """Coerce a stored or user-supplied amount to a cent-quantized Decimal.

    ``None`` becomes zero. Raises ``ValueError`` for non-numeric, non-finite or
    out-of-range input.
    """
    if value is None:
        return ZERO
    if isinstance(value, bool):
        raise ValueError('Amount must be numeric')
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f'Amount must be numeric: {value!r}') from exc
    if not amount.is_finite():
        raise ValueError('Amount must be finite')
    try:
        quantized = amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        raise ValueError(f'Amount is out of range: {value!r}') from exc
    if abs(quantized) > MAX_MONEY:
        raise ValueError(f'Amount is out of range: {value!r}')
    return quantized


def round_half_up(value: Decimal | float | int, places: int = 1) -> float:
    exponent = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(exponent, rounding=ROUND_HALF_UP))
