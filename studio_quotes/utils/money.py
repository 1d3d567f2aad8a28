"""Decimal helpers for currency amounts and coefficients."""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CENT = Decimal('0.01')
ZERO = Decimal('0')
ONE = Decimal('1')
HUNDRED = Decimal('100')


def to_decimal(value, default=ZERO) -> Decimal:
    """
    Coerce ints, floats, strings and None to Decimal.

    Floats go through ``str`` so 0.1 stays 0.1.

    Raises:
        ValueError: if the value is not numeric.
    """
    if value is None or value == '':
        return default
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValueError(f'Valor numérico inválido: {value!r}')


def round_currency(value) -> Decimal:
    """Round to cents, half-up."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def normalize_ratio(value) -> Decimal:
    """
    Coefficient as a fraction: 0.30 stays 0.30, 30 becomes 0.30.

    Some stored configurations hold whole percentages.
    """
    ratio = to_decimal(value)
    if ratio > ONE:
        return ratio / HUNDRED
    return ratio


def percentage_of(amount, percentage) -> Decimal:
    """``percentage`` is a whole percentage (10 == 10 %)."""
    return to_decimal(amount) * to_decimal(percentage) / HUNDRED
