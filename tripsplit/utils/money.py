# tripsplit/utils/money.py
# Денежные хелперы: всё считаем в Decimal, округляем ROUND_HALF_UP.

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from tripsplit.config import EXCHANGE_RATE
from tripsplit.services.errors import ValidationError

ZERO = Decimal("0")
CENT = Decimal("0.01")

# Денежные колонки - Numeric(10, 2): до 99 999 999.99
MAX_DIGITS = 10
DECIMAL_PLACES = 2


def D(x) -> Decimal:
    if isinstance(x, Decimal):
        return x
    if x is None:
        return ZERO
    return Decimal(str(x))


def _q(decimals: int) -> Decimal:
    return Decimal("1") if decimals <= 0 else Decimal("1").scaleb(-decimals)


def _quantize(x, exp: Decimal) -> Decimal:
    # quantize падает, если результату не хватает точности контекста (28 знаков)
    try:
        return D(x).quantize(exp, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValidationError("Amount is out of range")


def money(x, decimals: int = 2) -> Decimal:
    """Квантование до копеек (по умолчанию 2 знака)."""
    return _quantize(x, _q(decimals))


def round_half_up(x) -> Decimal:
    """
    Округление до целых «половина - вверх по модулю»:
    floor(|x| + 0.5) со знаком исходного числа. 2.5 -> 3, -2.5 -> -3
    (в отличие от банковского округления по умолчанию).
    """
    return _quantize(x, Decimal("1"))


def almost_equal(a, b, tolerance: Decimal = CENT) -> bool:
    return (D(a) - D(b)).copy_abs() <= tolerance


def to_alt_currency(amount) -> Decimal:
    """Витринная конвертация в ALT_CURRENCY по фиксированному курсу (целые)."""
    return round_half_up(D(amount) * EXCHANGE_RATE)
