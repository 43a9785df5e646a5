from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

DEFAULT_CASHBACK_PERCENT = Decimal("5")
CENTS = Decimal("0.01")


def effective_percent(configured: Union[str, int, float, Decimal, None],
                      fallback: Decimal = DEFAULT_CASHBACK_PERCENT) -> Decimal:
    """
    Parse the configured cashback percent.
    Anything that is not a finite number yields the fallback.
    """
    if configured is None or isinstance(configured, bool):
        return fallback
    try:
        percent = Decimal(str(configured).strip())
    except (InvalidOperation, ValueError):
        return fallback
    if not percent.is_finite():
        return fallback
    return percent


def calculate_cashback(total_paid: Decimal, percent: Decimal) -> Decimal:
    """total_paid * percent / 100, rounded half-up to cents."""
    return (total_paid * percent / Decimal(100)).quantize(CENTS, rounding=ROUND_HALF_UP)
