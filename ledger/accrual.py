"""
Accrual of profit on a single product.

Profit accrues per whole day elapsed since the product started. Nothing here
stops accrual at the product's declared period or profit caps; those stay on
the model for a future payout policy to enforce.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal

from .exceptions import ValidationError
from .models import Product

ONE_DAY = timedelta(days=1)
HUNDRED = Decimal("100")


@dataclass(frozen=True)
class Accrual:
    elapsed_days: int
    accrued_profit: Decimal
    accrued_percentage: Decimal


def elapsed_days(start: datetime, now: datetime) -> int:
    return abs(now - start) // ONE_DAY


def compute_accrual(product: Product, now: datetime) -> Accrual:
    """
    Profit accrued by ``product`` as of ``now``.

    Raises:
        ValidationError: the product's total profit cap is zero, so the
            accrued percentage is undefined.
    """
    if product.total_profit == 0:
        raise ValidationError(
            f"Product {product.id} has a zero total profit cap",
            {"product_id": str(product.id), "name": product.name}
        )

    days = elapsed_days(product.start, now)
    profit = product.rate * product.price * days
    percentage = profit / product.total_profit * HUNDRED
    return Accrual(elapsed_days=days, accrued_profit=profit, accrued_percentage=percentage)


def apply_accrual(product: Product, now: datetime) -> Accrual:
    """Compute the accrual and overwrite the product's derived fields with it."""
    accrual = compute_accrual(product, now)
    product.elapsed_days = accrual.elapsed_days
    product.accrued_profit = accrual.accrued_profit
    product.accrued_percentage = accrual.accrued_percentage
    return accrual
