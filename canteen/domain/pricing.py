from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from pydantic import BaseModel


class PriceBreakdown(BaseModel):
    subtotal: int
    tax: int
    total: int


def price_items(items: Iterable, tax_rate) -> PriceBreakdown:
    """Итог заказа: сумма позиций + налог, округление до целых рупий (half-up)"""
    subtotal = sum(item.total for item in items)
    tax = (Decimal(subtotal) * Decimal(str(tax_rate))).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return PriceBreakdown(subtotal=subtotal, tax=int(tax), total=subtotal + int(tax))
