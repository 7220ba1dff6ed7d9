"""
Loyalty points calculation. Pure functions, no I/O.
"""

from typing import Iterable

from errors import ValidationError
from schemas import Category, OrderItem

# 1 point per 1000 minor currency units, floored per line item
POINTS_UNIT = 1000

CATEGORY_MULTIPLIERS = {
    Category.COFFEE: 2,
}


def item_points(item: OrderItem) -> int:
    if item.total < 0:
        raise ValidationError(f"Line item for product {item.product_id} has a negative total")
    base = item.total // POINTS_UNIT
    return base * CATEGORY_MULTIPLIERS.get(Category(item.category), 1)


def calculate_points(items: Iterable[OrderItem]) -> int:
    """Points an order earns on completion.

    Rounding is per line, so two 999-unit items earn nothing even though the
    order total is above 1000.
    """
    return sum(item_points(item) for item in items)
