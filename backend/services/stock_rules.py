# backend/services/stock_rules.py
from typing import Iterable, List, Mapping, Optional

from services.cart_line import CartLine, StockSnapshot
from services.errors import StockViolation


def check_quantity(
    line_id: str,
    product_id: str,
    name: str,
    quantity: int,
    stock: Optional[StockSnapshot],
) -> Optional[StockViolation]:
    """First rule the requested quantity breaks against a fresh snapshot, or None."""
    if stock is None or not stock.is_active:
        return StockViolation(line_id, product_id, name, "unavailable", quantity)
    if stock.stock_quantity <= 0:
        return StockViolation(line_id, product_id, name, "out_of_stock", quantity, 0)
    if quantity < stock.min_order_quantity:
        return StockViolation(line_id, product_id, name, "below_minimum", quantity, stock.min_order_quantity)
    if stock.max_order_quantity and quantity > stock.max_order_quantity:
        return StockViolation(line_id, product_id, name, "above_maximum", quantity, stock.max_order_quantity)
    if quantity > stock.stock_quantity:
        return StockViolation(line_id, product_id, name, "insufficient_stock", quantity, stock.stock_quantity)
    return None


def validate_stock(lines: Iterable[CartLine], snapshots: Mapping[str, StockSnapshot]) -> List[StockViolation]:
    violations = []
    for line in lines:
        violation = check_quantity(line.id, line.product_id, line.name, line.quantity, snapshots.get(line.product_id))
        if violation is not None:
            violations.append(violation)
    return violations
