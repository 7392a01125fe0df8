# backend/utils/catalog.py
# Bridges ORM rows to the pricing/cart core so the service prices lines
# exactly the way the storefront does.
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from models.product import Product
from models.shipping import ShippingRate
from schemas.product import ProductOut, StockOut
from services.cart_line import CartLine, StockSnapshot, normalize


def product_payload(product: Product) -> dict:
    return ProductOut.model_validate(product).model_dump()


def stock_snapshot(product: Product) -> StockSnapshot:
    return StockSnapshot.from_payload(StockOut.model_validate(product).model_dump())


def check_size(product: Product, size: Optional[str]) -> Optional[str]:
    size = (size or "").strip() or None
    names = [s.size_value for s in product.sizes]
    if size is None:
        if names:
            raise HTTPException(status_code=400, detail=f'Please choose a size for "{product.name}"')
        return None
    if size not in names:
        raise HTTPException(status_code=400, detail=f'Size "{size}" is not available for "{product.name}"')
    return size


def line_for(product: Product, qty: int, size: Optional[str] = None, line_id=None) -> CartLine:
    raw = {"productId": product.id, "quantity": qty, "selectedSize": size, "product": product_payload(product)}
    if line_id is not None:
        raw["id"] = line_id
    return normalize(raw)


def shipping_rate(db: Session, pincode: str) -> Optional[ShippingRate]:
    return db.query(ShippingRate).filter(ShippingRate.pincode == pincode.strip()).first()
