from pydantic import BaseModel, Field
from typing import List, Optional

from schemas.product import ProductOut

# Request schema for adding an item to the cart
class CartAddItem(BaseModel):
    product_id: int
    qty: int = Field(default=1, gt=0)
    size: Optional[str] = None

# Request schema for updating cart item quantity
class CartUpdateItem(BaseModel):
    qty: int = Field(gt=0)

# Response schema for a single cart line item
class CartItemOut(BaseModel):
    id: int
    product_id: int
    size: Optional[str] = None
    qty: int
    unit_base_price: float
    unit_price: float  # final price, tax applied
    line_total: float
    product: ProductOut

# Response schema for the entire cart summary
class CartOut(BaseModel):
    items: List[CartItemOut]
    total: float
