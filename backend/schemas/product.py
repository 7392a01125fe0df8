# backend/schemas/product.py
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List


# Base configuration for ORM compatibility
class ORMBase(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class ProductSizeOut(ORMBase):
    size_value: str
    price: Optional[float] = None
    mrp: Optional[float] = None


# Catalog product as the storefront sees it (prices, tax, stock limits, payment methods)
class ProductOut(ORMBase):
    id: int
    name: str
    code: str
    description: Optional[str] = None
    category: Optional[str] = None
    brand: Optional[str] = None
    price: float
    mrp: Optional[float] = None
    gst: float = 0
    gst_type: str = "exclusive"
    stock_quantity: int = 0
    min_order_quantity: int = 1
    max_order_quantity: Optional[int] = None
    low_stock_threshold: Optional[int] = None
    is_active: bool = True
    allow_cod: bool = True
    allow_card: bool = True
    allow_upi: bool = True
    allow_advance: bool = False
    advance_payment_type: Optional[str] = None
    advance_payment_value: Optional[float] = None
    image_url: Optional[str] = None
    sizes: List[ProductSizeOut] = []


# Product detail with the computed price quote
class ProductDetail(ProductOut):
    price_before_tax: float
    tax_amount: float
    final_price: float
    discount_percent: int = 0


class StockBulkRequest(BaseModel):
    ids: List[int] = Field(default_factory=list)


# Live stock and payment capabilities for one product
class StockOut(ORMBase):
    id: int
    stock_quantity: int
    min_order_quantity: int = 1
    max_order_quantity: Optional[int] = None
    low_stock_threshold: Optional[int] = None
    is_active: bool = True
    allow_cod: bool = True
    allow_card: bool = True
    allow_upi: bool = True
    allow_advance: bool = False
    advance_payment_type: Optional[str] = None
    advance_payment_value: Optional[float] = None


class StockBulkResponse(BaseModel):
    success: bool = True
    stocks: List[StockOut]


# Paginated response for product listings
class ProductListPage(ORMBase):
    items: List[ProductOut]
    total: int
    page: int
    page_size: int
