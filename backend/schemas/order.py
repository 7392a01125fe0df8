from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import List, Optional
from datetime import datetime


# One requested line of a new order
class OrderItemIn(BaseModel):
    product_id: int
    size: Optional[str] = None
    qty: int = Field(gt=0)


# Delivery address (same rules the checkout flow enforces)
class AddressIn(BaseModel):
    full_name: str = Field(min_length=1)
    email: EmailStr
    phone: str = Field(pattern=r"^\d{10}$")
    street: str = Field(min_length=1)
    city: str = Field(min_length=1)
    state: str = Field(min_length=1)
    pincode: str = Field(pattern=r"^\d{6}$")
    country: str = Field(min_length=1)


# Input schema for creating a new order
class OrderCreate(BaseModel):
    items: List[OrderItemIn] = Field(min_length=1)
    payment_mode: str
    address: AddressIn


class OrderCreated(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    order_id: int = Field(alias="orderId")
    status: str
    payment_mode: str = Field(alias="paymentMode")
    grand_total: float = Field(alias="grandTotal")
    advance_required_amount: Optional[float] = Field(None, alias="advanceRequired")
    balance_due_amount: Optional[float] = Field(None, alias="balanceDue")


# Output schema for an individual order line item
class OrderItemOut(BaseModel):
    product_id: int
    product_name: str
    size: Optional[str] = None
    qty: int
    unit_price: float
    line_total: float


# Output schema representing the full order details
class OrderResponse(BaseModel):
    id: int
    status: str
    payment_mode: str
    payment_status: str
    subtotal: float
    tax_amount: float
    total_amount: float
    shipping_amount: float
    grand_total: float
    advance_required_amount: Optional[float] = None
    balance_due_amount: Optional[float] = None
    created_at: Optional[datetime] = None
    items: List[OrderItemOut]

    class Config:
        from_attributes = True


# Schema for paginated order lists
class OrdersPage(BaseModel):
    items: List[OrderResponse]
    total: int
    page: int
    page_size: int
