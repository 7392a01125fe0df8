from pydantic import BaseModel


class ShippingAmountOut(BaseModel):
    pincode: str
    amount: float
