# backend/schemas/payment.py
from pydantic import BaseModel, ConfigDict, Field


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# Store-wide payment method switches
class PaymentSettingsOut(CamelModel):
    cod: bool = True
    credit_card: bool = Field(True, alias="creditCard")
    upi: bool = True


class PaymentInitiate(CamelModel):
    order_id: int = Field(alias="orderId")
    amount: float = Field(ge=0)
    payment_mode: str = Field(alias="paymentMode")


class PaymentInitiateOut(CamelModel):
    order_id: int = Field(alias="orderId")
    redirect_url: str = Field(alias="redirectUrl")


class PendingOrderRequest(CamelModel):
    order_id: int = Field(alias="orderId")


class PaymentStatusOut(CamelModel):
    success: bool = True
    order_id: int = Field(alias="orderId")
    status: str
    payment_status: str = Field(alias="paymentStatus")
