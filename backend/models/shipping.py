from sqlalchemy import Column, Integer, String, Float, CheckConstraint
from database import Base

# Flat shipping fee configured per delivery pincode
class ShippingRate(Base):
    __tablename__ = "shipping_rates"

    id = Column(Integer, primary_key=True, index=True)
    pincode = Column(String(6), unique=True, nullable=False, index=True)
    amount = Column(Float, CheckConstraint("amount >= 0"), nullable=True)  # NULL = free delivery
