from sqlalchemy import Column, Integer, String, Float, ForeignKey, DateTime, func
from sqlalchemy.orm import relationship
from database import Base

class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    status = Column(String, default="pending")  # pending | pending_payment | placed | cancelled
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Payment details
    payment_mode = Column(String, nullable=False)  # COD | CARD | UPI | ADVANCE_UPI_BALANCE_COD
    payment_status = Column(String, default="pending")  # pending | paid | partial_paid | cancelled
    payment_url = Column(String, nullable=True)

    # Totals (GST already applied per line)
    subtotal = Column(Float, nullable=False, default=0)
    tax_amount = Column(Float, nullable=False, default=0)
    total_amount = Column(Float, nullable=False)
    shipping_amount = Column(Float, nullable=False, default=0)
    grand_total = Column(Float, nullable=False)
    advance_required_amount = Column(Float, nullable=True)
    balance_due_amount = Column(Float, nullable=True)

    # Shipping address details
    full_name = Column(String, nullable=False)
    email = Column(String, nullable=False)
    phone = Column(String, nullable=False)
    address_street = Column(String, nullable=False)
    city = Column(String, nullable=False)
    state = Column(String, nullable=False)
    pincode = Column(String, nullable=False)
    country = Column(String, nullable=False)

    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")

class OrderItem(Base):
    __tablename__ = "order_items"
    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    size = Column(String, nullable=True)
    qty = Column(Integer, nullable=False)
    unit_price = Column(Float, nullable=False)  # final (tax applied) unit price
    gst = Column(Float, nullable=False, default=0)

    order = relationship("Order", back_populates="items")
    product = relationship("Product")
