from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON, func
from database import Base

# Audit trail of storefront actions (cart mutations, orders, payments)
class Log(Base):
    __tablename__ = "logs"

    id = Column(Integer, primary_key=True, index=True)
    ts = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    action = Column(String(50), index=True)    # CART_ADD, ORDER_CREATE, ...
    resource = Column(String(50), index=True)  # cart | orders | payments | auth
    status = Column(String(20), index=True)    # SUCCESS | FAIL
    ip = Column(String(64), nullable=True)

    # Free-form context (product ids, quantities, totals)
    meta = Column(JSON, nullable=True)
