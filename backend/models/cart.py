# backend/models/cart.py
from sqlalchemy import Column, Integer, ForeignKey, String, DateTime, Float, UniqueConstraint, func
from sqlalchemy.orm import relationship
from database import Base

# Represents the user's shopping cart
class Cart(Base):
    __tablename__ = "carts" # Table name

    id = Column(Integer, primary_key=True, index=True) # Primary key
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False) # Foreign key to users
    status = Column(String, default="open", index=True)  # Cart status
    created_at = Column(DateTime, server_default=func.now()) # Creation timestamp

    # One-to-many relationship with cart items, kept in insertion order
    items = relationship(
        "CartItem", back_populates="cart",
        cascade="all, delete-orphan", order_by="CartItem.id",
    )


# Represents a single product line (product + size + quantity) within a cart
class CartItem(Base):
    __tablename__ = "cart_items" # Table name

    id = Column(Integer, primary_key=True, index=True)
    cart_id = Column(Integer, ForeignKey("carts.id"), index=True, nullable=False) # Foreign key to parent cart
    product_id = Column(Integer, ForeignKey("products.id"), index=True, nullable=False) # Foreign key to product
    size = Column(String, nullable=False, default="") # Selected size, "" when the product is unsized
    qty = Column(Integer, nullable=False, default=1) # Product quantity
    unit_price_snapshot = Column(Float, nullable=False) # Base price at the moment of addition

    cart = relationship("Cart", back_populates="items") # Relationship back to Cart
    product = relationship("Product") # Relationship to Product

    __table_args__ = (
        # One line per (product, size) in the same cart
        UniqueConstraint("cart_id", "product_id", "size", name="uq_cartitem_cart_product_size"),
    )
