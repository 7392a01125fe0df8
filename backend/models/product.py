from sqlalchemy import Column, Integer, String, Float, Boolean, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from database import Base

# Model Product
# A sellable catalog product: base price, MRP, GST rate and mode,
# stock limits used at checkout, and the payment methods it may be paid with.
class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    code = Column(String, unique=True, nullable=False, index=True)

    description = Column(String)
    category = Column(String)
    brand = Column(String)

    # Prices and tax - guarded by constraints.
    price = Column(Float, CheckConstraint("price >= 0"), nullable=False)
    mrp = Column(Float, nullable=True)
    gst = Column(Float, CheckConstraint("gst >= 0 AND gst <= 100"), nullable=False, default=0)
    gst_type = Column(String, nullable=False, default="exclusive")  # inclusive | exclusive

    # Stock data (read-only snapshot for the storefront).
    stock_quantity = Column(Integer, CheckConstraint("stock_quantity >= 0"), nullable=False, default=0)
    min_order_quantity = Column(Integer, nullable=False, default=1)
    max_order_quantity = Column(Integer, nullable=True)
    low_stock_threshold = Column(Integer, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    # Payment capabilities
    allow_cod = Column(Boolean, nullable=False, default=True)
    allow_card = Column(Boolean, nullable=False, default=True)
    allow_upi = Column(Boolean, nullable=False, default=True)
    allow_advance = Column(Boolean, nullable=False, default=False)
    advance_payment_type = Column(String, nullable=True)  # percentage | amount
    advance_payment_value = Column(Float, nullable=True)

    image_url = Column(String, nullable=True)

    sizes = relationship(
        "ProductSize", back_populates="product",
        cascade="all, delete-orphan", order_by="ProductSize.position",
    )


# Per-size price override for a product
class ProductSize(Base):
    __tablename__ = "product_sizes"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), index=True, nullable=False)
    size_value = Column(String, nullable=False)
    price = Column(Float, nullable=True)
    mrp = Column(Float, nullable=True)
    position = Column(Integer, nullable=False, default=0)

    product = relationship("Product", back_populates="sizes")
