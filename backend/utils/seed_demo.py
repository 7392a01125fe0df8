# backend/utils/seed_demo.py
# Demo catalog, shipping rates and a customer account for local development.
from sqlalchemy import func
from sqlalchemy.orm import Session

from database import SessionLocal, init_db
from models.product import Product, ProductSize
from models.shipping import ShippingRate
from models.users import User
from utils.hashing import get_password_hash

DEMO_PRODUCTS = [
    dict(code="TEE-001", name="Cotton T-Shirt", category="apparel", brand="Basics",
         price=499, mrp=799, gst=5, gst_type="inclusive", stock_quantity=40,
         sizes=[("S", 499, 799), ("M", 499, 799), ("L", 549, 849)]),
    dict(code="MUG-002", name="Ceramic Mug", category="kitchen", brand="Homeware",
         price=250, mrp=250, gst=18, gst_type="exclusive", stock_quantity=3, low_stock_threshold=5),
    dict(code="SOFA-003", name="Three Seater Sofa", category="furniture", brand="Comfort",
         price=25000, mrp=32000, gst=18, gst_type="exclusive", stock_quantity=4, max_order_quantity=2,
         allow_cod=True, allow_advance=True, advance_payment_type="percentage", advance_payment_value=10),
    dict(code="GIFT-004", name="Digital Gift Card", category="gifts", brand="Store",
         price=1000, gst=0, stock_quantity=999, min_order_quantity=1,
         allow_cod=False, allow_card=False, allow_upi=True, allow_advance=False),
    dict(code="RICE-005", name="Basmati Rice 5kg", category="grocery", brand="Farm",
         price=650, mrp=700, gst=5, gst_type="exclusive", stock_quantity=120, min_order_quantity=2),
]

DEMO_SHIPPING = [("110001", 49.0), ("400001", 79.0), ("560001", None)]


def seed_products(db: Session) -> int:
    count = 0
    for data in DEMO_PRODUCTS:
        data = dict(data)
        if db.query(Product).filter(Product.code == data["code"]).first():
            continue
        sizes = data.pop("sizes", [])
        product = Product(**data)
        product.sizes = [
            ProductSize(size_value=value, price=price, mrp=mrp, position=i)
            for i, (value, price, mrp) in enumerate(sizes)
        ]
        db.add(product)
        count += 1
    db.commit()
    return count


def seed_shipping(db: Session) -> int:
    count = 0
    for pincode, amount in DEMO_SHIPPING:
        if db.query(ShippingRate).filter(ShippingRate.pincode == pincode).first():
            continue
        db.add(ShippingRate(pincode=pincode, amount=amount))
        count += 1
    db.commit()
    return count


def seed_customer(db: Session, email: str = "customer@storefront.io", password: str = "password123") -> User:
    user = db.query(User).filter(func.lower(User.email) == email.lower()).first()
    if user:
        return user
    user = User(email=email.lower(), password_hash=get_password_hash(password), role="customer",
                first_name="Demo", last_name="Customer")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def main():
    init_db()
    db = SessionLocal()
    try:
        print(f"Seeded {seed_products(db)} products and {seed_shipping(db)} shipping rates.")
        seed_customer(db)
    finally:
        db.close()


if __name__ == "__main__":
    main()
