# backend/routes/products.py
from typing import Optional, List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from database import get_db
from models.product import Product
from services.pricing import quote
import schemas.product as product_schemas
from utils.catalog import check_size, line_for

router = APIRouter(tags=["Products"])


# =========================
# LISTA PRODUKTÓW
# =========================
@router.get("/products", response_model=product_schemas.ProductListPage)
def list_products(
    name: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    brand: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=200),
    sort_by: str = Query("id"),
    order: str = Query("asc", pattern="^(asc|desc)$"),
    db: Session = Depends(get_db),
):
    query = db.query(Product).filter(Product.is_active.is_(True))

    if name: query = query.filter(Product.name.ilike(f"%{name}%"))
    if category: query = query.filter(Product.category.ilike(f"%{category}%"))
    if brand: query = query.filter(Product.brand.ilike(f"%{brand}%"))

    allowed = {"id": Product.id, "name": Product.name, "price": Product.price}
    sort_col = allowed.get(sort_by.lower(), Product.id)
    query = query.order_by(sort_col.asc() if order == "asc" else sort_col.desc())

    total = query.count()
    items: List[Product] = query.offset((page - 1) * page_size).limit(page_size).all()
    return {"items": items, "total": total, "page": page, "page_size": page_size}


# =========================
# POJEDYNCZY PRODUKT
# =========================
@router.get("/products/{product_id}", response_model=product_schemas.ProductDetail)
def get_product(product_id: int, size: Optional[str] = Query(None), db: Session = Depends(get_db)):
    product = db.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")

    if size:
        price_quote = line_for(product, 1, check_size(product, size)).quote
    else:
        price_quote = quote(product.price, product.mrp, product.gst, product.gst_type)

    data = product_schemas.ProductOut.model_validate(product).model_dump()
    data.update(price_quote.model_dump())
    return data


# =========================
# STAN MAGAZYNOWY (bulk)
# =========================
@router.post("/products/stock/bulk", response_model=product_schemas.StockBulkResponse)
def bulk_stock(payload: product_schemas.StockBulkRequest, db: Session = Depends(get_db)):
    """Live stock limits and payment capabilities for the given product ids.

    Unknown ids are simply absent from ``stocks``.
    """
    if not payload.ids:
        return {"success": True, "stocks": []}
    products = db.query(Product).filter(Product.id.in_(payload.ids)).all()
    return {"success": True, "stocks": products}
