# backend/routes/cart.py
from fastapi import APIRouter, Depends, HTTPException, status, Request
from sqlalchemy.orm import Session
from database import get_db
from utils.tokenJWT import get_current_user
from utils.audit import write_log, client_ip
from utils.catalog import check_size, line_for, product_payload
from models.users import User
from models.product import Product
from models.cart import Cart, CartItem
from schemas.cart import CartAddItem, CartUpdateItem, CartOut, CartItemOut

router = APIRouter(prefix="/cart", tags=["Cart"])

def _get_open_cart(db: Session, user_id: int) -> Cart:
    # Retrieve active cart or create a new one
    cart = db.query(Cart).filter(Cart.user_id == user_id, Cart.status == "open").first()
    if not cart:
        cart = Cart(user_id=user_id, status="open")
        db.add(cart)
        db.commit()
        db.refresh(cart)
    return cart

def _cart_to_out(cart: Cart) -> CartOut:
    items_out = []
    total = 0.0

    for it in cart.items:
        if it.product is None:
            continue
        size = it.size or None
        # Prices follow the current catalog; the snapshot is the base price when added
        line = line_for(it.product, it.qty, size, line_id=it.id)
        total += line.line_total

        items_out.append(CartItemOut(
            id=it.id,
            product_id=it.product_id,
            size=size,
            qty=it.qty,
            unit_base_price=it.unit_price_snapshot,
            unit_price=line.quote.final_price,
            line_total=line.line_total,
            product=product_payload(it.product),
        ))

    return CartOut(items=items_out, total=round(total, 2))

def _get_item(db: Session, cart: Cart, item_id: int) -> CartItem:
    item = db.query(CartItem).filter(CartItem.id == item_id, CartItem.cart_id == cart.id).first()
    if not item:
        raise HTTPException(status_code=404, detail="Cart item not found")
    return item

@router.get("", response_model=CartOut)
def get_cart(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    cart = _get_open_cart(db, current_user.id)
    return _cart_to_out(cart)

@router.post("/add", response_model=CartOut, status_code=status.HTTP_200_OK)
def add_to_cart(
    payload: CartAddItem,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    cart = _get_open_cart(db, current_user.id)

    product = db.query(Product).filter(Product.id == payload.product_id).first()
    if not product or not product.is_active:
        raise HTTPException(status_code=404, detail="Product not found")
    size = check_size(product, payload.size)

    # Repeated adds of the same (product, size) accumulate on one line
    item = db.query(CartItem).filter(
        CartItem.cart_id == cart.id,
        CartItem.product_id == product.id,
        CartItem.size == (size or ""),
    ).first()

    if item:
        item.qty += payload.qty
    else:
        line = line_for(product, payload.qty, size)
        item = CartItem(
            cart_id=cart.id,
            product_id=product.id,
            size=size or "",
            qty=payload.qty,
            unit_price_snapshot=line.unit_base_price,
        )
        db.add(item)

    db.commit()
    db.refresh(cart)

    out = _cart_to_out(cart)
    write_log(
        db,
        user_id=current_user.id,
        action="CART_ADD",
        resource="cart",
        status="SUCCESS",
        ip=client_ip(request),
        meta={"product_id": product.id, "size": size, "qty": payload.qty, "cart_items": len(out.items), "total": out.total},
    )
    return out

@router.put("/items/{item_id}")
def update_cart_item(
    item_id: int,
    payload: CartUpdateItem,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    cart = _get_open_cart(db, current_user.id)
    item = _get_item(db, cart, item_id)

    # Stock limits are enforced at checkout against fresh stock, not here
    item.qty = payload.qty
    db.commit()

    write_log(
        db,
        user_id=current_user.id,
        action="CART_UPDATE",
        resource="cart",
        status="SUCCESS",
        ip=client_ip(request),
        meta={"item_id": item_id, "qty": payload.qty},
    )
    return {"success": True}

@router.delete("/items/{item_id}")
def delete_cart_item(
    item_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    cart = _get_open_cart(db, current_user.id)
    item = _get_item(db, cart, item_id)

    db.delete(item)
    db.commit()

    write_log(
        db,
        user_id=current_user.id,
        action="CART_DELETE",
        resource="cart",
        status="SUCCESS",
        ip=client_ip(request),
        meta={"item_id": item_id},
    )
    return {"success": True}
