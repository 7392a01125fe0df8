# backend/routes/orders.py
from typing import Dict, List
from fastapi import APIRouter, Depends, HTTPException, Request, Query
from sqlalchemy.orm import Session, joinedload
import logging

from database import get_db
from utils.tokenJWT import get_current_user
from utils.audit import write_log, client_ip
from utils.catalog import check_size, line_for, shipping_rate, stock_snapshot
from models.users import User
from models.product import Product
from models.order import Order, OrderItem
from routes.payments import current_payment_settings
from schemas.order import OrderCreate, OrderCreated, OrderResponse, OrderItemOut, OrdersPage
from services.checkout import CheckoutTotals
from services.payment_eligibility import PaymentMethod, resolve
from services.stock_rules import check_quantity

router = APIRouter(prefix="/orders", tags=["Orders"])
logger = logging.getLogger(__name__)

# Map Order model to OrderResponse schema
def _order_to_out(order: Order) -> OrderResponse:
    items: List[OrderItemOut] = []
    for it in order.items:
        product_name = it.product.name if it.product else "Deleted product"
        items.append(OrderItemOut(
            product_id=it.product_id,
            product_name=product_name,
            size=it.size,
            qty=it.qty,
            unit_price=it.unit_price,
            line_total=round(it.qty * it.unit_price, 2)
        ))
    return OrderResponse(
        id=order.id,
        status=order.status,
        payment_mode=order.payment_mode,
        payment_status=order.payment_status,
        subtotal=order.subtotal,
        tax_amount=order.tax_amount,
        total_amount=round(order.total_amount, 2),
        shipping_amount=order.shipping_amount,
        grand_total=order.grand_total,
        advance_required_amount=order.advance_required_amount,
        balance_due_amount=order.balance_due_amount,
        created_at=order.created_at,
        items=items
    )

def _orders_query(db: Session, user_id: int):
    return db.query(Order).options(
        joinedload(Order.items).joinedload(OrderItem.product)
    ).filter(Order.user_id == user_id)


@router.post("/create", response_model=OrderCreated)
def create_order(
    payload: OrderCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    method = PaymentMethod.parse(payload.payment_mode)
    if method is None:
        raise HTTPException(status_code=400, detail=f"Unknown payment mode: {payload.payment_mode}")

    ids = {item.product_id for item in payload.items}
    products: Dict[int, Product] = {p.id: p for p in db.query(Product).filter(Product.id.in_(ids)).all()}

    # Re-validate every line against current stock
    lines, problems = [], []
    for index, item in enumerate(payload.items):
        product = products.get(item.product_id)
        snapshot = stock_snapshot(product) if product else None
        name = product.name if product else f"Product {item.product_id}"
        violation = check_quantity(str(index), str(item.product_id), name, item.qty, snapshot)
        if violation is not None:
            problems.append(violation.describe())
            continue
        lines.append(line_for(product, item.qty, check_size(product, item.size), line_id=index))

    if problems:
        write_log(db, user_id=current_user.id, action="ORDER_CREATE", resource="orders", status="FAIL",
                  ip=client_ip(request), meta={"reason": "stock", "problems": problems})
        raise HTTPException(status_code=409, detail="; ".join(problems))

    eligibility = resolve(lines).restrict(current_payment_settings())
    if not eligibility.allows(method):
        write_log(db, user_id=current_user.id, action="ORDER_CREATE", resource="orders", status="FAIL",
                  ip=client_ip(request), meta={"reason": "payment_mode", "payment_mode": method.value})
        raise HTTPException(status_code=409, detail=f"Payment method {method.value} is not available for these items")

    address = payload.address
    rate = shipping_rate(db, address.pincode)
    shipping = (rate.amount or 0.0) if rate else 0.0
    advance = eligibility.advance_amount if method is PaymentMethod.ADVANCE else None
    totals = CheckoutTotals.compute(((l.quote, l.quantity) for l in lines), shipping, advance)

    order = Order(
        user_id=current_user.id,
        status="pending_payment" if method.requires_redirect else "placed",
        payment_mode=method.value,
        payment_status="pending",
        subtotal=totals.subtotal,
        tax_amount=totals.tax_amount,
        total_amount=totals.total,
        shipping_amount=totals.shipping_amount,
        grand_total=totals.grand_total,
        advance_required_amount=totals.advance_due_now if advance is not None else None,
        balance_due_amount=totals.balance_due if advance is not None else None,
        full_name=address.full_name,
        email=address.email,
        phone=address.phone,
        address_street=address.street,
        city=address.city,
        state=address.state,
        pincode=address.pincode,
        country=address.country,
    )
    db.add(order)
    db.add_all([OrderItem(
        order=order,
        product_id=int(line.product_id),
        size=line.selected_size,
        qty=line.quantity,
        unit_price=line.quote.final_price,
        gst=line.tax_rate,
    ) for line in lines])
    db.commit()
    db.refresh(order)

    logger.info("Order %s created (%s, grand total %s)", order.id, order.payment_mode, order.grand_total)
    write_log(db, user_id=current_user.id, action="ORDER_CREATE", resource="orders", status="SUCCESS",
              ip=client_ip(request),
              meta={"order_id": order.id, "payment_mode": order.payment_mode, "grand_total": order.grand_total})

    return OrderCreated(
        order_id=order.id,
        status=order.status,
        payment_mode=order.payment_mode,
        grand_total=order.grand_total,
        advance_required_amount=order.advance_required_amount,
        balance_due_amount=order.balance_due_amount,
    )


# Most recent order of the current user
@router.get("/latest", response_model=OrderResponse)
def latest_order(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    order = _orders_query(db, current_user.id).order_by(Order.id.desc()).first()
    if not order:
        raise HTTPException(status_code=404, detail="No orders yet")
    return _order_to_out(order)


# List user orders
@router.get("", response_model=OrdersPage)
def list_my_orders(
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    q = _orders_query(db, current_user.id).order_by(Order.id.desc())
    total = q.count()
    rows = q.offset((page - 1) * page_size).limit(page_size).all()
    items = [_order_to_out(o) for o in rows]
    return {"items": items, "total": total, "page": page, "page_size": page_size}


# Get details of a specific order
@router.get("/{order_id}", response_model=OrderResponse)
def get_order_detail(
    order_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    o = _orders_query(db, current_user.id).filter(Order.id == order_id).first()
    if not o:
        raise HTTPException(status_code=404, detail="Order not found or forbidden")
    return _order_to_out(o)
