# backend/routes/shipping.py
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from database import get_db
from schemas.shipping import ShippingAmountOut
from utils.catalog import shipping_rate

router = APIRouter(prefix="/shipping", tags=["Shipping"])


@router.get("/amount", response_model=ShippingAmountOut)
def get_shipping_amount(pincode: str = Query(..., pattern=r"^\d{6}$"), db: Session = Depends(get_db)):
    rate = shipping_rate(db, pincode)
    if rate is None:
        raise HTTPException(status_code=404, detail="Shipping is not configured for this pincode")
    # NULL amount means free delivery
    return {"pincode": rate.pincode, "amount": rate.amount or 0.0}
