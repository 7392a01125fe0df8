# backend/services/cart_line.py
"""
Canonical cart line and the adapter that builds it.

Product payloads arrive in several shapes: flat guest-cart records, nested
``{"product": {...}}`` lines from the cart service, and bulk stock records.
Field names come in camelCase and snake_case, sizes as lists, comma separated
strings or size-catalog records.  ``normalize`` is the only place that knows
about those shapes; everything downstream works with ``CartLine``.
"""
import uuid
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from config import settings
from services.errors import InvalidLineError
from services.pricing import PriceQuote, TaxMode, quote, to_amount

_MISSING = object()


class AdvanceType(str, Enum):
    PERCENT = "percentage"
    AMOUNT = "amount"

    @classmethod
    def parse(cls, value: Any) -> Optional["AdvanceType"]:
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        if text in ("percentage", "percent", "pct", "%"):
            return cls.PERCENT
        if text in ("amount", "fixed", "flat"):
            return cls.AMOUNT
        return None


class PaymentCapabilities(BaseModel):
    model_config = ConfigDict(frozen=True)

    allow_cod: bool = True
    allow_card: bool = True
    allow_upi: bool = True
    allow_advance: bool = True
    advance_type: Optional[AdvanceType] = None
    advance_value: Optional[float] = None

    @property
    def upi_only(self) -> bool:
        return self.allow_upi and not (self.allow_cod or self.allow_card or self.allow_advance)

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "PaymentCapabilities":
        value = _first(data, "advance_payment_value", "advanceValue", "advance_value")
        return cls(
            allow_cod=_flag(_first(data, "allow_cod", "allowCOD", "allowCod")),
            allow_card=_flag(_first(data, "allow_card", "allowCard")),
            allow_upi=_flag(_first(data, "allow_upi", "allowUPI", "allowUpi")),
            allow_advance=_flag(_first(data, "allow_advance", "allowAdvance")),
            advance_type=AdvanceType.parse(_first(data, "advance_payment_type", "advanceType", "advance_type")),
            advance_value=None if value is None else to_amount(value),
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "allow_cod": self.allow_cod,
            "allow_card": self.allow_card,
            "allow_upi": self.allow_upi,
            "allow_advance": self.allow_advance,
            "advance_payment_type": self.advance_type.value if self.advance_type else None,
            "advance_payment_value": self.advance_value,
        }


class StockSnapshot(BaseModel):
    """Live stock/capability record for one product, as served by the bulk stock endpoint."""
    model_config = ConfigDict(frozen=True)

    product_id: str
    stock_quantity: int = 0
    min_order_quantity: int = 1
    max_order_quantity: Optional[int] = None
    is_active: bool = True
    low_stock_threshold: Optional[int] = None
    capabilities: PaymentCapabilities = PaymentCapabilities()

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "StockSnapshot":
        product_id = _first(data, "id", "productId", "product_id")
        if product_id is None:
            raise InvalidLineError("Stock record without product id")
        return cls(
            product_id=str(product_id),
            stock_quantity=_int(_first(data, "stockQuantity", "stock_quantity"), 0),
            min_order_quantity=max(1, _int(_first(data, "minOrderQuantity", "min_order_quantity"), 1)),
            max_order_quantity=_optional_int(_first(data, "maxOrderQuantity", "max_order_quantity")),
            is_active=_flag(_first(data, "isActive", "is_active")),
            low_stock_threshold=_optional_int(_first(data, "lowStockThreshold", "low_stock_threshold")),
            capabilities=PaymentCapabilities.from_payload(data),
        )


class LineIdentity(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: str
    size: Optional[str] = None
    line_id: Optional[str] = None

    @property
    def key(self) -> Tuple[str, Optional[str]]:
        return (self.product_id, self.size)

    @classmethod
    def coerce(cls, value: Any) -> Optional["LineIdentity"]:
        if isinstance(value, cls):
            return value
        if isinstance(value, CartLine):
            return value.identity
        if not isinstance(value, Mapping):
            return None
        line_id = value.get("id")
        product_id = _first(value, "productId", "product_id")
        if product_id is None:
            product_id = line_id
        if product_id is None:
            return None
        size = _first(value, "selectedSize", "size")
        return cls(
            product_id=str(product_id),
            size=str(size) if size else None,
            line_id=str(line_id) if line_id is not None else None,
        )

    def to_payload(self) -> Dict[str, Any]:
        return {"id": self.line_id, "productId": self.product_id, "selectedSize": self.size}


class CartLine(BaseModel):
    id: str
    product_id: str
    name: str
    quantity: int
    unit_base_price: float
    mrp: float
    tax_rate: float
    tax_mode: TaxMode
    selected_size: Optional[str] = None
    available_sizes: Tuple[str, ...] = ()
    stock_quantity: int = 0
    min_order_quantity: int = 1
    max_order_quantity: Optional[int] = None
    is_active: bool = True
    low_stock_threshold: Optional[int] = None
    image: Optional[str] = None
    payment_capabilities: PaymentCapabilities = PaymentCapabilities()
    quote: PriceQuote

    @property
    def identity(self) -> LineIdentity:
        return LineIdentity(product_id=self.product_id, size=self.selected_size, line_id=self.id)

    @property
    def line_total(self) -> float:
        return round(self.quote.final_price * self.quantity, 2)

    def is_low_stock(self, default_threshold: Optional[int] = None) -> bool:
        threshold = self.low_stock_threshold
        if threshold is None:
            threshold = default_threshold if default_threshold is not None else settings.DEFAULT_LOW_STOCK_THRESHOLD
        return 0 < self.stock_quantity <= threshold

    def with_stock(self, stock: "StockSnapshot") -> "CartLine":
        return self.model_copy(update={
            "stock_quantity": stock.stock_quantity,
            "min_order_quantity": stock.min_order_quantity,
            "max_order_quantity": stock.max_order_quantity,
            "is_active": stock.is_active,
            "low_stock_threshold": stock.low_stock_threshold,
            "payment_capabilities": stock.capabilities,
        })

    def to_payload(self) -> Dict[str, Any]:
        payload = {
            "id": self.id,
            "productId": self.product_id,
            "name": self.name,
            "quantity": self.quantity,
            "price": self.unit_base_price,
            "mrp": self.mrp,
            "gst": self.tax_rate,
            "gst_type": self.tax_mode.value,
            "selectedSize": self.selected_size,
            "availableSizes": list(self.available_sizes),
            "stockQuantity": self.stock_quantity,
            "minOrderQuantity": self.min_order_quantity,
            "maxOrderQuantity": self.max_order_quantity,
            "isActive": self.is_active,
            "lowStockThreshold": self.low_stock_threshold,
            "image": self.image,
        }
        payload.update(self.payment_capabilities.to_payload())
        return payload


# ---- helpers ----

def _first(data: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        value = data.get(key, _MISSING)
        if value is not _MISSING and value is not None:
            return value
    return default


def _flag(value: Any, default: bool = True) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "y", "on")
    return bool(value)


def _int(value: Any, default: int) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def _optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        number = int(float(value))
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def _size_entries(raw: Any) -> List[Any]:
    if isinstance(raw, (list, tuple)):
        return list(raw)
    return []


def _size_name(entry: Any) -> Optional[str]:
    if isinstance(entry, Mapping):
        entry = _first(entry, "size_value", "size", "value", "name")
    if entry is None:
        return None
    text = str(entry).strip()
    return text or None


def parse_sizes(*candidates: Any) -> Tuple[str, ...]:
    """First non-empty candidate wins: list, comma separated string or size catalog."""
    for raw in candidates:
        if raw is None:
            continue
        if isinstance(raw, str):
            names: Iterable[Optional[str]] = (part.strip() for part in raw.split(","))
        elif isinstance(raw, (list, tuple)):
            names = (_size_name(entry) for entry in raw)
        else:
            continue
        ordered: List[str] = []
        for name in names:
            if name and name not in ordered:
                ordered.append(name)
        if ordered:
            return tuple(ordered)
    return ()


def _size_override(catalog: List[Any], size: Optional[str]) -> Mapping[str, Any]:
    if not size:
        return {}
    for entry in catalog:
        if isinstance(entry, Mapping) and _size_name(entry) == size:
            return entry
    return {}


def normalize(raw_line: Mapping[str, Any], stock: Optional[StockSnapshot] = None) -> CartLine:
    if not isinstance(raw_line, Mapping):
        raise InvalidLineError("Cart line payload must be a mapping")

    nested = raw_line.get("product")
    product: Mapping[str, Any] = nested if isinstance(nested, Mapping) else raw_line
    explicit_id = _first(raw_line, "productId", "product_id")
    is_line = product is not raw_line or explicit_id is not None

    product_id = explicit_id
    if product_id is None and product is not raw_line:
        product_id = _first(product, "id", "productId", "product_id")
    if product_id is None:
        product_id = raw_line.get("id")
    if product_id is None or str(product_id).strip() == "":
        raise InvalidLineError("Cart line has no product identifier")
    product_id = str(product_id)

    line_id = _first(raw_line, "cartItemId", "id") if is_line else None
    if line_id is None:
        line_id = f"guest-{uuid.uuid4().hex[:12]}"

    # A flat product payload uses "size" for its size list, a cart line for the chosen size
    if product is not raw_line:
        size = _first(raw_line, "selectedSize", "size") or product.get("selectedSize")
    else:
        size = raw_line.get("selectedSize")
    size = str(size).strip() if size else None
    size = size or None

    catalog = _size_entries(_first(product, "productSizes", "sizes"))
    sized = _size_override(catalog, size)
    size_price = _first(raw_line, "selectedSizePrice", "currentPrice") or _first(
        product, "selectedSizePrice", "currentPrice", default={})
    if not isinstance(size_price, Mapping):
        size_price = {}

    base_price = _first(size_price, "price")
    if base_price is None:
        base_price = _first(sized, "price")
    if base_price is None:
        base_price = _first(raw_line, "unitBasePrice", "unit_base_price", "price")
    if base_price is None:
        base_price = _first(product, "price", "sell_price")

    mrp = _first(size_price, "mrp")
    if mrp is None:
        mrp = _first(sized, "mrp")
    if mrp is None:
        mrp = _first(raw_line, "mrp")
    if mrp is None:
        mrp = _first(product, "mrp")

    tax_rate = to_amount(_first(product, "gst", "gstRate", "tax_rate", "taxRate", default=0))
    mode = _first(product, "gst_type", "taxMode", "tax_mode")
    if mode is None and product.get("isGstInclusive") is not None:
        mode = TaxMode.INCLUSIVE if _flag(product.get("isGstInclusive")) else TaxMode.EXCLUSIVE
    tax_mode = TaxMode.parse(mode)

    price_quote = quote(base_price, mrp, tax_rate, tax_mode)
    sizes = parse_sizes(product.get("availableSizes"), product.get("size"), catalog)

    if stock is None:
        stock = StockSnapshot.from_payload({**product, "id": product_id})

    return CartLine(
        id=str(line_id),
        product_id=product_id,
        name=str(_first(product, "name", default="Unknown Product")),
        quantity=max(1, _int(_first(raw_line, "quantity", "qty"), 1)),
        unit_base_price=to_amount(base_price),
        mrp=price_quote.mrp,
        tax_rate=tax_rate,
        tax_mode=tax_mode,
        selected_size=size,
        available_sizes=sizes,
        stock_quantity=stock.stock_quantity,
        min_order_quantity=stock.min_order_quantity,
        max_order_quantity=stock.max_order_quantity,
        is_active=stock.is_active,
        low_stock_threshold=stock.low_stock_threshold,
        image=_first(product, "image", "imageUrl", "image_url"),
        payment_capabilities=stock.capabilities,
        quote=price_quote,
    )
