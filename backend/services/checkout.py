# backend/services/checkout.py
"""
Checkout flow for a snapshot of cart lines.

    COLLECT_ADDRESS -> SELECT_PAYMENT -> REVIEW -> SUBMITTING -> SUCCESS | FAILED

``back()`` steps from SELECT_PAYMENT or REVIEW to the previous state and
``retry()`` moves FAILED back to REVIEW. Stock and payment capabilities are
fetched fresh on entering SELECT_PAYMENT and again right before submission.

Redirect payments (card, UPI, advance) store a pending record
``{orderId, method, lines}`` in the local store before the redirect URL is
requested, so the return-to-site flow can finish the job in a new session:
``complete_redirect()`` removes exactly the recorded lines from the cart and
``cancel_redirect()`` asks the order service to cancel the pending order.
A retry after a failed payment start reuses the pending order; if the
method or address changed in between, that order is cancelled first.
"""
import logging
import re
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from services.cart_line import CartLine
from services.cart_store import CartStore
from services.errors import (
    CapabilityConflictError,
    CheckoutStateError,
    StorefrontError,
    StockViolationError,
    TransientNetworkError,
    ValidationError,
)
from services.payment_eligibility import PaymentEligibility, PaymentMethod, PaymentSettings, resolve
from services.pricing import PriceQuote
from services.stock_poller import fetch_snapshots
from services.stock_rules import validate_stock
from utils.local_store import LocalStore, PAYMENT_SETTINGS_KEY, PENDING_CHECKOUT_KEY
from utils.storefront_client import ShippingNotConfigured, StorefrontClient

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^\d{10}$")
PINCODE_RE = re.compile(r"^\d{6}$")


class CheckoutState(str, Enum):
    COLLECT_ADDRESS = "collect_address"
    SELECT_PAYMENT = "select_payment"
    REVIEW = "review"
    SUBMITTING = "submitting"
    SUCCESS = "success"
    FAILED = "failed"


class Address(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    full_name: str = Field("", alias="fullName")
    email: str = ""
    phone: str = ""
    street: str = ""
    city: str = ""
    state: str = ""
    pincode: str = ""
    country: str = ""

    def invalid_fields(self) -> List[str]:
        bad = [name for name, value in self.model_dump().items() if not value]
        if self.email and not EMAIL_RE.match(self.email):
            bad.append("email")
        if self.phone and not PHONE_RE.match(self.phone):
            bad.append("phone")
        if self.pincode and not PINCODE_RE.match(self.pincode):
            bad.append("pincode")
        return bad

    @classmethod
    def parse(cls, data: Any) -> "Address":
        if isinstance(data, Address):
            address = data
        elif isinstance(data, Mapping):
            address = cls.model_validate({k: "" if v is None else str(v) for k, v in data.items()})
        else:
            raise ValidationError("Address is required", fields=list(cls.model_fields))
        bad = address.invalid_fields()
        if bad:
            raise ValidationError(f"Invalid or missing address fields: {', '.join(bad)}", fields=bad)
        return address


class CheckoutTotals(BaseModel):
    model_config = ConfigDict(frozen=True)

    subtotal: float
    tax_amount: float
    total: float
    shipping_amount: float
    grand_total: float
    advance_due_now: float = 0.0
    balance_due: float = 0.0

    @classmethod
    def compute(
        cls,
        items: Iterable[Tuple[PriceQuote, int]],
        shipping_amount: float = 0.0,
        advance_amount: Optional[float] = None,
    ) -> "CheckoutTotals":
        """``advance_amount`` is given only when the advance split applies."""
        items = list(items)
        subtotal = round(sum(q.price_before_tax * qty for q, qty in items), 2)
        tax = round(sum(q.tax_amount * qty for q, qty in items), 2)
        total = round(sum(q.final_price * qty for q, qty in items), 2)
        shipping = round(shipping_amount or 0.0, 2)
        grand = round(total + shipping, 2)
        advance = balance = 0.0
        if advance_amount is not None:
            advance = round(min(advance_amount, grand), 2)
            balance = round(max(0.0, grand - advance), 2)
        return cls(
            subtotal=subtotal,
            tax_amount=tax,
            total=total,
            shipping_amount=shipping,
            grand_total=grand,
            advance_due_now=advance,
            balance_due=balance,
        )


class CheckoutResult(BaseModel):
    order_id: Any
    method: PaymentMethod
    totals: CheckoutTotals
    redirect_url: Optional[str] = None


class CheckoutOrchestrator:
    def __init__(self, cart: CartStore, client: StorefrontClient, store: LocalStore):
        self.cart = cart
        self.client = client
        self.store = store
        self._reset()

    def _reset(self) -> None:
        self.state = CheckoutState.COLLECT_ADDRESS
        self.lines: List[CartLine] = []
        self.address: Optional[Address] = None
        self.shipping_amount = 0.0
        self.settings = PaymentSettings()
        self.eligibility = PaymentEligibility()
        self.method: Optional[PaymentMethod] = None
        self.notices: List[CapabilityConflictError] = []
        self.result: Optional[CheckoutResult] = None
        self.error: Optional[StorefrontError] = None
        # (order id, method, address) of a redirect order still awaiting payment
        self._placed: Optional[Tuple[Any, PaymentMethod, Optional[Address]]] = None

    def _require(self, *states: CheckoutState) -> None:
        if self.state not in states:
            expected = " or ".join(s.value for s in states)
            raise CheckoutStateError(f"Checkout is in {self.state.value}, expected {expected}")

    # ---- steps ----

    def begin(self, line_ids: Optional[Iterable[str]] = None) -> List[CartLine]:
        if line_ids is None:
            selected = [line.id for line in self.cart.selected_lines()]
            line_ids = selected or None
        lines = self.cart.snapshot(line_ids)
        if not lines:
            raise ValidationError("No items selected for checkout")
        self._reset()
        self.lines = lines
        logger.info("Checkout started with %s lines", len(lines))
        return lines

    async def set_address(self, data: Any) -> float:
        """Validate the address and look up shipping; returns the shipping amount."""
        self._require(CheckoutState.COLLECT_ADDRESS)
        address = Address.parse(data)
        try:
            shipping = await self.client.get_shipping_amount(address.pincode)
        except ShippingNotConfigured:
            shipping = 0.0
        self.address = address
        self.shipping_amount = shipping
        await self._enter_select_payment()
        return shipping

    async def _enter_select_payment(self) -> None:
        await self._refresh_eligibility()
        self._reconcile_method()
        self.state = CheckoutState.SELECT_PAYMENT

    def select_payment(self, method: Any) -> PaymentMethod:
        self._require(CheckoutState.SELECT_PAYMENT)
        parsed = PaymentMethod.parse(method)
        if parsed is None or not self.eligibility.allows(parsed):
            raise CapabilityConflictError(
                f"Payment method {method} is not available for these items",
                requested=parsed or method,
                selected=self.method,
            )
        self.method = parsed
        return parsed

    def review(self) -> CheckoutTotals:
        self._require(CheckoutState.SELECT_PAYMENT)
        if self.method is None:
            raise ValidationError("Please select a payment method", fields=["method"])
        self.state = CheckoutState.REVIEW
        return self.totals()

    async def back(self) -> CheckoutState:
        if self.state is CheckoutState.SELECT_PAYMENT:
            self.state = CheckoutState.COLLECT_ADDRESS
        elif self.state is CheckoutState.REVIEW:
            await self._enter_select_payment()
        else:
            raise CheckoutStateError(f"Cannot go back from {self.state.value}")
        return self.state

    def retry(self) -> None:
        self._require(CheckoutState.FAILED)
        self.error = None
        self.state = CheckoutState.REVIEW

    def totals(self) -> CheckoutTotals:
        advance = self.eligibility.advance_amount if self.method is PaymentMethod.ADVANCE else None
        return CheckoutTotals.compute(
            ((line.quote, line.quantity) for line in self.lines),
            self.shipping_amount,
            advance,
        )

    async def submit(self) -> CheckoutResult:
        self._require(CheckoutState.REVIEW)

        snapshots = await fetch_snapshots(self.client, [line.product_id for line in self.lines])
        violations = validate_stock(self.lines, snapshots)
        if violations:
            logger.info("Checkout blocked by stock: %s", [v.reason for v in violations])
            raise StockViolationError(violations)

        self.lines = [line.with_stock(snapshots[line.product_id]) for line in self.lines]
        self.eligibility = resolve(self.lines).restrict(self.settings)
        notice = self._reconcile_method()
        if notice is not None:
            raise notice

        self.state = CheckoutState.SUBMITTING
        totals = self.totals()
        method = self.method
        try:
            order_id = await self._place_order(method)
            redirect_url = None
            if method.requires_redirect:
                self._save_pending(order_id, method)
                amount = totals.advance_due_now if method is PaymentMethod.ADVANCE else totals.grand_total
                payment = await self.client.initiate_payment(order_id, amount, method.value)
                redirect_url = payment.get("redirectUrl") or payment.get("redirect_url")
                if not redirect_url:
                    raise TransientNetworkError("Payment service returned no redirect URL")
        except StorefrontError as e:
            logger.error(f"Order submission failed: {e}")
            self.state = CheckoutState.FAILED
            self.error = e
            raise

        self.result = CheckoutResult(order_id=order_id, method=method, totals=totals, redirect_url=redirect_url)
        self.state = CheckoutState.SUCCESS
        logger.info("Order %s placed with %s", order_id, method.value)
        if not method.requires_redirect:
            await self.cart.remove_specific([line.identity for line in self.lines])
        return self.result

    # ---- return-to-site ----

    @property
    def pending(self) -> Optional[Dict[str, Any]]:
        record = self.store.get(PENDING_CHECKOUT_KEY)
        return record if isinstance(record, dict) else None

    async def complete_redirect(self) -> int:
        record = self.pending
        if record is None:
            return 0
        removed = await self.cart.remove_specific(record.get("lines") or [])
        self.store.delete(PENDING_CHECKOUT_KEY)
        self._placed = None
        logger.info("Payment for order %s completed, removed %s cart lines", record.get("orderId"), removed)
        return removed

    async def cancel_redirect(self) -> bool:
        record = self.pending
        if record is None:
            return False
        order_id = record.get("orderId")
        try:
            await self.client.cancel_pending_order(order_id)
        except StorefrontError as e:
            logger.error(f"Could not cancel pending order {order_id}: {e}")
        finally:
            self.store.delete(PENDING_CHECKOUT_KEY)
            self._placed = None
        return True

    # ---- internals ----

    async def _refresh_eligibility(self) -> None:
        snapshots = await fetch_snapshots(self.client, [line.product_id for line in self.lines])
        self.lines = [
            line.with_stock(snapshots[line.product_id]) if line.product_id in snapshots else line
            for line in self.lines
        ]
        self.settings = await self._load_settings()
        self.eligibility = resolve(self.lines).restrict(self.settings)

    async def _load_settings(self) -> PaymentSettings:
        try:
            data = await self.client.get_payment_settings()
        except (TransientNetworkError, ValidationError) as e:
            logger.warning("Payment settings unavailable, using cached copy: %s", e)
            return PaymentSettings.from_payload(self.store.get(PAYMENT_SETTINGS_KEY))
        settings = PaymentSettings.from_payload(data)
        self.store.set(PAYMENT_SETTINGS_KEY, settings.to_payload())
        return settings

    def _reconcile_method(self) -> Optional[CapabilityConflictError]:
        methods = self.eligibility.methods()
        if self.method is not None and self.method in methods:
            return None
        previous = self.method
        self.method = methods[0] if methods else None
        if previous is None:
            return None
        chosen = self.method.name if self.method else "none"
        notice = CapabilityConflictError(
            f"{previous.name} is no longer available for these items; switched to {chosen}",
            requested=previous,
            selected=self.method,
        )
        logger.info(notice.message)
        self.notices.append(notice)
        return notice

    async def _place_order(self, method: PaymentMethod) -> Any:
        """Create the order, or reuse the one left pending by a failed payment start."""
        if self._placed is not None:
            order_id, placed_method, placed_address = self._placed
            if placed_method is method and placed_address == self.address:
                logger.info("Resuming payment for pending order %s", order_id)
                return order_id
            # Payment method or address changed since; the old order must not linger
            await self.client.cancel_pending_order(order_id)
            self._placed = None
            self.store.delete(PENDING_CHECKOUT_KEY)
            logger.info("Cancelled superseded pending order %s", order_id)

        order = await self.client.create_order(self._order_payload(method))
        order_id = order.get("orderId") or order.get("order_id") or order.get("id")
        if order_id is None:
            raise TransientNetworkError("Order service returned no order id")
        if method.requires_redirect:
            self._placed = (order_id, method, self.address)
        return order_id

    def _save_pending(self, order_id: Any, method: PaymentMethod) -> None:
        self.store.set(PENDING_CHECKOUT_KEY, {
            "orderId": order_id,
            "method": method.value,
            "lines": [line.identity.to_payload() for line in self.lines],
        })

    def _order_payload(self, method: PaymentMethod) -> Dict[str, Any]:
        return {
            "items": [
                {"product_id": line.product_id, "size": line.selected_size, "qty": line.quantity}
                for line in self.lines
            ],
            "payment_mode": method.value,
            "address": self.address.model_dump() if self.address else None,
        }
