import pytest

from config import settings
from conftest import ADDRESS
from models.order import Order
from models.product import Product
from services.checkout import Address, CheckoutOrchestrator, CheckoutState, CheckoutTotals
from services.errors import (
    CapabilityConflictError, CheckoutStateError, StockViolationError, TransientNetworkError, ValidationError,
)
from services.payment_eligibility import PaymentMethod
from services.pricing import quote
from utils.local_store import PAYMENT_SETTINGS_KEY, PENDING_CHECKOUT_KEY


@pytest.fixture
def checkout(cart, storefront, local_store):
    return CheckoutOrchestrator(cart, storefront, local_store)


async def fill(cart, products, *items):
    for code, qty, size in items:
        await cart.add({"id": products[code]}, qty, size)


def test_address_validation_lists_bad_fields():
    with pytest.raises(ValidationError) as exc:
        Address.parse({**ADDRESS, "fullName": "  ", "email": "not-an-email", "phone": "12345", "pincode": "1100"})
    assert set(exc.value.fields) == {"full_name", "email", "phone", "pincode"}
    assert Address.parse(ADDRESS).full_name == "Asha Rao"


def test_totals_cap_advance_at_grand_total():
    totals = CheckoutTotals.compute([(quote(100), 1)], 0, advance_amount=250)
    assert totals.advance_due_now == 100.0
    assert totals.balance_due == 0.0
    plain = CheckoutTotals.compute([(quote(100, None, 18), 2)], 49)
    assert (plain.subtotal, plain.tax_amount, plain.total, plain.grand_total) == (200.0, 36.0, 236.0, 285.0)
    assert plain.advance_due_now == 0


async def test_begin_requires_lines(checkout, logged_in):
    await checkout.cart.load()
    with pytest.raises(ValidationError):
        checkout.begin()


async def test_begin_uses_selection(checkout, cart, logged_in, products):
    await fill(cart, products, ("TEE-001", 1, "M"), ("MUG-002", 1, None))
    cart.select(cart.lines[1].id)
    lines = checkout.begin()
    assert [l.product_id for l in lines] == [str(products["MUG-002"])]


async def test_cod_checkout_removes_only_ordered_lines(checkout, cart, logged_in, products, api, auth_headers):
    await fill(cart, products, ("TEE-001", 2, "M"), ("RICE-005", 2, None))
    checkout.begin()

    shipping = await checkout.set_address(ADDRESS)
    assert shipping == 49.0
    assert checkout.state is CheckoutState.SELECT_PAYMENT
    assert checkout.method is PaymentMethod.COD

    totals = checkout.review()
    assert totals.total == 998.0 + 1365.0
    assert totals.grand_total == 2412.0

    # Added after the checkout snapshot; must survive the order
    await fill(cart, products, ("MUG-002", 1, None))

    result = await checkout.submit()
    assert checkout.state is CheckoutState.SUCCESS
    assert result.redirect_url is None
    assert [l.product_id for l in cart.lines] == [str(products["MUG-002"])]

    latest = api.get("/orders/latest", headers=auth_headers).json()
    assert latest["id"] == result.order_id
    assert latest["status"] == "placed"
    assert latest["grand_total"] == 2412.0


async def test_advance_redirect_persists_pending_record(checkout, cart, logged_in, products, local_store, db):
    await fill(cart, products, ("SOFA-003", 1, None))
    checkout.begin()
    await checkout.set_address({**ADDRESS, "pincode": "560001"})
    assert checkout.shipping_amount == 0.0

    checkout.select_payment("ADVANCE")
    totals = checkout.review()
    assert totals.grand_total == 29500.0
    assert totals.advance_due_now == 2950.0
    assert totals.balance_due == 26550.0

    result = await checkout.submit()
    assert "amount=2950.00" in result.redirect_url
    pending = local_store.get(PENDING_CHECKOUT_KEY)
    assert pending["orderId"] == result.order_id
    assert pending["method"] == PaymentMethod.ADVANCE.value
    # Lines stay in the cart until the customer returns from the payment page
    assert len(cart.lines) == 1

    order = db.get(Order, result.order_id)
    assert order.advance_required_amount == 2950.0
    assert order.status == "pending_payment"

    assert await checkout.complete_redirect() == 1
    assert cart.lines == ()
    assert checkout.pending is None


async def test_pending_record_written_before_payment_request(checkout, cart, logged_in, products, local_store, db, monkeypatch):
    await fill(cart, products, ("TEE-001", 1, "S"))
    checkout.begin()
    await checkout.set_address(ADDRESS)
    checkout.select_payment(PaymentMethod.CARD)
    checkout.review()

    async def payment_down(*args, **kwargs):
        assert local_store.get(PENDING_CHECKOUT_KEY) is not None
        raise TransientNetworkError("gateway down")

    monkeypatch.setattr(checkout.client, "initiate_payment", payment_down)
    with pytest.raises(TransientNetworkError):
        await checkout.submit()
    assert checkout.state is CheckoutState.FAILED

    order_id = local_store.get(PENDING_CHECKOUT_KEY)["orderId"]
    assert await checkout.cancel_redirect() is True
    assert checkout.pending is None
    db.expire_all()
    assert db.get(Order, order_id).status == "cancelled"

    checkout.retry()
    assert checkout.state is CheckoutState.REVIEW


async def test_out_of_stock_blocks_submission(checkout, cart, logged_in, products, db):
    await fill(cart, products, ("MUG-002", 1, None))
    checkout.begin()
    await checkout.set_address(ADDRESS)
    checkout.review()

    db.query(Product).filter(Product.code == "MUG-002").update({"stock_quantity": 0})
    db.commit()

    with pytest.raises(StockViolationError) as exc:
        await checkout.submit()
    assert exc.value.line_ids == [cart.lines[0].id]
    assert exc.value.violations[0].reason == "out_of_stock"
    assert checkout.state is CheckoutState.REVIEW


async def test_quantity_limits_are_itemized(checkout, cart, logged_in, products):
    await fill(cart, products, ("MUG-002", 5, None), ("SOFA-003", 3, None), ("RICE-005", 1, None))
    checkout.begin()
    await checkout.set_address(ADDRESS)
    checkout.review()

    with pytest.raises(StockViolationError) as exc:
        await checkout.submit()
    reasons = [v.reason for v in exc.value.violations]
    assert reasons == ["insufficient_stock", "above_maximum", "below_minimum"]
    assert "Minimum order quantity" in str(exc.value)


async def test_upi_only_item_forces_upi(checkout, cart, logged_in, products):
    await fill(cart, products, ("TEE-001", 1, "M"), ("GIFT-004", 1, None))
    checkout.begin()
    await checkout.set_address(ADDRESS)
    assert checkout.eligibility.methods() == [PaymentMethod.UPI]
    assert checkout.method is PaymentMethod.UPI

    with pytest.raises(CapabilityConflictError):
        checkout.select_payment("COD")
    assert checkout.method is PaymentMethod.UPI


async def test_capability_change_before_submit_reselects(checkout, cart, logged_in, products, db):
    await fill(cart, products, ("SOFA-003", 1, None))
    checkout.begin()
    await checkout.set_address(ADDRESS)
    assert checkout.method is PaymentMethod.COD
    checkout.review()

    db.query(Product).filter(Product.code == "SOFA-003").update({"allow_cod": False})
    db.commit()

    with pytest.raises(CapabilityConflictError) as exc:
        await checkout.submit()
    assert exc.value.requested is PaymentMethod.COD
    assert checkout.method is PaymentMethod.ADVANCE
    assert checkout.state is CheckoutState.REVIEW
    assert len(checkout.notices) == 1


async def test_store_switches_and_settings_cache(checkout, cart, logged_in, products, local_store, monkeypatch):
    monkeypatch.setattr(settings, "PAYMENT_COD_ENABLED", False)
    await fill(cart, products, ("TEE-001", 1, "M"))
    checkout.begin()
    await checkout.set_address(ADDRESS)
    assert checkout.method is PaymentMethod.CARD
    assert local_store.get(PAYMENT_SETTINGS_KEY)["cod"] is False

    async def settings_down():
        raise TransientNetworkError("down")

    monkeypatch.setattr(checkout.client, "get_payment_settings", settings_down)
    await checkout.back()
    await checkout.set_address(ADDRESS)
    assert not checkout.eligibility.allow_cod


async def test_unconfigured_pincode_ships_free(checkout, cart, logged_in, products):
    await fill(cart, products, ("MUG-002", 1, None))
    checkout.begin()
    assert await checkout.set_address({**ADDRESS, "pincode": "999999"}) == 0.0


async def test_invalid_address_keeps_state(checkout, cart, logged_in, products):
    await fill(cart, products, ("MUG-002", 1, None))
    checkout.begin()
    with pytest.raises(ValidationError):
        await checkout.set_address({**ADDRESS, "phone": "abc"})
    assert checkout.state is CheckoutState.COLLECT_ADDRESS


async def test_back_navigation(checkout, cart, logged_in, products):
    await fill(cart, products, ("MUG-002", 1, None))
    checkout.begin()
    with pytest.raises(CheckoutStateError):
        await checkout.back()
    await checkout.set_address(ADDRESS)
    checkout.review()
    assert await checkout.back() is CheckoutState.SELECT_PAYMENT
    assert await checkout.back() is CheckoutState.COLLECT_ADDRESS
    with pytest.raises(CheckoutStateError):
        await checkout.submit()


def flaky_initiation(client, monkeypatch, failures=1):
    real = client.initiate_payment
    calls = []

    async def initiate(*args, **kwargs):
        calls.append(args)
        if len(calls) <= failures:
            raise TransientNetworkError("gateway down")
        return await real(*args, **kwargs)

    monkeypatch.setattr(client, "initiate_payment", initiate)
    return calls


async def test_retry_after_failed_payment_start_reuses_order(checkout, cart, logged_in, products, local_store, db, monkeypatch):
    await fill(cart, products, ("TEE-001", 1, "M"))
    checkout.begin()
    await checkout.set_address(ADDRESS)
    checkout.select_payment(PaymentMethod.CARD)
    checkout.review()
    calls = flaky_initiation(checkout.client, monkeypatch)

    with pytest.raises(TransientNetworkError):
        await checkout.submit()
    first_id = local_store.get(PENDING_CHECKOUT_KEY)["orderId"]

    checkout.retry()
    result = await checkout.submit()

    assert result.order_id == first_id
    assert len(calls) == 2
    assert db.query(Order).count() == 1
    assert local_store.get(PENDING_CHECKOUT_KEY)["orderId"] == first_id
    assert f"orderId={first_id}" in result.redirect_url


async def test_retry_with_other_method_cancels_previous_order(checkout, cart, logged_in, products, local_store, db, monkeypatch):
    await fill(cart, products, ("TEE-001", 1, "M"))
    checkout.begin()
    await checkout.set_address(ADDRESS)
    checkout.select_payment(PaymentMethod.CARD)
    checkout.review()
    flaky_initiation(checkout.client, monkeypatch)

    with pytest.raises(TransientNetworkError):
        await checkout.submit()
    first_id = local_store.get(PENDING_CHECKOUT_KEY)["orderId"]

    checkout.retry()
    await checkout.back()
    checkout.select_payment(PaymentMethod.UPI)
    checkout.review()
    result = await checkout.submit()

    assert result.order_id != first_id
    assert local_store.get(PENDING_CHECKOUT_KEY)["orderId"] == result.order_id
    db.expire_all()
    assert db.get(Order, first_id).status == "cancelled"
    assert db.get(Order, result.order_id).status == "pending_payment"
