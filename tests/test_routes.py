import pytest

from models.log import Log

ADDRESS = {
    "full_name": "Asha Rao",
    "email": "asha@storefront.io",
    "phone": "9876543210",
    "street": "12 MG Road",
    "city": "New Delhi",
    "state": "Delhi",
    "pincode": "110001",
    "country": "India",
}


def create_order(api, headers, items, mode="COD", **address):
    payload = {"items": items, "payment_mode": mode, "address": {**ADDRESS, **address}}
    return api.post("/orders/create", json=payload, headers=headers)


# ---- auth ----

def test_register_login_and_me(api):
    new = {"email": "Nia@Storefront.io", "password": "secret1", "first_name": "Nia", "last_name": "Sen"}
    res = api.post("/register", json=new)
    assert res.status_code == 200, res.text
    assert res.json()["email"] == "nia@storefront.io"
    assert res.json()["role"] == "customer"

    assert api.post("/register", json=new).status_code == 400
    assert api.post("/login", json={"email": new["email"], "password": "wrong"}).status_code == 401

    login = api.post("/login", json={"email": "nia@storefront.io", "password": "secret1"})
    assert login.status_code == 200
    token = login.json()["access_token"]
    me = api.get("/me", headers={"Authorization": f"Bearer {token}"})
    assert me.json()["first_name"] == "Nia"


def test_protected_routes_need_token(api):
    assert api.get("/cart").status_code == 401
    assert api.get("/me", headers={"Authorization": "Bearer nonsense"}).status_code == 401


# ---- cart ----

def test_repeated_adds_merge_on_product_and_size(api, auth_headers, products):
    tee = products["TEE-001"]
    api.post("/cart/add", json={"product_id": tee, "qty": 1, "size": "M"}, headers=auth_headers)
    api.post("/cart/add", json={"product_id": tee, "qty": 2, "size": "M"}, headers=auth_headers)
    res = api.post("/cart/add", json={"product_id": tee, "qty": 1, "size": "L"}, headers=auth_headers)
    body = res.json()
    assert [(i["size"], i["qty"]) for i in body["items"]] == [("M", 3), ("L", 1)]
    assert body["total"] == 499 * 3 + 549


def test_sized_product_requires_valid_size(api, auth_headers, products):
    res = api.post("/cart/add", json={"product_id": products["TEE-001"], "qty": 1}, headers=auth_headers)
    assert res.status_code == 400
    res = api.post("/cart/add", json={"product_id": products["TEE-001"], "qty": 1, "size": "XXL"}, headers=auth_headers)
    assert res.status_code == 400
    res = api.post("/cart/add", json={"product_id": 99999, "qty": 1}, headers=auth_headers)
    assert res.status_code == 404


def test_update_and_delete_cart_item(api, auth_headers, products):
    res = api.post("/cart/add", json={"product_id": products["MUG-002"], "qty": 1}, headers=auth_headers)
    item_id = res.json()["items"][0]["id"]

    assert api.put(f"/cart/items/{item_id}", json={"qty": 5}, headers=auth_headers).json() == {"success": True}
    assert api.get("/cart", headers=auth_headers).json()["items"][0]["qty"] == 5
    assert api.put(f"/cart/items/{item_id}", json={"qty": 0}, headers=auth_headers).status_code == 422

    assert api.delete(f"/cart/items/{item_id}", headers=auth_headers).json() == {"success": True}
    assert api.delete(f"/cart/items/{item_id}", headers=auth_headers).status_code == 404
    assert api.get("/cart", headers=auth_headers).json() == {"items": [], "total": 0.0}


# ---- catalog and shipping ----

def test_stock_bulk_skips_unknown_ids(api, products):
    res = api.post("/products/stock/bulk", json={"ids": [products["MUG-002"], 99999]})
    body = res.json()
    assert body["success"] is True
    assert len(body["stocks"]) == 1
    stock = body["stocks"][0]
    assert stock["stock_quantity"] == 3
    assert stock["low_stock_threshold"] == 5


def test_product_detail_quotes_selected_size(api, products):
    detail = api.get(f"/products/{products['TEE-001']}", params={"size": "L"}).json()
    assert detail["final_price"] == 549.0
    assert detail["discount_percent"] == 35
    assert [s["size_value"] for s in detail["sizes"]] == ["S", "M", "L"]
    assert api.get("/products/99999").status_code == 404


def test_product_list_is_public(api):
    body = api.get("/products").json()
    assert body["total"] == 5


@pytest.mark.parametrize("pincode,status,amount", [
    ("110001", 200, 49.0),
    ("560001", 200, 0.0),
    ("999999", 404, None),
    ("12", 422, None),
])
def test_shipping_amount(api, db, pincode, status, amount):
    res = api.get("/shipping/amount", params={"pincode": pincode})
    assert res.status_code == status
    if amount is not None:
        assert res.json()["amount"] == amount


def test_payment_settings_follow_config(api, monkeypatch):
    from config import settings

    assert api.get("/payment-settings").json() == {"cod": True, "creditCard": True, "upi": True}
    monkeypatch.setattr(settings, "PAYMENT_UPI_ENABLED", False)
    assert api.get("/payment-settings").json()["upi"] is False


# ---- orders ----

def test_cod_order_is_placed(api, auth_headers, products, db):
    res = create_order(api, auth_headers, [{"product_id": products["TEE-001"], "size": "M", "qty": 1}])
    assert res.status_code == 200, res.text
    body = res.json()
    assert body["status"] == "placed"
    assert body["grandTotal"] == 548.0
    assert body["paymentMode"] == "COD"

    latest = api.get("/orders/latest", headers=auth_headers).json()
    assert latest["id"] == body["orderId"]
    assert latest["items"][0]["size"] == "M"
    assert api.get(f"/orders/{body['orderId']}", headers=auth_headers).status_code == 200
    assert api.get("/orders", headers=auth_headers).json()["total"] == 1

    log = db.query(Log).filter(Log.action == "ORDER_CREATE", Log.status == "SUCCESS").first()
    assert log is not None
    assert log.meta["order_id"] == body["orderId"]


def test_latest_order_without_orders(api, auth_headers):
    assert api.get("/orders/latest", headers=auth_headers).status_code == 404


def test_order_rejects_stock_violations(api, auth_headers, products):
    res = create_order(api, auth_headers, [
        {"product_id": products["MUG-002"], "qty": 4},
        {"product_id": products["RICE-005"], "qty": 1},
    ])
    assert res.status_code == 409
    assert "Only 3 units" in res.json()["detail"]
    assert "Minimum order quantity" in res.json()["detail"]


def test_order_rejects_ineligible_payment_mode(api, auth_headers, products):
    gift = [{"product_id": products["GIFT-004"], "qty": 1}]
    assert create_order(api, auth_headers, gift, mode="COD").status_code == 409
    assert create_order(api, auth_headers, gift, mode="CHEQUE").status_code == 400
    assert create_order(api, auth_headers, gift, mode="UPI").json()["status"] == "pending_payment"


def test_order_validates_address(api, auth_headers, products):
    items = [{"product_id": products["MUG-002"], "qty": 1}]
    assert create_order(api, auth_headers, items, phone="123").status_code == 422
    assert create_order(api, auth_headers, items, pincode="11001").status_code == 422
    assert create_order(api, auth_headers, [], pincode="110001").status_code == 422


# ---- payments ----

def test_advance_payment_flow(api, auth_headers, products):
    order = create_order(api, auth_headers, [{"product_id": products["SOFA-003"], "qty": 1}],
                         mode="ADVANCE_UPI_BALANCE_COD", pincode="560001").json()
    assert order["status"] == "pending_payment"
    assert order["advanceRequired"] == 2950.0
    assert order["balanceDue"] == 26550.0

    initiate = {"orderId": order["orderId"], "paymentMode": "ADVANCE_UPI_BALANCE_COD"}
    assert api.post("/payments/initiate", json={**initiate, "amount": 29500}, headers=auth_headers).status_code == 400
    assert api.post("/payments/initiate", json={**initiate, "paymentMode": "UPI", "amount": 2950},
                    headers=auth_headers).status_code == 400

    res = api.post("/payments/initiate", json={**initiate, "amount": 2950}, headers=auth_headers)
    assert res.status_code == 200, res.text
    assert "amount=2950.00" in res.json()["redirectUrl"]

    confirm = api.post("/payments/confirm", json={"orderId": order["orderId"]}, headers=auth_headers).json()
    assert confirm["status"] == "placed"
    assert confirm["paymentStatus"] == "partial_paid"
    # Confirming twice is harmless
    again = api.post("/payments/confirm", json={"orderId": order["orderId"]}, headers=auth_headers)
    assert again.status_code == 200


def test_cancel_pending_is_idempotent(api, auth_headers, products):
    order = create_order(api, auth_headers, [{"product_id": products["TEE-001"], "size": "S", "qty": 1}],
                         mode="CARD").json()
    body = {"orderId": order["orderId"]}

    first = api.post("/payments/cancel-pending", json=body, headers=auth_headers)
    assert first.json()["status"] == "cancelled"
    second = api.post("/payments/cancel-pending", json=body, headers=auth_headers)
    assert second.status_code == 200
    assert second.json()["status"] == "cancelled"

    assert api.post("/payments/confirm", json=body, headers=auth_headers).status_code == 400
    res = api.post("/payments/initiate", json={**body, "amount": 548, "paymentMode": "CARD"}, headers=auth_headers)
    assert res.status_code == 400


def test_placed_cod_order_cannot_be_cancelled(api, auth_headers, products):
    order = create_order(api, auth_headers, [{"product_id": products["MUG-002"], "qty": 1}]).json()
    res = api.post("/payments/cancel-pending", json={"orderId": order["orderId"]}, headers=auth_headers)
    assert res.status_code == 400


def test_payments_are_scoped_to_owner(api, auth_headers, products):
    order = create_order(api, auth_headers, [{"product_id": products["MUG-002"], "qty": 1}], mode="UPI").json()
    api.post("/register", json={"email": "other@storefront.io", "password": "secret1",
                                "first_name": "O", "last_name": "T"})
    token = api.post("/login", json={"email": "other@storefront.io", "password": "secret1"}).json()["access_token"]
    res = api.post("/payments/cancel-pending", json={"orderId": order["orderId"]},
                   headers={"Authorization": f"Bearer {token}"})
    assert res.status_code == 404
