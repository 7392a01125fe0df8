# backend/utils/storefront_client.py
import httpx
import logging
from typing import Any, Dict, Iterable, List, Optional
from config import settings
from services.errors import SessionExpiredError, TransientNetworkError, ValidationError

logger = logging.getLogger(__name__)


class ShippingNotConfigured(Exception):
    """The shipping service has no rate for the requested pincode."""


class StorefrontClient:
    """Single async HTTP client for every remote call made by the cart/checkout core."""

    def __init__(self, base_url: Optional[str] = None, session=None,
                 http: Optional[httpx.AsyncClient] = None, timeout: Optional[float] = None):
        self.base_url = (base_url or settings.STOREFRONT_API_URL).rstrip("/")
        self.session = session
        self.timeout = timeout if timeout is not None else settings.HTTP_TIMEOUT
        self._http = http

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout)
        return self._http

    async def aclose(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    def _headers(self, auth: bool) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if auth:
            if self.session is None or not self.session.is_authenticated:
                raise SessionExpiredError("No authenticated session")
            headers.update(self.session.auth_headers())
        return headers

    async def _request(self, method: str, path: str, *, auth: bool = False, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = await self._client().request(method, url, headers=self._headers(auth), **kwargs)
        except httpx.RequestError as e:
            logger.error(f"Storefront request error {method} {path}: {e}")
            raise TransientNetworkError(f"Network error while calling {path}") from e

        if response.status_code == 401:
            logger.warning("Storefront rejected credential on %s %s", method, path)
            raise SessionExpiredError()
        if response.status_code >= 500:
            logger.error(f"Storefront server error {response.status_code} on {method} {path}: {response.text[:500]}")
            raise TransientNetworkError(f"Service error on {path}", status_code=response.status_code)
        if response.status_code >= 400:
            detail = _detail(response)
            logger.error(f"Storefront rejected {method} {path} ({response.status_code}): {detail}")
            raise ValidationError(detail, status_code=response.status_code)
        if not response.content:
            return {}
        return response.json()

    # ---- cart service (bearer authenticated) ----

    async def get_cart(self) -> Dict[str, Any]:
        return await self._request("GET", "/cart", auth=True)

    async def add_cart_item(self, product_id: str, qty: int, size: Optional[str] = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"product_id": _wire_id(product_id), "qty": qty}
        if size:
            payload["size"] = size
        return await self._request("POST", "/cart/add", auth=True, json=payload)

    async def update_cart_item(self, item_id: str, qty: int) -> Dict[str, Any]:
        return await self._request("PUT", f"/cart/items/{item_id}", auth=True, json={"qty": qty})

    async def delete_cart_item(self, item_id: str) -> Dict[str, Any]:
        return await self._request("DELETE", f"/cart/items/{item_id}", auth=True)

    # ---- catalog / stock ----

    async def fetch_stock(self, product_ids: Iterable[str]) -> List[Dict[str, Any]]:
        ids = [_wire_id(pid) for pid in dict.fromkeys(product_ids)]
        if not ids:
            return []
        data = await self._request("POST", "/products/stock/bulk", json={"ids": ids})
        if not data.get("success"):
            raise TransientNetworkError("Stock service returned an unsuccessful response")
        return list(data.get("stocks") or [])

    # ---- checkout collaborators ----

    async def get_shipping_amount(self, pincode: str) -> float:
        try:
            data = await self._request("GET", "/shipping/amount", params={"pincode": pincode})
        except ValidationError as e:
            if e.status_code == 404:
                raise ShippingNotConfigured(pincode) from e
            raise
        raw = data.get("amount")
        try:
            return float(raw) if raw is not None else 0.0
        except (TypeError, ValueError):
            return 0.0

    async def get_payment_settings(self) -> Dict[str, Any]:
        return await self._request("GET", "/payment-settings")

    async def create_order(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/orders/create", auth=True, json=payload)

    async def initiate_payment(self, order_id: int, amount: float, payment_mode: str) -> Dict[str, Any]:
        payload = {"orderId": order_id, "amount": amount, "paymentMode": payment_mode}
        return await self._request("POST", "/payments/initiate", auth=True, json=payload)

    async def cancel_pending_order(self, order_id: int) -> Dict[str, Any]:
        return await self._request("POST", "/payments/cancel-pending", auth=True, json={"orderId": order_id})


def _detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        detail = body.get("detail") or body.get("message")
        if isinstance(detail, str):
            return detail
        if detail is not None:
            return str(detail)
    return f"HTTP {response.status_code}"


def _wire_id(value: str) -> Any:
    text = str(value)
    return int(text) if text.isdigit() else text
