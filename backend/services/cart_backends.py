# backend/services/cart_backends.py
"""
Persistence backends behind CartStore.

GuestBackend keeps the serialized guest cart in the local store and is fully
synchronous. AuthBackend talks to the remote cart service; each mutating call
returns either the full updated cart (when the service echoes it) or ``None``,
in which case the caller must re-fetch the canonical cart.
"""
import logging
from typing import Any, Dict, List, Optional

from services.errors import ValidationError
from utils.local_store import LocalStore, GUEST_CART_KEY
from utils.storefront_client import StorefrontClient

logger = logging.getLogger(__name__)

RawLines = List[Dict[str, Any]]


class GuestBackend:
    def __init__(self, store: LocalStore, key: str = GUEST_CART_KEY):
        self.store = store
        self.key = key

    def load(self) -> RawLines:
        items = self.store.get(self.key, [])
        if not isinstance(items, list):
            logger.warning("Guest cart in local store is not a list, resetting")
            return []
        return [item for item in items if isinstance(item, dict)]

    def save(self, items: RawLines) -> None:
        self.store.set(self.key, items)

    def clear(self) -> None:
        self.store.set(self.key, [])


class AuthBackend:
    def __init__(self, client: StorefrontClient):
        self.client = client

    async def fetch(self) -> RawLines:
        data = await self.client.get_cart()
        return _cart_lines(data) or []

    async def add(self, product_id: str, quantity: int, size: Optional[str]) -> Optional[RawLines]:
        # Echoes the full cart; trusted as the canonical state
        data = await self.client.add_cart_item(product_id, quantity, size)
        return _cart_lines(data)

    async def update(self, line_id: str, quantity: int) -> Optional[RawLines]:
        await self.client.update_cart_item(line_id, quantity)
        return None

    async def remove(self, line_id: str) -> Optional[RawLines]:
        try:
            await self.client.delete_cart_item(line_id)
        except ValidationError as e:
            # Already gone on the server
            if e.status_code != 404:
                raise
            logger.debug("Cart line %s already deleted remotely", line_id)
        return None


def _cart_lines(data: Any) -> Optional[RawLines]:
    if not isinstance(data, dict):
        return None
    items = data.get("items")
    if items is None:
        items = data.get("cartItems")
    if not isinstance(items, list):
        return None
    return [item for item in items if isinstance(item, dict)]
