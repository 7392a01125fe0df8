# backend/services/cart_store.py
"""
Session cart: canonical lines, selection set and the guest/authenticated
backend switch.

Post-conditions of the mutating operations when a session is authenticated:

* ``add``             - trusts the echoed cart when the service returns it,
                        otherwise re-fetches.
* ``update_quantity`` - always re-fetches.
* ``remove`` / ``remove_selected`` / ``remove_specific`` / ``clear``
                      - always re-fetch after the deletions.

Guest operations write the local store synchronously and never re-fetch.
All mutations of one store run one at a time (``asyncio.Lock``); fetched
carts are tagged with a sequence number and stale responses are dropped.
"""
import asyncio
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from services.cart_backends import AuthBackend, GuestBackend, RawLines
from services.cart_line import CartLine, LineIdentity, normalize
from services.errors import InvalidLineError, SessionExpiredError
from services.session import Session

logger = logging.getLogger(__name__)


def _coerce_quantity(value: Any) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


class CartStore:
    def __init__(self, session: Session, guest: GuestBackend, auth: AuthBackend):
        self.session = session
        self.guest = guest
        self.auth = auth
        self.session_expired = False
        self._lines: List[CartLine] = []
        self._selected: Set[str] = set()
        self._lock = asyncio.Lock()
        self._seq = 0
        self._applied_seq = 0

    # ---- read side ----

    @property
    def lines(self) -> Tuple[CartLine, ...]:
        return tuple(self._lines)

    @property
    def is_authenticated(self) -> bool:
        return self.session.is_authenticated

    def get_line(self, line_id: str) -> Optional[CartLine]:
        line_id = str(line_id)
        for line in self._lines:
            if line.id == line_id:
                return line
        return None

    def snapshot(self, line_ids: Optional[Iterable[str]] = None) -> List[CartLine]:
        """Deep copies of the given lines (all lines when ``line_ids`` is None), in cart order."""
        if line_ids is None:
            chosen = self._lines
        else:
            wanted = {str(i) for i in line_ids}
            chosen = [line for line in self._lines if line.id in wanted]
        return [line.model_copy(deep=True) for line in chosen]

    def total_items(self) -> int:
        return sum(line.quantity for line in self._lines)

    def total_price(self) -> float:
        return round(sum(line.quote.final_price * line.quantity for line in self._lines), 2)

    def selected_total(self) -> float:
        return round(sum(line.quote.final_price * line.quantity for line in self.selected_lines()), 2)

    # ---- selection ----

    def select(self, line_id: str) -> None:
        if self.get_line(line_id) is not None:
            self._selected.add(str(line_id))

    def deselect(self, line_id: str) -> None:
        self._selected.discard(str(line_id))

    def toggle(self, line_id: str) -> None:
        if self.is_selected(line_id):
            self.deselect(line_id)
        else:
            self.select(line_id)

    def select_all(self) -> None:
        self._selected = {line.id for line in self._lines}

    def deselect_all(self) -> None:
        self._selected.clear()

    def is_selected(self, line_id: str) -> bool:
        return str(line_id) in self._selected

    def selected_lines(self) -> List[CartLine]:
        return [line for line in self._lines if line.id in self._selected]

    # ---- lifecycle ----

    async def load(self) -> None:
        async with self._lock:
            if self._use_guest():
                self._load_guest()
            else:
                await self._refetch()

    async def refresh(self) -> bool:
        """Re-read the active backend outside the mutation queue.

        Returns False when the response was superseded by a newer one.
        """
        if self._use_guest():
            async with self._lock:
                self._load_guest()
            return True
        seq = self._next_seq()
        raw = await self._call(self.auth.fetch())
        return self._apply(seq, raw)

    async def on_login(self, token: str, user: Optional[Dict[str, Any]] = None) -> None:
        async with self._lock:
            self.session.login(token, user)
            self.session_expired = False
            self._lines = []
            self._selected.clear()
            # The guest cart stays on the device; it is not merged into the account cart
            await self._refetch()

    async def on_logout(self) -> None:
        async with self._lock:
            self.session.clear()
            self.session_expired = False
            self._selected.clear()
            self._applied_seq = self._seq
            self._load_guest()

    # ---- mutations ----

    async def add(self, product: Any, quantity: Any = 1, size: Optional[str] = None) -> bool:
        payload = _product_payload(product)
        product_id = payload.get("id") if payload else None
        if product_id is None or str(product_id).strip() == "":
            logger.warning("Refusing to add product without id to cart")
            return False
        product_id = str(product_id)
        quantity = max(1, _coerce_quantity(quantity))
        size = size or None

        async with self._lock:
            if self._use_guest():
                existing = self._find_identity(product_id, size)
                if existing is not None:
                    self._replace(existing.model_copy(update={"quantity": existing.quantity + quantity}))
                else:
                    self._lines.append(normalize({
                        "productId": product_id,
                        "quantity": quantity,
                        "selectedSize": size,
                        "product": payload,
                    }))
                self._save_guest()
            else:
                echoed = await self._call(self.auth.add(product_id, quantity, size))
                if echoed is not None:
                    # Numbered on arrival so a refresh issued mid-call cannot supersede it
                    self._apply(self._next_seq(), echoed)
                else:
                    await self._refetch()
        logger.info("Added product %s (size=%s, qty=%s) to cart", product_id, size, quantity)
        return True

    async def remove(self, line_id: str) -> None:
        async with self._lock:
            line = self.get_line(line_id)
            if line is None:
                logger.debug("Cart line %s already absent", line_id)
                return
            await self._remove_lines([line])

    async def update_quantity(self, line_id: str, quantity: Any) -> None:
        quantity = _coerce_quantity(quantity)
        if quantity <= 0:
            await self.remove(line_id)
            return
        async with self._lock:
            line = self.get_line(line_id)
            if line is None:
                logger.debug("Cart line %s not found for quantity update", line_id)
                return
            if self._use_guest():
                self._replace(line.model_copy(update={"quantity": quantity}))
                self._save_guest()
            else:
                echoed = await self._call(self.auth.update(line.id, quantity))
                if echoed is not None:
                    self._apply(self._next_seq(), echoed)
                else:
                    await self._refetch()

    async def clear(self) -> None:
        async with self._lock:
            if self._use_guest():
                self._lines = []
                self.guest.clear()
            else:
                for line in list(self._lines):
                    await self._call(self.auth.remove(line.id))
                await self._refetch()
            self._selected.clear()

    async def remove_selected(self) -> int:
        async with self._lock:
            lines = self.selected_lines()
            await self._remove_lines(lines)
            self._selected.clear()
            return len(lines)

    async def remove_specific(self, identities: Iterable[Any]) -> int:
        """Remove exactly the lines matching the given identities.

        An identity matches a line by its local id or by its (product id, size)
        pair. Lines that match nothing, e.g. ones added after an order snapshot,
        stay in the cart.
        """
        wanted: Dict[Tuple[str, Optional[str]], LineIdentity] = {}
        for value in identities or ():
            identity = LineIdentity.coerce(value)
            if identity is not None:
                wanted.setdefault((identity.product_id, identity.size), identity)
        if not wanted:
            return 0
        line_ids = {i.line_id for i in wanted.values() if i.line_id}

        async with self._lock:
            matches = [
                line for line in self._lines
                if line.id in line_ids or (line.product_id, line.selected_size) in wanted
            ]
            await self._remove_lines(matches)
            return len(matches)

    # ---- internals ----

    def _use_guest(self) -> bool:
        if self.session.is_authenticated:
            return False
        if self.session_expired:
            raise SessionExpiredError()
        return True

    def _next_seq(self) -> int:
        self._seq += 1
        return self._seq

    def _apply(self, seq: int, raw: RawLines) -> bool:
        if seq < self._applied_seq:
            logger.debug("Dropping stale cart response #%s (applied #%s)", seq, self._applied_seq)
            return False
        self._applied_seq = seq
        self._lines = self._normalize_all(raw)
        self._selected &= {line.id for line in self._lines}
        return True

    async def _refetch(self) -> None:
        seq = self._next_seq()
        raw = await self._call(self.auth.fetch())
        self._apply(seq, raw)

    async def _call(self, awaitable):
        try:
            return await awaitable
        except SessionExpiredError:
            self._expire()
            raise

    def _expire(self) -> None:
        logger.warning("Authenticated cart session expired, clearing credential")
        self.session.clear()
        self.session_expired = True
        self._lines = []
        self._selected.clear()
        self._applied_seq = self._seq

    async def _remove_lines(self, lines: List[CartLine]) -> None:
        if not lines:
            return
        ids = {line.id for line in lines}
        if self._use_guest():
            self._lines = [line for line in self._lines if line.id not in ids]
            self._save_guest()
        else:
            for line in lines:
                await self._call(self.auth.remove(line.id))
            await self._refetch()
        self._selected -= ids

    def _load_guest(self) -> None:
        self._lines = self._normalize_all(self.guest.load())
        self._selected &= {line.id for line in self._lines}

    def _save_guest(self) -> None:
        self.guest.save([line.to_payload() for line in self._lines])

    def _find_identity(self, product_id: str, size: Optional[str]) -> Optional[CartLine]:
        for line in self._lines:
            if line.product_id == product_id and line.selected_size == size:
                return line
        return None

    def _replace(self, updated: CartLine) -> None:
        self._lines = [updated if line.id == updated.id else line for line in self._lines]

    @staticmethod
    def _normalize_all(raw: RawLines) -> List[CartLine]:
        lines = []
        for item in raw or []:
            try:
                lines.append(normalize(item))
            except InvalidLineError as e:
                logger.warning(f"Skipping cart line without product: {e}")
        return lines


def _product_payload(product: Any) -> Optional[Dict[str, Any]]:
    if isinstance(product, Mapping):
        return dict(product)
    if hasattr(product, "model_dump"):
        return product.model_dump()
    return None
