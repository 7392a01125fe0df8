# backend/services/stock_poller.py
import asyncio
import logging
from typing import Callable, Dict, Iterable, Optional, Union

from config import settings
from services.cart_line import StockSnapshot
from services.errors import InvalidLineError, StorefrontError
from utils.storefront_client import StorefrontClient

logger = logging.getLogger(__name__)

Snapshots = Dict[str, StockSnapshot]
ProductIds = Union[Iterable[str], Callable[[], Iterable[str]]]


async def fetch_snapshots(client: StorefrontClient, product_ids: Iterable[str]) -> Snapshots:
    """Fetch live stock + payment capabilities for the given products, keyed by product id."""
    ids = [str(pid) for pid in dict.fromkeys(product_ids)]
    if not ids:
        return {}
    snapshots: Snapshots = {}
    for record in await client.fetch_stock(ids):
        try:
            snapshot = StockSnapshot.from_payload(record)
        except InvalidLineError:
            logger.warning("Ignoring stock record without product id: %s", record)
            continue
        snapshots[snapshot.product_id] = snapshot
    return snapshots


class StockPoller:
    """
    Periodically refreshes stock snapshots for display.

    Failures are logged at debug level and back off exponentially up to
    ``max_backoff`` seconds; the next success resets the interval. Checkout
    never relies on these snapshots, it fetches its own.
    """

    def __init__(
        self,
        client: StorefrontClient,
        product_ids: ProductIds,
        interval: Optional[float] = None,
        max_backoff: Optional[float] = None,
        on_update: Optional[Callable[[Snapshots], None]] = None,
    ):
        self.client = client
        self.product_ids = product_ids
        self.interval = interval if interval is not None else settings.STOCK_POLL_INTERVAL
        self.max_backoff = max_backoff if max_backoff is not None else settings.STOCK_POLL_MAX_BACKOFF
        self.on_update = on_update
        self.snapshots: Snapshots = {}
        self.failures = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _ids(self) -> list:
        ids = self.product_ids() if callable(self.product_ids) else self.product_ids
        return list(ids or [])

    async def poll_once(self) -> Snapshots:
        fresh = await fetch_snapshots(self.client, self._ids())
        self.snapshots.update(fresh)
        if self.on_update is not None:
            self.on_update(dict(self.snapshots))
        return fresh

    def next_delay(self) -> float:
        if not self.failures:
            return self.interval
        return min(self.interval * (2 ** self.failures), self.max_backoff)

    async def _run(self) -> None:
        while True:
            try:
                await self.poll_once()
                self.failures = 0
            except StorefrontError as e:
                self.failures += 1
                logger.debug("Stock poll failed (%s in a row): %s", self.failures, e)
            await asyncio.sleep(self.next_delay())

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def __aenter__(self) -> "StockPoller":
        self.start()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.stop()
