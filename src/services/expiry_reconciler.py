# src/services/expiry_reconciler.py

"""Single timer that retires auctions as their end time passes."""

import asyncio
import heapq
import logging
import time
from collections.abc import Callable

from src.config.settings import Settings
from src.models.listing import Listing, parse_end_time

logger = logging.getLogger("baybot.expiry")


class AuctionExpiryReconciler:
    """Priority queue of ``(end_epoch, id)`` fired in end-time order.

    Untracked or re-tracked ids leave stale heap entries behind; they
    are skipped when popped.
    """

    def __init__(
        self,
        on_expired: Callable[[str], None],
        tick_seconds: float | None = None,
    ) -> None:
        self.on_expired = on_expired
        self.tick_seconds = (
            tick_seconds
            if tick_seconds is not None
            else Settings.EXPIRY_TICK_SECONDS
        )
        self._heap: list[tuple[float, str]] = []
        self._deadlines: dict[str, float] = {}
        self._task: asyncio.Task[None] | None = None

    @property
    def tracked_ids(self) -> set[str]:
        return set(self._deadlines)

    def track(self, listing: Listing) -> bool:
        """Schedule ``listing``; returns ``False`` if it has no end time."""
        end = parse_end_time(listing.end_time)
        if end is None:
            return False
        deadline = end.timestamp()
        self._deadlines[listing.id] = deadline
        heapq.heappush(self._heap, (deadline, listing.id))
        return True

    def track_all(self, listings: list[Listing]) -> int:
        return sum(1 for listing in listings if self.track(listing))

    def untrack(self, listing_id: str) -> None:
        self._deadlines.pop(listing_id, None)

    def tick(self, now: float | None = None) -> list[str]:
        """Fire ``on_expired`` for every id whose end time has passed."""
        current = now if now is not None else time.time()
        expired: list[str] = []
        while self._heap and self._heap[0][0] <= current:
            deadline, listing_id = heapq.heappop(self._heap)
            if self._deadlines.get(listing_id) != deadline:
                continue
            del self._deadlines[listing_id]
            expired.append(listing_id)

        for listing_id in expired:
            logger.info("Auction '%s' ended", listing_id)
            self.on_expired(listing_id)
        return expired

    async def run(self) -> None:
        """Tick until cancelled."""
        while True:
            self.tick()
            await asyncio.sleep(self.tick_seconds)

    def start(self) -> None:
        """Start the tick loop on the running event loop."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run())

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    def clear(self) -> None:
        """Forget every tracked auction and stop ticking."""
        self.stop()
        self._heap.clear()
        self._deadlines.clear()
