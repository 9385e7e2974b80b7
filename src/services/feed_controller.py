# src/services/feed_controller.py

"""Session-level controller behind the deal and auction feeds."""

import asyncio
import logging
from collections.abc import Coroutine
from functools import partial
from typing import Any

from src.ai.deal_analyzer import DealAnalyzer
from src.ai.gemini_client import GeminiClient
from src.config.settings import Settings
from src.exceptions import AuthFailure, BayBotError, SourceUnavailable
from src.filters.deduplicator import ListingDeduplicator
from src.filters.listing_filter import ListingFilter
from src.models.feed_state import FeedState
from src.models.listing import ItemType, Listing
from src.models.qualification import AnalysisResult
from src.services.curated_pool_builder import (
    CuratedPoolBuilder,
    curated_context,
)
from src.services.expiry_reconciler import AuctionExpiryReconciler
from src.services.qualification_service import QualificationService
from src.services.search_handler import SearchHandler
from src.services.top_up_controller import TopUpController
from src.sources.base_source import ListingSource
from src.sources.keyword_sampler import KeywordSampler
from src.storage.cache_store import CacheStore, cache_key, curated_key

logger = logging.getLogger("baybot.feed")


class FeedController:
    """Owns the active feed, its cache entry and its background work.

    A load started for a superseded request is discarded on arrival:
    every load carries the generation current when it began, and only
    results whose generation is still current are applied. Loads for
    the same cache key share one in-flight task, except across a
    reset, which detaches running loads so the reload always fetches
    and a pre-reset curated pool is never written back to the cache.
    """

    def __init__(
        self,
        source: ListingSource,
        cache: CacheStore | None = None,
        qualification: QualificationService | None = None,
        sampler: KeywordSampler | None = None,
        analyzer: DealAnalyzer | None = None,
        client: GeminiClient | None = None,
    ) -> None:
        self.settings = Settings()
        self.source = source
        self.cache = cache or CacheStore()
        if qualification is None or analyzer is None:
            client = client or GeminiClient()
        self.qualification = qualification or QualificationService(
            client=client
        )
        self.analyzer = analyzer or DealAnalyzer(client)
        self.builder = CuratedPoolBuilder(
            source, self.qualification, self.cache, sampler
        )
        self.search_handler = SearchHandler(
            source, self.qualification, self.cache
        )
        self.top_up = TopUpController(
            self.builder, self.qualification, self.cache
        )
        self.reconciler = AuctionExpiryReconciler(self.on_item_expired)

        self.state: FeedState | None = None
        self._active_key: str | None = None
        self._generation = 0
        self._reset_epoch = 0
        self._in_flight: dict[str, asyncio.Task[FeedState]] = {}
        self._background: set[asyncio.Task[None]] = set()
        self._attempted: dict[ItemType, set[str]] = {
            item_type: set() for item_type in ItemType
        }

    # ── Helpers ──────────────────────────────────────────

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def _forget(self, key: str, task: asyncio.Task[FeedState]) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]

    def _mark_qualifying(self, generation: int) -> None:
        if self._is_current(generation) and self.state is not None:
            self.state.is_qualifying = True

    @staticmethod
    def _apply_error(state: FeedState, exc: BayBotError) -> None:
        if isinstance(exc, AuthFailure):
            state.error = f"Marketplace authentication failed: {exc}"
            state.is_auth_error = True
        else:
            state.error = f"Failed to load {state.item_type.value}s: {exc}"

    async def drain(self) -> None:
        """Wait for top-up and cache-warming work to finish."""
        pending = [t for t in self._background if not t.done()]
        while pending:
            results = await asyncio.gather(*pending, return_exceptions=True)
            for outcome in results:
                if isinstance(outcome, Exception):
                    logger.error(
                        "Background task failed: %s", outcome, exc_info=outcome
                    )
            pending = [t for t in self._background if not t.done()]

    # ── Initial load ─────────────────────────────────────

    def _read_cache(self, state: FeedState, key: str) -> list[Listing]:
        entry = self.cache.get(key)
        if entry is None:
            return []
        items = entry.items
        if state.item_type is ItemType.AUCTION:
            items, _ = ListingFilter.filter_active(items)
            for stale_id in {i.id for i in entry.items} - {i.id for i in items}:
                self.cache.remove_listing(key, stale_id)
        return items

    async def _load(
        self, item_type: ItemType, query: str, generation: int,
    ) -> FeedState:
        key = cache_key(item_type, query)
        state = FeedState(item_type=item_type, query=query)
        label = f"{item_type.value}s"

        epoch = self._reset_epoch
        cached = self._read_cache(state, key)
        if cached:
            state.items = cached
            state.from_cache = True
            state.offset = self.settings.API_FETCH_LIMIT
            state.notices.append(f"Loaded {len(cached)} cached {label}.")
            return state

        on_qualifying = partial(self._mark_qualifying, generation)
        try:
            if query:
                page = await self.search_handler.search(
                    item_type, query, on_qualifying=on_qualifying
                )
                state.items = page.items
                state.notices.extend(page.notices)
                state.offset = page.next_offset
                state.has_more = page.has_more
            else:
                result = await self.builder.build(
                    item_type,
                    attempted=self._attempted[item_type],
                    on_qualifying=on_qualifying,
                    write_cache=False,
                )
                state.items = result.items
                state.notices.extend(result.notices)
                if state.items and epoch == self._reset_epoch:
                    self.cache.set(key, state.items)
        except (AuthFailure, SourceUnavailable) as exc:
            logger.error("Load of '%s' failed: %s", key, exc, exc_info=True)
            self._apply_error(state, exc)
            return state

        if not state.items:
            state.notices.append(f"No {label} found.")
        return state

    async def load_initial(
        self, item_type: ItemType, query: str = "",
    ) -> FeedState:
        """Load the feed for ``(item_type, query)`` and make it active.

        Returns the state that is active once this call completes,
        which is a later request's state if this one was superseded.
        """
        query = query.strip()
        key = cache_key(item_type, query)
        task = self._in_flight.get(key)

        if task is None or self._active_key != key:
            self._generation += 1
            self._active_key = key
            self.state = FeedState(
                item_type=item_type, query=query, is_loading=True
            )
            self.reconciler.clear()
        else:
            logger.debug("Coalescing duplicate load for '%s'", key)
        generation = self._generation

        if task is None:
            task = asyncio.create_task(
                self._load(item_type, query, generation)
            )
            self._in_flight[key] = task
            task.add_done_callback(partial(self._forget, key))

        state = await asyncio.shield(task)
        if not self._is_current(generation):
            logger.info("Discarding superseded result for '%s'", key)
            return self.state or state
        if self.state is state:
            return state

        self.state = state
        self._after_load(state, generation)
        return state

    def _after_load(self, state: FeedState, generation: int) -> None:
        if state.item_type is ItemType.AUCTION and state.items:
            self.reconciler.track_all(state.items)
            self.reconciler.start()
        if state.error:
            return
        if self.top_up.should_trigger(
            state, self.cache.age(curated_key(state.item_type))
        ):
            self._spawn(self._run_top_up(state, generation))
        self._spawn(self._warm_counterpart(state.item_type.other, state.query))

    # ── Background work ──────────────────────────────────

    async def _run_top_up(self, state: FeedState, generation: int) -> None:
        try:
            result = await self.top_up.run(
                state, self._attempted[state.item_type]
            )
        except (AuthFailure, SourceUnavailable) as exc:
            logger.warning("Top-up failed: %s", exc, exc_info=True)
            return
        if not self._is_current(generation) or self.state is not state:
            logger.info("Discarding top-up for a superseded feed")
            return
        self.top_up.apply(state, result)
        if state.item_type is ItemType.AUCTION:
            self.reconciler.track_all(result.new_items)

    async def _warm_counterpart(self, item_type: ItemType, query: str) -> None:
        key = cache_key(item_type, query)
        if key in self._in_flight or self.cache.get(key) is not None:
            return
        try:
            if query:
                await self.search_handler.search(item_type, query)
            else:
                await self.builder.build(
                    item_type,
                    keyword_budget=self.settings.KEYWORDS_FOR_BACKGROUND_CACHE,
                    context=curated_context(item_type, "background cache"),
                )
            logger.info("Warmed cache entry '%s'", key)
        except BayBotError as exc:
            logger.warning(
                "Background cache warm of '%s' failed: %s",
                key,
                exc,
                exc_info=True,
            )

    # ── Load more ────────────────────────────────────────

    async def load_more(self) -> FeedState | None:
        """Append the next batch of listings to the active feed."""
        state = self.state
        if (
            state is None
            or state.is_loading
            or state.is_loading_more
            or not state.has_more
        ):
            return state
        generation = self._generation
        label = f"{state.item_type.value}s"
        state.is_loading_more = True
        try:
            if state.query:
                page = await self.search_handler.search(
                    state.item_type,
                    state.query,
                    state.offset,
                    exclude_ids=state.ids,
                    write_cache=False,
                )
                incoming, notices = page.items, page.notices
                has_more = page.has_more
                state.offset = page.next_offset
            else:
                result = await self.builder.build(
                    state.item_type,
                    attempted=self._attempted[state.item_type],
                    exclude_ids=state.ids,
                    keyword_budget=self.settings.MAX_CURATED_FETCH_ATTEMPTS,
                    context=curated_context(state.item_type, "more"),
                    write_cache=False,
                )
                incoming, notices = result.items, result.notices
                has_more = bool(result.attempted_keywords)
        except (AuthFailure, SourceUnavailable) as exc:
            logger.error("Load more failed: %s", exc, exc_info=True)
            if self._is_current(generation):
                self._apply_error(state, exc)
            return self.state
        finally:
            state.is_loading_more = False

        if not self._is_current(generation) or self.state is not state:
            logger.info("Discarding load-more for a superseded feed")
            return self.state

        state.notices.extend(notices)
        state.items, added = ListingDeduplicator.merge_new(
            state.items, incoming
        )
        state.has_more = has_more and bool(added)
        if not added:
            state.notices.append(f"No more new {label} found.")
            return state

        self.cache.set(cache_key(state.item_type, state.query), state.items)
        if state.item_type is ItemType.AUCTION:
            self.reconciler.track_all(added)
        return state

    # ── Events ───────────────────────────────────────────

    def on_item_expired(self, item_id: str) -> None:
        """Drop an ended auction from the feed and its cache entry.

        Repeated events for the same id are no-ops.
        """
        self.reconciler.untrack(item_id)
        state = self.state
        if state is None:
            return
        if item_id in state.ids:
            state.items = [i for i in state.items if i.id != item_id]
            logger.info("Removed ended auction '%s' from feed", item_id)
        if self._active_key is not None:
            self.cache.remove_listing(self._active_key, item_id)

    async def reset(self, item_type: ItemType | None = None) -> FeedState:
        """Drop both curated pools and reload the curated feed."""
        if item_type is None:
            item_type = self.state.item_type if self.state else ItemType.DEAL
        self._generation += 1
        self._active_key = None
        self._reset_epoch += 1
        self._in_flight.clear()
        for background in self._background:
            background.cancel()
        self.reconciler.clear()
        for each in ItemType:
            self.cache.delete(curated_key(each))
            self._attempted[each] = set()
        logger.info("Feed reset, reloading curated %ss", item_type.value)
        return await self.load_initial(item_type, "")

    async def analyze(self, item_id: str) -> AnalysisResult:
        """Score one listing of the active feed and keep the scores on it."""
        state = self.state
        listing = next(
            (i for i in state.items if i.id == item_id), None
        ) if state else None
        if listing is None:
            raise BayBotError(f"Listing '{item_id}' is not in the current feed")

        result = await asyncio.to_thread(self.analyzer.analyze, listing)
        scored = listing.with_scores(result.rarity_score, result.risk_score)
        state.items = [scored if i.id == item_id else i for i in state.items]
        return result

    async def close(self) -> None:
        """Cancel background work and stop the expiry timer."""
        self.reconciler.clear()
        for background in list(self._background):
            background.cancel()
        await asyncio.gather(*self._background, return_exceptions=True)
