# src/services/search_handler.py

"""Explicit-query search: one fetch, one AI pass, one fallback."""

import asyncio
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from src.config.settings import Settings
from src.filters.listing_filter import ListingFilter
from src.models.listing import ItemType, Listing
from src.services.qualification_service import QualificationService
from src.sources.base_source import ListingSource
from src.storage.cache_store import CacheStore, searched_key

logger = logging.getLogger("baybot.search")


@dataclass
class SearchPage:
    """Listings produced for one offset of a searched query."""

    items: list[Listing] = field(
        default_factory=lambda: list[Listing]()
    )
    notices: list[str] = field(
        default_factory=lambda: list[str]()
    )
    raw_count: int = 0
    next_offset: int = 0
    has_more: bool = False


class SearchHandler:
    """Serve a user query from the listing source.

    The fetched page doubles as the fallback pool, so a failing AI
    pass still shows every active listing that was fetched.
    """

    def __init__(
        self,
        source: ListingSource,
        qualification: QualificationService,
        cache: CacheStore,
    ) -> None:
        self.settings = Settings()
        self.source = source
        self.qualification = qualification
        self.cache = cache

    async def search(
        self,
        item_type: ItemType,
        query: str,
        offset: int = 0,
        *,
        exclude_ids: Iterable[str] = (),
        write_cache: bool = True,
        on_qualifying: Callable[[], None] | None = None,
    ) -> SearchPage:
        """Fetch, filter and qualify one page of results for ``query``.

        ``AuthFailure`` and ``SourceUnavailable`` propagate; with a
        single keyword there is nothing to fall back on.
        """
        limit = self.settings.API_FETCH_LIMIT
        raw: list[Listing] = await asyncio.to_thread(
            self.source.search, item_type, query, offset, limit
        )
        page = SearchPage(
            raw_count=len(raw),
            next_offset=offset + limit,
            has_more=len(raw) >= limit,
        )

        active, expired = ListingFilter.filter_active(raw)
        active = ListingFilter.exclude_ids(active, set(exclude_ids))
        logger.info(
            "Query '%s' offset %d: %d fetched, %d ended, %d usable",
            query,
            offset,
            len(raw),
            expired,
            len(active),
        )
        if not active:
            return page

        if on_qualifying is not None:
            on_qualifying()
        outcome = await self.qualification.run(
            item_type, active, query, limit
        )
        page.items = outcome.items
        page.notices.extend(outcome.notices)

        if write_cache and offset == 0 and page.items:
            self.cache.set(searched_key(item_type, query), page.items)
        return page
