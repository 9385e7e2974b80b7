# src/services/curated_pool_builder.py

"""Assemble a curated listing pool from sampled keywords."""

import asyncio
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from src.config.settings import Settings
from src.exceptions import SourceUnavailable
from src.filters.deduplicator import ListingDeduplicator
from src.filters.listing_filter import ListingFilter
from src.models.listing import ItemType, Listing
from src.services.qualification_service import (
    QualificationOutcome,
    QualificationService,
)
from src.sources.base_source import ListingSource
from src.sources.keyword_sampler import KeywordSampler
from src.storage.cache_store import CacheStore, curated_key

logger = logging.getLogger("baybot.curated")


def curated_context(item_type: ItemType, suffix: str = "") -> str:
    """Generic AI context string for a curated run."""
    context = f"general curated {item_type.value}s"
    return f"{context} {suffix}".strip()


@dataclass
class PoolBuildResult:
    """Outcome of one curated build cycle."""

    items: list[Listing] = field(
        default_factory=lambda: list[Listing]()
    )
    raw_pool: list[Listing] = field(
        default_factory=lambda: list[Listing]()
    )
    attempted_keywords: list[str] = field(
        default_factory=lambda: list[str]()
    )
    failed_keywords: list[str] = field(
        default_factory=lambda: list[str]()
    )
    notices: list[str] = field(
        default_factory=lambda: list[str]()
    )

    @property
    def raw_pool_size(self) -> int:
        return len(self.raw_pool)


class CuratedPoolBuilder:
    """Sample keywords, search them concurrently, qualify the merged pool.

    Keywords are drawn without replacement from the caller's
    ``attempted`` set. A ``SourceUnavailable`` on one keyword only
    drops that keyword; an ``AuthFailure`` aborts the whole cycle and
    cancels sibling searches.
    """

    def __init__(
        self,
        source: ListingSource,
        qualification: QualificationService,
        cache: CacheStore,
        sampler: KeywordSampler | None = None,
    ) -> None:
        self.settings = Settings()
        self.source = source
        self.qualification = qualification
        self.cache = cache
        self.sampler = sampler or KeywordSampler()

    # ── Fetching ─────────────────────────────────────────

    async def _search_keyword(
        self, item_type: ItemType, keyword: str,
    ) -> list[Listing] | None:
        try:
            return await asyncio.to_thread(
                self.source.search,
                item_type,
                keyword,
                0,
                self.settings.API_FETCH_LIMIT,
            )
        except SourceUnavailable as exc:
            logger.warning(
                "Search for '%s' failed, skipping keyword: %s",
                keyword,
                exc,
                exc_info=True,
            )
            return None

    async def fetch_keywords(
        self, item_type: ItemType, keywords: list[str],
    ) -> tuple[list[Listing], list[str]]:
        """Search every keyword concurrently.

        Returns the listings in keyword order (not deduplicated) and
        the keywords whose search failed.
        """
        tasks = [
            asyncio.create_task(self._search_keyword(item_type, keyword))
            for keyword in keywords
        ]
        try:
            batches = await asyncio.gather(*tasks)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()

        listings: list[Listing] = []
        failed: list[str] = []
        for keyword, batch in zip(keywords, batches):
            if batch is None:
                failed.append(keyword)
            else:
                listings.extend(batch)
        return listings, failed

    # ── Build cycle ──────────────────────────────────────

    async def build(
        self,
        item_type: ItemType,
        *,
        attempted: set[str] | None = None,
        exclude_ids: Iterable[str] = (),
        keyword_budget: int | None = None,
        context: str | None = None,
        desired_size: int | None = None,
        write_cache: bool = True,
        on_qualifying: Callable[[], None] | None = None,
    ) -> PoolBuildResult:
        """Run one acquisition cycle and return the listings to display.

        Raises ``SourceUnavailable`` when every keyword search failed
        and ``AuthFailure`` on a credential problem.
        """
        attempted = attempted if attempted is not None else set()
        excluded = set(exclude_ids)
        budget = (
            keyword_budget
            if keyword_budget is not None
            else self.settings.MAX_TOTAL_KEYWORDS_INITIAL
        )
        desired = desired_size or self.settings.MIN_DESIRED_CURATED_ITEMS
        target_raw = (
            self.settings.MIN_DESIRED_CURATED_ITEMS
            * self.settings.TARGET_RAW_ITEMS_FACTOR
        )
        result = PoolBuildResult()

        while (
            len(result.raw_pool) < target_raw
            and len(result.attempted_keywords) < budget
        ):
            batch = self.sampler.sample_batch(
                min(
                    self.settings.KEYWORDS_PER_BATCH,
                    budget - len(result.attempted_keywords),
                ),
                attempted,
            )
            if not batch:
                logger.info("Keyword vocabulary exhausted for %s", item_type.value)
                break
            result.attempted_keywords.extend(batch)

            fetched, failed = await self.fetch_keywords(item_type, batch)
            result.failed_keywords.extend(failed)
            fetched = ListingFilter.exclude_ids(fetched, excluded)
            fetched, _ = ListingFilter.filter_active(fetched)
            result.raw_pool, added = ListingDeduplicator.merge_new(
                result.raw_pool, fetched
            )
            logger.info(
                "Batch %s added %d listings (raw pool %d/%d)",
                batch,
                len(added),
                len(result.raw_pool),
                target_raw,
            )

        if (
            result.attempted_keywords
            and len(result.failed_keywords) == len(result.attempted_keywords)
        ):
            raise SourceUnavailable(
                f"All {len(result.failed_keywords)} keyword searches failed"
            )

        if not result.raw_pool:
            logger.info("Curated %s build found no listings", item_type.value)
            return result

        if on_qualifying is not None:
            on_qualifying()
        outcome: QualificationOutcome = await self.qualification.run(
            item_type,
            result.raw_pool,
            context or curated_context(item_type),
            desired,
        )
        result.items = outcome.items
        result.notices.extend(outcome.notices)
        if result.failed_keywords:
            result.notices.append(
                f"Some searches failed ({', '.join(result.failed_keywords)}), "
                f"showing what was found."
            )

        if write_cache and result.items:
            self.cache.set(curated_key(item_type), result.items)
        return result
