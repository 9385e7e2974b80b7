# src/services/top_up_controller.py

"""One-shot replenishment of an under-sized or aging curated pool."""

import logging
from dataclasses import dataclass, field

from src.config.settings import Settings
from src.filters.deduplicator import ListingDeduplicator
from src.filters.listing_filter import ListingFilter
from src.models.feed_state import FeedState
from src.models.listing import ItemType, Listing
from src.services.curated_pool_builder import CuratedPoolBuilder
from src.services.qualification_service import QualificationService
from src.storage.cache_store import CacheStore, curated_key

logger = logging.getLogger("baybot.top_up")


@dataclass
class TopUpResult:
    """New listings found by a top-up cycle, not yet merged."""

    new_items: list[Listing] = field(
        default_factory=lambda: list[Listing]()
    )
    keywords: list[str] = field(
        default_factory=lambda: list[str]()
    )
    notices: list[str] = field(
        default_factory=lambda: list[str]()
    )


class TopUpController:
    """Fetch extra curated listings at most once per load.

    ``run`` never mutates the feed; ``apply`` merges additively and
    rewrites the curated cache entry, so a superseded result can be
    dropped by the caller.
    """

    def __init__(
        self,
        builder: CuratedPoolBuilder,
        qualification: QualificationService,
        cache: CacheStore,
        requalify: bool = True,
    ) -> None:
        self.settings = Settings()
        self.builder = builder
        self.qualification = qualification
        self.cache = cache
        self.requalify = requalify

    def should_trigger(
        self, state: FeedState, cache_age: float | None,
    ) -> bool:
        """True when ``state`` needs a top-up or a soft refresh."""
        if not state.is_curated or state.top_up_attempted or state.error:
            return False
        active, _ = ListingFilter.filter_active(state.items)
        if len(active) < self.settings.MIN_DESIRED_CURATED_ITEMS:
            logger.info(
                "Curated %s pool has %d active listings, topping up",
                state.item_type.value,
                len(active),
            )
            return True
        if (
            state.item_type is ItemType.DEAL
            and cache_age is not None
            and cache_age > self.settings.SOFT_REFRESH_AGE
        ):
            logger.info(
                "Curated deal cache is %.0fs old, soft refreshing",
                cache_age,
            )
            return True
        return False

    async def run(
        self, state: FeedState, attempted: set[str],
    ) -> TopUpResult:
        """Fetch listings for fresh keywords that the feed lacks.

        Marks the load as attempted whatever the result.
        """
        state.top_up_attempted = True
        result = TopUpResult()
        label = f"{state.item_type.value}s"

        result.keywords = self.builder.sampler.sample_batch(
            self.settings.TOP_UP_KEYWORDS, attempted
        )
        if not result.keywords:
            result.notices.append(f"No new {label} found to add.")
            return result

        fetched, failed = await self.builder.fetch_keywords(
            state.item_type, result.keywords
        )
        if failed and len(failed) == len(result.keywords):
            logger.warning("Top-up searches all failed: %s", failed)

        fresh = ListingFilter.exclude_ids(fetched, state.ids)
        fresh, _ = ListingFilter.filter_active(fresh)
        fresh, _ = ListingDeduplicator.deduplicate(fresh)
        if not fresh:
            result.notices.append(f"No new {label} found to add.")
            return result

        if self.requalify:
            outcome = await self.qualification.run(
                state.item_type,
                fresh,
                f"top-up/soft refresh {label}",
                self.settings.MIN_DESIRED_CURATED_ITEMS,
            )
            fresh = outcome.items

        result.new_items = fresh
        logger.info(
            "Top-up found %d new %s from %s",
            len(fresh),
            label,
            result.keywords,
        )
        return result

    def apply(self, state: FeedState, result: TopUpResult) -> int:
        """Merge ``result`` into ``state`` and rewrite the cache entry."""
        state.notices.extend(result.notices)
        state.items, added = ListingDeduplicator.merge_new(
            state.items, result.new_items
        )
        if added:
            self.cache.set(curated_key(state.item_type), state.items)
            state.notices.append(
                f"Added {len(added)} more {state.item_type.value}s."
            )
        return len(added)
