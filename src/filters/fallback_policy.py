# src/filters/fallback_policy.py

"""Pad or replace a weak AI selection with raw listings."""

import logging
from dataclasses import dataclass, field

from src.models.listing import Listing

logger = logging.getLogger("baybot.filters")


@dataclass
class FallbackOutcome:
    """Final selection after the fallback policy ran."""

    items: list[Listing] = field(
        default_factory=lambda: list[Listing]()
    )
    qualified_count: int = 0
    padded_count: int = 0
    used_raw_pool: bool = False


class FallbackPolicy:
    """Guarantee a non-empty view when raw listings exist.

    ``min_threshold`` is the qualified count below which padding kicks
    in; ``desired_size`` caps both the padded and the raw-only result.
    """

    def __init__(
        self,
        min_threshold: int,
        desired_size: int,
        empty_falls_back_to_raw: bool = True,
    ) -> None:
        self.min_threshold = min_threshold
        self.desired_size = desired_size
        self.empty_falls_back_to_raw = empty_falls_back_to_raw

    def apply(
        self,
        qualified: list[Listing],
        raw_pool: list[Listing],
        qualification_failed: bool = False,
    ) -> FallbackOutcome:
        """Combine the AI selection with the raw pool."""
        if qualification_failed:
            items = raw_pool[: self.desired_size]
            logger.info(
                "Qualification failed, presenting %d raw listings",
                len(items),
            )
            return FallbackOutcome(items=items, used_raw_pool=True)

        k = len(qualified)
        if k == 0:
            if raw_pool and self.empty_falls_back_to_raw:
                items = raw_pool[: self.desired_size]
                logger.info(
                    "AI found nothing in %d raw listings, presenting "
                    "%d raw listings",
                    len(raw_pool),
                    len(items),
                )
                return FallbackOutcome(items=items, used_raw_pool=True)
            return FallbackOutcome()

        if k >= self.min_threshold or k >= len(raw_pool):
            return FallbackOutcome(items=list(qualified), qualified_count=k)

        target = max(k, min(self.desired_size, len(raw_pool)))
        selected = {listing.id for listing in qualified}
        items = list(qualified)
        for listing in raw_pool:
            if len(items) >= target:
                break
            if listing.id in selected:
                continue
            selected.add(listing.id)
            items.append(listing)

        padded = len(items) - k
        logger.info(
            "Padded %d AI-qualified listings with %d raw listings",
            k,
            padded,
        )
        return FallbackOutcome(
            items=items, qualified_count=k, padded_count=padded
        )
