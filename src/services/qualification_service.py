# src/services/qualification_service.py

"""Qualification-with-fallback shared by the curated and searched flows."""

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field

from src.ai.gemini_client import GeminiClient
from src.ai.qualifiers import ListingQualifier, qualifier_for
from src.config.settings import Settings
from src.exceptions import QualificationFailure
from src.filters.fallback_policy import FallbackPolicy
from src.filters.qualification_validator import QualificationValidator
from src.models.listing import ItemType, Listing

logger = logging.getLogger("baybot.qualification")


@dataclass
class QualificationOutcome:
    """Listings to display after the AI pass and fallback policy."""

    items: list[Listing] = field(
        default_factory=lambda: list[Listing]()
    )
    notices: list[str] = field(
        default_factory=lambda: list[str]()
    )
    qualified_count: int = 0
    padded_count: int = 0
    used_raw_pool: bool = False
    failed: bool = False


class QualificationService:
    """Run the AI qualifier for an item type and apply the fallback policy.

    A qualification failure never propagates: the raw pool is shown
    instead, paired with an informational notice.
    """

    def __init__(
        self,
        qualifiers: Mapping[ItemType, ListingQualifier] | None = None,
        client: GeminiClient | None = None,
    ) -> None:
        self.settings = Settings()
        if qualifiers is None:
            shared = client or GeminiClient()
            qualifiers = {
                item_type: qualifier_for(item_type, shared)
                for item_type in ItemType
            }
        self.qualifiers = dict(qualifiers)

    def _policy(self, desired_size: int) -> FallbackPolicy:
        return FallbackPolicy(
            min_threshold=self.settings.MIN_AI_QUALIFIED_ITEMS_THRESHOLD,
            desired_size=desired_size,
            empty_falls_back_to_raw=self.settings.AI_EMPTY_FALLS_BACK_TO_RAW,
        )

    async def run(
        self,
        item_type: ItemType,
        listings: list[Listing],
        context: str,
        desired_size: int,
    ) -> QualificationOutcome:
        """Qualify ``listings`` and return what should be displayed."""
        if not listings:
            return QualificationOutcome()

        failed = False
        qualified: list[Listing] = []
        try:
            verdicts = await asyncio.to_thread(
                self.qualifiers[item_type].qualify, listings, context
            )
            qualified, _ = QualificationValidator.validate(
                listings, verdicts, context
            )
        except QualificationFailure as exc:
            failed = True
            logger.warning(
                "Qualification failed for '%s', falling back to raw "
                "listings: %s",
                context,
                exc,
                exc_info=True,
            )

        fallback = self._policy(desired_size).apply(
            qualified, listings, qualification_failed=failed
        )
        outcome = QualificationOutcome(
            items=fallback.items,
            qualified_count=fallback.qualified_count,
            padded_count=fallback.padded_count,
            used_raw_pool=fallback.used_raw_pool,
            failed=failed,
        )

        label = f"{item_type.value}s"
        if failed:
            outcome.notices.append(
                f"AI qualification is unavailable right now, showing "
                f"{len(outcome.items)} unqualified {label}."
            )
        elif outcome.used_raw_pool:
            outcome.notices.append(
                f"AI found no standout {label}, showing "
                f"{len(outcome.items)} unfiltered results."
            )
        elif outcome.padded_count:
            outcome.notices.append(
                f"AI qualified {outcome.qualified_count} {label}, added "
                f"{outcome.padded_count} more to fill the view."
            )
        return outcome
