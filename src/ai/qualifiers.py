# src/ai/qualifiers.py

"""AI ranking and qualification of listing pools."""

import logging
from abc import ABC, abstractmethod
from typing import Any

from src.ai.gemini_client import GeminiClient
from src.exceptions import QualificationFailure
from src.models.listing import ItemType, Listing
from src.models.qualification import QualificationVerdict

logger = logging.getLogger("baybot.ai")

# Contexts the pipeline passes for its own curation runs
SYSTEM_CONTEXTS = (
    "general curated deal",
    "general curated auction",
    "background cache",
    "top-up/soft refresh",
)
GENERIC_TERMS = ("deals", "offers", "discounts", "sale")


def is_specific_query(context: str) -> bool:
    """True when ``context`` is a real user query rather than curation."""
    lower = context.lower().strip()
    if len(lower) < 3:
        return False
    if any(pattern in lower for pattern in SYSTEM_CONTEXTS):
        return False
    return lower not in GENERIC_TERMS


class ListingQualifier(ABC):
    """Sends a listing pool to the model and returns its verdicts.

    Verdicts are returned unvalidated; callers run them through
    :class:`~src.filters.qualification_validator.QualificationValidator`.
    """

    item_type: ItemType

    def __init__(self, client: GeminiClient | None = None) -> None:
        self.client = client or GeminiClient()

    @abstractmethod
    def build_prompt(self, listings: list[Listing], context: str) -> str:
        ...

    @abstractmethod
    def parse_verdicts(self, output: list[Any]) -> list[QualificationVerdict]:
        ...

    def qualify(
        self, listings: list[Listing], context: str,
    ) -> list[QualificationVerdict]:
        """Return the model's selection for ``listings``, best first."""
        if not listings:
            return []
        output = self.client.generate_json(self.build_prompt(listings, context))
        if not isinstance(output, list):
            raise QualificationFailure(
                f"Expected a JSON array, got {type(output).__name__}"
            )
        verdicts = self.parse_verdicts(output)
        logger.info(
            "AI kept %d of %d %s listings for '%s'",
            len(verdicts),
            len(listings),
            self.item_type.value,
            context,
        )
        return verdicts


class DealRanker(ListingQualifier):
    """Ranks deals; the model answers with an ordered array of ids."""

    item_type = ItemType.DEAL

    def build_prompt(self, listings: list[Listing], context: str) -> str:
        lines = [
            "You are an expert shopping assistant specializing in finding "
            "the best deals.",
            "Return ONLY a JSON array of the IDs of deals you deem "
            "qualified, sorted from best to worst. Return [] if none "
            "qualify.",
            f'User Query: "{context}"',
            "",
        ]
        if is_specific_query(context):
            lines += [
                f'Keep only deals that are an exact or very strong match '
                f'for "{context}".',
                "Discard accessories unless the query asks for one.",
                "Rank by: relevance, then highest genuine discount, then "
                "seller reputation and feedback, then condition (New or "
                "Refurbished over Used), then price competitiveness.",
            ]
        else:
            lines += [
                "This is general curation. Balance discount size, seller "
                "credibility and overall deal quality. Skip accessories "
                "when a main product category is implied.",
            ]
        lines += ["", f"Deals ({len(listings)}):"]
        for listing in listings:
            lines.append(f"- ID: {listing.id}")
            lines.append(f'  Title: "{listing.title}"')
            lines.append(f"  Price: £{listing.price:.2f}")
            if listing.original_price:
                lines.append(f"  Original Price: £{listing.original_price:.2f}")
            lines.append(f"  Discount: {listing.discount_percentage}%")
            lines.append(
                f"  Seller Reputation: {listing.seller_reputation:g}% "
                f"({listing.seller_feedback_count} reviews)"
            )
            lines.append(f"  Condition: {listing.condition or 'Not specified'}")
        lines += ["", 'Example: ["id3", "id1", "id2"]']
        return "\n".join(lines)

    def parse_verdicts(self, output: list[Any]) -> list[QualificationVerdict]:
        verdicts: list[QualificationVerdict] = []
        for entry in output:
            if isinstance(entry, dict) and "id" in entry:
                entry = entry["id"]
            if isinstance(entry, (str, int)) and not isinstance(entry, bool):
                verdicts.append(QualificationVerdict(listing_id=str(entry)))
            else:
                logger.warning("Ignoring malformed deal id %r", entry)
        return verdicts


class AuctionQualifier(ListingQualifier):
    """Filters auctions and assigns each kept one a rarity score."""

    item_type = ItemType.AUCTION

    def build_prompt(self, listings: list[Listing], context: str) -> str:
        lines = [
            "You are an expert e-commerce curator for eBay auctions.",
            f'User Search Query: "{context}"',
            "",
            "Prefer auctions ending soonest. For similar end times prefer "
            "strong keyword relevance.",
            "Give every auction you keep a rarityScore from 0 to 100: "
            "0-40 common, 41-70 less common or good vintage, 71-100 "
            "genuinely hard to find.",
            "Aim for at least 16 auctions; relax strictness rather than "
            "return a thin list.",
        ]
        if is_specific_query(context):
            lines.append(
                "Filter out accessories such as straps, empty boxes or "
                "manuals unless the query asks for them."
            )
        lines += ["", f"Auctions ({len(listings)}):"]
        for listing in listings:
            bids = listing.auction.bid_count if listing.auction else 0
            lines.append(f"- ID: {listing.id}")
            lines.append(f'  Title: "{listing.title}"')
            lines.append(f"  Current Bid: £{listing.price:.2f}")
            lines.append(
                f"  Seller Reputation: {listing.seller_reputation:g}% "
                f"({listing.seller_feedback_count} reviews)"
            )
            lines.append(f"  Condition: {listing.condition or 'Not specified'}")
            lines.append(f"  Time Left: {listing.time_left() or 'N/A'}")
            lines.append(f"  Bid Count: {bids}")
        lines += [
            "",
            "Return ONLY a JSON array of objects with keys id and "
            "rarityScore, best first. Return [] if none qualify.",
            'Example: [{"id": "id3", "rarityScore": 75}]',
        ]
        return "\n".join(lines)

    def parse_verdicts(self, output: list[Any]) -> list[QualificationVerdict]:
        verdicts: list[QualificationVerdict] = []
        for entry in output:
            if isinstance(entry, dict) and "id" in entry:
                verdicts.append(
                    QualificationVerdict(
                        listing_id=str(entry["id"]),
                        rarity_score=entry.get("rarityScore"),
                    )
                )
            elif isinstance(entry, str):
                verdicts.append(QualificationVerdict(listing_id=entry))
            else:
                logger.warning("Ignoring malformed auction verdict %r", entry)
        return verdicts


def qualifier_for(
    item_type: ItemType, client: GeminiClient | None = None,
) -> ListingQualifier:
    """Qualifier variant for ``item_type``."""
    if item_type is ItemType.DEAL:
        return DealRanker(client)
    return AuctionQualifier(client)
