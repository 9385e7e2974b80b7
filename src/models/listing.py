# src/models/listing.py

"""Canonical listing model shared by the deal and auction flows."""

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ItemType(str, Enum):
    """Kind of marketplace listing."""

    DEAL = "deal"
    AUCTION = "auction"

    @property
    def other(self) -> "ItemType":
        """Return the counterpart item type."""
        if self is ItemType.DEAL:
            return ItemType.AUCTION
        return ItemType.DEAL


@dataclass
class AuctionDetails:
    """Auction-only fields."""

    end_time: str | None = None
    bid_count: int = 0


def compute_discount_percentage(
    price: float, original_price: float | None,
) -> int:
    """Round ``(original - price) / original`` to a whole percentage.

    Zero unless ``original_price`` is strictly above ``price``.
    """
    if not original_price or original_price <= 0:
        return 0
    if original_price <= price:
        return 0
    return round((original_price - price) / original_price * 100)


def parse_end_time(end_time: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp, treating naive values as UTC."""
    if not end_time or not isinstance(end_time, str):
        return None
    try:
        parsed = datetime.fromisoformat(end_time.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_time_left(
    end_time: str | None, now: datetime | None = None,
) -> str | None:
    """Human-readable remaining time, e.g. ``"2d 5h left"``."""
    end = parse_end_time(end_time)
    if end is None:
        return None
    current = now or datetime.now(timezone.utc)
    remaining = int((end - current).total_seconds())
    if remaining <= 0:
        return "Ended"

    days, rest = divmod(remaining, 86400)
    hours, rest = divmod(rest, 3600)
    minutes = rest // 60

    if days > 0:
        return f"{days}d {hours}h left"
    if hours > 0:
        return f"{hours}h {minutes}m left"
    if minutes > 0:
        return f"{minutes}m left"
    return "Ending soon"


def _score_or_none(value: Any) -> float | None:
    """Accept a 0-100 number, anything else becomes ``None``."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if 0 <= value <= 100:
        return float(value)
    return None


@dataclass
class Listing:
    """Represents a single marketplace listing (deal or auction)."""

    id: str
    item_type: ItemType
    title: str
    price: float
    description: str = ""
    image_url: str = ""
    item_link: str = ""
    original_price: float | None = None
    discount_percentage: int = 0
    seller_reputation: float = 0.0
    seller_feedback_count: int = 0
    condition: str | None = None
    auction: AuctionDetails | None = None
    rarity_score: float | None = None
    risk_score: float | None = None

    def __post_init__(self) -> None:
        # The source value is never trusted
        self.discount_percentage = compute_discount_percentage(
            self.price, self.original_price
        )
        if self.original_price is not None and self.discount_percentage == 0:
            self.original_price = None
        if self.seller_feedback_count < 0:
            self.seller_feedback_count = 0
        self.rarity_score = _score_or_none(self.rarity_score)
        self.risk_score = _score_or_none(self.risk_score)
        if self.item_type is ItemType.AUCTION and self.auction is None:
            self.auction = AuctionDetails()
        elif self.item_type is ItemType.DEAL:
            self.auction = None

    @property
    def end_time(self) -> str | None:
        """Auction end timestamp, ``None`` for deals."""
        if self.auction is None:
            return None
        return self.auction.end_time

    def is_active(self, now: datetime | None = None) -> bool:
        """Deals are always active; auctions need a future end time."""
        if self.item_type is ItemType.DEAL:
            return True
        end = parse_end_time(self.end_time)
        if end is None:
            return False
        current = now or datetime.now(timezone.utc)
        return end > current

    def time_left(self, now: datetime | None = None) -> str | None:
        """Formatted remaining time for auctions, ``None`` for deals."""
        if self.item_type is ItemType.DEAL:
            return None
        return format_time_left(self.end_time, now)

    def with_scores(
        self,
        rarity_score: float | None = None,
        risk_score: float | None = None,
    ) -> "Listing":
        """Return a copy with a new rarity score.

        ``risk_score`` is only replaced when given.
        """
        return replace(
            self,
            rarity_score=rarity_score,
            risk_score=(
                risk_score if risk_score is not None else self.risk_score
            ),
            auction=(
                replace(self.auction) if self.auction is not None else None
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialise to the JSON-safe cache layout."""
        data: dict[str, Any] = {
            "id": self.id,
            "itemType": self.item_type.value,
            "title": self.title,
            "description": self.description,
            "imageUrl": self.image_url,
            "itemLink": self.item_link,
            "price": self.price,
            "originalPrice": self.original_price,
            "discountPercentage": self.discount_percentage,
            "sellerReputation": self.seller_reputation,
            "sellerFeedbackCount": self.seller_feedback_count,
            "condition": self.condition,
            "rarityScore": self.rarity_score,
            "riskScore": self.risk_score,
        }
        if self.auction is not None:
            data["endTime"] = self.auction.end_time
            data["bidCount"] = self.auction.bid_count
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Listing":
        """Rebuild a listing from :meth:`to_dict` output.

        Raises ``KeyError`` / ``ValueError`` / ``TypeError`` on malformed
        input so the cache layer can treat the entry as corrupt.
        """
        item_type = ItemType(data["itemType"])
        auction = None
        if item_type is ItemType.AUCTION:
            end_time = data.get("endTime")
            if end_time is not None and not isinstance(end_time, str):
                raise TypeError(f"endTime must be a string, got {end_time!r}")
            auction = AuctionDetails(
                end_time=end_time,
                bid_count=int(data.get("bidCount") or 0),
            )
        original = data.get("originalPrice")
        return cls(
            id=str(data["id"]),
            item_type=item_type,
            title=str(data["title"]),
            price=float(data["price"]),
            description=str(data.get("description") or ""),
            image_url=str(data.get("imageUrl") or ""),
            item_link=str(data.get("itemLink") or ""),
            original_price=float(original) if original is not None else None,
            seller_reputation=float(data.get("sellerReputation") or 0),
            seller_feedback_count=int(data.get("sellerFeedbackCount") or 0),
            condition=data.get("condition"),
            auction=auction,
            rarity_score=data.get("rarityScore"),
            risk_score=data.get("riskScore"),
        )
