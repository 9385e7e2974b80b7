# src/models/feed_state.py

"""View-facing state for one (item type, query) feed."""

from dataclasses import dataclass, field

from src.models.listing import ItemType, Listing


@dataclass
class FeedState:
    """What the presentation layer renders for the active feed.

    ``notices`` are informational and never imply failure; ``error``
    is only set for auth failures or when every source failed.
    """

    item_type: ItemType
    query: str = ""
    items: list[Listing] = field(
        default_factory=lambda: list[Listing]()
    )
    is_loading: bool = False
    is_qualifying: bool = False
    is_loading_more: bool = False
    error: str | None = None
    is_auth_error: bool = False
    notices: list[str] = field(
        default_factory=lambda: list[str]()
    )
    offset: int = 0
    has_more: bool = True
    from_cache: bool = False
    top_up_attempted: bool = False

    @property
    def is_curated(self) -> bool:
        """True for the no-query landing feed."""
        return not self.query

    @property
    def ids(self) -> set[str]:
        """Ids currently held in the feed."""
        return {item.id for item in self.items}
