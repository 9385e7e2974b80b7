# src/sources/base_source.py

"""Abstract base class for marketplace listing sources."""

from abc import ABC, abstractmethod

from src.models.listing import ItemType, Listing


class ListingSource(ABC):
    """Uniform search contract over one marketplace.

    Implementations raise :class:`~src.exceptions.AuthFailure` for
    credential problems and :class:`~src.exceptions.SourceUnavailable`
    for transport problems. No results is an empty list, not an error.
    Implementations must not touch shared state beyond their own
    HTTP session.
    """

    source_name: str = "source"

    @abstractmethod
    def search(
        self,
        item_type: ItemType,
        keyword: str,
        offset: int = 0,
        limit: int = 20,
    ) -> list[Listing]:
        """Return up to ``limit`` listings for ``keyword``."""
        ...
