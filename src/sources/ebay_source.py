# src/sources/ebay_source.py

"""Listing source for eBay (UK) via the Finding API."""

import base64
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any

from curl_cffi import requests as curl_requests

from src.config.settings import Settings
from src.exceptions import AuthFailure, SourceUnavailable
from src.models.listing import AuctionDetails, ItemType, Listing
from src.sources.base_source import ListingSource

PLACEHOLDER_IMAGE = "https://placehold.co/600x400.png"
DEFAULT_SELLER_REPUTATION = 70.0

_AUTH_MARKERS = ("invalid_client", "authentication", "invalid application")


@dataclass
class _Token:
    access_token: str
    expires_at: float


def _first(value: Any, default: Any = None) -> Any:
    """Finding API wraps every scalar in a one-element list."""
    if isinstance(value, list):
        return value[0] if value else default
    return value if value is not None else default


def _money(value: Any) -> float | None:
    entry = _first(value)
    if not isinstance(entry, dict):
        return None
    raw = entry.get("__value__")
    if raw in (None, ""):
        return None
    return float(raw)


class EbaySource(ListingSource):
    """eBay Finding API source with a cached client-credentials token.

    The token is shared by every search on this instance and refreshed
    ``TOKEN_REFRESH_MARGIN`` seconds before it expires.
    """

    source_name = "ebay"

    def __init__(self) -> None:
        self.logger = logging.getLogger("baybot.ebay")
        self.settings = Settings()
        self.session = curl_requests.Session(
            impersonate=self.settings.IMPERSONATE_BROWSER
        )
        self._token: _Token | None = None
        self._token_lock = threading.Lock()

    # ── Auth ─────────────────────────────────────────────

    def _get_token(self) -> str:
        """Return a valid OAuth token, exchanging credentials if needed.

        Concurrent searches on a cold instance share one exchange.
        """
        with self._token_lock:
            if self._token and time.time() < self._token.expires_at:
                return self._token.access_token
            return self._refresh_token()

    def _refresh_token(self) -> str:
        app_id = self.settings.EBAY_APP_ID
        cert_id = self.settings.EBAY_CERT_ID
        if not app_id or not cert_id:
            raise AuthFailure(
                "eBay App ID or Cert ID is not configured"
            )

        credentials = base64.b64encode(
            f"{app_id}:{cert_id}".encode()
        ).decode()
        headers = {
            "Content-Type": "application/x-www-form-urlencoded",
            "Authorization": f"Basic {credentials}",
        }
        body = (
            "grant_type=client_credentials"
            "&scope=https://api.ebay.com/oauth/api_scope"
        )

        resp = self._request(
            "POST", self.settings.EBAY_OAUTH_URL, headers=headers, data=body
        )
        try:
            data: dict[str, Any] = resp.json()
            if not isinstance(data, dict):
                raise TypeError(f"expected an object, got {type(data).__name__}")
            token = str(data.get("access_token") or "")
            expires_in = float(data.get("expires_in") or 7200)
        except (ValueError, TypeError) as exc:
            raise SourceUnavailable(
                f"Malformed eBay OAuth response: {exc}"
            ) from exc
        if not token:
            raise AuthFailure("eBay OAuth response carried no access token")
        self._token = _Token(
            access_token=token,
            expires_at=(
                time.time() + expires_in - self.settings.TOKEN_REFRESH_MARGIN
            ),
        )
        self.logger.info("[ebay] OAuth token refreshed")
        return token

    # ── HTTP ─────────────────────────────────────────────

    def _request(
        self,
        method: str,
        url: str,
        *,
        keyword: str = "",
        **kwargs: Any,
    ) -> curl_requests.Response:
        """Send a request with retries.

        401 and auth-flavoured 400 responses raise ``AuthFailure``
        immediately; everything else is retried, then reported as
        ``SourceUnavailable``.
        """
        last_status: int | None = None
        for attempt in range(self.settings.MAX_RETRIES):
            try:
                resp = self.session.request(
                    method,
                    url,
                    timeout=self.settings.REQUEST_TIMEOUT,
                    **kwargs,
                )
            except Exception as exc:
                self.logger.warning(
                    "[ebay] Request error on attempt %d: %s",
                    attempt + 1,
                    exc,
                    exc_info=True,
                )
                time.sleep(self.settings.REQUEST_DELAY * (attempt + 1))
                continue

            if resp.status_code == 200:
                return resp
            last_status = resp.status_code
            if self._is_auth_rejection(resp):
                raise AuthFailure(
                    f"eBay rejected credentials (HTTP {resp.status_code})"
                )
            self.logger.warning(
                "[ebay] HTTP %d on attempt %d",
                resp.status_code,
                attempt + 1,
            )
            time.sleep(self.settings.REQUEST_DELAY * (attempt + 1))

        raise SourceUnavailable(
            f"eBay request failed after {self.settings.MAX_RETRIES} attempts",
            keyword=keyword,
            status_code=last_status,
        )

    @staticmethod
    def _is_auth_rejection(resp: curl_requests.Response) -> bool:
        if resp.status_code == 401:
            return True
        if resp.status_code in (400, 403):
            lower = resp.text.lower()
            return any(marker in lower for marker in _AUTH_MARKERS)
        return False

    # ── Parsing ──────────────────────────────────────────

    def _build_params(
        self,
        item_type: ItemType,
        keyword: str,
        offset: int,
        limit: int,
    ) -> dict[str, str]:
        listing_type = "FixedPrice" if item_type is ItemType.DEAL else "Auction"
        sort_order = (
            "PricePlusShippingLowest"
            if item_type is ItemType.DEAL
            else "EndTimeSoonest"
        )
        page_number = offset // limit + 1 if limit > 0 else 1
        return {
            "OPERATION-NAME": "findItemsAdvanced",
            "SERVICE-VERSION": "1.0.0",
            "SECURITY-APPNAME": self.settings.EBAY_APP_ID,
            "RESPONSE-DATA-FORMAT": "JSON",
            "REST-PAYLOAD": "",
            "GLOBAL-ID": self.settings.EBAY_GLOBAL_ID,
            "siteid": self.settings.EBAY_SITE_ID,
            "keywords": keyword,
            "outputSelector(0)": "PictureURLLarge",
            "outputSelector(1)": "SellerInfo",
            "outputSelector(2)": "GalleryInfo",
            "outputSelector(3)": "DiscountPriceInfo",
            "itemFilter(0).name": "ListingType",
            "itemFilter(0).value(0)": listing_type,
            "itemFilter(1).name": "MinPrice",
            "itemFilter(1).value": "0.01",
            "itemFilter(2).name": "HideDuplicateItems",
            "itemFilter(2).value": "true",
            "sortOrder": sort_order,
            "paginationInput.entriesPerPage": str(limit),
            "paginationInput.pageNumber": str(page_number),
        }

    def _parse_item(
        self, raw: dict[str, Any], item_type: ItemType,
    ) -> Listing | None:
        """Map one Finding API item onto a Listing, ``None`` if unusable."""
        try:
            item_id = str(_first(raw["itemId"]))
            title = str(_first(raw["title"]))
            selling = _first(raw["sellingStatus"], {})
            price = _money(selling.get("currentPrice"))
            if price is None:
                return None

            discount_info = _first(raw.get("discountPriceInfo"), {}) or {}
            original_price = _money(discount_info.get("originalRetailPrice"))

            seller = _first(raw.get("sellerInfo"), {}) or {}
            reputation_raw = _first(seller.get("positiveFeedbackPercent"))
            feedback_raw = _first(seller.get("feedbackScore"))

            condition_info = _first(raw.get("condition"), {}) or {}
            condition = _first(condition_info.get("conditionDisplayName"))

            link = str(_first(raw.get("viewItemURL"), "") or "")
            image = str(
                _first(raw.get("pictureURLLarge"))
                or _first(raw.get("galleryURL"))
                or PLACEHOLDER_IMAGE
            )

            auction = None
            if item_type is ItemType.AUCTION:
                listing_info = _first(raw.get("listingInfo"), {}) or {}
                bid_raw = _first(selling.get("bidCount"))
                auction = AuctionDetails(
                    end_time=_first(listing_info.get("endTime")),
                    bid_count=int(bid_raw) if bid_raw else 0,
                )

            return Listing(
                id=item_id,
                item_type=item_type,
                title=title,
                price=price,
                description=f"View this item on eBay: {link or title}",
                image_url=image,
                item_link=link,
                original_price=original_price,
                seller_reputation=(
                    float(reputation_raw)
                    if reputation_raw not in (None, "")
                    else DEFAULT_SELLER_REPUTATION
                ),
                seller_feedback_count=(
                    int(feedback_raw) if feedback_raw not in (None, "") else 0
                ),
                condition=str(condition) if condition else None,
                auction=auction,
            )
        except (KeyError, IndexError, TypeError, ValueError, AttributeError) as exc:
            self.logger.warning(
                "[ebay] Skipping unparseable item: %s", exc
            )
            return None

    # ── Public API ───────────────────────────────────────

    def search(
        self,
        item_type: ItemType,
        keyword: str,
        offset: int = 0,
        limit: int = 20,
    ) -> list[Listing]:
        """Search eBay for ``keyword`` listings of ``item_type``."""
        token = self._get_token()
        headers: dict[str, str] = {
            **self.settings.DEFAULT_HEADERS,
            "Authorization": f"Bearer {token}",
        }
        resp = self._request(
            "GET",
            self.settings.EBAY_FINDING_URL,
            keyword=keyword,
            headers=headers,
            params=self._build_params(item_type, keyword, offset, limit),
        )

        try:
            data: dict[str, Any] = resp.json()
            envelope = _first(next(iter(data.values())), {})
            if not isinstance(envelope, dict):
                raise TypeError(f"envelope is {type(envelope).__name__}")
        except (ValueError, StopIteration, AttributeError, TypeError) as exc:
            raise SourceUnavailable(
                f"Malformed eBay response for '{keyword}'", keyword=keyword
            ) from exc

        if _first(envelope.get("ack")) == "Failure":
            message = str(envelope.get("errorMessage", ""))
            if any(m in message.lower() for m in _AUTH_MARKERS):
                raise AuthFailure(f"eBay rejected the application: {message}")
            raise SourceUnavailable(
                f"eBay search failed for '{keyword}'", keyword=keyword
            )

        search_result = _first(envelope.get("searchResult"), {}) or {}
        if not isinstance(search_result, dict):
            raise SourceUnavailable(
                f"Malformed eBay search result for '{keyword}'", keyword=keyword
            )
        raw_items: list[dict[str, Any]] = search_result.get("item", []) or []
        if not raw_items:
            self.logger.info(
                "[ebay] No %s listings for '%s'", item_type.value, keyword
            )
            return []

        listings = [
            listing
            for listing in (self._parse_item(r, item_type) for r in raw_items)
            if listing is not None
        ]
        if item_type is ItemType.DEAL:
            listings.sort(key=lambda l: l.discount_percentage, reverse=True)

        self.logger.info(
            "[ebay] %d %s listings for '%s' (offset %d)",
            len(listings),
            item_type.value,
            keyword,
            offset,
        )
        return listings
