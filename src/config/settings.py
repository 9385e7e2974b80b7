# src/config/settings.py

"""Central configuration for the baybot listing engine."""

import os
from pathlib import Path

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Central configuration for the baybot listing engine."""

    # --- Credentials (from .env) ---
    EBAY_APP_ID: str = os.environ.get("EBAY_APP_ID", "")
    EBAY_CERT_ID: str = os.environ.get("EBAY_CERT_ID", "")
    GEMINI_API_KEY: str = os.environ.get("GEMINI_API_KEY", "")
    GEMINI_MODEL: str = os.environ.get(
        "GEMINI_MODEL", "gemini-2.0-flash"
    )

    # --- Marketplace endpoints ---
    EBAY_OAUTH_URL: str = (
        "https://api.ebay.com/identity/v1/oauth2/token"
    )
    EBAY_FINDING_URL: str = (
        "https://svcs.ebay.com/services/search/FindingService/v1"
    )
    EBAY_GLOBAL_ID: str = "EBAY-GB"
    EBAY_SITE_ID: str = "3"
    TOKEN_REFRESH_MARGIN: float = 300.0  # Refresh token 5 min early

    # --- AI endpoint ---
    GEMINI_API_BASE: str = (
        "https://generativelanguage.googleapis.com/v1beta"
    )
    AI_MAX_RETRIES: int = 3             # Retries on 429/503
    AI_MAX_BACKOFF: float = 20.0        # Seconds

    # --- HTTP ---
    REQUEST_DELAY: float = 0.5          # Back-off unit between retries
    REQUEST_TIMEOUT: int = 15           # Seconds before a request times out
    MAX_RETRIES: int = 3                # Retry count on transient failures
    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome131"
    DEFAULT_HEADERS: dict[str, str] = {
        "Accept": "application/json",
        "Accept-Language": "en-GB,en;q=0.9",
    }

    # --- Acquisition ---
    API_FETCH_LIMIT: int = 20           # Listings per source search
    MIN_DESIRED_CURATED_ITEMS: int = 16
    MIN_AI_QUALIFIED_ITEMS_THRESHOLD: int = 8
    KEYWORDS_PER_BATCH: int = 3
    MAX_TOTAL_KEYWORDS_INITIAL: int = 9
    MAX_CURATED_FETCH_ATTEMPTS: int = 4  # Keyword budget for load-more
    TARGET_RAW_ITEMS_FACTOR: int = 2    # Raw overfetch before the AI pass
    TOP_UP_KEYWORDS: int = 2
    KEYWORDS_FOR_BACKGROUND_CACHE: int = 2
    AI_EMPTY_FALLS_BACK_TO_RAW: bool = True

    # --- Cache ---
    CURATED_CACHE_TTL: float = 3600.0   # 1 hour
    SEARCHED_CACHE_TTL: float = 300.0   # 5 minutes
    SOFT_REFRESH_AGE: float = 2700.0    # Deal pools older than this refresh

    # --- Auctions ---
    EXPIRY_TICK_SECONDS: float = 1.0

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    LOGS_DIR: Path = BASE_DIR / "logs"

    # --- Curated vocabulary ---
    CURATED_SEARCH_TERMS: list[str] = [
        "Tablets",
        "laptops",
        "Apple",
        "Samsung",
        "Samsung phone",
        "macbook",
        "iphone",
        "ipad",
        "apple watch",
        "airpods",
        "Games",
        "playstation",
        "dj controller pioneer",
        "PS5",
        "PS5 Console",
        "Ps4",
        "PS4 Console",
        "xbox",
        "Logitech",
        "Guitars",
        "Ghost of Tsushima",
        "Monitor",
        "TV",
        "nintendo switch",
        "The Last of Us",
        "Steam Deck",
        "yamaha keyboard",
        "acoustic guitar",
    ]
