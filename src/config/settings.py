# src/config/settings.py

"""Central configuration for the stockwatch service."""

import os
from pathlib import Path

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    """Read an integer environment variable, falling back on bad input."""
    try:
        return int(os.environ.get(name, default))
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """Central configuration for the stockwatch service."""

    # --- Telegram ---
    BOT_TOKEN: str = os.environ.get("BOT_TOKEN", "")
    CHAT_ID: str = os.environ.get("CHAT_ID", "")

    # Optional always-on watch for CHAT_ID
    DEFAULT_PRODUCT_URL: str = os.environ.get("DEFAULT_PRODUCT_URL", "")
    DEFAULT_PINCODE: str = os.environ.get("DEFAULT_PINCODE", "")

    # --- Liveness endpoint ---
    PORT: int = _env_int("PORT", 3000)
    LIVENESS_BODY: str = "Bot is running ✅"

    # --- Storefront ---
    STOREFRONT_HOST: str = os.environ.get("STOREFRONT_HOST", "shop.amul.com")
    STOREFRONT_SOURCE: str = "storefront"  # key in selectors.json
    PINCODE_LENGTH: int = 6

    # --- Polling ---
    POLL_INTERVAL_SECONDS: int = _env_int("POLL_INTERVAL_SECONDS", 120)
    RESTORE_SUBSCRIPTIONS: bool = _env_bool("RESTORE_SUBSCRIPTIONS", True)

    # --- Probing ---
    PAGE_FETCHER: str = os.environ.get("PAGE_FETCHER", "browser")
    HEADLESS: bool = _env_bool("HEADLESS", True)
    PAGE_LOAD_TIMEOUT: float = 15.0     # Seconds for the product page
    LOCATION_WIDGET_TIMEOUT: float = 5.0  # Seconds for the pincode field
    SUGGESTION_TIMEOUT: float = 10.0    # Seconds for pincode suggestions
    CONTENT_TIMEOUT: float = 15.0       # Seconds for modal/product detail
    PREDICATE_POLL_INTERVAL: float = 0.25
    BLOCKED_RESOURCE_TYPES: list[str] = ["image", "media", "font"]
    USER_AGENT: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/131.0.0.0 Safari/537.36"
    )
    BROWSER_ARGS: list[str] = [
        "--no-sandbox",
        "--disable-dev-shm-usage",
        "--disable-gpu",
    ]

    # --- Plain HTTP fetching (PAGE_FETCHER=html) ---
    REQUEST_DELAY: float = 1.0          # Seconds between retries
    MAX_RETRIES: int = 3                # Retry count on transient failures
    CAPTCHA_KEYWORDS: list[str] = [
        "captcha",
        "verify you are human",
        "unusual traffic",
        "automated requests",
    ]

    # --- Browser Impersonation ---
    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome131"
    DEFAULT_HEADERS: dict[str, str] = {
        "Accept": (
            "text/html,application/xhtml+xml,"
            "application/xml;q=0.9,image/avif,"
            "image/webp,image/apng,*/*;q=0.8"
        ),
        "Accept-Language": "en-IN,en;q=0.9",
        "sec-ch-ua": (
            '"Google Chrome";v="131", '
            '"Chromium";v="131", '
            '"Not_A Brand";v="24"'
        ),
        "sec-ch-ua-mobile": "?0",
        "sec-ch-ua-platform": '"Windows"',
        "sec-fetch-dest": "document",
        "sec-fetch-mode": "navigate",
        "sec-fetch-site": "none",
        "sec-fetch-user": "?1",
        "Upgrade-Insecure-Requests": "1",
    }

    # --- Logging ---
    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "WARNING").upper()

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    SELECTORS_PATH: Path = BASE_DIR / "src" / "config" / "selectors.json"
    DATA_DIR: Path = BASE_DIR / "data"
    STATUS_FILE: Path = Path(
        os.environ.get("STATUS_FILE", str(DATA_DIR / "stock_status.json"))
    )
    LOGS_DIR: Path = BASE_DIR / "logs"
