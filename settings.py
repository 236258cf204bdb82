"""
Centralized configuration for the CSV order importer.
"""
from __future__ import annotations

import os
from typing import Any, Optional

from dotenv import load_dotenv

load_dotenv()


def env_int(name: str, default: int) -> int:
    """Read an integer env var, falling back to ``default`` on blanks/garbage."""
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


# ---- Shopify Admin API ----
SHOPIFY_SHOP_DOMAIN: str = os.getenv("SHOPIFY_SHOP_DOMAIN", "")
SHOPIFY_ACCESS_TOKEN: str = os.getenv("SHOPIFY_ACCESS_TOKEN", "")
SHOPIFY_API_VERSION: str = os.getenv("SHOPIFY_API_VERSION", "2025-01")
SHOPIFY_REQUEST_TIMEOUT_SECONDS: float = float(os.getenv("SHOPIFY_REQUEST_TIMEOUT_SECONDS", "30"))

# ---- Import behaviour ----
IMPORT_PROFILE: str = os.getenv("IMPORT_PROFILE", "variant").strip().lower() or "variant"
# "email" sends the row email on the order, "customer" links an existing/new customer record
ORDER_LINKAGE: str = os.getenv("ORDER_LINKAGE", "email").strip().lower() or "email"
DEFAULT_COUNTRY_CODE: str = os.getenv("DEFAULT_COUNTRY_CODE", "US").strip().upper() or "US"

GIFT_LINE_TITLE: str = os.getenv("GIFT_LINE_TITLE", "Corporate Gift")
GIFT_LINE_PRICE: str = os.getenv("GIFT_LINE_PRICE", "0.00")
GIFT_LINE_CURRENCY: str = os.getenv("GIFT_LINE_CURRENCY", "USD").strip().upper() or "USD"
GIFT_LINE_QUANTITY: int = env_int("GIFT_LINE_QUANTITY", 1)

MAX_CSV_SIZE_MB: float = float(os.getenv("MAX_CSV_SIZE_MB", "10"))

# ---- Reports ----
REPORT_PAGE_SIZE: int = env_int("REPORT_PAGE_SIZE", 250)
REPORT_MAX_PAGES: int = env_int("REPORT_MAX_PAGES", 10)
TAG_SUGGESTION_PAGE_SIZE: int = env_int("TAG_SUGGESTION_PAGE_SIZE", 100)
TAG_SUGGESTION_MAX_PAGES: int = env_int("TAG_SUGGESTION_MAX_PAGES", 3)
TAG_SUGGESTION_LIMIT: int = env_int("TAG_SUGGESTION_LIMIT", 100)

ORDER_LINKAGE_MODES: tuple[str, ...] = ("email", "customer")


def normalize_shop_domain(value: Optional[Any]) -> Optional[str]:
    """Strip scheme/trailing slashes and lower-case a shop domain."""
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    text = text.replace("https://", "").replace("http://", "")
    text = text.rstrip("/")
    return text.lower() or None


def resolve_order_linkage(value: Optional[str] = None) -> str:
    """Pick a valid linkage mode, defaulting to ORDER_LINKAGE then "email"."""
    for candidate in (value, ORDER_LINKAGE):
        normalized = (candidate or "").strip().lower()
        if normalized in ORDER_LINKAGE_MODES:
            return normalized
    return "email"
