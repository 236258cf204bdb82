"""
Shipping Report Service
Order search, tracking extraction and tag suggestions for the report screen.
"""
import logging
from collections import Counter
from typing import Any, Dict, Iterable, List, Optional, Tuple

import settings
from schemas import ReportResult, ShippingReportOrder, TrackingInfo
from services.errors import ShopifyApiError

logger = logging.getLogger(__name__)

NO_CUSTOMER = "No customer"
NO_ORDERS_WARNING = "No orders found matching the report criteria."
TRUNCATED_REPORT_WARNING = (
    "Showing the first {count} orders. Narrow the search by order number or tag to see the rest."
)
TAG_SUGGESTION_FALLBACK_WARNING = (
    "Unable to load report tag suggestions right now. You can still type tags manually."
)

SHIPPING_REPORT_QUERY = """
query ShippingReportOrders($first: Int!, $after: String, $query: String) {
  orders(first: $first, after: $after, query: $query) {
    edges {
      node {
        id
        name
        customer {
          displayName
        }
        shippingAddress {
          firstName
          lastName
        }
        fulfillments {
          trackingInfo {
            number
            company
            url
          }
        }
      }
    }
    pageInfo {
      hasNextPage
      endCursor
    }
  }
}
"""

REPORT_TAG_SUGGESTIONS_QUERY = """
query ReportTagSuggestions($first: Int!, $after: String) {
  orders(first: $first, after: $after, sortKey: CREATED_AT, reverse: true) {
    edges {
      node {
        tags
      }
    }
    pageInfo {
      hasNextPage
      endCursor
    }
  }
}
"""


# ---------- search query building ----------

def split_comma_values(value: Optional[str]) -> List[str]:
    return [item.strip() for item in (value or "").split(",") if item.strip()]


def escape_search_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace("'", "\\'")


def build_order_search_query(order_numbers: Optional[str] = "", tags: Optional[str] = "") -> str:
    """Shopify search syntax: OR within a filter, AND between filters."""
    parts: List[str] = []

    numbers = split_comma_values(order_numbers)
    if numbers:
        parts.append("(" + " OR ".join(f"name:'{escape_search_value(n)}'" for n in numbers) + ")")

    tag_values = split_comma_values(tags)
    if tag_values:
        parts.append("(" + " OR ".join(f"tag:'{escape_search_value(t)}'" for t in tag_values) + ")")

    return " AND ".join(parts)


# ---------- node mapping ----------

def _clean(value: Any) -> str:
    return str(value or "").strip()


def extract_tracking(node: Dict[str, Any]) -> List[TrackingInfo]:
    tracking: List[TrackingInfo] = []
    for fulfillment in node.get("fulfillments") or []:
        for info in (fulfillment or {}).get("trackingInfo") or []:
            number = _clean((info or {}).get("number"))
            if not number:
                continue
            tracking.append(TrackingInfo(
                number=number,
                company=_clean(info.get("company")),
                url=_clean(info.get("url")),
            ))
    return tracking


def customer_name_for(node: Dict[str, Any]) -> str:
    """Customer display name, else shipping recipient, else a placeholder."""
    customer = node.get("customer") or {}
    display_name = _clean(customer.get("displayName"))
    if display_name:
        return display_name
    shipping = node.get("shippingAddress") or {}
    recipient = " ".join(
        part for part in (_clean(shipping.get("firstName")), _clean(shipping.get("lastName"))) if part
    )
    return recipient or NO_CUSTOMER


def to_report_order(node: Dict[str, Any]) -> Optional[ShippingReportOrder]:
    if not node.get("id") or not node.get("name"):
        return None
    return ShippingReportOrder(
        id=node["id"],
        name=node["name"],
        customer_name=customer_name_for(node),
        tracking=extract_tracking(node),
    )


def filter_report_rows(orders: Iterable[ShippingReportOrder], query: Optional[str]) -> List[ShippingReportOrder]:
    needle = (query or "").strip().lower()
    if not needle:
        return list(orders)
    return [
        order for order in orders
        if needle in " ".join([order.name, order.customer_name, *order.tracking_numbers]).lower()
    ]


# ---------- remote calls ----------

async def generate_shipping_report(
    client: Any,
    order_numbers: Optional[str] = "",
    tags: Optional[str] = "",
    page_size: Optional[int] = None,
    max_pages: Optional[int] = None,
) -> ReportResult:
    """Search orders and collect tracking numbers.

    Raises:
        ShopifyApiError: when the search itself fails.
    """
    search = build_order_search_query(order_numbers, tags)
    logger.info("Generating shipping report query=%r", search)

    orders: List[ShippingReportOrder] = []
    truncated: List[bool] = []
    async for node in client.iter_order_nodes(
        SHIPPING_REPORT_QUERY,
        {"query": search or None},
        page_size=page_size or settings.REPORT_PAGE_SIZE,
        max_pages=max_pages or settings.REPORT_MAX_PAGES,
        on_truncated=lambda: truncated.append(True),
    ):
        order = to_report_order(node)
        if order is not None:
            orders.append(order)

    if not orders:
        return ReportResult(orders=[], warning=NO_ORDERS_WARNING)
    logger.info("Shipping report ready orders=%d truncated=%s", len(orders), bool(truncated))
    if truncated:
        return ReportResult(orders=orders, warning=TRUNCATED_REPORT_WARNING.format(count=len(orders)))
    return ReportResult(orders=orders)


def rank_tags(tag_lists: Iterable[Iterable[str]], limit: int) -> List[str]:
    """Most used first, ties broken alphabetically."""
    counts: Counter = Counter()
    for tags in tag_lists:
        for tag in tags or []:
            normalized = _clean(tag)
            if normalized:
                counts[normalized] += 1
    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [tag for tag, _ in ranked[:limit]]


async def load_tag_suggestions(
    client: Any,
    page_size: Optional[int] = None,
    max_pages: Optional[int] = None,
    limit: Optional[int] = None,
) -> Tuple[List[str], str]:
    """Tags from recent orders plus a warning; failures only produce the warning."""
    tag_lists: List[List[str]] = []
    try:
        async for node in client.iter_order_nodes(
            REPORT_TAG_SUGGESTIONS_QUERY,
            {},
            page_size=page_size or settings.TAG_SUGGESTION_PAGE_SIZE,
            max_pages=max_pages or settings.TAG_SUGGESTION_MAX_PAGES,
        ):
            tag_lists.append(node.get("tags") or [])
    except ShopifyApiError as exc:
        logger.warning("Tag suggestions unavailable: %s", exc.message)
        return [], f"Unable to load report tag suggestions: {exc.message}"
    except Exception:
        logger.exception("Tag suggestions failed unexpectedly")
        return [], TAG_SUGGESTION_FALLBACK_WARNING

    return rank_tags(tag_lists, limit or settings.TAG_SUGGESTION_LIMIT), ""
