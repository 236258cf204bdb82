"""
Shopify Admin GraphQL client.

Thin async wrapper around the Admin API ``graphql.json`` endpoint covering the
calls the importer and reports need: order creation, customer lookup/creation
and cursor-paginated order searches. Requests are issued one at a time and
never retried; callers decide how a failure is reported.
"""
from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

import httpx

import settings
from schemas import OrderCreateResult
from services.errors import ShopifyApiError, ShopifyNotConfiguredError

logger = logging.getLogger(__name__)

ORDER_CREATE_MUTATION = """
mutation OrderCreate($order: OrderCreateOrderInput!) {
  orderCreate(order: $order) {
    order {
      id
      name
    }
    userErrors {
      field
      message
    }
  }
}
"""

CUSTOMER_BY_EMAIL_QUERY = """
query CustomerByEmail($query: String!) {
  customers(first: 1, query: $query) {
    edges {
      node {
        id
        email
      }
    }
  }
}
"""

CUSTOMER_CREATE_MUTATION = """
mutation CustomerCreate($input: CustomerInput!) {
  customerCreate(input: $input) {
    customer {
      id
    }
    userErrors {
      field
      message
    }
  }
}
"""


def join_error_messages(errors: Optional[List[Dict[str, Any]]]) -> str:
    return "; ".join(str((error or {}).get("message") or error) for error in errors or [])


class ShopifyAdminClient:
    """Admin GraphQL client bound to one shop.

    Example:
        client = ShopifyAdminClient("mystore.myshopify.com", "shpat_xxxx")
        result = await client.create_order({"email": "a@b.co", "lineItems": [...]})
    """

    def __init__(
        self,
        shop_domain: str,
        access_token: str,
        api_version: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        domain = settings.normalize_shop_domain(shop_domain)
        if not domain or not access_token:
            raise ShopifyNotConfiguredError("Shopify shop domain and access token are required.")
        self.shop_domain = domain
        self._access_token = access_token
        self.api_version = api_version or settings.SHOPIFY_API_VERSION
        self._timeout = timeout if timeout is not None else settings.SHOPIFY_REQUEST_TIMEOUT_SECONDS
        self._transport = transport

    @classmethod
    def from_settings(
        cls,
        shop_domain: Optional[str] = None,
        access_token: Optional[str] = None,
    ) -> "ShopifyAdminClient":
        """Build a client from explicit credentials, falling back to env defaults."""
        return cls(
            shop_domain or settings.SHOPIFY_SHOP_DOMAIN,
            access_token or settings.SHOPIFY_ACCESS_TOKEN,
        )

    @property
    def endpoint(self) -> str:
        return f"https://{self.shop_domain}/admin/api/{self.api_version}/graphql.json"

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "X-Shopify-Access-Token": self._access_token,
        }

    # ---------- transport ----------

    async def graphql(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """POST a GraphQL document and return the decoded response body.

        Top-level ``errors`` are left in the body for the caller to inspect.

        Raises:
            ShopifyApiError: on network failures, HTTP >= 400 or a non-JSON body.
        """
        payload = {"query": query, "variables": variables or {}}
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(self.endpoint, json=payload, headers=self._headers())
        except httpx.RequestError as exc:
            raise ShopifyApiError(f"Network error while calling Shopify: {exc}") from exc

        if response.status_code >= 400:
            raise ShopifyApiError(
                f"GraphQL request failed with status {response.status_code}",
                status_code=502,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise ShopifyApiError("Shopify returned a non-JSON response") from exc
        if not isinstance(body, dict):
            raise ShopifyApiError("Shopify returned an unexpected response shape")
        return body

    async def query_data(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Like ``graphql`` but raises on top-level errors and returns ``data``."""
        body = await self.graphql(query, variables)
        errors = body.get("errors")
        if errors:
            raise ShopifyApiError(join_error_messages(errors))
        data = body.get("data")
        if not isinstance(data, dict):
            raise ShopifyApiError("Shopify response is missing data")
        return data

    # ---------- orders ----------

    async def create_order(self, order_input: Dict[str, Any]) -> OrderCreateResult:
        """Run ``orderCreate``; every failure is folded into the returned result."""
        try:
            body = await self.graphql(ORDER_CREATE_MUTATION, {"order": order_input})
        except ShopifyApiError as exc:
            return OrderCreateResult.failure(exc.message)
        except Exception as exc:
            logger.exception("Unexpected error while creating order")
            return OrderCreateResult.failure(str(exc) or "Unexpected error while creating order.")

        errors = body.get("errors")
        if errors:
            return OrderCreateResult.failure(join_error_messages(errors))

        payload = (body.get("data") or {}).get("orderCreate") or {}
        user_errors = payload.get("userErrors") or []
        if user_errors:
            return OrderCreateResult.failure(join_error_messages(user_errors))

        order = payload.get("order") or {}
        if not order.get("id"):
            return OrderCreateResult.failure("Unknown orderCreate response.")
        return OrderCreateResult.success(order["id"], order.get("name"))

    async def iter_order_nodes(
        self,
        query: str,
        variables: Optional[Dict[str, Any]] = None,
        page_size: int = 250,
        max_pages: int = 10,
        on_truncated: Optional[Callable[[], None]] = None,
    ) -> AsyncIterator[Dict[str, Any]]:
        """Yield ``orders`` connection nodes page by page.

        ``query`` must accept ``$first`` and ``$after`` and select
        ``pageInfo { hasNextPage endCursor }``. Iteration ends on the last page,
        an empty page, a missing cursor or after ``max_pages`` pages. When the
        ceiling cuts off remaining pages ``on_truncated`` is called.
        """
        cursor: Optional[str] = None
        for page in range(max(1, max_pages)):
            page_vars = {**(variables or {}), "first": page_size, "after": cursor}
            data = await self.query_data(query, page_vars)
            connection = data.get("orders") or {}
            edges = connection.get("edges") or []
            if not edges:
                return

            for edge in edges:
                node = (edge or {}).get("node")
                if node:
                    yield node

            page_info = connection.get("pageInfo") or {}
            cursor = page_info.get("endCursor")
            if not page_info.get("hasNextPage") or not cursor:
                return
            if page + 1 >= max_pages:
                logger.info("Order pagination stopped at page ceiling max_pages=%d", max_pages)
                if on_truncated is not None:
                    on_truncated()
                return

    # ---------- customers ----------

    async def find_customer_id(self, email: str) -> Optional[str]:
        safe_email = email.replace("\\", "\\\\").replace('"', '\\"')
        data = await self.query_data(CUSTOMER_BY_EMAIL_QUERY, {"query": f'email:"{safe_email}"'})
        for edge in (data.get("customers") or {}).get("edges") or []:
            node = (edge or {}).get("node") or {}
            if node.get("id"):
                return node["id"]
        return None

    async def create_customer(
        self,
        email: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> str:
        customer_input: Dict[str, Any] = {"email": email}
        if first_name:
            customer_input["firstName"] = first_name
        if last_name:
            customer_input["lastName"] = last_name

        data = await self.query_data(CUSTOMER_CREATE_MUTATION, {"input": customer_input})
        payload = data.get("customerCreate") or {}
        user_errors = payload.get("userErrors") or []
        if user_errors:
            raise ShopifyApiError(join_error_messages(user_errors))
        customer_id = (payload.get("customer") or {}).get("id")
        if not customer_id:
            raise ShopifyApiError("Unknown customerCreate response.")
        return customer_id

    async def find_or_create_customer(
        self,
        email: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> str:
        customer_id = await self.find_customer_id(email)
        if customer_id:
            return customer_id
        logger.info("No customer for email, creating one shop=%s", self.shop_domain)
        return await self.create_customer(email, first_name, last_name)
