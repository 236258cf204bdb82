"""
Shared FastAPI dependencies.
"""
from typing import Optional

from fastapi import Header, HTTPException

from services.errors import ShopifyNotConfiguredError
from services.shopify_client import ShopifyAdminClient


def get_shopify_client(
    x_shopify_shop_domain: Optional[str] = Header(None),
    x_shopify_access_token: Optional[str] = Header(None),
) -> ShopifyAdminClient:
    """
    Admin API client for the current request.

    The embedded front end forwards the session's shop domain and offline
    token in headers; without them the env credentials are used.
    """
    try:
        return ShopifyAdminClient.from_settings(x_shopify_shop_domain, x_shopify_access_token)
    except ShopifyNotConfiguredError as exc:
        raise HTTPException(status_code=503, detail=str(exc))
