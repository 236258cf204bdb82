"""
Shipping Report Router
Order search by number/tag with tracking numbers, plus CSV exports.
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from pydantic import BaseModel, ConfigDict, Field

from routers.dependencies import get_shopify_client
from schemas import ShippingReportOrder
from services.csv_export import (
    build_shipping_report_csv,
    build_tracking_export_csv,
    export_filename,
)
from services.errors import ShopifyApiError
from services.shipping_report import (
    NO_ORDERS_WARNING,
    filter_report_rows,
    generate_shipping_report,
    load_tag_suggestions,
)
from services.shopify_client import ShopifyAdminClient

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/report", tags=["shipping-report"])


class ShippingReportRequest(BaseModel):
    order_numbers: str = Field("", alias="orderNumbers")
    search_tags: str = Field("", alias="searchTags")
    table_query: str = Field("", alias="tableQuery")

    model_config = ConfigDict(populate_by_name=True)


async def _report_rows(request: ShippingReportRequest, client: ShopifyAdminClient):
    try:
        report = await generate_shipping_report(client, request.order_numbers, request.search_tags)
    except ShopifyApiError as exc:
        logger.warning("[report] shop=%s failed: %s", client.shop_domain, exc.message)
        raise HTTPException(status_code=exc.status_code, detail=exc.message)
    except Exception:
        logger.exception("[report] shop=%s unexpected failure", client.shop_domain)
        raise HTTPException(status_code=500, detail="Failed to generate shipping report")
    return report


def _csv_attachment(content: str, prefix: str) -> Response:
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={export_filename(prefix)}"},
    )


async def _rows_for_export(request: ShippingReportRequest, client: ShopifyAdminClient) -> List[ShippingReportOrder]:
    report = await _report_rows(request, client)
    rows = filter_report_rows(report.orders, request.table_query)
    if not rows:
        raise HTTPException(status_code=404, detail=NO_ORDERS_WARNING)
    return rows


@router.get("/tag-suggestions")
async def tag_suggestions(client: ShopifyAdminClient = Depends(get_shopify_client)):
    tags, warning = await load_tag_suggestions(client)
    return {"tags": tags, "warning": warning}


@router.post("/shipping")
async def shipping_report(
    request: ShippingReportRequest,
    client: ShopifyAdminClient = Depends(get_shopify_client),
):
    """Orders with their tracking numbers; ``tableQuery`` narrows the rows."""
    report = await _report_rows(request, client)
    if request.table_query:
        report.orders = filter_report_rows(report.orders, request.table_query)
    return report.to_dict()


@router.post("/shipping/export")
async def export_shipping_report(
    request: ShippingReportRequest,
    client: ShopifyAdminClient = Depends(get_shopify_client),
):
    rows = await _rows_for_export(request, client)
    return _csv_attachment(build_shipping_report_csv(rows), "shipping-report")


@router.post("/tracking/export")
async def export_tracking(
    request: ShippingReportRequest,
    client: ShopifyAdminClient = Depends(get_shopify_client),
):
    rows = await _rows_for_export(request, client)
    return _csv_attachment(build_tracking_export_csv(rows), "tracking-export")
