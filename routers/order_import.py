"""
Order Import Router
CSV preview, order creation and template download.
"""
import logging
import uuid
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import Response
from pydantic import BaseModel, ConfigDict, Field, field_validator

import settings
from routers.dependencies import get_shopify_client
from schemas import InvalidRow, OrderDraft, PreviewRow
from services.csv_tokenizer import decode_upload
from services.errors import UnknownImportProfileError
from services.import_profiles import PROFILE_NAMES, ImportProfile, get_import_profile
from services.order_importer import OrderImporter, parse_csv_to_orders
from services.row_validator import merge_tags, parse_tags
from services.shopify_client import ShopifyAdminClient

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/orders", tags=["order-import"])


# ---------- request models ----------

class PreviewRowPayload(BaseModel):
    """A preview row echoed back by the front end; display fields pass through."""
    row_number: int = Field(..., alias="rowNumber", ge=1)

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    def to_preview(self) -> PreviewRow:
        fields = {key: "" if value is None else str(value) for key, value in (self.model_extra or {}).items()}
        fields.pop("errorMessage", None)
        return PreviewRow(row_number=self.row_number, fields=fields)


class InvalidRowPayload(PreviewRowPayload):
    error_message: str = Field("", alias="errorMessage")

    def to_invalid(self) -> InvalidRow:
        return InvalidRow(preview=self.to_preview(), error_message=self.error_message)


class OrderDraftPayload(BaseModel):
    order_key: str = Field(..., alias="orderKey", min_length=1)
    row_numbers: List[int] = Field(..., alias="rowNumbers", min_length=1)
    input: Dict[str, Any]
    first_name: Optional[str] = Field(None, alias="firstName")
    last_name: Optional[str] = Field(None, alias="lastName")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("input")
    @classmethod
    def _require_line_items(cls, value: Dict[str, Any]) -> Dict[str, Any]:
        line_items = value.get("lineItems")
        if not isinstance(line_items, list) or not line_items:
            raise ValueError("input.lineItems must be a non-empty list")
        return value

    def to_draft(self) -> OrderDraft:
        return OrderDraft(
            order_key=self.order_key,
            row_numbers=list(self.row_numbers),
            input=dict(self.input),
            first_name=self.first_name,
            last_name=self.last_name,
        )


class ImportOrdersRequest(BaseModel):
    """Payload posted after the merchant confirms the preview."""
    row_count: Optional[int] = Field(None, alias="rowCount", ge=0)
    orders: List[OrderDraftPayload]
    preview_rows: List[PreviewRowPayload] = Field(default_factory=list, alias="previewRows")
    invalid_rows: List[InvalidRowPayload] = Field(default_factory=list, alias="invalidRows")
    tags: Optional[Union[str, List[str]]] = None
    linkage: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)

    @property
    def tag_list(self) -> Optional[List[str]]:
        if isinstance(self.tags, list):
            return merge_tags(self.tags) or None
        return parse_tags(self.tags)


# ---------- helpers ----------

def _resolve_profile(name: Optional[str]) -> ImportProfile:
    try:
        return get_import_profile(name)
    except UnknownImportProfileError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


async def _read_csv_upload(file: UploadFile, request_id: str) -> str:
    logger.info(f"[{request_id}] Upload attempt filename={file.filename!r} content_type={file.content_type!r}")

    if not file.filename or not file.filename.lower().endswith(".csv"):
        logger.warning(f"[{request_id}] Reject non-CSV filename={file.filename!r}")
        raise HTTPException(status_code=400, detail="Please upload a .csv file.")

    content = await file.read()
    size = len(content or b"")
    logger.info(f"[{request_id}] Received payload size={size} bytes")

    if size == 0:
        raise HTTPException(status_code=400, detail="Empty file")

    max_bytes = settings.MAX_CSV_SIZE_MB * 1024 * 1024
    if size > max_bytes:
        raise HTTPException(
            status_code=413,
            detail=f"File too large. Maximum size is {settings.MAX_CSV_SIZE_MB:g}MB",
        )
    return decode_upload(content)


# ---------- endpoints ----------

@router.get("/profiles")
async def list_profiles():
    """Describe the supported CSV layouts."""
    profiles = [get_import_profile(name) for name in PROFILE_NAMES]
    return {
        "default": get_import_profile().name,
        "profiles": [
            {
                "name": profile.name,
                "description": profile.description,
                "requiredColumns": list(profile.required_columns),
                "optionalColumns": list(profile.optional_columns),
            }
            for profile in profiles
        ],
    }


@router.get("/template")
async def download_template(profile: Optional[str] = None):
    """Example CSV for the selected profile."""
    selected = _resolve_profile(profile)
    return Response(
        content=selected.example_csv(),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename=orders-template-{selected.name}.csv"},
    )


@router.post("/preview")
async def preview_upload(
    file: UploadFile = File(...),
    profile: Optional[str] = Form(None),
):
    """Parse and validate an upload without creating anything."""
    request_id = str(uuid.uuid4())
    selected = _resolve_profile(profile)
    csv_text = await _read_csv_upload(file, request_id)

    parsed = parse_csv_to_orders(csv_text, selected)
    logger.info(
        f"[{request_id}] Preview profile={selected.name} rows={parsed.row_count} "
        f"orders={len(parsed.orders)} invalid={len(parsed.invalid_rows)}"
    )
    return {
        "requestId": request_id,
        "profile": selected.name,
        "fileName": file.filename,
        **parsed.to_dict(),
    }


@router.post("/import")
async def import_orders(
    request: ImportOrdersRequest,
    client: ShopifyAdminClient = Depends(get_shopify_client),
):
    """Create one order per draft from a previously previewed upload."""
    if not request.orders:
        raise HTTPException(status_code=400, detail="No orders to create.")

    logger.info(
        "[import] shop=%s orders=%d invalid=%d linkage=%s",
        client.shop_domain,
        len(request.orders),
        len(request.invalid_rows),
        request.linkage or settings.ORDER_LINKAGE,
    )
    importer = OrderImporter(client, request.linkage)
    outcome = await importer.submit(
        [order.to_draft() for order in request.orders],
        [row.to_preview() for row in request.preview_rows],
        [row.to_invalid() for row in request.invalid_rows],
        row_count=request.row_count,
        tags=request.tag_list,
    )
    return outcome.to_dict()


@router.post("/import-csv")
async def import_csv(
    file: UploadFile = File(...),
    profile: Optional[str] = Form(None),
    tags: Optional[str] = Form(None),
    linkage: Optional[str] = Form(None),
    client: ShopifyAdminClient = Depends(get_shopify_client),
):
    """Parse an upload and create its orders in a single request."""
    request_id = str(uuid.uuid4())
    selected = _resolve_profile(profile)
    csv_text = await _read_csv_upload(file, request_id)

    parsed = parse_csv_to_orders(csv_text, selected)
    if not parsed.preview_rows:
        logger.warning(f"[{request_id}] Nothing to import: {parsed.notice}")
        raise HTTPException(status_code=400, detail=parsed.notice or "No non-empty data rows found.")

    importer = OrderImporter(client, linkage)
    outcome = await importer.submit_parse_result(parsed, tags=parse_tags(tags))
    return {
        "requestId": request_id,
        "profile": selected.name,
        "notice": parsed.notice,
        **outcome.to_dict(),
    }
