"""
Order Import Schemas
====================

Canonical data structures passed between the CSV importer stages and the
report services. Everything here lives for a single request; nothing is
persisted.

PIPELINE:
---------
raw text -> tokenized rows -> ValidationResult -> OrderDraft list -> RowResult list

JSON SHAPES:
------------
Every dataclass exposes ``to_dict()`` producing the camelCase payload the
embedded admin front end consumes. ``OrderDraft.input`` is already in the
Shopify ``OrderCreateOrderInput`` shape, so it is passed to the API untouched.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, TypedDict

# =============================================================================
# GRAPHQL INPUT SHAPES
# =============================================================================


class ShippingAddressDict(TypedDict, total=False):
    firstName: str
    lastName: str
    address1: str
    address2: str
    city: str
    provinceCode: str
    countryCode: str
    zip: str
    phone: str


class MoneyDict(TypedDict):
    amount: str
    currencyCode: str


class MoneyBagDict(TypedDict):
    shopMoney: MoneyDict


class OrderLineInputDict(TypedDict, total=False):
    """Either a variant line (``variantId``) or a custom line (``title`` + ``priceSet``)."""
    quantity: int
    variantId: str
    title: str
    requiresShipping: bool
    priceSet: MoneyBagDict


class OrderCreateInputDict(TypedDict, total=False):
    email: str
    lineItems: List[OrderLineInputDict]
    currency: str
    note: str
    tags: List[str]
    shippingAddress: ShippingAddressDict
    customer: Dict[str, Any]


# =============================================================================
# PARSE / VALIDATION
# =============================================================================


@dataclass
class PreviewRow:
    """Display fields for one non-blank data row (profile specific)."""
    row_number: int
    fields: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"rowNumber": self.row_number, **self.fields}


@dataclass
class InvalidRow:
    preview: PreviewRow
    error_message: str

    @property
    def row_number(self) -> int:
        return self.preview.row_number

    def to_dict(self) -> Dict[str, Any]:
        return {**self.preview.to_dict(), "errorMessage": self.error_message}


@dataclass
class NormalizedRow:
    """A row that passed validation, ready to be folded into a draft."""
    row_number: int
    order_key: str
    line_item: OrderLineInputDict
    email: Optional[str] = None
    currency: Optional[str] = None
    note: Optional[str] = None
    tags: Optional[List[str]] = None
    shipping_address: Optional[ShippingAddressDict] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None


@dataclass
class ValidationResult:
    row_count: int = 0
    preview_rows: List[PreviewRow] = field(default_factory=list)
    valid_rows: List[NormalizedRow] = field(default_factory=list)
    invalid_rows: List[InvalidRow] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    # True when the upload failed as a whole (missing header, columns...)
    fatal: bool = False


# =============================================================================
# GROUPING
# =============================================================================


@dataclass
class OrderDraft:
    order_key: str
    row_numbers: List[int]
    input: OrderCreateInputDict
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    @property
    def email(self) -> Optional[str]:
        return self.input.get("email")

    @property
    def line_item_count(self) -> int:
        return len(self.input.get("lineItems") or [])

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "orderKey": self.order_key,
            "rowNumbers": list(self.row_numbers),
            "input": self.input,
        }
        if self.first_name:
            payload["firstName"] = self.first_name
        if self.last_name:
            payload["lastName"] = self.last_name
        return payload


@dataclass
class ParseResult:
    row_count: int = 0
    orders: List[OrderDraft] = field(default_factory=list)
    preview_rows: List[PreviewRow] = field(default_factory=list)
    invalid_rows: List[InvalidRow] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def valid_row_count(self) -> int:
        return self.row_count - len(self.invalid_rows)

    @property
    def notice(self) -> str:
        """Banner text shown after parsing."""
        if not self.orders and self.errors:
            return self.errors[0]
        if self.errors:
            return (
                f"Loaded with {len(self.errors)} validation issue(s). "
                f"{len(self.orders)} order(s) are still ready."
            )
        return ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rowCount": self.row_count,
            "validRowCount": self.valid_row_count,
            "orders": [order.to_dict() for order in self.orders],
            "previewRows": [row.to_dict() for row in self.preview_rows],
            "invalidRows": [row.to_dict() for row in self.invalid_rows],
            "errors": list(self.errors),
            "notice": self.notice,
        }


# =============================================================================
# SUBMISSION
# =============================================================================


@dataclass
class OrderCreateResult:
    ok: bool
    id: Optional[str] = None
    name: Optional[str] = None
    message: str = ""

    @classmethod
    def success(cls, order_id: str, name: Optional[str]) -> "OrderCreateResult":
        return cls(ok=True, id=order_id, name=name or "Order")

    @classmethod
    def failure(cls, message: str) -> "OrderCreateResult":
        return cls(ok=False, message=message)


@dataclass
class RowResult:
    preview: PreviewRow
    status: str  # "success" | "failed"
    error_message: str = ""
    order_id: Optional[str] = None
    order_name: Optional[str] = None

    @property
    def row_number(self) -> int:
        return self.preview.row_number

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            **self.preview.to_dict(),
            "status": self.status,
            "errorMessage": self.error_message,
        }
        if self.order_id:
            payload["orderId"] = self.order_id
            payload["orderName"] = self.order_name
        return payload


@dataclass
class ImportSummary:
    total: int = 0
    success: int = 0
    failed: int = 0
    orders_created: int = 0

    @property
    def message(self) -> str:
        if self.failed == 0:
            return f"Processed {self.success} rows and created {self.orders_created} orders."
        return f"Processed {self.total} rows: {self.success} succeeded, {self.failed} failed."

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "success": self.success,
            "failed": self.failed,
            "ordersCreated": self.orders_created,
            "message": self.message,
        }


@dataclass
class ImportOutcome:
    summary: ImportSummary
    results: List[RowResult] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": self.summary.to_dict(),
            "results": [row.to_dict() for row in self.results],
        }


# =============================================================================
# REPORTS
# =============================================================================


@dataclass
class TrackingInfo:
    number: str
    company: str = ""
    url: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"number": self.number, "company": self.company, "url": self.url}


@dataclass
class ShippingReportOrder:
    id: str
    name: str
    customer_name: str
    tracking: List[TrackingInfo] = field(default_factory=list)

    @property
    def tracking_numbers(self) -> List[str]:
        return [info.number for info in self.tracking]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "customerName": self.customer_name,
            "trackingNumbers": self.tracking_numbers,
            "tracking": [info.to_dict() for info in self.tracking],
        }


@dataclass
class ReportResult:
    orders: List[ShippingReportOrder] = field(default_factory=list)
    warning: str = ""

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"reportOrders": [order.to_dict() for order in self.orders]}
        if self.warning:
            payload["warning"] = self.warning
        return payload
