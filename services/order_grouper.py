"""
Order Grouper
Folds validated rows into order drafts keyed by ``order_key``.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from schemas import InvalidRow, OrderCreateInputDict, OrderDraft, PreviewRow, ValidationResult

logger = logging.getLogger(__name__)

OPTIONAL_INPUT_KEYS = ("email", "currency", "note", "tags", "shippingAddress", "customer")


@dataclass
class GroupingResult:
    orders: List[OrderDraft] = field(default_factory=list)
    conflicts: List[InvalidRow] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


def group_rows(validation: ValidationResult) -> GroupingResult:
    """
    Build one draft per grouping key, in first-seen key order.

    The first row for a key sets the shared order fields. Later rows only add
    a line item and their row number. A later row whose email differs from
    the draft's is rejected as a conflict and leaves the draft untouched.
    """
    result = GroupingResult()
    drafts: Dict[str, OrderDraft] = {}
    previews: Dict[int, PreviewRow] = {row.row_number: row for row in validation.preview_rows}

    for row in validation.valid_rows:
        existing = drafts.get(row.order_key)
        if existing is None:
            order_input: OrderCreateInputDict = {"lineItems": [dict(row.line_item)]}
            if row.email:
                order_input["email"] = row.email
            if row.currency:
                order_input["currency"] = row.currency
            if row.note:
                order_input["note"] = row.note
            if row.tags:
                order_input["tags"] = list(row.tags)
            if row.shipping_address:
                order_input["shippingAddress"] = dict(row.shipping_address)

            drafts[row.order_key] = OrderDraft(
                order_key=row.order_key,
                row_numbers=[row.row_number],
                input=order_input,
                first_name=row.first_name,
                last_name=row.last_name,
            )
            continue

        if (existing.email or "") != (row.email or ""):
            message = (
                f"Row {row.row_number}: email does not match earlier rows "
                f"for order_key={row.order_key}"
            )
            result.errors.append(message)
            preview = previews.get(row.row_number) or PreviewRow(row_number=row.row_number)
            result.conflicts.append(InvalidRow(preview=preview, error_message=message))
            continue

        existing.input["lineItems"].append(dict(row.line_item))
        existing.row_numbers.append(row.row_number)

    result.orders = list(drafts.values())
    if result.conflicts:
        logger.info("Grouping rejected %d conflicting row(s)", len(result.conflicts))
    return result


def compact_order_input(order_input: Dict[str, Any]) -> Dict[str, Any]:
    """Drop empty optional fields so the mutation only carries real values."""
    compacted: Dict[str, Any] = {"lineItems": order_input.get("lineItems") or []}
    for key in OPTIONAL_INPUT_KEYS:
        value = order_input.get(key)
        if value:
            compacted[key] = value
    return compacted
