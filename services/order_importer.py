"""
Order Importer
Parses an upload into order drafts and submits them to Shopify one by one.
"""
import logging
import time
from typing import Any, Dict, List, Optional, Sequence

import settings
from schemas import (
    ImportOutcome,
    ImportSummary,
    InvalidRow,
    OrderCreateResult,
    OrderDraft,
    ParseResult,
    PreviewRow,
    RowResult,
)
from services.errors import ShopifyApiError
from services.import_profiles import ImportProfile, get_import_profile
from services.order_grouper import compact_order_input, group_rows
from services.row_validator import merge_tags, validate_rows

logger = logging.getLogger(__name__)


def parse_csv_to_orders(csv_text: str, profile: Optional[ImportProfile] = None) -> ParseResult:
    """Validate and group an upload. Nothing here talks to Shopify."""
    profile = profile or get_import_profile()
    validation = validate_rows(csv_text, profile)
    if validation.fatal:
        return ParseResult(row_count=0, errors=list(validation.errors))

    grouping = group_rows(validation)
    invalid_rows = [*validation.invalid_rows, *grouping.conflicts]
    invalid_rows.sort(key=lambda row: row.row_number)

    result = ParseResult(
        row_count=validation.row_count,
        orders=grouping.orders,
        preview_rows=validation.preview_rows,
        invalid_rows=invalid_rows,
        errors=[*validation.errors, *grouping.errors],
    )
    logger.info(
        "Parsed upload profile=%s rows=%d orders=%d invalid=%d",
        profile.name,
        result.row_count,
        len(result.orders),
        len(result.invalid_rows),
    )
    return result


class OrderImporter:
    """Submits order drafts sequentially and fans results back out to rows.

    Each draft gets exactly one ``orderCreate`` call, in draft order. A failed
    draft marks all of its rows as failed and processing moves on to the next
    draft; nothing is retried.
    """

    def __init__(self, client: Any, linkage: Optional[str] = None):
        self.client = client
        self.linkage = settings.resolve_order_linkage(linkage)

    async def submit(
        self,
        orders: Sequence[OrderDraft],
        preview_rows: Sequence[PreviewRow],
        invalid_rows: Sequence[InvalidRow] = (),
        row_count: Optional[int] = None,
        tags: Optional[List[str]] = None,
    ) -> ImportOutcome:
        t0 = time.time()
        row_lookup: Dict[int, PreviewRow] = {row.row_number: row for row in preview_rows}

        results: List[RowResult] = [
            RowResult(preview=row.preview, status="failed", error_message=row.error_message)
            for row in invalid_rows
        ]
        summary = ImportSummary(
            total=row_count if row_count is not None else len(preview_rows),
            failed=len(invalid_rows),
        )

        for draft in orders:
            created = await self.create_draft(draft, tags)
            if created.ok:
                summary.orders_created += 1
                logger.info("Order created key=%s id=%s name=%s", draft.order_key, created.id, created.name)
            else:
                logger.warning("Order failed key=%s rows=%s error=%s", draft.order_key, draft.row_numbers, created.message)

            for row_number in draft.row_numbers:
                row = row_lookup.get(row_number)
                if row is None:
                    continue
                if created.ok:
                    results.append(RowResult(
                        preview=row,
                        status="success",
                        order_id=created.id,
                        order_name=created.name,
                    ))
                    summary.success += 1
                else:
                    results.append(RowResult(preview=row, status="failed", error_message=created.message))
                    summary.failed += 1

        results.sort(key=lambda result: result.row_number)
        dur_ms = int((time.time() - t0) * 1000)
        logger.info(
            "Import finished orders=%d created=%d rows_ok=%d rows_failed=%d durMs=%d",
            len(orders),
            summary.orders_created,
            summary.success,
            summary.failed,
            dur_ms,
        )
        return ImportOutcome(summary=summary, results=results)

    async def submit_parse_result(self, parsed: ParseResult, tags: Optional[List[str]] = None) -> ImportOutcome:
        return await self.submit(
            parsed.orders,
            parsed.preview_rows,
            parsed.invalid_rows,
            row_count=parsed.row_count,
            tags=tags,
        )

    async def create_draft(self, draft: OrderDraft, tags: Optional[List[str]] = None) -> OrderCreateResult:
        order_input: Dict[str, Any] = dict(draft.input)
        if tags:
            order_input["tags"] = merge_tags(order_input.get("tags"), tags)

        email = order_input.get("email")
        if self.linkage == "customer" and email:
            try:
                customer_id = await self.client.find_or_create_customer(
                    email, draft.first_name, draft.last_name
                )
            except ShopifyApiError as exc:
                return OrderCreateResult.failure(f"Customer lookup failed: {exc.message}")
            except Exception as exc:
                logger.exception("Unexpected error while linking customer key=%s", draft.order_key)
                return OrderCreateResult.failure(f"Customer lookup failed: {str(exc) or 'unexpected error'}")
            order_input["customer"] = {"toAssociate": {"id": customer_id}}

        return await self.client.create_order(compact_order_input(order_input))
