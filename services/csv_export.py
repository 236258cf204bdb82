"""
CSV Export
Builds the shipping report and tracking export downloads.
"""
import csv
import io
import re
from datetime import date
from typing import Iterable, List, Optional, Sequence

from schemas import ShippingReportOrder

NO_TRACKING = "No tracking"

SHIPPING_REPORT_HEADER = ["Order Number", "Customer Name", "Tracking Numbers"]
TRACKING_EXPORT_HEADER = [
    "Order Number",
    "Customer Name",
    "Tracking Company",
    "Tracking Number",
    "Tracking URL",
]

_LINE_BREAKS = re.compile(r"\r\n|\r|\n")


def flatten_newlines(value: Optional[str]) -> str:
    return _LINE_BREAKS.sub(" ", "" if value is None else str(value))


def build_csv(header: Sequence[str], rows: Iterable[Sequence[Optional[str]]]) -> str:
    """Render rows with every value quoted, records separated by ``\\n``."""
    output = io.StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow([flatten_newlines(value) for value in header])
    for row in rows:
        writer.writerow([flatten_newlines(value) for value in row])
    content = output.getvalue()
    output.close()
    # Records are joined by newlines; nothing follows the last one
    return content[:-1] if content.endswith("\n") else content


def build_shipping_report_csv(orders: Iterable[ShippingReportOrder]) -> str:
    rows: List[List[str]] = [
        [
            order.name,
            order.customer_name,
            "; ".join(order.tracking_numbers) or NO_TRACKING,
        ]
        for order in orders
    ]
    return build_csv(SHIPPING_REPORT_HEADER, rows)


def build_tracking_export_csv(orders: Iterable[ShippingReportOrder]) -> str:
    """One line per tracking entry; untracked orders keep a single empty line."""
    rows: List[List[str]] = []
    for order in orders:
        if not order.tracking:
            rows.append([order.name, order.customer_name, "", "", ""])
            continue
        for info in order.tracking:
            rows.append([order.name, order.customer_name, info.company, info.number, info.url])
    return build_csv(TRACKING_EXPORT_HEADER, rows)


def export_filename(prefix: str, today: Optional[date] = None) -> str:
    stamp = (today or date.today()).isoformat()
    return f"{prefix}-{stamp}.csv"
