"""
Order Import Schemas Package
Provides the data structures shared by the importer and report services.
"""

from .order_schemas import (
    # GraphQL input shapes
    ShippingAddressDict,
    MoneyDict,
    MoneyBagDict,
    OrderLineInputDict,
    OrderCreateInputDict,

    # Parse / validation
    PreviewRow,
    InvalidRow,
    NormalizedRow,
    ValidationResult,

    # Grouping
    OrderDraft,
    ParseResult,

    # Submission
    OrderCreateResult,
    RowResult,
    ImportSummary,
    ImportOutcome,

    # Reports
    TrackingInfo,
    ShippingReportOrder,
    ReportResult,
)
