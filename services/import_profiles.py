"""
Import Profiles
One profile per supported CSV shape: which columns are required, how rows are
keyed into orders and how each row becomes a line item.

- ``variant``: one row per line item, rows sharing ``order_key`` become one order.
- ``gift``: address-only rows, one order per row with a fixed placeholder line.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Optional, Tuple

import settings
from schemas import NormalizedRow, OrderLineInputDict, PreviewRow, ShippingAddressDict
from services.csv_export import build_csv
from services.errors import UnknownImportProfileError
from services.row_validator import (
    CsvRecord,
    build_shipping_address,
    normalize_variant_id,
    parse_tags,
    read_column,
)


@dataclass(frozen=True)
class ImportProfile:
    name: str
    description: str
    required_columns: Tuple[str, ...]
    required_values: Tuple[str, ...]
    optional_columns: Tuple[str, ...]
    build_preview: Callable[[CsvRecord, int], PreviewRow]
    build_row: Callable[[CsvRecord, int, Optional[int]], NormalizedRow]
    group_by_order_key: bool = True
    validates_quantity: bool = True
    example_rows: Tuple[Mapping[str, str], ...] = ()

    @property
    def template_columns(self) -> List[str]:
        return [*self.required_columns, *self.optional_columns]

    def example_csv(self) -> str:
        """Header plus example rows, ready to download as a starting template."""
        columns = self.template_columns
        rows = [[example.get(column, "") for column in columns] for example in self.example_rows]
        return build_csv(columns, rows)


# ---------- variant profile ----------

def _variant_preview(record: CsvRecord, row_number: int) -> PreviewRow:
    recipient = " ".join(
        value for value in (
            read_column(record, "shipping_first_name"),
            read_column(record, "shipping_last_name"),
        ) if value
    )
    destination = ", ".join(
        value for value in (
            read_column(record, "shipping_city"),
            read_column(record, "shipping_province_code"),
            read_column(record, "shipping_country_code"),
        ) if value
    )
    return PreviewRow(
        row_number=row_number,
        fields={
            "orderKey": read_column(record, "order_key"),
            "email": read_column(record, "email"),
            "variantId": read_column(record, "variant_id"),
            "quantity": read_column(record, "quantity"),
            "recipient": recipient,
            "destination": destination,
        },
    )


def _variant_row(record: CsvRecord, row_number: int, quantity: Optional[int]) -> NormalizedRow:
    line_item: OrderLineInputDict = {
        "variantId": normalize_variant_id(read_column(record, "variant_id")),
        "quantity": quantity or 1,
    }
    return NormalizedRow(
        row_number=row_number,
        order_key=read_column(record, "order_key"),
        email=read_column(record, "email"),
        line_item=line_item,
        currency=read_column(record, "currency_code").upper() or None,
        note=read_column(record, "note") or None,
        tags=parse_tags(read_column(record, "tags")),
        shipping_address=build_shipping_address(record),
        first_name=read_column(record, "shipping_first_name") or None,
        last_name=read_column(record, "shipping_last_name") or None,
    )


def variant_profile() -> ImportProfile:
    return ImportProfile(
        name="variant",
        description="One row per line item. Rows sharing order_key are grouped into one order.",
        required_columns=("order_key", "email", "variant_id", "quantity"),
        required_values=("order_key", "email", "variant_id"),
        optional_columns=(
            "currency_code", "note", "tags", "phone",
            "shipping_first_name", "shipping_last_name",
            "shipping_address1", "shipping_address2", "shipping_city",
            "shipping_province_code", "shipping_country_code", "shipping_zip",
        ),
        build_preview=_variant_preview,
        build_row=_variant_row,
        example_rows=(
            {
                "order_key": "1001",
                "email": "jane@example.com",
                "variant_id": "44712345678901",
                "quantity": "2",
                "currency_code": "USD",
                "note": "Leave at front desk",
                "tags": "wholesale|spring",
                "shipping_first_name": "Jane",
                "shipping_last_name": "Doe",
                "shipping_address1": "123 Main St",
                "shipping_city": "Austin",
                "shipping_province_code": "TX",
                "shipping_country_code": "US",
                "shipping_zip": "78701",
            },
            {
                "order_key": "1001",
                "email": "jane@example.com",
                "variant_id": "gid://shopify/ProductVariant/44712345678902",
                "quantity": "1",
            },
        ),
    )


# ---------- gift (address-only) profile ----------

def _gift_preview(record: CsvRecord, row_number: int) -> PreviewRow:
    recipient = " ".join(
        value for value in (read_column(record, "first_name"), read_column(record, "last_name")) if value
    )
    return PreviewRow(
        row_number=row_number,
        fields={
            "recipient": recipient,
            "address": read_column(record, "address"),
            "address2": read_column(record, "address2"),
            "city": read_column(record, "city"),
            "state": read_column(record, "state"),
            "zipCode": read_column(record, "zip_code"),
            "email": read_column(record, "email"),
        },
    )


def gift_profile(
    country_code: Optional[str] = None,
    line_title: Optional[str] = None,
    line_price: Optional[str] = None,
    line_currency: Optional[str] = None,
    line_quantity: Optional[int] = None,
) -> ImportProfile:
    """Address-only profile; placeholder line settings default to ``settings``."""
    default_country = (country_code or settings.DEFAULT_COUNTRY_CODE).upper()
    placeholder: OrderLineInputDict = {
        "title": line_title or settings.GIFT_LINE_TITLE,
        "quantity": line_quantity or settings.GIFT_LINE_QUANTITY,
        "requiresShipping": True,
        "priceSet": {
            "shopMoney": {
                "amount": line_price or settings.GIFT_LINE_PRICE,
                "currencyCode": (line_currency or settings.GIFT_LINE_CURRENCY).upper(),
            }
        },
    }

    def build_row(record: CsvRecord, row_number: int, quantity: Optional[int]) -> NormalizedRow:
        first_name = read_column(record, "first_name")
        last_name = read_column(record, "last_name")
        shipping: ShippingAddressDict = {
            "firstName": first_name,
            "lastName": last_name,
            "address1": read_column(record, "address"),
            "city": read_column(record, "city"),
            "provinceCode": read_column(record, "state"),
            "countryCode": read_column(record, "country_code").upper() or default_country,
            "zip": read_column(record, "zip_code"),
        }
        address2 = read_column(record, "address2")
        if address2:
            shipping["address2"] = address2

        line_item: OrderLineInputDict = {
            **placeholder,
            "priceSet": {"shopMoney": dict(placeholder["priceSet"]["shopMoney"])},
        }
        return NormalizedRow(
            row_number=row_number,
            order_key=f"row-{row_number}",
            email=read_column(record, "email") or None,
            line_item=line_item,
            note=read_column(record, "note") or None,
            tags=parse_tags(read_column(record, "tags")),
            shipping_address=shipping,
            first_name=first_name,
            last_name=last_name,
        )

    return ImportProfile(
        name="gift",
        description="One recipient address per row. Each row becomes its own order.",
        required_columns=("first_name", "last_name", "address", "address2", "city", "state", "zip_code"),
        required_values=("first_name", "last_name", "address", "city", "state", "zip_code"),
        optional_columns=("country_code", "email", "note", "tags"),
        build_preview=_gift_preview,
        build_row=build_row,
        group_by_order_key=False,
        validates_quantity=False,
        example_rows=(
            {
                "first_name": "Ada",
                "last_name": "Lovelace",
                "address": "12 Analytical Way",
                "address2": "Suite 3",
                "city": "Portland",
                "state": "OR",
                "zip_code": "97201",
                "email": "ada@example.com",
            },
        ),
    )


PROFILE_FACTORIES: Dict[str, Callable[[], ImportProfile]] = {
    "variant": variant_profile,
    "gift": gift_profile,
}
PROFILE_NAMES: Tuple[str, ...] = tuple(PROFILE_FACTORIES)


def get_import_profile(name: Optional[str] = None) -> ImportProfile:
    """Resolve a profile by name; blank falls back to ``settings.IMPORT_PROFILE``."""
    key = (name or settings.IMPORT_PROFILE or "variant").strip().lower()
    factory = PROFILE_FACTORIES.get(key)
    if factory is None:
        raise UnknownImportProfileError(key, PROFILE_NAMES)
    return factory()
