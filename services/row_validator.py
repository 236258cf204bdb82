"""
Row Validator & Normalizer
Turns tokenized CSV rows into preview rows plus validated, normalized records.
"""
import logging
import re
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Tuple

from schemas import InvalidRow, NormalizedRow, ShippingAddressDict, ValidationResult
from services.csv_tokenizer import parse_csv_rows
from services.errors import CsvStructureError

if TYPE_CHECKING:
    from services.import_profiles import ImportProfile

logger = logging.getLogger(__name__)

CsvRecord = Dict[str, str]

VARIANT_GID_PREFIX = "gid://shopify/ProductVariant/"
ERROR_JOINER = " | "

_DIGITS = re.compile(r"^[0-9]+$")
_QUANTITY = re.compile(r"^\+?[0-9]+$")
_TAG_SPLIT = re.compile(r"[|,]")

# CSV column -> ShippingAddress input field, variant profile
SHIPPING_COLUMNS: Tuple[Tuple[str, str], ...] = (
    ("shipping_first_name", "firstName"),
    ("shipping_last_name", "lastName"),
    ("shipping_address1", "address1"),
    ("shipping_address2", "address2"),
    ("shipping_city", "city"),
    ("shipping_province_code", "provinceCode"),
    ("shipping_country_code", "countryCode"),
    ("shipping_zip", "zip"),
    ("phone", "phone"),
)


# ---------- Record helpers ----------

def normalize_header(value: str) -> str:
    return (value or "").strip().lower()


def to_record(headers: List[str], row: List[str]) -> CsvRecord:
    """Zip a row onto the header; short rows are padded with empty strings."""
    record: CsvRecord = {}
    for index, header in enumerate(headers):
        record[header] = row[index] if index < len(row) else ""
    return record


def is_empty_record(record: CsvRecord) -> bool:
    return all(not (value or "").strip() for value in record.values())


def read_column(record: CsvRecord, key: str) -> str:
    return (record.get(key) or "").strip()


def missing_headers(headers: Iterable[str], required: Iterable[str]) -> List[str]:
    present = set(headers)
    return [column for column in required if column not in present]


# ---------- Normalizers ----------

def normalize_variant_id(value: str) -> str:
    """Numeric variant IDs become global IDs; anything else passes through."""
    value = (value or "").strip()
    if _DIGITS.match(value):
        return f"{VARIANT_GID_PREFIX}{value}"
    return value


def parse_tags(value: Optional[str]) -> Optional[List[str]]:
    """Split on comma or pipe, trim, drop blanks and repeats. None when empty."""
    if not value:
        return None
    tags = merge_tags(_TAG_SPLIT.split(value))
    return tags or None


def merge_tags(*groups: Optional[Iterable[str]]) -> List[str]:
    """Ordered union of tag lists; the first spelling of a tag wins."""
    merged: List[str] = []
    seen = set()
    for group in groups:
        for tag in group or []:
            tag = (tag or "").strip()
            if not tag or tag in seen:
                continue
            seen.add(tag)
            merged.append(tag)
    return merged


def parse_quantity(value: Optional[str]) -> Optional[int]:
    """Positive integer or None ("0", "-1", "abc", "1.5" are all rejected)."""
    raw = (value or "").strip()
    if not _QUANTITY.match(raw):
        return None
    quantity = int(raw)
    return quantity if quantity > 0 else None


def build_shipping_address(record: CsvRecord) -> Optional[ShippingAddressDict]:
    """Shipping address from ``shipping_*`` columns, or None when all are blank."""
    address: ShippingAddressDict = {}
    for column, key in SHIPPING_COLUMNS:
        value = read_column(record, column)
        if not value:
            continue
        if key in ("provinceCode", "countryCode"):
            value = value.upper()
        address[key] = value
    return address or None


# ---------- Validation ----------

def normalize_row(
    record: CsvRecord,
    row_number: int,
    profile: "ImportProfile",
) -> Tuple[Optional[NormalizedRow], List[str]]:
    """
    Validate one record against the profile and normalize it.

    Returns ``(row, [])`` on success or ``(None, errors)`` with one message per
    violated rule, each prefixed with the 1-based row number.
    """
    errors: List[str] = []
    for column in profile.required_values:
        if not read_column(record, column):
            errors.append(f"Row {row_number}: {column} is required.")

    quantity: Optional[int] = None
    if profile.validates_quantity:
        quantity = parse_quantity(read_column(record, "quantity"))
        if quantity is None:
            errors.append(f"Row {row_number}: quantity must be a positive integer.")

    if errors:
        return None, errors
    return profile.build_row(record, row_number, quantity), []


def load_records(csv_text: str, profile: "ImportProfile") -> List[Tuple[int, CsvRecord]]:
    """
    Tokenize and key rows by header. Returns ``(row_number, record)`` pairs.

    Raises CsvStructureError when the file cannot be imported at all.
    """
    rows = parse_csv_rows(csv_text)
    if len(rows) < 2:
        raise CsvStructureError("CSV must include a header row and at least one data row.")

    headers = [normalize_header(header) for header in rows[0]]
    missing = missing_headers(headers, profile.required_columns)
    if missing:
        raise CsvStructureError(f"Missing required columns: {', '.join(missing)}")

    # Blank rows are gone already, so numbering follows the tokenized order
    return [(index + 1, to_record(headers, row)) for index, row in enumerate(rows) if index > 0]


def validate_rows(csv_text: str, profile: "ImportProfile") -> ValidationResult:
    """Parse + validate an upload. Structural problems come back as ``fatal``."""
    result = ValidationResult()
    try:
        records = load_records(csv_text, profile)
    except CsvStructureError as exc:
        logger.info("CSV rejected profile=%s reason=%s", profile.name, exc)
        result.errors.append(str(exc))
        result.fatal = True
        return result

    for row_number, record in records:
        if is_empty_record(record):
            continue

        preview = profile.build_preview(record, row_number)
        result.preview_rows.append(preview)

        normalized, row_errors = normalize_row(record, row_number, profile)
        if normalized is None:
            result.errors.extend(row_errors)
            result.invalid_rows.append(InvalidRow(preview=preview, error_message=ERROR_JOINER.join(row_errors)))
            continue
        result.valid_rows.append(normalized)

    result.row_count = len(result.preview_rows)
    if not result.preview_rows:
        result.errors.append("No non-empty data rows found.")

    logger.info(
        "CSV validated profile=%s rows=%d valid=%d invalid=%d",
        profile.name,
        result.row_count,
        len(result.valid_rows),
        len(result.invalid_rows),
    )
    return result
