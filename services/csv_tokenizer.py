"""
CSV Tokenizer
Splits uploaded CSV text into rows of raw field strings.
"""
import csv
import io
from typing import List

BOM = "\ufeff"


def decode_upload(data: bytes) -> str:
    """Decode an uploaded file as UTF-8, tolerating a BOM and bad bytes."""
    return (data or b"").decode("utf-8-sig", errors="replace")


def is_blank_row(row: List[str]) -> bool:
    return all(not (cell or "").strip() for cell in row)


def parse_csv_rows(csv_text: str) -> List[List[str]]:
    """
    Tokenize CSV text into rows.

    Quoted fields may hold commas, line breaks and doubled quotes. ``\\n``,
    ``\\r\\n`` and bare ``\\r`` all end a record. Rows that are blank after
    trimming every cell are dropped. Malformed quoting is parsed best-effort
    (the reader runs non-strict) rather than rejected; tokenizing never fails.
    """
    text = csv_text or ""
    if text.startswith(BOM):
        text = text[len(BOM):]

    # An unterminated quote can swallow the rest of the file into one field
    csv.field_size_limit(max(csv.field_size_limit(), len(text) + 1))

    rows: List[List[str]] = []
    for row in csv.reader(io.StringIO(text, newline=""), strict=False):
        if is_blank_row(row):
            continue
        rows.append(row)
    return rows
