"""
Exception types shared by the import and report services.
"""
from __future__ import annotations


class OrderImportError(Exception):
    """Base class for importer failures."""


class CsvStructureError(OrderImportError):
    """The upload as a whole is unusable (no header/data rows, missing columns)."""


class UnknownImportProfileError(OrderImportError):
    def __init__(self, name: str, known: tuple[str, ...] = ()) -> None:
        self.name = name
        self.known = known
        expected = f" Must be one of: {', '.join(known)}" if known else ""
        super().__init__(f"Unknown import profile {name!r}.{expected}")


class ShopifyApiError(OrderImportError):
    """Transport, HTTP or GraphQL level failure talking to the Admin API."""

    def __init__(self, message: str, status_code: int = 502) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ShopifyNotConfiguredError(OrderImportError):
    """No shop domain / access token available for the current request."""
