"""Expose Pydantic schemas for convenient imports."""

from .reseller import (
    ProductResellersRead,
    ProductResellersUpdate,
    ResellerBase,
    ResellerCreate,
    ResellerImportResult,
    ResellerImportRowError,
    ResellerImportSummary,
    ResellerImportWarning,
    ResellerRead,
    ResellerUpdate,
)

__all__ = [
    "ProductResellersRead",
    "ProductResellersUpdate",
    "ResellerBase",
    "ResellerCreate",
    "ResellerImportResult",
    "ResellerImportRowError",
    "ResellerImportSummary",
    "ResellerImportWarning",
    "ResellerRead",
    "ResellerUpdate",
]
