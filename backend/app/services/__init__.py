"""Service layer encapsulating business logic for API routers."""

from .reseller_import import ResellerImportError, ResellerImportService
from .resellers import (
    ResellerNotFoundError,
    ResellerService,
    ResellerServiceError,
    ResellerStorageError,
    ResellerValidationError,
)

__all__ = [
    "ResellerImportError",
    "ResellerImportService",
    "ResellerNotFoundError",
    "ResellerService",
    "ResellerServiceError",
    "ResellerStorageError",
    "ResellerValidationError",
]
