"""Bulk import of resellers from CSV files."""

from __future__ import annotations

import csv
import io
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session

from .. import models, schemas
from ..schemas.reseller import BYTE_ORDER_MARK, clean_name
from .resellers import ResellerService, ResellerStorageError, ResellerValidationError

LOGGER = logging.getLogger(__name__)

TEXT_COLUMNS = ("name", "logo_url", "description", "website_url", "location_url")
COORDINATE_COLUMNS = {"latitude": "lat", "longitude": "lng"}
TEMPLATE_COLUMNS = (*TEXT_COLUMNS, "latitude", "longitude")
TEMPLATE_ROWS = [
    {
        "name": "Acme Industrial",
        "logo_url": "https://example.com/logo.png",
        "description": "Industrial supplies distributor",
        "website_url": "https://acme.example.com",
        "location_url": "https://maps.google.com/?q=40.7128,-74.0060",
        "latitude": "40.7128",
        "longitude": "-74.0060",
    }
]


class ResellerImportError(ResellerValidationError):
    """Raised when the import file as a whole cannot be read."""


class ResellerImportService:
    """Streams CSV rows into the reseller store, one row at a time."""

    @staticmethod
    def build_import_template() -> str:
        """Return a CSV template that can be offered to operators."""

        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=list(TEMPLATE_COLUMNS), extrasaction="ignore")
        writer.writeheader()
        for row in TEMPLATE_ROWS:
            writer.writerow(row)
        return buffer.getvalue()

    @staticmethod
    def import_resellers(db: Session, stream: Iterable[str]) -> schemas.ResellerImportSummary:
        """Create a reseller per CSV row and return the collected outcome.

        Rows that fail validation or storage are recorded in the summary and
        the pass continues with the next row. Successful rows are committed
        as they are read.
        """

        reader = csv.DictReader(stream)
        summary = _ImportAccumulator()

        try:
            fieldnames = reader.fieldnames
            if not fieldnames:
                raise ResellerImportError("The file has no header row.")

            header_map = _build_header_map(fieldnames)
            LOGGER.debug("Reseller import header mapping: %s", header_map)

            for raw_row in reader:
                row_number = reader.line_num
                original = {key: value for key, value in raw_row.items() if key is not None}
                normalized: dict[str, Optional[str]] = {}
                for raw_key, value in original.items():
                    normalized.setdefault(header_map[raw_key], _normalize_string(value))

                if not any(normalized.values()):
                    continue

                ResellerImportService._import_row(db, summary, row_number, original, normalized)
        except (csv.Error, UnicodeDecodeError) as exc:
            raise ResellerImportError(f"Could not read the import file: {exc}") from exc

        result = summary.build()
        LOGGER.info(
            "Reseller import finished: %d imported, %d failed, %d warning(s)",
            result.imported,
            result.error_count,
            len(result.warnings),
        )
        return result

    @staticmethod
    def import_resellers_from_path(
        db: Session,
        path: str | os.PathLike[str],
        *,
        remove_source: bool = True,
    ) -> schemas.ResellerImportSummary:
        """Import ``path`` and release it afterwards.

        The file is closed, and removed when ``remove_source`` is set, whether
        the import completes or the stream itself fails.
        """

        source = Path(path)
        try:
            with source.open("r", encoding="utf-8-sig", newline="") as handle:
                return ResellerImportService.import_resellers(db, handle)
        finally:
            if remove_source:
                source.unlink(missing_ok=True)
                LOGGER.debug("Removed import source %s", source)

    @staticmethod
    def _import_row(
        db: Session,
        summary: "_ImportAccumulator",
        row_number: int,
        original: dict[str, Optional[str]],
        row: dict[str, Optional[str]],
    ) -> None:
        try:
            payload, warnings = ResellerImportService._map_row(row)
            for warning in warnings:
                summary.register_warning(row_number, warning)
            reseller_in = schemas.ResellerCreate.model_validate(payload)
            reseller = ResellerService.create_reseller(db, reseller_in)
            summary.register_success(reseller)
        except _RowProcessingError as exc:
            summary.register_error(row_number, original, str(exc))
        except ValidationError as exc:
            summary.register_error(
                row_number,
                original,
                "Invalid reseller data",
                ResellerImportService._format_validation_errors(exc),
            )
        except ResellerStorageError as exc:
            summary.register_error(row_number, original, str(exc))

    @staticmethod
    def _map_row(row: dict[str, Optional[str]]) -> tuple[dict[str, object], list[str]]:
        name = clean_name(row.get("name") or "")
        if not name:
            raise _RowProcessingError("Name is required")

        payload: dict[str, object] = {column: row.get(column) for column in TEXT_COLUMNS}
        payload["name"] = name

        warnings: list[str] = []
        for column, abbreviation in COORDINATE_COLUMNS.items():
            value, warning = _resolve_coordinate(row, column, abbreviation)
            payload[column] = value
            if warning:
                warnings.append(warning)
        return payload, warnings

    @staticmethod
    def _format_validation_errors(exc: ValidationError) -> dict[str, str]:
        grouped: dict[str, list[str]] = {}
        for error in exc.errors():
            location = [part for part in error.get("loc", []) if part != "__root__"]
            key = ".".join(str(part) for part in location) or "general"
            grouped.setdefault(key, []).append(error.get("msg") or "Invalid value")
        return {name: "; ".join(messages) for name, messages in grouped.items()}


@dataclass
class _ImportAccumulator:
    results: list[schemas.ResellerImportResult] = field(default_factory=list)
    errors: list[schemas.ResellerImportRowError] = field(default_factory=list)
    warnings: list[schemas.ResellerImportWarning] = field(default_factory=list)

    def register_success(self, reseller: models.Reseller) -> None:
        self.results.append(schemas.ResellerImportResult(id=reseller.id, name=reseller.name))

    def register_error(
        self,
        row_number: int,
        row: dict[str, Optional[str]],
        message: str,
        field_errors: Optional[dict[str, str]] = None,
    ) -> None:
        LOGGER.warning("Reseller import row %d rejected: %s", row_number, message)
        self.errors.append(
            schemas.ResellerImportRowError(
                row_number=row_number,
                row=row,
                error=message,
                field_errors=field_errors or {},
            )
        )

    def register_warning(self, row_number: int, message: str) -> None:
        LOGGER.warning("Reseller import row %d: %s", row_number, message)
        self.warnings.append(schemas.ResellerImportWarning(row_number=row_number, message=message))

    def build(self) -> schemas.ResellerImportSummary:
        return schemas.ResellerImportSummary(
            imported=len(self.results),
            error_count=len(self.errors),
            results=self.results,
            errors=self.errors,
            warnings=self.warnings,
        )


class _RowProcessingError(Exception):
    """Raised when an import row cannot be processed due to invalid data."""


def _build_header_map(fieldnames: Iterable[Optional[str]]) -> dict[str, str]:
    return {
        header: (header or "").lstrip(BYTE_ORDER_MARK).strip().lower()
        for header in fieldnames
        if header is not None
    }


def _normalize_string(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        candidate = value.strip()
    else:  # pragma: no cover - restkey values are dropped before this point
        candidate = str(value).strip()
    return candidate or None


def _parse_float(raw_value: str, column: str) -> float:
    try:
        return float(raw_value.replace(",", "."))
    except ValueError as exc:
        raise _RowProcessingError(f"{column} must be a number, got '{raw_value}'") from exc


def _resolve_coordinate(
    row: dict[str, Optional[str]], column: str, abbreviation: str
) -> tuple[Optional[float], Optional[str]]:
    primary = row.get(column)
    fallback = row.get(abbreviation)
    if primary is None:
        return (_parse_float(fallback, abbreviation) if fallback is not None else None), None

    value = _parse_float(primary, column)
    if fallback is None:
        return value, None

    try:
        conflicting = _parse_float(fallback, abbreviation) != value
    except _RowProcessingError:
        conflicting = True
    if not conflicting:
        return value, None
    return value, (
        f"Both '{column}' ({primary}) and '{abbreviation}' ({fallback}) are populated "
        f"with different values; using '{column}'."
    )
