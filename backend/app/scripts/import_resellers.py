"""Import resellers from a CSV or Excel file through the bulk import pipeline."""

from __future__ import annotations

import argparse
import io
import logging
import os
from pathlib import Path
from typing import Optional, Sequence

import pandas as pd

EXCEL_SUFFIXES = {".xlsx", ".xls"}


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Read a reseller spreadsheet and create one reseller per row. "
            "Rows that fail are reported and skipped."
        )
    )
    parser.add_argument("source", type=Path, help="Path of the CSV or Excel file")
    parser.add_argument(
        "--database-url",
        dest="database_url",
        help="Database URL; overrides DATABASE_URL (defaults to the local SQLite file)",
    )
    parser.add_argument(
        "--sheet",
        dest="sheet",
        default=0,
        help="Worksheet name or index when the source is an Excel workbook",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def excel_to_csv_text(workbook: Path, sheet: str | int = 0) -> str:
    """Render one worksheet as CSV text with every cell kept as a string."""

    if isinstance(sheet, str) and sheet.isdigit():
        sheet = int(sheet)
    try:
        df = pd.read_excel(workbook, sheet_name=sheet, dtype=str)
    except ValueError as exc:
        raise ValueError(f"Worksheet '{sheet}' not found in {workbook}") from exc
    return df.fillna("").to_csv(index=False)


def _print_summary(summary) -> None:
    print(f"Imported: {summary.imported}")
    print(f"Failed:   {summary.error_count}")
    for error in summary.errors:
        details = "; ".join(f"{name}: {message}" for name, message in error.field_errors.items())
        suffix = f" ({details})" if details else ""
        print(f" - row {error.row_number}: {error.error}{suffix}")
    for warning in summary.warnings:
        print(f" ! row {warning.row_number}: {warning.message}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    from ..database import (
        create_database_engine,
        create_session_factory,
        resolve_database_url,
        session_scope,
    )
    from ..services import ResellerImportError, ResellerImportService

    if not args.source.exists():
        print(f"File not found: {args.source}")
        return 1

    engine = None
    factory = None
    if args.database_url:
        os.environ["DATABASE_URL"] = args.database_url
        # The application engine is bound when the module is first imported.
        engine = create_database_engine(resolve_database_url(args.database_url))
        factory = create_session_factory(engine)

    try:
        with session_scope(factory) as session:
            if args.source.suffix.lower() in EXCEL_SUFFIXES:
                content = excel_to_csv_text(args.source, args.sheet)
                summary = ResellerImportService.import_resellers(session, io.StringIO(content))
            else:
                summary = ResellerImportService.import_resellers_from_path(
                    session, args.source, remove_source=False
                )
    except (ResellerImportError, ValueError) as exc:
        print(f"Import failed: {exc}")
        return 1
    finally:
        if engine is not None:
            engine.dispose()

    _print_summary(summary)
    return 0 if summary.error_count == 0 else 2


if __name__ == "__main__":
    raise SystemExit(main())
