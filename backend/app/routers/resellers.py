"""Router exposing reseller CRUD, search and bulk import."""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from typing import List

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..services import (
    ResellerImportService,
    ResellerNotFoundError,
    ResellerService,
    ResellerStorageError,
    ResellerValidationError,
)

LOGGER = logging.getLogger(__name__)

UPLOAD_DIR_ENV = "RESELLER_UPLOAD_DIR"

router = APIRouter()


def _resolve_upload_dir() -> str | None:
    raw = os.getenv(UPLOAD_DIR_ENV)
    if not raw:
        return None
    os.makedirs(raw, exist_ok=True)
    return raw


def _spool_upload(upload: UploadFile) -> str:
    """Copy the upload to disk and return the path; nothing is left behind on failure."""
    with tempfile.NamedTemporaryFile(
        mode="wb", suffix=".csv", prefix="resellers-", dir=_resolve_upload_dir(), delete=False
    ) as spooled:
        try:
            shutil.copyfileobj(upload.file, spooled)
        except Exception:
            spooled.close()
            os.unlink(spooled.name)
            raise
    return spooled.name


def _storage_failure(exc: ResellerStorageError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.get("/", response_model=List[schemas.ResellerRead])
def list_resellers(db: Session = Depends(get_db)) -> List[schemas.ResellerRead]:
    try:
        return ResellerService.list_resellers(db)
    except ResellerStorageError as exc:
        raise _storage_failure(exc) from exc


@router.post("/", response_model=schemas.ResellerRead, status_code=status.HTTP_201_CREATED)
def create_reseller(
    reseller_in: schemas.ResellerCreate, db: Session = Depends(get_db)
) -> schemas.ResellerRead:
    try:
        return ResellerService.create_reseller(db, reseller_in)
    except ResellerStorageError as exc:
        raise _storage_failure(exc) from exc


@router.get("/search/{query}", response_model=List[schemas.ResellerRead])
def search_resellers(query: str, db: Session = Depends(get_db)) -> List[schemas.ResellerRead]:
    """Case-insensitive search by name or description."""
    if not query.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Search query is required")
    try:
        return ResellerService.search_resellers(db, query)
    except ResellerStorageError as exc:
        raise _storage_failure(exc) from exc


@router.get("/import/template", response_class=StreamingResponse)
def download_reseller_import_template() -> StreamingResponse:
    """Provide a CSV template with the expected reseller columns."""

    csv_content = ResellerImportService.build_import_template()
    headers = {
        "Content-Disposition": "attachment; filename=reseller_import_template.csv",
        "Cache-Control": "no-store",
    }
    return StreamingResponse(iter([csv_content]), media_type="text/csv", headers=headers)


@router.post("/import", response_model=schemas.ResellerImportSummary)
def import_resellers(
    csv_file: UploadFile = File(..., alias="csv"),
    db: Session = Depends(get_db),
) -> schemas.ResellerImportSummary:
    """Accept a CSV upload and create reseller records row by row."""

    try:
        upload_path = _spool_upload(csv_file)
        LOGGER.info("Importing resellers from upload %s", csv_file.filename)
        return ResellerImportService.import_resellers_from_path(db, upload_path)
    except ResellerValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    finally:
        csv_file.file.close()


@router.get("/{reseller_id}", response_model=schemas.ResellerRead)
def get_reseller(reseller_id: int, db: Session = Depends(get_db)) -> schemas.ResellerRead:
    try:
        reseller = ResellerService.get_reseller(db, reseller_id)
    except ResellerStorageError as exc:
        raise _storage_failure(exc) from exc
    if reseller is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reseller not found")
    return reseller


@router.put("/{reseller_id}", response_model=schemas.ResellerRead)
def update_reseller(
    reseller_id: int,
    reseller_in: schemas.ResellerUpdate,
    db: Session = Depends(get_db),
) -> schemas.ResellerRead:
    """Replace every field of a reseller."""
    try:
        return ResellerService.update_reseller(db, reseller_id, reseller_in)
    except ResellerNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reseller not found") from exc
    except ResellerStorageError as exc:
        raise _storage_failure(exc) from exc


@router.delete("/{reseller_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_reseller(reseller_id: int, db: Session = Depends(get_db)) -> None:
    try:
        ResellerService.delete_reseller(db, reseller_id)
    except ResellerNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reseller not found") from exc
    except ResellerStorageError as exc:
        raise _storage_failure(exc) from exc
