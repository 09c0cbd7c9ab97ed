"""Router exposing the resellers linked to storefront products."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..services import ResellerService, ResellerStorageError, ResellerValidationError

router = APIRouter()


@router.get("/{product_id}/resellers", response_model=List[schemas.ResellerRead])
def get_product_resellers(
    product_id: str, db: Session = Depends(get_db)
) -> List[schemas.ResellerRead]:
    """Return the resellers that carry a product, ordered by name."""
    try:
        return ResellerService.get_product_resellers(db, product_id)
    except ResellerStorageError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)
        ) from exc


def _replace_product_resellers(
    product_id: str,
    payload: schemas.ProductResellersUpdate,
    db: Session,
) -> schemas.ProductResellersRead:
    try:
        reseller_ids = ResellerService.replace_product_resellers(
            db, product_id, payload.reseller_ids
        )
    except ResellerValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except ResellerStorageError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)
        ) from exc
    return schemas.ProductResellersRead(product_id=product_id, reseller_ids=reseller_ids)


@router.put("/{product_id}/resellers", response_model=schemas.ProductResellersRead)
def replace_product_resellers(
    product_id: str,
    payload: schemas.ProductResellersUpdate,
    db: Session = Depends(get_db),
) -> schemas.ProductResellersRead:
    """Make the given reseller ids the complete set for a product."""
    return _replace_product_resellers(product_id, payload, db)


@router.post(
    "/{product_id}/resellers",
    response_model=schemas.ProductResellersRead,
    include_in_schema=False,
)
def replace_product_resellers_legacy(
    product_id: str,
    payload: schemas.ProductResellersUpdate,
    db: Session = Depends(get_db),
) -> schemas.ProductResellersRead:
    return _replace_product_resellers(product_id, payload, db)
