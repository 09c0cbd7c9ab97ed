"""Business logic for resellers and the products they carry."""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Sequence

from sqlalchemy import func, literal, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import models, schemas

LOGGER = logging.getLogger(__name__)

LIKE_ESCAPE = "\\"


class ResellerServiceError(RuntimeError):
    """Base error for reseller operations."""


class ResellerNotFoundError(ResellerServiceError):
    """Raised when an id-keyed operation finds no reseller."""


class ResellerValidationError(ResellerServiceError):
    """Raised when the caller supplies input the store cannot accept."""


class ResellerStorageError(ResellerServiceError):
    """Raised when the backing database fails."""


def _escape_like(term: str) -> str:
    return (
        term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


def _unique_ids(reseller_ids: Iterable[int]) -> list[int]:
    seen: set[int] = set()
    ordered: list[int] = []
    for reseller_id in reseller_ids:
        if reseller_id in seen:
            continue
        seen.add(reseller_id)
        ordered.append(reseller_id)
    return ordered


class ResellerService:
    """CRUD for resellers plus replace-all product associations."""

    @staticmethod
    def list_resellers(db: Session) -> list[models.Reseller]:
        try:
            return db.query(models.Reseller).order_by(models.Reseller.name).all()
        except SQLAlchemyError as exc:
            db.rollback()
            raise ResellerStorageError(f"Could not list resellers: {exc}") from exc

    @staticmethod
    def get_reseller(db: Session, reseller_id: int) -> Optional[models.Reseller]:
        try:
            return db.query(models.Reseller).filter(models.Reseller.id == reseller_id).first()
        except SQLAlchemyError as exc:
            db.rollback()
            raise ResellerStorageError(f"Could not load reseller {reseller_id}: {exc}") from exc

    @staticmethod
    def create_reseller(db: Session, data: schemas.ResellerCreate) -> models.Reseller:
        reseller = models.Reseller(**data.model_dump())
        db.add(reseller)
        try:
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise ResellerStorageError(f"Could not create reseller: {exc}") from exc
        db.refresh(reseller)
        LOGGER.info("Created reseller %s (%s)", reseller.id, reseller.name)
        return reseller

    @staticmethod
    def update_reseller(
        db: Session, reseller_id: int, data: schemas.ResellerUpdate
    ) -> models.Reseller:
        reseller = ResellerService.get_reseller(db, reseller_id)
        if reseller is None:
            raise ResellerNotFoundError(f"Reseller {reseller_id} not found")

        for key, value in data.model_dump().items():
            setattr(reseller, key, value)
        # Forces an UPDATE even when every field is unchanged.
        reseller.updated_at = func.now()

        try:
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise ResellerStorageError(f"Could not update reseller {reseller_id}: {exc}") from exc
        db.refresh(reseller)
        LOGGER.info("Updated reseller %s", reseller_id)
        return reseller

    @staticmethod
    def delete_reseller(db: Session, reseller_id: int) -> None:
        """Delete a reseller together with every product association it has."""

        reseller = ResellerService.get_reseller(db, reseller_id)
        if reseller is None:
            raise ResellerNotFoundError(f"Reseller {reseller_id} not found")

        db.delete(reseller)
        try:
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise ResellerStorageError(f"Could not delete reseller {reseller_id}: {exc}") from exc
        LOGGER.info("Deleted reseller %s", reseller_id)

    @staticmethod
    def search_resellers(db: Session, term: str) -> list[models.Reseller]:
        """Case-insensitive substring search over name and description.

        ``%`` and ``_`` in ``term`` are matched literally.
        """

        # Fold both sides in SQL; SQLite's lower() leaves non-ASCII letters untouched.
        pattern = func.lower(literal(f"%{_escape_like(term)}%"))
        try:
            return (
                db.query(models.Reseller)
                .filter(
                    or_(
                        func.lower(models.Reseller.name).like(pattern, escape=LIKE_ESCAPE),
                        func.lower(func.coalesce(models.Reseller.description, "")).like(
                            pattern, escape=LIKE_ESCAPE
                        ),
                    )
                )
                .order_by(models.Reseller.name)
                .all()
            )
        except SQLAlchemyError as exc:
            db.rollback()
            raise ResellerStorageError(f"Could not search resellers: {exc}") from exc

    @staticmethod
    def get_product_resellers(db: Session, product_id: str) -> list[models.Reseller]:
        try:
            return (
                db.query(models.Reseller)
                .join(
                    models.ProductReseller,
                    models.ProductReseller.reseller_id == models.Reseller.id,
                )
                .filter(models.ProductReseller.product_id == product_id)
                .order_by(models.Reseller.name, models.Reseller.id)
                .all()
            )
        except SQLAlchemyError as exc:
            db.rollback()
            raise ResellerStorageError(
                f"Could not load resellers for product {product_id}: {exc}"
            ) from exc

    @staticmethod
    def replace_product_resellers(
        db: Session, product_id: str, reseller_ids: Sequence[int]
    ) -> list[int]:
        """Make ``reseller_ids`` the complete set of resellers for ``product_id``.

        The delete and the inserts share one transaction, so a failure leaves
        the previous set untouched. Unknown reseller ids are rejected before
        anything is written.
        """

        requested = _unique_ids(reseller_ids)

        try:
            if requested:
                known = {
                    reseller_id
                    for (reseller_id,) in db.query(models.Reseller.id)
                    .filter(models.Reseller.id.in_(requested))
                    .all()
                }
                missing = [reseller_id for reseller_id in requested if reseller_id not in known]
                if missing:
                    raise ResellerValidationError(
                        "Unknown reseller ids: " + ", ".join(str(value) for value in missing)
                    )

            db.query(models.ProductReseller).filter(
                models.ProductReseller.product_id == product_id
            ).delete(synchronize_session=False)
            db.add_all(
                models.ProductReseller(product_id=product_id, reseller_id=reseller_id)
                for reseller_id in requested
            )
            db.flush()
            db.commit()
        except ResellerValidationError:
            db.rollback()
            raise
        except SQLAlchemyError as exc:
            db.rollback()
            raise ResellerStorageError(
                f"Could not update resellers for product {product_id}: {exc}"
            ) from exc

        LOGGER.info(
            "Product %s now linked to %d reseller(s)", product_id, len(requested)
        )
        return requested
