"""SQLAlchemy model definitions for resellers and their product links."""

from __future__ import annotations

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import relationship

from ..database import Base


class Reseller(Base):
    """A partner that carries storefront products."""

    __tablename__ = "resellers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    logo_url = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    website_url = Column(Text, nullable=True)
    location_url = Column(Text, nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    product_links = relationship(
        "ProductReseller",
        back_populates="reseller",
        cascade="all, delete-orphan",
    )

    __table_args__ = (Index("resellers_name_idx", "name"),)


class ProductReseller(Base):
    """Records that a reseller carries the storefront product ``product_id``."""

    __tablename__ = "product_resellers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    product_id = Column(String, nullable=False)
    reseller_id = Column(
        Integer,
        ForeignKey("resellers.id"),
        nullable=False,
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    reseller = relationship("Reseller", back_populates="product_links")

    __table_args__ = (
        Index("product_resellers_product_reseller_key", "product_id", "reseller_id", unique=True),
        Index("product_resellers_product_idx", "product_id"),
    )
