"""Expose SQLAlchemy models for convenient imports."""

from .reseller import ProductReseller, Reseller

__all__ = [
    "ProductReseller",
    "Reseller",
]
