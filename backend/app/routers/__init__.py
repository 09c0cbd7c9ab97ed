"""Routers package."""

from .products import router as products_router
from .resellers import router as resellers_router

__all__ = [
    "products_router",
    "resellers_router",
]
