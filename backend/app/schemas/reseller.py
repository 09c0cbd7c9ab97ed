from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

BYTE_ORDER_MARK = "\ufeff"


def clean_name(value: object) -> object:
    """Trim a reseller name, dropping a leading byte-order mark."""

    if not isinstance(value, str):
        return value
    return value.strip().lstrip(BYTE_ORDER_MARK).strip()


class ResellerBase(BaseModel):
    name: str = Field(..., min_length=1, description="Display name of the reseller")
    logo_url: Optional[str] = Field(default=None, description="Logo image URL")
    description: Optional[str] = None
    website_url: Optional[str] = None
    location_url: Optional[str] = Field(default=None, description="Link to a map location")
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)

    @field_validator("name", mode="before")
    @classmethod
    def _clean_name(cls, value: object) -> object:
        return clean_name(value)


class ResellerCreate(ResellerBase):
    pass


class ResellerUpdate(ResellerBase):
    """Full replacement payload; omitted optional fields are cleared."""


class ResellerRead(ResellerBase):
    id: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProductResellersUpdate(BaseModel):
    """Replace the complete set of resellers linked to a product."""

    reseller_ids: list[int] = Field(
        ...,
        validation_alias=AliasChoices("resellerIds", "reseller_ids"),
        description="Identifiers of every reseller that carries the product",
    )


class ProductResellersRead(BaseModel):
    product_id: str
    reseller_ids: list[int] = Field(default_factory=list)
    message: str = "Product-reseller associations updated successfully"


class ResellerImportResult(BaseModel):
    id: int
    name: str


class ResellerImportRowError(BaseModel):
    """A row that could not be imported, kept as data in the summary."""

    row_number: int = Field(..., ge=2)
    row: dict[str, Optional[str]] = Field(default_factory=dict)
    error: str
    field_errors: dict[str, str] = Field(default_factory=dict)


class ResellerImportWarning(BaseModel):
    row_number: int = Field(..., ge=2)
    message: str


class ResellerImportSummary(BaseModel):
    """Summary returned once the whole import stream has been consumed."""

    message: str = "Import completed"
    imported: int = Field(..., ge=0)
    error_count: int = Field(..., ge=0)
    results: list[ResellerImportResult] = Field(default_factory=list)
    errors: list[ResellerImportRowError] = Field(default_factory=list)
    warnings: list[ResellerImportWarning] = Field(default_factory=list)
