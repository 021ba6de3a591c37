from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator


class ShopRequest(BaseModel):
    shopDomain: str = Field(min_length=1)


class LookupProductRequest(ShopRequest):
    barcode: str = Field(min_length=1)

    @field_validator("barcode")
    @classmethod
    def strip_barcode(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("barcode cannot be blank")
        return cleaned


class ProductVariant(BaseModel):
    variantGid: str
    barcode: str | None = None
    sku: str | None = None
    price: str | None = None
    inventoryItemId: str | None = None


class LookupProductResponse(BaseModel):
    shopDomain: str
    productGid: str
    title: str
    handle: str
    imageUrl: str | None = None
    variants: list[ProductVariant] = Field(default_factory=list)


class AdjustInventoryRequest(ShopRequest):
    inventoryItemId: str = Field(min_length=1)
    locationId: str = Field(min_length=1)
    quantityDelta: int
    reason: Literal["correction", "damaged", "received", "returned", "other"] = "correction"
    productId: str | None = None
    barcode: str | None = None

    @field_validator("quantityDelta")
    @classmethod
    def reject_zero_delta(cls, value: int) -> int:
        if value == 0:
            raise ValueError("quantityDelta must be non-zero")
        return value


class InventoryChange(BaseModel):
    name: str
    delta: int


class AdjustInventoryResponse(BaseModel):
    shopDomain: str
    success: bool
    reason: str | None = None
    changes: list[InventoryChange] = Field(default_factory=list)


class LocationAddress(BaseModel):
    address1: str | None = None
    city: str | None = None
    province: str | None = None
    country: str | None = None
    zip: str | None = None


class Location(BaseModel):
    id: str
    name: str
    address: LocationAddress | None = None


class ListLocationsResponse(BaseModel):
    shopDomain: str
    locations: list[Location]


class InventoryLevelRequest(ShopRequest):
    inventoryItemId: str = Field(min_length=1)
    locationId: str = Field(min_length=1)


class InventoryLevelResponse(BaseModel):
    shopDomain: str
    inventoryItemId: str
    locationId: str
    available: int | None = None
