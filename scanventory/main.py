from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.responses import ORJSONResponse
from sqlalchemy.orm import Session

from scanventory.config import settings
from scanventory.db import get_session, init_db
from scanventory.errors import ShopifyApiError
from scanventory.models import ShopSession
from scanventory.repositories import SessionsRepository, ShopsRepository
from scanventory.schemas import (
    AdjustInventoryRequest,
    AdjustInventoryResponse,
    InventoryChange,
    InventoryLevelRequest,
    InventoryLevelResponse,
    ListLocationsResponse,
    Location,
    LookupProductRequest,
    LookupProductResponse,
    ProductVariant,
    ShopRequest,
)
from scanventory.security import authenticate_webhook, normalize_shop_domain, require_internal_api_token
from scanventory.shopify_api import ShopifyApiClient
from scanventory.uninstall import UninstallWorkflow

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _app_lifespan(_app: FastAPI) -> AsyncIterator[None]:
    logging.basicConfig(level=settings.LOG_LEVEL)
    init_db()
    yield


app = FastAPI(title="Scanventory", default_response_class=ORJSONResponse, lifespan=_app_lifespan)
shopify_api = ShopifyApiClient()


@app.exception_handler(ShopifyApiError)
async def shopify_api_error_handler(_request: Request, exc: ShopifyApiError) -> ORJSONResponse:
    logger.warning(
        "shopify.request_failed",
        extra={"code": exc.code, "kind": exc.kind.value, "status_code": exc.status_code},
    )
    return ORJSONResponse(
        status_code=exc.status_code,
        content={"detail": str(exc), "code": exc.code, "userErrors": exc.user_errors},
    )


@app.get("/health")
def health() -> dict[str, bool]:
    return {"ok": True}


def _webhook_error_response(exc: Exception) -> ORJSONResponse:
    if isinstance(exc, HTTPException):
        return ORJSONResponse(status_code=exc.status_code, content={"detail": exc.detail})
    return ORJSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error."},
    )


@app.post("/webhooks/app/uninstalled")
async def app_uninstalled_webhook(request: Request, session: Session = Depends(get_session)):
    try:
        context = await authenticate_webhook(request, session)
        result = UninstallWorkflow(session).run(context)
    except Exception as exc:
        logger.exception("uninstall.failed", extra={"path": request.url.path})
        return _webhook_error_response(exc)

    return {"received": True, "outcome": result.outcome.value}


def _resolve_shop_session(*, shop_domain: str, session: Session) -> ShopSession:
    normalized_shop = normalize_shop_domain(shop_domain)
    shop_session = SessionsRepository(session).find_for_shop(normalized_shop)
    if shop_session is None or not shop_session.access_token:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No active Shopify session found for shopDomain={normalized_shop}",
        )
    return shop_session


def _serialize_product(shop_domain: str, product: dict[str, Any]) -> LookupProductResponse:
    image_edges = (product.get("images") or {}).get("edges") or []
    variant_edges = (product.get("variants") or {}).get("edges") or []
    return LookupProductResponse(
        shopDomain=shop_domain,
        productGid=product["id"],
        title=product["title"],
        handle=product["handle"],
        imageUrl=image_edges[0]["node"]["url"] if image_edges else None,
        variants=[
            ProductVariant(
                variantGid=edge["node"]["id"],
                barcode=edge["node"].get("barcode"),
                sku=edge["node"].get("sku"),
                price=edge["node"].get("price"),
                inventoryItemId=(edge["node"].get("inventoryItem") or {}).get("id"),
            )
            for edge in variant_edges
        ],
    )


@app.post(
    "/v1/inventory/products/lookup",
    response_model=LookupProductResponse,
    dependencies=[Depends(require_internal_api_token)],
)
async def lookup_product(payload: LookupProductRequest, session: Session = Depends(get_session)):
    shop_session = _resolve_shop_session(shop_domain=payload.shopDomain, session=session)
    product = await shopify_api.find_product_by_barcode(
        shop_domain=shop_session.shop,
        access_token=shop_session.access_token,
        barcode=payload.barcode,
    )
    if product is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No product found for barcode or SKU: {payload.barcode}",
        )
    return _serialize_product(shop_session.shop, product)


@app.post(
    "/v1/inventory/adjust",
    response_model=AdjustInventoryResponse,
    dependencies=[Depends(require_internal_api_token)],
)
async def adjust_inventory(payload: AdjustInventoryRequest, session: Session = Depends(get_session)):
    shop_session = _resolve_shop_session(shop_domain=payload.shopDomain, session=session)
    adjusted = await shopify_api.adjust_inventory(
        shop_domain=shop_session.shop,
        access_token=shop_session.access_token,
        inventory_item_id=payload.inventoryItemId,
        location_id=payload.locationId,
        quantity_delta=payload.quantityDelta,
        reason=payload.reason,
    )

    shops = ShopsRepository(session)
    shops.record_adjustment(
        shop=shops.get_or_create(shop_session.shop),
        location_id=payload.locationId,
        quantity_change=payload.quantityDelta,
        reason=payload.reason,
        shopify_product_id=payload.productId,
        barcode=payload.barcode,
    )

    group = adjusted.get("inventoryAdjustmentGroup") or {}
    return AdjustInventoryResponse(
        shopDomain=shop_session.shop,
        success=adjusted["success"],
        reason=group.get("reason"),
        changes=[
            InventoryChange(name=change["name"], delta=change["delta"])
            for change in group.get("changes") or []
        ],
    )


@app.post(
    "/v1/inventory/locations",
    response_model=ListLocationsResponse,
    dependencies=[Depends(require_internal_api_token)],
)
async def list_locations(payload: ShopRequest, session: Session = Depends(get_session)):
    shop_session = _resolve_shop_session(shop_domain=payload.shopDomain, session=session)
    locations = await shopify_api.get_locations(
        shop_domain=shop_session.shop,
        access_token=shop_session.access_token,
    )

    shops = ShopsRepository(session)
    shops.replace_location_cache(shop=shops.get_or_create(shop_session.shop), locations=locations)

    return ListLocationsResponse(
        shopDomain=shop_session.shop,
        locations=[Location.model_validate(location) for location in locations],
    )


@app.post(
    "/v1/inventory/levels/get",
    response_model=InventoryLevelResponse,
    dependencies=[Depends(require_internal_api_token)],
)
async def get_inventory_level(payload: InventoryLevelRequest, session: Session = Depends(get_session)):
    shop_session = _resolve_shop_session(shop_domain=payload.shopDomain, session=session)
    available = await shopify_api.get_inventory_level(
        shop_domain=shop_session.shop,
        access_token=shop_session.access_token,
        inventory_item_id=payload.inventoryItemId,
        location_id=payload.locationId,
    )
    return InventoryLevelResponse(
        shopDomain=shop_session.shop,
        inventoryItemId=payload.inventoryItemId,
        locationId=payload.locationId,
        available=available,
    )
