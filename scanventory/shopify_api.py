from __future__ import annotations

import logging
from typing import Any, Literal, get_args

import httpx

from scanventory.config import settings
from scanventory.errors import RateLimitError, ShopifyApiError
from scanventory.retry import retry_with_backoff

logger = logging.getLogger(__name__)

AdjustmentReason = Literal["correction", "damaged", "received", "returned", "other"]
ADJUSTMENT_REASONS: frozenset[str] = frozenset(get_args(AdjustmentReason))


class ShopifyApiClient:
    def __init__(
        self,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        max_retries: int | None = None,
        initial_delay_ms: int | None = None,
    ) -> None:
        self._timeout = settings.SHOPIFY_REQUEST_TIMEOUT_SECONDS
        self._transport = transport
        self._max_retries = settings.SHOPIFY_RETRY_MAX_ATTEMPTS if max_retries is None else max_retries
        self._initial_delay_ms = (
            settings.SHOPIFY_RETRY_INITIAL_DELAY_MS if initial_delay_ms is None else initial_delay_ms
        )

    async def graphql_query(
        self,
        *,
        shop_domain: str,
        access_token: str,
        query: str,
        variables: dict[str, Any] | None = None,
    ) -> Any:
        """Execute one Admin GraphQL request and return its ``data`` payload.

        GraphQL errors become a ShopifyApiError carrying every message joined with
        ", ". A response reporting zero available cost points becomes a
        RateLimitError even when ``data`` is present. Transport and decoding
        failures are wrapped as ShopifyApiError. The payload is returned as-is.
        """
        try:
            body = await self._post_graphql(
                shop_domain=shop_domain,
                access_token=access_token,
                payload={"query": query, "variables": variables},
            )

            errors = body.get("errors")
            if errors:
                messages = ", ".join(str(error.get("message")) for error in errors)
                raise ShopifyApiError(message=f"GraphQL error: {messages}")

            throttle_status = ((body.get("extensions") or {}).get("cost") or {}).get("throttleStatus") or {}
            if throttle_status.get("currentlyAvailable") == 0:
                raise RateLimitError("Shopify API rate limit exceeded")

            return body.get("data")
        except ShopifyApiError:
            raise
        except Exception as exc:
            raise ShopifyApiError(message=f"API request failed: {exc}") from exc

    async def find_product_by_barcode(
        self,
        *,
        shop_domain: str,
        access_token: str,
        barcode: str,
    ) -> dict[str, Any] | None:
        query = """
        query findProductByBarcode($query: String!) {
            products(first: 10, query: $query) {
                edges {
                    node {
                        id
                        title
                        handle
                        variants(first: 10) {
                            edges {
                                node {
                                    id
                                    barcode
                                    sku
                                    price
                                    inventoryItem {
                                        id
                                    }
                                }
                            }
                        }
                        images(first: 1) {
                            edges {
                                node {
                                    url
                                }
                            }
                        }
                    }
                }
            }
        }
        """
        data = await self._with_retry(
            shop_domain=shop_domain,
            access_token=access_token,
            query=query,
            variables={"query": f"barcode:{barcode} OR sku:{barcode}"},
        )
        edges = data["products"]["edges"]
        if not edges:
            return None
        return edges[0]["node"]

    async def adjust_inventory(
        self,
        *,
        shop_domain: str,
        access_token: str,
        inventory_item_id: str,
        location_id: str,
        quantity_delta: int,
        reason: AdjustmentReason = "correction",
    ) -> dict[str, Any]:
        if reason not in ADJUSTMENT_REASONS:
            raise ShopifyApiError(
                message=f"Unsupported inventory adjustment reason: {reason}",
                code="INVALID_REASON",
                status_code=400,
            )

        mutation = """
        mutation inventoryAdjustQuantities($input: InventoryAdjustQuantitiesInput!) {
            inventoryAdjustQuantities(input: $input) {
                userErrors {
                    field
                    message
                }
                inventoryAdjustmentGroup {
                    reason
                    changes {
                        name
                        delta
                    }
                }
            }
        }
        """
        data = await self._with_retry(
            shop_domain=shop_domain,
            access_token=access_token,
            query=mutation,
            variables={
                "input": {
                    "reason": reason,
                    "changes": [
                        {
                            "delta": quantity_delta,
                            "inventoryItemId": inventory_item_id,
                            "locationId": location_id,
                        }
                    ],
                }
            },
        )
        result = data["inventoryAdjustQuantities"]
        user_errors = result.get("userErrors") or []
        if user_errors:
            raise ShopifyApiError(
                message=str(user_errors[0].get("message")),
                code="USER_ERROR",
                user_errors=user_errors,
                status_code=422,
            )

        return {
            "success": True,
            "inventoryAdjustmentGroup": result.get("inventoryAdjustmentGroup"),
        }

    async def get_locations(self, *, shop_domain: str, access_token: str) -> list[dict[str, Any]]:
        query = """
        query getLocations {
            locations(first: 50) {
                edges {
                    node {
                        id
                        name
                        address {
                            address1
                            city
                            province
                            country
                            zip
                        }
                    }
                }
            }
        }
        """
        data = await self._with_retry(shop_domain=shop_domain, access_token=access_token, query=query)
        return [edge["node"] for edge in data["locations"]["edges"]]

    async def get_inventory_level(
        self,
        *,
        shop_domain: str,
        access_token: str,
        inventory_item_id: str,
        location_id: str,
    ) -> int | None:
        query = """
        query getInventoryLevel($inventoryItemId: ID!, $locationId: ID!) {
            inventoryItem(id: $inventoryItemId) {
                inventoryLevel(locationId: $locationId) {
                    quantities(names: ["available"]) {
                        name
                        quantity
                    }
                }
            }
        }
        """
        data = await self._with_retry(
            shop_domain=shop_domain,
            access_token=access_token,
            query=query,
            variables={"inventoryItemId": inventory_item_id, "locationId": location_id},
        )
        inventory_level = (data.get("inventoryItem") or {}).get("inventoryLevel") or {}
        for quantity in inventory_level.get("quantities") or []:
            if quantity.get("name") == "available":
                return quantity.get("quantity")
        return None

    async def _with_retry(
        self,
        *,
        shop_domain: str,
        access_token: str,
        query: str,
        variables: dict[str, Any] | None = None,
    ) -> Any:
        return await retry_with_backoff(
            lambda: self.graphql_query(
                shop_domain=shop_domain,
                access_token=access_token,
                query=query,
                variables=variables,
            ),
            max_retries=self._max_retries,
            initial_delay=self._initial_delay_ms,
        )

    async def _post_graphql(
        self,
        *,
        shop_domain: str,
        access_token: str,
        payload: dict[str, Any],
    ) -> dict[str, Any]:
        url = f"https://{shop_domain}/admin/api/{settings.SHOPIFY_ADMIN_API_VERSION}/graphql.json"
        headers = {
            "Content-Type": "application/json",
            "X-Shopify-Access-Token": access_token,
        }
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            response = await client.post(url, json=payload, headers=headers)

        if response.status_code >= 400:
            logger.warning(
                "shopify.graphql_http_error",
                extra={"shop_domain": shop_domain, "status_code": response.status_code},
            )
            raise ShopifyApiError(
                message=f"API request failed: Shopify responded {response.status_code}: {response.text}",
                status_code=502,
            )

        body = response.json()
        if not isinstance(body, dict):
            raise ShopifyApiError(message="API request failed: Shopify response must be a JSON object")
        return body
