from __future__ import annotations

import base64
import hashlib
import hmac
import json
import re
from dataclasses import dataclass
from typing import Any

from fastapi import Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from scanventory.config import settings
from scanventory.models import ShopSession
from scanventory.repositories import SessionsRepository

_SHOP_DOMAIN_RE = re.compile(r"^[a-z0-9][a-z0-9-]*\.myshopify\.com$")


def normalize_shop_domain(shop: str) -> str:
    normalized = shop.strip().lower()
    if not _SHOP_DOMAIN_RE.fullmatch(normalized):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="shop must be a valid *.myshopify.com domain",
        )
    return normalized


def compute_webhook_hmac(body: bytes, secret: str | None = None) -> str:
    digest = hmac.new(
        (secret or settings.SHOPIFY_APP_API_SECRET).encode("utf-8"),
        body,
        hashlib.sha256,
    ).digest()
    return base64.b64encode(digest).decode("utf-8")


def verify_webhook_hmac(*, body: bytes, supplied_hmac: str | None) -> bool:
    if not supplied_hmac:
        return False
    return hmac.compare_digest(compute_webhook_hmac(body), supplied_hmac)


@dataclass(frozen=True)
class WebhookContext:
    shop: str
    session: ShopSession | None
    topic: str
    webhook_id: str
    api_version: str | None
    payload: dict[str, Any]


def _require_header(request: Request, name: str) -> str:
    value = (request.headers.get(name) or "").strip()
    if not value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Missing {name.lower()} header",
        )
    return value


async def authenticate_webhook(request: Request, session: Session) -> WebhookContext:
    """Verify a Shopify webhook delivery and resolve the shop's stored session.

    The session is ``None`` when the shop has no session row left, which is
    how a repeated delivery for an already-processed uninstall looks.
    """
    body = await request.body()
    if not verify_webhook_hmac(body=body, supplied_hmac=request.headers.get("x-shopify-hmac-sha256")):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid webhook HMAC")

    shop_domain = normalize_shop_domain(_require_header(request, "X-Shopify-Shop-Domain"))
    topic = _require_header(request, "X-Shopify-Topic")
    webhook_id = _require_header(request, "X-Shopify-Webhook-Id")

    try:
        payload = json.loads(body or b"{}")
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON payload") from exc
    if not isinstance(payload, dict):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Webhook payload must be a JSON object",
        )

    return WebhookContext(
        shop=shop_domain,
        session=SessionsRepository(session).find_for_shop(shop_domain),
        topic=topic,
        webhook_id=webhook_id,
        api_version=request.headers.get("x-shopify-api-version"),
        payload=payload,
    )


def require_internal_api_token(
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> None:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Bearer authorization header",
        )
    token = authorization[7:].strip()
    if not hmac.compare_digest(token, settings.SHOPIFY_INTERNAL_API_TOKEN):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid internal API token",
        )
